from __future__ import annotations

import numpy as np
import pytest

from mlatom.linalg import SingularRelaxationError, invert, relaxation_inverse


def test_invert_matches_numpy_inverse() -> None:
    S = np.array(
        [
            [4.0, 1.0, 0.5],
            [2.0, 3.0, 1.0],
            [0.0, 1.0, 5.0],
        ]
    )
    expected = np.linalg.inv(S)
    assert invert(S)
    assert np.allclose(S, expected, rtol=1e-13, atol=1e-14)


def test_invert_needs_pivoting() -> None:
    S = np.array([[0.0, 1.0], [1.0, 0.0]])
    assert invert(S)
    assert np.array_equal(S, np.array([[0.0, 1.0], [1.0, 0.0]]))


def test_invert_singular_leaves_matrix_untouched() -> None:
    S = np.array([[1.0, 2.0], [2.0, 4.0]])
    original = S.copy()
    assert invert(S) is False
    assert np.array_equal(S, original)


def test_invert_rejects_non_square() -> None:
    with pytest.raises(ValueError):
        invert(np.zeros((2, 3)))


def test_relaxation_inverse_of_zero_gamma_is_identity() -> None:
    inv = relaxation_inverse(np.zeros((3, 3)), 0.1)
    assert np.array_equal(inv, np.eye(3))


def test_relaxation_inverse_writes_into_out() -> None:
    Gamma = np.array([[1.0, 0.0], [-1.0, 0.0]])
    out = np.zeros((2, 2))
    result = relaxation_inverse(Gamma, 0.2, out=out)
    assert result is out
    assert np.allclose(out @ (np.eye(2) + 0.1 * Gamma), np.eye(2))


@pytest.mark.parametrize(
    "Gamma",
    [
        -20.0 * np.eye(2),
        np.array([[-20.0, 0.0], [0.0, 0.0]]),
        np.array([[-20.0, 0.0, 0.0], [0.0, 3.0, 0.0], [0.0, 0.0, -20.0]]),
    ],
)
def test_relaxation_inverse_singular_fails_every_time(Gamma: np.ndarray) -> None:
    # dt = 0.1 makes I + Gamma*dt/2 exactly rank deficient.
    for _ in range(3):
        with pytest.raises(SingularRelaxationError):
            relaxation_inverse(Gamma, 0.1)
