from __future__ import annotations

import numpy as np
from scipy.linalg import lapack


class SingularRelaxationError(np.linalg.LinAlgError):
    pass


def invert(S: np.ndarray) -> bool:
    """Replace the square matrix *S* by its inverse, in place.

    Uses an LU factorization with partial pivoting (``getrf``) followed by
    ``getri`` with a workspace sized by a dry-run query.  Returns False, and
    leaves *S* untouched, when the matrix is singular.  Invalid arguments
    reported by LAPACK are a programming error and raise ``ValueError``.
    """
    if S.ndim != 2 or S.shape[0] != S.shape[1]:
        raise ValueError(f"invert expects a square matrix, got shape {S.shape}.")
    p = S.shape[0]
    if p == 0:
        return True

    getrf, getri, getri_lwork = lapack.get_lapack_funcs(
        ("getrf", "getri", "getri_lwork"), (S,)
    )
    lu, piv, info = getrf(S)
    if info < 0:
        raise ValueError(f"invalid argument {-info} in getrf")
    if info > 0:
        return False  # singular

    work, info = getri_lwork(p)
    if info != 0:
        raise ValueError(f"error {info} in getri workspace query")
    lwork = int(np.real(work))
    inv, info = getri(lu, piv, lwork=max(lwork, p))
    if info < 0:
        raise ValueError(f"invalid argument {-info} in getri")
    if info > 0 or not np.all(np.isfinite(inv)):
        return False

    S[...] = inv
    return True


def relaxation_inverse(Gamma: np.ndarray, dt: float, out: np.ndarray | None = None) -> np.ndarray:
    """Compute inv(I + Gamma*dt/2), the implicit half of the population step.

    Raises ``SingularRelaxationError`` when the matrix cannot be inverted;
    *out* is only written once the inverse exists.
    """
    L = Gamma.shape[0]
    S = np.eye(L) + Gamma * (0.5 * dt)
    if not invert(S):
        raise SingularRelaxationError("multilevel_susceptibility: I + Gamma*dt/2 matrix singular")
    if out is None:
        return S
    out[...] = S
    return out
