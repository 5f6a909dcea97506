from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from mlatom.models import (
    ConfigurationError,
    ExtendedMultilevelMaterial,
    MultilevelMaterial,
    material_from_dict,
    material_to_dict,
)


def _two_level(**overrides) -> MultilevelMaterial:
    params = dict(
        Gamma=np.zeros((2, 2)),
        N0=[1.0, 0.0],
        alpha=[[1.0], [-1.0]],
        omega=[1.0],
        gamma=[0.1],
        sigmat=[1.0],
    )
    params.update(overrides)
    return MultilevelMaterial(**params)


def _lambda_system(**overrides) -> ExtendedMultilevelMaterial:
    params = dict(
        Gamma=np.zeros((3, 3)),
        N0=[0.0, 0.5, 0.5],
        alpha=[[1.0, 1.0], [-1.0, 0.0], [0.0, -1.0]],
        omega=[1.0, 1.2],
        gamma=[0.1, 0.1],
        sigmat=[1.0, 0.5],
        beta=[[0.0], [1.0], [-1.0]],
        gamma_decoherence=[0.05],
        omega_nonradiative=[0.2],
    )
    params.update(overrides)
    return ExtendedMultilevelMaterial(**params)


def test_isotropic_sigmat_is_broadcast_per_direction() -> None:
    material = _two_level(sigmat=[2.0])
    assert material.sigmat.shape == (1, 5)
    assert np.all(material.sigmat == 2.0)
    assert material.num_levels == 2
    assert material.num_transitions == 1
    assert material.num_channels == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"Gamma": np.zeros((3, 3))},
        {"alpha": [[1.0], [-1.0], [0.0]]},
        {"omega": [1.0, 2.0]},
        {"gamma": [[0.1]]},
        {"sigmat": np.ones((1, 3))},
        {"N0": [1.0, np.nan]},
    ],
)
def test_shape_and_value_errors(overrides) -> None:
    with pytest.raises(ValueError):
        _two_level(**overrides)


def test_material_arrays_are_read_only() -> None:
    material = _two_level()
    with pytest.raises(ValueError):
        material.alpha[0, 0] = 2.0
    with pytest.raises(ValueError):
        material.N0[0] = 0.5


def test_material_does_not_alias_caller_arrays() -> None:
    Gamma = np.zeros((2, 2))
    material = _two_level(Gamma=Gamma)
    Gamma[0, 0] = 5.0
    assert material.Gamma[0, 0] == 0.0


def test_transition_levels_and_invalid_alpha_column() -> None:
    assert _two_level().transition_levels(0) == (0, 1)
    assert _two_level(alpha=[[-1.0], [1.0]]).transition_levels(0) == (1, 0)

    material = _two_level(alpha=[[1.0], [1.0]])
    with pytest.raises(ConfigurationError, match="invalid alpha array for transition 0"):
        material.transition_levels(0)
    with pytest.raises(ConfigurationError):
        material.validate()


def test_configuration_error_is_value_error() -> None:
    assert issubclass(ConfigurationError, ValueError)


def test_correspondence_lookups() -> None:
    material = _lambda_system()
    assert material.correspond_radiative_transition(0, 1) == 0
    assert material.correspond_radiative_transition(2, 0) == 1
    assert material.correspond_radiative_transition(1, 2) is None
    assert material.correspond_nonradiative_transition(1, 2) == 0
    assert material.correspond_nonradiative_transition(2, 1) == 0
    assert material.correspond_nonradiative_transition(0, 1) is None
    assert material.channel_levels(0) == (1, 2)
    material.validate()


def test_channel_duplicating_radiative_transition_is_rejected() -> None:
    material = _lambda_system(beta=[[1.0], [-1.0], [0.0]])
    with pytest.raises(ConfigurationError, match="already coupled"):
        material.validate()


def test_invalid_beta_column() -> None:
    material = _lambda_system(beta=[[0.0], [1.0], [1.0]])
    with pytest.raises(ConfigurationError, match="invalid beta array"):
        material.channel_levels(0)


def test_extended_material_without_channels() -> None:
    material = ExtendedMultilevelMaterial(
        Gamma=np.zeros((2, 2)),
        N0=[1.0, 0.0],
        alpha=[[1.0], [-1.0]],
        omega=[1.0],
        gamma=[0.1],
        sigmat=[1.0],
    )
    assert material.beta.shape == (2, 0)
    assert material.num_channels == 0


def test_extended_material_channel_array_lengths_must_agree() -> None:
    with pytest.raises(ValueError):
        _lambda_system(gamma_decoherence=[0.05, 0.1])


def test_material_dict_roundtrip() -> None:
    basic = _two_level(Gamma=[[1.0, 0.0], [-1.0, 0.0]])
    restored = material_from_dict(material_to_dict(basic))
    assert type(restored) is MultilevelMaterial
    assert np.array_equal(restored.Gamma, basic.Gamma)
    assert np.array_equal(restored.sigmat, basic.sigmat)

    extended = _lambda_system()
    payload = material_to_dict(extended)
    assert payload["model"] == "extended"
    restored = material_from_dict(payload)
    assert isinstance(restored, ExtendedMultilevelMaterial)
    assert np.array_equal(restored.beta, extended.beta)
    assert np.array_equal(restored.omega_nonradiative, extended.omega_nonradiative)


def test_material_from_dict_rejects_unknown_model() -> None:
    payload = material_to_dict(_two_level())
    payload["model"] = "quantum-dot"
    with pytest.raises(ValueError, match="Unsupported material model"):
        material_from_dict(payload)


def test_replace_builds_a_validated_copy() -> None:
    material = _lambda_system()
    changed = dataclasses.replace(material, omega_nonradiative=[0.7])
    assert isinstance(changed, ExtendedMultilevelMaterial)
    assert changed.omega_nonradiative[0] == 0.7
    assert material.omega_nonradiative[0] == 0.2
    assert np.array_equal(changed.beta, material.beta)
    with pytest.raises(ValueError):
        dataclasses.replace(material, gamma_decoherence=[])
