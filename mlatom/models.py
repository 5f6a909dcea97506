from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

import numpy as np

from .grid import NUM_DIRECTIONS


class ConfigurationError(ValueError):
    pass


def _frozen_array(values: Any, name: str, ndim: int) -> np.ndarray:
    arr = np.array(values, dtype=float, copy=True)
    if arr.ndim != ndim:
        raise ValueError(f"{name} must be a {ndim}D array, got shape {arr.shape}.")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must contain only finite values.")
    arr.setflags(write=False)
    return arr


def _single_sign_pair(column: np.ndarray) -> tuple[int, int] | None:
    """Return (positive_row, negative_row) if the column has exactly one of each."""
    pos = np.flatnonzero(column > 0)
    neg = np.flatnonzero(column < 0)
    if pos.size != 1 or neg.size != 1:
        return None
    return int(pos[0]), int(neg[0])


@dataclass(eq=False)
class MultilevelMaterial:
    """Physical parameters of a multilevel gain medium.

    Gamma : (L, L) relaxation-rate matrix, dN/dt = -Gamma N + drive
    N0    : (L,) initial populations
    alpha : (L, T) coupling matrix; column t has one positive entry (upper
            level) and one negative entry (lower level)
    omega : (T,) transition frequencies
    gamma : (T,) transition linewidths
    sigmat: (T, 5) cross-section of each transition per direction
    """

    Gamma: np.ndarray
    N0: np.ndarray
    alpha: np.ndarray
    omega: np.ndarray
    gamma: np.ndarray
    sigmat: np.ndarray

    def __post_init__(self) -> None:
        self.Gamma = _frozen_array(self.Gamma, "Gamma", 2)
        self.N0 = _frozen_array(self.N0, "N0", 1)
        self.alpha = _frozen_array(self.alpha, "alpha", 2)
        self.omega = _frozen_array(self.omega, "omega", 1)
        self.gamma = _frozen_array(self.gamma, "gamma", 1)
        sigmat = np.array(self.sigmat, dtype=float)
        if sigmat.ndim == 1:
            # Isotropic cross-section given per transition.
            sigmat = np.repeat(sigmat[:, None], NUM_DIRECTIONS, axis=1)
        self.sigmat = _frozen_array(sigmat, "sigmat", 2)

        L = self.N0.size
        if L < 1:
            raise ValueError("At least one energy level is required.")
        if self.Gamma.shape != (L, L):
            raise ValueError(f"Gamma must have shape {(L, L)}, got {self.Gamma.shape}.")
        if self.alpha.shape[0] != L:
            raise ValueError(f"alpha must have {L} rows, got {self.alpha.shape[0]}.")
        T = self.alpha.shape[1]
        if T < 1:
            raise ValueError("At least one radiative transition is required.")
        for name in ("omega", "gamma"):
            if getattr(self, name).shape != (T,):
                raise ValueError(f"{name} must have shape {(T,)}, got {getattr(self, name).shape}.")
        if self.sigmat.shape != (T, NUM_DIRECTIONS):
            raise ValueError(
                f"sigmat must have shape {(T, NUM_DIRECTIONS)}, got {self.sigmat.shape}."
            )

    @property
    def num_levels(self) -> int:
        return int(self.N0.size)

    @property
    def num_transitions(self) -> int:
        return int(self.alpha.shape[1])

    @property
    def num_channels(self) -> int:
        return 0

    def transition_levels(self, t: int) -> tuple[int, int]:
        """Levels (upper, lower) coupled by radiative transition *t*."""
        pair = _single_sign_pair(self.alpha[:, t])
        if pair is None:
            raise ConfigurationError(f"invalid alpha array for transition {t}")
        return pair

    def correspond_radiative_transition(self, l1: int, l2: int) -> int | None:
        """First transition whose alpha column is non-zero at both levels."""
        for t in range(self.num_transitions):
            if self.alpha[l1, t] != 0 and self.alpha[l2, t] != 0:
                return t
        return None

    def validate(self) -> None:
        for t in range(self.num_transitions):
            self.transition_levels(t)


@dataclass(eq=False)
class ExtendedMultilevelMaterial(MultilevelMaterial):
    """Multilevel medium with non-radiative coherence channels.

    beta               : (L, C) coupling matrix with the alpha sign convention
    gamma_decoherence  : (C,) decay rate of each coherence
    omega_nonradiative : (C,) rotation frequency of each coherence
    """

    beta: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    gamma_decoherence: np.ndarray = field(default_factory=lambda: np.zeros(0))
    omega_nonradiative: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self) -> None:
        super().__post_init__()
        L = self.num_levels
        beta = np.array(self.beta, dtype=float)
        if beta.size == 0:
            beta = np.zeros((L, 0))
        self.beta = _frozen_array(beta, "beta", 2)
        self.gamma_decoherence = _frozen_array(self.gamma_decoherence, "gamma_decoherence", 1)
        self.omega_nonradiative = _frozen_array(self.omega_nonradiative, "omega_nonradiative", 1)
        if self.beta.shape[0] != L:
            raise ValueError(f"beta must have {L} rows, got {self.beta.shape[0]}.")
        C = self.beta.shape[1]
        for name in ("gamma_decoherence", "omega_nonradiative"):
            if getattr(self, name).shape != (C,):
                raise ValueError(f"{name} must have shape {(C,)}, got {getattr(self, name).shape}.")

    @property
    def num_channels(self) -> int:
        return int(self.beta.shape[1])

    def channel_levels(self, k: int) -> tuple[int, int]:
        """Levels (upper, lower) joined by coherence channel *k*."""
        pair = _single_sign_pair(self.beta[:, k])
        if pair is None:
            raise ConfigurationError(f"invalid beta array for nonradiative transition {k}")
        return pair

    def correspond_nonradiative_transition(self, l1: int, l2: int) -> int | None:
        """First coherence channel whose beta column is non-zero at both levels."""
        for k in range(self.num_channels):
            if self.beta[l1, k] != 0 and self.beta[l2, k] != 0:
                return k
        return None

    def validate(self) -> None:
        super().validate()
        for k in range(self.num_channels):
            lp, lm = self.channel_levels(k)
            t = self.correspond_radiative_transition(lp, lm)
            if t is not None:
                # The commutator would need rho_pp and rho_mm, populations rather than coherences.
                raise ConfigurationError(
                    f"coherence channel {k} joins levels ({lp}, {lm}) which are already "
                    f"coupled by radiative transition {t}"
                )


def material_to_dict(material: MultilevelMaterial) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": "extended" if isinstance(material, ExtendedMultilevelMaterial) else "basic",
    }
    for f in fields(material):
        payload[f.name] = np.asarray(getattr(material, f.name)).tolist()
    return payload


def material_from_dict(payload: dict[str, Any]) -> MultilevelMaterial:
    common = {
        "Gamma": payload["Gamma"],
        "N0": payload["N0"],
        "alpha": payload["alpha"],
        "omega": payload["omega"],
        "gamma": payload["gamma"],
        "sigmat": payload["sigmat"],
    }
    model = str(payload.get("model", "basic")).strip().lower()
    if model == "basic":
        return MultilevelMaterial(**common)
    if model == "extended":
        return ExtendedMultilevelMaterial(
            **common,
            beta=payload.get("beta", []),
            gamma_decoherence=payload.get("gamma_decoherence", []),
            omega_nonradiative=payload.get("omega_nonradiative", []),
        )
    raise ValueError(f"Unsupported material model '{payload.get('model')}'. Supported: basic, extended.")
