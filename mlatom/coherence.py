from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .arena import AtomicState
from .grid import ConductivityTable, FieldArrays, GridVolume, Part, corner_sum, field_sample
from .models import ConfigurationError, ExtendedMultilevelMaterial


@dataclass(frozen=True)
class CoherenceTerm:
    """One interaction term of the commutator [H, rho] for a coherence channel.

    transition : radiative transition whose dipole coupling drives the term
    sign       : +1 for H_pk rho_km, -1 for rho_pk H_km
    radiative  : the partner rho element is a polarization (True) or a coherence
    index      : transition or channel index of the partner element
    """

    transition: int
    sign: float
    radiative: bool
    index: int


@dataclass(frozen=True)
class ChannelPlan:
    channel: int
    upper: int
    lower: int
    terms: tuple[CoherenceTerm, ...]


def _rotation_sign(part: Part) -> float:
    # Multiplying by -i sends Im -> Re with +1 and Re -> Im with -1.
    return -1.0 if part is Part.REAL else 1.0


def _partner_term(
    material: ExtendedMultilevelMaterial,
    transition: int,
    sign: float,
    l1: int,
    l2: int,
) -> CoherenceTerm:
    if l1 == l2:
        raise ConfigurationError(
            f"coherence coupling through transition {transition} reaches the population of level {l1}"
        )
    channel = material.correspond_nonradiative_transition(l1, l2)
    if channel is not None:
        return CoherenceTerm(transition, sign, False, channel)
    radiative = material.correspond_radiative_transition(l1, l2)
    if radiative is not None:
        return CoherenceTerm(transition, sign, True, radiative)
    raise ConfigurationError(
        f"failed to correspond transition index to level indexes ({l1}, {l2})"
    )


def build_coupling_plan(material: ExtendedMultilevelMaterial) -> tuple[ChannelPlan, ...]:
    """Resolve every commutator term of every coherence channel up front.

    For channel (p, m) and each intermediate level k, a transition joining
    p and k contributes H_pk rho_km, and one joining k and m contributes
    -rho_pk H_km.  The partner element is looked up among the coherence
    channels first, then among the radiative transitions; a pair found in
    neither raises ``ConfigurationError``.
    """
    alpha = material.alpha
    plans: list[ChannelPlan] = []
    for k in range(material.num_channels):
        lp, lm = material.channel_levels(k)
        terms: list[CoherenceTerm] = []
        for lk in range(material.num_levels):
            for t in range(material.num_transitions):
                coupled_p = alpha[lp, t] != 0
                coupled_k = alpha[lk, t] != 0
                coupled_m = alpha[lm, t] != 0
                if lk != lp and coupled_p and coupled_k:
                    terms.append(_partner_term(material, t, 1.0, lk, lm))
                if lk != lm and coupled_k and coupled_m:
                    terms.append(_partner_term(material, t, -1.0, lp, lk))
        plans.append(ChannelPlan(channel=k, upper=lp, lower=lm, terms=tuple(terms)))
    return tuple(plans)


def coherence_increments(
    material: ExtendedMultilevelMaterial,
    plan: tuple[ChannelPlan, ...],
    state: AtomicState,
    fields: FieldArrays,
    sigma: ConductivityTable,
    dt: float,
    grid: GridVolume,
) -> np.ndarray:
    """Liouville increments for all channels, shape (C, 2, n_owned_centered).

    Only reads state; nothing is written, so every channel sees the values
    left by the previous step.
    """
    idx = grid.owned_indices(None)
    C = material.num_channels
    drho = np.zeros((C, 2, idx.size), dtype=float)
    if idx.size == 0 or C == 0:
        return drho

    dt2 = 0.5 * dt
    V = state.V
    V_prev = state.V_prev

    drives = []
    for c, part in state.driven:
        w = field_sample(fields, c, part)
        s = sigma.get((c, c.direction))
        if w is None or s is None:
            continue
        o1, o2 = grid.yee2cent_offsets(c)
        sw = 0.25 * corner_sum(s * w, idx, o1, o2)
        drives.append((c, part, o1, o2, sw))

    for channel in plan:
        k = channel.channel
        rate = float(material.gamma_decoherence[k])
        rotation = float(material.omega_nonradiative[k])
        for part in Part:
            v = V[part, k, idx]
            drho[k, part] -= rate * dt * v
            drho[k, part.conjugate()] += _rotation_sign(part) * rotation * dt * v

        for c, part, o1, o2, sw in drives:
            target = part.conjugate()
            for term in channel.terms:
                st = float(material.sigmat[term.transition, int(c.direction)])
                if term.radiative:
                    block = state.polarization(c, part)
                    partner = 0.25 * corner_sum(block[term.index, 0] + block[term.index, 1], idx, o1, o2)
                else:
                    partner = V[part, term.index, idx] + V_prev[part, term.index, idx]
                # The dipole coupling enters H with a minus sign, opposite to the detuning.
                drho[k, target] -= term.sign * _rotation_sign(part) * st * sw * partner * dt2

    return drho


def apply_coherence_increments(state: AtomicState, drho: np.ndarray, grid: GridVolume) -> None:
    """Shift current coherences into previous, then add *drho*."""
    idx = grid.owned_indices(None)
    if idx.size == 0 or state.num_channels == 0:
        return
    V = state.V
    V_prev = state.V_prev
    V_prev[:, :, idx] = V[:, :, idx]
    V[:, :, idx] += np.transpose(drho, (1, 0, 2))
