from __future__ import annotations

import numpy as np

from .arena import AtomicState
from .grid import FieldArrays, GridVolume, Part, corner_sum, field_sample
from .models import MultilevelMaterial


def driving_terms(
    state: AtomicState,
    fields: FieldArrays,
    fields_prev: FieldArrays,
    grid: GridVolume,
    idx: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Field-polarization products interpolated onto centered points *idx*.

    Returns ``(EdP32, EPave64)``, each of shape (len(idx), T):

      EdP32   = sum_c E8_c * (P_c - P_prev_c) summed over 4 points, / 32
      EPave64 = sum_c E8_c * (P_c + P_prev_c) summed over 4 points, / 64

    where E8_c is the sum of current and previous field over the same four
    points.  Real and imaginary parts contribute independently.
    """
    T = state.num_transitions
    EdP = np.zeros((T, idx.size), dtype=float)
    EPave = np.zeros((T, idx.size), dtype=float)

    for c in state.driven_components():
        o1, o2 = grid.yee2cent_offsets(c)
        for part in Part:
            pol = state.polarization(c, part)
            w = field_sample(fields, c, part)
            if pol is None or w is None:
                continue
            wp = field_sample(fields_prev, c, part)
            E8 = corner_sum(w, idx, o1, o2)
            if wp is not None:
                E8 = E8 + corner_sum(wp, idx, o1, o2)
            p_sum = corner_sum(pol[:, 0, :], idx, o1, o2)
            pp_sum = corner_sum(pol[:, 1, :], idx, o1, o2)
            EdP += (p_sum - pp_sum) * E8
            EPave += (p_sum + pp_sum) * E8

    return (EdP * 0.03125).T, (EPave * 0.015625).T


def update_populations(
    material: MultilevelMaterial,
    state: AtomicState,
    fields: FieldArrays,
    fields_prev: FieldArrays,
    dt: float,
    grid: GridVolume,
) -> None:
    """Advance centered populations N by one Crank-Nicolson step.

    Ntmp = (I - Gamma dt/2) N + alpha (EdP32 + gamma pi dt EPave64)
    N    = inv(I + Gamma dt/2) Ntmp

    Modifies ``state.N`` in-place on owned centered points, using
    ``state.Ntmp`` as the work area.
    """
    idx = grid.owned_indices(None)
    if idx.size == 0:
        return
    L = material.num_levels
    explicit = np.eye(L) - material.Gamma * (0.5 * dt)

    N = state.N
    Ntmp = state.Ntmp
    Ntmp[idx] = N[idx] @ explicit.T

    EdP32, EPave64 = driving_terms(state, fields, fields_prev, grid, idx)
    gperpdt = material.gamma * np.pi * dt
    drive = EdP32 + gperpdt[None, :] * EPave64      # (n_owned, T)
    Ntmp[idx] += drive @ material.alpha.T

    N[idx] = Ntmp[idx] @ state.gamma_inv.T
