from __future__ import annotations

import numpy as np

from .arena import AtomicState
from .grid import (
    Component,
    ConductivityTable,
    FieldArrays,
    GridVolume,
    Part,
    direction_component,
    field_sample,
)
from .models import ConfigurationError, MultilevelMaterial


def _has_coupling(sigma: np.ndarray | None) -> bool:
    return sigma is not None and bool(np.any(sigma != 0))


def check_isotropic_coupling(
    state: AtomicState,
    fields: FieldArrays,
    sigma: ConductivityTable,
    grid: GridVolume,
) -> None:
    """Reject off-diagonal (cross-direction) gain coupling for driven components."""
    for c, part in state.driven:
        d = c.direction
        for shift in (1, 2):
            d1 = grid.cycle_direction(d, shift)
            if d1 == d:
                continue
            c1 = direction_component(c, d1)
            if field_sample(fields, c1, part) is None:
                continue
            if _has_coupling(sigma.get((c, d1))):
                raise ConfigurationError(
                    f"nondiagonal saturable gain is not yet supported ({c.name} coupled along {d1.name})"
                )


def oscillator_coefficients(omega: float, gamma: float, dt: float) -> tuple[float, float, float]:
    """Leapfrog coefficients of the damped oscillator for one transition.

    Returns ``(gamma1inv, gamma1, omega0dtsqr_corrected)`` for

      p_new = gamma1inv * (p (2 - omega0dtsqr_corrected) - gamma1 p_prev - dt^2 F)

    gamma*2*pi plays the role of 2*gamma_perp in the usual SALT notation.
    """
    omega2pi = 2.0 * np.pi * omega
    g2pi = 2.0 * np.pi * gamma
    gperp = np.pi * gamma
    dt2 = 0.5 * dt
    omega0dtsqr_corrected = omega2pi * omega2pi * dt * dt + gperp * gperp * dt * dt
    gamma1inv = 1.0 / (1.0 + g2pi * dt2)
    gamma1 = 1.0 - g2pi * dt2
    return gamma1inv, gamma1, omega0dtsqr_corrected


def population_inversion(
    N: np.ndarray,
    idx: np.ndarray,
    o1: int,
    o2: int,
    lp: int,
    lm: int,
) -> np.ndarray:
    """N[lp] - N[lm] averaged from the centered lattice onto points *idx*."""
    rows = (idx, idx + o1, idx + o2, idx + o1 + o2)
    upper = sum(N[r, lp] for r in rows)
    lower = sum(N[r, lm] for r in rows)
    return 0.25 * (upper - lower)


def update_polarizations(
    material: MultilevelMaterial,
    state: AtomicState,
    fields: FieldArrays,
    sigma: ConductivityTable,
    dt: float,
    grid: GridVolume,
) -> None:
    """Advance every driven polarization as a damped harmonic oscillator.

    Reads the populations already advanced for this step.  After the call,
    the current slot holds the new value and the previous slot the value it
    replaced.
    """
    dtsqr = dt * dt
    N = state.N
    for t in range(material.num_transitions):
        gamma1inv, gamma1, omega0dtsqr = oscillator_coefficients(
            float(material.omega[t]), float(material.gamma[t]), dt
        )
        lp, lm = material.transition_levels(t)

        for c, part in state.driven:
            w = field_sample(fields, c, part)
            s = sigma.get((c, c.direction))
            if w is None or s is None:
                continue
            st = float(material.sigmat[t, int(c.direction)])
            block = state.polarization(c, part)
            p = block[t, 0]
            pp = block[t, 1]

            idx = grid.owned_indices(c)
            if idx.size == 0:
                continue
            o1, o2 = grid.cent2yee_offsets(c)
            dNi = population_inversion(N, idx, o1, o2, lp, lm)

            pcur = p[idx].copy()
            p[idx] = gamma1inv * (
                pcur * (2.0 - omega0dtsqr) - gamma1 * pp[idx] - dtsqr * (st * s[idx] * w[idx]) * dNi
            )
            pp[idx] = pcur


def needs_polarization(
    c: Component,
    part: Part,
    fields: FieldArrays,
    sigma: ConductivityTable,
) -> bool:
    return field_sample(fields, c, part) is not None and sigma.get((c, c.direction)) is not None
