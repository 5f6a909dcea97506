from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from .arena import AtomicState
from .grid import Component, Direction, GridVolume, Part, allocate_fields
from .models import MultilevelMaterial
from .susceptibility import MultilevelSusceptibility


def two_level_material(
    Gamma: np.ndarray | None = None,
    N0: tuple[float, float] = (1.0, 0.0),
    omega: float = 1.0,
    gamma: float = 0.1,
    sigmat: float = 1.0,
) -> MultilevelMaterial:
    """Single transition between level 0 (upper) and level 1 (lower)."""
    return MultilevelMaterial(
        Gamma=np.zeros((2, 2)) if Gamma is None else Gamma,
        N0=np.array(N0, dtype=float),
        alpha=np.array([[1.0], [-1.0]]),
        omega=np.array([omega]),
        gamma=np.array([gamma]),
        sigmat=np.array([sigmat]),
    )


def _line_setup(
    material: MultilevelMaterial,
    n_cells: int,
    dt: float,
    coupling: float = 1.0,
):
    grid = GridVolume((n_cells,))
    fields = allocate_fields(grid, [Component.Ex])
    fields_prev = allocate_fields(grid, [Component.Ex])
    sus = MultilevelSusceptibility(
        material,
        {(Component.Ex, Direction.X): np.full(grid.ntot, coupling)},
    )
    state = sus.allocate(fields, grid)
    sus.initialize(fields, dt, grid, state)
    return grid, fields, fields_prev, sus, state


def _run(sus, fields, fields_prev, dt, grid, state: AtomicState, steps: int) -> None:
    for _ in range(steps):
        sus.update(fields, fields_prev, dt, grid, state)


@dataclass
class ValidationReport:
    two_level_stasis: dict[str, Any]
    relaxation: dict[str, Any]
    polarization_decay: dict[str, Any]
    copy_independence: dict[str, Any]

    @property
    def overall_passed(self) -> bool:
        return all(
            bool(section.get("passed", False))
            for section in (
                self.two_level_stasis,
                self.relaxation,
                self.polarization_decay,
                self.copy_independence,
            )
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "two_level_stasis": self.two_level_stasis,
            "relaxation": self.relaxation,
            "polarization_decay": self.polarization_decay,
            "copy_independence": self.copy_independence,
            "overall_passed": self.overall_passed,
        }


def validate_two_level_stasis(
    *,
    n_cells: int = 8,
    dt: float = 0.01,
    steps: int = 20,
    tolerance: float = 1e-14,
) -> dict[str, Any]:
    material = two_level_material()
    grid, fields, fields_prev, sus, state = _line_setup(material, n_cells, dt)
    _run(sus, fields, fields_prev, dt, grid, state, steps)

    max_dn = float(np.max(np.abs(state.N - material.N0[None, :])))
    max_p = float(np.max(np.abs(state.P(Component.Ex, Part.REAL))))
    return {
        "passed": max_dn <= tolerance and max_p <= tolerance,
        "max_population_change": max_dn,
        "max_polarization": max_p,
        "tolerance": tolerance,
    }


def validate_relaxation(
    *,
    n_cells: int = 4,
    dt: float = 0.05,
    steps: int = 40,
    tau: float = 1.0,
    tolerance: float = 1e-12,
) -> dict[str, Any]:
    """Level 0 decays into level 1 at rate 1/tau; compare with the CN factor."""
    Gamma = np.array([[1.0 / tau, 0.0], [-1.0 / tau, 0.0]])
    material = two_level_material(Gamma=Gamma, N0=(1.0, 0.0))
    grid, fields, fields_prev, sus, state = _line_setup(material, n_cells, dt)
    _run(sus, fields, fields_prev, dt, grid, state, steps)

    a = 0.5 * dt / tau
    expected_upper = ((1.0 - a) / (1.0 + a)) ** steps
    idx = grid.owned_indices(None)
    upper = state.N[idx, 0]
    total = state.N[idx].sum(axis=1)
    max_err = float(np.max(np.abs(upper - expected_upper)))
    drift = float(np.max(np.abs(total - 1.0)))
    return {
        "passed": max_err <= tolerance and drift <= tolerance,
        "max_upper_level_error": max_err,
        "max_total_population_drift": drift,
        "expected_upper": expected_upper,
        "tolerance": tolerance,
    }


def validate_polarization_decay(
    *,
    n_cells: int = 4,
    dt: float = 0.01,
    steps: int = 200,
    omega: float = 1.0,
    gamma: float = 0.1,
    margin: float = 1.05,
) -> dict[str, Any]:
    """An undriven oscillator started at rest decays with the scheme's envelope."""
    material = two_level_material(omega=omega, gamma=gamma)
    grid, fields, fields_prev, sus, state = _line_setup(material, n_cells, dt)
    idx = grid.owned_indices(Component.Ex)
    block = state.polarization(Component.Ex, Part.REAL)
    block[0, 0, idx] = 1.0
    block[0, 1, idx] = 1.0
    _run(sus, fields, fields_prev, dt, grid, state, steps)

    a = np.pi * gamma * dt
    envelope = float(np.sqrt((1.0 - a) / (1.0 + a)) ** steps)
    final = float(np.max(np.abs(block[0, 0, idx])))
    return {
        "passed": final <= margin * envelope,
        "final_amplitude": final,
        "envelope": envelope,
    }


def validate_copy_independence(
    *,
    n_cells: int = 6,
    dt: float = 0.01,
    warmup_steps: int = 3,
    steps: int = 5,
    field_amplitude: float = 0.1,
) -> dict[str, Any]:
    material = two_level_material()
    grid, fields, fields_prev, sus, state = _line_setup(material, n_cells, dt)
    fields[Component.Ex][0][:] = field_amplitude
    fields_prev[Component.Ex][0][:] = field_amplitude
    _run(sus, fields, fields_prev, dt, grid, state, warmup_steps)

    snapshot = state.data.copy()
    clone = sus.copy(state)
    _run(sus, fields, fields_prev, dt, grid, clone, steps)

    original_unchanged = bool(np.array_equal(state.data, snapshot))
    clone_advanced = not bool(np.array_equal(clone.data, snapshot))
    return {
        "passed": original_unchanged and clone_advanced,
        "original_unchanged": original_unchanged,
        "clone_advanced": clone_advanced,
    }


def run_fast_validation_suite() -> ValidationReport:
    return ValidationReport(
        two_level_stasis=validate_two_level_stasis(),
        relaxation=validate_relaxation(),
        polarization_decay=validate_polarization_decay(),
        copy_independence=validate_copy_independence(),
    )
