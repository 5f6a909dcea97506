from __future__ import annotations

import math
import warnings
from functools import cached_property

import numpy as np

from .arena import AtomicState, DrivenKey
from .coherence import (
    ChannelPlan,
    apply_coherence_increments,
    build_coupling_plan,
    coherence_increments,
)
from .coupling import subtract_polarization
from .grid import Component, Direction, FieldArrays, FieldType, GridVolume, Part
from .models import ConfigurationError, ExtendedMultilevelMaterial, MultilevelMaterial
from .polarization import check_isotropic_coupling, needs_polarization, update_polarizations
from .population import update_populations


class MultilevelSusceptibility:
    """Multilevel atomic medium coupled to a time-domain field solver.

    The solver owns the grid and the fields; this object owns the material
    description and the conductivity table, and advances an
    :class:`AtomicState` once per time step.
    """

    def __init__(
        self,
        material: MultilevelMaterial,
        conductivity: dict[tuple[Component, Direction], np.ndarray] | None = None,
    ) -> None:
        self.material = material
        self.conductivity: dict[tuple[Component, Direction], np.ndarray] = {}
        for (c, d), values in (conductivity or {}).items():
            self.set_conductivity(c, d, values)

    def set_conductivity(self, c: Component, d: Direction, values: np.ndarray | None) -> None:
        if values is None:
            self.conductivity.pop((c, d), None)
            return
        arr = np.asarray(values, dtype=float)
        if arr.ndim != 1:
            raise ValueError(f"Conductivity for {c.name}/{d.name} must be a 1D array.")
        self.conductivity[(c, d)] = arr

    def needs_polarization(self, c: Component, part: Part, fields: FieldArrays) -> bool:
        return needs_polarization(c, part, fields, self.conductivity)

    def _driven_keys(self, fields: FieldArrays) -> list[DrivenKey]:
        return [
            (c, part)
            for c in Component
            for part in Part
            if self.needs_polarization(c, part, fields)
        ]

    # ---- lifecycle --------------------------------------------------------

    def allocate(self, fields: FieldArrays, grid: GridVolume) -> AtomicState:
        return AtomicState(
            self.material.num_levels,
            self.material.num_transitions,
            grid.ntot,
            self._driven_keys(fields),
            num_channels=self.material.num_channels,
        )

    def _check_conductivity(self, grid: GridVolume) -> None:
        for (c, d), values in self.conductivity.items():
            if values.size != grid.ntot:
                raise ConfigurationError(
                    f"Conductivity for {c.name}/{d.name} has {values.size} points; grid has {grid.ntot}."
                )

    def _validate_model(self) -> None:
        self.material.validate()

    def _check_configuration(self, fields: FieldArrays, grid: GridVolume, state: AtomicState) -> None:
        if state.ntot != grid.ntot:
            raise ConfigurationError(
                f"State was allocated for {state.ntot} points; grid has {grid.ntot}."
            )
        if set(self._driven_keys(fields)) != set(state.driven):
            raise ConfigurationError("Driven field components differ from those used at allocation.")
        self._check_conductivity(grid)
        check_isotropic_coupling(state, fields, self.conductivity, grid)

    def initialize(
        self,
        fields: FieldArrays,
        dt: float,
        grid: GridVolume,
        state: AtomicState,
    ) -> None:
        """Reset *state* to equilibrium for time step *dt*.

        Every configuration check runs here, before the state is touched,
        so a later :meth:`update` cannot stop half way through a step.
        """
        if not dt > 0:
            raise ValueError("dt must be positive.")
        self._check_configuration(fields, grid, state)
        self._validate_model()
        state.initialize(self.material.Gamma, self.material.N0, dt)

    def copy(self, state: AtomicState | None) -> AtomicState | None:
        return None if state is None else state.copy()

    def destroy(self, state: AtomicState | None) -> None:
        if state is not None:
            state.destroy()

    # ---- time stepping ----------------------------------------------------

    def _prepare_step(
        self,
        fields: FieldArrays,
        dt: float,
        grid: GridVolume,
        state: AtomicState,
    ) -> None:
        if not state.initialized:
            raise RuntimeError("update() called on a state that was not initialized.")
        # The conductivity table may have changed since initialize().
        self._check_configuration(fields, grid, state)
        if state.dt is None or not math.isclose(dt, state.dt, rel_tol=1e-12, abs_tol=0.0):
            warnings.warn(
                f"Time step changed from {state.dt} to {dt}; recomputing the relaxation inverse.",
                RuntimeWarning,
                stacklevel=3,
            )
            state.refresh_relaxation(self.material.Gamma, dt)

    def update(
        self,
        fields: FieldArrays,
        fields_prev: FieldArrays,
        dt: float,
        grid: GridVolume,
        state: AtomicState,
    ) -> None:
        """Advance populations, then polarizations, by one time step."""
        self._prepare_step(fields, dt, grid, state)
        update_populations(self.material, state, fields, fields_prev, dt, grid)
        update_polarizations(self.material, state, fields, self.conductivity, dt, grid)

    def subtract_polarization(
        self,
        ft: FieldType,
        f_minus_p: FieldArrays,
        state: AtomicState,
    ) -> None:
        subtract_polarization(ft, f_minus_p, state)

    # ---- accessors --------------------------------------------------------

    def driven_component_count(self, c: Component, state: AtomicState) -> int:
        return state.driven_count(c)

    def driven_component_view(
        self,
        index: int,
        c: Component,
        part: Part,
        offset: int,
        state: AtomicState | None,
    ) -> np.ndarray | None:
        if state is None:
            return None
        return state.driven_view(index, c, part, offset)


class ExtendedMultilevelSusceptibility(MultilevelSusceptibility):
    """Multilevel medium that also tracks non-radiative coherences."""

    material: ExtendedMultilevelMaterial

    def __init__(
        self,
        material: ExtendedMultilevelMaterial,
        conductivity: dict[tuple[Component, Direction], np.ndarray] | None = None,
    ) -> None:
        if not isinstance(material, ExtendedMultilevelMaterial):
            raise TypeError("ExtendedMultilevelSusceptibility requires an ExtendedMultilevelMaterial.")
        super().__init__(material, conductivity)

    @cached_property
    def coupling_plan(self) -> tuple[ChannelPlan, ...]:
        return build_coupling_plan(self.material)

    def _validate_model(self) -> None:
        super()._validate_model()
        self.coupling_plan

    def update(
        self,
        fields: FieldArrays,
        fields_prev: FieldArrays,
        dt: float,
        grid: GridVolume,
        state: AtomicState,
    ) -> None:
        """Advance populations, coherences and polarizations by one time step.

        Coherence increments are computed from the polarizations of the
        previous step before those are advanced.
        """
        self._prepare_step(fields, dt, grid, state)
        update_populations(self.material, state, fields, fields_prev, dt, grid)
        drho = coherence_increments(
            self.material, self.coupling_plan, state, fields, self.conductivity, dt, grid
        )
        update_polarizations(self.material, state, fields, self.conductivity, dt, grid)
        apply_coherence_increments(state, drho, grid)
