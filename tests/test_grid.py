from __future__ import annotations

import numpy as np
import pytest

from mlatom.grid import (
    Component,
    Direction,
    FieldType,
    GridVolume,
    Part,
    allocate_fields,
    corner_sum,
    direction_component,
    field_sample,
    field_type_component,
)


def test_line_grid_layout() -> None:
    grid = GridVolume((3,))
    assert grid.ntot == 4
    assert grid.stride(Direction.Z) == 1
    assert grid.stride(Direction.X) == 0
    assert grid.yee2cent_offsets(Component.Ex) == (1, 0)
    assert grid.cent2yee_offsets(Component.Ex) == (-1, 0)
    assert grid.yee2cent_offsets(Component.Hy) == (0, 0)
    assert grid.owned_indices(Component.Ex).tolist() == [1, 2]
    assert grid.owned_indices(None).tolist() == [0, 1, 2]
    assert grid.owned_indices(Component.Hy).tolist() == [0, 1, 2]


def test_plane_grid_offsets_follow_yee_staggering() -> None:
    grid = GridVolume((2, 3))
    assert grid.extents == (3, 4)
    assert grid.ntot == 12
    assert grid.stride(Direction.Y) == 1
    assert grid.stride(Direction.X) == 4
    assert grid.yee2cent_offsets(Component.Ex) == (1, 0)
    assert grid.yee2cent_offsets(Component.Ey) == (4, 0)
    assert grid.yee2cent_offsets(Component.Ez) == (4, 1)
    assert grid.yee2cent_offsets(Component.Hz) == (0, 0)
    assert grid.yee2cent_offsets(Component.Hx) == (4, 0)
    assert grid.owned_indices(Component.Ez).tolist() == [5, 6]


def test_volume_grid_offsets() -> None:
    grid = GridVolume((2, 2, 2))
    assert grid.ntot == 27
    assert grid.yee2cent_offsets(Component.Ex) == (3, 1)
    assert grid.yee2cent_offsets(Component.Hx) == (9, 0)
    assert grid.cent2yee_offsets(Component.Dz) == (-9, -3)
    assert grid.owned_indices(None).size == 8


def test_owned_stencils_stay_inside_arrays() -> None:
    grid = GridVolume((4, 5, 3))
    for c in Component:
        idx = grid.owned_indices(c)
        o1, o2 = grid.cent2yee_offsets(c)
        assert np.all(idx + o1 + o2 >= 0)
        o1, o2 = grid.yee2cent_offsets(c)
        cent = grid.owned_indices(None)
        assert np.all(cent + o1 + o2 < grid.ntot)


def test_cycle_direction_stays_within_grid_directions() -> None:
    volume = GridVolume((2, 2, 2))
    assert volume.cycle_direction(Direction.X, 1) == Direction.Y
    assert volume.cycle_direction(Direction.X, 2) == Direction.Z
    assert volume.cycle_direction(Direction.Z, 1) == Direction.X

    plane = GridVolume((2, 2))
    assert plane.cycle_direction(Direction.X, 1) == Direction.Y
    assert plane.cycle_direction(Direction.X, 2) == Direction.X

    line = GridVolume((2,))
    assert line.cycle_direction(Direction.Z, 1) == Direction.Z
    assert line.cycle_direction(Direction.X, 1) == Direction.X


@pytest.mark.parametrize("shape", [(), (1, 1, 1, 1), (0,), (3, -1)])
def test_grid_rejects_bad_shapes(shape) -> None:
    with pytest.raises(ValueError):
        GridVolume(shape)


def test_corner_sum_with_zero_offsets_repeats_sample() -> None:
    values = np.array([1.0, 2.0, 4.0, 8.0])
    idx = np.array([0, 2])
    assert corner_sum(values, idx, 1, 0).tolist() == [6.0, 24.0]
    assert corner_sum(values, idx, 0, 0).tolist() == [4.0, 16.0]


def test_component_helpers() -> None:
    assert direction_component(Component.Ex, Direction.Z) is Component.Ez
    assert field_type_component(FieldType.D, Component.Ey) is Component.Dy
    assert Part.REAL.conjugate() is Part.IMAG


def test_allocate_fields_and_sampling() -> None:
    grid = GridVolume((3,))
    fields = allocate_fields(grid, [Component.Ex])
    assert fields[Component.Ex][0].shape == (4,)
    assert field_sample(fields, Component.Ex, Part.IMAG) is None
    assert field_sample(fields, Component.Ey, Part.REAL) is None
    assert field_sample(None, Component.Ex, Part.REAL) is None

    complex_fields = allocate_fields(grid, [Component.Ex], complex_fields=True)
    assert field_sample(complex_fields, Component.Ex, Part.IMAG) is not None
