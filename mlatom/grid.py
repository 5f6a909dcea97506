from __future__ import annotations

from enum import Enum, IntEnum
from functools import lru_cache
from typing import Mapping, Optional, Sequence

import numpy as np


class Direction(IntEnum):
    X = 0
    Y = 1
    Z = 2
    R = 3
    P = 4


NUM_DIRECTIONS = len(Direction)


class FieldType(Enum):
    E = "E"
    H = "H"
    D = "D"
    B = "B"


class Part(IntEnum):
    REAL = 0
    IMAG = 1

    def conjugate(self) -> "Part":
        return Part.IMAG if self is Part.REAL else Part.REAL


class Component(Enum):
    Ex = (FieldType.E, Direction.X)
    Ey = (FieldType.E, Direction.Y)
    Ez = (FieldType.E, Direction.Z)
    Hx = (FieldType.H, Direction.X)
    Hy = (FieldType.H, Direction.Y)
    Hz = (FieldType.H, Direction.Z)
    Dx = (FieldType.D, Direction.X)
    Dy = (FieldType.D, Direction.Y)
    Dz = (FieldType.D, Direction.Z)
    Bx = (FieldType.B, Direction.X)
    By = (FieldType.B, Direction.Y)
    Bz = (FieldType.B, Direction.Z)

    @property
    def field_type(self) -> FieldType:
        return self.value[0]

    @property
    def direction(self) -> Direction:
        return self.value[1]


# Field samples as handed over by the solver: component -> (real, imag).
# A missing component or a None part means "no samples for this part".
FieldArrays = Mapping[Component, Sequence[Optional[np.ndarray]]]
ConductivityTable = Mapping[tuple[Component, Direction], np.ndarray]

_CARTESIAN = (Direction.X, Direction.Y, Direction.Z)
_DIRECTIONS_BY_DIM: dict[int, tuple[Direction, ...]] = {
    1: (Direction.Z,),
    2: (Direction.X, Direction.Y),
    3: (Direction.X, Direction.Y, Direction.Z),
}


def direction_component(c: Component, d: Direction) -> Component:
    """Component of the same field type as *c* pointing along *d*."""
    return Component((c.field_type, d))


def field_type_component(ft: FieldType, c: Component) -> Component:
    """Component of field type *ft* pointing along the direction of *c*."""
    return Component((ft, c.direction))


def field_sample(fields: FieldArrays | None, c: Component, part: Part) -> np.ndarray | None:
    if not fields:
        return None
    parts = fields.get(c)
    if parts is None or len(parts) <= int(part):
        return None
    return parts[int(part)]


def corner_sum(
    values: np.ndarray,
    idx: np.ndarray,
    o1: int,
    o2: int,
    axis: int = -1,
) -> np.ndarray:
    """Sum *values* over the four points idx, idx+o1, idx+o2, idx+o1+o2.

    Averaging between the centered lattice and a component lattice always
    goes through this 2x2 stencil; a zero offset (absent direction) simply
    repeats the same sample.
    """
    return (
        np.take(values, idx, axis=axis)
        + np.take(values, idx + o1, axis=axis)
        + np.take(values, idx + o2, axis=axis)
        + np.take(values, idx + o1 + o2, axis=axis)
    )


@lru_cache(maxsize=None)
def _owned_indices(extents: tuple[int, ...], ranges: tuple[tuple[int, int], ...]) -> np.ndarray:
    axes = [np.arange(lo, hi, dtype=np.intp) for lo, hi in ranges]
    if any(ax.size == 0 for ax in axes):
        return np.zeros(0, dtype=np.intp)
    mesh = np.meshgrid(*axes, indexing="ij")
    flat = np.ravel_multi_index(tuple(m.ravel() for m in mesh), extents)
    flat.setflags(write=False)
    return flat


class GridVolume:
    """Rectangular Yee lattice with one shared flat index space.

    ``shape`` gives the number of cells along each present direction (Z in
    1D, X/Y in 2D, X/Y/Z in 3D).  Every component array holds
    ``prod(n + 1)`` samples; component ``c`` at index ``k`` along direction
    ``d`` sits at ``k + shift/2`` where ``shift`` is 1 when ``c`` is
    staggered along ``d``.  The centered lattice is staggered along all
    directions.
    """

    def __init__(self, shape: Sequence[int]) -> None:
        dims = tuple(int(n) for n in shape)
        if len(dims) not in _DIRECTIONS_BY_DIM:
            raise ValueError("Grid must be 1D, 2D or 3D.")
        if any(n < 1 for n in dims):
            raise ValueError("Grid must have at least one cell along every direction.")
        self.shape = dims
        self.dim = len(dims)
        self.directions = _DIRECTIONS_BY_DIM[self.dim]
        self.extents = tuple(n + 1 for n in dims)
        self.ntot = int(np.prod(self.extents))
        strides: dict[Direction, int] = {}
        step = 1
        for d, extent in zip(reversed(self.directions), reversed(self.extents)):
            strides[d] = step
            step *= extent
        self._strides = strides

    def __repr__(self) -> str:
        return f"GridVolume(shape={self.shape})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GridVolume) and other.shape == self.shape

    def __hash__(self) -> int:
        return hash(self.shape)

    def stride(self, d: Direction) -> int:
        return self._strides.get(d, 0)

    def cycle_direction(self, d: Direction, shift: int) -> Direction:
        """Cycle *d* through the directions of this grid (identity outside them)."""
        dirs = self.directions
        if d not in dirs:
            return d
        return dirs[(dirs.index(d) + shift) % len(dirs)]

    def is_staggered(self, c: Component | None, d: Direction) -> bool:
        if c is None:
            return True
        if c.field_type in (FieldType.E, FieldType.D):
            return c.direction == d
        return c.direction != d and d in _CARTESIAN

    def owned_indices(self, c: Component | None = None) -> np.ndarray:
        """Flat indices of owned points of component *c* (``None`` = centered).

        Along a staggered direction the owned points are the cells
        ``0..n-1``; along an unstaggered one they are the interior nodes
        ``1..n-1``, so both interpolation stencils stay inside the array.
        """
        ranges = tuple(
            (0, n) if self.is_staggered(c, d) else (1, n)
            for d, n in zip(self.directions, self.shape)
        )
        return _owned_indices(self.extents, ranges)

    def yee2cent_offsets(self, c: Component) -> tuple[int, int]:
        """Offsets averaging component *c* samples onto the centered lattice."""
        offsets = [self.stride(d) for d in self.directions if not self.is_staggered(c, d)]
        if len(offsets) > 2:
            raise ValueError(f"Unexpected Yee staggering for component {c.name}.")
        offsets += [0] * (2 - len(offsets))
        return offsets[0], offsets[1]

    def cent2yee_offsets(self, c: Component) -> tuple[int, int]:
        o1, o2 = self.yee2cent_offsets(c)
        return -o1, -o2


def allocate_fields(
    grid: GridVolume,
    components: Sequence[Component],
    complex_fields: bool = False,
) -> dict[Component, list[np.ndarray | None]]:
    """Zero-filled field sample buffers for *components*."""
    fields: dict[Component, list[np.ndarray | None]] = {}
    for c in components:
        real = np.zeros(grid.ntot, dtype=float)
        imag = np.zeros(grid.ntot, dtype=float) if complex_fields else None
        fields[c] = [real, imag]
    return fields
