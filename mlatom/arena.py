from __future__ import annotations

from typing import Iterable

import numpy as np

from .grid import Component, Part
from .linalg import relaxation_inverse


MAX_DRIVEN_DIRECTIONS = 3

DrivenKey = tuple[Component, Part]

_COMPONENT_ORDER = {c: i for i, c in enumerate(Component)}


class PolarizationLimitError(RuntimeError):
    pass


def _ordered_driven(driven: Iterable[DrivenKey]) -> tuple[DrivenKey, ...]:
    unique = {(Component(c), Part(part)) for c, part in driven}
    return tuple(sorted(unique, key=lambda key: (_COMPONENT_ORDER[key[0]], int(key[1]))))


class AtomicState:
    """Per-instance arena holding every array the atomic update works on.

    All arrays are views into one float64 buffer laid out in fixed blocks:

    1. ``gamma_inv``  (L, L)                 inv(I + Gamma*dt/2)
    2. polarization   (npol, T, 2, ntot)     [..., 0, :] current, [..., 1, :] previous
    3. ``Ntmp``/``N`` (ntot, L) each         scratch, then centered populations
    4. coherence      (2, C, 2, ntot)        part, channel, current/previous

    Views are only bound by :meth:`initialize` (or when copying an
    initialized state); touching them earlier raises ``RuntimeError``.
    """

    def __init__(
        self,
        num_levels: int,
        num_transitions: int,
        ntot: int,
        driven: Iterable[DrivenKey],
        num_channels: int = 0,
    ) -> None:
        if num_levels < 1 or num_transitions < 1:
            raise ValueError("At least one level and one transition are required.")
        if ntot < 1:
            raise ValueError("Grid must contain at least one point.")
        self.num_levels = int(num_levels)
        self.num_transitions = int(num_transitions)
        self.num_channels = int(num_channels)
        self.ntot = int(ntot)
        self.driven = _ordered_driven(driven)
        directions = {c for c, part in self.driven if part is Part.REAL}
        if len(directions) > MAX_DRIVEN_DIRECTIONS:
            raise PolarizationLimitError("too many polarization components")

        L, T, C = self.num_levels, self.num_transitions, self.num_channels
        self._g_size = L * L
        self._p_size = len(self.driven) * T * 2 * self.ntot
        self._n_size = 2 * self.ntot * L
        self._v_size = 2 * C * 2 * self.ntot
        total = self._g_size + self._p_size + self._n_size + self._v_size
        self._data: np.ndarray | None = np.zeros(total, dtype=float)
        self.sz_data = int(self._data.nbytes)
        self.dt: float | None = None
        self._bound = False
        self._pol: dict[DrivenKey, np.ndarray] = {}

    def __repr__(self) -> str:
        return (
            f"AtomicState(L={self.num_levels}, T={self.num_transitions}, "
            f"C={self.num_channels}, ntot={self.ntot}, driven={len(self.driven)})"
        )

    # ---- layout -----------------------------------------------------------

    def _bind_views(self) -> None:
        data = self._require_data()
        L, T, C, ntot = self.num_levels, self.num_transitions, self.num_channels, self.ntot
        g_end = self._g_size
        p_end = g_end + self._p_size
        n_end = p_end + self._n_size

        self._gamma_inv = data[:g_end].reshape(L, L)
        pol_block = data[g_end:p_end].reshape(len(self.driven), T, 2, ntot)
        self._pol = {key: pol_block[k] for k, key in enumerate(self.driven)}
        populations = data[p_end:n_end].reshape(2, ntot, L)
        self._ntmp = populations[0]
        self._n = populations[1]
        self._coherence = data[n_end:].reshape(2, C, 2, ntot)
        self._bound = True

    def _require_data(self) -> np.ndarray:
        if self._data is None:
            raise RuntimeError("AtomicState has been destroyed.")
        return self._data

    def _require_bound(self) -> None:
        self._require_data()
        if not self._bound:
            raise RuntimeError("AtomicState accessed before initialize().")

    @property
    def initialized(self) -> bool:
        return self._data is not None and self._bound

    @property
    def data(self) -> np.ndarray:
        """The backing buffer itself."""
        return self._require_data()

    @property
    def gamma_inv(self) -> np.ndarray:
        self._require_bound()
        return self._gamma_inv

    @property
    def N(self) -> np.ndarray:
        self._require_bound()
        return self._n

    @property
    def Ntmp(self) -> np.ndarray:
        self._require_bound()
        return self._ntmp

    @property
    def coherence(self) -> np.ndarray:
        self._require_bound()
        return self._coherence

    @property
    def V(self) -> np.ndarray:
        """Current coherences, shape (2, C, ntot)."""
        return self.coherence[:, :, 0, :]

    @property
    def V_prev(self) -> np.ndarray:
        return self.coherence[:, :, 1, :]

    def polarization(self, c: Component, part: Part) -> np.ndarray | None:
        """(T, 2, ntot) block for ``(c, part)``, or None if it is not driven."""
        self._require_bound()
        return self._pol.get((c, Part(part)))

    def P(self, c: Component, part: Part) -> np.ndarray | None:
        block = self.polarization(c, part)
        return None if block is None else block[:, 0, :]

    def P_prev(self, c: Component, part: Part) -> np.ndarray | None:
        block = self.polarization(c, part)
        return None if block is None else block[:, 1, :]

    def is_driven(self, c: Component, part: Part) -> bool:
        return (c, Part(part)) in self.driven

    def driven_components(self) -> list[Component]:
        """Components whose real part carries polarization, in component order."""
        return [c for c, part in self.driven if part is Part.REAL]

    # ---- lifecycle --------------------------------------------------------

    def initialize(self, Gamma: np.ndarray, N0: np.ndarray, dt: float) -> None:
        """Reset to equilibrium: zero everything, build gamma_inv, broadcast N0."""
        data = self._require_data()
        self._bound = False
        self.dt = None
        data.fill(0.0)
        self._bind_views()
        try:
            relaxation_inverse(Gamma, dt, out=self._gamma_inv)
        except Exception:
            self._bound = False
            raise
        self._n[:, :] = N0[None, :]
        self.dt = float(dt)

    def refresh_relaxation(self, Gamma: np.ndarray, dt: float) -> None:
        self._require_bound()
        relaxation_inverse(Gamma, dt, out=self._gamma_inv)
        self.dt = float(dt)

    def restore(self, data: np.ndarray, dt: float) -> None:
        """Load a previously saved buffer into this (same-layout) arena."""
        buf = self._require_data()
        values = np.asarray(data, dtype=float)
        if values.shape != buf.shape:
            raise ValueError(f"Snapshot holds {values.size} values; arena needs {buf.size}.")
        buf[:] = values
        self._bind_views()
        self.dt = float(dt)

    def copy(self) -> "AtomicState":
        """Deep copy: duplicate the buffer and rebind views onto the duplicate."""
        data = self._require_data()
        clone = AtomicState(
            self.num_levels,
            self.num_transitions,
            self.ntot,
            self.driven,
            num_channels=self.num_channels,
        )
        clone._data = data.copy()
        clone.dt = self.dt
        if self._bound:
            clone._bind_views()
        return clone

    def destroy(self) -> None:
        self._data = None
        self._bound = False
        self._pol = {}
        self.dt = None

    # ---- accessors for other subsystems -----------------------------------

    def driven_count(self, c: Component) -> int:
        return self.num_transitions if self.is_driven(c, Part.REAL) else 0

    def driven_view(self, index: int, c: Component, part: Part, offset: int = 0) -> np.ndarray | None:
        """Current polarization of transition *index* for ``(c, part)`` from *offset*."""
        if self._data is None or not self._bound:
            return None
        block = self._pol.get((c, Part(part)))
        if block is None or index < 0 or index >= self.num_transitions:
            return None
        return block[index, 0, offset:]
