from __future__ import annotations

import numpy as np

from .arena import AtomicState
from .grid import FieldArrays, FieldType, field_sample, field_type_component

# Field type whose buffers receive "field minus polarization" for each
# polarization field type.
_SUBTRACTED_FROM = {
    FieldType.E: FieldType.D,
    FieldType.H: FieldType.B,
}


def subtract_polarization(
    ft: FieldType,
    f_minus_p: FieldArrays,
    state: AtomicState,
) -> None:
    """Subtract every transition's current polarization from *f_minus_p*.

    *ft* selects which driven components take part (E or H); their
    polarization is removed, in place, from the matching D (or B) buffer.
    Buffers missing from *f_minus_p* are skipped.
    """
    if ft not in _SUBTRACTED_FROM:
        raise ValueError(f"Polarization is only subtracted for E or H fields, got {ft.value}.")
    target_type = _SUBTRACTED_FROM[ft]
    for t in range(state.num_transitions):
        for c, part in state.driven:
            if c.field_type is not ft:
                continue
            fmp = field_sample(f_minus_p, field_type_component(target_type, c), part)
            if fmp is None:
                continue
            p = state.polarization(c, part)[t, 0]
            np.subtract(fmp, p, out=fmp)
