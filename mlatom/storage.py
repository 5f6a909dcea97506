from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import numpy as np

from .arena import AtomicState
from .grid import Component, GridVolume, Part
from .models import MultilevelMaterial, material_from_dict, material_to_dict

MATERIAL_FORMAT_VERSION = 1
_FINGERPRINT_LABELS = [
    "num_levels",
    "num_transitions",
    "num_channels",
    "ntot",
    "grid_dim",
    "grid_n0",
    "grid_n1",
    "grid_n2",
    "driven_components",
    "material",
]


def _write_json(path: Path, payload: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def _read_json(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _hash_to_float(text: str) -> float:
    return float(int(hashlib.sha256(text.encode()).hexdigest()[:16], 16) % (2**53))


def save_material(material: MultilevelMaterial, path: str | Path) -> Path:
    payload = material_to_dict(material)
    payload["format_version"] = MATERIAL_FORMAT_VERSION
    return _write_json(Path(path), payload)


def load_material(path: str | Path) -> MultilevelMaterial:
    payload = _read_json(Path(path))
    version = int(payload.get("format_version", MATERIAL_FORMAT_VERSION))
    if version > MATERIAL_FORMAT_VERSION:
        raise ValueError(
            f"Material file format {version} is newer than supported version {MATERIAL_FORMAT_VERSION}."
        )
    return material_from_dict(payload)


def _driven_labels(state: AtomicState) -> list[str]:
    return [f"{c.name}:{int(part)}" for c, part in state.driven]


def _parse_driven(labels: np.ndarray) -> list[tuple[Component, Part]]:
    driven = []
    for label in labels.tolist():
        name, part = str(label).split(":")
        driven.append((Component[name], Part(int(part))))
    return driven


def make_fingerprint(
    state: AtomicState,
    material: MultilevelMaterial,
    grid: GridVolume,
) -> np.ndarray:
    """Numeric fingerprint of everything the arena layout depends on."""
    shape = list(grid.shape) + [0] * (3 - grid.dim)
    material_key = json.dumps(material_to_dict(material), sort_keys=True)
    values = [
        float(state.num_levels),
        float(state.num_transitions),
        float(state.num_channels),
        float(state.ntot),
        float(grid.dim),
        *(float(n) for n in shape),
        _hash_to_float(",".join(_driven_labels(state))),
        _hash_to_float(material_key),
    ]
    return np.array(values, dtype=float)


def validate_snapshot(
    stored: np.ndarray | None,
    current: np.ndarray,
) -> str | None:
    """Return None if the fingerprints agree, else a description of the mismatch."""
    if stored is None:
        return "Snapshot has no fingerprint."
    if stored.shape != current.shape:
        return f"Fingerprint size mismatch: stored {stored.shape} vs current {current.shape}."
    if np.array_equal(stored, current):
        return None
    diffs = []
    for i, (s, c) in enumerate(zip(stored, current)):
        if s != c:
            label = _FINGERPRINT_LABELS[i] if i < len(_FINGERPRINT_LABELS) else f"param[{i}]"
            diffs.append(f"{label}: stored={s}, current={c}")
    return "Snapshot mismatch: " + "; ".join(diffs)


def save_state(
    path: str | Path,
    state: AtomicState,
    material: MultilevelMaterial,
    grid: GridVolume,
) -> Path:
    """Write an initialized arena to an ``.npz`` checkpoint."""
    if not state.initialized:
        raise RuntimeError("Only an initialized state can be saved.")
    npz_path = Path(path)
    npz_path.parent.mkdir(parents=True, exist_ok=True)
    with npz_path.open("wb") as fh:
        np.savez(
            fh,
            data=state.data,
            dt=np.array(state.dt, dtype=float),
            driven=np.array(_driven_labels(state), dtype=str),
            fingerprint=make_fingerprint(state, material, grid),
        )
    return npz_path


def load_state(
    path: str | Path,
    material: MultilevelMaterial,
    grid: GridVolume,
) -> AtomicState:
    """Rebuild an :class:`AtomicState` from a checkpoint made for *material* on *grid*."""
    with np.load(str(path), allow_pickle=False) as data:
        arrays = dict(data)
    driven = _parse_driven(arrays["driven"]) if arrays["driven"].size else []
    state = AtomicState(
        material.num_levels,
        material.num_transitions,
        grid.ntot,
        driven,
        num_channels=material.num_channels,
    )
    mismatch = validate_snapshot(arrays.get("fingerprint"), make_fingerprint(state, material, grid))
    if mismatch is not None:
        raise ValueError(mismatch)
    state.restore(arrays["data"], float(arrays["dt"]))
    return state
