"""Multilevel atomic gain media for time-domain field solvers."""

from .arena import AtomicState
from .models import ConfigurationError, ExtendedMultilevelMaterial, MultilevelMaterial
from .susceptibility import ExtendedMultilevelSusceptibility, MultilevelSusceptibility
from .validation import ValidationReport, run_fast_validation_suite

__all__ = [
    "AtomicState",
    "ConfigurationError",
    "ExtendedMultilevelMaterial",
    "ExtendedMultilevelSusceptibility",
    "MultilevelMaterial",
    "MultilevelSusceptibility",
    "ValidationReport",
    "run_fast_validation_suite",
]
