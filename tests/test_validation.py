from __future__ import annotations

from mlatom.validation import (
    run_fast_validation_suite,
    validate_copy_independence,
    validate_relaxation,
)


def test_fast_validation_suite_passes_default_configuration() -> None:
    report = run_fast_validation_suite()
    payload = report.as_dict()
    assert payload["two_level_stasis"]["passed"] is True
    assert payload["relaxation"]["passed"] is True
    assert payload["polarization_decay"]["passed"] is True
    assert payload["copy_independence"]["passed"] is True
    assert payload["overall_passed"] is True


def test_relaxation_check_reports_error_and_drift() -> None:
    result = validate_relaxation(steps=5)
    assert result["passed"] is True
    assert result["max_upper_level_error"] <= result["tolerance"]
    assert result["max_total_population_drift"] <= result["tolerance"]


def test_copy_independence_reports_both_sides() -> None:
    result = validate_copy_independence(steps=2)
    assert result["original_unchanged"] is True
    assert result["clone_advanced"] is True
