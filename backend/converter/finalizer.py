from __future__ import annotations

import logging

from converter.errors import CheckFailedError, MissingOutputError
from converter.models import (
    CheckIssue,
    CheckReport,
    ConversionResult,
    ConversionState,
)

logger = logging.getLogger(__name__)

MISSING_FILES_MESSAGE = (
    "Agent did not generate required files "
    "(manifest.json + at least one content file)."
)


def missing_check_report() -> CheckReport:
    return CheckReport(
        passed=False,
        summary="Agent did not run check step.",
        issues=[
            CheckIssue(
                id="missing_check",
                severity="error",
                message="run_check was not called.",
            )
        ],
    )


def finalize_conversion(
    state: ConversionState,
    *,
    exit_reason: str,
    turns: int,
) -> ConversionResult:
    """Accept the accumulated state or raise; there is no partial result."""
    if not state.has_core_files():
        logger.info("Rejecting conversion (%s): core files missing", exit_reason)
        raise MissingOutputError(MISSING_FILES_MESSAGE)

    if not state.checks:
        state.checks.append(missing_check_report())

    last_check = state.checks[-1]
    if not last_check.passed:
        logger.info("Rejecting conversion (%s): last check failed", exit_reason)
        raise CheckFailedError(last_check.summary)

    return ConversionResult(
        analysis=state.analysis,
        files=state.sorted_files(),
        checks=list(state.checks),
        notes=list(state.notes),
        exit_reason=exit_reason,
        turns=turns,
    )
