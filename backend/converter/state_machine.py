from __future__ import annotations

import logging
from typing import Any, Callable, Literal

LoopState = Literal[
    "awaiting_turn",
    "dispatching_calls",
    "evaluating_continuation",
    "terminated_success",
    "terminated_failure",
]

LOOP_STATE_TRANSITIONS: dict[str, set[str]] = {
    "awaiting_turn": {"dispatching_calls", "evaluating_continuation"},
    "dispatching_calls": {"evaluating_continuation"},
    "evaluating_continuation": {
        "awaiting_turn",
        "terminated_success",
        "terminated_failure",
    },
    "terminated_success": set(),
    "terminated_failure": set(),
}

# Loop exit reasons. ``check_passed`` and ``idle_after_pass`` are the two
# success exits; the others always reach finalization with a failing check.
EXIT_CHECK_PASSED = "check_passed"
EXIT_IDLE_AFTER_PASS = "idle_after_pass"
EXIT_FIX_ROUNDS_EXHAUSTED = "fix_rounds_exhausted"
EXIT_TURN_LIMIT = "turn_limit"

SUCCESS_EXIT_REASONS = frozenset({EXIT_CHECK_PASSED, EXIT_IDLE_AFTER_PASS})


def terminal_state_for(exit_reason: str) -> LoopState:
    if exit_reason in SUCCESS_EXIT_REASONS:
        return "terminated_success"
    return "terminated_failure"


def transition_state(
    *,
    current_state: str,
    to_state: str,
    reason: str,
    transitions: list[dict[str, Any]],
    logger: logging.Logger,
    debug_log: Callable[..., None] | None = None,
) -> str:
    if current_state == to_state:
        return current_state

    allowed = LOOP_STATE_TRANSITIONS.get(current_state, set())
    if to_state not in allowed:
        logger.warning(
            "Invalid loop transition: %s -> %s (%s)",
            current_state,
            to_state,
            reason,
        )
        transitions.append(
            {
                "from": current_state,
                "to": "terminated_failure",
                "reason": f"invalid_transition:{current_state}->{to_state}:{reason}",
            }
        )
        if debug_log is not None:
            debug_log(
                location="converter/state_machine.py:transition_state:invalid",
                message="Invalid loop transition attempted",
                data={"from": current_state, "to": to_state, "reason": reason},
            )
        return "terminated_failure"

    transitions.append({"from": current_state, "to": to_state, "reason": reason})
    logger.debug("Loop transition: %s -> %s (%s)", current_state, to_state, reason)
    if debug_log is not None:
        debug_log(
            location="converter/state_machine.py:transition_state",
            message="Loop transition",
            data={"from": current_state, "to": to_state, "reason": reason},
        )
    return to_state
