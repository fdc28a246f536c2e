from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from debug_log import debug_log as _debug_log
from converter.errors import ConversionCancelled
from converter.finalizer import finalize_conversion
from converter.llm_client import ChatMessage, LlmClient, ToolDefinition
from converter.models import ConversionResult, ConversionState, ProgressEvent
from converter.prompts import (
    CONTINUE_NUDGE,
    build_system_prompt,
    build_user_instruction,
    fix_rounds_exhausted_note,
)
from converter.runtime.tool_dispatcher import ProgressCallback, ToolDispatcher
from converter.state_machine import (
    EXIT_CHECK_PASSED,
    EXIT_FIX_ROUNDS_EXHAUSTED,
    EXIT_IDLE_AFTER_PASS,
    EXIT_TURN_LIMIT,
    terminal_state_for,
    transition_state,
)
from converter.tooling import tool_definitions
from converter.turn_executor import (
    StreamCallback,
    TurnResult,
    run_plain_turn,
    run_streamed_turn,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 12
DEFAULT_MAX_FIX_ROUNDS = 2
DEFAULT_MAX_OUTPUT_TOKENS = 8000


@dataclass
class LoopOutcome:
    state: ConversionState
    messages: list[ChatMessage]
    exit_reason: str
    turns: int
    loop_state: str
    transitions: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ConversionEngine:
    llm_client: LlmClient
    max_turns: int = DEFAULT_MAX_TURNS
    max_fix_rounds: int = DEFAULT_MAX_FIX_ROUNDS
    max_output_tokens: int | None = DEFAULT_MAX_OUTPUT_TOKENS
    tools: list[ToolDefinition] = field(default_factory=tool_definitions)

    def __post_init__(self) -> None:
        if self.max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        if self.max_fix_rounds < 0:
            raise ValueError("max_fix_rounds must not be negative")

    async def convert(
        self,
        script_text: str,
        *,
        on_progress: ProgressCallback | None = None,
        on_stream: StreamCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ConversionResult:
        """Run the agent loop and return the accepted result.

        Raises a ``ConversionError`` subclass for every fatal outcome:
        transport failures, cancellation, missing core files, or a last
        check that did not pass.
        """
        outcome = await self.run_loop(
            script_text,
            on_progress=on_progress,
            on_stream=on_stream,
            cancel_event=cancel_event,
        )
        result = finalize_conversion(
            outcome.state,
            exit_reason=outcome.exit_reason,
            turns=outcome.turns,
        )
        if on_progress is not None:
            await on_progress(ProgressEvent(step="done", content=""))
        return result

    async def run_loop(
        self,
        script_text: str,
        *,
        on_progress: ProgressCallback | None = None,
        on_stream: StreamCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> LoopOutcome:
        state = ConversionState()
        dispatcher = ToolDispatcher(state=state, on_progress=on_progress)
        messages: list[ChatMessage] = [
            ChatMessage(
                role="system",
                content=build_system_prompt(max_fix_rounds=self.max_fix_rounds),
            ),
            ChatMessage(role="user", content=build_user_instruction(script_text)),
        ]
        transitions: list[dict[str, Any]] = []
        loop_state = "awaiting_turn"
        exit_reason = EXIT_TURN_LIMIT
        turns = 0

        def move(to_state: str, reason: str) -> None:
            nonlocal loop_state
            loop_state = transition_state(
                current_state=loop_state,
                to_state=to_state,
                reason=reason,
                transitions=transitions,
                logger=logger,
                debug_log=_debug_log,
            )

        for turn in range(self.max_turns):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Conversion cancelled before turn %d", turn)
                raise ConversionCancelled("Conversion was cancelled.")

            turns = turn + 1
            result = await self._run_turn(turn, messages, on_stream)
            messages.append(result.assistant_message)
            logger.info(
                "Turn %d/%d returned %d tool call(s) (finish_reason=%s)",
                turns,
                self.max_turns,
                len(result.tool_calls),
                result.finish_reason,
            )

            if not result.tool_calls:
                move("evaluating_continuation", "no_tool_calls")
                if state.check_passed:
                    exit_reason = EXIT_IDLE_AFTER_PASS
                    break
                if turn < self.max_turns - 1:
                    messages.append(ChatMessage(role="user", content=CONTINUE_NUDGE))
                    move("awaiting_turn", "nudge_after_idle_turn")
                    continue
                exit_reason = EXIT_TURN_LIMIT
                break

            move("dispatching_calls", f"{len(result.tool_calls)}_tool_calls")
            for tool_call in result.tool_calls:
                messages.append(await dispatcher.dispatch(tool_call))
            move("evaluating_continuation", "tool_calls_dispatched")

            if state.check_passed:
                exit_reason = EXIT_CHECK_PASSED
                break

            if (
                state.fix_rounds >= self.max_fix_rounds
                and state.checks
                and not state.check_passed
            ):
                state.add_note(fix_rounds_exhausted_note(self.max_fix_rounds))
                exit_reason = EXIT_FIX_ROUNDS_EXHAUSTED
                break

            if turn < self.max_turns - 1:
                move("awaiting_turn", "continue")

        move(terminal_state_for(exit_reason), exit_reason)
        logger.info("Agent loop finished after %d turn(s): %s", turns, exit_reason)
        _debug_log(
            location="converter/engine.py:run_loop:exit",
            message="Agent loop finished",
            data={
                "exit_reason": exit_reason,
                "turns": turns,
                "files": sorted(state.files),
                "checks": len(state.checks),
                "fix_rounds": state.fix_rounds,
            },
        )
        return LoopOutcome(
            state=state,
            messages=messages,
            exit_reason=exit_reason,
            turns=turns,
            loop_state=loop_state,
            transitions=transitions,
        )

    async def _run_turn(
        self,
        turn: int,
        messages: list[ChatMessage],
        on_stream: StreamCallback | None,
    ) -> TurnResult:
        # Only the first turn is streamed; it carries most of the generated text.
        if turn == 0 and on_stream is not None:
            return await run_streamed_turn(
                llm_client=self.llm_client,
                messages=list(messages),
                tools=self.tools,
                max_output_tokens=self.max_output_tokens,
                on_stream=on_stream,
            )
        return await run_plain_turn(
            llm_client=self.llm_client,
            messages=list(messages),
            tools=self.tools,
            max_output_tokens=self.max_output_tokens,
        )
