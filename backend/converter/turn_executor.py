from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from converter.errors import TransportError
from converter.llm_client import (
    ChatMessage,
    LlmClient,
    ToolCall,
    ToolDefinition,
)
from converter.models import StreamEvent
from converter.sse import iter_sse_data
from converter.tool_call_accumulator import ToolCallAccumulator

logger = logging.getLogger(__name__)

StreamCallback = Callable[[StreamEvent], Awaitable[None]]


@dataclass(frozen=True)
class TurnResult:
    assistant_message: ChatMessage
    tool_calls: list[ToolCall]
    finish_reason: str


async def run_streamed_turn(
    *,
    llm_client: LlmClient,
    messages: list[ChatMessage],
    tools: list[ToolDefinition],
    max_output_tokens: int | None,
    on_stream: StreamCallback,
) -> TurnResult:
    accumulator = ToolCallAccumulator()
    text_buffer: list[str] = []
    finish_reason = "stop"

    stream = llm_client.generate_stream(
        messages=messages,
        tools=tools,
        tool_choice="auto",
        max_output_tokens=max_output_tokens,
    )

    async with contextlib.aclosing(stream) as chunks:
        async for record in iter_sse_data(chunks):
            try:
                payload = json.loads(record)
            except json.JSONDecodeError:
                continue
            if not isinstance(payload, dict):
                continue

            _raise_for_error_payload(payload)

            choice = _first_choice(payload)
            if choice is None:
                continue

            if choice.get("finish_reason"):
                finish_reason = str(choice["finish_reason"])

            delta = choice.get("delta")
            if not isinstance(delta, dict):
                continue

            content = delta.get("content")
            if isinstance(content, str):
                text_buffer.append(content)

            for fragment in delta.get("tool_calls") or []:
                preview = accumulator.apply_delta(fragment)
                if preview is not None:
                    await on_stream(preview)

    tool_calls = accumulator.tool_calls()
    full_text = "".join(text_buffer) or None
    logger.debug(
        "Streamed turn finished: %d tool call(s), finish_reason=%s",
        len(tool_calls),
        finish_reason,
    )
    return TurnResult(
        assistant_message=ChatMessage(
            role="assistant",
            content=full_text,
            tool_calls=tool_calls,
        ),
        tool_calls=tool_calls,
        finish_reason=finish_reason,
    )


async def run_plain_turn(
    *,
    llm_client: LlmClient,
    messages: list[ChatMessage],
    tools: list[ToolDefinition],
    max_output_tokens: int | None,
) -> TurnResult:
    response = await llm_client.generate(
        messages=messages,
        tools=tools,
        tool_choice="auto",
        max_output_tokens=max_output_tokens,
    )
    tool_calls = list(response.tool_calls)
    return TurnResult(
        assistant_message=ChatMessage(
            role="assistant",
            content=response.text,
            tool_calls=tool_calls,
        ),
        tool_calls=tool_calls,
        finish_reason=response.finish_reason,
    )


def _first_choice(payload: dict[str, Any]) -> dict[str, Any] | None:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, dict) else None


def _raise_for_error_payload(payload: dict[str, Any]) -> None:
    error = payload.get("error")
    if not error:
        return
    if isinstance(error, dict):
        message = str(error.get("message") or error)
        code = error.get("code")
        status_code = code if isinstance(code, int) else None
    else:
        message = str(error)
        status_code = None
    raise TransportError(f"Stream error: {message}", status_code=status_code)
