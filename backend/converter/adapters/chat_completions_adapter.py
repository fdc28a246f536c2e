from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from converter.errors import TransportError
from converter.llm_client import (
    ChatMessage,
    LlmResponse,
    ToolCall,
    ToolDefinition,
    messages_to_api,
    tools_to_api,
)


@dataclass(frozen=True)
class ChatCompletionsAdapter:
    """Client for OpenAI-compatible ``/chat/completions`` endpoints.

    OpenRouter and OpenAI both speak this wire format. Non-streamed turns use
    the parsed SDK response; streamed turns hand back the raw event-stream
    body so the converter can decode tool-call fragments itself.
    """

    model: str
    api_key: str | None = None
    base_url: str | None = None
    provider_label: str = "OpenAI"
    default_headers: dict[str, str] = field(default_factory=dict)

    # ---- non-streaming ------------------------------------------------------

    async def generate(
        self,
        *,
        messages: list[ChatMessage],
        tools: list[ToolDefinition],
        tool_choice: str | None = None,
        max_output_tokens: int | None = None,
    ) -> LlmResponse:
        return await asyncio.to_thread(
            self._generate_sync,
            messages=messages,
            tools=tools,
            tool_choice=tool_choice,
            max_output_tokens=max_output_tokens,
        )

    def _generate_sync(
        self,
        *,
        messages: list[ChatMessage],
        tools: list[ToolDefinition],
        tool_choice: str | None,
        max_output_tokens: int | None,
    ) -> LlmResponse:
        try:
            from openai import APIError, APIStatusError, OpenAI
        except ModuleNotFoundError as exc:
            raise RuntimeError(
                "OpenAI SDK not installed. Add dependency: `openai`."
            ) from exc

        client = OpenAI(**self._client_kwargs())
        try:
            response = client.chat.completions.create(
                **self._request_kwargs(messages, tools, tool_choice, max_output_tokens)
            )
        except APIStatusError as exc:
            raise self._status_error(exc) from exc
        except APIError as exc:
            raise TransportError(f"{self.provider_label} request failed: {exc}") from exc
        return self._parse_response(response)

    # ---- streaming ----------------------------------------------------------

    async def generate_stream(
        self,
        *,
        messages: list[ChatMessage],
        tools: list[ToolDefinition],
        tool_choice: str | None = None,
        max_output_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        """Yield the raw ``text/event-stream`` body of a streamed completion.

        ``with_streaming_response`` keeps the SDK from parsing the stream, so
        the caller sees the ``data:`` lines exactly as the server sent them.
        """
        try:
            from openai import APIError, APIStatusError, AsyncOpenAI
        except ModuleNotFoundError as exc:
            raise RuntimeError(
                "OpenAI SDK not installed. Add dependency: `openai`."
            ) from exc

        client = AsyncOpenAI(**self._client_kwargs())
        request = self._request_kwargs(messages, tools, tool_choice, max_output_tokens)
        try:
            async with client.chat.completions.with_streaming_response.create(
                **request,
                stream=True,
            ) as response:
                async for text in response.iter_text():
                    yield text
        except APIStatusError as exc:
            raise self._status_error(exc) from exc
        except APIError as exc:
            raise TransportError(f"{self.provider_label} stream failed: {exc}") from exc
        finally:
            await client.close()

    # ---- shared helpers -----------------------------------------------------

    def _client_kwargs(self) -> dict[str, Any]:
        # A failed turn aborts the conversion, so the SDK must not retry it.
        kwargs: dict[str, Any] = {"api_key": self.api_key, "max_retries": 0}
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.default_headers:
            kwargs["default_headers"] = dict(self.default_headers)
        return kwargs

    def _request_kwargs(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDefinition],
        tool_choice: str | None,
        max_output_tokens: int | None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages_to_api(messages),
            "tools": tools_to_api(tools),
            "tool_choice": tool_choice or "auto",
        }
        if max_output_tokens is not None:
            request["max_tokens"] = max_output_tokens
        return request

    def _status_error(self, exc: Any) -> TransportError:
        status_code = getattr(exc, "status_code", None)
        message = getattr(exc, "message", None) or str(exc)
        return TransportError(
            f"{self.provider_label} {status_code}: {message}",
            status_code=status_code,
        )

    def _parse_response(self, response: Any) -> LlmResponse:
        error = getattr(response, "error", None)
        if error:
            message = error.get("message") if isinstance(error, dict) else None
            raise TransportError(
                f"{self.provider_label} error: {message or error}"
            )

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise TransportError(f"{self.provider_label} response carried no choices")

        choice = choices[0]
        message = getattr(choice, "message", None)
        finish_reason = str(getattr(choice, "finish_reason", None) or "stop")
        if message is None:
            return LlmResponse(
                text=None, tool_calls=[], finish_reason=finish_reason, raw=response
            )

        text = getattr(message, "content", None)
        if isinstance(text, list):
            text = "".join(str(part) for part in text if part is not None)

        tool_calls: list[ToolCall] = []
        for raw_call in getattr(message, "tool_calls", None) or []:
            function = getattr(raw_call, "function", None)
            name = getattr(function, "name", "") if function is not None else ""
            arguments = (
                getattr(function, "arguments", "") if function is not None else ""
            )
            call_id = getattr(raw_call, "id", None) or f"call_{len(tool_calls) + 1}"
            tool_calls.append(
                ToolCall(id=call_id, name=name or "", arguments=arguments or "")
            )

        return LlmResponse(
            text=text or None,
            tool_calls=tool_calls,
            finish_reason=finish_reason,
            raw=response,
        )
