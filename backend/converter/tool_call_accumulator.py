from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from converter.llm_client import ToolCall
from converter.models import StreamEvent
from converter.partial_json import extract_streaming_payload


@dataclass
class _Slot:
    id: str = ""
    name: str = ""
    args_parts: list[str] = field(default_factory=list)

    @property
    def arguments(self) -> str:
        return "".join(self.args_parts)


def _coerce_index(raw: Any) -> int:
    # Some OpenAI-compatible providers send the index as a string.
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return 0
    return 0


class ToolCallAccumulator:
    """Reassemble indexed tool-call deltas from one streamed turn."""

    def __init__(self) -> None:
        self._slots: dict[int, _Slot] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def apply_delta(self, fragment: Any) -> StreamEvent | None:
        """Merge one ``delta.tool_calls[]`` entry.

        Returns a preview event when the argument text grew and the tool's
        preview field already holds some content.
        """
        if not isinstance(fragment, dict):
            return None

        index = _coerce_index(fragment.get("index", 0))
        slot = self._slots.setdefault(index, _Slot())

        call_id = fragment.get("id")
        if isinstance(call_id, str) and call_id:
            slot.id = call_id

        function = fragment.get("function")
        if not isinstance(function, dict):
            return None

        name = function.get("name")
        if isinstance(name, str) and name:
            slot.name = name

        args_delta = function.get("arguments")
        if not isinstance(args_delta, str) or not args_delta:
            return None
        slot.args_parts.append(args_delta)

        content, file_path = extract_streaming_payload(slot.name, slot.arguments)
        if not content:
            return None
        return StreamEvent(tool_name=slot.name, content=content, file_path=file_path)

    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(
                id=slot.id or f"call_{index + 1}",
                name=slot.name,
                arguments=slot.arguments,
            )
            for index, slot in sorted(self._slots.items())
        ]
