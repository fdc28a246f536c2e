"""Best-effort reads of string fields from tool arguments that are still streaming.

The argument buffer of a tool call only becomes valid JSON once the model has
finished sending it. To preview long fields (file contents, analysis text)
while they arrive we scan the buffer by hand instead of parsing it. Every
function here tolerates truncation at any position and never raises.
"""

from __future__ import annotations

_WHITESPACE = " \t\n\r"
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    '"': '"',
    "\\": "\\",
    "/": "/",
}

STREAMING_CONTENT_FIELDS: dict[str, str] = {
    "set_analysis": "text",
    "plan_files": "summary",
    "write_file": "content",
    "run_check": "summary",
    "apply_fix": "summary",
}
STREAMING_PATH_FIELDS: dict[str, str] = {
    "write_file": "path",
}


def extract_json_string_field(buffer: str, field: str) -> str:
    """Return the decoded (possibly partial) value of ``field`` or ``""``."""
    start = _find_value_start(buffer, field)
    if start is None:
        return ""
    return _decode_partial_string(buffer, start)


def extract_streaming_payload(tool_name: str, buffer: str) -> tuple[str, str | None]:
    """Map a tool's partial arguments to ``(preview_content, file_path)``."""
    content_field = STREAMING_CONTENT_FIELDS.get(tool_name)
    if content_field is None:
        return "", None
    content = extract_json_string_field(buffer, content_field)
    path_field = STREAMING_PATH_FIELDS.get(tool_name)
    file_path = extract_json_string_field(buffer, path_field) if path_field else ""
    return content, file_path or None


def _find_value_start(buffer: str, field: str) -> int | None:
    key = f'"{field}"'
    search_from = 0
    while True:
        key_index = buffer.find(key, search_from)
        if key_index == -1:
            return None
        i = _skip_whitespace(buffer, key_index + len(key))
        if i >= len(buffer):
            return None
        if buffer[i] != ":":
            # the key text appeared inside some other value
            search_from = key_index + 1
            continue
        i = _skip_whitespace(buffer, i + 1)
        if i >= len(buffer) or buffer[i] != '"':
            return None
        return i + 1


def _skip_whitespace(buffer: str, i: int) -> int:
    while i < len(buffer) and buffer[i] in _WHITESPACE:
        i += 1
    return i


def _decode_partial_string(buffer: str, i: int) -> str:
    parts: list[str] = []
    length = len(buffer)
    while i < length:
        char = buffer[i]
        if char == '"':
            break
        if char != "\\":
            parts.append(char)
            i += 1
            continue

        if i + 1 >= length:
            break
        escape = buffer[i + 1]
        if escape == "u":
            code_point, consumed = _decode_unicode_escape(buffer, i)
            if code_point is None:
                break
            parts.append(code_point)
            i += consumed
            continue
        parts.append(_SIMPLE_ESCAPES.get(escape, escape))
        i += 2
    return "".join(parts)


def _decode_unicode_escape(buffer: str, i: int) -> tuple[str | None, int]:
    """Decode ``\\uXXXX`` (and a following low surrogate) starting at ``i``."""
    high = _read_hex4(buffer, i + 2)
    if high is None:
        return None, 0
    if 0xD800 <= high <= 0xDBFF:
        if buffer[i + 6 : i + 8] != "\\u":
            if i + 8 > len(buffer):
                return None, 0
            return chr(high), 6
        low = _read_hex4(buffer, i + 8)
        if low is None:
            return None, 0
        if 0xDC00 <= low <= 0xDFFF:
            combined = 0x10000 + ((high - 0xD800) << 10) + (low - 0xDC00)
            return chr(combined), 12
    return chr(high), 6


def _read_hex4(buffer: str, start: int) -> int | None:
    digits = buffer[start : start + 4]
    if len(digits) < 4 or any(char not in _HEX_DIGITS for char in digits):
        return None
    return int(digits, 16)
