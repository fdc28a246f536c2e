from __future__ import annotations

import codecs
from collections.abc import AsyncIterable, AsyncIterator

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


async def iter_sse_data(chunks: AsyncIterable[str | bytes]) -> AsyncIterator[str]:
    """Decode an event-stream body into its ``data:`` records.

    Lines may be split across chunks; the incomplete tail is held until the
    next read. Lines without the data prefix are skipped and ``[DONE]`` stops
    the sequence.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""

    async for chunk in chunks:
        if isinstance(chunk, bytes):
            buffer += decoder.decode(chunk)
        else:
            buffer += chunk

        lines = buffer.split("\n")
        buffer = lines.pop()
        for line in lines:
            record = _data_record(line)
            if record is None:
                continue
            if record == DONE_SENTINEL:
                return
            yield record

    buffer += decoder.decode(b"", final=True)
    record = _data_record(buffer)
    if record is not None and record != DONE_SENTINEL:
        yield record


def _data_record(line: str) -> str | None:
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX) :].strip()
