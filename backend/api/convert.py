"""
API routes for converting, packaging and importing UserScripts.
Thin route layer - the agent loop lives in converter/, the shim path in userscript/.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field

from converter import ConversionEngine, build_llm_client
from converter.errors import (
    CheckFailedError,
    ConversionCancelled,
    ConversionError,
    MissingOutputError,
    TransportError,
)
from converter.models import GeneratedFile, ProgressEvent, StreamEvent
from settings import Settings
from userscript.fetcher import FetchError, fetch_from_greasy_fork, is_greasy_fork_url
from userscript.packaging import PackagingError, build_zip, safe_archive_name
from userscript.pipeline import ExtensionBuild, assemble_agent_build, convert_with_shims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["convert"])


class ConvertRequest(BaseModel):
    script: str
    mode: Literal["agent", "shim"] = "agent"
    provider: str | None = None
    model: str | None = None
    api_key: str | None = None
    max_turns: int | None = Field(default=None, ge=1, le=50)
    stream_preview: bool | None = None


class FilePayload(BaseModel):
    path: str
    content: str
    kind: Literal["manifest", "content", "background", "asset", "vendor", "doc", "other"] = "other"
    required: bool = False
    reason: str | None = None


class PackageRequest(BaseModel):
    name: str = "extension"
    files: list[FilePayload]
    requires: list[str] = Field(default_factory=list)
    icon: str | None = None


class ImportRequest(BaseModel):
    url: str


def _status_for(exc: Exception) -> int:
    if isinstance(exc, (MissingOutputError, CheckFailedError)):
        return 422
    if isinstance(exc, (TransportError, FetchError)):
        return 502
    if isinstance(exc, ConversionCancelled):
        return 499
    if isinstance(exc, ValueError):
        return 400
    return 500


def _require_script(body: ConvertRequest) -> str:
    script = body.script.strip()
    if not script:
        raise HTTPException(status_code=400, detail="script must not be empty")
    return body.script


def _build_engine(body: ConvertRequest, settings: Settings) -> ConversionEngine:
    provider = (body.provider or settings.provider).lower().strip()
    model = body.model
    # The configured model belongs to the configured provider only.
    if not model and provider == settings.provider:
        model = settings.model
    try:
        llm_client = build_llm_client(
            provider=provider,
            model=model,
            api_key=body.api_key,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return ConversionEngine(
        llm_client=llm_client,
        max_turns=body.max_turns or settings.max_turns,
        max_fix_rounds=settings.max_fix_rounds,
        max_output_tokens=settings.max_output_tokens,
    )


def _encode_sse_frame(
    payload: dict[str, Any],
    *,
    event: str = "event",
    event_id: int | None = None,
) -> str:
    lines: list[str] = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event}")
    lines.append(
        "data: "
        + json.dumps(payload, ensure_ascii=True, default=str, separators=(",", ":"))
    )
    return "\n".join(lines) + "\n\n"


@router.post("/convert")
async def convert(body: ConvertRequest):
    script = _require_script(body)
    if body.mode == "shim":
        return convert_with_shims(script).to_dict()

    settings = Settings.from_env()
    engine = _build_engine(body, settings)
    try:
        result = await engine.convert(script)
    except ConversionError as exc:
        logger.warning("Agent conversion failed: %s", exc)
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return assemble_agent_build(script, result).to_dict()


@router.post("/convert/stream")
async def convert_stream(body: ConvertRequest):
    script = _require_script(body)
    settings = Settings.from_env()
    engine = _build_engine(body, settings) if body.mode == "agent" else None
    stream_preview = (
        settings.stream_preview if body.stream_preview is None else body.stream_preview
    )

    async def event_stream() -> AsyncIterator[str]:
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        cancel_event = asyncio.Event()
        seq = 0

        async def emit(event: str, payload: dict[str, Any]) -> None:
            nonlocal seq
            seq += 1
            await queue.put(
                _encode_sse_frame({"seq": seq, **payload}, event=event, event_id=seq)
            )

        async def on_progress(progress: ProgressEvent) -> None:
            await emit("progress", {"progress": progress.to_dict()})

        async def on_stream(preview: StreamEvent) -> None:
            await emit("stream", {"stream": preview.to_dict()})

        async def run_conversion() -> None:
            try:
                if engine is None:
                    build: ExtensionBuild = convert_with_shims(script)
                else:
                    result = await engine.convert(
                        script,
                        on_progress=on_progress,
                        on_stream=on_stream if stream_preview else None,
                        cancel_event=cancel_event,
                    )
                    build = assemble_agent_build(script, result)
                await emit("result", {"result": build.to_dict()})
                await emit("done", {"done": True})
            except Exception as exc:
                logger.warning("Streamed conversion failed: %s", exc)
                await emit("error", {"error": str(exc), "status": _status_for(exc)})
            finally:
                await queue.put(None)

        task = asyncio.create_task(run_conversion())
        try:
            while True:
                frame = await queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            if not task.done():
                # Client went away; nobody is left to read the result.
                cancel_event.set()
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/package")
async def package(body: PackageRequest):
    files = [
        GeneratedFile(
            path=item.path,
            content=item.content,
            kind=item.kind,
            required=item.required,
            reason=item.reason,
        )
        for item in body.files
    ]
    try:
        archive = await build_zip(
            files,
            require_urls=body.requires,
            icon_url=body.icon,
            name=body.name,
        )
    except PackagingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    filename = f"{safe_archive_name(body.name)}.zip"
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_script(body: ImportRequest):
    url = body.url.strip()
    if not is_greasy_fork_url(url):
        raise HTTPException(status_code=400, detail="only Greasy Fork URLs are supported")
    try:
        script = await fetch_from_greasy_fork(url)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"url": url, "script": script}
