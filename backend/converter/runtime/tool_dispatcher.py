from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

from converter.llm_client import ChatMessage, ToolCall
from converter.models import (
    CheckReport,
    ConversionState,
    GeneratedFile,
    ProgressEvent,
)
from converter.tooling import (
    AddNoteArgs,
    ApplyFixArgs,
    DeleteFileArgs,
    LegacyBackgroundArgs,
    LegacyContentArgs,
    LegacyManifestArgs,
    PlanFilesArgs,
    RunCheckArgs,
    SetAnalysisArgs,
    WriteFileArgs,
    decode_tool_arguments,
)

logger = logging.getLogger(__name__)

TOOL_ACK = "OK"
LEGACY_REASON = "Legacy tool fallback"

ProgressCallback = Callable[[ProgressEvent], Awaitable[None]]


class ToolDispatcher:
    """Apply completed tool calls to one conversion's state.

    Each call yields at most one progress event and always one ``tool``
    acknowledgment message so the model sees its call satisfied.
    """

    def __init__(
        self,
        *,
        state: ConversionState,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._state = state
        self._on_progress = on_progress

    async def dispatch(self, tool_call: ToolCall) -> ChatMessage:
        name = (tool_call.name or "").strip()
        args = decode_tool_arguments(name, tool_call.arguments)
        if args is None:
            logger.info("Ignoring unknown tool call %r (%s)", name, tool_call.id)
        else:
            event = self._apply(args)
            if event is not None:
                await self._emit(event)
        return ChatMessage(role="tool", content=TOOL_ACK, tool_call_id=tool_call.id)

    def _apply(self, args: object) -> ProgressEvent | None:
        state = self._state

        if isinstance(args, SetAnalysisArgs):
            state.analysis = args.text
            return ProgressEvent(step="analysis", content=args.text)

        if isinstance(args, PlanFilesArgs):
            return ProgressEvent(step="plan_files", content=args.summary)

        if isinstance(args, WriteFileArgs):
            if not args.path:
                return None
            return self._write(
                GeneratedFile(
                    path=args.path,
                    content=args.content,
                    kind=args.kind,
                    required=args.required,
                    reason=args.reason,
                )
            )

        if isinstance(args, DeleteFileArgs):
            if not args.path:
                return None
            state.delete_file(args.path)
            suffix = f": {args.reason}" if args.reason is not None else ""
            return ProgressEvent(
                step="delete_file",
                content=f"Deleted {args.path}{suffix}",
                file_path=args.path,
            )

        if isinstance(args, RunCheckArgs):
            report = CheckReport(
                passed=args.passed,
                summary=args.summary,
                issues=list(args.issues),
            )
            round_number = state.record_check(report)
            return ProgressEvent(
                step="check",
                content=report.summary
                or ("Check passed" if report.passed else "Check failed"),
                round=round_number,
                passed=report.passed,
            )

        if isinstance(args, ApplyFixArgs):
            round_number = state.begin_fix_round()
            content = (
                args.summary
                if args.summary is not None
                else f"Applying fix round #{round_number}"
            )
            return ProgressEvent(step="fix", content=content, round=round_number)

        if isinstance(args, AddNoteArgs):
            if not args.message:
                return None
            state.add_note(args.message)
            return ProgressEvent(step="note", content=args.message)

        if isinstance(args, LegacyManifestArgs):
            return self._write(
                GeneratedFile(
                    path="manifest.json",
                    content=json.dumps(args.manifest, indent=2, ensure_ascii=False),
                    kind="manifest",
                    required=True,
                    reason=LEGACY_REASON,
                )
            )

        if isinstance(args, LegacyContentArgs):
            return self._write(
                GeneratedFile(
                    path="content.js",
                    content=args.code,
                    kind="content",
                    required=True,
                    reason=LEGACY_REASON,
                )
            )

        if isinstance(args, LegacyBackgroundArgs):
            if args.code is None:
                state.delete_file("background.js")
                return ProgressEvent(
                    step="delete_file",
                    content="Deleted background.js",
                    file_path="background.js",
                )
            return self._write(
                GeneratedFile(
                    path="background.js",
                    content=args.code,
                    kind="background",
                    required=False,
                    reason=LEGACY_REASON,
                )
            )

        return None

    def _write(self, file: GeneratedFile) -> ProgressEvent:
        self._state.upsert_file(file)
        return ProgressEvent(
            step="write_file",
            content=f"Wrote {file.path}",
            file_path=file.path,
        )

    async def _emit(self, event: ProgressEvent) -> None:
        if self._on_progress is not None:
            await self._on_progress(event)
