from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from converter.llm_client import ToolDefinition
from converter.models import FILE_KINDS, CheckIssue, FileKind

FILE_KIND_SCHEMA: dict[str, Any] = {"type": "string", "enum": list(FILE_KINDS)}

SET_ANALYSIS_TOOL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "text": {
            "type": "string",
            "description": "Three sections: core features, how it works, requested grants.",
        },
    },
    "required": ["text"],
}

PLAN_FILES_TOOL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {
            "type": "string",
            "description": "A short summary of architecture decisions.",
        },
        "files": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "kind": FILE_KIND_SCHEMA,
                    "required": {"type": "boolean"},
                    "reason": {"type": "string"},
                },
                "required": ["path", "kind", "required"],
            },
        },
    },
    "required": ["summary", "files"],
}

WRITE_FILE_TOOL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {
            "type": "string",
            "description": "Relative path inside extension package, e.g. manifest.json",
        },
        "content": {"type": "string", "description": "Complete file content."},
        "kind": FILE_KIND_SCHEMA,
        "required": {"type": "boolean"},
        "reason": {"type": "string"},
    },
    "required": ["path", "content", "kind", "required"],
}

DELETE_FILE_TOOL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string"},
        "reason": {"type": "string"},
    },
    "required": ["path", "reason"],
}

RUN_CHECK_TOOL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "pass": {"type": "boolean"},
        "summary": {"type": "string"},
        "issues": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "severity": {"type": "string", "enum": ["error", "warning"]},
                    "file": {"type": "string"},
                    "message": {"type": "string"},
                    "fixHint": {"type": "string"},
                },
                "required": ["id", "severity", "message"],
            },
        },
    },
    "required": ["pass", "summary", "issues"],
}

APPLY_FIX_TOOL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"summary": {"type": "string"}},
    "required": ["summary"],
}

ADD_NOTE_TOOL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"message": {"type": "string"}},
    "required": ["message"],
}


def tool_definitions() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="set_analysis",
            description=(
                "Analyse the UserScript and explain the conversion strategy. "
                "Always call this first. Use exactly three sections: "
                "'## Core features' (2-3 sentences on what the script does for "
                "the user), '## How it works' (2-3 sentences on the technique) "
                "and '## Requested grants' (one bullet per @grant and its use)."
            ),
            input_schema=SET_ANALYSIS_TOOL_SCHEMA,
        ),
        ToolDefinition(
            name="plan_files",
            description=(
                "Plan which files should exist for the MV3 extension based on this script."
            ),
            input_schema=PLAN_FILES_TOOL_SCHEMA,
        ),
        ToolDefinition(
            name="write_file",
            description="Create or overwrite one extension file.",
            input_schema=WRITE_FILE_TOOL_SCHEMA,
        ),
        ToolDefinition(
            name="delete_file",
            description="Delete a previously planned/generated file.",
            input_schema=DELETE_FILE_TOOL_SCHEMA,
        ),
        ToolDefinition(
            name="run_check",
            description="Run a self-check for MV3 correctness and completeness.",
            input_schema=RUN_CHECK_TOOL_SCHEMA,
        ),
        ToolDefinition(
            name="apply_fix",
            description="Start a fix round based on the latest run_check issues.",
            input_schema=APPLY_FIX_TOOL_SCHEMA,
        ),
        ToolDefinition(
            name="add_note",
            description="Add an important note or warning for the user.",
            input_schema=ADD_NOTE_TOOL_SCHEMA,
        ),
    ]


# ---- decoded arguments --------------------------------------------------------


@dataclass(frozen=True)
class SetAnalysisArgs:
    text: str = ""


@dataclass(frozen=True)
class PlannedFile:
    path: str
    kind: FileKind
    required: bool
    reason: str | None = None


@dataclass(frozen=True)
class PlanFilesArgs:
    summary: str = ""
    files: list[PlannedFile] = field(default_factory=list)


@dataclass(frozen=True)
class WriteFileArgs:
    path: str = ""
    content: str = ""
    kind: FileKind = "other"
    required: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class DeleteFileArgs:
    path: str = ""
    reason: str | None = None


@dataclass(frozen=True)
class RunCheckArgs:
    passed: bool = False
    summary: str = ""
    issues: list[CheckIssue] = field(default_factory=list)


@dataclass(frozen=True)
class ApplyFixArgs:
    summary: str | None = None


@dataclass(frozen=True)
class AddNoteArgs:
    message: str = ""


@dataclass(frozen=True)
class LegacyManifestArgs:
    manifest: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LegacyContentArgs:
    code: str = ""


@dataclass(frozen=True)
class LegacyBackgroundArgs:
    code: str | None = None


ToolArguments = (
    SetAnalysisArgs
    | PlanFilesArgs
    | WriteFileArgs
    | DeleteFileArgs
    | RunCheckArgs
    | ApplyFixArgs
    | AddNoteArgs
    | LegacyManifestArgs
    | LegacyContentArgs
    | LegacyBackgroundArgs
)


def parse_raw_arguments(raw_arguments: str | None) -> dict[str, Any]:
    if not raw_arguments:
        return {}
    try:
        parsed = json.loads(raw_arguments)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def decode_tool_arguments(name: str, raw_arguments: str | None) -> ToolArguments | None:
    """Decode a tool call into its typed arguments; ``None`` for unknown tools."""
    decoder = _DECODERS.get((name or "").strip())
    if decoder is None:
        return None
    return decoder(parse_raw_arguments(raw_arguments))


def _text(value: Any, default: str = "") -> str:
    """Coerce like a lenient JS ``String(value ?? default)``."""
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _optional_text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value) and value.strip().lower() not in {"false", "0", "no"}
    return bool(value)


def _file_kind(value: Any) -> FileKind:
    raw = _text(value, "other")
    return raw if raw in FILE_KINDS else "other"  # type: ignore[return-value]


def parse_check_issues(raw: Any) -> list[CheckIssue]:
    if not isinstance(raw, list):
        return []
    issues: list[CheckIssue] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            continue
        message = item.get("message")
        if not isinstance(message, str) or not message:
            continue
        issue_id = item.get("id")
        issues.append(
            CheckIssue(
                id=issue_id if isinstance(issue_id, str) else f"issue_{index + 1}",
                severity="warning" if item.get("severity") == "warning" else "error",
                message=message,
                file=_optional_text(item.get("file")),
                fix_hint=_optional_text(item.get("fixHint")),
            )
        )
    return issues


def _parse_planned_files(raw: Any) -> list[PlannedFile]:
    if not isinstance(raw, list):
        return []
    planned: list[PlannedFile] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        path = _text(item.get("path")).strip()
        if not path:
            continue
        planned.append(
            PlannedFile(
                path=path,
                kind=_file_kind(item.get("kind")),
                required=_truthy(item.get("required")),
                reason=_optional_text(item.get("reason")),
            )
        )
    return planned


def _decode_set_analysis(args: dict[str, Any]) -> SetAnalysisArgs:
    return SetAnalysisArgs(text=_text(args.get("text")))


def _decode_plan_files(args: dict[str, Any]) -> PlanFilesArgs:
    return PlanFilesArgs(
        summary=_text(args.get("summary")),
        files=_parse_planned_files(args.get("files")),
    )


def _decode_write_file(args: dict[str, Any]) -> WriteFileArgs:
    return WriteFileArgs(
        path=_text(args.get("path")).strip(),
        content=_text(args.get("content")),
        kind=_file_kind(args.get("kind")),
        required=_truthy(args.get("required")),
        reason=_optional_text(args.get("reason")),
    )


def _decode_delete_file(args: dict[str, Any]) -> DeleteFileArgs:
    return DeleteFileArgs(
        path=_text(args.get("path")).strip(),
        reason=_optional_text(args.get("reason")),
    )


def _decode_run_check(args: dict[str, Any]) -> RunCheckArgs:
    return RunCheckArgs(
        passed=_truthy(args.get("pass")),
        summary=_text(args.get("summary")),
        issues=parse_check_issues(args.get("issues")),
    )


def _decode_apply_fix(args: dict[str, Any]) -> ApplyFixArgs:
    summary = args.get("summary")
    return ApplyFixArgs(summary=None if summary is None else _text(summary))


def _decode_add_note(args: dict[str, Any]) -> AddNoteArgs:
    return AddNoteArgs(message=_text(args.get("message")).strip())


def _decode_legacy_manifest(args: dict[str, Any]) -> LegacyManifestArgs:
    manifest = args.get("manifest")
    return LegacyManifestArgs(manifest=manifest if isinstance(manifest, dict) else {})


def _decode_legacy_content(args: dict[str, Any]) -> LegacyContentArgs:
    return LegacyContentArgs(code=_text(args.get("code")))


def _decode_legacy_background(args: dict[str, Any]) -> LegacyBackgroundArgs:
    code = args.get("code")
    return LegacyBackgroundArgs(code=None if code is None else _text(code))


_DECODERS = {
    "set_analysis": _decode_set_analysis,
    "plan_files": _decode_plan_files,
    "write_file": _decode_write_file,
    "delete_file": _decode_delete_file,
    "run_check": _decode_run_check,
    "apply_fix": _decode_apply_fix,
    "add_note": _decode_add_note,
    "write_manifest": _decode_legacy_manifest,
    "write_content_js": _decode_legacy_content,
    "write_background_js": _decode_legacy_background,
}
