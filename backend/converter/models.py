"""Conversion records shared by the dispatcher, the loop and the API layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

FileKind = Literal["manifest", "content", "background", "asset", "vendor", "doc", "other"]
IssueSeverity = Literal["error", "warning"]
ProgressStep = Literal[
    "analysis",
    "plan_files",
    "write_file",
    "delete_file",
    "check",
    "fix",
    "note",
    "done",
]

FILE_KINDS: tuple[str, ...] = (
    "manifest",
    "content",
    "background",
    "asset",
    "vendor",
    "doc",
    "other",
)
MANIFEST_PATH = "manifest.json"


@dataclass(frozen=True)
class GeneratedFile:
    """One file of the extension package, keyed by its relative path."""

    path: str
    content: str
    kind: FileKind = "other"
    required: bool = False
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "path": self.path,
            "content": self.content,
            "kind": self.kind,
            "required": self.required,
        }
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


@dataclass(frozen=True)
class CheckIssue:
    id: str
    severity: IssueSeverity
    message: str
    file: str | None = None
    fix_hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "severity": self.severity,
            "message": self.message,
        }
        if self.file is not None:
            payload["file"] = self.file
        if self.fix_hint is not None:
            payload["fixHint"] = self.fix_hint
        return payload


@dataclass(frozen=True)
class CheckReport:
    passed: bool
    summary: str
    issues: list[CheckIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass": self.passed,
            "summary": self.summary,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted once per interpreted tool call, plus a terminal ``done``."""

    step: ProgressStep
    content: str
    file_path: str | None = None
    round: int | None = None
    passed: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"step": self.step, "content": self.content}
        if self.file_path is not None:
            payload["filePath"] = self.file_path
        if self.round is not None:
            payload["round"] = self.round
        if self.passed is not None:
            payload["passed"] = self.passed
        return payload


@dataclass(frozen=True)
class StreamEvent:
    """Live preview of a tool call whose arguments are still arriving."""

    tool_name: str
    content: str
    file_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"toolName": self.tool_name, "content": self.content}
        if self.file_path is not None:
            payload["filePath"] = self.file_path
        return payload


@dataclass
class ConversionState:
    """Mutable state of a single conversion; never shared between conversions."""

    files: dict[str, GeneratedFile] = field(default_factory=dict)
    checks: list[CheckReport] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    analysis: str = ""
    fix_rounds: int = 0
    check_passed: bool = False

    def upsert_file(self, file: GeneratedFile) -> None:
        self.files[file.path] = file

    def delete_file(self, path: str) -> bool:
        return self.files.pop(path, None) is not None

    def record_check(self, report: CheckReport) -> int:
        self.checks.append(report)
        self.check_passed = report.passed
        return len(self.checks)

    def begin_fix_round(self) -> int:
        self.fix_rounds += 1
        return self.fix_rounds

    def add_note(self, message: str) -> None:
        self.notes.append(message)

    def has_core_files(self) -> bool:
        if MANIFEST_PATH not in self.files:
            return False
        return any(file.kind == "content" for file in self.files.values())

    def sorted_files(self) -> list[GeneratedFile]:
        return sorted(self.files.values(), key=lambda file: file.path)


@dataclass(frozen=True)
class ConversionResult:
    analysis: str
    files: list[GeneratedFile]
    checks: list[CheckReport]
    notes: list[str]
    exit_reason: str
    turns: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis": self.analysis,
            "files": [file.to_dict() for file in self.files],
            "checks": [check.to_dict() for check in self.checks],
            "notes": list(self.notes),
            "exit_reason": self.exit_reason,
            "turns": self.turns,
        }
