"""Assembles the final build record for both conversion modes."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from converter.models import CheckReport, ConversionResult, GeneratedFile
from userscript.manifest import build_manifest
from userscript.packaging import build_require_file_names, normalize_agent_files
from userscript.parser import UserScriptMeta, parse_userscript
from userscript.transformer import (
    ShimLogEntry,
    build_background_script,
    transform_script,
)

ConversionMode = Literal["agent", "shim"]


@dataclass
class ExtensionBuild:
    mode: ConversionMode
    meta: UserScriptMeta
    files: list[GeneratedFile]
    manifest_json: str
    content_js: str
    background_js: str | None
    require_file_names: list[str]
    warnings: list[str] = field(default_factory=list)
    checks: list[CheckReport] = field(default_factory=list)
    shim_log: list[ShimLogEntry] = field(default_factory=list)
    analysis: str | None = None
    exit_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "meta": self.meta.to_dict(),
            "files": [file.to_dict() for file in self.files],
            "manifestJson": self.manifest_json,
            "contentJs": self.content_js,
            "backgroundJs": self.background_js,
            "requireFileNames": list(self.require_file_names),
            "warnings": list(self.warnings),
            "checks": [check.to_dict() for check in self.checks],
            "shimLog": [entry.to_dict() for entry in self.shim_log],
            "analysis": self.analysis,
            "exitReason": self.exit_reason,
        }


def format_check_warnings(checks: list[CheckReport]) -> list[str]:
    warnings: list[str] = []
    for number, check in enumerate(checks, start=1):
        for issue in check.issues:
            suffix = f" ({issue.file})" if issue.file else ""
            warnings.append(
                f"[Check #{number}] {issue.severity.upper()}: {issue.message}{suffix}"
            )
    return warnings


def convert_with_shims(script: str) -> ExtensionBuild:
    meta = parse_userscript(script)
    transformed = transform_script(script, meta)
    background_js = build_background_script(transformed)
    require_file_names = build_require_file_names(meta.requires)
    manifest = build_manifest(
        meta,
        has_background=background_js is not None,
        require_files=require_file_names,
    )
    manifest_json = json.dumps(manifest, indent=2, ensure_ascii=False)

    files = [
        GeneratedFile(
            path="manifest.json",
            content=manifest_json,
            kind="manifest",
            required=True,
            reason="Generated from parser metadata in shim mode.",
        ),
        GeneratedFile(
            path="content.js",
            content=transformed.content_js,
            kind="content",
            required=True,
            reason="Transformed script output in shim mode.",
        ),
    ]
    if background_js is not None:
        files.append(
            GeneratedFile(
                path="background.js",
                content=background_js,
                kind="background",
                reason="Required by transformed GM APIs in shim mode.",
            )
        )

    return ExtensionBuild(
        mode="shim",
        meta=meta,
        files=files,
        manifest_json=manifest_json,
        content_js=transformed.content_js,
        background_js=background_js,
        require_file_names=require_file_names,
        warnings=list(meta.warnings),
        shim_log=transformed.shim_log,
    )


def assemble_agent_build(script: str, result: ConversionResult) -> ExtensionBuild:
    meta = parse_userscript(script)
    normalized = normalize_agent_files(result.files)
    warnings = [
        *meta.warnings,
        *result.notes,
        *normalized.notes,
        *format_check_warnings(result.checks),
    ]
    return ExtensionBuild(
        mode="agent",
        meta=meta,
        files=normalized.files,
        manifest_json=normalized.manifest_json,
        content_js=normalized.content_js,
        background_js=normalized.background_js,
        require_file_names=build_require_file_names(meta.requires),
        warnings=warnings,
        checks=list(result.checks),
        analysis=result.analysis,
        exit_reason=result.exit_reason,
    )
