"""UserScript metadata block parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_BLOCK_PATTERN = re.compile(
    r"//\s*==UserScript==(.*?)//\s*==/UserScript==", re.DOTALL
)
_LINE_PATTERN = re.compile(r"^\s*//\s*@(\S+)\s*(.*?)\s*$")
_SCHEME_PATTERN = re.compile(r"^https?://")
_WILDCARD_SCHEME_PATTERN = re.compile(r"^https?\*?://")

DEFAULT_NAME = "Converted Extension"
DEFAULT_VERSION = "1.0.0"
DEFAULT_RUN_AT = "document_idle"
FALLBACK_MATCH = "*://*/*"


@dataclass
class UserScriptMeta:
    name: str = DEFAULT_NAME
    description: str = ""
    version: str = DEFAULT_VERSION
    matches: list[str] = field(default_factory=list)
    exclude_matches: list[str] = field(default_factory=list)
    requires: list[str] = field(default_factory=list)
    grants: list[str] = field(default_factory=list)
    run_at: str = DEFAULT_RUN_AT
    icon: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "matches": list(self.matches),
            "excludeMatches": list(self.exclude_matches),
            "requires": list(self.requires),
            "grants": list(self.grants),
            "runAt": self.run_at,
            "icon": self.icon,
            "warnings": list(self.warnings),
        }


def glob_to_match_pattern(glob: str) -> str | None:
    """Convert an ``@include``/``@exclude`` glob into a Chrome match pattern."""
    if _SCHEME_PATTERN.match(glob) or glob.startswith("*://"):
        return glob.replace("**", "*")

    if glob.startswith("http*://"):
        return "*://" + _WILDCARD_SCHEME_PATTERN.sub("", glob).replace("**", "*")

    if "://" not in glob and not glob.startswith("/"):
        return "*://" + glob.replace("**", "*")

    return None


def normalize_run_at(run_at: str) -> str:
    return run_at.strip().replace("-", "_") or DEFAULT_RUN_AT


def parse_userscript(text: str) -> UserScriptMeta:
    meta = UserScriptMeta()

    block_match = _BLOCK_PATTERN.search(text)
    if block_match is None:
        meta.warnings.append("No ==UserScript== block found. Using defaults.")
        meta.matches.append(FALLBACK_MATCH)
        return meta

    for line in block_match.group(1).split("\n"):
        line_match = _LINE_PATTERN.match(line)
        if line_match is None:
            continue
        key, value = line_match.group(1), line_match.group(2)
        _apply_directive(meta, key, value)

    if not meta.matches:
        meta.matches.append(FALLBACK_MATCH)
        meta.warnings.append(
            f'No @match or @include found. Defaulted to "{FALLBACK_MATCH}". '
            "Please restrict this in manifest.json."
        )

    return meta


def _apply_directive(meta: UserScriptMeta, key: str, value: str) -> None:
    if key == "name":
        meta.name = value or meta.name
    elif key == "description":
        meta.description = value
    elif key == "version":
        meta.version = value or meta.version
    elif key == "match":
        if value:
            meta.matches.append(value)
    elif key in ("include", "exclude"):
        if not value:
            return
        converted = glob_to_match_pattern(value)
        if converted is None:
            meta.warnings.append(
                f'@{key} "{value}" could not be converted to a Chrome match '
                "pattern and was skipped."
            )
        elif key == "include":
            meta.matches.append(converted)
        else:
            meta.exclude_matches.append(converted)
    elif key == "exclude-match":
        if value:
            meta.exclude_matches.append(value)
    elif key == "require":
        if value:
            meta.requires.append(value)
    elif key == "grant":
        if value and value != "none":
            meta.grants.append(value)
    elif key == "run-at":
        meta.run_at = normalize_run_at(value)
    elif key in ("icon", "icon64", "iconURL"):
        if value and not meta.icon:
            meta.icon = value
