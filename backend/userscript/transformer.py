"""Static GM_* to MV3 rewriting used by the deterministic shim mode."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Literal

from userscript import shims
from userscript.parser import UserScriptMeta

ShimAction = Literal["shimmed", "rewritten", "stubbed"]


@dataclass(frozen=True)
class ShimLogEntry:
    api: str
    action: ShimAction
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {"api": self.api, "action": self.action, "detail": self.detail}


@dataclass(frozen=True)
class _ShimGroup:
    label: str
    names: tuple[str, ...]
    content_shim: str
    background_handler: str | None = None


@dataclass
class TransformResult:
    content_js: str
    needs_background: bool
    shim_log: list[ShimLogEntry] = field(default_factory=list)
    background_handlers: list[str] = field(default_factory=list)


_SHIM_GROUPS: tuple[_ShimGroup, ...] = (
    _ShimGroup(
        label="GM storage",
        names=("GM_setValue", "GM_getValue", "GM_deleteValue", "GM_listValues"),
        content_shim=shims.GM_STORAGE_SHIM,
    ),
    _ShimGroup(
        label="GM_addStyle",
        names=("GM_addStyle",),
        content_shim=shims.GM_STYLE_SHIM,
    ),
    _ShimGroup(
        label="GM_xmlhttpRequest",
        names=("GM_xmlhttpRequest",),
        content_shim=shims.GM_XMLHTTPREQUEST_CONTENT_SHIM,
        background_handler=shims.GM_XMLHTTPREQUEST_BACKGROUND_HANDLER,
    ),
    _ShimGroup(
        label="GM_notification",
        names=("GM_notification",),
        content_shim=shims.GM_NOTIFICATION_SHIM,
        background_handler=shims.GM_NOTIFICATION_BACKGROUND_HANDLER,
    ),
    _ShimGroup(
        label="GM_setClipboard",
        names=("GM_setClipboard",),
        content_shim=shims.GM_SET_CLIPBOARD_SHIM,
    ),
    _ShimGroup(
        label="GM_openInTab",
        names=("GM_openInTab",),
        content_shim=shims.GM_OPEN_IN_TAB_SHIM,
        background_handler=shims.GM_OPEN_IN_TAB_BACKGROUND_HANDLER,
    ),
    _ShimGroup(
        label="GM_log",
        names=("GM_log",),
        content_shim=shims.GM_LOG_SHIM,
    ),
)

# GM4 promise-style names; awaiting a plain value is harmless, so a rename is enough.
_GM4_RENAMES: dict[str, str] = {
    "GM.getValue": "GM_getValue",
    "GM.setValue": "GM_setValue",
    "GM.deleteValue": "GM_deleteValue",
    "GM.listValues": "GM_listValues",
    "GM.xmlHttpRequest": "GM_xmlhttpRequest",
    "GM.notification": "GM_notification",
    "GM.setClipboard": "GM_setClipboard",
    "GM.openInTab": "GM_openInTab",
    "GM.addStyle": "GM_addStyle",
    "GM.info": "GM_info",
}

_UNSUPPORTED_APIS: tuple[str, ...] = (
    "GM_registerMenuCommand",
    "GM_unregisterMenuCommand",
    "GM_getResourceText",
    "GM_getResourceURL",
    "GM_download",
    "GM_cookie",
)

_UNSAFE_WINDOW_PATTERN = re.compile(r"\bunsafeWindow\b")


def _uses(name: str, text: str) -> bool:
    return re.search(rf"(?<![\w$.]){re.escape(name)}\b", text) is not None


def _gm4_alias(name: str) -> str:
    return "GM." + name[len("GM_") :]


def transform_script(text: str, meta: UserScriptMeta) -> TransformResult:
    body = text
    log: list[ShimLogEntry] = []

    for gm4_name, legacy_name in _GM4_RENAMES.items():
        pattern = re.compile(rf"(?<![\w$]){re.escape(gm4_name)}\b")
        body, count = pattern.subn(legacy_name, body)
        if count:
            log.append(
                ShimLogEntry(
                    api=gm4_name,
                    action="rewritten",
                    detail=f"{count} call(s) rewritten to {legacy_name}",
                )
            )

    body, unsafe_count = _UNSAFE_WINDOW_PATTERN.subn("window", body)
    if unsafe_count:
        log.append(
            ShimLogEntry(
                api="unsafeWindow",
                action="rewritten",
                detail="content scripts share the DOM but not page globals; using window",
            )
        )

    grants = set(meta.grants)
    prelude: list[str] = []
    handlers: list[str] = []

    for group in _SHIM_GROUPS:
        used = [
            name
            for name in group.names
            if _uses(name, body) or name in grants or _gm4_alias(name) in grants
        ]
        if not used:
            continue
        prelude.append(group.content_shim.strip())
        if group.background_handler is not None:
            handlers.append(group.background_handler.strip())
        where = "service worker relay" if group.background_handler else "content script"
        log.append(
            ShimLogEntry(
                api=group.label,
                action="shimmed",
                detail=f"{', '.join(used)} via {where}",
            )
        )

    if _uses("GM_info", body) or "GM_info" in grants or "GM.info" in grants:
        prelude.append(
            (
                shims.GM_INFO_SHIM_TEMPLATE
                % {
                    "name": json.dumps(meta.name),
                    "version": json.dumps(meta.version),
                    "description": json.dumps(meta.description),
                }
            ).strip()
        )
        log.append(ShimLogEntry(api="GM_info", action="shimmed", detail="static metadata object"))

    for name in _UNSUPPORTED_APIS:
        if not (_uses(name, body) or name in grants):
            continue
        prelude.append(
            f"function {name}() {{ console.warn('[script2extension] {name} "
            "is not supported in MV3 shim mode'); }"
        )
        log.append(
            ShimLogEntry(
                api=name,
                action="stubbed",
                detail="no MV3 equivalent; replaced with a warning stub",
            )
        )

    parts = ["// Generated by script2extension (shim mode)"]
    parts.extend(prelude)
    parts.append(f"(function() {{\n{body.rstrip()}\n}})();")
    return TransformResult(
        content_js="\n\n".join(parts) + "\n",
        needs_background=bool(handlers),
        shim_log=log,
        background_handlers=handlers,
    )


def build_background_script(result: TransformResult) -> str | None:
    if not result.needs_background:
        return None
    parts = ["// Generated by script2extension: GM_* relay handlers"]
    parts.extend(result.background_handlers)
    return "\n\n".join(parts) + "\n"
