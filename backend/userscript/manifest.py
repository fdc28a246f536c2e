"""MV3 manifest generation and sanitizing."""

from __future__ import annotations

import re
from typing import Any

from userscript.parser import UserScriptMeta

DEFAULT_ICON_PATHS: dict[str, str] = {
    "16": "icons/icon16.png",
    "48": "icons/icon48.png",
    "128": "icons/icon128.png",
}

_STORAGE = {"permissions": ["storage"]}
_ALL_URLS = {"host_permissions": ["<all_urls>"]}
_NOTIFICATIONS = {"permissions": ["notifications"]}
_CLIPBOARD = {"permissions": ["clipboardWrite"]}
_TABS = {"permissions": ["tabs"]}

GRANT_PERMISSIONS: dict[str, dict[str, list[str]]] = {
    "GM_xmlhttpRequest": _ALL_URLS,
    "GM.xmlHttpRequest": _ALL_URLS,
    "GM_setValue": _STORAGE,
    "GM_getValue": _STORAGE,
    "GM.setValue": _STORAGE,
    "GM.getValue": _STORAGE,
    "GM_deleteValue": _STORAGE,
    "GM.deleteValue": _STORAGE,
    "GM_listValues": _STORAGE,
    "GM.listValues": _STORAGE,
    "GM_notification": _NOTIFICATIONS,
    "GM.notification": _NOTIFICATIONS,
    "GM_setClipboard": _CLIPBOARD,
    "GM.setClipboard": _CLIPBOARD,
    "GM_openInTab": _TABS,
    "GM.openInTab": _TABS,
}

_REMOTE_ICON_PATTERN = re.compile(r"^(https?://|data:)", re.IGNORECASE)

MANIFEST_VERSION_NOTE = "manifest_version was corrected to 3."
ICONS_FIXED_NOTE = (
    "Manifest icons were rewritten to local icons/icon16|48|128.png so the "
    'extension loads without an icons["128"] error.'
)


def build_manifest(
    meta: UserScriptMeta,
    *,
    has_background: bool,
    require_files: list[str],
) -> dict[str, Any]:
    permissions: list[str] = []
    host_permissions: list[str] = []
    for grant in meta.grants:
        entry = GRANT_PERMISSIONS.get(grant)
        if entry is None:
            continue
        for permission in entry.get("permissions", []):
            if permission not in permissions:
                permissions.append(permission)
        for permission in entry.get("host_permissions", []):
            if permission not in host_permissions:
                host_permissions.append(permission)

    content_script: dict[str, Any] = {
        "matches": list(meta.matches),
        "js": [*require_files, "content.js"],
        "run_at": meta.run_at,
    }
    if meta.exclude_matches:
        content_script["exclude_matches"] = list(meta.exclude_matches)

    manifest: dict[str, Any] = {
        "manifest_version": 3,
        "name": meta.name,
        "description": meta.description,
        "version": meta.version,
        "action": {},
        "content_scripts": [content_script],
        "icons": dict(DEFAULT_ICON_PATHS),
    }
    if permissions:
        manifest["permissions"] = permissions
    if host_permissions:
        manifest["host_permissions"] = host_permissions
    if has_background:
        manifest["background"] = {"service_worker": "background.js", "type": "module"}
    if require_files:
        manifest["web_accessible_resources"] = [
            {"resources": list(require_files), "matches": list(meta.matches)}
        ]
    return manifest


def _is_local_icon_path(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    stripped = value.strip()
    return bool(stripped) and _REMOTE_ICON_PATTERN.match(stripped) is None


def normalize_manifest_for_packaging(raw: Any) -> tuple[dict[str, Any], list[str]]:
    """Force an MV3 manifest that Chrome will load with the generated icons.

    Non-object input is replaced with an empty manifest before fixing. Icon
    entries pointing at remote or ``data:`` URLs are swapped for the local
    placeholder paths written by the packager.
    """
    notes: list[str] = []
    manifest: dict[str, Any] = dict(raw) if isinstance(raw, dict) else {}

    if manifest.get("manifest_version") != 3:
        manifest["manifest_version"] = 3
        notes.append(MANIFEST_VERSION_NOTE)

    incoming_icons = manifest.get("icons")
    if not isinstance(incoming_icons, dict):
        incoming_icons = {}
    icons: dict[str, str] = {}
    icons_fixed = False
    for size, default_path in DEFAULT_ICON_PATHS.items():
        candidate = incoming_icons.get(size)
        if _is_local_icon_path(candidate):
            icons[size] = candidate
        else:
            icons[size] = default_path
            icons_fixed = True
    manifest["icons"] = icons

    action = manifest.get("action")
    action = dict(action) if isinstance(action, dict) else {}
    default_icon = action.get("default_icon")
    if isinstance(default_icon, str):
        if not _is_local_icon_path(default_icon):
            action["default_icon"] = icons["48"]
            icons_fixed = True
    elif isinstance(default_icon, dict):
        fixed: dict[str, str] = {}
        for size in DEFAULT_ICON_PATHS:
            candidate = default_icon.get(size)
            if _is_local_icon_path(candidate):
                fixed[size] = candidate
            else:
                fixed[size] = icons[size]
                icons_fixed = True
        action["default_icon"] = fixed
    else:
        action["default_icon"] = dict(icons)
        icons_fixed = True
    manifest["action"] = action

    if icons_fixed:
        notes.append(ICONS_FIXED_NOTE)
    return manifest, notes
