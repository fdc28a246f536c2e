"""Output normalization and zip packaging for generated extensions."""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, replace
from urllib.parse import urlparse

import httpx

from converter.models import MANIFEST_PATH, GeneratedFile
from userscript.icons import generate_icons
from userscript.manifest import normalize_manifest_for_packaging

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
FETCH_TIMEOUT_SECONDS = 20.0
NOTES_PATH = "NOTES.md"


class PackagingError(ValueError):
    pass


def sanitize_require_name(url: str, index: int) -> str:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return f"require_{index}.js"
    base = parsed.path.rsplit("/", 1)[-1] or f"require_{index}.js"
    return f"require_{index}_{_UNSAFE_NAME_CHARS.sub('_', base)}"


def build_require_file_names(requires: list[str]) -> list[str]:
    return [sanitize_require_name(url, index) for index, url in enumerate(requires)]


def safe_archive_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name) or "extension"


@dataclass(frozen=True)
class NormalizedFiles:
    files: list[GeneratedFile]
    manifest_json: str
    content_js: str
    background_js: str | None
    notes: list[str]


def _find_manifest(files: list[GeneratedFile]) -> GeneratedFile | None:
    for file in files:
        if file.path == MANIFEST_PATH:
            return file
    for file in files:
        if file.kind == "manifest":
            return file
    return None


def normalize_agent_files(files: list[GeneratedFile]) -> NormalizedFiles:
    """Move the manifest to ``manifest.json`` and sanitize it for loading.

    A manifest that is not valid JSON is kept verbatim with a note.
    """
    notes: list[str] = []
    by_path = {file.path: file for file in files}

    manifest_file = _find_manifest(files)
    manifest_json = "{}"
    if manifest_file is not None:
        if manifest_file.path != MANIFEST_PATH:
            del by_path[manifest_file.path]
            notes.append(
                f"Manifest file path was normalized from {manifest_file.path} "
                f"to {MANIFEST_PATH}."
            )
        try:
            parsed = json.loads(manifest_file.content)
        except ValueError:
            manifest_json = manifest_file.content
            notes.append("Agent manifest.json could not be parsed; kept the original content.")
        else:
            manifest, manifest_notes = normalize_manifest_for_packaging(parsed)
            manifest_json = json.dumps(manifest, indent=2, ensure_ascii=False)
            notes.extend(manifest_notes)
        by_path[MANIFEST_PATH] = replace(
            manifest_file,
            path=MANIFEST_PATH,
            content=manifest_json,
            kind="manifest",
            required=True,
        )

    ordered = sorted(by_path.values(), key=lambda file: file.path)
    content_file = next((f for f in ordered if f.kind == "content"), None) or by_path.get(
        "content.js"
    )
    background_file = next(
        (f for f in ordered if f.kind == "background"), None
    ) or by_path.get("background.js")

    return NormalizedFiles(
        files=ordered,
        manifest_json=manifest_json,
        content_js=content_file.content if content_file else "",
        background_js=background_file.content if background_file else None,
        notes=notes,
    )


async def _try_fetch_text(client: httpx.AsyncClient, url: str) -> str | None:
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        logger.warning("Fetching %s failed: %s", url, exc)
        return None
    if response.status_code >= 400:
        logger.warning("Fetching %s returned HTTP %s", url, response.status_code)
        return None
    return response.text


def render_notes(notes: list[str]) -> str:
    sections = [f"## Issue {index}\n\n{note}" for index, note in enumerate(notes, start=1)]
    return "# Manual Steps Required\n\n" + "\n\n".join(sections) + "\n"


async def build_zip(
    files: list[GeneratedFile],
    *,
    require_urls: list[str],
    icon_url: str | None,
    name: str,
    http_client: httpx.AsyncClient | None = None,
) -> bytes:
    """Package generated files into a loadable extension archive.

    ``@require`` scripts are downloaded unless a file with the same name was
    already generated; placeholder icons fill any missing ``icons/iconN.png``.
    Everything that needs a manual step lands in ``NOTES.md``.
    """
    manifest_file = _find_manifest(files)
    if manifest_file is None:
        raise PackagingError("No manifest.json found in generated files.")

    notes: list[str] = []
    entries: dict[str, str | bytes] = {}

    try:
        parsed = json.loads(manifest_file.content)
    except ValueError:
        entries[MANIFEST_PATH] = manifest_file.content
        notes.append(
            "manifest.json could not be parsed and was written as-is. "
            "Check its format if the extension fails to load."
        )
    else:
        manifest, manifest_notes = normalize_manifest_for_packaging(parsed)
        entries[MANIFEST_PATH] = json.dumps(manifest, indent=2, ensure_ascii=False)
        notes.extend(manifest_notes)

    for file in files:
        if file.path in (MANIFEST_PATH, manifest_file.path):
            continue
        entries[file.path] = file.content

    generated_paths = {file.path for file in files}
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(
        timeout=FETCH_TIMEOUT_SECONDS, follow_redirects=True
    )
    try:
        for index, url in enumerate(require_urls):
            filename = sanitize_require_name(url, index)
            if filename in generated_paths:
                continue
            text = await _try_fetch_text(client, url)
            if text is None:
                notes.append(
                    f"Could not fetch @require URL: {url}\n"
                    f'Please download it manually and save as "{filename}" '
                    "next to manifest.json."
                )
            else:
                entries[filename] = text

        # Remote icons are only probed; the package always ships local PNGs.
        if icon_url and await _try_fetch_text(client, icon_url) is None:
            notes.append(f"Could not fetch icon URL: {icon_url}")
    finally:
        if owns_client:
            await client.aclose()

    for size, png in generate_icons(name).items():
        path = f"icons/icon{size}.png"
        if path not in generated_paths:
            entries[path] = png

    if notes:
        entries[NOTES_PATH] = render_notes(notes)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path, payload in entries.items():
            archive.writestr(path, payload)
    return buffer.getvalue()
