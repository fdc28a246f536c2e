"""Greasy Fork script import."""

from __future__ import annotations

import logging
import re
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

GREASY_FORK_UPDATE_HOST = "https://update.greasyfork.org"
DEFAULT_TIMEOUT_SECONDS = 20.0

_GREASY_FORK_PATTERN = re.compile(r"greasyfork\.org")
_SCRIPT_ID_PATTERN = re.compile(r"/scripts/(\d+)")
_META_NAME_PATTERN = re.compile(r"//\s*@name\s+(.+)")
# Characters encodeURIComponent leaves untouched beyond quote()'s defaults.
_URI_COMPONENT_SAFE = "!'()*"


class FetchError(RuntimeError):
    pass


def is_greasy_fork_url(url: str) -> bool:
    return _GREASY_FORK_PATTERN.search(url) is not None


def extract_script_id(url: str) -> str | None:
    match = _SCRIPT_ID_PATTERN.search(url)
    return match.group(1) if match else None


def parse_name_from_meta(meta_text: str) -> str | None:
    match = _META_NAME_PATTERN.search(meta_text)
    return match.group(1).strip() if match else None


async def _get_text(client: httpx.AsyncClient, url: str, label: str) -> str:
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        raise FetchError(f"Failed to fetch {label}: {exc}") from exc
    if response.status_code >= 400:
        raise FetchError(f"Failed to fetch {label} ({response.status_code}): {url}")
    return response.text


async def fetch_from_greasy_fork(
    url: str, *, client: httpx.AsyncClient | None = None
) -> str:
    """Download the full ``.user.js`` source for a Greasy Fork script page.

    The script name comes from ``<id>.meta.js`` because the download URL is
    keyed on it.
    """
    script_id = extract_script_id(url)
    if script_id is None:
        raise FetchError(
            "Could not extract script ID from URL. "
            "Expected format: greasyfork.org/scripts/{ID}"
        )

    owns_client = client is None
    http = client or httpx.AsyncClient(
        timeout=DEFAULT_TIMEOUT_SECONDS, follow_redirects=True
    )
    try:
        meta_url = f"{GREASY_FORK_UPDATE_HOST}/scripts/{script_id}.meta.js"
        meta_text = await _get_text(http, meta_url, "meta.js")
        name = parse_name_from_meta(meta_text)
        if not name:
            raise FetchError("Could not parse @name from meta.js")

        script_url = (
            f"{GREASY_FORK_UPDATE_HOST}/scripts/{script_id}/"
            f"{quote(name, safe=_URI_COMPONENT_SAFE)}.user.js"
        )
        logger.info("Fetching Greasy Fork script %s (%s)", script_id, name)
        return await _get_text(http, script_url, "script")
    finally:
        if owns_client:
            await http.aclose()
