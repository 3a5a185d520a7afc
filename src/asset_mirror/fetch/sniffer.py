from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from asset_mirror.cache.locations import UNKNOWN_TYPE
from asset_mirror.cache.urls import url_suffix

logger = logging.getLogger(__name__)

KNOWN_TYPES = frozenset({"css", "js", "ttf", "otf", "woff", "woff2", "jpeg", "jpg", "png", "gif"})

CONTENT_TYPES = {
    "text/css": "css",
    "text/javascript": "js",
    "application/javascript": "js",
    "font/ttf": "ttf",
    "font/otf": "otf",
    "font/woff": "woff",
    "font/woff2": "woff2",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
}


def type_from_path(url: str) -> Optional[str]:
    suffix = url_suffix(url)
    if suffix in KNOWN_TYPES:
        return suffix
    return None


def type_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    mime = content_type.split(";", 1)[0].strip().lower()
    return CONTENT_TYPES.get(mime)


async def detect_type(session: aiohttp.ClientSession, url: str) -> str:
    """
    Determine the file type of the asset served at ``url``.

    The URL path is inspected first. Font CDNs often serve assets from extension-less paths,
    so when the path is inconclusive a HEAD request is sent and its Content-Type is mapped
    instead. Falls back to the generic ``tmp`` type.
    """
    asset_type = type_from_path(url)
    if asset_type:
        return asset_type

    try:
        async with session.head(url, allow_redirects=True) as response:
            asset_type = type_from_content_type(response.headers.get("Content-Type"))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.info("HEAD request for content type failed. url=%s error=%s", url, e)
        return UNKNOWN_TYPE

    if asset_type:
        logger.debug("Asset type detected from content type. url=%s type=%s", url, asset_type)
        return asset_type
    return UNKNOWN_TYPE
