from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import urljoin, urlsplit


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


class ExternalUrlClassifier:
    """Decides whether a URL points to another origin than the site itself."""

    def __init__(self, site_url: str) -> None:
        self._site_host = _hostname(site_url if "//" in site_url else f"//{site_url}")
        if not self._site_host:
            raise ValueError(f"Site URL has no host: {site_url}")

    def is_external(self, url: str) -> bool:
        url = url.strip()
        if url.startswith("/") and not url.startswith("//"):
            return False
        host = _hostname(url)
        if not host:
            # Relative references and data: URIs stay on the current page's origin.
            return False
        return host != self._site_host


def resolve_reference(base_url: str, reference: str) -> str:
    """
    Resolve a reference found inside a mirrored asset.

    Path-absolute references are kept as they are, since they are served by the site itself.
    Other relative references point next to the asset they were found in.
    """
    reference = reference.strip()
    if not reference or reference.startswith("#"):
        return reference
    if reference.startswith("/") and not reference.startswith("//"):
        return reference
    if urlsplit(reference).scheme:
        return reference
    return urljoin(base_url, reference)


def url_suffix(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        return ""
    return PurePosixPath(path).suffix.lstrip(".").lower()
