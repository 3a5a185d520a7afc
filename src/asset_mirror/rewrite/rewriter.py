from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from asset_mirror.cache.io import atomic_write_bytes
from asset_mirror.cache.urls import ExternalUrlClassifier, resolve_reference
from asset_mirror.fetch.sniffer import type_from_path
from asset_mirror.rewrite.scanner import RegexUrlReferenceScanner, UrlReferenceScanner

logger = logging.getLogger(__name__)

# Called with (absolute url, type or None); returns the local public URL, or None on failure.
ResolveDependency = Callable[[str, Optional[str]], Awaitable[Optional[str]]]

# Surrogate escapes let stylesheets in legacy encodings pass through byte-for-byte.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class DependencyRewriter:
    def __init__(
        self,
        *,
        classifier: ExternalUrlClassifier,
        scanner: Optional[UrlReferenceScanner] = None,
    ) -> None:
        self._classifier = classifier
        self._scanner = scanner or RegexUrlReferenceScanner()

    async def rewrite_stylesheet(self, path: Path, *, base_url: str, resolve: ResolveDependency) -> int:
        """
        Mirror the external assets a stylesheet references and point the references at the mirrors.

        References that cannot be mirrored keep pointing at their external location: absolute URIs
        stay as written and relative ones are made absolute. The file is written once, and only when
        at least one reference changed. Returns the number of changed references.
        """
        text = path.read_bytes().decode(_ENCODING, _ERRORS)

        resolved: Dict[str, Optional[str]] = {}
        pieces: list[str] = []
        cursor = 0
        replaced = 0
        for reference in self._scanner.scan(text):
            target = resolve_reference(base_url, reference.uri)
            if not self._classifier.is_external(target):
                continue

            if target not in resolved:
                resolved[target] = await resolve(target, type_from_path(target))
            local_url = resolved[target]
            if not local_url:
                if target == reference.uri:
                    continue
                # A relative reference would resolve against the mirror location.
                local_url = target

            pieces.append(text[cursor : reference.start])
            pieces.append(local_url)
            cursor = reference.end
            replaced += 1

        if not replaced:
            logger.debug("Stylesheet has no mirrored dependencies. url=%s", base_url)
            return 0

        pieces.append(text[cursor:])
        atomic_write_bytes(path, "".join(pieces).encode(_ENCODING, _ERRORS))
        logger.info(
            "Stylesheet dependencies rewritten. url=%s replaced=%d failed=%d",
            base_url,
            replaced,
            sum(1 for value in resolved.values() if not value),
        )
        return replaced
