from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Protocol


@dataclass(frozen=True, slots=True)
class UrlReference:
    """A ``url(...)`` reference; ``start``/``end`` delimit the bare URI inside the source text."""

    uri: str
    start: int
    end: int


class UrlReferenceScanner(Protocol):
    def scan(self, text: str) -> Iterator[UrlReference]:
        ...


# url( + optionally quoted URI + ), with the URI captured without its quotes.
_URL_PATTERN = re.compile(
    r"""(?<![\w-])url\(\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^"')\s][^)]*?))\s*\)""",
    re.IGNORECASE,
)


class RegexUrlReferenceScanner:
    """Lightweight text scan for ``url(...)`` tokens; no CSS parsing is attempted."""

    def scan(self, text: str) -> Iterator[UrlReference]:
        for match in _URL_PATTERN.finditer(text):
            for group in ("dq", "sq", "bare"):
                uri = match.group(group)
                if uri is not None:
                    yield UrlReference(uri=uri, start=match.start(group), end=match.end(group))
                    break
