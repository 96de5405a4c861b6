"""Credential extraction from requests.

A lookup string such as ``"header:Authorization:Bearer ,query:jwt"`` is
compiled once into a list of extractors. Each extractor reads one location
of a request and returns the credential strings found there.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Sequence

from .exceptions import BadConfig, ExtractionFailure
from .request import AuthRequest
from .types import Candidate, LookupSource, SourceKind

# Upper bound on values taken from one multi-valued source.
EXTRACTOR_LIMIT = 20

DEFAULT_AUTH_SCHEME = "Bearer "

DEFAULT_TOKEN_LOOKUP = "header:Authorization:Bearer "

ExtractorFunc = Callable[[Any], "Sequence[str] | Awaitable[Sequence[str]]"]

_MISSING_MESSAGES = {
    SourceKind.HEADER: "missing value in header",
    SourceKind.QUERY: "missing value in the query string",
    SourceKind.PARAM: "missing value in path params",
    SourceKind.COOKIE: "missing value in cookies",
    SourceKind.FORM: "missing value in the form",
    SourceKind.CUSTOM: "missing value from custom extractor",
}


def parse_token_lookup(lookup: str) -> list[LookupSource]:
    """Parse ``source:name[:prefix]`` entries separated by commas.

    A blank lookup yields no sources.
    """

    sources: list[LookupSource] = []
    if not lookup.strip():
        return sources
    for entry in lookup.split(","):
        entry = entry.lstrip()
        parts = entry.split(":", 2)
        if len(parts) < 2:
            raise BadConfig(message=f"extractor source for lookup could not be split into needed parts: {entry}")
        kind_name, name = parts[0].strip().lower(), parts[1].strip()
        try:
            kind = SourceKind(kind_name)
        except ValueError:
            raise BadConfig(message=f"unknown extractor source for lookup: {entry}") from None
        if kind is SourceKind.CUSTOM:
            raise BadConfig(message=f"custom extractors are passed as functions, not lookups: {entry}")
        if not name:
            raise BadConfig(message=f"extractor source for lookup has no name: {entry}")
        prefix = parts[2] if len(parts) == 3 else None
        if kind is SourceKind.HEADER:
            if prefix is None:
                prefix = DEFAULT_AUTH_SCHEME if name.lower() == "authorization" else ""
        elif prefix:
            raise BadConfig(message=f"only header lookups accept a value prefix: {entry}")
        sources.append(LookupSource(kind=kind, name=name, prefix=prefix or ""))
    return sources


@dataclass(frozen=True)
class Extractor:
    """Reads candidate values for one source."""

    source: LookupSource
    func: ExtractorFunc | None = None

    async def __call__(self, request: AuthRequest) -> list[str]:
        if self.func is not None:
            return await self._call_custom(request)
        values = list(await request.lookup(self.source.kind, self.source.name))[:EXTRACTOR_LIMIT]
        if self.source.kind is SourceKind.HEADER:
            return self._strip_prefix(values)
        values = [value for value in values if value]
        if not values:
            raise ExtractionFailure(_MISSING_MESSAGES[self.source.kind])
        if self.source.kind in (SourceKind.PARAM, SourceKind.COOKIE, SourceKind.FORM):
            return values[:1]
        return values

    def _strip_prefix(self, values: list[str]) -> list[str]:
        if not values:
            raise ExtractionFailure(_MISSING_MESSAGES[SourceKind.HEADER])
        prefix = self.source.prefix
        if not prefix:
            found = [value for value in values if value]
            if not found:
                raise ExtractionFailure(_MISSING_MESSAGES[SourceKind.HEADER])
            return found
        size = len(prefix)
        found = [value[size:] for value in values if len(value) > size and value[:size].lower() == prefix.lower()]
        if not found:
            raise ExtractionFailure("invalid value in header")
        return found

    async def _call_custom(self, request: AuthRequest) -> list[str]:
        try:
            result = self.func(request)
            if inspect.isawaitable(result):
                result = await result
        except ExtractionFailure:
            raise
        except Exception as exc:
            raise ExtractionFailure(str(exc)) from exc
        values = [value for value in list(result or [])[:EXTRACTOR_LIMIT] if value]
        if not values:
            raise ExtractionFailure(_MISSING_MESSAGES[SourceKind.CUSTOM])
        return values


def create_extractors(lookup: str, funcs: Iterable[ExtractorFunc] = ()) -> list[Extractor]:
    """Compile custom functions followed by the lookup string sources.

    A blank lookup falls back to the default one unless functions are given.
    """

    funcs = tuple(funcs)
    if not lookup.strip() and not funcs:
        lookup = DEFAULT_TOKEN_LOOKUP
    extractors = [
        Extractor(LookupSource(kind=SourceKind.CUSTOM, name=getattr(func, "__name__", "extractor")), func)
        for func in funcs
    ]
    extractors.extend(Extractor(source) for source in parse_token_lookup(lookup))
    return extractors


class ExtractorChain:
    """Walks extractors in order for a single request."""

    def __init__(self, extractors: Sequence[Extractor], request: AuthRequest) -> None:
        self._extractors = extractors
        self._request = request
        self.last_failure: ExtractionFailure | None = None

    async def candidates(self) -> AsyncIterator[Candidate]:
        for extractor in self._extractors:
            try:
                values = await extractor(self._request)
            except ExtractionFailure as exc:
                self.last_failure = exc
                continue
            for value in values:
                yield Candidate(value=value, source=extractor.source)
