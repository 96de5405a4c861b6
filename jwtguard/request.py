"""Request primitives the guard needs from its host framework."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence

from .types import SourceKind

if TYPE_CHECKING:  # pragma: no cover
    from starlette.requests import Request


class AuthRequest(Protocol):
    """What the guard reads from and writes to a request."""

    async def lookup(self, kind: SourceKind, name: str) -> list[str]:
        ...

    def store(self, key: str, value: Any) -> None:
        ...

    def retrieve(self, key: str) -> Any:
        ...


def _as_list(value: str | Sequence[str]) -> list[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


@dataclass
class RequestValues:
    """In-memory request, handy outside of a web framework.

    Header names are matched case-insensitively; every other name is exact.
    """

    headers: Mapping[str, str | Sequence[str]] = field(default_factory=dict)
    query: Mapping[str, str | Sequence[str]] = field(default_factory=dict)
    path_params: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    form: Mapping[str, str] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)

    async def lookup(self, kind: SourceKind, name: str) -> list[str]:
        if kind is SourceKind.HEADER:
            wanted = name.lower()
            values: list[str] = []
            for key, value in self.headers.items():
                if key.lower() == wanted:
                    values.extend(_as_list(value))
            return values
        if kind is SourceKind.QUERY:
            return _as_list(self.query.get(name, []))
        single = {
            SourceKind.PARAM: self.path_params,
            SourceKind.COOKIE: self.cookies,
            SourceKind.FORM: self.form,
        }.get(kind, {})
        value = single.get(name)
        return [value] if value else []

    def store(self, key: str, value: Any) -> None:
        self.state[key] = value

    def retrieve(self, key: str) -> Any:
        return self.state.get(key)


class StarletteRequest:
    """Adapter exposing a Starlette/FastAPI request to the guard.

    Published values land on ``request.state``.
    """

    def __init__(self, request: "Request") -> None:
        self.request = request

    async def lookup(self, kind: SourceKind, name: str) -> list[str]:
        request = self.request
        if kind is SourceKind.HEADER:
            return request.headers.getlist(name)
        if kind is SourceKind.QUERY:
            return request.query_params.getlist(name)
        if kind is SourceKind.PARAM:
            value = request.path_params.get(name)
            if value is not None:
                value = str(value)
        elif kind is SourceKind.COOKIE:
            value = request.cookies.get(name)
        elif kind is SourceKind.FORM:
            content_type = request.headers.get("content-type", "")
            if not content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
                return []
            form = await request.form()
            value = form.get(name)
            if not isinstance(value, str):
                value = None
        else:
            value = None
        return [value] if value else []

    def store(self, key: str, value: Any) -> None:
        setattr(self.request.state, key, value)

    def retrieve(self, key: str) -> Any:
        return getattr(self.request.state, key, None)
