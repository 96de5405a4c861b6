"""Shared data structures for jwtguard."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class SourceKind(str, Enum):
    HEADER = "header"
    QUERY = "query"
    PARAM = "param"
    COOKIE = "cookie"
    FORM = "form"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class LookupSource:
    """A named location in a request that may carry a credential."""

    kind: SourceKind
    name: str
    prefix: str = ""

    def __str__(self) -> str:
        if self.prefix:
            return f"{self.kind.value}:{self.name}:{self.prefix}"
        return f"{self.kind.value}:{self.name}"


@dataclass(frozen=True, slots=True)
class Candidate:
    """A credential string together with the source it was read from."""

    value: str
    source: LookupSource


@dataclass(frozen=True, slots=True)
class TokenHeader:
    """Unverified JOSE header of a token."""

    alg: str
    kid: Optional[Any] = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenHeader":
        return cls(alg=str(data.get("alg", "")), kid=data.get("kid"), fields=dict(data))


@dataclass(slots=True)
class AuthDecision:
    """Result of running the guard against one request."""

    allowed: bool
    reason: str
    claims: Any = None
    error: Optional[BaseException] = None
    source: Optional[LookupSource] = None
