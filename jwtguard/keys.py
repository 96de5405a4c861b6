"""Verification key resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Protocol

from .exceptions import KeyResolutionError
from .types import TokenHeader

if TYPE_CHECKING:  # pragma: no cover
    from .config import Config

KeyFunc = Callable[[TokenHeader], "Any | Awaitable[Any]"]


class KeyResolver(Protocol):
    """Returns the key a token must be verified with."""

    def resolve(self, header: TokenHeader) -> Any:
        ...


def _check_method(header: TokenHeader, signing_method: str) -> None:
    if header.alg != signing_method:
        raise KeyResolutionError(f"unexpected jwt signing method={header.alg}")


@dataclass(frozen=True)
class StaticKey:
    """One key for every token, whatever its key id."""

    key: Any
    signing_method: str = "HS256"

    def resolve(self, header: TokenHeader) -> Any:
        _check_method(header, self.signing_method)
        return self.key


@dataclass(frozen=True)
class KeyedMap:
    """Selects the key by the ``kid`` header of the token."""

    keys: Mapping[str, Any] = field(default_factory=dict)
    signing_method: str = "HS256"

    def resolve(self, header: TokenHeader) -> Any:
        _check_method(header, self.signing_method)
        if not isinstance(header.kid, str) or not header.kid:
            raise KeyResolutionError("invalid key id")
        try:
            return self.keys[header.kid]
        except KeyError:
            raise KeyResolutionError(f"unknown key id={header.kid}") from None


@dataclass(frozen=True)
class CustomKeyResolver:
    """Caller supplied resolution, used as is."""

    func: KeyFunc

    def resolve(self, header: TokenHeader) -> Any:
        return self.func(header)


def resolver_for(config: "Config") -> KeyResolver:
    if config.key_func is not None:
        return CustomKeyResolver(config.key_func)
    if config.signing_keys:
        return KeyedMap(dict(config.signing_keys), config.signing_method)
    return StaticKey(config.signing_key, config.signing_method)
