"""Custom exceptions for jwtguard."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class JWTGuardException(Exception):
    """Base class for jwtguard exceptions."""

    message: str
    http_status: int = 400
    details: dict[str, object] | None = None

    def __str__(self) -> str:  # pragma: no cover - dataclass str wrapper
        return self.message


@dataclass
class Unauthorized(JWTGuardException):
    """Raised when a request cannot be authenticated."""

    http_status: int = 401
    internal: BaseException | None = None

    def describe(self) -> str:
        text = f"code={self.http_status}, message={self.message}"
        if self.internal is not None:
            text += f", internal={self.internal}"
        return text


@dataclass
class BadConfig(JWTGuardException):
    """Raised when a guard configuration cannot be built."""

    http_status: int = 500


class TokenError(Exception):
    """Wraps the underlying cause of a failed authentication.

    ``str()`` is the cause message, unaltered.
    """

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause

    def __str__(self) -> str:
        return str(self.cause)


class TokenExtractionError(TokenError):
    """No usable credential could be extracted from the request."""

    # Every extraction failure means the credential is missing.
    is_missing = True


class TokenParsingError(TokenError):
    """A credential was found but failed decoding, key lookup or verification."""

    is_missing = False


class ExtractionFailure(Exception):
    """Diagnostic produced by a single extractor that found nothing usable."""


class KeyResolutionError(Exception):
    """No verification key could be resolved for a token."""
