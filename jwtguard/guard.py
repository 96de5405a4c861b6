"""Core guard middleware."""

from __future__ import annotations

from contextlib import aclosing
from functools import wraps
from typing import Any, Awaitable, Callable

from .audit import AuditLogger
from .config import Config
from .exceptions import (
    ExtractionFailure,
    TokenError,
    TokenExtractionError,
    Unauthorized,
)
from .extractors import ExtractorChain, create_extractors
from .keys import resolver_for
from .request import AuthRequest
from .types import AuthDecision
from .validator import CustomValidator, JWTValidator, TokenValidator, maybe_await

GuardedHandler = Callable[..., Awaitable[Any]]

MISSING_MESSAGE = "missing or malformed credential"
INVALID_MESSAGE = "invalid or expired credential"


def default_error(error: TokenError) -> Unauthorized:
    """Translate a classified error into the 401 returned to the client."""

    if isinstance(error, TokenExtractionError):
        return Unauthorized(message=MISSING_MESSAGE, internal=error)
    return Unauthorized(message=INVALID_MESSAGE, internal=error)


class JWTGuard:
    """Authenticates requests according to a :class:`Config`.

    Everything is compiled in ``__init__``; :meth:`authenticate` keeps its
    state in locals so one guard can serve any number of concurrent requests.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.extractors = tuple(create_extractors(config.token_lookup, config.token_lookup_funcs))
        self.validator: TokenValidator
        if config.parse_token_func is not None:
            self.validator = CustomValidator(config.parse_token_func)
        else:
            self.validator = JWTValidator(
                resolver_for(config),
                claims_factory=config.claims_factory,
                leeway=config.leeway,
                audience=config.audience,
            )
        self.audit = AuditLogger(config.logging)

    async def authenticate(self, request: AuthRequest) -> AuthDecision:
        config = self.config
        if config.skipper is not None and await maybe_await(config.skipper(request)):
            decision = AuthDecision(allowed=True, reason="skipped")
            self.audit.log(decision)
            return decision

        chain = ExtractorChain(self.extractors, request)
        error: TokenError
        source = None
        async with aclosing(chain.candidates()) as candidates:
            async for candidate in candidates:
                source = candidate.source
                if config.before_func is not None:
                    await maybe_await(config.before_func(request))
                try:
                    claims = await self.validator.validate(request, candidate.value)
                except TokenError as exc:
                    # a credential that was present but invalid is final
                    error = exc
                    break
                request.store(config.context_key, claims)
                if config.success_handler is not None:
                    await maybe_await(config.success_handler(request))
                decision = AuthDecision(allowed=True, reason="authenticated", claims=claims, source=source)
                self.audit.log(decision)
                return decision
            else:
                error = TokenExtractionError(chain.last_failure or ExtractionFailure("missing value"))

        decision = await self._handle_error(request, error)
        decision.source = source
        self.audit.log(decision)
        return decision

    async def _handle_error(self, request: AuthRequest, error: TokenError) -> AuthDecision:
        config = self.config
        if config.error_handler is None:
            return AuthDecision(allowed=False, reason="rejected", error=default_error(error))
        replacement = await maybe_await(config.error_handler(request, error))
        if replacement is None:
            if config.continue_on_ignored_error:
                return AuthDecision(allowed=True, reason="ignored", error=error)
            return AuthDecision(allowed=False, reason="rejected", error=default_error(error))
        return AuthDecision(allowed=False, reason="rejected", error=replacement)

    def wrap_handler(self, func: GuardedHandler | None = None):
        """Wrap ``async def handler(request, ...)`` so it only runs when allowed."""

        def decorator(inner: GuardedHandler) -> GuardedHandler:
            @wraps(inner)
            async def wrapper(request: AuthRequest, *args: Any, **kwargs: Any) -> Any:
                decision = await self.authenticate(request)
                if not decision.allowed:
                    raise decision.error  # type: ignore[misc]
                return await inner(request, *args, **kwargs)

            return wrapper

        if func is not None:
            return decorator(func)
        return decorator


def with_config(config: Config | None = None, **options: Any) -> JWTGuard:
    """Build a guard from a config or keyword options, raising ``BadConfig``."""

    if config is None:
        config = Config.from_dict(options)
    elif options:
        config = Config.from_dict({**_fields(config), **options})
    return JWTGuard(config)


def jwt_guard(signing_key: Any) -> JWTGuard:
    """Guard with default settings around a single HMAC key."""

    return with_config(signing_key=signing_key)


def _fields(config: Config) -> dict[str, Any]:
    return {name: getattr(config, name) for name in Config.model_fields}
