from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from jwtguard.config import Config
from jwtguard.exceptions import (
    BadConfig,
    JWTGuardException,
    TokenExtractionError,
    TokenParsingError,
    Unauthorized,
)
from jwtguard.guard import JWTGuard, jwt_guard, with_config
from jwtguard.request import RequestValues
from jwtguard.types import SourceKind


def bearer(token: str) -> RequestValues:
    return RequestValues(headers={"Authorization": f"Bearer {token}"})


class Calls:
    def __init__(self) -> None:
        self.names: list[str] = []

    def hook(self, name: str, result: Any = None) -> Callable[..., Any]:
        def _hook(*args: Any) -> Any:
            self.names.append(name)
            return result

        return _hook


@pytest.mark.asyncio
async def test_valid_bearer_token_publishes_claims(token: str, secret: bytes, claims: dict) -> None:
    guard = JWTGuard(Config(signing_key=secret))
    request = bearer(token)
    decision = await guard.authenticate(request)
    assert decision.allowed
    assert decision.reason == "authenticated"
    assert request.retrieve("user") == claims
    assert decision.source is not None and decision.source.kind is SourceKind.HEADER


@pytest.mark.asyncio
async def test_custom_context_key(token: str, secret: bytes) -> None:
    guard = JWTGuard(Config(signing_key=secret, context_key="identity"))
    request = bearer(token)
    await guard.authenticate(request)
    assert request.retrieve("identity")["name"] == "John Doe"
    assert request.retrieve("user") is None


@pytest.mark.asyncio
async def test_token_signed_with_other_key_is_rejected(token: str, other_secret: bytes) -> None:
    guard = JWTGuard(Config(signing_key=other_secret))
    decision = await guard.authenticate(bearer(token))
    assert not decision.allowed
    error = decision.error
    assert isinstance(error, Unauthorized)
    assert error.http_status == 401
    assert error.message == "invalid or expired credential"
    assert isinstance(error.internal, TokenParsingError)
    assert error.describe() == "code=401, message=invalid or expired credential, internal=Signature verification failed"


@pytest.mark.asyncio
async def test_missing_header_is_extraction_error(secret: bytes) -> None:
    guard = JWTGuard(Config(signing_key=secret, token_lookup="header:Authorization"))
    decision = await guard.authenticate(RequestValues())
    error = decision.error
    assert isinstance(error, Unauthorized)
    assert error.http_status == 401
    assert error.message == "missing or malformed credential"
    assert isinstance(error.internal, TokenExtractionError)
    assert str(error.internal) == "missing value in header"


@pytest.mark.asyncio
async def test_unexpected_signing_method(token: str, secret: bytes) -> None:
    guard = JWTGuard(Config(signing_key=secret, signing_method="HS512"))
    decision = await guard.authenticate(bearer(token))
    assert str(decision.error.internal) == "unexpected jwt signing method=HS256"


@pytest.mark.asyncio
async def test_skipper_bypasses_everything(secret: bytes) -> None:
    calls = Calls()
    guard = JWTGuard(
        Config(
            signing_key=secret,
            skipper=lambda request: True,
            before_func=calls.hook("before"),
            success_handler=calls.hook("success"),
            error_handler=calls.hook("error"),
            token_lookup_funcs=(calls.hook("extract", ["x"]),),
        )
    )
    request = RequestValues()
    decision = await guard.authenticate(request)
    assert decision.allowed
    assert decision.reason == "skipped"
    assert calls.names == []
    assert request.state == {}


@pytest.mark.asyncio
async def test_async_skipper_returning_false_still_authenticates(token: str, secret: bytes) -> None:
    async def never(request: Any) -> bool:
        return False

    guard = JWTGuard(Config(signing_key=secret, skipper=never))
    assert (await guard.authenticate(bearer(token))).reason == "authenticated"


@pytest.mark.asyncio
async def test_falls_back_to_later_source(token: str, secret: bytes, claims: dict) -> None:
    guard = JWTGuard(Config(signing_key=secret, token_lookup="query:jwt,cookie:jwt"))
    request = RequestValues(cookies={"jwt": token})
    decision = await guard.authenticate(request)
    assert decision.allowed
    assert decision.source.kind is SourceKind.COOKIE
    assert request.retrieve("user") == claims


@pytest.mark.asyncio
async def test_invalid_first_candidate_is_final(token: str, secret: bytes) -> None:
    calls = Calls()
    guard = JWTGuard(
        Config(
            signing_key=secret,
            token_lookup="query:jwt,cookie:jwt",
            before_func=calls.hook("before"),
        )
    )
    request = RequestValues(query={"jwt": ["invalid-token", token]}, cookies={"jwt": token})
    decision = await guard.authenticate(request)
    assert not decision.allowed
    assert isinstance(decision.error.internal, TokenParsingError)
    assert str(decision.error.internal) == "Not enough segments"
    assert decision.source.kind is SourceKind.QUERY
    assert calls.names == ["before"]
    assert request.retrieve("user") is None


@dataclass
class RecordingRequest(RequestValues):
    looked_up: list[SourceKind] = field(default_factory=list)

    async def lookup(self, kind: SourceKind, name: str) -> list[str]:
        self.looked_up.append(kind)
        return await super().lookup(kind, name)


@pytest.mark.asyncio
async def test_later_sources_are_not_consulted_after_validation_failure(token: str, secret: bytes) -> None:
    guard = JWTGuard(Config(signing_key=secret, token_lookup="header:Authorization,cookie:jwt"))
    request = RecordingRequest(headers={"Authorization": "Bearer also-bad"}, cookies={"jwt": token})
    decision = await guard.authenticate(request)
    assert not decision.allowed
    assert request.looked_up == [SourceKind.HEADER]


@pytest.mark.asyncio
async def test_hooks_order_on_success(token: str, secret: bytes) -> None:
    calls = Calls()
    guard = JWTGuard(
        Config(
            signing_key=secret,
            before_func=calls.hook("before", "ignored"),
            success_handler=calls.hook("success", "ignored"),
            error_handler=calls.hook("error"),
        )
    )
    decision = await guard.authenticate(bearer(token))
    assert decision.allowed
    assert calls.names == ["before", "success"]


@pytest.mark.asyncio
async def test_before_hook_not_called_without_candidate(secret: bytes) -> None:
    calls = Calls()
    guard = JWTGuard(Config(signing_key=secret, before_func=calls.hook("before")))
    decision = await guard.authenticate(RequestValues())
    assert not decision.allowed
    assert calls.names == []


@pytest.mark.asyncio
async def test_error_handler_replaces_error(secret: bytes) -> None:
    custom = JWTGuardException(message="custom_error", http_status=418)
    seen: list[BaseException] = []

    def handler(request: Any, error: BaseException) -> BaseException:
        seen.append(error)
        return custom

    guard = JWTGuard(Config(signing_key=secret, error_handler=handler))
    decision = await guard.authenticate(RequestValues())
    assert decision.error is custom
    assert isinstance(seen[0], TokenExtractionError)
    assert seen[0].is_missing


@pytest.mark.asyncio
async def test_ignored_error_continues_with_substitute(secret: bytes) -> None:
    def handler(request: RequestValues, error: BaseException) -> None:
        request.store("user", "public_token")

    guard = JWTGuard(Config(signing_key=secret, error_handler=handler, continue_on_ignored_error=True))
    request = RequestValues()
    decision = await guard.authenticate(request)
    assert decision.allowed
    assert decision.reason == "ignored"
    assert isinstance(decision.error, TokenExtractionError)
    assert request.retrieve("user") == "public_token"


@pytest.mark.asyncio
async def test_ignored_error_without_flag_is_rejected(token: str, other_secret: bytes) -> None:
    guard = JWTGuard(Config(signing_key=other_secret, error_handler=lambda request, error: None))
    decision = await guard.authenticate(bearer(token))
    assert not decision.allowed
    assert isinstance(decision.error, Unauthorized)
    assert decision.error.message == "invalid or expired credential"


@pytest.mark.asyncio
async def test_parse_token_func_replaces_validation() -> None:
    async def parse(request: Any, raw: str) -> str:
        if raw == "valid_token_base64":
            return "valid_token"
        raise RuntimeError("parser_error")

    async def error_handler(request: Any, error: BaseException) -> BaseException:
        return JWTGuardException(message=f"ErrorHandler: {error}", http_status=418)

    calls = Calls()
    guard = JWTGuard(Config(parse_token_func=parse, success_handler=calls.hook("success"), error_handler=error_handler))
    request = bearer("valid_token_base64")
    assert (await guard.authenticate(request)).allowed
    assert request.retrieve("user") == "valid_token"
    assert calls.names == ["success"]

    decision = await guard.authenticate(bearer("nope"))
    assert decision.error.message == "ErrorHandler: parser_error"


@pytest.mark.asyncio
async def test_custom_lookup_function(token: str, secret: bytes) -> None:
    def api_key(request: RequestValues) -> list[str]:
        return [value for key, value in request.headers.items() if key == "X-API-Key"]

    guard = JWTGuard(Config(signing_key=secret, token_lookup_funcs=(api_key,)))
    request = RequestValues(headers={"X-API-Key": token})
    decision = await guard.authenticate(request)
    assert decision.allowed
    assert decision.source.kind is SourceKind.CUSTOM


@pytest.mark.asyncio
async def test_keyed_map_configuration(make_token: Callable[..., str], secret: bytes, other_secret: bytes) -> None:
    guard = JWTGuard(Config(signing_keys={"first": secret, "second": other_secret}))
    assert (await guard.authenticate(bearer(make_token(other_secret, kid="second")))).allowed

    wrong = make_token(secret, kid="second")
    assert str((await guard.authenticate(bearer(wrong))).error.internal) == "Signature verification failed"

    unknown = JWTGuard(Config(signing_keys={"third": secret}))
    decision = await unknown.authenticate(bearer(make_token(secret, kid="first")))
    assert str(decision.error.internal) == "unknown key id=first"


@pytest.mark.asyncio
async def test_wrap_handler(token: str, secret: bytes) -> None:
    guard = jwt_guard(secret)

    @guard.wrap_handler
    async def handler(request: RequestValues) -> str:
        return request.retrieve("user")["name"]

    assert await handler(bearer(token)) == "John Doe"
    with pytest.raises(Unauthorized):
        await handler(RequestValues())


def test_with_config_fails_fast() -> None:
    with pytest.raises(BadConfig) as excinfo:
        with_config()
    assert excinfo.value.message == "jwt middleware requires signing key"

    with pytest.raises(BadConfig) as excinfo:
        with_config(signing_key=b"k", signing_method="RS256", token_lookup="q")
    assert excinfo.value.message == "extractor source for lookup could not be split into needed parts: q"


def test_with_config_overrides_existing_config(secret: bytes) -> None:
    base = Config(signing_key=secret)
    guard = with_config(base, context_key="identity")
    assert guard.config.context_key == "identity"
    assert guard.config.signing_key == secret
    assert base.context_key == "user"


@pytest.mark.asyncio
async def test_audience_claim_without_configured_audience(make_token: Callable[..., str], secret: bytes) -> None:
    token = make_token(aud="my-api")
    assert (await JWTGuard(Config(signing_key=secret)).authenticate(bearer(token))).allowed
    assert (await JWTGuard(Config(signing_key=secret, audience="my-api")).authenticate(bearer(token))).allowed

    decision = await JWTGuard(Config(signing_key=secret, audience="other-api")).authenticate(bearer(token))
    assert not decision.allowed
    assert isinstance(decision.error.internal, TokenParsingError)


@pytest.mark.asyncio
async def test_empty_lookup_with_functions_uses_only_functions(token: str, secret: bytes) -> None:
    def api_key(request: RequestValues) -> list[str]:
        return [request.headers.get("X-API-Key", "")]

    guard = JWTGuard(Config(signing_key=secret, token_lookup="", token_lookup_funcs=(api_key,)))
    assert [e.source.kind for e in guard.extractors] == [SourceKind.CUSTOM]
    request = RecordingRequest(headers={"Authorization": f"Bearer {token}"})
    decision = await guard.authenticate(request)
    assert not decision.allowed
    assert str(decision.error.internal) == "missing value from custom extractor"


@pytest.mark.asyncio
async def test_empty_lookup_without_functions_uses_default(token: str, secret: bytes) -> None:
    guard = JWTGuard(Config(signing_key=secret, token_lookup=""))
    assert (await guard.authenticate(bearer(token))).allowed
