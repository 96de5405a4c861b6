import time
from typing import Any, Callable

import jwt
import pytest

SECRET = b"test-secret-that-is-long-enough-for-hs256"
OTHER_SECRET = b"another-secret-that-is-long-enough-too!!"

CLAIMS = {"sub": "1234567890", "name": "John Doe", "admin": True}


@pytest.fixture
def secret() -> bytes:
    return SECRET


@pytest.fixture
def other_secret() -> bytes:
    return OTHER_SECRET


@pytest.fixture
def claims() -> dict[str, Any]:
    return dict(CLAIMS)


@pytest.fixture
def make_token() -> Callable[..., str]:
    def _make(
        key: Any = SECRET,
        *,
        algorithm: str = "HS256",
        kid: str | None = None,
        **extra: Any,
    ) -> str:
        payload = {**CLAIMS, **extra}
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(payload, key, algorithm=algorithm, headers=headers)

    return _make


@pytest.fixture
def token(make_token: Callable[..., str]) -> str:
    return make_token()


@pytest.fixture
def expired_token(make_token: Callable[..., str]) -> str:
    return make_token(exp=int(time.time()) - 3600)
