"""jwtguard package authenticating requests with JSON Web Tokens."""

from .config import Config, load_config
from .exceptions import BadConfig, TokenExtractionError, TokenParsingError, Unauthorized
from .guard import JWTGuard, jwt_guard, with_config
from .request import RequestValues, StarletteRequest

__all__ = [
    "Config",
    "load_config",
    "JWTGuard",
    "jwt_guard",
    "with_config",
    "RequestValues",
    "StarletteRequest",
    "BadConfig",
    "TokenExtractionError",
    "TokenParsingError",
    "Unauthorized",
]
