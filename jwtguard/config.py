"""Guard configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Literal, Mapping, Optional

import yaml
from jwt.algorithms import get_default_algorithms
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .exceptions import BadConfig
from .extractors import DEFAULT_TOKEN_LOOKUP, parse_token_lookup

Hook = Callable[..., Any]


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    output: Literal["stderr", "file"] = "stderr"
    file_path: str = "jwtguard.log"
    rotate_bytes: int = 10_485_760


class Config(BaseModel):
    """Everything a guard needs; immutable once validated.

    ``skipper``, ``before_func`` and ``success_handler`` receive the request.
    ``error_handler`` receives the request and the classified error and
    returns ``None`` or the exception to reject with. Hooks may be coroutine
    functions.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    signing_key: Any = None
    signing_keys: Mapping[str, Any] = Field(default_factory=dict)
    signing_method: str = "HS256"
    key_func: Optional[Hook] = None
    token_lookup: str = DEFAULT_TOKEN_LOOKUP
    token_lookup_funcs: tuple[Hook, ...] = ()
    skipper: Optional[Hook] = None
    before_func: Optional[Hook] = None
    success_handler: Optional[Hook] = None
    error_handler: Optional[Hook] = None
    continue_on_ignored_error: bool = False
    claims_factory: Optional[Hook] = None
    parse_token_func: Optional[Hook] = None
    context_key: str = "user"
    leeway: float = 0
    audience: Optional[str | tuple[str, ...]] = None
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("token_lookup")
    @classmethod
    def validate_lookup(cls, value: str) -> str:
        try:
            parse_token_lookup(value)
        except BadConfig as exc:
            raise ValueError(exc.message) from exc
        return value

    @field_validator("signing_method")
    @classmethod
    def validate_method(cls, value: str) -> str:
        if value.lower() == "none" or value not in get_default_algorithms():
            raise ValueError(f"unsupported signing method: {value}")
        return value

    @field_validator("context_key")
    @classmethod
    def validate_context_key(cls, value: str) -> str:
        if not value:
            raise ValueError("context_key must not be empty")
        return value

    @field_validator("leeway")
    @classmethod
    def validate_leeway(cls, value: float) -> float:
        if value < 0:
            raise ValueError("leeway must not be negative")
        return value

    @model_validator(mode="after")
    def check_key_material(self) -> "Config":
        if (
            self.signing_key is None
            and not self.signing_keys
            and self.key_func is None
            and self.parse_token_func is None
        ):
            raise ValueError("jwt middleware requires signing key")
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise BadConfig(message=_first_error(exc)) from exc


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:  # pragma: no cover - pydantic always reports one
        return str(exc)
    message = str(errors[0]["msg"])
    # pydantic prefixes messages of ValueErrors raised by validators
    return message.removeprefix("Value error, ")


def load_config(path: str | Path, **overrides: Any) -> Config:
    """Load a configuration from a YAML file.

    Callables cannot live in YAML, so hooks are passed as ``overrides``.
    """

    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:  # pragma: no cover - direct passthrough
        raise BadConfig(message=f"Failed to read config: {exc}") from exc
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - YAML parse errors
        raise BadConfig(message=f"Failed to parse config YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise BadConfig(message="config file must contain a mapping")
    data.update(overrides)
    return Config.from_dict(data)
