"""FastAPI / Starlette integration."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from .exceptions import BadConfig, JWTGuardException
from .guard import JWTGuard
from .request import StarletteRequest
from .types import SourceKind

# Sources a middleware cannot read without routing or consuming the body.
ROUTE_LEVEL_SOURCES = (SourceKind.PARAM, SourceKind.FORM)


def error_response(error: Any) -> JSONResponse:
    if isinstance(error, JWTGuardException):
        return JSONResponse({"message": error.message}, status_code=error.http_status)
    if isinstance(error, HTTPException):
        return JSONResponse({"message": error.detail}, status_code=error.status_code, headers=error.headers)
    return JSONResponse({"message": "Internal Server Error"}, status_code=500)


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Runs the guard before every request reaches the app.

    Path params are not resolved yet at this point, and reading the form here
    would leave an empty body for the endpoint, so ``param:`` and ``form:``
    lookups are refused; use :class:`JWTBearer` for them.
    """

    def __init__(self, app: ASGIApp, guard: JWTGuard) -> None:
        for extractor in guard.extractors:
            if extractor.source.kind in ROUTE_LEVEL_SOURCES:
                raise BadConfig(
                    message=f"lookup {extractor.source} is only supported by the JWTBearer dependency"
                )
        super().__init__(app)
        self.guard = guard

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        decision = await self.guard.authenticate(StarletteRequest(request))
        if not decision.allowed:
            return error_response(decision.error)
        return await call_next(request)


class JWTBearer:
    """FastAPI dependency returning the published claims.

    ``None`` is returned when the request continues unauthenticated.
    """

    def __init__(self, guard: JWTGuard) -> None:
        self.guard = guard

    async def __call__(self, request: Request) -> Any:
        adapter = StarletteRequest(request)
        decision = await self.guard.authenticate(adapter)
        if not decision.allowed:
            error = decision.error
            if isinstance(error, HTTPException):
                raise error
            if isinstance(error, JWTGuardException):
                raise HTTPException(status_code=error.http_status, detail=error.message)
            if isinstance(error, Exception):
                raise error
            raise HTTPException(status_code=500, detail="Internal Server Error")
        return adapter.retrieve(self.guard.config.context_key)
