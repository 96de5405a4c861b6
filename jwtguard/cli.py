"""Command line entry points."""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

import uvicorn
from fastapi import Depends, FastAPI

from .asgi import JWTBearer
from .config import load_config
from .exceptions import JWTGuardException, Unauthorized
from .guard import JWTGuard
from .request import RequestValues


def _pairs(values: list[str] | None) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep:
            raise SystemExit(f"expected NAME=VALUE, got {item!r}")
        result.setdefault(name, []).append(value)
    return result


def build_request(args: argparse.Namespace) -> RequestValues:
    headers = _pairs(args.header)
    if args.token:
        headers.setdefault("Authorization", []).append(f"Bearer {args.token}")
    cookies = {name: values[-1] for name, values in _pairs(args.cookie).items()}
    return RequestValues(headers=headers, query=_pairs(args.query), cookies=cookies)


def create_app(guard: JWTGuard) -> FastAPI:
    app = FastAPI()
    bearer = JWTBearer(guard)

    @app.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/whoami")
    async def whoami(claims: Any = Depends(bearer)) -> dict[str, Any]:
        return {"claims": claims}

    return app


async def run_check(args: argparse.Namespace) -> int:
    guard = JWTGuard(load_config(args.config))
    decision = await guard.authenticate(build_request(args))
    if decision.allowed:
        print("ALLOW", json.dumps(decision.claims, default=str, sort_keys=True))
        return 0
    error = decision.error
    if isinstance(error, Unauthorized):
        print("DENY:", f"{error.message} ({error.internal})")
    else:
        print("DENY:", error)
    return 1


def run_serve(args: argparse.Namespace) -> None:
    guard = JWTGuard(load_config(args.config))
    uvicorn.run(create_app(guard), host=args.host, port=args.port, log_level="info")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jwtguard", description="JWT Guard CLI")
    sub = parser.add_subparsers(dest="command")

    check_cmd = sub.add_parser("check", help="Authenticate a request described on the command line")
    check_cmd.add_argument("--config", required=True)
    check_cmd.add_argument("--token", help="sent as 'Authorization: Bearer <token>'")
    check_cmd.add_argument("--header", action="append", metavar="NAME=VALUE")
    check_cmd.add_argument("--query", action="append", metavar="NAME=VALUE")
    check_cmd.add_argument("--cookie", action="append", metavar="NAME=VALUE")

    serve_cmd = sub.add_parser("serve", help="Run a demo app protected by the guard")
    serve_cmd.add_argument("--config", required=True)
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8787)

    return parser


def cli_main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "check":
            return asyncio.run(run_check(args))
        if args.command == "serve":
            run_serve(args)
            return 0
    except JWTGuardException as exc:
        print("ERROR:", exc)
        return 2
    parser.print_help()
    return 0
