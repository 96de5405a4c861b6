"""Example FastAPI app protected by jwtguard."""

from typing import Any

import uvicorn
from fastapi import FastAPI, Request

from jwtguard import load_config
from jwtguard.asgi import JWTAuthMiddleware
from jwtguard.guard import JWTGuard


def skip_health(request: Any) -> bool:
    return request.request.url.path == "/healthz"


config = load_config("examples/jwtguard.yaml", skipper=skip_health)
app = FastAPI()
app.add_middleware(JWTAuthMiddleware, guard=JWTGuard(config))


@app.get("/healthz")
async def healthz() -> dict[str, bool]:
    return {"ok": True}


@app.get("/me")
async def me(request: Request) -> dict[str, Any]:
    return {"claims": request.state.user}


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8787)
