"""
Tool Gateway HTTP Transport

POST /mcp     {"name": ..., "args": {...}} -> {"ok", "data" | "error"+"kind"}
GET  /tools   registered tool names + OpenAI function specs
GET  /health  liveness

Tool failures (unknown name included) are HTTP 200 with ok=false inside
the envelope. Only a body that is not a usable envelope gets HTTP 400,
and it is rejected before any registry lookup.

An optional X-Call-Timeout header (seconds) carries the caller's own
deadline; the gateway never runs a call longer than its configured bound.
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core import config
from tools.errors import MalformedEnvelopeError
from tools.tools_executor import ToolGateway, parse_envelope

logger = logging.getLogger(__name__)

CALLER_TIMEOUT_HEADER = "X-Call-Timeout"


def _caller_timeout(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.debug(f"Ignoring unparseable {CALLER_TIMEOUT_HEADER}: {raw!r}")
        return None
    return value if value >= 0 else None


def create_app(gateway: ToolGateway) -> FastAPI:
    app = FastAPI(title="Skybit Tool Gateway")
    app.state.gateway = gateway

    @app.post("/mcp")
    async def call_tool(request: Request) -> JSONResponse:
        body = await request.body()
        try:
            name, args = parse_envelope(body)
        except MalformedEnvelopeError as e:
            logger.warning(f"Rejected envelope: {e}")
            return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})

        result = await gateway.execute(
            name, args,
            caller_timeout=_caller_timeout(request.headers.get(CALLER_TIMEOUT_HEADER)),
        )
        return JSONResponse(status_code=200, content=jsonable_encoder(result.to_envelope()))

    @app.get("/tools")
    async def list_tools() -> dict:
        return {"tools": gateway.names(), "specs": gateway.registry.specs()}

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True, "tools": len(gateway.registry)}

    return app


def serve(gateway: ToolGateway, host: str = config.GATEWAY_HOST, port: int = config.GATEWAY_PORT) -> None:
    """Blocking: run the gateway until interrupted."""
    app = create_app(gateway)
    logger.info(f"Skybit tool gateway listening on http://{host}:{port}/mcp")
    uvicorn.run(app, host=host, port=port, log_level="warning")
