"""
Skybit Tool Gateway — Entry Point

Usage:
    python . serve                          # Run the HTTP tool gateway
    python . serve --port 9000              # Custom port
    python . tools                          # List registered tools
    python . call data.snapshot --args '{"symbols": ["AAPL"]}'
    python . ask "what do I hold?"          # Let the LLM pick tools
    python . --verbose serve                # Debug logging
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path


def setup_logging(verbose: bool = False):
    """Configure logging with console + rotating file handler."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt))
    root.addHandler(console)

    file_handler = TimedRotatingFileHandler(
        log_dir / "gateway.log",
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(file_handler)

    # Suppress noisy HTTP client logs
    for lib in ("httpx", "httpcore", "openai", "uvicorn.access"):
        logging.getLogger(lib).setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def validate_startup(need_llm: bool = False):
    """Load .env and validate critical secrets before launch."""
    from dotenv import load_dotenv
    load_dotenv()

    errors = []

    if need_llm and not os.environ.get("OPENROUTER_API_KEY"):
        errors.append("Missing OPENROUTER_API_KEY")

    if not (os.environ.get("SNAPTRADE_CLIENT_ID") and os.environ.get("SNAPTRADE_CLIENT_SECRET")):
        # Brokerage tools fail per call with config_error; the stubs still work.
        logger.warning("Startup: SnapTrade credentials not set, snaptrade.* tools will fail")

    if errors:
        for err in errors:
            logger.error(f"Startup: {err}")
        logger.error("Fix the above errors and restart.")
        sys.exit(1)

    logger.info("Startup validation passed")


async def run_call(name: str, args: dict) -> int:
    from tools.tools_executor import build_gateway

    gateway = build_gateway()
    result = await gateway.execute(name, args)
    print(result)
    return 0 if result.ok else 1


async def run_ask(prompt: str) -> int:
    from core.llm import ToolAgent
    from tools.tools_executor import build_gateway

    agent = ToolAgent(build_gateway())
    reply = await agent.ask(prompt)
    for call in reply.calls:
        status = "ok" if call.result.ok else call.result.kind.value
        print(f"[{call.tool}] {status}")
    print(reply.text or "(no answer)")
    return 1 if reply.exhausted else 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Skybit tool gateway")
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP tool gateway")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    sub.add_parser("tools", help="List registered tools")

    call = sub.add_parser("call", help="Dispatch one tool call and print the envelope")
    call.add_argument("name")
    call.add_argument("--args", default="{}", help="JSON object of tool arguments")

    ask = sub.add_parser("ask", help="Let the LLM choose and run tools")
    ask.add_argument("prompt")

    args = parser.parse_args()
    setup_logging(verbose=args.verbose)
    validate_startup(need_llm=args.command == "ask")

    if args.command == "serve":
        from core import config
        from core.server import serve as serve_gateway
        from tools.tools_executor import build_gateway

        serve_gateway(
            build_gateway(),
            host=args.host or config.GATEWAY_HOST,
            port=args.port or config.GATEWAY_PORT,
        )
        return

    if args.command == "tools":
        from tools.tools_executor import build_registry

        for name in build_registry().names():
            print(name)
        return

    if args.command == "call":
        try:
            call_args = json.loads(args.args)
        except json.JSONDecodeError as e:
            parser.error(f"--args is not valid JSON: {e}")
        if not isinstance(call_args, dict):
            parser.error("--args must be a JSON object")
        sys.exit(asyncio.run(run_call(args.name, call_args)))

    if args.command == "ask":
        sys.exit(asyncio.run(run_ask(args.prompt)))


if __name__ == "__main__":
    main()
