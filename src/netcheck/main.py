"""
NetCheck entry point.

This file handles startup concerns (arg-parsing, logging) and either launches the REST API or
runs a single scan / compliance check from the command line and prints the JSON result.
"""

import argparse
import asyncio
import logging
import sys
from typing import TextIO

from netcheck.api.app import (
    build_catalog,
    run_api,
)
from netcheck.common import ColorFormatter
from netcheck.config import settings
from netcheck.core.errors import NetCheckError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str, stream: TextIO = sys.stdout) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColorFormatter())
    logging.basicConfig(level=numeric, handlers=[handler], force=True)
    # Transport logs are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def _run_once(args: argparse.Namespace) -> str:
    """Run one scan or compliance check and return the JSON artifact."""
    # pylint: disable=import-outside-toplevel
    from netcheck.agent.engine import AIEngine
    from netcheck.agent.model_client import load_model_client
    from netcheck.services.ollama_service import OllamaModelService

    model_service = None
    if settings.MODEL_BACKEND.lower() == "ollama" and settings.ENSURE_MODEL_ON_STARTUP:
        model_service = OllamaModelService()
    client = load_model_client()
    try:
        async with build_catalog() as catalog:
            engine = await AIEngine.from_catalog(client, catalog, model_service=model_service)
            if args.mode == "scan":
                result = await engine.scan_repository(args.repository)
            else:
                result = await engine.check_pull_requests(args.owner, args.repository)
    finally:
        await client.aclose()
        if model_service is not None:
            await model_service.aclose()
    return result.model_dump_json(indent=2)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the NetCheck application.

    ``api`` mode serves the HTTP API; ``scan`` and ``compliance`` run once and print JSON.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run NetCheck repository checks")
    parser.add_argument(
        "--mode",
        choices=["api", "scan", "compliance"],
        type=str.lower,
        default="api",
        help="Serve the REST API or run a single scan / compliance check (default: api)",
    )
    parser.add_argument("--repository", help="Repository to check, e.g. 'owner/name' for scans")
    parser.add_argument("--owner", help="Repository owner (compliance mode)")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    if args.mode in ("scan", "compliance") and not args.repository:
        parser.error(f"--repository is required in {args.mode} mode")
    if args.mode == "compliance" and not args.owner:
        parser.error("--owner is required in compliance mode")

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    # One-shot modes keep stdout for the JSON report.
    _init_logging(settings.LOG_LEVEL, sys.stdout if args.mode == "api" else sys.stderr)

    logger.info("Starting NetCheck [%s mode]", args.mode)
    secrets = {"OPENAI_API_KEY", "ANTHROPIC_API_KEY", "MCP_TOKEN"}
    logger.debug("Settings: %s", settings.model_dump(exclude=secrets))

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    try:
        output = asyncio.run(_run_once(args))
    except (NetCheckError, ValueError) as exc:
        logger.error("%s failed: %s", args.mode, exc)
        sys.exit(1)
    print(output)


if __name__ == "__main__":
    main()
