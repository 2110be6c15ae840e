# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Unified entry point: python -m docharbor

Runs the HTTP API + MCP server in a single process with shared state,
both on one asyncio event loop.
"""
import asyncio

import uvicorn

from .config import Config
from .health import HealthTracker
from .logging import configure_logging, get_logger
from .manager import CorpusManager
from .server import create_mcp_server
from .web import create_web_app

logger = get_logger(__name__)


async def serve(config: Config):
    health = HealthTracker()
    manager = CorpusManager(config, health=health)

    logger.info("Loading corpora from %s ...", config.repositories_config)
    await manager.initialize()

    web_app = create_web_app(manager, health)
    mcp_server = create_mcp_server(manager, health)

    web = uvicorn.Server(uvicorn.Config(
        web_app, host="0.0.0.0", port=config.web_port, log_level="warning",
    ))
    logger.info("HTTP API running on http://0.0.0.0:%d", config.web_port)

    logger.info("MCP server starting (%s transport)...", config.transport)
    if config.transport == "sse":
        mcp_server.settings.host = "0.0.0.0"
        mcp_server.settings.port = config.sse_port
        mcp_task = mcp_server.run_sse_async()
    else:
        mcp_task = mcp_server.run_stdio_async()

    try:
        await asyncio.gather(web.serve(), mcp_task)
    finally:
        await manager.aclose()


def main():
    config = Config.load()
    configure_logging(config.log_level)
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
