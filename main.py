#!/usr/bin/env python3
"""
Main entry point for the MCP Calendar Server
Initializes FastAPI app with MCP transport and starts server
"""

import asyncio
import logging
import sys
import uvicorn
from transport.gateway import create_app
from server import CalendarServer
from services.config import get_settings, validate_settings
from services.logging_setup import configure_logging
from services.telemetry import TelemetryManager

logger = logging.getLogger(__name__)

async def main():
    """Main entry point for the MCP server"""
    settings = get_settings()
    configure_logging(settings.log_level)

    is_valid, errors = validate_settings(settings)
    if not is_valid:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        sys.exit(1)

    # Create FastAPI app with MCP integration
    app = create_app(CalendarServer(settings))

    # Setup telemetry
    TelemetryManager(settings).setup(app)

    # Run the server
    config = uvicorn.Config(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower()
    )
    server = uvicorn.Server(config)
    await server.serve()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
