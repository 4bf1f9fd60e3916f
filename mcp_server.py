#!/usr/bin/env python3
"""
MCP Server stdio entry point
Runs the calendar server over newline-delimited JSON-RPC on stdin/stdout
Logs go to stderr so stdout carries protocol messages only
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from router.rpc import PARSE_ERROR, error_response
from server import CalendarServer
from services.config import get_settings
from services.logging_setup import configure_logging

logger = logging.getLogger(__name__)

def is_notification(message: Any) -> bool:
    """Notifications carry no id and expect no reply"""
    return (
        isinstance(message, dict)
        and "id" not in message
        and str(message.get("method", "")).startswith("notifications/")
    )

async def handle_line(server: CalendarServer, line: str) -> Optional[Dict[str, Any]]:
    """Decode one input line and produce the reply, or None when none is due"""
    try:
        message = json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON decode error: {e}")
        return error_response(None, PARSE_ERROR, "Parse error")

    response = await server.router.handle(message)
    if is_notification(message):
        logger.debug(f"Notification {message.get('method')} handled")
        return None
    return response

async def serve(server: CalendarServer, reader: TextIO = None, writer: TextIO = None):
    """Read requests until EOF and write one response line per request"""
    reader = reader or sys.stdin
    writer = writer or sys.stdout
    loop = asyncio.get_running_loop()

    while True:
        line = await loop.run_in_executor(None, reader.readline)
        if not line:
            logger.info("EOF received - stdin closed")
            break

        line = line.strip()
        if not line:
            continue

        logger.debug(f"<- {line}")
        response = await handle_line(server, line)
        if response is not None:
            response_json = json.dumps(response)
            writer.write(response_json + "\n")
            writer.flush()
            logger.debug(f"-> {response_json}")

async def main():
    """Main entry point for MCP stdio server"""
    settings = get_settings()
    configure_logging(settings.log_level)

    server = CalendarServer(settings)
    logger.info(f"{settings.server_name} starting on stdio")
    await server.startup()
    try:
        await serve(server)
    finally:
        server.shutdown()
        logger.info(f"{settings.server_name} exiting")

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
