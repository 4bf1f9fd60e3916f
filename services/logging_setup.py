"""
Process-wide logging configuration
Console output for the HTTP server, stderr for the stdio transport
"""

import logging
import sys
from typing import Optional, TextIO

_configured = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def configure_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Install a single stream handler on the root logger"""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(handler)

    _configured = True
    logging.getLogger(__name__).debug(f"Logging configured at level {level.upper()}")
