"""
Authentication middleware
Bearer token validation and MCP protocol version enforcement
"""

from typing import Optional
from fastapi import HTTPException, Request
from services.config import Settings, get_settings
import logging

logger = logging.getLogger(__name__)

def _settings_for(request: Request) -> Settings:
    server = getattr(request.app.state, "calendar_server", None)
    return server.settings if server is not None else get_settings()

async def verify_bearer_token(request: Request) -> Optional[str]:
    """
    Verify Bearer token from Authorization header
    Only enforced when BEARER_TOKEN is configured; returns the token if valid
    """
    settings = _settings_for(request)
    if not settings.bearer_token:
        return None

    auth_header = request.headers.get("authorization")

    if not auth_header:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required"
        )

    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Bearer token required"
        )

    token = auth_header[len("Bearer "):].strip()

    if token != settings.bearer_token:
        logger.warning(f"Invalid bearer token attempted: {token[:4]}...")
        raise HTTPException(
            status_code=401,
            detail="Invalid bearer token"
        )

    return token

async def verify_protocol_version(request: Request) -> Optional[str]:
    """
    Verify MCP-Protocol-Version header
    A missing header is accepted; a present one must match the configured version
    """
    protocol_version = request.headers.get("MCP-Protocol-Version")
    if not protocol_version:
        return None

    settings = _settings_for(request)
    if protocol_version != settings.mcp_protocol_version:
        logger.warning(f"Unsupported protocol version: {protocol_version}")
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported protocol version. Expected: {settings.mcp_protocol_version}"
        )

    return protocol_version
