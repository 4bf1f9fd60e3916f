"""
Transport & Gateway
FastAPI application exposing the JSON-RPC router on POST /mcp
plus health, info and Google OAuth endpoints
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
import json
import logging

from router.rpc import PARSE_ERROR, error_response
from server import CalendarServer
from services.config import get_environment_info
from .auth import verify_bearer_token, verify_protocol_version

logger = logging.getLogger(__name__)

def create_app(server: Optional[CalendarServer] = None) -> FastAPI:
    """Create and configure FastAPI application around a calendar server"""
    server = server or CalendarServer()
    settings = server.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await server.startup()
        logger.info(f"{settings.server_name} listening for MCP requests on /mcp")
        yield
        server.shutdown()

    app = FastAPI(
        title="MCP Calendar Server",
        description=settings.server_description,
        version=settings.server_version,
        lifespan=lifespan
    )
    app.state.calendar_server = server

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.post(
        "/mcp",
        dependencies=[Depends(verify_bearer_token), Depends(verify_protocol_version)]
    )
    async def handle_mcp_request(request: Request):
        """Handle MCP JSON-RPC requests"""
        content_type = request.headers.get("content-type", "application/json")
        if content_type.split(";")[0].strip().lower() != "application/json":
            raise HTTPException(status_code=400, detail="Content-Type must be application/json")

        body = await request.body()
        try:
            rpc_request = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Rejected unparseable request body: {e}")
            return JSONResponse(content=error_response(None, PARSE_ERROR, "Parse error"))

        response = await server.router.handle(rpc_request)
        return JSONResponse(content=response)

    @app.get("/")
    async def root():
        return {
            "message": "MCP Calendar Server",
            "server": server.router.server_info(),
            "endpoints": {
                "mcp": "POST /mcp",
                "health": "GET /health",
                "info": "GET /info"
            }
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "server": settings.server_name,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    @app.get("/info")
    async def info():
        tools = server.tool_registry.get_all_tools()
        info = {
            "server": server.router.server_info(),
            "tools": [{"name": tool.name, "description": tool.description} for tool in tools],
            "events_count": await server.store.count(),
            "environment": get_environment_info(settings)
        }
        if server.worker_pool is not None:
            info["workers"] = server.worker_pool.get_stats()
        return info

    if server.auth_manager is not None:
        auth_manager = server.auth_manager

        @app.get("/oauth/start")
        async def oauth_start():
            """Redirect the user to the Google consent screen"""
            return RedirectResponse(auth_manager.build_consent_url())

        @app.get("/oauth/callback")
        async def oauth_callback(code: Optional[str] = None, state: Optional[str] = None, error: Optional[str] = None):
            """Redeem the authorization code returned by Google"""
            if error:
                raise HTTPException(status_code=400, detail=f"Authorization failed: {error}")
            if not code:
                raise HTTPException(status_code=400, detail="Missing authorization code")

            try:
                await auth_manager.complete_oauth_flow(code, state)
            except Exception as e:
                logger.error(f"OAuth callback failed: {e}")
                raise HTTPException(status_code=400, detail="Failed to complete authorization")

            return {"status": "authenticated", "server": settings.server_name}

    return app
