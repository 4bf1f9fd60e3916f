"""
Calendar MCP server container
Builds the event store, auth gate, tool registry, dispatcher and router once
per process and hands them out by reference
"""

import logging
from typing import Optional

from adapters.auth import GoogleAuthManager
from adapters.base import EventStore
from adapters.calendar import GoogleCalendarStore
from adapters.memory import InMemoryEventStore
from adapters.workers import WorkerPool
from router.dispatcher import ToolDispatcher
from router.rpc import JsonRpcRouter
from services.audit import AuditLogger
from services.config import Settings, get_settings
from services.secrets import SecretError
from services.telemetry import ToolMetrics
from tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

class CalendarServer:
    """Main server object wiring the calendar backend to the JSON-RPC router"""

    def __init__(self, settings: Optional[Settings] = None, store: Optional[EventStore] = None):
        self.settings = settings or get_settings()
        self.auth_manager: Optional[GoogleAuthManager] = None
        self.worker_pool: Optional[WorkerPool] = None

        if store is None:
            store = self._create_store()
        self.store = store

        self.tool_registry = ToolRegistry(google_profile=self.settings.uses_google)
        self.metrics = ToolMetrics()
        self.dispatcher = ToolDispatcher(
            self.store,
            audit_logger=AuditLogger(self.settings.audit_log_file),
            metrics=self.metrics
        )
        self.router = JsonRpcRouter(
            self.tool_registry,
            self.dispatcher,
            settings=self.settings,
            auth_gate=self.auth_manager,
            metrics=self.metrics
        )

        logger.info(
            f"Calendar server ready: backend={self.settings.calendar_backend}, "
            f"tools={self.tool_registry.get_tool_names()}"
        )

    def _create_store(self) -> EventStore:
        if not self.settings.uses_google:
            return InMemoryEventStore()

        self.auth_manager = GoogleAuthManager(self.settings)
        self.worker_pool = WorkerPool(
            max_workers=self.settings.max_workers,
            timeout=self.settings.google_api_timeout
        )
        return GoogleCalendarStore(self.auth_manager, self.worker_pool, self.settings)

    async def startup(self):
        """Load persisted credentials for the Google backend"""
        if self.auth_manager is None:
            return

        try:
            await self.auth_manager.load_stored_credentials()
        except (SecretError, ValueError) as e:
            logger.error(f"Could not load stored Google credentials, starting unauthenticated: {e}")

    def shutdown(self):
        if self.worker_pool is not None:
            self.worker_pool.shutdown()
