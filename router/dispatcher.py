"""
Tool dispatcher
Route a validated tools/call to exactly one event store operation and shape
the result payload
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional
from pydantic import BaseModel

from adapters.base import EventStore, EventWindow
from services.audit import AuditAction, AuditLogger
from services.telemetry import ToolMetrics, get_tracer
from tools.schemas import DEFAULT_CALENDAR_ID, ToolName, ToolResult
from tools.validators import ToolValidator

logger = logging.getLogger(__name__)

MUTATIONS: Dict[ToolName, AuditAction] = {
    ToolName.CREATE_EVENT: AuditAction.CREATE,
    ToolName.UPDATE_EVENT: AuditAction.UPDATE,
    ToolName.DELETE_EVENT: AuditAction.DELETE
}

def _calendar_of(arguments: BaseModel) -> str:
    return getattr(arguments, "calendar_id", DEFAULT_CALENDAR_ID)

class ToolDispatcher:
    """Maps tool names onto event store operations"""

    def __init__(
        self,
        store: EventStore,
        audit_logger: Optional[AuditLogger] = None,
        metrics: Optional[ToolMetrics] = None
    ):
        self.store = store
        self.audit_logger = audit_logger or AuditLogger()
        self.metrics = metrics or ToolMetrics()
        self.tracer = get_tracer()
        self._handlers: Dict[ToolName, Callable[[Any], Awaitable[ToolResult]]] = {
            ToolName.CREATE_EVENT: self._create_event,
            ToolName.LIST_EVENTS: self._list_events,
            ToolName.GET_EVENT: self._get_event,
            ToolName.UPDATE_EVENT: self._update_event,
            ToolName.DELETE_EVENT: self._delete_event,
            ToolName.SEARCH_EVENTS: self._search_events,
            ToolName.LIST_CALENDARS: self._list_calendars
        }
        missing = set(ToolName) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for tools: {sorted(m.value for m in missing)}")

    async def dispatch(self, name: ToolName, arguments: BaseModel) -> Dict[str, Any]:
        """
        Run one tool call

        Args:
            name: Resolved tool name
            arguments: Arguments already validated against the tool schema

        Returns:
            Result dict with `content` and one structured payload

        Raises:
            EventNotFoundError, CalendarBackendError: From the event store
        """
        started = time.perf_counter()
        success = False

        with self.tracer.start_as_current_span(f"tools/call {name.value}") as span:
            span.set_attribute("mcp.tool.name", name.value)
            try:
                result = await self._handlers[name](arguments)
                success = True
                return result.to_dict()
            except Exception as e:
                if name in MUTATIONS:
                    self.audit_logger.log_operation(
                        operation=name.value,
                        action=MUTATIONS[name],
                        calendar_id=_calendar_of(arguments),
                        event_id=getattr(arguments, "event_id", None),
                        success=False,
                        error=str(e)
                    )
                raise
            finally:
                duration = time.perf_counter() - started
                self.metrics.record_tool_call(name.value, duration, success)
                logger.info(f"Tool {name.value} finished in {duration * 1000:.1f} ms (success={success})")

    async def _create_event(self, args) -> ToolResult:
        calendar_id = _calendar_of(args)
        event = await self.store.insert(args.model_dump(exclude={"calendar_id"}), calendar_id)

        self.audit_logger.log_operation(
            operation=ToolName.CREATE_EVENT.value,
            action=AuditAction.CREATE,
            calendar_id=calendar_id,
            event_id=event.id,
            after_state=event.to_payload()
        )
        return ToolValidator.create_success_response(
            f"Event created successfully with ID: {event.id}",
            event=event.to_payload()
        )

    async def _list_events(self, args) -> ToolResult:
        # time_min/time_max/max_results only exist in the Google profile
        window = EventWindow(
            start=getattr(args, "time_min", None) or args.start_date,
            end=getattr(args, "time_max", None) or args.end_date,
            limit=getattr(args, "max_results", None) or args.limit,
            single_events=getattr(args, "single_events", True)
        )
        events = await self.store.list_filtered(window, _calendar_of(args))

        return ToolValidator.create_success_response(
            f"Found {len(events)} events",
            events=[event.to_payload() for event in events]
        )

    async def _get_event(self, args) -> ToolResult:
        event = await self.store.get_by_id(args.event_id, _calendar_of(args))

        return ToolValidator.create_success_response(
            f"Event details for: {event.title}",
            event=event.to_payload()
        )

    async def _update_event(self, args) -> ToolResult:
        calendar_id = _calendar_of(args)
        changes = args.changes()
        event = await self.store.update_by_id(args.event_id, changes, calendar_id)

        self.audit_logger.log_operation(
            operation=ToolName.UPDATE_EVENT.value,
            action=AuditAction.UPDATE,
            calendar_id=calendar_id,
            event_id=event.id,
            after_state=event.to_payload()
        )
        return ToolValidator.create_success_response(
            f"Event updated successfully: {event.title}",
            event=event.to_payload()
        )

    async def _delete_event(self, args) -> ToolResult:
        calendar_id = _calendar_of(args)
        event = await self.store.delete_by_id(args.event_id, calendar_id)

        self.audit_logger.log_operation(
            operation=ToolName.DELETE_EVENT.value,
            action=AuditAction.DELETE,
            calendar_id=calendar_id,
            event_id=event.id,
            before_state=event.to_payload()
        )
        return ToolValidator.create_success_response(
            f"Event deleted successfully: {event.title}",
            deleted_event_id=event.id
        )

    async def _search_events(self, args) -> ToolResult:
        events = await self.store.search_text(args.query, args.limit, _calendar_of(args))

        return ToolValidator.create_success_response(
            f'Found {len(events)} events matching "{args.query}"',
            events=[event.to_payload() for event in events]
        )

    async def _list_calendars(self, args) -> ToolResult:
        calendars = await self.store.list_calendars(args.max_results)

        return ToolValidator.create_success_response(
            f"Found {len(calendars)} calendars",
            calendars=[calendar.model_dump() for calendar in calendars]
        )
