"""
Event store contract shared by the in-memory and Google Calendar backends
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from tools.schemas import DEFAULT_CALENDAR_ID, DEFAULT_LIMIT, CalendarInfo, Event

class EventNotFoundError(Exception):
    """Raised when a referenced event ID does not exist in the store"""
    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")

class AuthenticationRequiredError(Exception):
    """Raised when a remote call is attempted without a usable credential"""
    def __init__(self, auth_url: str):
        self.auth_url = auth_url
        super().__init__("Authentication required")

class CalendarBackendError(Exception):
    """Raised when the remote calendar provider call fails"""
    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation}: {cause}")

@dataclass
class EventWindow:
    """Filter for list_filtered; bounds are compared against start_time"""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: int = DEFAULT_LIMIT
    single_events: bool = True

    def matches(self, event: Event) -> bool:
        if self.start is not None and event.start_time < self.start:
            return False
        if self.end is not None and event.start_time > self.end:
            return False
        return True

class EventStore(ABC):
    """Holds the canonical collection of calendar events"""

    @abstractmethod
    async def insert(self, fields: Dict[str, Any], calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        """Store a new event; the store assigns id and created_at"""
        ...

    @abstractmethod
    async def list_filtered(self, window: EventWindow, calendar_id: str = DEFAULT_CALENDAR_ID) -> List[Event]:
        ...

    @abstractmethod
    async def get_by_id(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        ...

    @abstractmethod
    async def update_by_id(self, event_id: str, changes: Dict[str, Any], calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        ...

    @abstractmethod
    async def delete_by_id(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        ...

    @abstractmethod
    async def search_text(self, query: str, limit: int = DEFAULT_LIMIT, calendar_id: str = DEFAULT_CALENDAR_ID) -> List[Event]:
        ...

    @abstractmethod
    async def list_calendars(self, max_results: int = DEFAULT_LIMIT) -> List[CalendarInfo]:
        ...

    async def count(self) -> Optional[int]:
        """Number of stored events, or None when the backend cannot tell cheaply"""
        return None

@runtime_checkable
class AuthGate(Protocol):
    """Tracks whether a usable credential exists for the remote backend"""

    def is_authenticated(self) -> bool: ...

    def authorization_url(self) -> str: ...
