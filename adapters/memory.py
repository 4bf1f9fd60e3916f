"""
In-process event store
Insertion-ordered list guarded by one whole-store lock; nothing survives a restart
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from tools.schemas import DEFAULT_CALENDAR_ID, DEFAULT_LIMIT, CalendarInfo, Event
from .base import EventNotFoundError, EventStore, EventWindow

logger = logging.getLogger(__name__)

LOCAL_CALENDAR = CalendarInfo(
    id="local",
    summary="Local calendar",
    description="In-memory calendar of this server process",
    time_zone="UTC",
    access_role="owner",
    primary=True
)

class InMemoryEventStore(EventStore):
    """Event store backed by a Python list"""

    def __init__(self):
        self._events: List[Event] = []
        self._issued_ids: Set[str] = set()
        self._lock = threading.Lock()

    def _new_id(self) -> str:
        event_id = str(uuid.uuid4())
        while event_id in self._issued_ids:
            event_id = str(uuid.uuid4())
        self._issued_ids.add(event_id)
        return event_id

    def _index_of(self, event_id: str) -> int:
        for index, event in enumerate(self._events):
            if event.id == event_id:
                return index
        raise EventNotFoundError(event_id)

    async def insert(self, fields: Dict[str, Any], calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        with self._lock:
            event = Event(
                id=self._new_id(),
                created_at=datetime.now(timezone.utc),
                **fields
            )
            self._events.append(event)
            logger.debug(f"Stored event {event.id}; {len(self._events)} events held")
            return event.model_copy(deep=True)

    async def list_filtered(self, window: EventWindow, calendar_id: str = DEFAULT_CALENDAR_ID) -> List[Event]:
        with self._lock:
            matched = [event for event in self._events if window.matches(event)]
            return [event.model_copy(deep=True) for event in matched[:window.limit]]

    async def get_by_id(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        with self._lock:
            return self._events[self._index_of(event_id)].model_copy(deep=True)

    async def update_by_id(self, event_id: str, changes: Dict[str, Any], calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        with self._lock:
            index = self._index_of(event_id)
            current = self._events[index]

            now = datetime.now(timezone.utc)
            previous = current.updated_at or current.created_at
            merged = current.model_dump()
            merged.update(changes)
            merged["id"] = current.id
            merged["created_at"] = current.created_at
            merged["updated_at"] = max(now, previous)

            # Stored record is replaced only once the merged event validates
            updated = Event.model_validate(merged)
            self._events[index] = updated
            return updated.model_copy(deep=True)

    async def delete_by_id(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        with self._lock:
            return self._events.pop(self._index_of(event_id))

    async def search_text(self, query: str, limit: int = DEFAULT_LIMIT, calendar_id: str = DEFAULT_CALENDAR_ID) -> List[Event]:
        needle = query.lower()
        with self._lock:
            matched = [
                event for event in self._events
                if needle in event.title.lower() or needle in event.description.lower()
            ]
            return [event.model_copy(deep=True) for event in matched[:limit]]

    async def list_calendars(self, max_results: int = DEFAULT_LIMIT) -> List[CalendarInfo]:
        return [LOCAL_CALENDAR.model_copy()][:max_results]

    async def count(self) -> Optional[int]:
        with self._lock:
            return len(self._events)
