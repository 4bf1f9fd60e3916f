"""
Google Calendar event store (google-api-python-client)
Translate store operations → Google endpoints (events.insert/list/get/update/delete,
calendarList.list) and Google's event shape ↔ the server's Event model
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timezone
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from tools.schemas import DEFAULT_CALENDAR_ID, DEFAULT_LIMIT, CalendarInfo, Event
from services.config import Settings, get_settings
from .auth import GoogleAuthManager
from .base import CalendarBackendError, EventNotFoundError, EventStore, EventWindow
from .workers import WorkerPool

logger = logging.getLogger(__name__)

UNTITLED = "(No title)"
NOT_FOUND_STATUSES = (404, 410)

def _parse_google_time(value: Optional[Dict[str, Any]]) -> Optional[datetime]:
    """Google start/end object → aware datetime; all-day dates map to midnight UTC"""
    if not value:
        return None
    if value.get('dateTime'):
        parsed = datetime.fromisoformat(value['dateTime'])
    elif value.get('date'):
        parsed = datetime.fromisoformat(value['date'])
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)

def from_google_event(item: Dict[str, Any], calendar_id: str) -> Event:
    """Build an Event from a Google Calendar event resource"""
    return Event(
        id=item['id'],
        title=item.get('summary') or UNTITLED,
        description=item.get('description', ''),
        start_time=_parse_google_time(item.get('start')),
        end_time=_parse_google_time(item.get('end')),
        location=item.get('location', ''),
        attendees=[a['email'] for a in item.get('attendees', []) if a.get('email')],
        created_at=_parse_timestamp(item.get('created')) or datetime.now(timezone.utc),
        updated_at=_parse_timestamp(item.get('updated')),
        calendar_id=calendar_id,
        html_link=item.get('htmlLink')
    )

def to_google_body(fields: Dict[str, Any], time_zone: str) -> Dict[str, Any]:
    """Build the Google event body for the fields present in `fields`"""
    body: Dict[str, Any] = {}

    if 'title' in fields:
        body['summary'] = fields['title']

    if 'description' in fields:
        body['description'] = fields['description']

    if 'location' in fields:
        body['location'] = fields['location']

    if 'start_time' in fields:
        body['start'] = _convert_datetime(fields['start_time'], time_zone)

    if 'end_time' in fields:
        body['end'] = _convert_datetime(fields['end_time'], time_zone)

    if 'attendees' in fields:
        body['attendees'] = [{'email': email} for email in fields['attendees']]

    return body

def _convert_datetime(value: datetime, time_zone: str) -> Dict[str, Any]:
    return {'dateTime': value.isoformat(), 'timeZone': time_zone}

def _to_calendar_info(item: Dict[str, Any]) -> CalendarInfo:
    return CalendarInfo(
        id=item['id'],
        summary=item.get('summary', ''),
        description=item.get('description', ''),
        time_zone=item.get('timeZone'),
        access_role=item.get('accessRole'),
        primary=item.get('primary', False)
    )

class GoogleCalendarStore(EventStore):
    """
    Event store that forwards every operation to the Google Calendar API

    No cross-request locking is possible here. update_by_id is a read-modify-write
    (events.get then events.update), so a concurrent remote change between the
    two calls is overwritten.
    """

    def __init__(
        self,
        auth_manager: GoogleAuthManager,
        worker_pool: WorkerPool,
        settings: Optional[Settings] = None
    ):
        self.auth_manager = auth_manager
        self.worker_pool = worker_pool
        self.settings = settings or get_settings()
        self._calendar_service = None
        self._service_credentials = None

    def _get_calendar_service(self):
        """Get a Calendar v3 client for the current credentials"""
        credentials = self.auth_manager.get_credentials()
        if self._calendar_service is None or self._service_credentials is not credentials:
            self._calendar_service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
            self._service_credentials = credentials
        return self._calendar_service

    async def _execute(
        self,
        operation: str,
        request: Callable[[Any], Any],
        event_id: Optional[str] = None
    ) -> Any:
        """Run one API request on the worker pool and map its failures"""
        service = self._get_calendar_service()

        try:
            return await self.worker_pool.execute_sync(lambda: request(service).execute())
        except HttpError as e:
            if event_id is not None and e.resp.status in NOT_FOUND_STATUSES:
                raise EventNotFoundError(event_id) from e
            logger.error(f"Google Calendar API error during {operation}: {e}")
            raise CalendarBackendError(operation, e) from e
        except Exception as e:
            logger.error(f"Google Calendar call failed during {operation}: {e}")
            raise CalendarBackendError(operation, e) from e

    async def _fetch_raw(self, event_id: str, calendar_id: str) -> Dict[str, Any]:
        return await self._execute(
            "get event",
            lambda service: service.events().get(calendarId=calendar_id, eventId=event_id),
            event_id=event_id
        )

    async def insert(self, fields: Dict[str, Any], calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        body = to_google_body(fields, self.settings.google_default_time_zone)
        logger.info(f"Creating Google Calendar event '{fields.get('title')}' in {calendar_id}")

        created = await self._execute(
            "create event",
            lambda service: service.events().insert(calendarId=calendar_id, body=body)
        )
        return from_google_event(created, calendar_id)

    async def list_filtered(self, window: EventWindow, calendar_id: str = DEFAULT_CALENDAR_ID) -> List[Event]:
        params: Dict[str, Any] = {
            'calendarId': calendar_id,
            'maxResults': window.limit,
            'singleEvents': window.single_events
        }
        if window.single_events:
            params['orderBy'] = 'startTime'
        if window.start is not None:
            params['timeMin'] = window.start.isoformat()
        if window.end is not None:
            params['timeMax'] = window.end.isoformat()

        response = await self._execute(
            "list events",
            lambda service: service.events().list(**params)
        )
        events = [from_google_event(item, calendar_id) for item in response.get('items', [])]
        events.sort(key=lambda event: event.start_time)
        return events[:window.limit]

    async def get_by_id(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        return from_google_event(await self._fetch_raw(event_id, calendar_id), calendar_id)

    async def update_by_id(self, event_id: str, changes: Dict[str, Any], calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        current = await self._fetch_raw(event_id, calendar_id)

        merged = dict(current)
        merged.update(to_google_body(changes, self.settings.google_default_time_zone))
        logger.info(f"Updating Google Calendar event {event_id} fields {sorted(changes)}")

        updated = await self._execute(
            "update event",
            lambda service: service.events().update(calendarId=calendar_id, eventId=event_id, body=merged),
            event_id=event_id
        )
        return from_google_event(updated, calendar_id)

    async def delete_by_id(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> Event:
        current = await self._fetch_raw(event_id, calendar_id)
        logger.info(f"Deleting Google Calendar event {event_id}")

        await self._execute(
            "delete event",
            lambda service: service.events().delete(calendarId=calendar_id, eventId=event_id),
            event_id=event_id
        )
        return from_google_event(current, calendar_id)

    async def search_text(self, query: str, limit: int = DEFAULT_LIMIT, calendar_id: str = DEFAULT_CALENDAR_ID) -> List[Event]:
        response = await self._execute(
            "search events",
            lambda service: service.events().list(
                calendarId=calendar_id,
                q=query,
                maxResults=limit,
                singleEvents=True,
                orderBy='startTime'
            )
        )
        return [from_google_event(item, calendar_id) for item in response.get('items', [])][:limit]

    async def list_calendars(self, max_results: int = DEFAULT_LIMIT) -> List[CalendarInfo]:
        response = await self._execute(
            "list calendars",
            lambda service: service.calendarList().list(maxResults=max_results)
        )
        return [_to_calendar_info(item) for item in response.get('items', [])][:max_results]
