"""
Pydantic schemas for MCP calendar tool definitions
Event model, per-tool argument models and the tool result envelope
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime, timezone
from enum import Enum
from mcp.types import TextContent

DEFAULT_CALENDAR_ID = "primary"
DEFAULT_LIMIT = 10

class ToolName(str, Enum):
    """Closed set of tool names the server knows how to dispatch"""
    CREATE_EVENT = "create_event"
    LIST_EVENTS = "list_events"
    GET_EVENT = "get_event"
    UPDATE_EVENT = "update_event"
    DELETE_EVENT = "delete_event"
    SEARCH_EVENTS = "search_events"
    LIST_CALENDARS = "list_calendars"

def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def parse_date_bound(value: Any) -> Any:
    """A bare YYYY-MM-DD bound means midnight UTC of that day"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str) and len(value) == 10:
        parsed = date.fromisoformat(value)
        return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    return value

class Event(BaseModel):
    """Canonical calendar event held by an event store"""
    id: str = Field(..., description="Opaque unique event identifier")
    title: str = Field(..., min_length=1, description="Event title")
    description: str = Field("", description="Event description")
    start_time: datetime = Field(..., description="Event start time")
    end_time: datetime = Field(..., description="Event end time")
    location: str = Field("", description="Event location")
    attendees: List[str] = Field(default_factory=list, description="Attendee emails")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Timestamp of the last update")
    calendar_id: Optional[str] = Field(None, description="Owning calendar (remote backends only)")
    html_link: Optional[str] = Field(None, description="Link to the event in the provider UI")

    @field_validator('start_time', 'end_time', 'created_at', 'updated_at')
    @classmethod
    def normalize_timezone(cls, v):
        return ensure_utc(v)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready representation; unset optional keys are omitted"""
        return self.model_dump(mode="json", exclude_none=True)

class CalendarInfo(BaseModel):
    """Calendar descriptor returned by list_calendars"""
    id: str
    summary: str = ""
    description: str = ""
    time_zone: Optional[str] = None
    access_role: Optional[str] = None
    primary: bool = False

# Tool argument schemas

class CreateEventSchema(BaseModel):
    """Schema for creating a calendar event"""
    title: str = Field(..., min_length=1, description="Event title")
    description: str = Field("", description="Event description")
    start_time: datetime = Field(..., description="Event start time (ISO 8601 format)")
    end_time: datetime = Field(..., description="Event end time (ISO 8601 format)")
    location: str = Field("", description="Event location")
    attendees: List[str] = Field(default_factory=list, description="List of attendee emails")

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, v):
        return ensure_utc(v)

class ListEventsSchema(BaseModel):
    """Schema for listing calendar events with optional filtering"""
    start_date: Optional[datetime] = Field(None, description="Filter events from this date (YYYY-MM-DD or ISO 8601)")
    end_date: Optional[datetime] = Field(None, description="Filter events until this date (YYYY-MM-DD or ISO 8601)")
    limit: int = Field(DEFAULT_LIMIT, ge=1, description="Maximum number of events to return")

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def parse_bound(cls, v):
        return parse_date_bound(v)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_timezone(cls, v):
        return ensure_utc(v)

class EventReferenceSchema(BaseModel):
    """Schema for tools addressing a single event by ID"""
    event_id: str = Field(..., min_length=1, description="Event ID")

class GetEventSchema(EventReferenceSchema):
    """Schema for fetching a single event"""

class DeleteEventSchema(EventReferenceSchema):
    """Schema for deleting a calendar event"""

class UpdateEventSchema(EventReferenceSchema):
    """
    Schema for updating a calendar event

    Only fields present in the request are applied; an explicit empty value
    still overwrites. Explicit nulls are rejected.
    """
    title: str = Field(None, min_length=1, description="Event title")
    description: str = Field(None, description="Event description")
    start_time: datetime = Field(None, description="Event start time (ISO 8601 format)")
    end_time: datetime = Field(None, description="Event end time (ISO 8601 format)")
    location: str = Field(None, description="Event location")
    attendees: List[str] = Field(None, description="List of attendee emails")

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, v):
        return ensure_utc(v)

    def changes(self) -> Dict[str, Any]:
        """Fields supplied by the caller, excluding addressing keys"""
        return self.model_dump(exclude_unset=True, exclude={"event_id", "calendar_id"})

class SearchEventsSchema(BaseModel):
    """Schema for searching events by title or description"""
    query: str = Field(..., min_length=1, description="Search query")
    limit: int = Field(DEFAULT_LIMIT, ge=1, description="Maximum number of events to return")

# Google Calendar profile: every operation is scoped by calendar

class CalendarScopedSchema(BaseModel):
    calendar_id: str = Field(DEFAULT_CALENDAR_ID, min_length=1, description="Calendar ID (defaults to the primary calendar)")

class GoogleCreateEventSchema(CreateEventSchema, CalendarScopedSchema):
    """Schema for creating a Google Calendar event"""

class GoogleListEventsSchema(ListEventsSchema, CalendarScopedSchema):
    """Schema for listing Google Calendar events in a time window"""
    time_min: Optional[datetime] = Field(None, description="Lower bound (exclusive) for an event's end time, ISO 8601")
    time_max: Optional[datetime] = Field(None, description="Upper bound (exclusive) for an event's start time, ISO 8601")
    max_results: Optional[int] = Field(None, ge=1, le=2500, description="Maximum number of events to return (overrides limit)")
    single_events: bool = Field(True, description="Expand recurring events into single instances")

    @field_validator('time_min', 'time_max')
    @classmethod
    def normalize_window(cls, v):
        return ensure_utc(v)

class GoogleGetEventSchema(GetEventSchema, CalendarScopedSchema):
    """Schema for fetching a single Google Calendar event"""

class GoogleUpdateEventSchema(UpdateEventSchema, CalendarScopedSchema):
    """Schema for updating a Google Calendar event"""

class GoogleDeleteEventSchema(DeleteEventSchema, CalendarScopedSchema):
    """Schema for deleting a Google Calendar event"""

class GoogleSearchEventsSchema(SearchEventsSchema, CalendarScopedSchema):
    """Schema for full-text search in a Google Calendar"""

class ListCalendarsSchema(BaseModel):
    """Schema for listing the calendars visible to the linked account"""
    max_results: int = Field(DEFAULT_LIMIT, ge=1, le=250, description="Maximum number of calendars to return")

# Tool response schema

class ToolResult(BaseModel):
    """Result of a tools/call: a summary line plus one structured payload"""
    content: List[TextContent] = Field(..., description="Human-readable summary")
    event: Optional[Dict[str, Any]] = Field(None, description="Single event payload")
    events: Optional[List[Dict[str, Any]]] = Field(None, description="Event list payload")
    calendars: Optional[List[Dict[str, Any]]] = Field(None, description="Calendar list payload")
    deleted_event_id: Optional[str] = Field(None, description="ID of the removed event")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True, by_alias=True)
