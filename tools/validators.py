"""
Input validation and schema enforcement
Tool arguments are validated against the same pydantic models that produce
the published input schemas
"""

from pydantic import BaseModel, ValidationError
from typing import Dict, Any, Type
import logging
from mcp.types import TextContent
from .schemas import (
    ToolName,
    CreateEventSchema,
    ListEventsSchema,
    GetEventSchema,
    UpdateEventSchema,
    DeleteEventSchema,
    SearchEventsSchema,
    GoogleCreateEventSchema,
    GoogleListEventsSchema,
    GoogleGetEventSchema,
    GoogleUpdateEventSchema,
    GoogleDeleteEventSchema,
    GoogleSearchEventsSchema,
    ListCalendarsSchema,
    ToolResult
)

logger = logging.getLogger(__name__)

class ValidationException(Exception):
    """Raised when tool arguments do not satisfy the tool's input schema"""
    def __init__(self, message: str, errors: list = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

class UnknownToolError(Exception):
    """Raised when tools/call names a tool outside the active catalog"""
    def __init__(self, name: Any):
        self.name = name
        super().__init__(f"Unknown tool: {name}")

LOCAL_SCHEMAS: Dict[ToolName, Type[BaseModel]] = {
    ToolName.CREATE_EVENT: CreateEventSchema,
    ToolName.LIST_EVENTS: ListEventsSchema,
    ToolName.GET_EVENT: GetEventSchema,
    ToolName.UPDATE_EVENT: UpdateEventSchema,
    ToolName.DELETE_EVENT: DeleteEventSchema,
    ToolName.SEARCH_EVENTS: SearchEventsSchema
}

GOOGLE_SCHEMAS: Dict[ToolName, Type[BaseModel]] = {
    ToolName.CREATE_EVENT: GoogleCreateEventSchema,
    ToolName.LIST_EVENTS: GoogleListEventsSchema,
    ToolName.GET_EVENT: GoogleGetEventSchema,
    ToolName.UPDATE_EVENT: GoogleUpdateEventSchema,
    ToolName.DELETE_EVENT: GoogleDeleteEventSchema,
    ToolName.SEARCH_EVENTS: GoogleSearchEventsSchema,
    ToolName.LIST_CALENDARS: ListCalendarsSchema
}

class ToolValidator:
    """Validates tool arguments against the pydantic schemas of one catalog profile"""

    def __init__(self, google_profile: bool = False):
        self.schema_map = GOOGLE_SCHEMAS if google_profile else LOCAL_SCHEMAS

    def resolve_tool(self, tool_name: Any) -> ToolName:
        """Map a raw tool name onto the closed ToolName enum for this profile"""
        try:
            name = ToolName(tool_name)
        except ValueError:
            raise UnknownToolError(tool_name)
        if name not in self.schema_map:
            raise UnknownToolError(tool_name)
        return name

    def validate_tool_args(self, tool_name: Any, arguments: Dict[str, Any]) -> BaseModel:
        """
        Validate tool arguments against the appropriate schema

        Args:
            tool_name: Name of the tool to validate
            arguments: Arguments to validate

        Returns:
            Validated schema instance

        Raises:
            UnknownToolError: If the tool is not in the catalog
            ValidationException: If validation fails
        """
        name = self.resolve_tool(tool_name)
        schema_class = self.schema_map[name]

        if not isinstance(arguments, dict):
            raise ValidationException(
                f"Validation failed for tool '{name.value}'",
                [{"field": "arguments", "message": "Arguments must be an object", "type": "dict_type"}]
            )

        try:
            validated_args = schema_class.model_validate(arguments)
            logger.debug(f"Successfully validated arguments for tool: {name.value}")
            return validated_args

        except ValidationError as e:
            error_details = []
            for error in e.errors():
                field = " -> ".join(str(loc) for loc in error["loc"])
                error_details.append({
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"]
                })

            error_message = f"Validation failed for tool '{name.value}'"
            logger.warning(f"{error_message}: {error_details}")

            raise ValidationException(error_message, error_details)

    def get_tool_schema(self, tool_name: Any) -> Dict[str, Any]:
        """JSON schema for a tool's arguments"""
        name = self.resolve_tool(tool_name)
        return self.schema_map[name].model_json_schema()

    @staticmethod
    def create_success_response(message: str, **payload: Any) -> ToolResult:
        """
        Create a standardized tool result

        Args:
            message: Summary line shown to the client
            **payload: One of event, events, calendars, deleted_event_id

        Returns:
            ToolResult with the summary as text content
        """
        return ToolResult(
            content=[TextContent(type="text", text=message)],
            **payload
        )
