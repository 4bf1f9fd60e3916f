"""
Tool registry / schema guard (pydantic models)
Fixed catalog of calendar tools published through tools/list
Validate tools/call arguments & reject on schema error
"""

from mcp.types import Tool
from typing import List, Dict, Any
import logging
from .schemas import ToolName
from .validators import ToolValidator

logger = logging.getLogger(__name__)

TOOL_DESCRIPTIONS: Dict[ToolName, str] = {
    ToolName.CREATE_EVENT: "Create a new calendar event",
    ToolName.LIST_EVENTS: "List calendar events with optional filtering",
    ToolName.GET_EVENT: "Get details of a specific event",
    ToolName.UPDATE_EVENT: "Update an existing calendar event",
    ToolName.DELETE_EVENT: "Delete a calendar event",
    ToolName.SEARCH_EVENTS: "Search events by title or description",
    ToolName.LIST_CALENDARS: "List calendars available to the linked Google account"
}

class ToolRegistry:
    """Registry for MCP tools and their schemas"""

    def __init__(self, google_profile: bool = False):
        self.google_profile = google_profile
        self.validator = ToolValidator(google_profile=google_profile)
        self._tools = self._create_tools()

    def _create_tools(self) -> List[Tool]:
        """Create MCP tool definitions with JSON schemas"""
        tools = [
            Tool(
                name=name.value,
                description=TOOL_DESCRIPTIONS[name],
                inputSchema=self.validator.get_tool_schema(name)
            )
            for name in self.validator.schema_map
        ]

        logger.info(f"Created {len(tools)} tools: {[tool.name for tool in tools]}")
        return tools

    def get_all_tools(self) -> List[Tool]:
        """Get all registered tools"""
        return list(self._tools)

    def get_tool_names(self) -> List[str]:
        """Get list of all tool names"""
        return [tool.name for tool in self._tools]

    def list_payload(self) -> List[Dict[str, Any]]:
        """Tool definitions as returned verbatim by tools/list"""
        return [
            tool.model_dump(mode="json", exclude_none=True, by_alias=True)
            for tool in self._tools
        ]

    def validate_tool_call(self, name: Any, arguments: Dict[str, Any]):
        """
        Validate tool call arguments

        Args:
            name: Tool name
            arguments: Tool arguments to validate

        Returns:
            Validated arguments

        Raises:
            UnknownToolError: If the tool is not registered
            ValidationException: If validation fails
        """
        return self.validator.validate_tool_args(name, arguments)
