"""
JSON-RPC router and tool dispatcher tests
End-to-end calls against the in-memory store and error code mapping
"""

import pytest
from unittest.mock import Mock
from adapters.memory import InMemoryEventStore
from router.dispatcher import ToolDispatcher
from router.rpc import JsonRpcRouter
from services.audit import AuditAction
from services.config import Settings
from tools.registry import ToolRegistry

STANDUP = {
    "title": "Standup",
    "start_time": "2024-01-15T09:00:00Z",
    "end_time": "2024-01-15T09:15:00Z"
}

@pytest.fixture
def settings():
    return Settings(server_name="calendar-server", server_version="1.0.0", mcp_protocol_version="2024-11-05")

@pytest.fixture
def audit_logger():
    return Mock()

@pytest.fixture
def router(settings, audit_logger):
    dispatcher = ToolDispatcher(InMemoryEventStore(), audit_logger=audit_logger, metrics=Mock())
    return JsonRpcRouter(ToolRegistry(), dispatcher, settings=settings)

def request(method, params=None, request_id=1):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message

async def call_tool(router, name, arguments, request_id=1):
    return await router.handle(request("tools/call", {"name": name, "arguments": arguments}, request_id))

class TestProtocolMethods:
    """Test initialize and tools/list"""

    @pytest.mark.asyncio
    async def test_initialize(self, router):
        response = await router.handle(request("initialize", {"clientInfo": {"name": "test", "version": "0.1"}}))

        result = response["result"]
        assert response["id"] == 1
        assert result["protocolVersion"] == "2024-11-05"
        assert result["capabilities"] == {"tools": {}, "resources": {}, "prompts": {}}
        assert result["serverInfo"]["name"] == "calendar-server"
        assert result["serverInfo"]["version"] == "1.0.0"

    @pytest.mark.asyncio
    async def test_initialize_ignores_malformed_client_info(self, router):
        for client_info in ("cli", ["cli"], None, 42):
            response = await router.handle(request("initialize", {"clientInfo": client_info}))

            assert "error" not in response
            assert response["result"]["serverInfo"]["name"] == "calendar-server"

    @pytest.mark.asyncio
    async def test_initialize_twice_is_identical(self, router):
        first = await router.handle(request("initialize"))
        second = await router.handle(request("initialize"))
        assert first == second

    @pytest.mark.asyncio
    async def test_initialized_notification(self, router):
        response = await router.handle({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert response["result"] == {}
        assert response["id"] is None

    @pytest.mark.asyncio
    async def test_tools_list(self, router):
        response = await router.handle(request("tools/list", request_id="abc"))

        names = [tool["name"] for tool in response["result"]["tools"]]
        assert response["id"] == "abc"
        assert names == ["create_event", "list_events", "get_event", "update_event", "delete_event", "search_events"]

    @pytest.mark.asyncio
    async def test_tools_list_before_initialize(self, router):
        response = await router.handle(request("tools/list"))
        assert "result" in response

class TestEnvelopeErrors:
    """Test envelope and method error mapping"""

    @pytest.mark.asyncio
    async def test_wrong_jsonrpc_version(self, router):
        response = await router.handle({"jsonrpc": "1.0", "id": 7, "method": "tools/list"})
        assert response["error"]["code"] == -32600
        assert response["id"] == 7

    @pytest.mark.asyncio
    async def test_non_object_request(self, router):
        response = await router.handle(["not", "a", "request"])
        assert response["error"]["code"] == -32600
        assert response["id"] is None

    @pytest.mark.asyncio
    async def test_unknown_method(self, router):
        response = await router.handle(request("resources/list"))
        assert response["error"]["code"] == -32601
        assert response["error"]["data"] == "resources/list"

    @pytest.mark.asyncio
    async def test_null_id_echoed(self, router):
        response = await router.handle(request("tools/list", request_id=None))
        assert response["id"] is None
        assert "result" in response

    @pytest.mark.asyncio
    async def test_params_must_be_object(self, router):
        response = await router.handle(request("tools/call", params=["create_event"]))
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_unknown_tool(self, router):
        response = await call_tool(router, "delete_calendar", {})
        assert response["error"]["code"] == -32603
        assert "delete_calendar" in response["error"]["data"]

    @pytest.mark.asyncio
    async def test_missing_tool_name(self, router):
        response = await router.handle(request("tools/call", {"arguments": {}}))
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_missing_title(self, router):
        response = await call_tool(router, "create_event", {"start_time": "2024-01-15T09:00:00Z", "end_time": "2024-01-15T10:00:00Z"})

        error = response["error"]
        assert error["code"] == -32602
        assert error["data"][0]["field"] == "title"

    @pytest.mark.asyncio
    async def test_bad_timestamp(self, router):
        response = await call_tool(router, "create_event", dict(STANDUP, start_time="next tuesday"))
        assert response["error"]["code"] == -32602

class TestToolCalls:
    """Test dispatcher behaviour through tools/call"""

    @pytest.mark.asyncio
    async def test_create_then_get(self, router, audit_logger):
        created = await call_tool(router, "create_event", STANDUP)

        result = created["result"]
        event_id = result["event"]["id"]
        assert result["content"] == [{"type": "text", "text": f"Event created successfully with ID: {event_id}"}]
        assert result["event"]["start_time"] == "2024-01-15T09:00:00Z"
        assert audit_logger.log_operation.call_args.kwargs["action"] is AuditAction.CREATE

        fetched = await call_tool(router, "get_event", {"event_id": event_id})
        assert fetched["result"]["content"][0]["text"] == "Event details for: Standup"
        assert fetched["result"]["event"] == result["event"]

    @pytest.mark.asyncio
    async def test_create_ids_unique(self, router):
        first = await call_tool(router, "create_event", STANDUP)
        second = await call_tool(router, "create_event", STANDUP)
        assert first["result"]["event"]["id"] != second["result"]["event"]["id"]

    @pytest.mark.asyncio
    async def test_get_missing_event(self, router):
        response = await call_tool(router, "get_event", {"event_id": "nope"})
        assert response["error"]["code"] == -32010
        assert response["error"]["data"] == {"event_id": "nope"}

    @pytest.mark.asyncio
    async def test_list_events_filters_and_limits(self, router):
        for day in ("14", "15", "16", "17"):
            await call_tool(router, "create_event", dict(
                STANDUP,
                title=f"Standup {day}",
                start_time=f"2024-01-{day}T09:00:00Z",
                end_time=f"2024-01-{day}T09:15:00Z"
            ))

        response = await call_tool(router, "list_events", {"start_date": "2024-01-15", "end_date": "2024-01-16T23:59:59Z"})
        result = response["result"]
        assert result["content"][0]["text"] == "Found 2 events"
        assert [e["title"] for e in result["events"]] == ["Standup 15", "Standup 16"]

        limited = await call_tool(router, "list_events", {"limit": 3})
        assert len(limited["result"]["events"]) == 3

        empty = await call_tool(router, "list_events", {"start_date": "2030-01-01"})
        assert empty["result"]["events"] == []
        assert empty["result"]["content"][0]["text"] == "Found 0 events"

    @pytest.mark.asyncio
    async def test_list_events_zero_limit_rejected(self, router):
        response = await call_tool(router, "list_events", {"limit": 0})
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_update_partial(self, router, audit_logger):
        created = await call_tool(router, "create_event", dict(STANDUP, location="Room 1", attendees=["a@example.com"]))
        event = created["result"]["event"]

        response = await call_tool(router, "update_event", {"event_id": event["id"], "title": "Standup (moved)"})
        updated = response["result"]["event"]

        assert response["result"]["content"][0]["text"] == "Event updated successfully: Standup (moved)"
        assert updated["location"] == "Room 1"
        assert updated["attendees"] == ["a@example.com"]
        assert updated["start_time"] == event["start_time"]
        assert updated["created_at"] == event["created_at"]
        assert "updated_at" in updated
        assert audit_logger.log_operation.call_args.kwargs["action"] is AuditAction.UPDATE

    @pytest.mark.asyncio
    async def test_update_missing_event(self, router, audit_logger):
        response = await call_tool(router, "update_event", {"event_id": "nope", "title": "X"})

        assert response["error"]["code"] == -32010
        kwargs = audit_logger.log_operation.call_args.kwargs
        assert kwargs["success"] is False
        assert kwargs["event_id"] == "nope"

    @pytest.mark.asyncio
    async def test_delete_event(self, router):
        created = await call_tool(router, "create_event", STANDUP)
        event_id = created["result"]["event"]["id"]

        response = await call_tool(router, "delete_event", {"event_id": event_id})
        assert response["result"]["content"][0]["text"] == "Event deleted successfully: Standup"
        assert response["result"]["deleted_event_id"] == event_id

        again = await call_tool(router, "delete_event", {"event_id": event_id})
        assert again["error"]["code"] == -32010

    @pytest.mark.asyncio
    async def test_search_events(self, router):
        await call_tool(router, "create_event", dict(STANDUP, title="Team Standup"))
        await call_tool(router, "create_event", dict(STANDUP, title="Lunch", description="team lunch"))
        await call_tool(router, "create_event", dict(STANDUP, title="Dentist"))

        response = await call_tool(router, "search_events", {"query": "TEAM"})
        result = response["result"]
        assert result["content"][0]["text"] == 'Found 2 events matching "TEAM"'
        assert [e["title"] for e in result["events"]] == ["Team Standup", "Lunch"]

    @pytest.mark.asyncio
    async def test_store_failure_is_internal_error(self, settings):
        store = Mock()
        store.get_by_id.side_effect = RuntimeError("disk on fire")
        dispatcher = ToolDispatcher(store, audit_logger=Mock(), metrics=Mock())
        router = JsonRpcRouter(ToolRegistry(), dispatcher, settings=settings)

        response = await call_tool(router, "get_event", {"event_id": "x"})
        assert response["error"]["code"] == -32603
        assert response["error"]["data"] == "disk on fire"

class TestAuthGate:
    """Test tools/call gating on the remote backend credential"""

    def make_router(self, settings, authenticated):
        gate = Mock()
        gate.is_authenticated.return_value = authenticated
        gate.authorization_url.return_value = "http://localhost:3000/oauth/start"
        store = Mock()
        dispatcher = ToolDispatcher(store, audit_logger=Mock(), metrics=Mock())
        return JsonRpcRouter(ToolRegistry(google_profile=True), dispatcher, settings=settings, auth_gate=gate), store

    @pytest.mark.asyncio
    async def test_unauthenticated_call_rejected(self, settings):
        router, store = self.make_router(settings, authenticated=False)

        response = await call_tool(router, "create_event", STANDUP)

        assert response["error"]["code"] == -32001
        assert response["error"]["data"] == {"auth_url": "http://localhost:3000/oauth/start"}
        store.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_listing_tools_needs_no_credential(self, settings):
        router, _ = self.make_router(settings, authenticated=False)

        response = await router.handle(request("tools/list"))
        names = [tool["name"] for tool in response["result"]["tools"]]
        assert "list_calendars" in names
