"""
JSON-RPC router
Validate the 2.0 envelope, route initialize / notifications/initialized /
tools/list / tools/call, and turn every outcome into a JSON-RPC response
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from adapters.base import AuthGate, AuthenticationRequiredError, EventNotFoundError
from services.config import Settings, get_settings
from services.telemetry import ToolMetrics
from tools.registry import ToolRegistry
from tools.validators import UnknownToolError, ValidationException
from .dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
AUTHENTICATION_REQUIRED = -32001
EVENT_NOT_FOUND = -32010

class RpcMethod(str, Enum):
    """Closed set of JSON-RPC methods the server answers"""
    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"

class JsonRpcError(Exception):
    """Error that maps directly onto a JSON-RPC error object"""
    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

def success_response(request_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

def error_response(request_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}

def _to_rpc_error(exc: Exception) -> JsonRpcError:
    """Map a failure raised while handling a request onto its JSON-RPC error"""
    if isinstance(exc, JsonRpcError):
        return exc
    if isinstance(exc, ValidationException):
        return JsonRpcError(INVALID_PARAMS, "Invalid params", exc.errors or exc.message)
    if isinstance(exc, EventNotFoundError):
        return JsonRpcError(EVENT_NOT_FOUND, "Event not found", {"event_id": exc.event_id})
    if isinstance(exc, AuthenticationRequiredError):
        return JsonRpcError(AUTHENTICATION_REQUIRED, "Authentication required", {"auth_url": exc.auth_url})
    return JsonRpcError(INTERNAL_ERROR, "Internal error", str(exc))

class JsonRpcRouter:
    """Stateless router from one decoded envelope to one response"""

    def __init__(
        self,
        registry: ToolRegistry,
        dispatcher: ToolDispatcher,
        settings: Optional[Settings] = None,
        auth_gate: Optional[AuthGate] = None,
        metrics: Optional[ToolMetrics] = None
    ):
        self.registry = registry
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.auth_gate = auth_gate
        self.metrics = metrics or dispatcher.metrics
        self._handlers: Dict[RpcMethod, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            RpcMethod.INITIALIZE: self._initialize,
            RpcMethod.INITIALIZED: self._initialized,
            RpcMethod.TOOLS_LIST: self._tools_list,
            RpcMethod.TOOLS_CALL: self._tools_call
        }
        missing = set(RpcMethod) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for methods: {sorted(m.value for m in missing)}")

    def server_info(self) -> Dict[str, Any]:
        return {
            "name": self.settings.server_name,
            "version": self.settings.server_version,
            "description": self.settings.server_description,
            "protocolVersion": self.settings.mcp_protocol_version
        }

    async def handle(self, message: Any) -> Dict[str, Any]:
        """
        Handle one decoded JSON-RPC request

        Never raises: every failure becomes an error response. The response id
        is the request id when one can be recovered, otherwise null.
        """
        request_id = message.get("id") if isinstance(message, dict) else None
        method = message.get("method") if isinstance(message, dict) else None

        try:
            if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
                raise JsonRpcError(INVALID_REQUEST, "Invalid Request")

            rpc_method = self._resolve_method(method)
            params = message.get("params")
            if params is None:
                params = {}
            if not isinstance(params, dict):
                raise JsonRpcError(INVALID_PARAMS, "Invalid params", "params must be an object")

            logger.debug(f"Handling {rpc_method.value} (id={request_id!r})")
            result = await self._handlers[rpc_method](params)
            return success_response(request_id, result)

        except Exception as e:
            error = _to_rpc_error(e)
            if error.code == INTERNAL_ERROR and not isinstance(e, (JsonRpcError, UnknownToolError)):
                logger.exception(f"Internal error handling {method!r}: {e}")
            else:
                logger.warning(f"JSON-RPC error {error.code} for {method!r}: {error.message} ({error.data})")
            self.metrics.record_error(error.code, method)
            return error_response(request_id, error.code, error.message, error.data)

    def _resolve_method(self, method: Any) -> RpcMethod:
        try:
            return RpcMethod(method)
        except ValueError:
            raise JsonRpcError(METHOD_NOT_FOUND, "Method not found", method)

    async def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        client = params.get("clientInfo")
        if not isinstance(client, dict):
            client = {}
        logger.info(f"Initialize from client {client.get('name', 'unknown')} {client.get('version', '')}".rstrip())
        return {
            "protocolVersion": self.settings.mcp_protocol_version,
            "capabilities": {
                "tools": {},
                "resources": {},
                "prompts": {}
            },
            "serverInfo": self.server_info()
        }

    async def _initialized(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def _tools_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"tools": self.registry.list_payload()}

    async def _tools_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}

        if self.auth_gate is not None and not self.auth_gate.is_authenticated():
            raise AuthenticationRequiredError(self.auth_gate.authorization_url())

        if not isinstance(name, str):
            raise JsonRpcError(INVALID_PARAMS, "Invalid params", "params.name must be a string")

        tool = self.registry.validator.resolve_tool(name)
        validated = self.registry.validate_tool_call(tool, arguments)
        logger.info(f"Calling tool {tool.value}")
        return await self.dispatcher.dispatch(tool, validated)
