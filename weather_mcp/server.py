"""
Weather tool server: FastMCP app with JWT authentication and role-based authorization.

The tool catalog (weather_tools.py) is exposed two ways from one process:

- REST, as FastMCP custom routes:
    GET  /mcp/tools              list tools with their parameter schemas
    POST /mcp/tools/{tool_name}  execute a tool; the body is a JSON object
                                 mapping parameter names to values
- MCP streamable HTTP at /mcp, for MCP clients (tools/list, tools/call)

Both run tools through the same Dispatcher, so argument coercion and the
error taxonomy are identical; on MCP an error comes back as an error result
whose structured content is the REST error body.

Both paths authenticate the Bearer token and then run the Authorization
Gate (the caller must carry ``settings.required_role`` under one of
``settings.role_claim_types``) before any tool is listed or invoked.

REST status codes:
    200  success, body is the tool result
    400  missing parameter, wrong parameter type, invalid body, or a tool
         rejecting its arguments (e.g. days outside 1-7)
    401  missing / invalid / expired token
    403  token lacks the required role
    404  unknown tool
    500  tool failed unexpectedly

Unauthenticated endpoints: /health and /mcp/info.

Running the server:
    python -m weather_mcp.server
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_request
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest
from starlette.middleware import Middleware as ASGIMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from weather_mcp import __version__, weather_tools
from weather_mcp.auth import AuthError, TokenInfo, require_claim, validate_token
from weather_mcp.config import settings
from weather_mcp.correlation import CorrelationIdMiddleware, get_correlation_id
from weather_mcp.errors import AuthorizationDeniedError, InvalidRequestError, ToolServiceError
from weather_mcp.log_config import configure_logging
from weather_mcp.registry import Dispatcher, ToolDescriptor, build_catalog

configure_logging(settings.log_level)
logger = logging.getLogger("weather-mcp.server")


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------
# Built once at import; read-only for the life of the process.
catalog = build_catalog([weather_tools.register_tools])
dispatcher = Dispatcher(catalog)


# ---------------------------------------------------------------------------
# Authentication & Authorization
# ---------------------------------------------------------------------------


def _request_id() -> str:
    return get_correlation_id() or str(uuid.uuid4())[:8]


def authenticate(authorization_header: str | None, request_id: str) -> TokenInfo:
    """
    Validate the Bearer token and log the decision.

    Raises:
        AuthError: If authentication fails for any reason
    """
    try:
        token_info = validate_token(authorization_header)
    except AuthError as e:
        logger.warning(
            "Authentication failed",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "decision": "rejected",
                    "reason": e.message,
                }
            },
        )
        raise

    logger.info(
        "Authentication successful",
        extra={
            "log_data": {
                "request_id": request_id,
                "subject": token_info.subject,
                "scopes": token_info.scopes,
                "decision": "authenticated",
            }
        },
    )
    return token_info


def authorize(token_info: TokenInfo, request_id: str, action: str) -> None:
    """
    Run the Authorization Gate and log the decision.

    Raises:
        AuthorizationDeniedError: If the principal lacks the required role
    """
    try:
        require_claim(token_info)
    except AuthorizationDeniedError:
        logger.warning(
            "Access denied: required role missing",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "subject": token_info.subject,
                    "action": action,
                    "required_role": settings.required_role,
                    "decision": "denied",
                }
            },
        )
        raise

    logger.info(
        "Access allowed",
        extra={
            "log_data": {
                "request_id": request_id,
                "subject": token_info.subject,
                "action": action,
                "decision": "allowed",
            }
        },
    )


class AuthMiddleware(Middleware):
    """
    Authentication and role-based authorization for the MCP protocol endpoint.

    - tools/list answers with an empty list for principals without the role
    - tools/call is refused with a PermissionError, which FastMCP turns into
      an MCP error result
    """

    def _get_auth_header(self) -> str | None:
        """
        Extract the Authorization header from the current HTTP request.

        Returns None if no HTTP request is available (e.g., stdio transport).
        """
        try:
            request = get_http_request()
            return request.headers.get("authorization")
        except RuntimeError:
            return None

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        request_id = _request_id()
        token_info = authenticate(self._get_auth_header(), request_id)

        try:
            authorize(token_info, request_id, "tools/list")
        except AuthorizationDeniedError:
            return []

        return await call_next(context)

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = _request_id()
        token_info = authenticate(self._get_auth_header(), request_id)

        try:
            authorize(token_info, request_id, f"tools/call:{context.message.name}")
        except AuthorizationDeniedError as e:
            raise PermissionError(e.message) from e

        return await call_next(context)


# ---------------------------------------------------------------------------
# Create the MCP server with auth middleware
# ---------------------------------------------------------------------------
mcp = FastMCP(
    name="weather-mcp",
    instructions=(
        "Weather tool server. Provides current conditions, forecasts and "
        "alerts for US states. Callers need the configured application role."
    ),
    middleware=[AuthMiddleware()],
)


class CatalogTool(Tool):
    """
    MCP face of one catalog entry.

    Calls go through the module-level dispatcher, so MCP sees the same argument
    coercion and result normalization as REST. Dispatch errors come back as
    an error result carrying ``ToolServiceError.to_dict()``.
    """

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            result = await dispatcher.execute(self.name, arguments)
        except ToolServiceError as e:
            logger.warning(
                "Tool call rejected",
                extra={"log_data": {"tool": self.name, "error": e.kind, "detail": e.message}},
            )
            return ToolResult(structured_content=e.to_dict(), is_error=True)
        return self.convert_result(result)


def catalog_tool(descriptor: ToolDescriptor) -> CatalogTool:
    return CatalogTool(
        name=descriptor.name,
        description=descriptor.description,
        parameters=descriptor.schema(catalog.coercion)["parameters"],
    )


for _descriptor in catalog.values():
    mcp.add_tool(catalog_tool(_descriptor))


# ---------------------------------------------------------------------------
# REST surface
# ---------------------------------------------------------------------------


def _error_response(error: ToolServiceError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.status_code)


def _unauthorized_response() -> JSONResponse:
    # The reason stays in the server log; clients only learn that auth failed.
    return JSONResponse(
        {"error": "unauthorized", "message": "A valid Bearer token is required"},
        status_code=401,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _gate(request: Request, action: str) -> JSONResponse | None:
    """Authenticate and authorize a REST request; returns the error response, if any."""
    request_id = _request_id()
    try:
        token_info = authenticate(request.headers.get("authorization"), request_id)
        authorize(token_info, request_id, action)
    except AuthError:
        return _unauthorized_response()
    except AuthorizationDeniedError as e:
        return _error_response(e)
    return None


def _reject_constant(name: str):
    raise InvalidRequestError(f"Request body must be valid JSON: {name} is not allowed")


async def _read_arguments(request: Request) -> dict:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        arguments = json.loads(body, parse_constant=_reject_constant)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequestError("Request body must be valid JSON")
    if not isinstance(arguments, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return arguments


@mcp.custom_route("/mcp/tools", methods=["GET"])
async def list_tools(request: Request) -> Response:
    """Schema export of every tool in the catalog."""
    denied = _gate(request, "list_tools")
    if denied is not None:
        return denied
    return JSONResponse(dispatcher.list_tools())


@mcp.custom_route("/mcp/tools/{tool_name}", methods=["POST"])
async def execute_tool(request: Request) -> Response:
    """Execute one tool with the parameters in the JSON request body."""
    tool_name = request.path_params["tool_name"]

    denied = _gate(request, f"execute:{tool_name}")
    if denied is not None:
        return denied

    try:
        arguments = await _read_arguments(request)
        result = await dispatcher.execute(tool_name, arguments)
    except ToolServiceError as e:
        if e.status_code < 500:
            logger.warning(
                "Tool request rejected",
                extra={"log_data": {"tool": tool_name, "error": e.kind, "detail": e.message}},
            )
        return _error_response(e)

    return JSONResponse(result)


# ---------------------------------------------------------------------------
# Info and health endpoints (no authentication)
# ---------------------------------------------------------------------------


@mcp.custom_route("/mcp/info", methods=["GET"])
async def server_info(request: Request) -> Response:
    return JSONResponse(
        {
            "name": "MCP Weather Server",
            "version": __version__,
            "description": "Weather tools protected by OAuth 2.0 bearer tokens",
            "supported_protocols": ["http", "https"],
            "authentication": {
                "type": "oauth2",
                "required_roles": [settings.required_role],
            },
            "capabilities": {"tools": True, "resources": False, "prompts": False},
        }
    )


@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> Response:
    """Liveness probe."""
    return JSONResponse(
        {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
    )


# ---------------------------------------------------------------------------
# ASGI app / entry point
# ---------------------------------------------------------------------------
HTTP_MIDDLEWARE = [ASGIMiddleware(CorrelationIdMiddleware)]


def create_app():
    """Starlette app serving both the REST routes and the MCP endpoint."""
    return mcp.http_app(transport="streamable-http", middleware=HTTP_MIDDLEWARE)


if __name__ == "__main__":
    logger.info(
        "Starting weather tool server on %s:%d (transport=streamable-http, auth=enabled)",
        settings.host,
        settings.port,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        middleware=HTTP_MIDDLEWARE,
    )
