"""
Error taxonomy for tool registration and dispatch.

Every error the tool server can report to a caller derives from
ToolServiceError and carries:

- ``kind``: a stable snake_case identifier clients can branch on
- ``status_code``: the HTTP status the REST layer responds with
- ``message``: a human-readable description

The REST layer never lets anything other than these reach the wire; see
``to_dict()`` for the response body shape.
"""

from typing import Any


class ToolServiceError(Exception):
    """Base class for all errors surfaced by the tool server."""

    kind = "tool_service_error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ToolNotFoundError(ToolServiceError):
    """The requested tool name is not in the catalog."""

    kind = "tool_not_found"
    status_code = 404

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "tool": self.tool_name}


class MissingParameterError(ToolServiceError):
    """A required parameter was absent from the request body."""

    kind = "missing_parameter"
    status_code = 400

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"Required parameter '{parameter}' not provided")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "parameter": self.parameter}


class TypeCoercionError(ToolServiceError):
    """A provided value cannot be converted to the parameter's declared type."""

    kind = "type_coercion"
    status_code = 400

    def __init__(self, parameter: str, declared_type: str, reason: str):
        self.parameter = parameter
        self.declared_type = declared_type
        super().__init__(f"Parameter '{parameter}' expects {declared_type}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "parameter": self.parameter,
            "expected": self.declared_type,
        }


class ToolArgumentError(ValueError):
    """
    Raised by tool bodies for arguments that are well-typed but invalid.

    Example: a forecast for 10 days when the tool supports 1-7. The
    dispatcher reports these as client errors (400) rather than server faults.
    """


class ToolExecutionError(ToolServiceError):
    """
    The tool body raised while running.

    Wraps the original exception as ``inner``. A ToolArgumentError from the
    body is the caller's fault (400, message passed through); anything else is
    ours (500, generic message so internals are not leaked to the caller).
    """

    kind = "tool_execution"

    def __init__(self, tool_name: str, inner: BaseException):
        self.tool_name = tool_name
        self.inner = inner
        if self.is_validation_failure:
            message = str(inner)
        else:
            message = f"Tool '{tool_name}' failed unexpectedly"
        super().__init__(message)

    @property
    def is_validation_failure(self) -> bool:
        return isinstance(self.inner, ToolArgumentError)

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return 400 if self.is_validation_failure else 500

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "tool": self.tool_name}


class AuthorizationDeniedError(ToolServiceError):
    """The principal does not carry the required claim."""

    kind = "authorization_denied"
    status_code = 403

    def __init__(self, required_value: str):
        self.required_value = required_value
        super().__init__(f"Access denied: requires role '{required_value}'")


class RegistrationConflictError(ToolServiceError):
    """Two tools resolved to the same name while building the catalog."""

    kind = "registration_conflict"

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Duplicate tool: {tool_name}")


class InvalidRequestError(ToolServiceError):
    """The request body is not a JSON object."""

    kind = "invalid_request"
    status_code = 400

