"""
Tool registry, catalog and dispatcher.

Tools are declared explicitly: each tool-providing module builds
ToolDescriptor objects and hands them to a ToolRegistry from its
``register_tools(registry)`` function. Nothing is discovered by scanning
modules at runtime, so the set of tools is exactly what the providers list.

Lifecycle:

    registry = ToolRegistry()
    weather_tools.register_tools(registry)   # fails fast on duplicate names
    catalog = registry.build_catalog()       # read-only from here on
    dispatcher = Dispatcher(catalog)

    dispatcher.list_tools()                  # schema export for discovery
    await dispatcher.execute("getweatherforecast", {"state": "TX"})

The catalog is built once at startup and never mutated afterwards, so any
number of requests can dispatch concurrently without locking.
"""

import inspect
import logging
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic_core import to_jsonable_python

from weather_mcp.coercion import CoercionTable, default_table
from weather_mcp.errors import (
    RegistrationConflictError,
    ToolExecutionError,
    ToolNotFoundError,
)

logger = logging.getLogger("weather-mcp.dispatch")


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


# Marks a parameter without a default value (i.e. a required one). None can't
# be used for that because None is a legitimate default.
NO_DEFAULT: Any = _NoDefault()

# Returned for tool bodies that produce no value.
SUCCESS_SENTINEL = {"success": True}


@dataclass(frozen=True)
class ParameterDescriptor:
    """
    One formal parameter of a tool.

    Attributes:
        name: Key of the value in the request body, unique within the tool
        declared_type: Tag in the coercion table ("string", "integer", ...)
        description: Free text for the schema export
        default: Value used when the key is absent; NO_DEFAULT makes the
                 parameter required
    """

    name: str
    declared_type: str
    description: str = ""
    default: Any = NO_DEFAULT

    @property
    def required(self) -> bool:
        return self.default is NO_DEFAULT


@dataclass(frozen=True)
class ToolDescriptor:
    """
    One registered operation.

    ``fn`` is the tool body. It is called positionally with one coerced
    argument per parameter, in declaration order, and may be a plain function
    or a coroutine function; ``invoke()`` hides the difference.
    """

    name: str
    description: str
    parameters: tuple[ParameterDescriptor, ...]
    fn: Callable[..., Any]
    _is_async: bool = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.lower())
        object.__setattr__(self, "parameters", tuple(self.parameters))
        object.__setattr__(self, "_is_async", inspect.iscoroutinefunction(self.fn))

        seen = set()
        for parameter in self.parameters:
            if parameter.name in seen:
                raise ValueError(
                    f"Tool '{self.name}' declares parameter '{parameter.name}' twice"
                )
            seen.add(parameter.name)

    async def invoke(self, *args: Any) -> Any:
        if self._is_async:
            return await self.fn(*args)
        result = self.fn(*args)
        # Plain functions may still hand back an awaitable (e.g. a Task).
        if inspect.isawaitable(result):
            return await result
        return result

    def schema(self, coercion: CoercionTable = default_table) -> dict[str, Any]:
        """JSON-Schema-like summary used for discovery."""
        properties = {}
        for parameter in self.parameters:
            properties[parameter.name] = {
                "type": coercion.get(parameter.declared_type).schema(),
                "description": parameter.description,
            }
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": [p.name for p in self.parameters if p.required],
            },
        }


class ToolCatalog(Mapping[str, ToolDescriptor]):
    """Read-only mapping of tool name to descriptor."""

    def __init__(self, tools: Mapping[str, ToolDescriptor], coercion: CoercionTable):
        self._tools = MappingProxyType(dict(tools))
        self.coercion = coercion

    def __getitem__(self, name: str) -> ToolDescriptor:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def export_schema(self) -> list[dict[str, Any]]:
        return [tool.schema(self.coercion) for tool in self._tools.values()]


class ToolRegistry:
    """
    Collects tool descriptors during startup.

    Registration order is kept, and it becomes the order of the schema export.
    """

    def __init__(self, coercion: CoercionTable = default_table) -> None:
        self.coercion = coercion
        self._tools: dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        """
        Add one tool.

        Raises:
            RegistrationConflictError: a tool with the same name already exists
            ValueError: a parameter declares a type the coercion table lacks
        """
        if descriptor.name in self._tools:
            raise RegistrationConflictError(descriptor.name)

        for parameter in descriptor.parameters:
            if parameter.declared_type not in self.coercion:
                raise ValueError(
                    f"Tool '{descriptor.name}' parameter '{parameter.name}' "
                    f"has unknown type '{parameter.declared_type}'"
                )

        self._tools[descriptor.name] = descriptor
        logger.debug(
            "Tool registered",
            extra={"log_data": {"tool": descriptor.name, "parameters": len(descriptor.parameters)}},
        )

    def build_catalog(self) -> ToolCatalog:
        return ToolCatalog(self._tools, self.coercion)


ToolProvider = Callable[[ToolRegistry], None]


def build_catalog(
    providers: Iterable[ToolProvider],
    coercion: CoercionTable = default_table,
) -> ToolCatalog:
    """Run every provider's register function against one registry and freeze it."""
    registry = ToolRegistry(coercion)
    for register_tools in providers:
        register_tools(registry)
    catalog = registry.build_catalog()
    logger.info(
        "Tool catalog built",
        extra={"log_data": {"tools": list(catalog)}},
    )
    return catalog


class Dispatcher:
    """Resolves a tool by name, coerces its arguments, runs it and normalizes the result."""

    def __init__(self, catalog: ToolCatalog) -> None:
        self.catalog = catalog

    def list_tools(self) -> list[dict[str, Any]]:
        return self.catalog.export_schema()

    async def execute(self, tool_name: str, arguments: Mapping[str, Any]) -> Any:
        """
        Execute a named tool with a bag of raw JSON arguments.

        Steps:
        1. Look up the tool (ToolNotFoundError if absent)
        2. Coerce every declared parameter in order; the first failure aborts
           before the body runs (MissingParameterError / TypeCoercionError)
        3. Invoke the body, awaiting it if asynchronous
        4. Wrap anything the body raises in ToolExecutionError
        5. Convert the result into plain JSON-compatible data; a body that
           returns None yields {"success": True}

        No timeout is applied here; the HTTP layer owns request deadlines.
        """
        descriptor = self.catalog.get(tool_name)
        if descriptor is None:
            logger.warning("Tool not found", extra={"log_data": {"tool": tool_name}})
            raise ToolNotFoundError(tool_name)

        coercion = self.catalog.coercion
        args = [coercion.coerce(parameter, arguments) for parameter in descriptor.parameters]

        start = time.perf_counter()
        try:
            result = await descriptor.invoke(*args)
        except Exception as e:
            error = ToolExecutionError(descriptor.name, e)
            duration_ms = round((time.perf_counter() - start) * 1000, 1)
            log_data = {
                "tool": descriptor.name,
                "outcome": "rejected" if error.is_validation_failure else "failed",
                "duration_ms": duration_ms,
            }
            if error.is_validation_failure:
                logger.warning("Tool rejected its arguments: %s", e, extra={"log_data": log_data})
            else:
                logger.exception("Tool raised an unexpected error", extra={"log_data": log_data})
            raise error from e

        duration_ms = round((time.perf_counter() - start) * 1000, 1)
        logger.info(
            "Tool executed",
            extra={"log_data": {"tool": descriptor.name, "outcome": "ok", "duration_ms": duration_ms}},
        )

        if result is None:
            return dict(SUCCESS_SENTINEL)
        return to_jsonable_python(result)
