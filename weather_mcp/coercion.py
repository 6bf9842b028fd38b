"""
Parameter coercion: untyped JSON values -> the native types tools declare.

Request bodies arrive as plain JSON, so a tool parameter declared as an
integer may receive a string, a float, a boolean or nothing at all. This
module turns each raw value into exactly the type the parameter declares, or
fails with a typed error the REST layer can report as a 400.

Declared types are looked up by tag in a CoercionTable rather than a fixed
if/else chain, so adding a type is a single ``register()`` call:

    table.register(ParameterType("date", "string", _to_date))

Built-in tags:

    string            JSON string
    optional-string   JSON string, or null -> None
    integer           JSON number with an integral value in the signed 32-bit range
    optional-integer  as integer, or null -> None
    boolean           JSON true/false
    double            JSON number -> float
    decimal           JSON number -> decimal.Decimal

JSON booleans are never accepted as numbers even though Python's bool is an
int subclass.
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping

from weather_mcp.errors import MissingParameterError, TypeCoercionError

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class ParameterType:
    """
    One entry of the coercion table.

    Attributes:
        name: The tag tools use in ParameterDescriptor.declared_type
        json_type: The JSON-Schema type reported by the schema export
        convert: Turns a raw (non-null) JSON value into the native value.
                 Raises TypeError or ValueError with a short reason on failure.
        nullable: Whether JSON null is accepted (and passed through as None)
    """

    name: str
    json_type: str
    convert: Callable[[Any], Any]
    nullable: bool = False

    def schema(self) -> str | list[str]:
        if self.nullable:
            return [self.json_type, "null"]
        return self.json_type


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_string(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"got {_json_type(value)}")
    return value


def _to_int32(value: Any) -> int:
    if not _is_number(value):
        raise TypeError(f"got {_json_type(value)}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value!r} is not an integral number")
        value = int(value)
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"{value} is outside the 32-bit integer range")
    return value


def _to_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"got {_json_type(value)}")
    return value


def _finite_number(value: Any) -> Any:
    if not _is_number(value):
        raise TypeError(f"got {_json_type(value)}")
    # NaN and Infinity have no JSON representation.
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{value!r} is not a finite number")
    return value


def _to_float(value: Any) -> float:
    try:
        return float(_finite_number(value))
    except OverflowError:
        raise ValueError(f"{value} is outside the double range") from None


def _to_decimal(value: Any) -> Decimal:
    _finite_number(value)
    # str() keeps the shortest repr of a float, so 0.1 becomes Decimal("0.1")
    # rather than its full binary expansion.
    return Decimal(str(value))


BUILTIN_TYPES = (
    ParameterType("string", "string", _to_string),
    ParameterType("optional-string", "string", _to_string, nullable=True),
    ParameterType("integer", "integer", _to_int32),
    ParameterType("optional-integer", "integer", _to_int32, nullable=True),
    ParameterType("boolean", "boolean", _to_bool),
    ParameterType("double", "number", _to_float),
    ParameterType("decimal", "number", _to_decimal),
)


class CoercionTable:
    """Maps declared-type tags to ParameterType entries and applies them."""

    def __init__(self, types=BUILTIN_TYPES) -> None:
        self._types: dict[str, ParameterType] = {}
        for param_type in types:
            self.register(param_type)

    def register(self, param_type: ParameterType) -> None:
        if param_type.name in self._types:
            raise ValueError(f"Duplicate parameter type: {param_type.name}")
        self._types[param_type.name] = param_type

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def get(self, name: str) -> ParameterType:
        try:
            return self._types[name]
        except KeyError:
            raise ValueError(f"Unknown parameter type: {name}") from None

    def coerce(self, parameter, arguments: Mapping[str, Any]) -> Any:
        """
        Produce the native argument for one parameter from the request arguments.

        An absent key falls back to the parameter's default, or fails with
        MissingParameterError when the parameter is required. A present key
        (including an explicit JSON null) is always converted, so null reaches
        the tool as None for nullable types instead of being replaced by the
        default.

        Raises:
            MissingParameterError: required parameter absent
            TypeCoercionError: value present but not convertible
        """
        if parameter.name not in arguments:
            if parameter.required:
                raise MissingParameterError(parameter.name)
            return parameter.default

        param_type = self.get(parameter.declared_type)
        raw = arguments[parameter.name]

        if raw is None:
            if param_type.nullable:
                return None
            raise TypeCoercionError(parameter.name, param_type.name, "got null")

        try:
            return param_type.convert(raw)
        except (TypeError, ValueError) as e:
            raise TypeCoercionError(parameter.name, param_type.name, str(e)) from e


default_table = CoercionTable()
