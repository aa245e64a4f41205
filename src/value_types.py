"""Shared type aliases for JSON-like payloads and argument paths."""

from __future__ import annotations

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]
type JsonDict = dict[str, JsonValue]

type PathSegment = int | str
type ArgumentPath = tuple[PathSegment, ...]

type SpanAttributeValue = (
    str | int | float | bool | list[str] | list[int] | list[float] | list[bool]
)


def json_type_name(value: object) -> str:
    """Return the JSON type name of a decoded value for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
