"""Signature-driven normalization of untagged arguments.

When the declared parameter types of the target function are known, plain
JSON can be lifted into the tagged forms the marshaler needs: arguments
for ``Option<...>`` parameters are wrapped as options, and arrays for
``Tuple<...>`` parameters become fixed-arity tuples.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from arguments import ArgumentParser
from errors import ArityMismatch, InvalidValue, TypeMismatch
from host import ValueHost
from typed_values import MarshalPolicy, TypedValue
from value_types import JsonValue, json_type_name

log = logging.getLogger("marshal")


class FunctionParam(BaseModel):
    """One declared parameter of a contract function."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_name: str


def params_from_type_names(type_names: Sequence[str]) -> list[FunctionParam]:
    """Build positional parameters named ``arg0``, ``arg1``, ... from type names."""
    return [
        FunctionParam(name=f"arg{index}", type_name=type_name.strip())
        for index, type_name in enumerate(type_names)
    ]


def split_type_list(inner: str) -> list[str]:
    """Split a comma-separated type list at the top nesting level.

    >>> split_type_list("U32, Map<Symbol, I128>, Bool")
    ['U32', 'Map<Symbol, I128>', 'Bool']
    """
    if not inner.strip():
        return []
    parts: list[str] = []
    depth = 0
    start = 0
    for position, char in enumerate(inner):
        if char == "<":
            depth += 1
        elif char == ">":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            parts.append(inner[start:position].strip())
            start = position + 1
    parts.append(inner[start:].strip())
    return parts


def tuple_arity_from_type_name(type_name: str) -> int | None:
    """Return the arity of a ``Tuple<...>`` type name, or None if it is not one."""
    if not (type_name.startswith("Tuple<") and type_name.endswith(">")):
        return None
    return len(split_type_list(type_name[len("Tuple<") : -1]))


def _is_typed_annotation(value: JsonValue) -> bool:
    return isinstance(value, dict) and "type" in value and "value" in value


def normalize_arguments(
    document: JsonValue, params: Sequence[FunctionParam]
) -> JsonValue:
    """Rewrite untagged arguments to match the declared parameter types.

    Parameters
    ----------
    document : JsonValue
        Decoded argument document; anything other than an array is
        returned unchanged.
    params : Sequence[FunctionParam]
        Declared parameters, matched to arguments by position.

    Returns
    -------
    JsonValue
        A new argument array; extra arguments or parameters are left alone.

    Raises
    ------
    TypeMismatch
        When a tuple parameter receives something other than an array.
    ArityMismatch
        When a tuple parameter receives an array of the wrong length.
    InvalidValue
        When a declared tuple type name cannot be parsed.
    """
    if not isinstance(document, list):
        return document

    normalized: list[JsonValue] = list(document)
    for index, (argument, param) in enumerate(zip(document, params, strict=False)):
        if _is_typed_annotation(argument):
            continue
        if param.type_name.startswith("Option<"):
            normalized[index] = {"type": "option", "value": argument}
            continue
        if param.type_name.startswith("Tuple<"):
            arity = tuple_arity_from_type_name(param.type_name)
            if arity is None:
                raise InvalidValue(
                    f"invalid tuple type for parameter '{param.name}': "
                    f"{param.type_name}",
                    (index,),
                )
            if not isinstance(argument, list):
                raise TypeMismatch(
                    f"tuple with {arity} elements for '{param.name}'",
                    json_type_name(argument),
                    (index,),
                )
            if len(argument) != arity:
                raise ArityMismatch(arity, len(argument), (index,))
            normalized[index] = {"type": "tuple", "arity": arity, "value": argument}
    log.debug(
        "Normalized %d argument(s) against %d parameter(s)",
        len(normalized),
        len(params),
    )
    return normalized


def marshal_with_signature(
    text: str | bytes,
    params: Sequence[FunctionParam] = (),
    host: ValueHost | None = None,
    policy: MarshalPolicy | None = None,
) -> list[TypedValue]:
    """Decode, normalize against ``params`` and marshal argument text."""
    parser = ArgumentParser(host=host, policy=policy)
    document = parser.load(text)
    if params:
        document = normalize_arguments(document, params)
    return parser.parse_document(document)
