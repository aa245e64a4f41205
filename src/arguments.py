"""Marshal JSON argument text into typed Soroban values.

The entry point takes a JSON array and turns each element into one
positional call argument:

- ``{"type": "<tag>", "value": ...}`` objects are coerced by their tag
  (``vec`` also needs ``element_type``, ``tuple`` needs ``arity`` and
  ``bytesn`` needs ``length``).
- Other objects become ordered maps (records).
- ``null`` is void, booleans are bools, integers use the policy's default
  width, strings are always strings and arrays are homogeneous vectors.

Resolution is fail-fast: the first error aborts the whole call and carries
the path of the offending node.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass

from errors import (
    ArgumentParseError,
    ArityMismatch,
    ElementTypeMismatch,
    InvalidValue,
    MalformedJson,
    MissingField,
    MixedArrayError,
    RecursionDepthExceeded,
    TypeMismatch,
    UnknownTypeTag,
)
from host import HostEnv, ValueHost
from numeric import coerce_default_integer, coerce_integer
from strkey import decode_strkey
from typed_values import (
    INTEGER_TAGS,
    SUPPORTED_TAGS,
    MarshalPolicy,
    TypedValue,
    TypeTag,
    is_valid_symbol,
)
from value_types import ArgumentPath, JsonDict, JsonValue, PathSegment, json_type_name

log = logging.getLogger("marshal")

type _TagBuilder = Callable[[JsonValue, JsonDict, "ParseContext"], TypedValue]


@dataclass(frozen=True, slots=True)
class ParseContext:
    """Depth and location of the node being resolved.

    Parameters
    ----------
    max_depth : int
        Deepest allowed nesting below the top-level argument.
    depth : int, default=0
        Current nesting depth.
    path : ArgumentPath, default=()
        Array indices and object keys leading to the node.
    """

    max_depth: int
    depth: int = 0
    path: ArgumentPath = ()

    def descend(self: ParseContext, *segments: PathSegment) -> ParseContext:
        """Return the context of a child node one level deeper."""
        depth = self.depth + 1
        path = (*self.path, *segments)
        if depth > self.max_depth:
            raise RecursionDepthExceeded(self.max_depth, path)
        return ParseContext(max_depth=self.max_depth, depth=depth, path=path)


def _reject_constant(name: str) -> JsonValue:
    raise ValueError(f"non-standard JSON constant {name} is not allowed")


def _element_variant(tag: TypeTag) -> str:
    return "bytes" if tag is TypeTag.BYTESN else tag.value


class ArgumentParser:
    """Convert JSON argument text into an ordered list of typed values."""

    def __init__(
        self: ArgumentParser,
        host: ValueHost | None = None,
        policy: MarshalPolicy | None = None,
    ) -> None:
        """Initialize parser with a value host and marshaling policy.

        Parameters
        ----------
        host : ValueHost | None, default=None
            Handle used to build values; a fresh :class:`HostEnv` when omitted.
        policy : MarshalPolicy | None, default=None
            Depth limit and default integer kind.
        """
        self.host: ValueHost = host if host is not None else HostEnv()
        self.policy = policy if policy is not None else MarshalPolicy()
        self._tag_builders: dict[TypeTag, _TagBuilder] = {
            TypeTag.BOOL: self._build_bool,
            TypeTag.BYTES: self._build_bytes,
            TypeTag.BYTESN: self._build_bytesn,
            TypeTag.STRING: self._build_string,
            TypeTag.SYMBOL: self._build_symbol,
            TypeTag.ADDRESS: self._build_address,
            TypeTag.OPTION: self._build_option,
            TypeTag.TUPLE: self._build_tuple,
            TypeTag.VEC: self._build_vec,
            TypeTag.MAP: self._build_map,
        }

    def parse(self: ArgumentParser, text: str | bytes) -> list[TypedValue]:
        """Parse a JSON array of arguments.

        Parameters
        ----------
        text : str | bytes
            JSON text; bytes must be UTF-8.

        Returns
        -------
        list[TypedValue]
            One value per array element, in input order.

        Raises
        ------
        ArgumentParseError
            On the first argument that cannot be marshaled.
        """
        return self.parse_document(self.load(text))

    def parse_document(self: ArgumentParser, document: JsonValue) -> list[TypedValue]:
        """Resolve an already decoded argument document."""
        if not isinstance(document, list):
            raise MalformedJson(
                "expected a top-level array of arguments, "
                f"got {json_type_name(document)}"
            )
        log.debug("Parsing array with %d elements", len(document))
        values: list[TypedValue] = []
        for index, node in enumerate(document):
            context = ParseContext(max_depth=self.policy.max_depth, path=(index,))
            try:
                values.append(self.resolve(node, context))
            except RecursionError:
                error = RecursionDepthExceeded(self.policy.max_depth, (index,))
                log.warning("Failed to parse argument %d: %s", index, error)
                raise error from None
            except ArgumentParseError as error:
                log.warning("Failed to parse argument %d: %s", index, error)
                raise
        return values

    def resolve(
        self: ArgumentParser, node: JsonValue, context: ParseContext
    ) -> TypedValue:
        """Resolve one decoded JSON node into a typed value."""
        if isinstance(node, dict):
            tag = node.get("type")
            if isinstance(tag, str):
                return self._resolve_tagged(tag, node, context)
            return self._build_record(node, context)
        if node is None:
            return self.host.void()
        if isinstance(node, bool):
            return self.host.boolean(node)
        if isinstance(node, int | float):
            kind = self.policy.default_integer
            return self.host.integer(
                kind, coerce_default_integer(node, kind, context.path)
            )
        if isinstance(node, str):
            return self.host.string(node)
        if isinstance(node, list):
            return self._build_bare_vector(node, context)
        raise MalformedJson(
            f"unsupported JSON node of type {type(node).__name__}", context.path
        )

    def load(self: ArgumentParser, text: str | bytes) -> JsonValue:
        """Decode JSON text, mapping every decoder failure to an error kind."""
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise MalformedJson(f"arguments are not valid UTF-8: {exc}") from exc
        if not text.strip():
            raise MalformedJson("empty arguments")
        try:
            return json.loads(text, parse_constant=_reject_constant)
        except RecursionError:
            raise RecursionDepthExceeded(self.policy.max_depth) from None
        except ValueError as exc:
            raise MalformedJson(f"invalid JSON: {exc}") from exc

    def _resolve_tagged(
        self: ArgumentParser, tag: str, node: JsonDict, context: ParseContext
    ) -> TypedValue:
        try:
            type_tag = TypeTag(tag)
        except ValueError:
            raise UnknownTypeTag(
                f"unsupported type '{tag}'. Supported types: "
                f"{', '.join(SUPPORTED_TAGS)}",
                context.path,
            ) from None
        if "value" not in node:
            raise MissingField(tag, "value", context.path)
        log.debug("Converting type-annotated value of type %s", type_tag)
        return self._coerce_tagged(type_tag, node["value"], node, context)

    def _coerce_tagged(
        self: ArgumentParser,
        tag: TypeTag,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        """Apply the rule of ``tag`` to ``payload``.

        ``fields`` holds the tag object's auxiliary keys (``element_type``,
        ``arity``, ``length``); it is empty when coercing vector elements.
        """
        if tag in INTEGER_TAGS:
            return self.host.integer(tag, coerce_integer(payload, tag, context.path))
        return self._tag_builders[tag](payload, fields, context)

    def _build_bool(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if not isinstance(payload, bool):
            raise TypeMismatch("bool", json_type_name(payload), context.path)
        return self.host.boolean(payload)

    def _build_string(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if not isinstance(payload, str):
            raise TypeMismatch("string", json_type_name(payload), context.path)
        return self.host.string(payload)

    def _build_symbol(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if not isinstance(payload, str):
            raise TypeMismatch("symbol (string)", json_type_name(payload), context.path)
        if not is_valid_symbol(payload):
            raise InvalidValue(
                f"invalid symbol {payload!r}: symbols are at most 32 characters "
                "of [A-Za-z0-9_]",
                context.path,
            )
        return self.host.symbol(payload)

    def _build_address(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if not isinstance(payload, str):
            raise TypeMismatch(
                "address (strkey string)", json_type_name(payload), context.path
            )
        try:
            decode_strkey(payload)
        except ValueError as exc:
            raise InvalidValue(
                f"Invalid address {payload!r}: {exc}", context.path
            ) from exc
        return self.host.address(payload)

    def _build_bytes(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if not isinstance(payload, str):
            raise TypeMismatch(
                "string for bytes", json_type_name(payload), context.path
            )
        return self.host.bytes_(self._decode_bytes(payload, context.path))

    def _build_bytesn(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if "length" not in fields:
            raise MissingField("bytesn", "length", context.path)
        length = fields["length"]
        if not isinstance(length, int) or isinstance(length, bool) or length < 0:
            raise TypeMismatch(
                "non-negative integer length", json_type_name(length), context.path
            )
        if not isinstance(payload, str):
            raise TypeMismatch(
                "string for bytesn", json_type_name(payload), context.path
            )
        decoded = self._decode_bytes(payload, context.path)
        if len(decoded) != length:
            raise InvalidValue(
                f"bytesn length mismatch: expected {length}, got {len(decoded)}",
                context.path,
            )
        return self.host.bytes_(decoded)

    @staticmethod
    def _decode_bytes(text: str, path: ArgumentPath) -> bytes:
        if text.startswith("0x"):
            try:
                return bytes.fromhex(text[2:])
            except ValueError as exc:
                raise InvalidValue(f"invalid hex string: {exc}", path) from exc
        if text.startswith("base64:"):
            try:
                return base64.b64decode(text[len("base64:") :], validate=True)
            except binascii.Error as exc:
                raise InvalidValue(f"invalid base64 string: {exc}", path) from exc
        raise InvalidValue("bytes must start with '0x' or 'base64:'", path)

    def _build_option(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if payload is None:
            return self.host.option(None)
        return self.host.option(self.resolve(payload, context.descend("value")))

    def _build_tuple(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if "arity" not in fields:
            raise MissingField("tuple", "arity", context.path)
        arity = fields["arity"]
        if not isinstance(arity, int) or isinstance(arity, bool) or arity < 0:
            raise TypeMismatch(
                "non-negative integer arity", json_type_name(arity), context.path
            )
        if not isinstance(payload, list):
            raise TypeMismatch("array for tuple", json_type_name(payload), context.path)
        if len(payload) != arity:
            raise ArityMismatch(arity, len(payload), context.path)
        return self.host.tuple_(
            [
                self.resolve(item, context.descend("value", index))
                for index, item in enumerate(payload)
            ]
        )

    def _build_vec(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if "element_type" not in fields:
            raise MissingField("vec", "element_type", context.path)
        element_type = fields["element_type"]
        if not isinstance(element_type, str):
            raise TypeMismatch(
                "string element_type", json_type_name(element_type), context.path
            )
        try:
            element_tag = TypeTag(element_type)
        except ValueError:
            raise UnknownTypeTag(
                f"unsupported element_type '{element_type}'. Supported types: "
                f"{', '.join(SUPPORTED_TAGS)}",
                context.path,
            ) from None
        if not isinstance(payload, list):
            raise TypeMismatch("array for vec", json_type_name(payload), context.path)

        # Untagged bytesn elements share the vector's declared length.
        element_fields = (
            {"length": fields["length"]}
            if element_tag is TypeTag.BYTESN and "length" in fields
            else {}
        )
        items: list[TypedValue] = []
        for index, item in enumerate(payload):
            child = context.descend("value", index)
            try:
                items.append(
                    self._coerce_element(element_tag, item, element_fields, child)
                )
            except RecursionDepthExceeded:
                raise
            except ArgumentParseError as exc:
                raise ElementTypeMismatch(element_type, index, exc, exc.path) from exc
        return self.host.vector(items)

    def _coerce_element(
        self: ArgumentParser,
        element_tag: TypeTag,
        item: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        """Coerce one typed-vector element against ``element_tag``.

        Untagged containers are built in place: the element itself is the
        payload, so no ``value`` segment is added to the path.
        """
        if isinstance(item, dict) and isinstance(item.get("type"), str):
            value = self.resolve(item, context)
            expected = _element_variant(element_tag)
            if value.variant != expected:
                raise TypeMismatch(expected, value.variant, context.path)
            return value
        if element_tag is TypeTag.VEC:
            if not isinstance(item, list):
                raise TypeMismatch("array for vec", json_type_name(item), context.path)
            return self._build_bare_vector(item, context)
        if element_tag is TypeTag.TUPLE:
            if not isinstance(item, list):
                raise TypeMismatch(
                    "array for tuple", json_type_name(item), context.path
                )
            return self._build_tuple(item, {"arity": len(item)}, context)
        if element_tag is TypeTag.OPTION:
            if item is None:
                return self.host.option(None)
            return self.host.option(self.resolve(item, context))
        if element_tag is TypeTag.MAP:
            if isinstance(item, dict):
                return self._build_record(item, context)
            if isinstance(item, list):
                return self._build_pair_map(item, context, ())
        return self._coerce_tagged(element_tag, item, fields, context)

    def _build_bare_vector(
        self: ArgumentParser, items: list[JsonValue], context: ParseContext
    ) -> TypedValue:
        """Build an untagged vector whose elements share one outer variant."""
        values: list[TypedValue] = []
        expected: str | None = None
        for index, item in enumerate(items):
            value = self.resolve(item, context.descend(index))
            if expected is None:
                expected = value.variant
            elif value.variant != expected:
                raise MixedArrayError(
                    expected, value.variant, index, (*context.path, index)
                )
            values.append(value)
        return self.host.vector(values)

    def _build_map(
        self: ArgumentParser,
        payload: JsonValue,
        fields: JsonDict,
        context: ParseContext,
    ) -> TypedValue:
        if isinstance(payload, dict):
            return self._build_record(payload, context.descend("value"))
        if isinstance(payload, list):
            return self._build_pair_map(payload, context, ("value",))
        raise TypeMismatch(
            "object or array of [key, value] pairs for map",
            json_type_name(payload),
            context.path,
        )

    def _build_pair_map(
        self: ArgumentParser,
        pairs: list[JsonValue],
        context: ParseContext,
        prefix: ArgumentPath,
    ) -> TypedValue:
        entries: list[tuple[TypedValue, TypedValue]] = []
        positions: dict[TypedValue, int] = {}
        for index, pair in enumerate(pairs):
            child = context.descend(*prefix, index)
            if not isinstance(pair, list) or len(pair) != 2:
                actual = (
                    f"array of length {len(pair)}"
                    if isinstance(pair, list)
                    else json_type_name(pair)
                )
                raise TypeMismatch("[key, value] pair", actual, child.path)
            key = self.resolve(pair[0], child.descend(0))
            value = self.resolve(pair[1], child.descend(1))
            if key in positions:
                entries[positions[key]] = (key, value)
            else:
                positions[key] = len(entries)
                entries.append((key, value))
        return self.host.map(entries)

    def _build_record(
        self: ArgumentParser, obj: JsonDict, context: ParseContext
    ) -> TypedValue:
        """Build an ordered map from an untagged JSON object.

        Keys that are valid symbols become symbols; any other key is kept
        verbatim as a string.
        """
        log.debug("Converting object with %d fields to Map", len(obj))
        entries: list[tuple[TypedValue, TypedValue]] = []
        for key, raw in obj.items():
            key_value = (
                self.host.symbol(key) if is_valid_symbol(key) else self.host.string(key)
            )
            entries.append((key_value, self.resolve(raw, context.descend(key))))
        return self.host.map(entries)


def parse_arguments(
    text: str | bytes,
    host: ValueHost | None = None,
    policy: MarshalPolicy | None = None,
) -> list[TypedValue]:
    """Parse JSON argument text into typed values.

    Parameters
    ----------
    text : str | bytes
        JSON array of call arguments.
    host : ValueHost | None, default=None
        Value construction handle owned by this call.
    policy : MarshalPolicy | None, default=None
        Marshaling policy; defaults apply when omitted.

    Returns
    -------
    list[TypedValue]
        Marshaled arguments in input order.
    """
    return ArgumentParser(host=host, policy=policy).parse(text)
