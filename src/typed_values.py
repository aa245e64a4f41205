"""Typed Soroban values produced by argument marshaling.

Every marshaled argument is an immutable tree of :class:`TypedValue`
instances. Each node knows its outer ``variant`` (used by the homogeneity
rule for bare arrays) and can render itself back into the tagged JSON form
accepted by :mod:`arguments`.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from value_types import JsonValue


class TypeTag(StrEnum):
    """Explicit discriminators recognized in ``{"type": ...}`` objects."""

    U32 = "u32"
    I32 = "i32"
    U64 = "u64"
    I64 = "i64"
    U128 = "u128"
    I128 = "i128"
    U256 = "u256"
    I256 = "i256"
    BOOL = "bool"
    BYTES = "bytes"
    BYTESN = "bytesn"
    STRING = "string"
    SYMBOL = "symbol"
    ADDRESS = "address"
    OPTION = "option"
    TUPLE = "tuple"
    VEC = "vec"
    MAP = "map"


SUPPORTED_TAGS: tuple[str, ...] = tuple(tag.value for tag in TypeTag)

# (bits, signed) per integer kind.
INTEGER_TAGS: dict[TypeTag, tuple[int, bool]] = {
    TypeTag.U32: (32, False),
    TypeTag.I32: (32, True),
    TypeTag.U64: (64, False),
    TypeTag.I64: (64, True),
    TypeTag.U128: (128, False),
    TypeTag.I128: (128, True),
    TypeTag.U256: (256, False),
    TypeTag.I256: (256, True),
}

# Largest magnitude a JSON number can carry through a double without loss.
JSON_SAFE_INTEGER = 2**53 - 1

SYMBOL_MAX_LENGTH = 32
_SYMBOL_PATTERN = re.compile(r"[A-Za-z0-9_]{0,%d}" % SYMBOL_MAX_LENGTH)

DEFAULT_MAX_DEPTH = 64
MAX_DEPTH_LIMIT = 128


def integer_bounds(tag: TypeTag) -> tuple[int, int]:
    """Return the inclusive ``(min, max)`` range of an integer kind.

    Parameters
    ----------
    tag : TypeTag
        One of the integer tags in :data:`INTEGER_TAGS`.

    Returns
    -------
    tuple[int, int]
        Smallest and largest representable value.
    """
    bits, signed = INTEGER_TAGS[tag]
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def is_wide_integer(tag: TypeTag) -> bool:
    """Return whether ``tag`` is a 128- or 256-bit integer kind."""
    return INTEGER_TAGS[tag][0] > 64


def is_valid_symbol(text: str) -> bool:
    """Return whether ``text`` is a legal Soroban symbol."""
    return _SYMBOL_PATTERN.fullmatch(text) is not None


class TypedValue(BaseModel):
    """Base class of the typed value union."""

    model_config = ConfigDict(frozen=True, strict=True)

    @property
    def variant(self: TypedValue) -> str:
        """Outer variant name used for homogeneity checks."""
        raise NotImplementedError

    def to_tagged_json(self: TypedValue) -> JsonValue:
        """Render the value as JSON that marshals back to an equal value."""
        raise NotImplementedError


class VoidValue(TypedValue):
    """Unit value produced by JSON ``null``."""

    @property
    def variant(self: VoidValue) -> str:
        return "void"

    def to_tagged_json(self: VoidValue) -> JsonValue:
        return None


class BoolValue(TypedValue):
    value: bool

    @property
    def variant(self: BoolValue) -> str:
        return "bool"

    def to_tagged_json(self: BoolValue) -> JsonValue:
        return self.value


class IntValue(TypedValue):
    """Fixed-width integer; every width/signedness pair is its own variant."""

    kind: TypeTag
    value: int

    @model_validator(mode="after")
    def _check_range(self: IntValue) -> IntValue:
        if self.kind not in INTEGER_TAGS:
            raise ValueError(f"'{self.kind}' is not an integer kind")
        low, high = integer_bounds(self.kind)
        if not low <= self.value <= high:
            raise ValueError(f"{self.value} does not fit in {self.kind}")
        return self

    @property
    def variant(self: IntValue) -> str:
        return self.kind.value

    def to_tagged_json(self: IntValue) -> JsonValue:
        if is_wide_integer(self.kind) and abs(self.value) > JSON_SAFE_INTEGER:
            return {"type": self.kind.value, "value": str(self.value)}
        return {"type": self.kind.value, "value": self.value}


class BytesValue(TypedValue):
    value: bytes

    @property
    def variant(self: BytesValue) -> str:
        return "bytes"

    def to_tagged_json(self: BytesValue) -> JsonValue:
        return {"type": "bytes", "value": "0x" + self.value.hex()}


class StringValue(TypedValue):
    value: str

    @property
    def variant(self: StringValue) -> str:
        return "string"

    def to_tagged_json(self: StringValue) -> JsonValue:
        return self.value


class SymbolValue(TypedValue):
    """Short interned identifier, only reachable through an explicit tag."""

    value: str

    @field_validator("value")
    @classmethod
    def _check_symbol(cls: type[SymbolValue], value: str) -> str:
        if not is_valid_symbol(value):
            raise ValueError(f"invalid symbol: {value!r}")
        return value

    @property
    def variant(self: SymbolValue) -> str:
        return "symbol"

    def to_tagged_json(self: SymbolValue) -> JsonValue:
        return {"type": "symbol", "value": self.value}


class AddressValue(TypedValue):
    """Account (``G...``) or contract (``C...``) strkey."""

    value: str

    @property
    def variant(self: AddressValue) -> str:
        return "address"

    def to_tagged_json(self: AddressValue) -> JsonValue:
        return {"type": "address", "value": self.value}


class VecValue(TypedValue):
    items: tuple[TypedValue, ...] = ()

    @property
    def variant(self: VecValue) -> str:
        return "vec"

    def to_tagged_json(self: VecValue) -> JsonValue:
        return [item.to_tagged_json() for item in self.items]


class MapValue(TypedValue):
    """Ordered key/value pairs; insertion order is preserved."""

    entries: tuple[tuple[TypedValue, TypedValue], ...] = ()

    @property
    def variant(self: MapValue) -> str:
        return "map"

    def keys(self: MapValue) -> list[TypedValue]:
        """Return map keys in insertion order."""
        return [key for key, _ in self.entries]

    def to_tagged_json(self: MapValue) -> JsonValue:
        return {
            "type": "map",
            "value": [
                [key.to_tagged_json(), value.to_tagged_json()]
                for key, value in self.entries
            ],
        }


class TupleValue(TypedValue):
    items: tuple[TypedValue, ...] = ()

    @property
    def variant(self: TupleValue) -> str:
        return "tuple"

    def to_tagged_json(self: TupleValue) -> JsonValue:
        return {
            "type": "tuple",
            "arity": len(self.items),
            "value": [item.to_tagged_json() for item in self.items],
        }


class OptionValue(TypedValue):
    """``Some(inner)`` when ``inner`` is set, ``None`` otherwise."""

    inner: TypedValue | None = None

    @property
    def variant(self: OptionValue) -> str:
        return "option"

    @property
    def is_some(self: OptionValue) -> bool:
        return self.inner is not None

    def to_tagged_json(self: OptionValue) -> JsonValue:
        payload = None if self.inner is None else self.inner.to_tagged_json()
        return {"type": "option", "value": payload}


class MarshalPolicy(BaseModel):
    """Explicit knobs of the marshaling engine.

    Parameters
    ----------
    max_depth : int, default=64
        Deepest allowed nesting below a top-level argument.
    default_integer : TypeTag, default=TypeTag.I64
        Kind assigned to untagged JSON integers.
    """

    model_config = ConfigDict(frozen=True)

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, le=MAX_DEPTH_LIMIT)
    default_integer: TypeTag = TypeTag.I64

    @field_validator("default_integer")
    @classmethod
    def _check_integer_kind(cls: type[MarshalPolicy], value: TypeTag) -> TypeTag:
        if value not in INTEGER_TAGS:
            raise ValueError(f"default_integer must be an integer kind, got '{value}'")
        return value
