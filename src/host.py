"""Runtime-value-construction handle used while marshaling one call."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from typed_values import (
    AddressValue,
    BoolValue,
    BytesValue,
    IntValue,
    MapValue,
    OptionValue,
    StringValue,
    SymbolValue,
    TupleValue,
    TypedValue,
    TypeTag,
    VecValue,
    VoidValue,
)


class ValueHost(Protocol):
    """Allocator for native value representations.

    A handle is owned by exactly one marshaling call at a time and must not
    be retained by the engine after the call returns.
    """

    def void(self: ValueHost) -> TypedValue:
        """Return the unit value."""

    def boolean(self: ValueHost, value: bool) -> TypedValue:
        """Return a boolean value."""

    def integer(self: ValueHost, kind: TypeTag, value: int) -> TypedValue:
        """Return a fixed-width integer value."""

    def bytes_(self: ValueHost, value: bytes) -> TypedValue:
        """Return a byte string value."""

    def string(self: ValueHost, value: str) -> TypedValue:
        """Return a string value."""

    def symbol(self: ValueHost, value: str) -> TypedValue:
        """Return an interned symbol value."""

    def address(self: ValueHost, value: str) -> TypedValue:
        """Return an address value."""

    def vector(self: ValueHost, items: Sequence[TypedValue]) -> TypedValue:
        """Return a vector value."""

    def map(
        self: ValueHost, entries: Sequence[tuple[TypedValue, TypedValue]]
    ) -> TypedValue:
        """Return an ordered map value."""

    def tuple_(self: ValueHost, items: Sequence[TypedValue]) -> TypedValue:
        """Return a fixed-arity tuple value."""

    def option(self: ValueHost, inner: TypedValue | None) -> TypedValue:
        """Return ``Some(inner)`` or ``None``."""


class HostEnv:
    """Default in-process host building :mod:`typed_values` models.

    Symbols are interned per handle, so repeated symbols within one call
    share a single instance. The handle is not thread-safe; create one per
    concurrent call.
    """

    def __init__(self: HostEnv) -> None:
        """Initialize an empty intern table and allocation counter."""
        self._symbols: dict[str, SymbolValue] = {}
        self._void = VoidValue()
        self.allocations = 0

    @property
    def interned_symbols(self: HostEnv) -> int:
        """Number of distinct symbols interned so far."""
        return len(self._symbols)

    def _track(self: HostEnv, value: TypedValue) -> TypedValue:
        self.allocations += 1
        return value

    def void(self: HostEnv) -> TypedValue:
        return self._void

    def boolean(self: HostEnv, value: bool) -> TypedValue:
        return self._track(BoolValue(value=value))

    def integer(self: HostEnv, kind: TypeTag, value: int) -> TypedValue:
        return self._track(IntValue(kind=kind, value=value))

    def bytes_(self: HostEnv, value: bytes) -> TypedValue:
        return self._track(BytesValue(value=value))

    def string(self: HostEnv, value: str) -> TypedValue:
        return self._track(StringValue(value=value))

    def symbol(self: HostEnv, value: str) -> TypedValue:
        interned = self._symbols.get(value)
        if interned is None:
            interned = SymbolValue(value=value)
            self._symbols[value] = interned
            self._track(interned)
        return interned

    def address(self: HostEnv, value: str) -> TypedValue:
        return self._track(AddressValue(value=value))

    def vector(self: HostEnv, items: Sequence[TypedValue]) -> TypedValue:
        return self._track(VecValue(items=tuple(items)))

    def map(
        self: HostEnv, entries: Sequence[tuple[TypedValue, TypedValue]]
    ) -> TypedValue:
        return self._track(MapValue(entries=tuple(entries)))

    def tuple_(self: HostEnv, items: Sequence[TypedValue]) -> TypedValue:
        return self._track(TupleValue(items=tuple(items)))

    def option(self: HostEnv, inner: TypedValue | None) -> TypedValue:
        return self._track(OptionValue(inner=inner))
