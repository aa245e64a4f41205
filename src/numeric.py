"""Integer coercion into fixed-width Soroban kinds."""

from __future__ import annotations

import re

from errors import NumericFormatError, NumericRangeError
from typed_values import JSON_SAFE_INTEGER, TypeTag, integer_bounds, is_wide_integer
from value_types import ArgumentPath, json_type_name

_DECIMAL_LITERAL = re.compile(r"[+-]?[0-9]+")
# Enough for any 256-bit value; longer literals are rejected before int().
_MAX_DECIMAL_DIGITS = 100


def _parse_decimal(text: str, kind: TypeTag, path: ArgumentPath) -> int:
    """Parse a signed base-10 literal exactly."""
    if _DECIMAL_LITERAL.fullmatch(text) is None:
        raise NumericFormatError(
            f"{text!r} is not a base-10 integer literal for {kind}", path
        )
    significant = text.lstrip("+-").lstrip("0")
    if len(significant) > _MAX_DECIMAL_DIGITS:
        raise NumericRangeError(
            f"value out of range for type {kind}: "
            f"{len(significant)}-digit literal",
            path,
        )
    sign = "-" if text.startswith("-") else ""
    return int(sign + (significant or "0"))


def _check_range(value: int, kind: TypeTag, path: ArgumentPath) -> int:
    low, high = integer_bounds(kind)
    if value < low or value > high:
        raise NumericRangeError(
            f"value out of range for type {kind}: {value} "
            f"(valid range: {low}..={high})",
            path,
        )
    return value


def coerce_integer(raw: object, kind: TypeTag, path: ArgumentPath = ()) -> int:
    """Coerce a decoded JSON scalar to an integer of ``kind``.

    Parameters
    ----------
    raw : object
        Decoded JSON value (integer, float, string, ...).
    kind : TypeTag
        Target integer kind.
    path : ArgumentPath, default=()
        Location of ``raw`` used in error messages.

    Returns
    -------
    int
        Exact value, guaranteed to be within the kind's range.

    Raises
    ------
    NumericFormatError
        When ``raw`` is not an integer literal, or a wide-integer number
        cannot be carried exactly by a JSON number.
    NumericRangeError
        When the value does not fit ``kind``.
    """
    if isinstance(raw, bool):
        raise NumericFormatError(
            f"expected an integer for {kind} but got boolean", path
        )
    if isinstance(raw, int):
        if is_wide_integer(kind) and abs(raw) > JSON_SAFE_INTEGER:
            raise NumericFormatError(
                f"{kind} value {raw} exceeds the exactly representable JSON "
                "number range; supply it as a decimal string",
                path,
            )
        return _check_range(raw, kind, path)
    if isinstance(raw, float):
        raise NumericFormatError(
            f"expected an integer for {kind} but got fractional or exponent "
            f"number {raw!r}",
            path,
        )
    if isinstance(raw, str):
        return _check_range(_parse_decimal(raw, kind, path), kind, path)
    raise NumericFormatError(
        f"expected an integer for {kind} but got {json_type_name(raw)}", path
    )


def coerce_default_integer(raw: object, kind: TypeTag, path: ArgumentPath = ()) -> int:
    """Coerce an untagged JSON number using the default integer kind."""
    if isinstance(raw, float):
        raise NumericFormatError(
            f"floating point numbers are not supported: {raw!r}", path
        )
    try:
        return coerce_integer(raw, kind, path)
    except NumericRangeError as exc:
        raise NumericRangeError(
            f"{exc.message}; untagged numbers default to {kind}, use an explicit "
            "wide-integer tag such as u128 or i128",
            path,
        ) from exc
