"""Tests for the marshaling error taxonomy."""

from pytest import mark as pytest_mark

from errors import (
    ArgumentParseError,
    ElementTypeMismatch,
    InvalidValue,
    MissingField,
    MixedArrayError,
    NumericRangeError,
    format_path,
)

pytestmark = pytest_mark.unit


def test_format_path_renders_indices_and_keys() -> None:
    assert format_path(()) == "$"
    assert format_path((0, "user", 2)) == "$[0].user[2]"
    assert format_path((1, "not an identifier")) == "$[1]['not an identifier']"


def test_errors_are_value_errors_with_kind() -> None:
    error = MissingField("tuple", "arity", (3,))
    assert isinstance(error, ValueError)
    assert isinstance(error, ArgumentParseError)
    assert error.kind == "MissingField"
    assert str(error) == "type 'tuple' requires a 'arity' field (at $[3])"


def test_message_without_path_is_bare() -> None:
    assert str(NumericRangeError("too big")) == "too big"


def test_to_payload_is_json_ready() -> None:
    """Serialize kind, rendered message and raw path segments."""
    error = MixedArrayError("i64", "string", 2, (0,))
    assert error.to_payload() == {
        "error": "MixedArrayError",
        "message": (
            "mixed array with string at index 2 "
            "(expected homogeneous array of i64) (at $[0])"
        ),
        "path": [0],
    }


def test_element_type_mismatch_keeps_cause() -> None:
    cause = InvalidValue("bad address", (0, "value", 1))
    error = ElementTypeMismatch("address", 1, cause, cause.path)
    assert "element_type 'address'" in str(error)
    assert "bad address" in str(error)
    assert error.cause is cause
    assert error.index == 1
