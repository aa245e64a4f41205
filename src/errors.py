"""Error taxonomy for argument marshaling failures.

All failures are local and recoverable. Every error carries the structural
path (array indices and object keys) of the node that caused it, and
subclasses :class:`ValueError` so callers that only distinguish bad input
from internal faults keep working.
"""

from __future__ import annotations

from value_types import ArgumentPath, JsonDict


def format_path(path: ArgumentPath) -> str:
    """Render a path as ``$[0].user[2]``.

    Keys that are not plain identifiers are rendered in bracket form.
    """
    rendered = "$"
    for segment in path:
        if isinstance(segment, int):
            rendered += f"[{segment}]"
        elif segment.isidentifier():
            rendered += f".{segment}"
        else:
            rendered += f"[{segment!r}]"
    return rendered


class ArgumentParseError(ValueError):
    """Base class of all marshaling failures."""

    kind = "ArgumentParseError"

    def __init__(
        self: ArgumentParseError, message: str, path: ArgumentPath = ()
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path: ArgumentPath = tuple(path)

    def __str__(self: ArgumentParseError) -> str:
        if not self.path:
            return self.message
        return f"{self.message} (at {format_path(self.path)})"

    def to_payload(self: ArgumentParseError) -> JsonDict:
        """Return a JSON-serializable description of the error."""
        return {
            "error": self.kind,
            "message": str(self),
            "path": list(self.path),
        }


class MalformedJson(ArgumentParseError):
    kind = "MalformedJson"


class UnknownTypeTag(ArgumentParseError):
    kind = "UnknownTypeTag"


class MissingField(ArgumentParseError):
    kind = "MissingField"

    def __init__(
        self: MissingField, tag: str, field: str, path: ArgumentPath = ()
    ) -> None:
        super().__init__(f"type '{tag}' requires a '{field}' field", path)
        self.tag = tag
        self.field = field


class ArityMismatch(ArgumentParseError):
    kind = "ArityMismatch"

    def __init__(
        self: ArityMismatch, expected: int, actual: int, path: ArgumentPath = ()
    ) -> None:
        super().__init__(
            f"tuple arity mismatch: expected {expected}, got {actual}", path
        )
        self.expected = expected
        self.actual = actual


class ElementTypeMismatch(ArgumentParseError):
    """A typed-vector element failed to coerce to the declared element type."""

    kind = "ElementTypeMismatch"

    def __init__(
        self: ElementTypeMismatch,
        element_type: str,
        index: int,
        cause: ArgumentParseError,
        path: ArgumentPath = (),
    ) -> None:
        super().__init__(
            f"vector element {index} does not match element_type "
            f"'{element_type}': {cause.message}",
            path,
        )
        self.element_type = element_type
        self.index = index
        self.cause = cause


class MixedArrayError(ArgumentParseError):
    kind = "MixedArrayError"

    def __init__(
        self: MixedArrayError,
        expected: str,
        actual: str,
        index: int,
        path: ArgumentPath = (),
    ) -> None:
        super().__init__(
            f"mixed array with {actual} at index {index} "
            f"(expected homogeneous array of {expected})",
            path,
        )
        self.expected = expected
        self.actual = actual
        self.index = index


class NumericFormatError(ArgumentParseError):
    kind = "NumericFormatError"


class NumericRangeError(ArgumentParseError):
    kind = "NumericRangeError"


class RecursionDepthExceeded(ArgumentParseError):
    kind = "RecursionDepthExceeded"

    def __init__(
        self: RecursionDepthExceeded, max_depth: int, path: ArgumentPath = ()
    ) -> None:
        super().__init__(f"nesting exceeds the maximum depth of {max_depth}", path)
        self.max_depth = max_depth


class TypeMismatch(ArgumentParseError):
    """A tagged payload has the wrong JSON type for its tag."""

    kind = "TypeMismatch"

    def __init__(
        self: TypeMismatch, expected: str, actual: str, path: ArgumentPath = ()
    ) -> None:
        super().__init__(f"type mismatch: expected {expected} but got {actual}", path)
        self.expected = expected
        self.actual = actual


class InvalidValue(ArgumentParseError):
    """A payload has the right JSON type but an illegal value."""

    kind = "InvalidValue"
