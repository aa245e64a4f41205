"""Marshal many argument sets concurrently from a batch file."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from errors import ArgumentParseError
from host import HostEnv
from normalize import FunctionParam, marshal_with_signature
from typed_values import MarshalPolicy

log = logging.getLogger("marshal.batch")


class BatchFileError(ValueError):
    """Raised when a batch file cannot be read or has the wrong shape."""


class BatchItem(BaseModel):
    """One argument set of a batch.

    Parameters
    ----------
    args : str
        JSON text of the argument array.
    label : str | None
        Optional human-readable name of the case.
    expected : Any
        Optional tagged JSON the marshaled arguments must equal.
    """

    model_config = ConfigDict(frozen=True)

    args: str
    label: str | None = None
    expected: Any = None


class BatchResult(BaseModel):
    index: int
    label: str | None = None
    args: str
    arguments: list[Any] | None = None
    success: bool
    error: str | None = None
    error_kind: str | None = None
    expected: Any = None
    passed: bool
    duration_ms: float

    @property
    def status(self: BatchResult) -> str:
        if self.passed:
            return "PASS"
        return "FAIL" if self.success else "ERROR"


class BatchSummary(BaseModel):
    total: int
    passed: int
    failed: int
    errors: int
    total_duration_ms: float


def _as_args_text(raw: Any) -> str:
    return raw if isinstance(raw, str) else json.dumps(raw)


def load_batch_file(path: str | Path) -> list[BatchItem]:
    """Load batch items from a JSON file.

    The file holds an array whose entries are either argument arrays or
    objects with an ``args`` key and optional ``label`` and ``expected``.

    Parameters
    ----------
    path : str | Path
        Location of the batch file.

    Returns
    -------
    list[BatchItem]
        Items in file order.

    Raises
    ------
    BatchFileError
        When the file is unreadable, not JSON, or not an array.
    """
    batch_path = Path(path)
    try:
        content = batch_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BatchFileError(f"failed to read batch file {batch_path}: {exc}") from exc
    try:
        parsed = json.loads(content)
    except ValueError as exc:
        raise BatchFileError(
            f"failed to parse batch file {batch_path} as JSON: {exc}"
        ) from exc
    if not isinstance(parsed, list):
        raise BatchFileError(f"batch file {batch_path} must contain a JSON array")

    items: list[BatchItem] = []
    for entry in parsed:
        if isinstance(entry, dict) and "args" in entry:
            label = entry.get("label")
            items.append(
                BatchItem(
                    args=_as_args_text(entry["args"]),
                    label=None if label is None else str(label),
                    expected=entry.get("expected"),
                )
            )
        else:
            items.append(BatchItem(args=_as_args_text(entry)))
    log.info("Loaded %d batch item(s) from %s", len(items), batch_path)
    return items


def _marshal_one(
    index: int,
    item: BatchItem,
    params: Sequence[FunctionParam],
    policy: MarshalPolicy,
) -> BatchResult:
    started = time.perf_counter()
    arguments: list[Any] | None = None
    error: ArgumentParseError | None = None
    try:
        values = marshal_with_signature(
            item.args, params=params, host=HostEnv(), policy=policy
        )
        arguments = [value.to_tagged_json() for value in values]
    except ArgumentParseError as exc:
        error = exc
    duration_ms = (time.perf_counter() - started) * 1000.0

    success = error is None
    passed = success and (item.expected is None or item.expected == arguments)
    return BatchResult(
        index=index,
        label=item.label,
        args=item.args,
        arguments=arguments,
        success=success,
        error=None if error is None else str(error),
        error_kind=None if error is None else error.kind,
        expected=item.expected,
        passed=passed,
        duration_ms=duration_ms,
    )


def marshal_batch(
    items: Sequence[BatchItem],
    policy: MarshalPolicy | None = None,
    max_workers: int = 4,
    params: Sequence[FunctionParam] = (),
) -> list[BatchResult]:
    """Marshal every item on a thread pool, preserving input order.

    Each item gets its own :class:`HostEnv`; a failing item is reported in
    its result and does not stop the others.
    """
    resolved_policy = policy if policy is not None else MarshalPolicy()
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        return list(
            pool.map(
                lambda pair: _marshal_one(pair[0], pair[1], params, resolved_policy),
                enumerate(items),
            )
        )


def summarize(results: Sequence[BatchResult]) -> BatchSummary:
    """Count passed, failed and errored results."""
    return BatchSummary(
        total=len(results),
        passed=sum(1 for result in results if result.passed),
        failed=sum(1 for result in results if result.success and not result.passed),
        errors=sum(1 for result in results if not result.success),
        total_duration_ms=sum(result.duration_ms for result in results),
    )


def log_results(results: Sequence[BatchResult], summary: BatchSummary) -> None:
    for result in results:
        label = result.label or f"Test #{result.index}"
        if result.success:
            log.info("%s %s (%.2fms)", result.status, label, result.duration_ms)
            if not result.passed:
                log.warning("%s: result does not match expected value", label)
        else:
            log.error("%s %s: %s", result.status, label, result.error)
    log.info(
        "Batch summary: total=%d passed=%d failed=%d errors=%d duration=%.2fms",
        summary.total,
        summary.passed,
        summary.failed,
        summary.errors,
        summary.total_duration_ms,
    )
