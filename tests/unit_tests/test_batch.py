"""Tests for batch marshaling."""

import json
import logging
from pathlib import Path
from typing import Self

from pytest import LogCaptureFixture as pytest_LogCaptureFixture
from pytest import mark as pytest_mark
from pytest import raises as pytest_raises

from batch import (
    BatchFileError,
    BatchItem,
    load_batch_file,
    log_results,
    marshal_batch,
    summarize,
)
from normalize import params_from_type_names
from typed_values import MarshalPolicy

pytestmark = pytest_mark.unit


def _write_batch(tmp_path: Path, entries: object) -> Path:
    path = tmp_path / "batch.json"
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


class TestLoadBatchFile:
    """Test suite for ``load_batch_file``."""

    def test_loads_raw_and_structured_entries(self: Self, tmp_path: Path) -> None:
        """Accept bare argument arrays and ``args`` objects side by side.

        Parameters
        ----------
        tmp_path : pathlib.Path
            Temporary directory provided by pytest.
        """
        path = _write_batch(
            tmp_path,
            [
                [1, 2],
                {"args": [{"type": "u32", "value": 3}], "label": "typed"},
                {"args": "[true]", "expected": [True]},
            ],
        )
        items = load_batch_file(path)
        assert items == [
            BatchItem(args="[1, 2]"),
            BatchItem(args='[{"type": "u32", "value": 3}]', label="typed"),
            BatchItem(args="[true]", expected=[True]),
        ]

    def test_missing_file(self: Self, tmp_path: Path) -> None:
        with pytest_raises(BatchFileError, match="failed to read"):
            load_batch_file(tmp_path / "missing.json")

    def test_invalid_json(self: Self, tmp_path: Path) -> None:
        path = tmp_path / "batch.json"
        path.write_text("[1,", encoding="utf-8")
        with pytest_raises(BatchFileError, match="as JSON"):
            load_batch_file(path)

    def test_top_level_must_be_array(self: Self, tmp_path: Path) -> None:
        with pytest_raises(BatchFileError, match="JSON array"):
            load_batch_file(_write_batch(tmp_path, {"args": []}))


class TestMarshalBatch:
    """Test suite for ``marshal_batch`` and its reporting helpers."""

    def test_results_preserve_order_and_isolate_failures(self: Self) -> None:
        items = [
            BatchItem(args="[1]", label="first"),
            BatchItem(args='[[1, "x"]]', label="mixed"),
            BatchItem(args='["a"]', expected=["a"]),
            BatchItem(args='["a"]', expected=["b"]),
        ]
        results = marshal_batch(items, max_workers=2)

        assert [result.index for result in results] == [0, 1, 2, 3]
        assert results[0].arguments == [{"type": "i64", "value": 1}]
        assert results[0].status == "PASS"
        assert results[1].success is False
        assert results[1].error_kind == "MixedArrayError"
        assert "mixed array" in results[1].error
        assert results[1].status == "ERROR"
        assert results[2].passed is True
        assert results[3].success is True
        assert results[3].status == "FAIL"

    def test_policy_and_params_apply_to_every_item(self: Self) -> None:
        items = [BatchItem(args="[5]"), BatchItem(args="[null]")]
        results = marshal_batch(
            items,
            policy=MarshalPolicy(default_integer="u32"),
            params=params_from_type_names(["Option<U32>"]),
        )
        assert results[0].arguments == [
            {"type": "option", "value": {"type": "u32", "value": 5}}
        ]
        assert results[1].arguments == [{"type": "option", "value": None}]

    def test_summarize_and_log(
        self: Self, caplog: pytest_LogCaptureFixture
    ) -> None:
        results = marshal_batch(
            [
                BatchItem(args="[1]"),
                BatchItem(args="[1.5]", label="float"),
                BatchItem(args="[2]", expected=[3]),
            ]
        )
        summary = summarize(results)
        assert (summary.total, summary.passed, summary.failed, summary.errors) == (
            3,
            1,
            1,
            1,
        )
        assert summary.total_duration_ms >= 0

        caplog.set_level(logging.INFO, logger="marshal.batch")
        log_results(results, summary)
        assert "ERROR float" in caplog.text
        assert "total=3 passed=1 failed=1 errors=1" in caplog.text

    def test_empty_batch(self: Self) -> None:
        assert marshal_batch([]) == []
        assert summarize([]).total == 0

    def test_zero_padded_literals_do_not_abort_the_batch(self: Self) -> None:
        padded = "0" * 5000
        overlong = padded + "9" * 101
        results = marshal_batch(
            [
                BatchItem(args=f'[{{"type": "u32", "value": "{padded}7"}}]'),
                BatchItem(args=f'[{{"type": "u32", "value": "{overlong}"}}]'),
            ]
        )
        assert results[0].arguments == [{"type": "u32", "value": 7}]
        assert results[1].status == "ERROR"
        assert results[1].error_kind == "NumericRangeError"
