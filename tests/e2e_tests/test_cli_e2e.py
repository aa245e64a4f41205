"""End-to-end tests for the command-line entry point."""

import json
import subprocess
import sys
from pathlib import Path

import pytest

pytestmark = pytest.mark.e2e

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _run(*args: str, stdin: str | None = None) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, str(PROJECT_ROOT / "main.py"), *args],
        check=False,
        capture_output=True,
        text=True,
        input=stdin,
    )


def test_marshals_arguments_to_tagged_json() -> None:
    """Run the main script and read back the tagged rendering."""
    result = _run('[{"type": "u32", "value": "7"}, "memo", [true, false]]')
    assert result.returncode == 0, result.stderr
    assert json.loads(result.stdout) == [
        {"type": "u32", "value": 7},
        "memo",
        [True, False],
    ]


def test_reads_arguments_from_stdin_with_params() -> None:
    result = _run("-", "--param", "Option<U32>", stdin="[null]")
    assert result.returncode == 0, result.stderr
    assert json.loads(result.stdout) == [{"type": "option", "value": None}]


def test_reports_marshaling_errors() -> None:
    result = _run('[1, "two", 3.5]')
    assert result.returncode == 1
    assert result.stderr.strip().splitlines()[-1].startswith("error: ")
    assert "floating point" in result.stderr


def test_requires_arguments_or_batch() -> None:
    result = _run()
    assert result.returncode == 2
    assert "--batch" in result.stderr


def test_batch_mode(tmp_path: Path) -> None:
    """Marshal a batch file and report per-item status."""
    batch_file = tmp_path / "batch.json"
    batch_file.write_text(
        json.dumps(
            [
                {"args": [1], "label": "one", "expected": [{"type": "i64", "value": 1}]},
                {"args": [[1, "x"]], "label": "mixed"},
            ]
        ),
        encoding="utf-8",
    )
    result = _run("--batch", str(batch_file))
    assert result.returncode == 1
    report = json.loads(result.stdout)
    assert report["summary"]["total"] == 2
    assert report["summary"]["passed"] == 1
    assert report["summary"]["errors"] == 1
    assert [item["label"] for item in report["results"]] == ["one", "mixed"]
    assert report["results"][1]["error_kind"] == "MixedArrayError"


def test_batch_mode_all_passing(tmp_path: Path) -> None:
    batch_file = tmp_path / "batch.json"
    batch_file.write_text(json.dumps([["a"], [True]]), encoding="utf-8")
    result = _run("--batch", str(batch_file))
    assert result.returncode == 0, result.stderr
