#!/usr/bin/env python3
"""Command-line entry point for marshaling contract call arguments."""

import argparse
import json
import logging
import sys
from pathlib import Path

# Support running `python main.py` from repository root without installation.
sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from batch import (  # noqa: E402
    load_batch_file,
    log_results,
    marshal_batch,
    summarize,
)
from config import Settings  # noqa: E402
from normalize import marshal_with_signature, params_from_type_names  # noqa: E402

log = logging.getLogger("marshal")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Marshal JSON call arguments into typed Soroban values."
    )
    parser.add_argument(
        "arguments",
        nargs="?",
        help="JSON array of arguments, or '-' to read it from stdin",
    )
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="TYPE",
        help="declared parameter type, e.g. 'Option<U32>' (repeat per parameter)",
    )
    parser.add_argument("--batch", type=Path, help="batch file of argument sets")
    return parser


def _run_single(text: str, type_names: list[str], settings: Settings) -> int:
    values = marshal_with_signature(
        text,
        params=params_from_type_names(type_names),
        policy=settings.marshal_policy(),
    )
    print(json.dumps([value.to_tagged_json() for value in values], indent=2))
    return 0


def _run_batch(path: Path, type_names: list[str], settings: Settings) -> int:
    items = load_batch_file(path)
    results = marshal_batch(
        items,
        policy=settings.marshal_policy(),
        max_workers=settings.batch_workers,
        params=params_from_type_names(type_names),
    )
    summary = summarize(results)
    log_results(results, summary)
    print(
        json.dumps(
            {
                "summary": summary.model_dump(),
                "results": [result.model_dump() for result in results],
            },
            indent=2,
        )
    )
    return 0 if summary.failed == 0 and summary.errors == 0 else 1


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the process exit code."""
    args = _build_parser().parse_args(argv)
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.batch is not None:
            return _run_batch(args.batch, args.param, settings)
        if args.arguments is None:
            print("error: provide JSON arguments or --batch FILE", file=sys.stderr)
            return 2
        text = sys.stdin.read() if args.arguments == "-" else args.arguments
        return _run_single(text, args.param, settings)
    except ValueError as error:
        log.debug("Marshaling failed", exc_info=True)
        print(f"error: {error}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
