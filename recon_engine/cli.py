"""
cli.py

Command-line entry point.

    recon-engine run --input engine_input.json [--review-workbook review.xlsx]
    recon-engine verify --output-dir out/
    recon-engine sample [--output-dir data/sample] [--seed N]

Exit codes: 0 on success, 1 on a fatal run error or a failed verification.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config import SAMPLE_DIR
from .core.generate_sample_data import DEFAULT_SEED, generate_sample_data
from .engines.run_engine import run_engine
from .load_data import load_engine_input
from .outputs.evidence import verify_manifest
from .outputs.export_utils import write_variance_review_workbook

logger = logging.getLogger(__name__)


def _cmd_run(args: argparse.Namespace) -> int:
    engine_input = load_engine_input(args.input)
    output = run_engine(engine_input)

    summary = output.variance_summary
    print(f"Records processed: {output.normalization.records_processed}")
    print(f"Records skipped:   {output.normalization.records_skipped}")
    print(f"Warnings:          {len(output.normalization.warnings)}")
    print(f"Variances:         {summary.total}")
    for name, count in summary.counts_by_type.items():
        print(f"  {name}: {count}")
    print(f"Evidence written to: {engine_input.output_dir}")

    if args.review_workbook:
        path = write_variance_review_workbook(engine_input.output_dir, args.review_workbook)
        print(f"Review workbook written to: {path}")
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    result = verify_manifest(args.output_dir)
    if result.ok:
        print("Manifest verified: all files match.")
        return 0
    for error in result.errors:
        print(f"FAIL {error}", file=sys.stderr)
    return 1


def _cmd_sample(args: argparse.Namespace) -> int:
    outputs = generate_sample_data(output_dir=args.output_dir, seed=args.seed)
    for label, path in outputs.items():
        print(f"Wrote {label} sample to: {path}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recon-engine",
        description="Deterministic multi-source reconciliation with a verifiable evidence bundle.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a reconciliation from an engine-input file")
    run_parser.add_argument("--input", type=Path, required=True, help="Path to engine_input.json")
    run_parser.add_argument(
        "--review-workbook",
        type=Path,
        default=None,
        help="Optional .xlsx path for a reviewer workbook (not part of the manifest)",
    )
    run_parser.set_defaults(handler=_cmd_run)

    verify_parser = subparsers.add_parser("verify", help="Verify an evidence bundle against its manifest")
    verify_parser.add_argument("--output-dir", type=Path, required=True, help="Run output directory")
    verify_parser.set_defaults(handler=_cmd_verify)

    sample_parser = subparsers.add_parser("sample", help="Generate seeded sample inputs")
    sample_parser.add_argument("--output-dir", type=Path, default=SAMPLE_DIR, help="Destination directory")
    sample_parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Deterministic RNG seed")
    sample_parser.set_defaults(handler=_cmd_sample)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = _build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except (ValueError, OSError) as exc:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
