# Docstring for recon_engine/outputs/export_utils module
"""
export_utils.py

Excel review workbook for a completed reconciliation run.

The evidence bundle (JSON Lines + manifest) is the auditable record; this
module only renders it into a workbook a reviewer can filter and sort. The
workbook is never part of the manifest and is written wherever the caller
asks, typically outside the evidence directory.

Design goals
------------
- Read-only over evidence: the workbook is built from the files on disk, so it
  shows exactly what the manifest hashes.
- Safe output: parent directories are created before writing.
- Consistent engine: always the openpyxl engine for .xlsx output.

Public API
----------
- write_multi_sheet_excel(sheets, output_path, *, index=False) -> Path
- load_evidence_frames(output_dir) -> dict[str, pd.DataFrame]
- write_variance_review_workbook(output_dir, output_path) -> Path
"""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from ..config import ENGINE_OUTPUT_FILENAME, NORMALIZED_RECORDS_PATH, VARIANCE_ITEMS_PATH


EXCEL_SHEETNAME_LIMIT = 31

_VARIANCE_COLUMNS = ["key", "type", "currency", "amounts_by_source", "missing_sources"]
_NORMALIZED_COLUMNS = ["source", "key", "id", "account", "amount_minor_units", "currency", "timestamp"]


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _truncate_sheet_name(name: str) -> str:
    return name[:EXCEL_SHEETNAME_LIMIT] if len(name) > EXCEL_SHEETNAME_LIMIT else name


def write_multi_sheet_excel(
    sheets: dict[str, pd.DataFrame],
    output_path: Path | str,
    *,
    index: bool = False,
) -> Path:
    """
    Write multiple DataFrames to a single Excel workbook and return the path.

    Each dict key becomes a sheet name (truncated to Excel's 31-character limit).
    """
    path = Path(output_path)
    _ensure_parent_dir(path)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, df in sheets.items():
            df.to_excel(writer, sheet_name=_truncate_sheet_name(name), index=index)
    return path


def _read_jsonl(path: Path) -> list[dict]:
    with path.open("r", encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]


def _flatten_variance(item: dict) -> dict:
    # One cell per list so the sheet stays one row per variance
    amounts = "; ".join(
        f"{entry['source']}={entry['amount_minor_units']}" for entry in item.get("amounts_by_source", [])
    )
    return {
        "key": item["key"],
        "type": item["type"],
        "currency": item.get("currency", ""),
        "amounts_by_source": amounts,
        "missing_sources": ", ".join(item.get("missing_sources", [])),
    }


def load_evidence_frames(output_dir: Path | str) -> dict[str, pd.DataFrame]:
    """Load summary, variances and normalized records of a finished run."""
    root = Path(output_dir)
    engine_output = json.loads((root / ENGINE_OUTPUT_FILENAME).read_text(encoding="utf-8"))

    normalization = engine_output["normalization_summary"]
    variance_summary = engine_output["variance_summary"]
    summary_rows = [
        ("records_processed", normalization["records_processed"]),
        ("records_skipped", normalization["records_skipped"]),
        ("warnings", len(normalization["warnings"])),
        ("variances_total", variance_summary["total"]),
    ]
    summary_rows += [
        (f"variances_{name}", count) for name, count in variance_summary["counts_by_type"].items()
    ]

    variances = [_flatten_variance(item) for item in _read_jsonl(root.joinpath(*VARIANCE_ITEMS_PATH.parts))]
    normalized = _read_jsonl(root.joinpath(*NORMALIZED_RECORDS_PATH.parts))

    return {
        "summary": pd.DataFrame(summary_rows, columns=["metric", "value"]),
        "variances": pd.DataFrame(variances, columns=_VARIANCE_COLUMNS),
        "normalized": pd.DataFrame(normalized, columns=_NORMALIZED_COLUMNS),
        "warnings": pd.DataFrame({"warning": normalization["warnings"]}),
    }


def write_variance_review_workbook(output_dir: Path | str, output_path: Path | str) -> Path:
    """Render a finished run's evidence into a review workbook."""
    return write_multi_sheet_excel(load_evidence_frames(output_dir), output_path)
