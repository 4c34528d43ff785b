# Docstring for recon_engine/load_data module
"""
load_data.py

Input loader utilities for engine-input, ruleset, mapping and raw record files.

This module keeps file I/O separate from normalization and reconciliation
logic. Loaders read and decode; `core.validators` turns decoded documents into
configuration dataclasses; the engines never touch the filesystem directly
except through these functions and `outputs.evidence`.

Design goals
------------
- Separation of concerns: file reading and decoding here, validation in
  `core.validators`, business logic in `engines`.
- Strict shape: every CSV row must have as many fields as the header.
- Repeatability: CSV cells are read as text (dtype=str, no NA inference), so
  identifiers keep leading zeros and amounts never pass through floats.
- Fail fast: any unreadable or unparseable file raises immediately with the
  failing path in the message. A run never continues on a broken input file.

Inputs
------
- Engine-input JSON document
- Ruleset JSON document
- Mapping-config JSON document (optional)
- Raw records as CSV (header row) or JSON (array, or {"records": [...]})

Public API
----------
- load_engine_input(path) -> EngineInput
- load_ruleset(path) -> Ruleset
- load_mapping_config(path) -> dict[str, FieldMapping]
- detect_format(path) -> str
- load_records(path, input_format) -> list[dict[str, str]]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd

from .config import (
    FORMAT_BY_EXTENSION,
    INPUT_FORMAT_AUTO,
    INPUT_FORMAT_CSV,
    INPUT_FORMAT_JSON,
    EngineInput,
    FieldMapping,
    Ruleset,
)
from .core.normalizers import stringify_value
from .core.validators import normalize_mapping_config, validate_engine_input, validate_ruleset


def _read_json(path: Path, label: str) -> Any:
    """Read and decode a JSON document, labelling errors with what it is."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise OSError(f"read {label} {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"parse {label} json {path}: {exc}") from exc


def load_engine_input(path: str | Path) -> EngineInput:
    """Load the engine-input document; relative paths resolve next to it."""
    input_path = Path(path).resolve()
    data = _read_json(input_path, "engine input")
    return validate_engine_input(data, input_path.parent)


def load_ruleset(path: str | Path) -> Ruleset:
    return validate_ruleset(_read_json(Path(path), "ruleset"))


def load_mapping_config(path: str | Path | None) -> dict[str, FieldMapping]:
    """Load per-source field mappings; no path means no mappings."""
    if path is None or str(path) == "":
        return {}
    return normalize_mapping_config(_read_json(Path(path), "mapping config"))


def detect_format(path: str | Path) -> str:
    """Map a file extension to 'csv' or 'json'; unknown extensions are CSV."""
    return FORMAT_BY_EXTENSION.get(Path(path).suffix.lower(), INPUT_FORMAT_CSV)


def load_records(path: str | Path, input_format: str = INPUT_FORMAT_AUTO) -> list[dict[str, str]]:
    """
    Read one raw source file into a list of text-valued records.

    Raises:
        FileNotFoundError / OSError: file cannot be opened.
        ValueError: the content cannot be parsed, or the format is unknown.
    """
    file_path = Path(path)
    fmt = detect_format(file_path) if input_format == INPUT_FORMAT_AUTO else input_format

    if fmt == INPUT_FORMAT_CSV:
        return _read_csv_records(file_path)
    if fmt == INPUT_FORMAT_JSON:
        return _read_json_records(file_path)
    raise ValueError(f"unsupported format: {fmt}")


def _read_csv_records(path: Path) -> list[dict[str, str]]:
    if not path.exists():
        raise FileNotFoundError(f"open input file {path}: no such file")
    try:
        # header=None: the header row fixes the width, so a longer data row is
        # a ParserError instead of being folded into an inferred index.
        raw = pd.read_csv(
            path,
            header=None,
            dtype=str,                 # every cell stays text
            keep_default_na=False,     # "NA", "null", "" are data, not missing values
            skipinitialspace=True,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ValueError(f"read csv {path}: {exc}") from exc

    if len(raw) < 2:
        return []

    # Missing trailing cells are NaN even with keep_default_na=False; an
    # empty cell is "". A row shorter than the header is a parse error.
    short_rows = raw.index[raw.isna().any(axis=1)]
    if len(short_rows):
        raise ValueError(f"read csv {path}: record {short_rows[0]} has fewer fields than the header")

    headers = [str(name).strip() for name in raw.iloc[0]]
    df = raw.iloc[1:].apply(lambda column: column.astype(str).str.strip())
    df.columns = headers
    return df.to_dict(orient="records")


def _read_json_records(path: Path) -> list[dict[str, str]]:
    data = _read_json(path, "input")

    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = data.get("records")
        if not isinstance(items, list):
            items = []
    else:
        raise ValueError(f"parse json {path}: unsupported json structure")

    return [
        {stringify_value(str(name)): stringify_value(value) for name, value in item.items()}
        for item in items
        if isinstance(item, dict)
    ]
