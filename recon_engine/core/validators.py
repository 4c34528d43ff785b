# Docstring for recon_engine/core/validators module
"""
validators.py

Validation and defaulting for the parsed configuration documents.

The loaders in `load_data.py` only decode JSON; this module turns the decoded
objects into frozen configuration dataclasses, applying defaults exactly once
and raising ValueError for anything the engine cannot run with. After this
point the pipeline never has to ask "is this set?".

Public API
----------
- validate_ruleset(data) -> Ruleset
- normalize_mapping_config(data) -> dict[str, FieldMapping]
- validate_engine_input(data, base_dir) -> EngineInput
- resolve_sources(ruleset, input_files) -> tuple[str, ...]
- build_normalization_settings(engine_input) -> NormalizationSettings

Internal helpers
----------------
Underscore-prefixed helpers are intentionally not part of the public API.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from ..config import (
    DEFAULT_ACCOUNT_FIELD,
    DEFAULT_CURRENCY_FIELD,
    DEFAULT_EXECUTION_MODE,
    DEFAULT_INPUT_FORMAT,
    DEFAULT_ROUNDING_MODE,
    DEFAULT_SORT_KEYS,
    DEFAULT_TIMESTAMP_FIELD,
    DEFAULT_TIMEZONE,
    EXECUTION_MODES,
    INPUT_FORMATS,
    ROUNDING_MODES,
    DeterminismConfig,
    EngineInput,
    FieldMapping,
    NormalizationSettings,
    Ruleset,
)
from .normalizers import resolve_timezone

_FIELD_MAPPING_KEYS = ("id", "amount", "currency", "timestamp", "account")


def _require_object(data: object, label: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{label} must be a JSON object, got {type(data).__name__}")
    return data


def _coerce_str(value: object, field_name: str, default: str = "") -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"Invalid {field_name}: {value!r}. Expected a string.")
    return value or default


def _coerce_str_list(value: object, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"Invalid {field_name}: {value!r}. Expected a list of strings.")
    items = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Invalid {field_name} entry: {item!r}. Expected a string.")
        items.append(item)
    return tuple(items)


def _coerce_choice(value: object, field_name: str, choices: tuple[str, ...], default: str) -> str:
    text = _coerce_str(value, field_name, default)
    if text not in choices:
        raise ValueError(f"unsupported {field_name}: {text}")
    return text


# --- Ruleset ---------------------------------------------------------------------

def validate_ruleset(data: object) -> Ruleset:
    """Build a Ruleset; key_fields and amount_field are required."""
    doc = _require_object(data, "ruleset")

    key_fields = _coerce_str_list(doc.get("key_fields"), "key_fields")
    if not key_fields:
        raise ValueError("ruleset key_fields must not be empty")

    amount_field = _coerce_str(doc.get("amount_field"), "amount_field")
    if not amount_field:
        raise ValueError("ruleset amount_field is required")

    return Ruleset(
        key_fields=key_fields,
        amount_field=amount_field,
        sources=_coerce_str_list(doc.get("sources"), "sources"),
        currency_field=_coerce_str(doc.get("currency_field"), "currency_field", DEFAULT_CURRENCY_FIELD),
        timestamp_field=_coerce_str(doc.get("timestamp_field"), "timestamp_field", DEFAULT_TIMESTAMP_FIELD),
        account_field=_coerce_str(doc.get("account_field"), "account_field", DEFAULT_ACCOUNT_FIELD),
        schema_version=_coerce_str(doc.get("schema_version"), "schema_version"),
    )


# --- Mapping config --------------------------------------------------------------

def normalize_mapping_config(data: object | None) -> dict[str, FieldMapping]:
    """
    Build the per-source FieldMapping table.

    Accepts {"sources": {source: mapping}} or the bare {source: mapping}
    object. None (no mapping file) yields an empty table.
    """
    if data is None:
        return {}
    doc = _require_object(data, "mapping config")
    sources = doc["sources"] if "sources" in doc else doc
    if sources is None:
        return {}
    sources = _require_object(sources, "mapping config sources")

    mappings: dict[str, FieldMapping] = {}
    for source, raw_mapping in sources.items():
        entry = _require_object(raw_mapping, f"mapping for source {source!r}")
        mappings[source] = FieldMapping(
            **{name: _coerce_str(entry.get(name), f"{source}.{name}") for name in _FIELD_MAPPING_KEYS}
        )
    return mappings


# --- Engine input ----------------------------------------------------------------

def _resolve_path(base_dir: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else base_dir / path


def validate_engine_input(data: object, base_dir: Path) -> EngineInput:
    """
    Validate the engine-input document and resolve relative paths against
    base_dir (the directory holding the engine-input file).
    """
    doc = _require_object(data, "engine input")

    input_files = _coerce_str_list(doc.get("input_files"), "input_files")
    if not input_files:
        raise ValueError("input_files must not be empty")

    ruleset_path = _coerce_str(doc.get("ruleset_path"), "ruleset_path")
    if not ruleset_path:
        raise ValueError("ruleset_path is required")

    output_dir = _coerce_str(doc.get("output_dir"), "output_dir")
    if not output_dir:
        raise ValueError("output_dir is required")

    rounding_mode = _coerce_choice(doc.get("rounding_mode"), "rounding_mode", ROUNDING_MODES, DEFAULT_ROUNDING_MODE)
    input_format = _coerce_choice(doc.get("input_format"), "input_format", INPUT_FORMATS, DEFAULT_INPUT_FORMAT)
    mode = _coerce_choice(doc.get("mode"), "mode", EXECUTION_MODES, DEFAULT_EXECUTION_MODE)
    timezone_name = _coerce_str(doc.get("timezone"), "timezone", DEFAULT_TIMEZONE)

    mapping_path = _coerce_str(doc.get("mapping_config_path"), "mapping_config_path")
    currency = _coerce_str(doc.get("currency"), "currency")

    determinism_doc = _require_object(doc.get("determinism") or {}, "determinism")
    determinism = DeterminismConfig(
        sort_keys=_coerce_str_list(determinism_doc.get("sort_keys"), "determinism.sort_keys") or DEFAULT_SORT_KEYS,
        rounding=_coerce_str(determinism_doc.get("rounding"), "determinism.rounding", rounding_mode),
        timezone=_coerce_str(determinism_doc.get("timezone"), "determinism.timezone", timezone_name),
    )

    return EngineInput(
        input_files=tuple(_resolve_path(base_dir, path) for path in input_files),
        ruleset_path=_resolve_path(base_dir, ruleset_path),
        output_dir=_resolve_path(base_dir, output_dir),
        input_format=input_format,
        mapping_config_path=_resolve_path(base_dir, mapping_path) if mapping_path else None,
        currency=currency or None,
        rounding_mode=rounding_mode,
        timezone=timezone_name,
        mode=mode,
        determinism=determinism,
    )


def resolve_sources(ruleset: Ruleset, input_files: tuple[Path, ...]) -> tuple[str, ...]:
    """Attribute input files to sources.

    Positional when the ruleset declares one source per file, otherwise each
    file's name without extension.
    """
    if len(ruleset.sources) == len(input_files):
        sources = tuple(ruleset.sources)
    else:
        sources = tuple(Path(path).stem for path in input_files)
    if not sources:
        raise ValueError("ruleset must define at least one source")
    return sources


def build_normalization_settings(engine_input: EngineInput) -> NormalizationSettings:
    return NormalizationSettings(
        rounding_mode=engine_input.rounding_mode,
        zone=resolve_timezone(engine_input.timezone),
        default_currency=engine_input.currency,
    )
