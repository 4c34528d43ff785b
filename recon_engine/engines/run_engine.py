# Docstring for recon_engine/engines/run_engine module
"""
run_engine.py

End-to-end reconciliation run: inputs -> normalized records -> variances ->
evidence bundle -> engine output.

Run sequence
------------
1) Load the ruleset and mapping config, attribute input files to sources and
   resolve the target timezone. Any failure here aborts the run.
2) Create <output_dir>/evidence/logs and open the run log.
3) Load each input file (fatal on failure) and normalize its records
   (record-level problems become warnings).
4) Sort, write evidence/normalized.jsonl; detect variances, write
   evidence/variances.jsonl.
5) Close the run log, hash the three artifacts and write
   evidence/manifest.json.
6) Write engine_output.json and return the EngineOutput.

Artifacts (relative to output_dir)
----------------------------------
- evidence/normalized.jsonl
- evidence/variances.jsonl
- evidence/logs/engine.log
- evidence/manifest.json
- engine_output.json

The run is single-threaded and writes nothing outside output_dir. The log
carries no wall-clock timestamps or absolute paths, so two runs over the same
inputs produce the same log bytes as well.

Public API
----------
- run_engine(engine_input) -> EngineOutput
- run_engine_from_file(path) -> EngineOutput
- build_deterministic_statement(engine_input) -> str
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..config import (
    DETERMINISTIC_STATEMENT_TEMPLATE,
    ENGINE_LOG_PATH,
    ENGINE_OUTPUT_FILENAME,
    INPUT_FORMAT_AUTO,
    LOG_FORMAT,
    MANIFEST_ARTIFACTS,
    MANIFEST_PATH,
    NORMALIZED_RECORDS_PATH,
    SCHEMA_VERSION,
    TOOL_VERSION,
    VARIANCE_ITEMS_PATH,
    EngineInput,
    FieldMapping,
    NormalizationSettings,
    Ruleset,
)
from ..core.models import EngineOutput, NormalizationResult
from ..core.validators import build_normalization_settings, resolve_sources
from ..load_data import detect_format, load_engine_input, load_mapping_config, load_records, load_ruleset
from ..outputs.evidence import build_manifest, write_json_document, write_jsonl, write_manifest
from .normalize_sources import normalize_source_records, sort_normalized_records
from .variance_detection import detect_variances

logger = logging.getLogger(__name__)

_PACKAGE_LOGGER = "recon_engine"


def _absolute(output_dir: Path, rel) -> Path:
    return output_dir.joinpath(*rel.parts)


@contextmanager
def _run_log(path: Path) -> Iterator[None]:
    """Attach a file handler to the package logger for the duration of a run."""
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    previous_level = package_logger.level
    package_logger.setLevel(logging.INFO)
    package_logger.addHandler(handler)
    try:
        yield
    finally:
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
        handler.flush()
        if handler.stream is not None:
            os.fsync(handler.stream.fileno())
        handler.close()


def build_deterministic_statement(engine_input: EngineInput) -> str:
    determinism = engine_input.determinism
    return DETERMINISTIC_STATEMENT_TEMPLATE.format(
        sort_keys=", ".join(determinism.sort_keys),
        rounding=determinism.rounding,
        timezone=determinism.timezone,
    )


def _normalize_inputs(
    engine_input: EngineInput,
    sources: tuple[str, ...],
    ruleset: Ruleset,
    mappings: dict[str, FieldMapping],
    settings: NormalizationSettings,
) -> NormalizationResult:
    result = NormalizationResult()
    for path, source in zip(engine_input.input_files, sources):
        fmt = detect_format(path) if engine_input.input_format == INPUT_FORMAT_AUTO else engine_input.input_format
        raw_records = load_records(path, fmt)
        logger.info("source %s: loaded %d records from %s (%s)", source, len(raw_records), path.name, fmt)

        source_result = normalize_source_records(raw_records, source, ruleset, mappings, settings)
        for warning in source_result.warnings:
            logger.warning(warning)
        logger.info(
            "source %s: %d normalized, %d skipped",
            source,
            source_result.records_processed,
            source_result.records_skipped,
        )
        result = result.merge(source_result)
    return result


def run_engine(engine_input: EngineInput) -> EngineOutput:
    """
    Execute one reconciliation run and write the evidence bundle.

    Raises:
        ValueError: invalid ruleset/mapping/timezone or unparseable input file.
        OSError: unreadable input or unwritable output directory.
    """
    ruleset = load_ruleset(engine_input.ruleset_path)
    mappings = load_mapping_config(engine_input.mapping_config_path)
    sources = resolve_sources(ruleset, engine_input.input_files)
    settings = build_normalization_settings(engine_input)

    output_dir = Path(engine_input.output_dir)
    log_path = _absolute(output_dir, ENGINE_LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    # Only a completed run leaves a manifest and engine output behind
    for stale in (_absolute(output_dir, MANIFEST_PATH), output_dir / ENGINE_OUTPUT_FILENAME):
        stale.unlink(missing_ok=True)

    with _run_log(log_path):
        logger.info(
            "run started: mode=%s rounding=%s timezone=%s sources=%s",
            engine_input.mode,
            engine_input.rounding_mode,
            engine_input.timezone,
            ",".join(sources),
        )
        try:
            normalization = _normalize_inputs(engine_input, sources, ruleset, mappings, settings)

            records = sort_normalized_records(normalization.records)
            write_jsonl(_absolute(output_dir, NORMALIZED_RECORDS_PATH), records)

            items, variance_summary = detect_variances(records, sources)
            write_jsonl(_absolute(output_dir, VARIANCE_ITEMS_PATH), items)
        except (ValueError, OSError) as exc:
            logger.error("run failed: %s", exc)
            raise

        logger.info(
            "normalization: %d processed, %d skipped, %d warnings",
            normalization.records_processed,
            normalization.records_skipped,
            len(normalization.warnings),
        )
        logger.info(
            "variances: %d total (%s)",
            variance_summary.total,
            ", ".join(f"{name}={count}" for name, count in variance_summary.counts_by_type.items()),
        )
        logger.info("run completed")

    manifest = build_manifest(output_dir, MANIFEST_ARTIFACTS)
    write_manifest(output_dir, manifest)

    output = EngineOutput(
        schema_version=SCHEMA_VERSION,
        tool_version=TOOL_VERSION,
        normalization=normalization,
        variance_summary=variance_summary,
        normalized_records_path=NORMALIZED_RECORDS_PATH.as_posix(),
        variance_items_path=VARIANCE_ITEMS_PATH.as_posix(),
        log_path=ENGINE_LOG_PATH.as_posix(),
        manifest_path=MANIFEST_PATH.as_posix(),
        evidence_manifest=manifest,
        deterministic_statement=build_deterministic_statement(engine_input),
    )
    write_json_document(output_dir / ENGINE_OUTPUT_FILENAME, output)
    return output


def run_engine_from_file(path: str | Path) -> EngineOutput:
    """Load an engine-input document and run it."""
    return run_engine(load_engine_input(path))
