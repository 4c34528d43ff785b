# Docstring for recon_engine/engines/normalize_sources module
"""
normalize_sources.py

Normalization engine: raw text records from one source -> NormalizedRecords.

For every raw record this engine runs the per-record pipeline

    map_record -> build_key -> normalize_amount -> normalize_timestamp

and collects recoverable problems as warnings instead of raising:

- a blank key field skips the record (counted in records_skipped)
- a missing or non-numeric amount becomes 0
- an unparseable timestamp is kept verbatim

Amount and timestamp warnings are prefixed with the source id; a missing key
field warning is reported bare, as build_key returns it. Warnings keep input
order: file order, then record order.

Public API
----------
- normalize_source_records(records, source, ruleset, mappings, settings) -> NormalizationResult
- sort_normalized_records(records) -> tuple[NormalizedRecord, ...]
"""

from __future__ import annotations

from typing import Iterable, Mapping

from ..config import ACCOUNT_FIELD, ID_FIELD, FieldMapping, NormalizationSettings, Ruleset
from ..core.models import NormalizationResult, NormalizedRecord
from ..core.normalizers import build_key, map_record, normalize_amount, normalize_timestamp


def normalize_source_records(
    records: Iterable[Mapping[str, str]],
    source: str,
    ruleset: Ruleset,
    mappings: Mapping[str, FieldMapping],
    settings: NormalizationSettings,
) -> NormalizationResult:
    """Normalize every raw record of one source."""
    normalized: list[NormalizedRecord] = []
    warnings: list[str] = []
    skipped = 0

    for record in records:
        mapped = map_record(record, source, ruleset, mappings)

        key, key_warning = build_key(mapped, ruleset.key_fields)
        if key_warning:
            warnings.append(key_warning)
        if key is None:
            skipped += 1
            continue

        amount, amount_warning = normalize_amount(mapped.get(ruleset.amount_field, ""), settings.rounding_mode)
        if amount_warning:
            warnings.append(f"{source}: {amount_warning}")

        currency = mapped.get(ruleset.currency_field, "")
        if not currency and settings.default_currency:
            currency = settings.default_currency

        timestamp, timestamp_warning = normalize_timestamp(mapped.get(ruleset.timestamp_field, ""), settings.zone)
        if timestamp_warning:
            warnings.append(f"{source}: {timestamp_warning}")

        normalized.append(
            NormalizedRecord(
                source=source,
                key=key,
                id=mapped.get(ID_FIELD, ""),
                account=mapped.get(ACCOUNT_FIELD, ""),
                amount_minor_units=amount,
                currency=currency,
                timestamp=timestamp,
            )
        )

    return NormalizationResult(
        records=tuple(normalized),
        warnings=tuple(warnings),
        records_processed=len(normalized),
        records_skipped=skipped,
    )


def sort_normalized_records(records: Iterable[NormalizedRecord]) -> tuple[NormalizedRecord, ...]:
    """Total order of the evidence file: key, source, amount, id."""
    return tuple(sorted(records, key=NormalizedRecord.sort_key))
