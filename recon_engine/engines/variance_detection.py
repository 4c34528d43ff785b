# Docstring for recon_engine/engines/variance_detection module
"""
variance_detection.py

Cross-source variance detection for normalized records.

This engine groups normalized records by matching key and compares what each
declared source reported for that key.

Core logic
----------
1) Aggregation
   - Sum amount_minor_units per (key, source). Several records from the same
     source under one key accumulate (partial postings); they are not flagged
     as duplicates.

2) Classification, per key in ascending lexical order
   - missing_record: at least one declared source reported nothing for the
     key. The item lists the reporting sources' sums and the missing sources
     (sorted). Amounts are not compared for such keys.
   - amount_mismatch: every declared source reported, but the sums differ.
     The item lists every source's sum.
   - reconciled: every source reported the same sum. Nothing is emitted.

3) Currency
   - The first non-empty currency seen for the key, in normalized-record
     order (key, source, amount, id).

4) Output order
   - Items are sorted by (key, type). amounts_by_source follows the declared
     source order.

Only two mismatch dimensions exist (missing vs amount). Nothing is resolved
automatically and no currency conversion is attempted: amounts in different
currencies under one key are compared as plain integers.

Public API
----------
- build_source_totals(records) -> dict[str, dict[str, int]]
- detect_variances(records, sources) -> tuple[tuple[VarianceItem, ...], VarianceSummary]
"""

from __future__ import annotations

from typing import Iterable, Sequence

import pandas as pd

from ..config import VARIANCE_AMOUNT_MISMATCH, VARIANCE_MISSING_RECORD
from ..core.models import NormalizedRecord, SourceAmount, VarianceItem, VarianceSummary
from .normalize_sources import sort_normalized_records

_RECORD_COLUMNS = ["key", "source", "amount_minor_units", "currency"]


def _records_frame(records: Sequence[NormalizedRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [[record.key, record.source, record.amount_minor_units, record.currency] for record in records],
        columns=_RECORD_COLUMNS,
    )


def build_source_totals(records: Iterable[NormalizedRecord]) -> dict[str, dict[str, int]]:
    """Summed minor units per key, then per source."""
    df = _records_frame(list(records))
    totals: dict[str, dict[str, int]] = {}
    if df.empty:
        return totals

    # sort=False: ordering is applied explicitly by the caller
    sums = df.groupby(["key", "source"], sort=False)["amount_minor_units"].sum()
    for (key, source), amount in sums.items():
        totals.setdefault(key, {})[source] = int(amount)
    return totals


def _first_currency_by_key(records: Sequence[NormalizedRecord]) -> dict[str, str]:
    df = _records_frame(records)
    with_currency = df.loc[df["currency"].ne("")]
    # groupby().first() keeps the first row per key in frame order
    return with_currency.groupby("key", sort=False)["currency"].first().to_dict()


def detect_variances(
    records: Iterable[NormalizedRecord],
    sources: Sequence[str],
) -> tuple[tuple[VarianceItem, ...], VarianceSummary]:
    """Classify every key as missing_record, amount_mismatch or reconciled."""
    ordered = sort_normalized_records(records)
    totals = build_source_totals(ordered)
    currency_by_key = _first_currency_by_key(ordered) if ordered else {}

    items: list[VarianceItem] = []
    for key in sorted(totals):
        by_source = totals[key]
        currency = currency_by_key.get(key, "")

        amounts = tuple(
            SourceAmount(source=source, amount_minor_units=by_source[source])
            for source in sources
            if source in by_source
        )
        missing = sorted(source for source in sources if source not in by_source)

        if missing:
            items.append(
                VarianceItem(
                    key=key,
                    type=VARIANCE_MISSING_RECORD,
                    currency=currency,
                    amounts_by_source=amounts,
                    missing_sources=tuple(missing),
                )
            )
            continue

        if len({amount.amount_minor_units for amount in amounts}) > 1:
            items.append(
                VarianceItem(
                    key=key,
                    type=VARIANCE_AMOUNT_MISMATCH,
                    currency=currency,
                    amounts_by_source=amounts,
                )
            )

    items.sort(key=lambda item: (item.key, item.type))
    return tuple(items), VarianceSummary.from_items(items)
