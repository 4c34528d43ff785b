# Docstring for recon_engine/core/models module
"""
models.py

Immutable result types produced by the reconciliation pipeline.

Every object here is built once and never mutated. `to_dict()` returns the
exact JSON shape written to the evidence bundle, with keys in a fixed order,
so serialisation stays byte-stable.

Public API
----------
- NormalizedRecord
- SourceAmount, VarianceItem, VarianceSummary
- NormalizationResult
- ManifestFile, EvidenceManifest
- EngineOutput
- VerificationResult
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ..config import VARIANCE_MISSING_RECORD, VARIANCE_TYPES


@dataclass(frozen=True)
class NormalizedRecord:
    source: str
    key: str
    id: str
    account: str
    amount_minor_units: int
    currency: str
    timestamp: str = ""

    def sort_key(self) -> tuple[str, str, int, str]:
        """Total order used for the normalized evidence file."""
        return (self.key, self.source, self.amount_minor_units, self.id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SourceAmount:
    source: str
    amount_minor_units: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VarianceItem:

    """

    One discrepancy for a matching key.

    missing_sources is only meaningful for missing_record items and is left
    out of the serialised form of amount_mismatch items.

    """

    key: str
    type: str
    currency: str
    amounts_by_source: tuple[SourceAmount, ...] = ()
    missing_sources: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "type": self.type,
            "currency": self.currency,
            "amounts_by_source": [amount.to_dict() for amount in self.amounts_by_source],
        }
        if self.type == VARIANCE_MISSING_RECORD:
            data["missing_sources"] = list(self.missing_sources)
        return data


@dataclass(frozen=True)
class VarianceSummary:
    total: int
    counts_by_type: dict[str, int]

    @classmethod
    def from_items(cls, items: list[VarianceItem] | tuple[VarianceItem, ...]) -> "VarianceSummary":
        """Count items per type; every known type is present, even at zero."""
        counts = {variance_type: 0 for variance_type in VARIANCE_TYPES}
        for item in items:
            counts[item.type] += 1
        return cls(total=sum(counts.values()), counts_by_type=counts)

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "counts_by_type": dict(self.counts_by_type)}


@dataclass(frozen=True)
class NormalizationResult:
    """Records plus the diagnostics collected while building them."""

    records: tuple[NormalizedRecord, ...] = ()
    warnings: tuple[str, ...] = ()
    records_processed: int = 0
    records_skipped: int = 0

    def merge(self, other: "NormalizationResult") -> "NormalizationResult":
        return NormalizationResult(
            records=self.records + other.records,
            warnings=self.warnings + other.warnings,
            records_processed=self.records_processed + other.records_processed,
            records_skipped=self.records_skipped + other.records_skipped,
        )

    def summary_dict(self) -> dict[str, Any]:
        return {
            "records_processed": self.records_processed,
            "records_skipped": self.records_skipped,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ManifestFile:
    path: str
    sha256: str
    bytes: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EvidenceManifest:
    generated_at: str
    tool_version: str
    schema_version: str
    files: tuple[ManifestFile, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "tool_version": self.tool_version,
            "schema_version": self.schema_version,
            "files": [entry.to_dict() for entry in self.files],
        }


@dataclass(frozen=True)
class EngineOutput:
    schema_version: str
    tool_version: str
    normalization: NormalizationResult
    variance_summary: VarianceSummary
    normalized_records_path: str
    variance_items_path: str
    log_path: str
    manifest_path: str
    evidence_manifest: EvidenceManifest
    deterministic_statement: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "tool_version": self.tool_version,
            "normalization_summary": self.normalization.summary_dict(),
            "variance_summary": self.variance_summary.to_dict(),
            "normalized_records_path": self.normalized_records_path,
            "variance_items_path": self.variance_items_path,
            "log_path": self.log_path,
            "manifest_path": self.manifest_path,
            "evidence_manifest": self.evidence_manifest.to_dict(),
            "deterministic_statement": self.deterministic_statement,
        }


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    errors: list[str] = field(default_factory=list)
