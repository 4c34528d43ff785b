#Docstring for recon_engine/config module
"""
config.py

Central configuration for the multi-source reconciliation engine.

This module defines the versions, supported option values, defaults, evidence
layout and configuration dataclasses used across the project.

It is intentionally the single source of truth for:
- Tool and schema versions stamped into every manifest and engine output
- Supported rounding modes, input formats and execution modes
- Ruleset defaults (currency/timestamp/account field names)
- Evidence bundle layout (relative paths of every emitted artifact)
- Warning message templates for recoverable record-level problems

Design goals
------------
- Consistency: every module relies on the same names, paths and defaults.
- Determinism: anything that ends up in an artifact (paths, timestamps,
  versions) is a constant here, never derived from the environment.
- Immutability: configuration objects are frozen dataclasses; optional values
  are resolved once by `core.validators` before the pipeline runs.

Contents
--------
1) Paths and project defaults
2) Versions and supported options
3) Evidence layout
4) Configuration dataclasses
   - Ruleset, FieldMapping, DeterminismConfig, EngineInput,
     NormalizationSettings

Usage
-----
    from recon_engine.config import Ruleset, ROUNDING_MODES, EVIDENCE_DIR_NAME
"""


from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path, PurePosixPath



# --- Base paths ----------------------------------------------------------------

# recon_engine/ -> project root
BASE_DIR = Path(__file__).resolve().parents[1]

DATA_DIR = BASE_DIR / "data"
SAMPLE_DIR = DATA_DIR / "sample"



# --- Versions and supported options -------------------------------------------

TOOL_VERSION = "0.1.0"
SCHEMA_VERSION = "1.0.0"

ROUNDING_HALF_UP = "half_up"
ROUNDING_BANKERS = "bankers"
ROUNDING_MODES = (ROUNDING_HALF_UP, ROUNDING_BANKERS)

INPUT_FORMAT_AUTO = "auto"
INPUT_FORMAT_CSV = "csv"
INPUT_FORMAT_JSON = "json"
INPUT_FORMATS = (INPUT_FORMAT_AUTO, INPUT_FORMAT_CSV, INPUT_FORMAT_JSON)

# Extension -> concrete format used when input_format is "auto".
# Anything not listed falls back to CSV.
FORMAT_BY_EXTENSION = {
    ".csv": INPUT_FORMAT_CSV,
    ".json": INPUT_FORMAT_JSON,
}

EXECUTION_MODES = ("local", "ci")

DEFAULT_ROUNDING_MODE = ROUNDING_BANKERS
DEFAULT_TIMEZONE = "UTC"
DEFAULT_INPUT_FORMAT = INPUT_FORMAT_AUTO
DEFAULT_EXECUTION_MODE = "local"
DEFAULT_SORT_KEYS = ("key", "source")

DEFAULT_CURRENCY_FIELD = "currency"
DEFAULT_TIMESTAMP_FIELD = "timestamp"
DEFAULT_ACCOUNT_FIELD = "account"

# Canonical names written by the field mapper regardless of the ruleset
ID_FIELD = "id"
ACCOUNT_FIELD = "account"

# Minor units per major unit (2 decimal places)
MINOR_UNITS_PER_MAJOR = 100



# --- Variance types -------------------------------------------------------------

VARIANCE_MISSING_RECORD = "missing_record"
VARIANCE_AMOUNT_MISMATCH = "amount_mismatch"
VARIANCE_TYPES = (VARIANCE_MISSING_RECORD, VARIANCE_AMOUNT_MISMATCH)



# --- Warning templates ----------------------------------------------------------

WARNING_MISSING_KEY_FIELD = "missing key field {field}"
WARNING_MISSING_AMOUNT = "missing amount"
WARNING_INVALID_AMOUNT = "invalid amount: {value}"
WARNING_UNPARSED_TIMESTAMP = "unparsed timestamp: {value}"



# --- Evidence layout ------------------------------------------------------------

# Relative paths are POSIX so manifests are identical on every platform.
EVIDENCE_DIR_NAME = "evidence"
NORMALIZED_RECORDS_PATH = PurePosixPath(EVIDENCE_DIR_NAME, "normalized.jsonl")
VARIANCE_ITEMS_PATH = PurePosixPath(EVIDENCE_DIR_NAME, "variances.jsonl")
ENGINE_LOG_PATH = PurePosixPath(EVIDENCE_DIR_NAME, "logs", "engine.log")
MANIFEST_PATH = PurePosixPath(EVIDENCE_DIR_NAME, "manifest.json")
ENGINE_OUTPUT_FILENAME = "engine_output.json"

# Files covered by the manifest (the manifest itself is not)
MANIFEST_ARTIFACTS = (
    NORMALIZED_RECORDS_PATH,
    VARIANCE_ITEMS_PATH,
    ENGINE_LOG_PATH,
)

# Fixed so that the manifest bytes are reproducible across runs.
MANIFEST_GENERATED_AT = "1970-01-01T00:00:00Z"

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

DETERMINISTIC_STATEMENT_TEMPLATE = (
    "Outputs are deterministic for identical inputs when using sort keys "
    "{sort_keys}, rounding mode {rounding}, and timezone {timezone}. The engine "
    "surfaces discrepancies based on the normalized inputs; evidence hashes "
    "cover emitted files."
)



# --- Configuration dataclasses --------------------------------------------------

@dataclass(frozen=True)
class Ruleset:

    """

    Declares which fields identify a matching record and where the amount,
    currency, timestamp and account live in a (mapped) record.

    sources:
        Ordered source identifiers. When it has one entry per input file the
        files are attributed positionally; otherwise file names are used.
    key_fields:
        Ordered canonical field names joined into the matching key. Never empty.
    amount_field:
        Canonical name of the decimal amount field. Never empty.

    """

    key_fields: tuple[str, ...]
    amount_field: str
    sources: tuple[str, ...] = ()
    currency_field: str = DEFAULT_CURRENCY_FIELD
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD
    account_field: str = DEFAULT_ACCOUNT_FIELD
    schema_version: str = ""


@dataclass(frozen=True)
class FieldMapping:

    """

    Raw field names, for one source, of the logical fields the engine reads.

    An empty string means "not mapped": the canonical field keeps whatever the
    raw record already holds under that name.

    """

    id: str = ""
    amount: str = ""
    currency: str = ""
    timestamp: str = ""
    account: str = ""

    @classmethod
    def identity(cls, ruleset: Ruleset) -> "FieldMapping":
        """Mapping used for sources without an explicit entry."""
        return cls(
            id=ID_FIELD,
            amount=ruleset.amount_field,
            currency=ruleset.currency_field,
            timestamp=ruleset.timestamp_field,
            account=ruleset.account_field,
        )


@dataclass(frozen=True)
class DeterminismConfig:
    """Only used to compose the human-readable determinism statement."""

    sort_keys: tuple[str, ...] = DEFAULT_SORT_KEYS
    rounding: str = DEFAULT_ROUNDING_MODE
    timezone: str = DEFAULT_TIMEZONE


@dataclass(frozen=True)
class EngineInput:

    """

    Validated engine-input document.

    All paths are absolute (resolved against the engine-input file's directory
    by `load_data.load_engine_input`) and all optional values are resolved.

    """

    input_files: tuple[Path, ...]
    ruleset_path: Path
    output_dir: Path
    input_format: str = DEFAULT_INPUT_FORMAT
    mapping_config_path: Path | None = None
    currency: str | None = None
    rounding_mode: str = DEFAULT_ROUNDING_MODE
    timezone: str = DEFAULT_TIMEZONE
    mode: str = DEFAULT_EXECUTION_MODE
    determinism: DeterminismConfig = field(default_factory=DeterminismConfig)


@dataclass(frozen=True)
class NormalizationSettings:
    """Per-run knobs shared by every per-record normalization call."""

    rounding_mode: str
    zone: tzinfo
    default_currency: str | None = None
