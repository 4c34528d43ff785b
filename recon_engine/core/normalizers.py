# Docstring for recon_engine/core/normalizers module
"""
normalizers.py

Per-record normalization helpers shared by the reconciliation engine.

Every function here is pure: it takes plain values, returns plain values and
never touches shared state. Functions that can hit a recoverable data problem
return a `(value, warning)` pair where `warning` is None on success, so the
caller decides how diagnostics are accumulated.

Design goals
------------
- Exactness: amounts are converted to integer minor units by digit-string
  arithmetic only. Binary floating point is never involved.
- Determinism: identical inputs always produce identical outputs; key
  construction is order-sensitive on the ruleset's key fields.
- Tolerance: malformed values never raise; they produce a warning and a safe
  fallback (zero amount, verbatim timestamp, no key).

Public API
----------
- stringify_value(value) -> str
- map_record(record, source, ruleset, mappings) -> dict[str, str]
- build_key(record, key_fields) -> tuple[str | None, str | None]
- normalize_amount(value, rounding_mode) -> tuple[int, str | None]
- resolve_timezone(name) -> tzinfo
- normalize_timestamp(value, zone) -> tuple[str, str | None]

Internal helpers
----------------
Underscore-prefixed helpers are intentionally not part of the public API.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import (
    ACCOUNT_FIELD,
    ID_FIELD,
    MINOR_UNITS_PER_MAJOR,
    ROUNDING_BANKERS,
    ROUNDING_HALF_UP,
    WARNING_INVALID_AMOUNT,
    WARNING_MISSING_AMOUNT,
    WARNING_MISSING_KEY_FIELD,
    WARNING_UNPARSED_TIMESTAMP,
    FieldMapping,
    Ruleset,
)

_DIGITS = re.compile(r"^[0-9]+$")
_LONE_SURROGATE = re.compile("[\ud800-\udfff]")

# '^...$' anchors the whole string; fractional seconds are accepted and dropped.
_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.\d+)?(Z|[+-]\d{2}:\d{2})$"
)
_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# --- Raw value stringification ---------------------------------------------------

def stringify_value(value: Any) -> str:
    """Render a decoded JSON value as the text the engine works with.

    Total over everything `json.loads` can produce:
        str   -> unchanged, except lone surrogates become U+FFFD
        bool  -> "true" / "false"
        None  -> ""
        int   -> decimal digits
        float -> shortest round-trip positional text ("1.5", "100", "0.00001")
        list / dict -> compact JSON text with sorted keys
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return _replace_surrogates(value)
    if isinstance(value, bool):        # before int: bool is an int subclass
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    return _replace_surrogates(json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False))


def _replace_surrogates(text: str) -> str:
    # json.loads keeps unpaired \uD800-\uDFFF escapes; they cannot be written as UTF-8
    return _LONE_SURROGATE.sub("\ufffd", text)


def _format_float(value: float) -> str:
    # repr() is the shortest round-trip text; Decimal drops the exponent form.
    text = format(Decimal(repr(value)).normalize(), "f")
    return "0" if text == "-0" else text


# --- Field mapping ---------------------------------------------------------------

def map_record(
    record: Mapping[str, str],
    source: str,
    ruleset: Ruleset,
    mappings: Mapping[str, FieldMapping],
) -> dict[str, str]:
    """
    Rewrite a raw record's field names into the ruleset's canonical names.

    The raw record is the base; each logical field with a non-empty mapped raw
    name overwrites its canonical slot with the raw value found under that
    name ("" when the raw field is absent). Sources without a mapping use the
    identity mapping built from the ruleset.
    """
    field_mapping = mappings.get(source) or FieldMapping.identity(ruleset)

    mapped = dict(record)
    targets = (
        (field_mapping.id, ID_FIELD),
        (field_mapping.amount, ruleset.amount_field),
        (field_mapping.currency, ruleset.currency_field),
        (field_mapping.timestamp, ruleset.timestamp_field),
        (field_mapping.account, ACCOUNT_FIELD),
    )
    for raw_name, canonical_name in targets:
        if raw_name:
            mapped[canonical_name] = record.get(raw_name, "")
    return mapped


# --- Matching key ----------------------------------------------------------------

def build_key(record: Mapping[str, str], key_fields: tuple[str, ...] | list[str]) -> tuple[str | None, str | None]:
    """Join trimmed key-field values as 'field=value' pairs separated by '|'.

    Returns (None, warning) as soon as one key field is blank.
    """
    parts: list[str] = []
    for field_name in key_fields:
        value = (record.get(field_name) or "").strip()
        if not value:
            return None, WARNING_MISSING_KEY_FIELD.format(field=field_name)
        parts.append(f"{field_name}={value}")
    key = "|".join(parts)
    if not key:
        return None, None
    return key, None


# --- Amounts ---------------------------------------------------------------------

def normalize_amount(value: str | None, rounding_mode: str) -> tuple[int, str | None]:
    """
    Convert a decimal string to signed integer minor units (2 places).

    Examples (bankers):
        '0.125'  -> 12     (5 with empty remainder, 12 is even)
        '0.135'  -> 14     (5 with empty remainder, 13 is odd)
        '0.1251' -> 13     (5 followed by a non-zero digit)
    Examples (half_up):
        '0.125'  -> 13
        '0.124'  -> 12

    Empty input -> (0, 'missing amount');
    non-numeric input -> (0, 'invalid amount: <value>').
    A missing whole part reads as 0, so '.', '-' and '.5' need no digits before the point.
    """
    if rounding_mode not in (ROUNDING_HALF_UP, ROUNDING_BANKERS):
        raise ValueError(f"unsupported rounding_mode: {rounding_mode}")

    text = (value or "").strip()
    if not text:
        return 0, WARNING_MISSING_AMOUNT

    negative = text.startswith("-")
    if text[:1] in ("-", "+"):
        text = text[1:]

    whole, _, fraction = text.partition(".")
    whole = whole or "0"
    if not _DIGITS.match(whole) or (fraction and not _DIGITS.match(fraction)):
        return 0, WARNING_INVALID_AMOUNT.format(value=value)

    padded = fraction.ljust(3, "0")
    cents = int(padded[:2])
    rounding_digit = int(padded[2])
    remainder = padded[3:]

    if _rounds_up(cents, rounding_digit, remainder, rounding_mode):
        cents += 1

    whole_value = int(whole)
    if cents >= MINOR_UNITS_PER_MAJOR:
        whole_value += cents // MINOR_UNITS_PER_MAJOR
        cents %= MINOR_UNITS_PER_MAJOR

    result = whole_value * MINOR_UNITS_PER_MAJOR + cents
    return (-result if negative else result), None


def _rounds_up(cents: int, rounding_digit: int, remainder: str, rounding_mode: str) -> bool:
    if rounding_mode == ROUNDING_HALF_UP:
        return rounding_digit >= 5

    # Round half to even
    if rounding_digit > 5:
        return True
    if rounding_digit < 5:
        return False
    if remainder.strip("0"):
        return True
    return cents % 2 == 1


# --- Timestamps ------------------------------------------------------------------

def resolve_timezone(name: str) -> tzinfo:
    """Look up an IANA zone name; raise ValueError for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"invalid timezone: {name}") from exc


def normalize_timestamp(value: str | None, zone: tzinfo) -> tuple[str, str | None]:
    """
    Re-render a timestamp as RFC 3339 in the target zone.

    Accepted, in priority order:
        1) RFC 3339 with offset ('2024-03-01T09:30:00Z', '...+02:00')
        2) 'YYYY-MM-DD HH:MM:SS' (interpreted in the target zone)
        3) 'YYYY-MM-DD'          (midnight in the target zone)

    Empty input stays empty with no warning. Anything else is returned
    verbatim with an 'unparsed timestamp' warning.
    """
    text = value or ""
    if not text:
        return "", None

    parsed = _parse_timestamp(text, zone)
    if parsed is None:
        return text, WARNING_UNPARSED_TIMESTAMP.format(value=text)
    # Through UTC so a wall time inside a DST gap lands on a real instant
    return _format_rfc3339(parsed.astimezone(timezone.utc).astimezone(zone)), None


def _parse_timestamp(text: str, zone: tzinfo) -> datetime | None:
    try:
        match = _RFC3339.match(text)
        if match:
            year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
            offset = _parse_offset(match.group(7))
            return datetime(year, month, day, hour, minute, second, tzinfo=offset)
        if _DATETIME.match(text):
            return datetime.strptime(text, "%Y-%m-%d %H:%M:%S").replace(tzinfo=zone)
        if _DATE.match(text):
            return datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=zone)
    except ValueError:
        # Well-formed but impossible values, e.g. month 13
        return None
    return None


def _parse_offset(token: str) -> tzinfo:
    if token == "Z":
        return timezone.utc
    sign = -1 if token[0] == "-" else 1
    hours, minutes = int(token[1:3]), int(token[4:6])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _format_rfc3339(moment: datetime) -> str:
    text = moment.isoformat(timespec="seconds")
    if moment.utcoffset() == timedelta(0):
        text = text[: -len("+00:00")] + "Z"
    return text
