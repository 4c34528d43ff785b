"""
generate_sample_data.py

Seeded generator for a synthetic two-source reconciliation run.

This script writes a ledger export (CSV), a bank export (JSON), a ruleset, a
mapping config and an engine-input document into one directory, so that

    python -m recon_engine run --input <dir>/engine_input.json

works out of the box. Raw headers differ between the two sources and are
reconciled through mapping.json. The outputs are deterministic given a seed
and plant one case for every engine branch: a record missing on each side, an
amount mismatch, a split (partial) bank posting, a ledger row without a
reference (skipped) and a bank row with an unparseable timestamp.
"""

from __future__ import annotations

import argparse
import json
import random
from datetime import date, timedelta
from pathlib import Path

import pandas as pd
from faker import Faker

from ..config import SAMPLE_DIR


DEFAULT_SEED = 20260119
DEFAULT_RECORD_COUNT = 40

LEDGER_HEADERS = ["reference", "txn_ref", "posted_at", "amount", "ccy", "account_name"]

RULESET = {
    "schema_version": "1.0.0",
    "sources": ["ledger", "bank"],
    "key_fields": ["reference"],
    "amount_field": "amount",
    "currency_field": "currency",
    "timestamp_field": "timestamp",
    "account_field": "account",
}

MAPPING = {
    "sources": {
        "ledger": {
            "id": "txn_ref",
            "amount": "amount",
            "currency": "ccy",
            "timestamp": "posted_at",
            "account": "account_name",
        },
        "bank": {
            "id": "bank_txn_id",
            "amount": "value",
            "currency": "currency",
            "timestamp": "booked",
            "account": "iban",
        },
    }
}


def _format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, minor = divmod(abs(cents), 100)
    return f"{sign}{whole}.{minor:02d}"


def _build_base_transactions(rng: random.Random, faker: Faker, count: int) -> list[dict[str, object]]:
    base: list[dict[str, object]] = []
    used_refs: set[str] = set()
    for _ in range(count):
        reference = f"INV-{rng.randint(10000, 99999)}"
        while reference in used_refs:
            reference = f"INV-{rng.randint(10000, 99999)}"
        used_refs.add(reference)

        posted = faker.date_between_dates(date_start=date(2026, 1, 1), date_end=date(2026, 3, 31))
        base.append(
            {
                "reference": reference,
                "cents": rng.randint(1_000, 2_500_000),
                "posted": posted,
                "booked": posted + timedelta(days=rng.randint(0, 3)),
                "account_name": faker.company(),
                "iban": faker.iban(),
            }
        )
    return base


def _build_ledger_rows(base: list[dict[str, object]], rng: random.Random) -> list[dict[str, str]]:
    rows = []
    for index, txn in enumerate(base):
        rows.append(
            {
                "reference": str(txn["reference"]),
                "txn_ref": f"GL-{index + 1:05d}",
                "posted_at": f"{txn['posted']} {rng.randint(8, 17):02d}:{rng.randint(0, 59):02d}:00",
                "amount": _format_cents(int(txn["cents"])),
                "ccy": "USD",
                "account_name": str(txn["account_name"]),
            }
        )
    # No reference: the engine skips this row with a warning
    rows.append(
        {
            "reference": "",
            "txn_ref": f"GL-{len(base) + 1:05d}",
            "posted_at": "2026-02-02 09:00:00",
            "amount": "19.99",
            "ccy": "USD",
            "account_name": "Unreferenced Adjustment",
        }
    )
    return rows


def _build_bank_rows(base: list[dict[str, object]], rng: random.Random) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []

    def _row(txn: dict[str, object], cents: int, booked: str) -> dict[str, object]:
        return {
            "reference": txn["reference"],
            "bank_txn_id": f"BK-{len(rows) + 1:05d}",
            "value": _format_cents(cents),
            "currency": "USD",
            "booked": booked,
            "iban": txn["iban"],
        }

    # base[0]: ledger only; base[1]: amount mismatch; base[2]: split posting;
    # base[3]: unparseable timestamp. Everything else matches exactly.
    for index, txn in enumerate(base[1:], start=1):
        cents = int(txn["cents"])
        booked = f"{txn['booked']}T12:00:00Z"
        if index == 1:
            rows.append(_row(txn, cents + rng.randint(1, 500), booked))
        elif index == 2:
            first = cents // 3
            rows.append(_row(txn, first, booked))
            rows.append(_row(txn, cents - first, booked))
        elif index == 3:
            booked_date = txn["booked"]
            rows.append(_row(txn, cents, f"{booked_date:%d/%m/%Y}"))
        else:
            rows.append(_row(txn, cents, booked))

    bank_only = {"reference": "INV-00000", "iban": base[0]["iban"]}
    rows.append(_row(bank_only, 4_200, "2026-03-31T23:59:59Z"))
    return rows


def _validate_sample_cases(base: list[dict[str, object]]) -> None:
    if len(base) < 5:
        raise ValueError(f"Need at least 5 base transactions to plant every case; got {len(base)}.")
    if any(txn["reference"] == "INV-00000" for txn in base):
        raise ValueError("Bank-only reference INV-00000 collides with a generated reference.")


def _write_csv(path: Path, rows: list[dict[str, str]], headers: list[str]) -> None:
    df = pd.DataFrame(rows, columns=headers)
    df.to_csv(path, index=False, lineterminator="\n", encoding="utf-8")


def _write_json(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def generate_sample_data(
    output_dir: Path = SAMPLE_DIR,
    seed: int = DEFAULT_SEED,
    count: int = DEFAULT_RECORD_COUNT,
) -> dict[str, Path]:
    rng = random.Random(seed)
    faker = Faker()
    faker.seed_instance(seed)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    base = _build_base_transactions(rng, faker, count)
    _validate_sample_cases(base)
    ledger_rows = _build_ledger_rows(base, rng)
    bank_rows = _build_bank_rows(base, rng)

    outputs = {
        "ledger": output_dir / "ledger.csv",
        "bank": output_dir / "bank.json",
        "ruleset": output_dir / "ruleset.json",
        "mapping": output_dir / "mapping.json",
        "engine_input": output_dir / "engine_input.json",
    }

    _write_csv(outputs["ledger"], ledger_rows, LEDGER_HEADERS)
    _write_json(outputs["bank"], {"records": bank_rows})
    _write_json(outputs["ruleset"], RULESET)
    _write_json(outputs["mapping"], MAPPING)
    _write_json(
        outputs["engine_input"],
        {
            "input_files": [outputs["ledger"].name, outputs["bank"].name],
            "input_format": "auto",
            "ruleset_path": outputs["ruleset"].name,
            "mapping_config_path": outputs["mapping"].name,
            "currency": "USD",
            "rounding_mode": "bankers",
            "timezone": "UTC",
            "output_dir": "output",
            "mode": "local",
            "determinism": {
                "sort_keys": ["key", "source", "amount_minor_units", "id"],
                "rounding": "bankers",
                "timezone": "UTC",
            },
        },
    )
    return outputs


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a seeded synthetic ledger/bank reconciliation run."
    )
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Deterministic RNG seed")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=SAMPLE_DIR,
        help="Destination directory for sample inputs",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    outputs = generate_sample_data(output_dir=args.output_dir, seed=args.seed)
    for label, path in outputs.items():
        print(f"Wrote {label} sample to: {path}")


if __name__ == "__main__":
    main()
