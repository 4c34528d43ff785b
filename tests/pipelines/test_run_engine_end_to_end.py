from __future__ import annotations

import json
from pathlib import Path

import pytest

from recon_engine.engines.run_engine import run_engine, run_engine_from_file
from recon_engine.load_data import load_engine_input
from recon_engine.outputs.evidence import verify_manifest


LEDGER_CSV = (
    "reference,txn_ref,posted_at,amount,ccy\n"
    "INV-1,GL-1,2024-01-02 10:00:00,100.00,USD\n"
    "INV-2,GL-2,2024-01-03 10:00:00,50.125,USD\n"
    "INV-3,GL-3,2024-01-04 10:00:00,75.00,USD\n"
    ",GL-4,2024-01-05 10:00:00,1.00,USD\n"
)

BANK_RECORDS = {
    "records": [
        {"reference": "INV-1", "bank_id": "B-1", "value": 40, "booked": "2024-01-02T12:00:00Z"},
        {"reference": "INV-1", "bank_id": "B-2", "value": 60.0, "booked": "2024-01-02T12:00:00Z"},
        {"reference": "INV-2", "bank_id": "B-3", "value": "50.13", "booked": "03/01/2024"},
        {"reference": "INV-9", "bank_id": "B-4", "value": "9.99", "booked": "2024-01-09"},
    ]
}

RULESET = {
    "schema_version": "1.0.0",
    "sources": ["ledger", "bank"],
    "key_fields": ["reference"],
    "amount_field": "amount",
}

MAPPING = {
    "sources": {
        "ledger": {"id": "txn_ref", "amount": "amount", "currency": "ccy", "timestamp": "posted_at"},
        "bank": {"id": "bank_id", "amount": "value", "timestamp": "booked"},
    }
}


def _write_run(root: Path, **overrides) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "ledger.csv").write_text(LEDGER_CSV, encoding="utf-8")
    (root / "bank.json").write_text(json.dumps(BANK_RECORDS), encoding="utf-8")
    (root / "ruleset.json").write_text(json.dumps(RULESET), encoding="utf-8")
    (root / "mapping.json").write_text(json.dumps(MAPPING), encoding="utf-8")
    doc = {
        "input_files": ["ledger.csv", "bank.json"],
        "ruleset_path": "ruleset.json",
        "mapping_config_path": "mapping.json",
        "output_dir": "out",
        "currency": "USD",
        "rounding_mode": "bankers",
        "timezone": "UTC",
    }
    doc.update(overrides)
    engine_input = root / "engine_input.json"
    engine_input.write_text(json.dumps(doc), encoding="utf-8")
    return engine_input


def _read_jsonl(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_run_writes_evidence_bundle_and_engine_output(tmp_path: Path) -> None:
    output = run_engine_from_file(_write_run(tmp_path))
    out_dir = tmp_path / "out"

    assert output.normalization.records_processed == 7
    assert output.normalization.records_skipped == 1
    assert output.normalization.warnings == (
        "missing key field reference",
        "bank: unparsed timestamp: 03/01/2024",
    )

    variances = _read_jsonl(out_dir / "evidence" / "variances.jsonl")
    assert variances == [
        {
            "key": "reference=INV-2",
            "type": "amount_mismatch",
            "currency": "USD",
            "amounts_by_source": [
                {"source": "ledger", "amount_minor_units": 5012},
                {"source": "bank", "amount_minor_units": 5013},
            ],
        },
        {
            "key": "reference=INV-3",
            "type": "missing_record",
            "currency": "USD",
            "amounts_by_source": [{"source": "ledger", "amount_minor_units": 7500}],
            "missing_sources": ["bank"],
        },
        {
            "key": "reference=INV-9",
            "type": "missing_record",
            "currency": "USD",
            "amounts_by_source": [{"source": "bank", "amount_minor_units": 999}],
            "missing_sources": ["ledger"],
        },
    ]
    assert output.variance_summary.counts_by_type == {"missing_record": 2, "amount_mismatch": 1}

    normalized = _read_jsonl(out_dir / "evidence" / "normalized.jsonl")
    assert [(r["key"], r["source"], r["id"]) for r in normalized[:3]] == [
        ("reference=INV-1", "bank", "B-1"),
        ("reference=INV-1", "bank", "B-2"),
        ("reference=INV-1", "ledger", "GL-1"),
    ]
    assert normalized[2]["timestamp"] == "2024-01-02T10:00:00Z"
    assert normalized[0]["amount_minor_units"] == 4000

    engine_output = json.loads((out_dir / "engine_output.json").read_text(encoding="utf-8"))
    assert engine_output["normalized_records_path"] == "evidence/normalized.jsonl"
    assert engine_output["variance_items_path"] == "evidence/variances.jsonl"
    assert engine_output["log_path"] == "evidence/logs/engine.log"
    assert engine_output["manifest_path"] == "evidence/manifest.json"
    assert engine_output["variance_summary"]["total"] == 3
    assert "rounding mode bankers" in engine_output["deterministic_statement"]
    assert [entry["path"] for entry in engine_output["evidence_manifest"]["files"]] == [
        "evidence/logs/engine.log",
        "evidence/normalized.jsonl",
        "evidence/variances.jsonl",
    ]

    assert verify_manifest(out_dir).ok is True


def test_run_log_records_warnings_and_completion(tmp_path: Path) -> None:
    run_engine_from_file(_write_run(tmp_path))

    log_text = (tmp_path / "out" / "evidence" / "logs" / "engine.log").read_text(encoding="utf-8")

    assert "WARNING recon_engine.engines.run_engine: missing key field reference" in log_text
    assert "WARNING recon_engine.engines.run_engine: bank: unparsed timestamp: 03/01/2024" in log_text
    assert log_text.rstrip().endswith("run completed")
    assert str(tmp_path) not in log_text


def test_identical_inputs_produce_identical_bytes(tmp_path: Path) -> None:
    first = run_engine_from_file(_write_run(tmp_path / "a"))
    second = run_engine_from_file(_write_run(tmp_path / "b"))

    assert first.evidence_manifest == second.evidence_manifest
    for name in ("evidence/manifest.json", "engine_output.json"):
        assert (tmp_path / "a" / "out" / name).read_bytes() == (tmp_path / "b" / "out" / name).read_bytes()


def test_half_up_rounding_changes_the_outcome(tmp_path: Path) -> None:
    output = run_engine_from_file(_write_run(tmp_path, rounding_mode="half_up"))

    # 50.125 -> 5013 under half_up, matching the bank
    assert output.variance_summary.counts_by_type == {"missing_record": 2, "amount_mismatch": 0}


def test_file_stems_name_sources_when_ruleset_count_differs(tmp_path: Path) -> None:
    engine_input = _write_run(tmp_path)
    ruleset = dict(RULESET, sources=["ledger"])
    (tmp_path / "ruleset.json").write_text(json.dumps(ruleset), encoding="utf-8")

    output = run_engine(load_engine_input(engine_input))

    assert {record.source for record in output.normalization.records} == {"ledger", "bank"}


def test_missing_input_file_is_fatal(tmp_path: Path) -> None:
    engine_input = _write_run(tmp_path, input_files=["ledger.csv", "absent.json"])

    with pytest.raises(OSError):
        run_engine_from_file(engine_input)

    log_text = (tmp_path / "out" / "evidence" / "logs" / "engine.log").read_text(encoding="utf-8")
    assert "run failed" in log_text
    assert not (tmp_path / "out" / "evidence" / "manifest.json").exists()


def test_invalid_timezone_is_fatal_before_any_output(tmp_path: Path) -> None:
    engine_input = _write_run(tmp_path, timezone="Not/AZone")

    with pytest.raises(ValueError, match="invalid timezone"):
        run_engine_from_file(engine_input)

    assert not (tmp_path / "out").exists()


def test_unparseable_json_input_is_fatal(tmp_path: Path) -> None:
    engine_input = _write_run(tmp_path)
    (tmp_path / "bank.json").write_text("[{broken", encoding="utf-8")

    with pytest.raises(ValueError, match="parse input json"):
        run_engine_from_file(engine_input)


def test_lone_surrogate_in_a_record_does_not_abort_the_run(tmp_path: Path) -> None:
    engine_input = _write_run(tmp_path)
    (tmp_path / "bank.json").write_text(
        '{"records": [{"reference": "INV-1", "bank_id": "\\ud800", "value": "100.00"}]}',
        encoding="utf-8",
    )

    output = run_engine_from_file(engine_input)

    normalized = _read_jsonl(tmp_path / "out" / "evidence" / "normalized.jsonl")
    assert {"source": "bank", "id": "\ufffd"}.items() <= normalized[0].items()
    assert output.variance_summary.total == 2
    assert verify_manifest(tmp_path / "out").ok is True


def test_failed_rerun_leaves_no_stale_manifest(tmp_path: Path) -> None:
    engine_input = _write_run(tmp_path)
    run_engine_from_file(engine_input)
    (tmp_path / "bank.json").write_text("[{broken", encoding="utf-8")

    with pytest.raises(ValueError):
        run_engine_from_file(engine_input)

    assert not (tmp_path / "out" / "evidence" / "manifest.json").exists()
    assert not (tmp_path / "out" / "engine_output.json").exists()
