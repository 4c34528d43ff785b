from pathlib import Path

import pytest

from recon_engine.config import FieldMapping, Ruleset
from recon_engine.core.validators import (
    build_normalization_settings,
    normalize_mapping_config,
    resolve_sources,
    validate_engine_input,
    validate_ruleset,
)


BASE_DIR = Path("/runs/demo")


def _engine_doc(**overrides) -> dict:
    doc = {
        "input_files": ["ledger.csv", "bank.json"],
        "ruleset_path": "ruleset.json",
        "output_dir": "out",
    }
    doc.update(overrides)
    return doc


def test_validate_ruleset_applies_field_defaults() -> None:
    ruleset = validate_ruleset({"key_fields": ["reference"], "amount_field": "amount"})

    assert ruleset.key_fields == ("reference",)
    assert ruleset.sources == ()
    assert ruleset.currency_field == "currency"
    assert ruleset.timestamp_field == "timestamp"
    assert ruleset.account_field == "account"


def test_validate_ruleset_requires_key_fields_and_amount_field() -> None:
    with pytest.raises(ValueError, match="key_fields must not be empty"):
        validate_ruleset({"key_fields": [], "amount_field": "amount"})
    with pytest.raises(ValueError, match="amount_field is required"):
        validate_ruleset({"key_fields": ["reference"]})
    with pytest.raises(ValueError, match="must be a JSON object"):
        validate_ruleset(["reference"])


def test_normalize_mapping_config_accepts_wrapped_and_bare_objects() -> None:
    entry = {"id": "txn", "amount": "value", "extra": "ignored"}

    wrapped = normalize_mapping_config({"sources": {"bank": entry}})
    bare = normalize_mapping_config({"bank": entry})

    assert wrapped == bare == {"bank": FieldMapping(id="txn", amount="value")}
    assert normalize_mapping_config(None) == {}


def test_validate_engine_input_defaults_and_path_resolution() -> None:
    engine_input = validate_engine_input(_engine_doc(), BASE_DIR)

    assert engine_input.input_files == (BASE_DIR / "ledger.csv", BASE_DIR / "bank.json")
    assert engine_input.ruleset_path == BASE_DIR / "ruleset.json"
    assert engine_input.output_dir == BASE_DIR / "out"
    assert engine_input.mapping_config_path is None
    assert engine_input.currency is None
    assert engine_input.rounding_mode == "bankers"
    assert engine_input.timezone == "UTC"
    assert engine_input.input_format == "auto"
    assert engine_input.mode == "local"
    assert engine_input.determinism.sort_keys == ("key", "source")


def test_determinism_falls_back_to_run_settings() -> None:
    engine_input = validate_engine_input(
        _engine_doc(rounding_mode="half_up", timezone="Europe/Berlin", determinism={"sort_keys": ["key"]}),
        BASE_DIR,
    )

    assert engine_input.determinism.sort_keys == ("key",)
    assert engine_input.determinism.rounding == "half_up"
    assert engine_input.determinism.timezone == "Europe/Berlin"


def test_absolute_paths_are_kept(tmp_path: Path) -> None:
    engine_input = validate_engine_input(_engine_doc(output_dir=str(tmp_path)), BASE_DIR)

    assert engine_input.output_dir == tmp_path


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"input_files": []}, "input_files must not be empty"),
        ({"ruleset_path": ""}, "ruleset_path is required"),
        ({"output_dir": None}, "output_dir is required"),
        ({"rounding_mode": "truncate"}, "unsupported rounding_mode: truncate"),
        ({"input_format": "xml"}, "unsupported input_format: xml"),
        ({"mode": "prod"}, "unsupported mode: prod"),
    ],
)
def test_validate_engine_input_rejects_bad_documents(overrides: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        validate_engine_input(_engine_doc(**overrides), BASE_DIR)


def test_resolve_sources_positional_when_counts_match() -> None:
    ruleset = Ruleset(key_fields=("reference",), amount_field="amount", sources=("gl", "psp"))

    assert resolve_sources(ruleset, (Path("a.csv"), Path("b.json"))) == ("gl", "psp")


def test_resolve_sources_falls_back_to_file_stems() -> None:
    ruleset = Ruleset(key_fields=("reference",), amount_field="amount", sources=("gl",))

    assert resolve_sources(ruleset, (Path("dir/ledger.csv"), Path("bank.json"))) == ("ledger", "bank")


def test_resolve_sources_requires_at_least_one_source() -> None:
    ruleset = Ruleset(key_fields=("reference",), amount_field="amount")

    with pytest.raises(ValueError, match="at least one source"):
        resolve_sources(ruleset, ())


def test_build_normalization_settings_rejects_unknown_timezone() -> None:
    engine_input = validate_engine_input(_engine_doc(timezone="Nowhere/Land"), BASE_DIR)

    with pytest.raises(ValueError, match="invalid timezone"):
        build_normalization_settings(engine_input)
