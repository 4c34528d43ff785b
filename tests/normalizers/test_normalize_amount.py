import pytest

from recon_engine.core.normalizers import normalize_amount


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("0.125", 12),
        ("0.135", 14),
        ("0.1251", 13),
        ("0.124", 12),
        ("0.126", 13),
        ("1.005", 100),
        ("2.5", 250),
        ("10", 1000),
    ],
)
def test_bankers_rounding_to_minor_units(value: str, expected: int) -> None:
    assert normalize_amount(value, "bankers") == (expected, None)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("0.125", 13),
        ("0.124", 12),
        ("0.135", 14),
        ("1.005", 101),
        ("12.34", 1234),
    ],
)
def test_half_up_rounding_to_minor_units(value: str, expected: int) -> None:
    assert normalize_amount(value, "half_up") == (expected, None)


def test_rounding_carries_into_whole_units() -> None:
    assert normalize_amount("0.995", "half_up") == (100, None)
    assert normalize_amount("9.999", "bankers") == (1000, None)


def test_negative_amounts_round_on_magnitude() -> None:
    assert normalize_amount("-0.125", "half_up") == (-13, None)
    assert normalize_amount("-0.125", "bankers") == (-12, None)
    assert normalize_amount("-45.10", "bankers") == (-4510, None)


def test_leading_plus_and_bare_fraction_are_accepted() -> None:
    assert normalize_amount("+3.50", "bankers") == (350, None)
    assert normalize_amount(".75", "bankers") == (75, None)
    assert normalize_amount("  7.01  ", "half_up") == (701, None)


def test_large_amounts_stay_exact() -> None:
    # Beyond float precision: digit arithmetic only
    assert normalize_amount("123456789012345678.905", "bankers") == (12345678901234567890, None)


def test_missing_amount_is_zero_with_warning() -> None:
    assert normalize_amount("", "bankers") == (0, "missing amount")
    assert normalize_amount(None, "half_up") == (0, "missing amount")
    assert normalize_amount("   ", "half_up") == (0, "missing amount")


@pytest.mark.parametrize("value", ["abc", "1,000.00", "1.2.3", "12a", "1.2e3", "--1", "$5.00"])
def test_invalid_amount_is_zero_with_warning(value: str) -> None:
    assert normalize_amount(value, "bankers") == (0, f"invalid amount: {value}")


def test_unknown_rounding_mode_raises() -> None:
    with pytest.raises(ValueError, match="rounding_mode"):
        normalize_amount("1.00", "truncate")


@pytest.mark.parametrize("value", [".", "-", "+", "-."])
def test_missing_whole_part_reads_as_zero(value: str) -> None:
    assert normalize_amount(value, "bankers") == (0, None)
