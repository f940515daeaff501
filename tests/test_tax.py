import warnings

import pytest

from taxtrack.tax import calculate_paye, calculate_paye_flat, calculate_vat, format_naira


def test_paye_band_boundary_at_600k():
    result = calculate_paye(1_000_000)
    assert result["total_reliefs"] == 400_000
    assert result["taxable_income"] == 600_000
    assert result["annual_tax"] == 54_000
    assert result["monthly_tax"] == 4_500


@pytest.mark.parametrize("gross, expected", [
    (0, 0),
    (250_000, 0),                # below the consolidated relief
    (625_000, 21_000),           # taxable 300,000
    (1_625_000, 129_000),        # taxable 1,100,000
    (2_250_000, 224_000),        # taxable 1,600,000
    (4_250_000, 560_000),        # taxable 3,200,000
    (4_375_000, 584_000),        # taxable 3,300,000, top band at 24%
])
def test_paye_cumulative_bands(gross, expected):
    assert calculate_paye(gross)["annual_tax"] == expected


def test_paye_reliefs_reduce_taxable_income():
    result = calculate_paye(1_000_000, {"pension": 80_000, "nhf": 25_000, "other": 5_000})
    assert result["total_reliefs"] == 510_000
    assert result["taxable_income"] == 490_000
    # 21,000 + 190,000 * 11%
    assert result["annual_tax"] == 41_900


def test_paye_garbage_inputs_coerce_to_zero():
    result = calculate_paye("abc", {"pension": "n/a", "nhf": None, "other": -500})
    assert result["gross_income"] == 0
    assert result["total_reliefs"] == 200_000
    assert result["annual_tax"] == 0
    assert calculate_paye(-1_000_000)["annual_tax"] == 0
    assert calculate_paye(1_000_000, None)["annual_tax"] == 54_000


def test_paye_is_monotonic_in_gross_income():
    previous = -1
    for gross in range(0, 12_000_000, 23_750):
        tax = calculate_paye(gross)["annual_tax"]
        assert tax >= previous
        previous = tax


def test_monthly_tax_rounds_unrounded_annual_over_twelve():
    # taxable 100,000 -> 7,000 a year, 583.33 a month
    result = calculate_paye(375_000)
    assert result["annual_tax"] == 7_000
    assert result["monthly_tax"] == 583


def test_flat_paye_is_deprecated():
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        tax = calculate_paye_flat(1_000_000)
    assert tax == 120_000.0
    assert any(issubclass(w.category, DeprecationWarning) for w in caught)


@pytest.mark.parametrize("amount, expected", [
    (0, 0.0),
    (100, 7.5),
    (1000, 75.0),
    (1234.56, 92.59),
    (5000.50, 375.04),
    (12000, 900.0),
    (19999.99, 1500.0),
])
def test_vat(amount, expected):
    assert calculate_vat(amount) == expected


def test_vat_rejects_garbage():
    assert calculate_vat("abc") == 0.0
    assert calculate_vat(-100) == 0.0
    assert calculate_vat("1,000") == 75.0


def test_format_naira():
    assert format_naira(1234.5) == "₦1,234.50"
    assert format_naira(0) == "₦0.00"
