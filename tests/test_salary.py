import pytest

from core.salary import (
    convert_from_annual,
    convert_salary,
    convert_to_annual,
    format_salary,
    is_reasonable_salary,
    salary_range_guide,
    salary_ranges_overlap,
)


@pytest.mark.parametrize(
    "amount,period,annual",
    [
        (15, "per_hour", 31200),
        (100, "per_day", 26000),
        (500, "per_week", 26000),
        (2500, "per_month", 30000),
        (30000, "per_year", 30000),
        (123, "per_fortnight", 123),  # unknown periods pass through
    ],
)
def test_convert_to_annual(amount, period, annual):
    assert convert_to_annual(amount, period) == annual


def test_convert_from_annual_rounds_to_pennies():
    assert convert_from_annual(31200, "per_hour") == 15
    assert convert_from_annual(10000, "per_month") == 833.33
    assert convert_from_annual(45000, "per_year") == 45000


def test_convert_salary_between_periods():
    assert convert_salary(20, "per_hour", "per_day") == 160
    assert convert_salary(40000, "per_year", "per_year") == 40000


def test_hourly_search_matches_annual_job():
    # £15-£20/h is £31,200-£41,600 a year
    assert salary_ranges_overlap(15, 20, "per_hour", 35000, 45000, "per_year") is True
    assert salary_ranges_overlap(15, 20, "per_hour", 50000, 60000, "per_year") is False


def test_touching_ranges_overlap():
    assert salary_ranges_overlap(30000, 40000, "per_year", 40000, 50000, "per_year") is True


def test_format_salary():
    assert format_salary(30000, 40000, "per_year") == "£30,000 - £40,000 per year"
    assert format_salary(15.5, None, "per_hour") == "£15.50 per hour"
    assert format_salary(None, None, "per_year") == ""


def test_reasonable_salary_uses_period_guide():
    assert salary_range_guide("per_hour")["min"] == 10
    assert salary_range_guide("bogus") == salary_range_guide("per_year")
    assert is_reasonable_salary(25, "per_hour") is True
    assert is_reasonable_salary(25, "per_year") is False
