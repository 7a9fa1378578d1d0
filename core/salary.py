"""
Salary normalisation. Everything is compared as an annual figure.
"""
from __future__ import annotations

PERIODS = ("per_hour", "per_day", "per_week", "per_month", "per_year")

# 8h x 5d x 52w
ANNUAL_FACTORS = {
    "per_hour": 2080,
    "per_day": 260,
    "per_week": 52,
    "per_month": 12,
    "per_year": 1,
}

RANGE_GUIDES = {
    "per_hour": {"min": 10, "max": 100, "typical": [15, 25, 35, 50]},
    "per_day": {"min": 80, "max": 800, "typical": [120, 200, 280, 400]},
    "per_week": {"min": 400, "max": 4000, "typical": [600, 1000, 1400, 2000]},
    "per_month": {"min": 1600, "max": 16000, "typical": [2400, 4000, 5600, 8000]},
    "per_year": {"min": 20000, "max": 200000, "typical": [30000, 50000, 70000, 100000]},
}


def convert_to_annual(amount: float, period: str) -> float:
    # Unknown periods pass through unchanged.
    return amount * ANNUAL_FACTORS.get(period, 1)


def convert_from_annual(annual_amount: float, period: str) -> float:
    factor = ANNUAL_FACTORS.get(period, 1)
    if factor == 1:
        return annual_amount
    return round(annual_amount / factor, 2)


def convert_salary(amount: float, from_period: str, to_period: str) -> float:
    if from_period == to_period:
        return amount
    return convert_from_annual(convert_to_annual(amount, from_period), to_period)


def salary_ranges_overlap(
    search_min: float,
    search_max: float,
    search_period: str,
    job_min: float,
    job_max: float,
    job_period: str,
) -> bool:
    return (
        convert_to_annual(search_min, search_period) <= convert_to_annual(job_max, job_period)
        and convert_to_annual(search_max, search_period) >= convert_to_annual(job_min, job_period)
    )


def _money(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_salary(min_salary, max_salary, period: str | None, currency: str = "£") -> str:
    """'£30,000 - £40,000 per year'; empty string when there is nothing to show."""
    if min_salary is None and max_salary is None:
        return ""
    label = (period or "per_year").replace("_", " ")
    if min_salary is None or max_salary is None or min_salary == max_salary:
        amount = min_salary if min_salary is not None else max_salary
        return f"{currency}{_money(amount)} {label}"
    return f"{currency}{_money(min_salary)} - {currency}{_money(max_salary)} {label}"


def salary_range_guide(period: str) -> dict:
    return RANGE_GUIDES.get(period, RANGE_GUIDES["per_year"])


def is_reasonable_salary(amount: float, period: str) -> bool:
    guide = salary_range_guide(period)
    return guide["min"] <= amount <= guide["max"]


__all__ = [
    "PERIODS",
    "ANNUAL_FACTORS",
    "convert_to_annual",
    "convert_from_annual",
    "convert_salary",
    "salary_ranges_overlap",
    "format_salary",
    "salary_range_guide",
    "is_reasonable_salary",
]
