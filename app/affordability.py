"""
Affordability Calculator
========================
Budget and investment arithmetic behind the calculator endpoints:

- ``max_rent`` / ``max_purchase`` turn a monthly income into a rent
  ceiling or a purchase price, using the 30% housing-share rule and a
  13% mortgage amortised monthly.
- ``investment_metrics`` computes yield, NOI and cap rate for a
  buy-to-let.
- ``classify_summaries`` splits the latest location summaries into
  affordable and stretch locations for a budget.
"""

import math
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from app.records import LocationSummary
from ml.config import HOUSING_INCOME_SHARE, MORTGAGE_ANNUAL_RATE, STRETCH_FACTOR

BUY = "buy"
RENT = "rent"


def max_rent(monthly_income: float) -> float:
    return monthly_income * HOUSING_INCOME_SHARE


def max_purchase(monthly_income: float, down_payment_pct: float, tenure_years: float) -> float:
    """
    Highest price whose mortgage fits the housing share of income.

    The affordable monthly payment is discounted over the tenure
    (present value of an annuity), then grossed up by the deposit.
    """
    if not 0 <= down_payment_pct < 100:
        raise ValueError("down_payment_pct must be in [0, 100)")
    if tenure_years <= 0:
        raise ValueError("tenure_years must be positive")

    rate = MORTGAGE_ANNUAL_RATE / 12
    n = tenure_years * 12
    payment = monthly_income * HOUSING_INCOME_SHARE
    loan = payment * ((1 - (1 + rate) ** -n) / rate)
    return loan / (1 - down_payment_pct / 100)


@dataclass(frozen=True)
class InvestmentMetrics:
    annual_gross_rent: float
    gross_yield: float
    effective_gross_income: float
    net_operating_income: float
    cap_rate: float

    def to_dict(self) -> dict:
        return asdict(self)


def investment_metrics(
    purchase_price: float,
    monthly_rent: float,
    vacancy_rate_pct: float = 5.0,
    operating_expense_pct: float = 15.0,
) -> InvestmentMetrics:
    """Yields are percentages of the purchase price; 0 when the price is 0."""
    annual = monthly_rent * 12
    egi = annual * (1 - vacancy_rate_pct / 100)
    noi = egi * (1 - operating_expense_pct / 100)
    return InvestmentMetrics(
        annual_gross_rent=annual,
        gross_yield=annual / purchase_price * 100 if purchase_price > 0 else 0.0,
        effective_gross_income=egi,
        net_operating_income=noi,
        cap_rate=noi / purchase_price * 100 if purchase_price > 0 else 0.0,
    )


def summary_price(row: LocationSummary, mode: str, bedrooms: float) -> Optional[float]:
    """Rent mode compares the median rent; buy mode scales price per bedroom."""
    if mode == RENT:
        return row.median_price
    if row.avg_price_per_bedroom is None:
        return None
    return row.avg_price_per_bedroom * bedrooms


def classify_summaries(
    rows: Iterable[LocationSummary],
    mode: str,
    budget: float,
    bedrooms: float = 2,
) -> tuple[list[LocationSummary], list[LocationSummary]]:
    """
    Split rows into (affordable, stretch).

    Rows without a price for ``mode`` are in neither list.
    """
    affordable, stretch = [], []
    for row in rows:
        price = summary_price(row, mode, bedrooms)
        if price is None:
            continue
        if price <= budget:
            affordable.append(row)
        elif price <= budget * STRETCH_FACTOR:
            stretch.append(row)
    return affordable, stretch


def budget_ratio(affordable: int, total: int) -> int:
    """Percentage of locations within budget, rounded half-up."""
    if total <= 0:
        return 0
    return math.floor(affordable / total * 100 + 0.5)
