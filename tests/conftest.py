from datetime import date

import pandas as pd
import pytest

from portfolio_backtest.config import Allocation, DividendPolicy, PricePoint, SimulationRequest


def _points(dates, closes, adjusted=None, dividends=None, splits=None):
    adjusted = adjusted if adjusted is not None else closes
    dividends = dividends or {}
    splits = splits or {}
    return [
        PricePoint(d, float(c), float(a), dividends.get(d, 0.0), splits.get(d, 1.0))
        for d, c, a in zip(dates, closes, adjusted)
    ]


@pytest.fixture
def make_series():
    return _points


@pytest.fixture
def make_request():
    def _make(allocations=(("VTI", 100.0, 0.0),), **overrides):
        fields = dict(
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
            initial_amount=10_000.0,
            monthly_contribution=0.0,
            allocations=tuple(Allocation(*a) for a in allocations),
            monthly_salary=0.0,
            minimum_cash_reserve=0.0,
            dividend_policy=DividendPolicy.REINVEST_SAME_ASSET,
            benchmark_ticker="SPY",
            risk_free_rate=0.02,
        )
        fields.update(overrides)
        return SimulationRequest(**fields)
    return _make


@pytest.fixture
def business_days():
    def _days(start, end):
        return [ts.date() for ts in pd.bdate_range(start, end)]
    return _days


@pytest.fixture
def valid_payload():
    return {
        "startDate": "2024-01-02",
        "endDate": "2024-01-05",
        "initialAmount": 10000,
        "monthlySalary": 2500000,
        "monthlyContribution": 300,
        "minimumCashReserve": 500,
        "dividendPolicy": "reinvest_same_asset",
        "allocations": [
            {"ticker": "voo", "targetWeight": 60, "expenseRatio": 0.0003},
            {"ticker": "QQQ", "targetWeight": 40, "expenseRatio": 0.002},
        ],
        "benchmarkTicker": "spy",
        "riskFreeRate": 0.02,
    }


class FakeProvider:
    """In-memory PriceProvider that records every request."""

    def __init__(self, histories):
        self.histories = histories
        self.calls = []

    def get_history(self, ticker, start, end):
        self.calls.append((ticker, start, end))
        return [p for p in self.histories[ticker] if start <= p.date <= end]


@pytest.fixture
def fake_provider():
    return FakeProvider
