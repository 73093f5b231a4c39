from datetime import date

import numpy as np
import pytest

from portfolio_backtest.analytics.metrics import annualized_volatility, cagr, max_drawdown, year_fraction
from portfolio_backtest.config import DividendPolicy, EngineSettings
from portfolio_backtest.engine.cashflows import desired_stock_budget
from portfolio_backtest.engine.simulator import HistoricalSimulator
from portfolio_backtest.engine.state import PortfolioState
from portfolio_backtest.errors import ConfigurationError, InsufficientDataError, MarketDataError

JAN = [date(2024, 1, 2), date(2024, 1, 3)]


def _wavy(n, base, drift, amp, period):
    i = np.arange(n)
    return (base + drift * i + amp * np.sin(i / period)).tolist()


@pytest.fixture
def market(make_series, business_days):
    days = business_days("2023-01-02", "2024-06-28")
    n = len(days)
    return days, {
        "VTI": make_series(days, _wavy(n, 100, 0.05, 4, 7)),
        "TLT": make_series(days, _wavy(n, 90, -0.02, 3, 11)),
        "GLD": make_series(days, _wavy(n, 170, 0.03, 6, 5)),
        "SPY": make_series(days, _wavy(n, 380, 0.2, 10, 9), adjusted=_wavy(n, 370, 0.21, 10, 9)),
    }


def test_timeline_covers_every_overlapping_day(market, make_request) -> None:
    days, histories = market
    histories = dict(histories)
    histories["GLD"] = histories["GLD"][5:]   # later listing trims the calendar
    req = make_request(
        allocations=(("VTI", 50, 0.0003), ("TLT", 30, 0.0015), ("GLD", 10, 0.004)),
        monthly_salary=1_200_000, monthly_contribution=50_000, minimum_cash_reserve=1_000,
    )

    result = HistoricalSimulator(req).run(histories)

    timeline = result.timeline
    assert len(timeline) == len(days) - 5
    assert timeline[0].date == days[5]
    assert all(a.date < b.date for a, b in zip(timeline, timeline[1:]))
    assert all(p.portfolio_value >= 0 for p in timeline)
    assert all(p.portfolio_value == pytest.approx(p.stock_value + p.cash_value) for p in timeline)
    assert len(result.drawdown) == len(timeline)
    assert [y.year for y in result.yearly_returns] == [2023, 2024]


def test_single_full_allocation_matches_asset_compounding(market, make_request) -> None:
    days, histories = market
    req = make_request(initial_amount=10_000)

    result = HistoricalSimulator(req).run(histories)

    closes = [p.adjusted_close for p in histories["VTI"]]
    years = year_fraction(days[0], days[-1])
    returns = [b / a - 1 for a, b in zip(closes, closes[1:])]
    m = result.portfolio_metrics
    assert m.growth_cagr == pytest.approx(cagr(closes[0], closes[-1], years), rel=1e-9)
    assert m.contribution_adjusted_cagr == pytest.approx(m.growth_cagr, rel=1e-9)
    assert m.cumulative_return == pytest.approx(closes[-1] / closes[0] - 1, rel=1e-9)
    assert m.annualized_volatility == pytest.approx(annualized_volatility(returns), rel=1e-9)
    assert m.max_drawdown == pytest.approx(max_drawdown(closes), rel=1e-9)
    assert result.cashflow_breakdown.ending_cash == pytest.approx(0.0, abs=1e-9)


def test_identical_runs_are_identical(market, make_request) -> None:
    _, histories = market
    req = make_request(
        allocations=(("VTI", 60, 0.001), ("TLT", 40, 0.002)),
        monthly_salary=1_500_000, monthly_contribution=200_000, minimum_cash_reserve=5_000,
        dividend_policy=DividendPolicy.TO_CASH,
    )
    first = HistoricalSimulator(req).run(histories).to_dict()
    second = HistoricalSimulator(req).run(histories).to_dict()
    assert first == second


def test_rebalanced_positions_stay_within_drift(market, make_request) -> None:
    _, histories = market
    req = make_request(
        allocations=(("VTI", 50, 0.0), ("TLT", 20, 0.0), ("GLD", 10, 0.0)),
        monthly_salary=1_100_000, monthly_contribution=20_000, minimum_cash_reserve=3_000,
    )
    seen = []

    class Recording(HistoricalSimulator):
        def _advance(self, index, day, state, schedule, tables):
            point = super()._advance(index, day, state, schedule, tables)
            if index > 0 and day in schedule.rebalance_days:
                seen.append((point, dict(state.holdings), {t: tables[t].close[day] for t in state.holdings}))
            return point

    sim = Recording(req)
    sim.run(histories)

    assert len(seen) >= 5
    tolerance = EngineSettings().drift_tolerance
    for point, holdings, closes in seen:
        pv = point.portfolio_value
        budget = desired_stock_budget(pv, sim.total_weight, req.minimum_cash_reserve)
        for a in sim.allocations:
            target = a.weight / sim.total_weight * budget
            assert abs(holdings[a.ticker] * closes[a.ticker] - target) <= tolerance * pv + 1e-9


def test_drift_triggers_full_retarget(make_series, make_request) -> None:
    days = [date(2024, 3, 28), date(2024, 4, 1), date(2024, 4, 2)]
    histories = {
        "AAA": make_series(days, [100, 200, 200]),
        "BBB": make_series(days, [100, 100, 100]),
        "SPY": make_series(days, [400, 400, 400]),
    }
    req = make_request(allocations=(("AAA", 50, 0.0), ("BBB", 50, 0.0)))

    timeline, state = HistoricalSimulator(req).replay(histories)

    assert timeline[0].stock_value == pytest.approx(10_000)
    assert timeline[1].portfolio_value == pytest.approx(15_000)
    assert state.holdings["AAA"] == pytest.approx(37.5)
    assert state.holdings["BBB"] == pytest.approx(75.0)
    assert state.cash == pytest.approx(0.0, abs=1e-9)


def test_no_rebalance_on_first_day_or_outside_quarter_start(make_series, make_request) -> None:
    days = [date(2024, 1, 2), date(2024, 2, 1), date(2024, 3, 1)]
    histories = {
        "AAA": make_series(days, [100, 200, 400]),
        "BBB": make_series(days, [100, 100, 100]),
        "SPY": make_series(days, [400, 400, 400]),
    }
    req = make_request(allocations=(("AAA", 50, 0.0), ("BBB", 50, 0.0)))
    _, state = HistoricalSimulator(req).replay(histories)
    assert state.holdings == pytest.approx({"AAA": 50.0, "BBB": 50.0})


def test_initial_investment_respects_cash_floor(make_series, make_request) -> None:
    histories = {"VTI": make_series(JAN, [100, 100]), "SPY": make_series(JAN, [50, 50])}
    req = make_request(minimum_cash_reserve=2_000)

    timeline, state = HistoricalSimulator(req).replay(histories)

    assert state.holdings["VTI"] == pytest.approx(80.0)
    assert timeline[0].cash_value == pytest.approx(2_000)
    # the benchmark leg buys with the whole initial amount
    assert state.benchmark_shares == pytest.approx(200.0)
    assert timeline[0].benchmark_value == pytest.approx(10_000)


def test_partial_weights_keep_implicit_cash(make_series, make_request) -> None:
    histories = {"VTI": make_series(JAN, [100, 100]), "SPY": make_series(JAN, [50, 50])}
    req = make_request(allocations=(("VTI", 80, 0.0),))
    timeline, _ = HistoricalSimulator(req).replay(histories)
    assert timeline[0].stock_value == pytest.approx(8_000)
    assert timeline[0].cash_value == pytest.approx(2_000)


def test_salary_and_monthly_contributions(make_series, make_request) -> None:
    days = [date(2024, 1, 2), date(2024, 1, 3), date(2024, 2, 1)]
    histories = {"VTI": make_series(days, [100] * 3), "SPY": make_series(days, [1] * 3, adjusted=[200] * 3)}
    req = make_request(monthly_salary=1_500_000, monthly_contribution=100_000, minimum_cash_reserve=1_000)

    result = HistoricalSimulator(req, EngineSettings(monthly_living_cost=1_000_000)).run(histories)
    day0, day1, day2 = result.timeline

    assert day0.net_flow == pytest.approx(510_000)
    assert day0.stock_value == pytest.approx(109_000)
    assert day0.cash_value == pytest.approx(401_000)
    assert day1.net_flow == 0.0
    assert day2.net_flow == pytest.approx(500_000)
    assert day2.stock_value == pytest.approx(209_000)
    assert day2.cash_value == pytest.approx(801_000)
    assert day2.invested_capital == pytest.approx(1_010_000)
    assert day2.benchmark_value == pytest.approx(1_010_000)

    cf = result.cashflow_breakdown
    assert cf.initial_principal == 10_000
    assert cf.contributions == pytest.approx(1_000_000)
    assert cf.total_invested == pytest.approx(1_010_000)
    assert cf.gains == pytest.approx(0.0, abs=1e-6)
    assert result.portfolio_metrics.growth_cagr == pytest.approx(0.0, abs=1e-12)


def test_salary_below_living_cost_adds_nothing(make_series, make_request) -> None:
    histories = {"VTI": make_series(JAN, [100, 100]), "SPY": make_series(JAN, [50, 50])}
    req = make_request(monthly_salary=900_000, monthly_contribution=5_000)
    timeline, state = HistoricalSimulator(req).replay(histories)
    assert timeline[0].net_flow == pytest.approx(10_000)
    assert state.contributions == 0.0


def test_split_multiplies_shares(make_series, make_request) -> None:
    histories = {
        "VTI": make_series(JAN, [100, 50], splits={JAN[1]: 2.0}),
        "SPY": make_series(JAN, [50, 50]),
    }
    timeline, state = HistoricalSimulator(make_request()).replay(histories)
    assert state.holdings["VTI"] == pytest.approx(200.0)
    assert timeline[1].stock_value == pytest.approx(10_000)


@pytest.mark.parametrize("policy,shares,cash", [
    (DividendPolicy.TO_CASH, 100.0, 100.0),
    (DividendPolicy.REINVEST_SAME_ASSET, 101.0, 0.0),
])
def test_dividend_policies(make_series, make_request, policy, shares, cash) -> None:
    histories = {
        "VTI": make_series(JAN, [100, 100], dividends={JAN[1]: 1.0}),
        "SPY": make_series(JAN, [50, 50]),
    }
    timeline, state = HistoricalSimulator(make_request(dividend_policy=policy)).replay(histories)
    assert state.holdings["VTI"] == pytest.approx(shares)
    assert timeline[1].cash_value == pytest.approx(cash, abs=1e-9)
    assert timeline[1].portfolio_value == pytest.approx(10_100)


def test_expense_drag_applied_daily(make_series, make_request) -> None:
    histories = {"VTI": make_series(JAN, [100, 100]), "SPY": make_series(JAN, [50, 50])}
    req = make_request(allocations=(("VTI", 100, 0.0252),))
    _, state = HistoricalSimulator(req).replay(histories)
    assert state.holdings["VTI"] == pytest.approx(100 * (1 - 0.0001) ** 2)


def test_missing_price_skips_leg(make_series, make_request) -> None:
    histories = {
        "AAA": make_series(JAN, [0, 100]),
        "BBB": make_series(JAN, [100, 100]),
        "SPY": make_series(JAN, [50, 50]),
    }
    req = make_request(allocations=(("AAA", 50, 0.0), ("BBB", 50, 0.0)))
    timeline, state = HistoricalSimulator(req).replay(histories)
    assert state.holdings["AAA"] == 0.0
    assert state.holdings["BBB"] == pytest.approx(50.0)
    assert timeline[0].cash_value == pytest.approx(5_000)


def test_rebalance_liquidates_when_budget_is_zero(make_request) -> None:
    req = make_request(minimum_cash_reserve=1_000_000)
    sim = HistoricalSimulator(req)
    state = PortfolioState(holdings={"VTI": 10.0}, cash=0.0)
    sim._rebalance(state, {"VTI": 100.0})
    assert state.holdings == {"VTI": 0.0}
    assert state.cash == pytest.approx(1_000)


def test_zero_weight_allocations_rejected(make_request) -> None:
    with pytest.raises(ConfigurationError):
        HistoricalSimulator(make_request(allocations=(("VTI", 0, 0.0),)))


def test_zero_weight_legs_are_ignored(make_series, make_request) -> None:
    histories = {"VTI": make_series(JAN, [100, 100]), "SPY": make_series(JAN, [50, 50])}
    req = make_request(allocations=(("VTI", 100, 0.0), ("BND", 0, 0.0)))
    sim = HistoricalSimulator(req)
    assert sim.tickers() == ["VTI", "SPY"]
    timeline, _ = sim.replay(histories)
    assert len(timeline) == 2


def test_needs_two_overlapping_days(make_series, make_request) -> None:
    histories = {
        "VTI": make_series(JAN, [100, 100]),
        "SPY": make_series([JAN[1], date(2024, 1, 4)], [50, 50]),
    }
    with pytest.raises(InsufficientDataError):
        HistoricalSimulator(make_request()).run(histories)


def test_missing_history_is_market_data_error(make_series, make_request) -> None:
    with pytest.raises(MarketDataError):
        HistoricalSimulator(make_request()).run({"VTI": make_series(JAN, [100, 100])})


def test_result_serializes_with_public_keys(make_series, make_request) -> None:
    histories = {"VTI": make_series(JAN, [100, 101]), "SPY": make_series(JAN, [50, 51])}
    payload = HistoricalSimulator(make_request()).run(histories).to_dict()
    assert set(payload) == {"timeline", "metrics", "yearlyReturns", "drawdown", "cashflowBreakdown"}
    assert payload["timeline"][0]["date"] == "2024-01-02"
    assert payload["timeline"][0]["investedCapital"] == 10_000
    assert set(payload["metrics"]) == {"portfolio", "benchmark"}
    assert payload["yearlyReturns"] == [
        {"year": 2024, "portfolioReturn": pytest.approx(0.01), "benchmarkReturn": pytest.approx(0.02)}
    ]


def test_request_tickers_are_upper_cased(make_series, make_request) -> None:
    histories = {"VTI": make_series(JAN, [100, 101]), "SPY": make_series(JAN, [50, 51])}
    sim = HistoricalSimulator(make_request(allocations=(("vti", 100, 0.0),), benchmark_ticker="spy"))
    assert sim.tickers() == ["VTI", "SPY"]
    timeline, state = sim.replay(histories)
    assert state.holdings == pytest.approx({"VTI": 100.0})
    assert timeline[-1].portfolio_value == pytest.approx(10_100)
