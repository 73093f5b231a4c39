from typing import Sequence

from ..config import SimulationRequest
from ..results import CashflowBreakdown, DrawdownPoint, SimulationResult, TimelinePoint
from .metrics import (
    TRADING_DAYS_PER_YEAR,
    drawdown_series,
    performance_metrics,
    time_weighted_daily_returns,
    yearly_return_series,
)


def build_simulation_result(timeline: Sequence[TimelinePoint], state, request: SimulationRequest,
                            periods_per_year: int = TRADING_DAYS_PER_YEAR) -> SimulationResult:
    """Derive metrics, yearly returns, drawdowns and the cash-flow breakdown from a replayed timeline.

    The benchmark leg receives the same external flows as the portfolio, so
    both series are measured against the same net flows and invested capital.
    """
    dates = [p.date for p in timeline]
    portfolio_values = [p.portfolio_value for p in timeline]
    benchmark_values = [p.benchmark_value for p in timeline]
    net_flows = [p.net_flow for p in timeline]

    portfolio = performance_metrics(dates, portfolio_values, net_flows, state.total_invested,
                                    request.risk_free_rate, periods_per_year)
    benchmark = performance_metrics(dates, benchmark_values, net_flows, state.total_invested,
                                    request.risk_free_rate, periods_per_year)

    yearly = yearly_return_series(
        dates,
        time_weighted_daily_returns(portfolio_values, net_flows),
        time_weighted_daily_returns(benchmark_values, net_flows),
    )
    drawdown = [
        DrawdownPoint(d, p, b)
        for d, p, b in zip(dates, drawdown_series(portfolio_values), drawdown_series(benchmark_values))
    ]

    last = timeline[-1] if timeline else None
    breakdown = CashflowBreakdown(
        initial_principal=request.initial_amount,
        contributions=state.contributions,
        total_invested=state.total_invested,
        gains=portfolio.gains,
        ending_cash=last.cash_value if last else 0.0,
        ending_stock_value=last.stock_value if last else 0.0,
    )

    return SimulationResult(
        timeline=tuple(timeline),
        portfolio_metrics=portfolio,
        benchmark_metrics=benchmark,
        yearly_returns=tuple(yearly),
        drawdown=tuple(drawdown),
        cashflow_breakdown=breakdown,
    )
