"""
Return, risk and drawdown statistics over value series.

Pure functions, no I/O. Degenerate inputs (empty, flat or zero-valued
series, non-positive bases) give 0 instead of raising.
"""
from datetime import date
from typing import Dict, List, Sequence

import numpy as np

from ..results import PerformanceMetrics, YearlyReturnPoint

TRADING_DAYS_PER_YEAR = 252
DAYS_PER_YEAR = 365.25


def cagr(start_value: float, end_value: float, years: float) -> float:
    if start_value <= 0 or end_value <= 0 or years <= 0:
        return 0.0
    return float((end_value / start_value) ** (1 / years) - 1.0)


def annualized_volatility(daily_returns: Sequence[float], periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
    r = np.asarray(daily_returns, dtype=float)
    if r.size < 2:
        return 0.0
    return float(r.std(ddof=1) * np.sqrt(periods_per_year))


def sharpe_ratio(annual_return: float, volatility: float, risk_free_rate: float) -> float:
    if volatility <= 0:
        return 0.0
    return (annual_return - risk_free_rate) / volatility


def chain_returns(returns: Sequence[float]) -> float:
    """Compound a sequence of simple returns into one."""
    return float(np.prod(1.0 + np.asarray(returns, dtype=float)) - 1.0)


def drawdown_series(values: Sequence[float]) -> List[float]:
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return []
    peak = np.maximum.accumulate(x)
    with np.errstate(divide='ignore', invalid='ignore'):
        dd = np.where(peak == 0, 0.0, x / peak - 1.0)
    return dd.tolist()


def max_drawdown(values: Sequence[float]) -> float:
    dd = drawdown_series(values)
    if not dd:
        return 0.0
    return min(0.0, min(dd))


def time_weighted_daily_returns(values: Sequence[float], net_flows: Sequence[float]) -> List[float]:
    """
    r[t] = (V[t] - V[t-1] - flow[t]) / V[t-1], so cash injected on day t does
    not count as performance. 0 when V[t-1] <= 0 or the result is not finite.
    Length is len(values) - 1.
    """
    v = np.asarray(values, dtype=float)
    if v.size < 2:
        return []
    flows = np.zeros(v.size)
    f = np.asarray(net_flows, dtype=float)[: v.size]
    flows[: f.size] = f

    prev, cur = v[:-1], v[1:]
    with np.errstate(divide='ignore', invalid='ignore'):
        r = (cur - prev - flows[1:]) / prev
    r = np.where((prev > 0) & np.isfinite(r), r, 0.0)
    return r.tolist()


def year_fraction(start: date, end: date) -> float:
    if end <= start:
        return 0.0
    return (end - start).days / DAYS_PER_YEAR


def _returns_by_year(dates: Sequence[date], daily_returns: Sequence[float]) -> Dict[int, float]:
    # return i covers dates[i] -> dates[i+1]; it belongs to the later date's year
    growth: Dict[int, float] = {}
    for i, r in enumerate(daily_returns):
        if i + 1 >= len(dates):
            break
        year = dates[i + 1].year
        growth[year] = growth.get(year, 1.0) * (1.0 + r)
    return {year: g - 1.0 for year, g in growth.items()}


def yearly_return_series(dates: Sequence[date], portfolio_returns: Sequence[float],
                         benchmark_returns: Sequence[float]) -> List[YearlyReturnPoint]:
    portfolio = _returns_by_year(dates, portfolio_returns)
    benchmark = _returns_by_year(dates, benchmark_returns)
    years = sorted(set(portfolio) | set(benchmark))
    return [
        YearlyReturnPoint(year, portfolio.get(year, 0.0), benchmark.get(year, 0.0))
        for year in years
    ]


def performance_metrics(dates: Sequence[date], values: Sequence[float], net_flows: Sequence[float],
                        total_invested: float, risk_free_rate: float,
                        periods_per_year: int = TRADING_DAYS_PER_YEAR) -> PerformanceMetrics:
    ending_value = float(values[-1]) if len(values) else 0.0
    cumulative = ending_value / total_invested - 1.0 if total_invested > 0 else 0.0
    years = year_fraction(dates[0], dates[-1]) if len(dates) else 0.0

    daily = time_weighted_daily_returns(values, net_flows)
    growth = cagr(1.0, 1.0 + chain_returns(daily), years)
    vol = annualized_volatility(daily, periods_per_year)

    return PerformanceMetrics(
        ending_value=ending_value,
        total_invested=total_invested,
        gains=ending_value - total_invested,
        cumulative_return=cumulative,
        contribution_adjusted_cagr=cagr(total_invested, ending_value, years),
        growth_cagr=growth,
        max_drawdown=max_drawdown(values),
        annualized_volatility=vol,
        sharpe_ratio=sharpe_ratio(growth, vol, risk_free_rate),
    )
