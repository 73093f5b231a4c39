from typing import List, Sequence

from ..config import PricePoint
from ..errors import InsufficientDataError
from ..results import BenchmarkMetrics, BenchmarkSummary
from .metrics import annualized_volatility, cagr, max_drawdown, sharpe_ratio, year_fraction


def simple_daily_returns(points: Sequence[PricePoint]) -> List[float]:
    """Day-over-day adjusted-close returns; 0 where the previous close is not positive."""
    out = []
    for prev, cur in zip(points[:-1], points[1:]):
        if prev.adjusted_close <= 0:
            out.append(0.0)
        else:
            out.append(cur.adjusted_close / prev.adjusted_close - 1.0)
    return out


def build_benchmark_summary(ticker: str, points: Sequence[PricePoint],
                            risk_free_rate: float = 0.02) -> BenchmarkSummary:
    """Buy-and-hold statistics for a single ticker, without contributions or rebalancing."""
    if not points:
        raise InsufficientDataError(f"No price history to summarize for {ticker}")

    start, end = points[0], points[-1]
    years = year_fraction(start.date, end.date)
    cumulative = end.adjusted_close / start.adjusted_close - 1.0 if start.adjusted_close > 0 else 0.0
    growth = cagr(start.adjusted_close, end.adjusted_close, years)
    vol = annualized_volatility(simple_daily_returns(points))

    return BenchmarkSummary(
        ticker=ticker.upper(),
        start_date=start.date,
        end_date=end.date,
        metrics=BenchmarkMetrics(
            cumulative_return=cumulative,
            cagr=growth,
            max_drawdown=max_drawdown([p.adjusted_close for p in points]),
            annualized_volatility=vol,
            sharpe_ratio=sharpe_ratio(growth, vol, risk_free_rate),
        ),
    )
