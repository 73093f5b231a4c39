import logging

from portfolio_backtest.config import DataConfig
from portfolio_backtest.data.cache import ExpiringCache
from portfolio_backtest.data.fetchers import YahooPriceProvider
from portfolio_backtest.service import benchmark_summary, run_simulation


def main():
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    # 1) Request (same shape the API receives)
    payload = {
        "startDate": "2015-01-01",
        "endDate": "2024-12-31",
        "initialAmount": 10_000_000,
        "monthlySalary": 2_500_000,
        "monthlyContribution": 1_000_000,
        "minimumCashReserve": 500_000,
        "dividendPolicy": "reinvest_same_asset",
        "allocations": [
            {"ticker": "VTI", "targetWeight": 50, "expenseRatio": 0.0003},
            {"ticker": "TLT", "targetWeight": 30, "expenseRatio": 0.0015},
            {"ticker": "GLD", "targetWeight": 10, "expenseRatio": 0.004},
        ],
        "benchmarkTicker": "SPY",
        "riskFreeRate": 0.02,
    }

    # 2) Data (one cache per process)
    cache = ExpiringCache(ttl_seconds=DataConfig().cache_ttl_seconds)
    provider = YahooPriceProvider(cache, DataConfig(cache_dir="data_cache"))

    # 3) Run
    result = run_simulation(payload, provider)
    summary = benchmark_summary("SPY", provider)

    # 4) Simple summary
    def pct(x): return f"{100*x:.1f}%"
    p, b = result.portfolio_metrics, result.benchmark_metrics
    cf = result.cashflow_breakdown
    print(f"=== Backtest {result.timeline[0].date} .. {result.timeline[-1].date} ===")
    print(f"Ending value: {p.ending_value:,.0f} (benchmark {b.ending_value:,.0f})")
    print(f"Invested: {cf.total_invested:,.0f}  Gains: {cf.gains:,.0f}  Cash: {cf.ending_cash:,.0f}")
    print(f"Growth CAGR: {pct(p.growth_cagr)} vs {pct(b.growth_cagr)}")
    print(f"Contribution-adjusted CAGR: {pct(p.contribution_adjusted_cagr)}")
    print(f"Volatility: {pct(p.annualized_volatility)}  Sharpe: {p.sharpe_ratio:.2f}")
    print(f"Max Drawdown: {pct(p.max_drawdown)} vs {pct(b.max_drawdown)}")
    for y in result.yearly_returns:
        print(f"  {y.year}: {pct(y.portfolio_return):>7} | {pct(y.benchmark_return):>7}")
    m = summary.metrics
    print(f"SPY since {summary.start_date}: CAGR {pct(m.cagr)}, MDD {pct(m.max_drawdown)}")


if __name__ == "__main__":
    main()
