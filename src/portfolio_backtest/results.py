from dataclasses import dataclass
from datetime import date
from typing import Tuple


@dataclass(frozen=True)
class TimelinePoint:
    date: date
    stock_value: float
    cash_value: float
    portfolio_value: float
    benchmark_value: float
    invested_capital: float   # cumulative
    net_flow: float           # external cash injected that day

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "stockValue": self.stock_value,
            "cashValue": self.cash_value,
            "portfolioValue": self.portfolio_value,
            "benchmarkValue": self.benchmark_value,
            "investedCapital": self.invested_capital,
            "netFlow": self.net_flow,
        }


@dataclass(frozen=True)
class PerformanceMetrics:
    ending_value: float
    total_invested: float
    gains: float
    cumulative_return: float
    contribution_adjusted_cagr: float
    growth_cagr: float
    max_drawdown: float
    annualized_volatility: float
    sharpe_ratio: float

    def to_dict(self):
        return {
            "endingValue": self.ending_value,
            "totalInvested": self.total_invested,
            "gains": self.gains,
            "cumulativeReturn": self.cumulative_return,
            "contributionAdjustedCagr": self.contribution_adjusted_cagr,
            "growthCagr": self.growth_cagr,
            "maxDrawdown": self.max_drawdown,
            "annualizedVolatility": self.annualized_volatility,
            "sharpeRatio": self.sharpe_ratio,
        }


@dataclass(frozen=True)
class YearlyReturnPoint:
    year: int
    portfolio_return: float
    benchmark_return: float

    def to_dict(self):
        return {
            "year": self.year,
            "portfolioReturn": self.portfolio_return,
            "benchmarkReturn": self.benchmark_return,
        }


@dataclass(frozen=True)
class DrawdownPoint:
    date: date
    portfolio_drawdown: float
    benchmark_drawdown: float

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "portfolioDrawdown": self.portfolio_drawdown,
            "benchmarkDrawdown": self.benchmark_drawdown,
        }


@dataclass(frozen=True)
class CashflowBreakdown:
    initial_principal: float
    contributions: float
    total_invested: float
    gains: float
    ending_cash: float
    ending_stock_value: float

    def to_dict(self):
        return {
            "initialPrincipal": self.initial_principal,
            "contributions": self.contributions,
            "totalInvested": self.total_invested,
            "gains": self.gains,
            "endingCash": self.ending_cash,
            "endingStockValue": self.ending_stock_value,
        }


@dataclass(frozen=True)
class SimulationResult:
    timeline: Tuple[TimelinePoint, ...]
    portfolio_metrics: PerformanceMetrics
    benchmark_metrics: PerformanceMetrics
    yearly_returns: Tuple[YearlyReturnPoint, ...]
    drawdown: Tuple[DrawdownPoint, ...]
    cashflow_breakdown: CashflowBreakdown

    def to_dict(self):
        return {
            "timeline": [p.to_dict() for p in self.timeline],
            "metrics": {
                "portfolio": self.portfolio_metrics.to_dict(),
                "benchmark": self.benchmark_metrics.to_dict(),
            },
            "yearlyReturns": [y.to_dict() for y in self.yearly_returns],
            "drawdown": [d.to_dict() for d in self.drawdown],
            "cashflowBreakdown": self.cashflow_breakdown.to_dict(),
        }


@dataclass(frozen=True)
class BenchmarkMetrics:
    cumulative_return: float
    cagr: float
    max_drawdown: float
    annualized_volatility: float
    sharpe_ratio: float


@dataclass(frozen=True)
class BenchmarkSummary:
    ticker: str
    start_date: date
    end_date: date
    metrics: BenchmarkMetrics

    def to_dict(self):
        m = self.metrics
        return {
            "ticker": self.ticker,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "metrics": {
                "cumulativeReturn": m.cumulative_return,
                "cagr": m.cagr,
                "maxDrawdown": m.max_drawdown,
                "annualizedVolatility": m.annualized_volatility,
                "sharpeRatio": m.sharpe_ratio,
            },
        }
