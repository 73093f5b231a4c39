from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple


class DividendPolicy(Enum):
    REINVEST_SAME_ASSET = "reinvest_same_asset"
    TO_CASH = "to_cash"


class RebalanceFrequency(Enum):
    QUARTERLY = "quarterly"


class ContributionRule(Enum):
    FIRST_TRADING_DAY = "first_trading_day"


@dataclass(frozen=True)
class PricePoint:
    date: date
    close: float
    adjusted_close: float
    dividend_per_share: float = 0.0   # 0 when no dividend that day
    split_ratio: float = 1.0          # 1 when no split that day


@dataclass(frozen=True)
class Allocation:
    ticker: str
    target_weight: float    # percent, 0..100
    expense_ratio: float = 0.0   # annual, 0..0.05

    @property
    def weight(self) -> float:
        return self.target_weight / 100.0


@dataclass(frozen=True)
class SimulationRequest:
    start_date: date
    end_date: date
    initial_amount: float
    monthly_contribution: float
    allocations: Tuple[Allocation, ...]
    monthly_salary: float = 2_500_000.0
    minimum_cash_reserve: float = 500_000.0
    dividend_policy: DividendPolicy = DividendPolicy.REINVEST_SAME_ASSET
    benchmark_ticker: str = "SPY"
    risk_free_rate: float = 0.02
    rebalance_frequency: RebalanceFrequency = RebalanceFrequency.QUARTERLY
    contribution_rule: ContributionRule = ContributionRule.FIRST_TRADING_DAY


@dataclass(frozen=True)
class EngineSettings:
    drift_tolerance: float = 0.005
    trading_days_per_year: int = 252
    monthly_living_cost: float = 1_000_000.0  # subtracted from salary each month


@dataclass(frozen=True)
class DataConfig:
    cache_ttl_seconds: float = 24 * 60 * 60
    retry_delays: Tuple[float, ...] = (0.25, 0.6, 1.2)
    cache_dir: Optional[str] = None    # enables the on-disk CSV layer
