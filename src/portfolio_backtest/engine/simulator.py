import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Mapping, Sequence, Tuple

from ..analytics.report import build_simulation_result
from ..config import DividendPolicy, EngineSettings, PricePoint, SimulationRequest
from ..errors import ConfigurationError, InsufficientDataError, MarketDataError
from ..results import SimulationResult, TimelinePoint
from .calendar import TradingSchedule, build_trading_schedules, intersect_trading_days
from .cashflows import (
    desired_stock_budget,
    invest_by_relative_weights,
    net_salary_flow,
    total_stock_weight,
)
from .state import PortfolioState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceTable:
    """Per-ticker lookups keyed by trading day."""
    close: Dict[date, float]
    adjusted_close: Dict[date, float]
    dividends: Dict[date, float]
    splits: Dict[date, float]

    @classmethod
    def from_points(cls, points: Sequence[PricePoint]) -> "PriceTable":
        return cls(
            close={p.date: p.close for p in points},
            adjusted_close={p.date: p.adjusted_close for p in points},
            dividends={p.date: p.dividend_per_share for p in points if p.dividend_per_share > 0},
            splits={p.date: p.split_ratio for p in points if p.split_ratio > 0 and p.split_ratio != 1},
        )


class HistoricalSimulator:
    """
    Day-by-day replay of a contribution portfolio against a benchmark.

    Each trading day runs, in this order: splits, dividends, the initial
    investment (first day only), the monthly contribution, expense drag,
    the quarterly drift check/rebalance, and finally the valuation that is
    appended to the timeline.
    """

    def __init__(self, request: SimulationRequest, settings: EngineSettings = None):
        self.request = request
        self.settings = settings or EngineSettings()
        self.allocations = [replace(a, ticker=a.ticker.strip().upper())
                            for a in request.allocations if a.weight > 0]
        if not self.allocations:
            raise ConfigurationError("At least one allocation weight must be greater than 0")
        self.total_weight = total_stock_weight(self.allocations)
        self.benchmark = request.benchmark_ticker.strip().upper()

    def tickers(self) -> List[str]:
        """Allocation tickers followed by the benchmark, without duplicates."""
        out = []
        for t in [a.ticker for a in self.allocations] + [self.benchmark]:
            if t not in out:
                out.append(t)
        return out

    def trading_days(self, histories: Mapping[str, Sequence[PricePoint]]) -> List[date]:
        for t in self.tickers():
            if t not in histories:
                raise MarketDataError(f"No price history supplied for {t}")
        date_lists = [[p.date for p in histories[a.ticker]] for a in self.allocations]
        date_lists.append([p.date for p in histories[self.benchmark]])
        return intersect_trading_days(date_lists)

    def replay(self, histories: Mapping[str, Sequence[PricePoint]]) -> Tuple[List[TimelinePoint], PortfolioState]:
        days = self.trading_days(histories)
        if len(days) < 2:
            raise InsufficientDataError(
                "Insufficient overlapping trading days for selected ETFs and benchmark"
            )

        tables = {t: PriceTable.from_points(histories[t]) for t in self.tickers()}
        schedule = build_trading_schedules(days)
        state = PortfolioState.empty(a.ticker for a in self.allocations)

        timeline = []
        for index, day in enumerate(days):
            timeline.append(self._advance(index, day, state, schedule, tables))
        return timeline, state

    def run(self, histories: Mapping[str, Sequence[PricePoint]]) -> SimulationResult:
        timeline, state = self.replay(histories)
        result = build_simulation_result(timeline, state, self.request,
                                         self.settings.trading_days_per_year)
        logger.info(
            "Simulated %d trading days %s..%s: ending value %.2f, invested %.2f",
            len(timeline), timeline[0].date, timeline[-1].date,
            timeline[-1].portfolio_value, state.total_invested,
        )
        return result

    # --- one trading day -------------------------------------------------

    def _advance(self, index: int, day: date, state: PortfolioState,
                 schedule: TradingSchedule, tables: Mapping[str, PriceTable]) -> TimelinePoint:
        req = self.request
        closes = {a.ticker: tables[a.ticker].close.get(day, 0.0) for a in self.allocations}
        benchmark_price = tables[self.benchmark].adjusted_close.get(day, 0.0)
        net_flow = 0.0

        self._apply_splits(day, state, tables)
        self._apply_dividends(day, state, tables, closes)

        if index == 0 and req.initial_amount > 0:
            state.deposit(req.initial_amount)
            net_flow += req.initial_amount
            budget = desired_stock_budget(state.cash, self.total_weight, req.minimum_cash_reserve)
            state.cash -= invest_by_relative_weights(budget, self.allocations, state.holdings, closes)
            self._buy_benchmark(state, req.initial_amount, benchmark_price)

        if day in schedule.contribution_days:
            net_flow += self._contribute(state, closes, benchmark_price)

        self._apply_expense_drag(state)

        if index > 0 and day in schedule.rebalance_days and self._needs_rebalance(state, closes):
            logger.debug("Rebalancing on %s", day)
            self._rebalance(state, closes)

        stock_value = state.stock_value(closes)
        return TimelinePoint(
            date=day,
            stock_value=stock_value,
            cash_value=state.cash,
            portfolio_value=stock_value + state.cash,
            benchmark_value=state.benchmark_shares * benchmark_price,
            invested_capital=state.total_invested,
            net_flow=net_flow,
        )

    def _apply_splits(self, day, state, tables):
        for a in self.allocations:
            ratio = tables[a.ticker].splits.get(day)
            if not ratio or ratio <= 0 or ratio == 1:
                continue
            state.holdings[a.ticker] = state.shares(a.ticker) * ratio

    def _apply_dividends(self, day, state, tables, closes):
        for a in self.allocations:
            per_share = tables[a.ticker].dividends.get(day, 0.0)
            shares = state.shares(a.ticker)
            if per_share <= 0 or shares <= 0:
                continue
            payout = shares * per_share
            if payout <= 0:
                continue

            price = closes.get(a.ticker, 0.0)
            if self.request.dividend_policy is DividendPolicy.TO_CASH:
                state.cash += payout
            elif price > 0:
                state.holdings[a.ticker] = shares + payout / price
            else:
                state.cash += payout

    @staticmethod
    def _buy_benchmark(state, amount, price):
        if price > 0:
            state.benchmark_shares += amount / price

    def _contribute(self, state, closes, benchmark_price) -> float:
        """Monthly salary inflow plus the scheduled stock purchase. Returns the external flow."""
        req = self.request
        salary = net_salary_flow(req.monthly_salary, self.settings.monthly_living_cost)
        if salary > 0:
            state.deposit(salary, contribution=True)
            self._buy_benchmark(state, salary, benchmark_price)

        investable = max(0.0, state.cash - req.minimum_cash_reserve)
        if req.monthly_contribution > 0 and investable > 0:
            amount = min(req.monthly_contribution, investable)
            state.cash -= invest_by_relative_weights(amount, self.allocations, state.holdings, closes)
        return salary

    def _apply_expense_drag(self, state):
        for a in self.allocations:
            drag = a.expense_ratio / self.settings.trading_days_per_year
            state.holdings[a.ticker] = state.shares(a.ticker) * (1 - drag)

    def _needs_rebalance(self, state: PortfolioState, closes) -> bool:
        portfolio_value = state.portfolio_value(closes)
        if portfolio_value <= 0:
            return False

        tolerance = self.settings.drift_tolerance
        budget = desired_stock_budget(portfolio_value, self.total_weight, self.request.minimum_cash_reserve)
        target_cash_weight = (portfolio_value - budget) / portfolio_value
        cash_weight = state.cash / portfolio_value
        if abs(cash_weight - target_cash_weight) > tolerance:
            return True

        if self.total_weight <= 0 or budget <= 0:
            return False
        for a in self.allocations:
            target = budget * (a.weight / self.total_weight) / portfolio_value
            current = state.position_value(a.ticker, closes) / portfolio_value
            if abs(current - target) > tolerance:
                return True
        return False

    def _rebalance(self, state: PortfolioState, closes):
        """Re-target every leg to its share of the investable budget; the rest is cash."""
        portfolio_value = state.portfolio_value(closes)
        if portfolio_value <= 0:
            return

        budget = desired_stock_budget(portfolio_value, self.total_weight, self.request.minimum_cash_reserve)
        if budget <= 0 or self.total_weight <= 0:
            for a in self.allocations:
                state.holdings[a.ticker] = 0.0
            state.cash = portfolio_value
            return

        invested = 0.0
        for a in self.allocations:
            price = closes.get(a.ticker, 0.0)
            if not price or price <= 0:
                continue
            target_value = budget * (a.weight / self.total_weight)
            state.holdings[a.ticker] = target_value / price
            invested += target_value
        state.cash = max(0.0, portfolio_value - invested)
