"""
Parse and validate simulation requests coming from upstream callers.

Payloads use the camelCase keys of the public API. Every problem pydantic
finds is reported together in a single ValidationError, so a caller can
surface all of them at once.
"""
import re
from datetime import date
from typing import Annotated, Any, List, Mapping

import pydantic
from pydantic import BaseModel, Field, StringConstraints, ValidationInfo, field_validator

from .config import (
    Allocation,
    ContributionRule,
    DividendPolicy,
    RebalanceFrequency,
    SimulationRequest,
)
from .errors import ValidationError

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MAX_ALLOCATIONS = 10
MAX_TICKER_LENGTH = 10
MAX_EXPENSE_RATIO = 0.05
MAX_RISK_FREE_RATE = 0.2
# Weight sums are compared with a 0.05 point slack for rounding in UIs.
MIN_TOTAL_WEIGHT = 0.05
MAX_TOTAL_WEIGHT = 100.05

Ticker = Annotated[str, StringConstraints(strip_whitespace=True, to_upper=True,
                                          min_length=1, max_length=MAX_TICKER_LENGTH)]
# strict: booleans are not numbers here
Amount = Annotated[float, Field(ge=0, strict=True, allow_inf_nan=False)]


class AllocationIn(BaseModel):
    ticker: Ticker
    target_weight: float = Field(alias="targetWeight", ge=0, le=100, strict=True, allow_inf_nan=False)
    expense_ratio: float = Field(alias="expenseRatio", ge=0, le=MAX_EXPENSE_RATIO,
                                 strict=True, allow_inf_nan=False)

    def to_allocation(self) -> Allocation:
        return Allocation(self.ticker, self.target_weight, self.expense_ratio)


class SimulationRequestIn(BaseModel):
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    initial_amount: Amount = Field(alias="initialAmount")
    monthly_salary: Amount = Field(2_500_000.0, alias="monthlySalary")
    monthly_contribution: Amount = Field(alias="monthlyContribution")
    minimum_cash_reserve: Amount = Field(500_000.0, alias="minimumCashReserve")
    dividend_policy: DividendPolicy = Field(DividendPolicy.REINVEST_SAME_ASSET, alias="dividendPolicy")
    rebalance_frequency: RebalanceFrequency = Field(RebalanceFrequency.QUARTERLY, alias="rebalanceFrequency")
    contribution_rule: ContributionRule = Field(ContributionRule.FIRST_TRADING_DAY, alias="contributionRule")
    allocations: List[AllocationIn] = Field(min_length=1, max_length=MAX_ALLOCATIONS)
    benchmark_ticker: Ticker = Field("SPY", alias="benchmarkTicker")
    risk_free_rate: float = Field(0.02, alias="riskFreeRate", ge=0, le=MAX_RISK_FREE_RATE,
                                  strict=True, allow_inf_nan=False)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _iso_date(cls, v: Any) -> Any:
        if not isinstance(v, str) or not ISO_DATE.match(v):
            raise ValueError("must be YYYY-MM-DD")
        return v

    @field_validator("end_date")
    @classmethod
    def _end_after_start(cls, v: date, info: ValidationInfo) -> date:
        if "start_date" in info.data and v <= info.data["start_date"]:
            raise ValueError("endDate must be after startDate")
        return v

    @field_validator("allocations")
    @classmethod
    def _weights_and_tickers(cls, v: List[AllocationIn]) -> List[AllocationIn]:
        total = sum(a.target_weight for a in v)
        if total <= MIN_TOTAL_WEIGHT:
            raise ValueError("Allocation weights must include at least one positive weight")
        if total > MAX_TOTAL_WEIGHT:
            raise ValueError("Allocation weights must be less than or equal to 100%")
        if len({a.ticker for a in v}) != len(v):
            raise ValueError("Allocation tickers must be unique")
        return v

    def to_request(self) -> SimulationRequest:
        return SimulationRequest(
            start_date=self.start_date,
            end_date=self.end_date,
            initial_amount=self.initial_amount,
            monthly_contribution=self.monthly_contribution,
            allocations=tuple(a.to_allocation() for a in self.allocations),
            monthly_salary=self.monthly_salary,
            minimum_cash_reserve=self.minimum_cash_reserve,
            dividend_policy=self.dividend_policy,
            benchmark_ticker=self.benchmark_ticker,
            risk_free_rate=self.risk_free_rate,
            rebalance_frequency=self.rebalance_frequency,
            contribution_rule=self.contribution_rule,
        )


def _issues(exc: pydantic.ValidationError) -> List[dict]:
    return [
        {"path": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def parse_request(payload: Mapping[str, Any]) -> SimulationRequest:
    """Build a SimulationRequest from an API payload or raise ValidationError."""
    try:
        model = SimulationRequestIn.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(_issues(e)) from e
    return model.to_request()
