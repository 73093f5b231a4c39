from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping


@dataclass
class PortfolioState:
    """Mutable book of one simulation run. Never shared between runs."""
    holdings: Dict[str, float] = field(default_factory=dict)   # ticker -> shares
    cash: float = 0.0
    benchmark_shares: float = 0.0
    total_invested: float = 0.0
    contributions: float = 0.0

    @classmethod
    def empty(cls, tickers: Iterable[str]) -> "PortfolioState":
        return cls(holdings={t: 0.0 for t in tickers})

    def shares(self, ticker: str) -> float:
        return self.holdings.get(ticker, 0.0)

    def position_value(self, ticker: str, prices: Mapping[str, float]) -> float:
        return self.shares(ticker) * prices.get(ticker, 0.0)

    def stock_value(self, prices: Mapping[str, float]) -> float:
        return sum(self.position_value(t, prices) for t in self.holdings)

    def portfolio_value(self, prices: Mapping[str, float]) -> float:
        return self.stock_value(prices) + self.cash

    def deposit(self, amount: float, contribution: bool = False):
        """External cash entering the portfolio."""
        self.cash += amount
        self.total_invested += amount
        if contribution:
            self.contributions += amount
