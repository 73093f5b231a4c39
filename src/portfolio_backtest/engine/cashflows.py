from typing import Dict, Iterable, Mapping

from ..config import Allocation


def net_salary_flow(monthly_salary: float, monthly_living_cost: float) -> float:
    """Cash left from a month's salary after living costs; never negative."""
    return max(0.0, float(monthly_salary) - float(monthly_living_cost))


def total_stock_weight(allocations: Iterable[Allocation]) -> float:
    return sum(a.weight for a in allocations)


def desired_stock_budget(portfolio_value: float, total_weight: float, minimum_cash_reserve: float) -> float:
    """
    Portion of ``portfolio_value`` allowed in stocks.
    The target is portfolio_value * total_weight, capped so that at least
    min(minimum_cash_reserve, portfolio_value) stays in cash.
    """
    if portfolio_value <= 0 or total_weight <= 0:
        return 0.0
    cash_floor = min(minimum_cash_reserve, portfolio_value)
    desired = portfolio_value * total_weight
    max_with_floor = max(0.0, portfolio_value - cash_floor)
    return max(0.0, min(desired, max_with_floor))


def invest_by_relative_weights(amount: float, allocations, holdings: Dict[str, float],
                               prices: Mapping[str, float]) -> float:
    """Buy shares for ``amount`` split by each allocation's share of the total
    stock weight. Legs without a positive price are skipped. Returns the cash spent."""
    if amount <= 0:
        return 0.0
    total_weight = total_stock_weight(allocations)
    if total_weight <= 0:
        return 0.0

    invested = 0.0
    for a in allocations:
        price = prices.get(a.ticker, 0.0)
        if not price or price <= 0:
            continue
        leg = amount * (a.weight / total_weight)
        holdings[a.ticker] = holdings.get(a.ticker, 0.0) + leg / price
        invested += leg
    return invested
