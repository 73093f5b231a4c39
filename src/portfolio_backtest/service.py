"""
Entry points that tie request validation, market data and the engine together.

Validation and configuration errors are raised before any market data is
requested; a MarketDataError or InsufficientDataError aborts the run with
no partial result.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .analytics.benchmark import build_benchmark_summary
from .config import EngineSettings, PricePoint, SimulationRequest
from .engine.simulator import HistoricalSimulator
from .results import BenchmarkSummary, SimulationResult
from .validation import parse_request

logger = logging.getLogger(__name__)

RequestLike = Union[SimulationRequest, Mapping[str, Any]]

DEFAULT_SUMMARY_START = date(2010, 1, 1)


def _as_request(request: RequestLike) -> SimulationRequest:
    if isinstance(request, SimulationRequest):
        return request
    return parse_request(request)


def fetch_histories(simulator: HistoricalSimulator, provider) -> Dict[str, List[PricePoint]]:
    req = simulator.request
    return {t: provider.get_history(t, req.start_date, req.end_date) for t in simulator.tickers()}


def run_simulation(request: RequestLike, provider, settings: Optional[EngineSettings] = None) -> SimulationResult:
    simulator = HistoricalSimulator(_as_request(request), settings)
    histories = fetch_histories(simulator, provider)
    return simulator.run(histories)


def run_comparison(base: RequestLike, comparisons: Sequence[RequestLike], provider,
                   settings: Optional[EngineSettings] = None, max_workers: int = 4) -> Dict[str, Any]:
    """
    Run a base portfolio and any number of comparison portfolios.
    Runs are independent and execute concurrently; the first failure
    propagates, runs still queued are cancelled and no results are returned.
    """
    requests = [_as_request(base)] + [_as_request(r) for r in comparisons]
    logger.info("Running %d simulations (%d comparisons)", len(requests), len(requests) - 1)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(run_simulation, r, provider, settings) for r in requests]
        try:
            results = [f.result() for f in futures]
        except Exception:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
    return {"base": results[0], "comparisons": results[1:]}


def benchmark_summary(ticker: str, provider, start: date = DEFAULT_SUMMARY_START,
                      end: Optional[date] = None, risk_free_rate: float = 0.02) -> BenchmarkSummary:
    symbol = ticker.strip().upper()
    end = end or date.today()
    points = provider.get_history(symbol, start, end)
    return build_benchmark_summary(symbol, points, risk_free_rate)
