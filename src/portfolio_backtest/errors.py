class BacktestError(Exception):
    """Base class for every error raised by portfolio_backtest."""


class ValidationError(BacktestError):
    """Malformed or out-of-range simulation request."""

    def __init__(self, issues):
        self.issues = list(issues)
        summary = "; ".join(f"{i['path']}: {i['message']}" for i in self.issues)
        super().__init__(f"Invalid simulation request: {summary}")


class MarketDataError(BacktestError):
    """The market-data collaborator could not deliver a price series."""


class InsufficientDataError(BacktestError):
    """Fewer than two overlapping trading days across the requested tickers."""


class ConfigurationError(BacktestError):
    """No allocation carries a positive weight."""
