"""
Portfolio analytics - composes the calculation modules into one result.
Pure function of holdings and their resolved price series.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from analysis.calculations.correlation import correlation_matrix
from analysis.calculations.distribution import return_histogram
from analysis.calculations.drawdown import max_drawdown
from analysis.calculations.factors import FACTORS, factor_exposure
from analysis.calculations.returns import annualized_return, daily_returns, total_return
from analysis.calculations.risk import beta, historical_var
from analysis.calculations.volatility import annualized_volatility, sharpe_ratio
from ingestion.series import ResolvedSeries, TimeSeries
from ingestion.synthetic import SyntheticGenerator
from ingestion.transforms.normalizers import AXIS_FIRST, align

# Set up logger
logger = logging.getLogger(__name__)

DEFAULT_BENCHMARK = 'SPY'


class PortfolioError(ValueError):
    """Raised when holdings are malformed."""
    pass


@dataclass
class PortfolioHolding:
    """One position: weight in [0, 1] (None = unset) and latest price."""
    symbol: str
    weight: Optional[float] = None
    price: float = 0.0

    def __post_init__(self):
        if not self.symbol:
            raise PortfolioError("Holding symbol must be non-empty")

        if self.weight is not None:
            if not math.isfinite(self.weight) or not 0 <= self.weight <= 1:
                raise PortfolioError(f"{self.symbol}: weight must be in [0, 1], got {self.weight}")

        if not math.isfinite(self.price) or self.price < 0:
            raise PortfolioError(f"{self.symbol}: price must be >= 0, got {self.price}")


@dataclass
class AnalyticsResult:
    """Portfolio metrics, per-asset stats, correlation, factors and histogram."""
    metrics: Dict[str, float] = field(default_factory=dict)
    assets: Dict[str, Dict[str, float]] = field(default_factory=dict)
    correlation_labels: List[str] = field(default_factory=list)
    correlation: List[List[float]] = field(default_factory=list)
    factor_exposure: Dict[str, float] = field(default_factory=dict)
    factor_loadings_synthetic: bool = False
    histogram: List[Dict[str, float]] = field(default_factory=list)
    weights: Dict[str, float] = field(default_factory=dict)
    benchmark: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_weights(holdings: Sequence[PortfolioHolding]) -> Dict[str, float]:
    """
    Portfolio weights that sum to 1.

    Unset weights count as 0. If every weight is unset or zero the
    portfolio is equally weighted; otherwise weights are rescaled by
    their sum.

    Raises:
        PortfolioError: If a symbol appears twice
    """
    symbols = [h.symbol for h in holdings]
    if len(set(symbols)) != len(symbols):
        raise PortfolioError(f"Duplicate symbols in holdings: {symbols}")

    if not holdings:
        return {}

    raw = {h.symbol: h.weight or 0.0 for h in holdings}
    total = sum(raw.values())
    if total <= 0:
        return {symbol: 1.0 / len(raw) for symbol in raw}

    return {symbol: w / total for symbol, w in raw.items()}


def portfolio_daily_returns(
    values_by_symbol: Mapping[str, Sequence[Optional[float]]],
    weights: Mapping[str, float]
) -> List[float]:
    """
    Daily portfolio return from aligned price series.

    Each day uses only the assets with both that day's and the previous
    day's price present; their weights are renormalized to sum to 1.
    A day with no usable asset contributes 0.

    Args:
        values_by_symbol: Symbol to values, all on the same label axis
        weights: Symbol to weight

    Returns:
        List of length (axis length - 1)
    """
    if not values_by_symbol:
        return []

    length = min(len(v) for v in values_by_symbol.values())
    returns = []
    for t in range(1, length):
        weighted = 0.0
        weight_sum = 0.0
        for symbol, values in values_by_symbol.items():
            prev, curr = values[t - 1], values[t]
            w = weights.get(symbol, 0.0)
            if prev is None or curr is None or prev == 0 or w <= 0:
                continue
            weighted += w * (curr - prev) / prev
            weight_sum += w
        returns.append(weighted / weight_sum if weight_sum > 0 else 0.0)

    return returns


def get_analytics(
    holdings: Sequence[PortfolioHolding],
    series_by_holding: Mapping[str, Any],
    benchmark: Optional[str] = None,
    factor_loadings: Optional[Mapping[str, Sequence[float]]] = None,
    factors: Sequence[str] = FACTORS
) -> AnalyticsResult:
    """
    Compute portfolio analytics.

    Args:
        holdings: Portfolio positions
        series_by_holding: Symbol to price series (TimeSeries, ResolvedSeries
            or a plain list of values)
        benchmark: Symbol used for portfolio beta (defaults to SPY if held,
            else the first holding)
        factor_loadings: Symbol to loadings per factor; deterministic
            synthetic loadings are used (and flagged) when omitted
        factors: Factor names

    Returns:
        AnalyticsResult
    """
    weights = normalize_weights(holdings)
    result = AnalyticsResult(weights=weights)
    if not holdings:
        return result

    total_value = sum(h.price * weights[h.symbol] for h in holdings)

    series = {
        symbol: _as_series(symbol, series_by_holding[symbol])
        for symbol in weights if symbol in series_by_holding
    }
    missing = [symbol for symbol in weights if symbol not in series]
    if missing:
        logger.warning(f"No series for holdings {missing}; excluded from return metrics")

    aligned = align(series, axis=AXIS_FIRST)
    values_by_symbol = {symbol: s.values for symbol, s in aligned.items()}
    returns_by_symbol = {symbol: daily_returns(values) for symbol, values in values_by_symbol.items()}

    if benchmark is None:
        if DEFAULT_BENCHMARK in returns_by_symbol:
            benchmark = DEFAULT_BENCHMARK
        else:
            benchmark = next(iter(returns_by_symbol), None)
    benchmark_returns = returns_by_symbol.get(benchmark, [])
    result.benchmark = benchmark

    # Per-asset stats
    for symbol, values in values_by_symbol.items():
        returns = returns_by_symbol[symbol]
        result.assets[symbol] = {
            'weight': weights[symbol],
            'total_return': total_return(values),
            'annualized_return': annualized_return(returns),
            'annualized_volatility': annualized_volatility(returns),
            'sharpe_ratio': sharpe_ratio(returns),
            'max_drawdown': max_drawdown(returns),
            'beta': beta(returns, benchmark_returns),
        }

    portfolio_returns = portfolio_daily_returns(values_by_symbol, weights)
    asset_betas = [stats['beta'] for stats in result.assets.values()]

    result.metrics = {
        'total_value': total_value,
        'cumulative_return': sum(
            weights[symbol] * stats['total_return'] for symbol, stats in result.assets.items()
        ),
        'annualized_return': annualized_return(portfolio_returns),
        'annualized_volatility': annualized_volatility(portfolio_returns),
        'sharpe_ratio': sharpe_ratio(portfolio_returns),
        'max_drawdown': max_drawdown(portfolio_returns),
        'var_95': historical_var(portfolio_returns, 0.05),
        'var_99': historical_var(portfolio_returns, 0.01),
        'beta': beta(portfolio_returns, benchmark_returns),
        'average_beta': sum(asset_betas) / len(asset_betas) if asset_betas else 1.0,
    }

    result.correlation_labels, result.correlation = correlation_matrix(returns_by_symbol)

    if factor_loadings is None:
        factor_loadings = SyntheticGenerator().factor_loadings(list(weights), factors)
        result.factor_loadings_synthetic = True
    result.factor_exposure = factor_exposure(weights, factor_loadings, factors)

    pooled = [r for returns in returns_by_symbol.values() for r in returns]
    result.histogram = return_histogram(pooled)

    return result


def _as_series(symbol: str, value: Any) -> TimeSeries:
    if isinstance(value, ResolvedSeries):
        return value.series
    if isinstance(value, TimeSeries):
        return value
    values = list(value)
    return TimeSeries(key=symbol, labels=tuple(str(i) for i in range(len(values))), values=tuple(values))
