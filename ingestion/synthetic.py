"""
Synthetic data generator - placeholder series and records used only when
no live or cached data exists for a key.

Shapes are deterministic (base level + seasonal wave + drift); values get
a small random perturbation. Every value is finite and strictly positive.
"""

import math
import threading
import zlib
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from ingestion.series import TimeSeries

# Smallest value a synthetic price may take
PRICE_FLOOR = 0.01

FACTORS = ('Size', 'Value', 'Momentum', 'Quality')

MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

# Fuel type -> baseline monthly generation (natural gas dominates)
FUEL_MIX_BASE = {'NG': 200.0, 'WAT': 50.0, 'SUN': 20.0, 'NUC': 20.0, 'OTH': 20.0}

# coin -> (price, price range, market cap, market cap range, 24h change range)
TOP_COIN_RANGES = {
    'bitcoin': (30000.0, 5000.0, 6e11, 1e11, 4.0),
    'ethereum': (2000.0, 300.0, 2.5e11, 5e10, 5.0),
    'solana': (100.0, 20.0, 4e10, 1e10, 6.0),
}


class SyntheticGenerator:
    """
    Builds synthetic series keyed on the logical key prefix.

    Args:
        seed: Seed for the random perturbation (None = nondeterministic)
        today: Anchor date for dated series (defaults to date.today())
    """

    def __init__(self, seed: Optional[int] = None, today: Optional[date] = None):
        self._rng = np.random.default_rng(seed)
        # numpy Generators are not thread-safe; resolver pools share this instance
        self._lock = threading.Lock()
        self._today = today

    def generate(self, key: str, params: Optional[Mapping[str, Any]] = None) -> TimeSeries:
        """
        Generate a placeholder series for a logical key.

        Args:
            key: Logical key, e.g. 'equity:TSLA', 'crypto:bitcoin', 'energy:oil'
            params: Request parameters of the failed fetch (symbol, coin, ...)

        Returns:
            TimeSeries with finite, strictly positive values
        """
        with self._lock:
            return self._generate(key, params)

    def _generate(self, key: str, params: Optional[Mapping[str, Any]]) -> TimeSeries:
        params = params or {}
        prefix, _, ident = key.partition(':')

        if prefix == 'equity':
            symbol = str(params.get('symbol', ident)).upper()
            base = 250.0 if symbol == 'TSLA' else 450.0
            labels = _index_labels(30)
            values = [base + math.sin(i / 5) * 8 + i * 0.5 for i in range(30)]
            values = self._perturb(values, scale=base * 0.002)

        elif prefix == 'crypto':
            coin = str(params.get('coin', ident)).lower()
            base = 2000.0 if coin == 'ethereum' else 35000.0
            labels = _index_labels(30)
            values = [base + math.sin(i / 4) * (base * 0.05) + i * (base * 0.003) for i in range(30)]
            values = self._perturb(values, scale=base * 0.002)

        elif prefix == 'energy':
            series = str(params.get('series', ident))
            base, drift, noise = (2.5, 0.005, 0.3) if series in ('gas', 'NG.RNGWHHD.D') else (60.0, 0.02, 2.0)
            labels = self._dated_labels(365)
            values = [base + (i + 1) * drift for i in range(365)]
            values = self._perturb(values, scale=noise / 2, uniform=True)

        elif prefix == 'macro':
            labels = [str(2015 + i) for i in range(20)]
            values = list(self._rng.uniform(100, 200, size=20))

        else:
            labels = _index_labels(30)
            values = [100 + math.sin(i / 3) * 5 + i for i in range(30)]
            values = self._perturb(values, scale=0.5)

        return TimeSeries(key=key, labels=tuple(labels), values=tuple(_floor(values)))

    def generate_record(self, key: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Generate a placeholder scalar record (quote, fundamentals, ...).

        Args:
            key: Logical key, e.g. 'quote:AAPL', 'options:TSLA', 'crypto-global'
            params: Request parameters of the failed fetch

        Returns:
            Record with the same fields the live client would produce
        """
        with self._lock:
            return self._generate_record(key, params)

    def _generate_record(self, key: str, params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        params = params or {}
        prefix, _, ident = key.partition(':')
        symbol = str(params.get('symbol', ident)).upper()

        if prefix == 'quote':
            return {
                'symbol': symbol,
                'price': float(100 + self._rng.random() * 100),
                'change': float((self._rng.random() - 0.5) * 2),
            }

        if prefix == 'fundamentals':
            return {
                'symbol': symbol,
                'pe': float(self._rng.uniform(10, 35)),
                'market_cap': float(self._rng.uniform(1e10, 2e12)),
                'eps': float(self._rng.uniform(1, 12)),
                'beta': float(0.8 + self._rng.random() * 0.5),
                'dividend_yield': float(self._rng.uniform(0, 0.03)),
            }

        if prefix == 'crypto-global':
            return {
                'total_market_cap': float(self._rng.uniform(1.5e12, 2.5e12)),
                'total_volume': float(self._rng.uniform(5e10, 1.5e11)),
                'market_cap_change_24h': float((self._rng.random() - 0.5) * 6),
            }

        if prefix == 'options':
            return option_smile(symbol)

        if prefix == 'options-surface':
            return option_surface(symbol)

        if prefix == 'energy-mix':
            return {
                'labels': list(MONTHS),
                'datasets': {
                    fuel: [float(v) for v in self._rng.uniform(0, 100, size=len(MONTHS)) + base]
                    for fuel, base in FUEL_MIX_BASE.items()
                },
            }

        if prefix == 'crypto-top':
            return {
                coin: {
                    'price': float(price + self._rng.random() * price_range),
                    'market_cap': float(cap + self._rng.random() * cap_range),
                    'change': float((self._rng.random() - 0.5) * change_range),
                }
                for coin, (price, price_range, cap, cap_range, change_range) in TOP_COIN_RANGES.items()
            }

        return {}

    def factor_loadings(
        self,
        symbols: Sequence[str],
        factors: Sequence[str] = FACTORS
    ) -> Dict[str, List[float]]:
        """
        Per-symbol factor loadings in [-1, 1].

        Seeded by symbol name so the same symbol always gets the same
        loadings, independent of the generator's own seed.
        """
        loadings = {}
        for symbol in symbols:
            rng = np.random.default_rng(zlib.crc32(symbol.upper().encode('utf-8')))
            loadings[symbol] = [float(x) for x in rng.uniform(-1, 1, size=len(factors))]
        return loadings

    def _perturb(self, values: List[float], scale: float, uniform: bool = False) -> List[float]:
        if uniform:
            noise = self._rng.uniform(-scale, scale, size=len(values))
        else:
            noise = self._rng.normal(0, scale, size=len(values))
        return [v + float(n) for v, n in zip(values, noise)]

    def _dated_labels(self, days: int) -> List[str]:
        today = self._today or date.today()
        return [(today - timedelta(days=i)).isoformat() for i in range(days - 1, -1, -1)]


def option_smile(underlying: str) -> Dict[str, Any]:
    """
    Synthetic option chain with a volatility smile.

    Strikes 80..120 step 5 (x10 for TSLA); IV rises away from the money,
    open interest peaks at the money, delta is a sigmoid around ATM.
    """
    underlying = underlying.upper()
    multiplier = 10 if underlying == 'TSLA' else 1
    base_vol = 0.6 if underlying == 'TSLA' else 0.3

    contracts = []
    for i in range(80, 121, 5):
        moneyness = i - 100
        contracts.append({
            'strike': float(i * multiplier),
            'iv': round((base_vol + abs(moneyness) / 200) * 100, 2),
            'open_interest': float(round(max(1000 - moneyness ** 2 * 10, 100))),
            'delta': round(1 / (1 + math.exp(-moneyness / 20)), 3),
            'gamma': round(math.exp(-(moneyness / 15) ** 2) * 0.1, 4),
            'theta': round(-0.02 - 0.01 * math.exp(-(moneyness / 20) ** 2), 4),
            'vega': round(math.exp(-(moneyness / 18) ** 2) * 0.2, 4),
        })

    return {'underlying': underlying, 'expiration': None, 'contracts': contracts}


def _index_labels(n: int) -> List[str]:
    return [f"Day {i + 1}" for i in range(n)]


def _floor(values: List[float]) -> List[float]:
    return [v if math.isfinite(v) and v > PRICE_FLOOR else PRICE_FLOOR for v in values]


def option_surface(underlying: str, expiries: Sequence[str] = ('1M', '2M', '3M', '4M', '5M', '6M')) -> Dict[str, Any]:
    """
    Synthetic IV surface: the option_smile curve, lifted 2% per later expiry.
    """
    smile = option_smile(underlying)
    strikes = [c['strike'] for c in smile['contracts']]
    ivs = [c['iv'] for c in smile['contracts']]

    return {
        'underlying': smile['underlying'],
        'strikes': strikes,
        'expiries': list(expiries),
        'iv_by_expiry': {
            expiry: [round(iv * (1 + idx * 0.02), 2) for iv in ivs]
            for idx, expiry in enumerate(expiries)
        },
    }
