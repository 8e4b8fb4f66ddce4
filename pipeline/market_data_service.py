"""
Market data service - the consumer-facing entry point.
Composes: Catalog → FallbackResolver → Normalizer → Analytics.
"""

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from analysis.calculations.options import option_chain_stats
from analysis.portfolio_analytics import AnalyticsResult, PortfolioHolding, get_analytics
from ingestion.series import ResolvedRecord, ResolvedSeries
from ingestion.synthetic import SyntheticGenerator
from ingestion.transforms.normalizers import AXIS_FIRST, align, rebase
from pipeline.catalog import RECORD, SERIES, CatalogError, ProviderCatalog
from pipeline.fallback_resolver import FallbackResolver
from pipeline.scheduler import RefreshScheduler
from pipeline.settings import Settings, load_settings
from storage.cache_store import CacheStore

# Set up logger
logger = logging.getLogger(__name__)


class MarketDataService:
    """
    Always-succeeding access to named series, records and analytics.

    Every collaborator can be injected; anything omitted is built from
    settings.

    Args:
        settings: Loaded settings (loaded from YAML/env if None)
        cache: Shared cache store
        catalog: Logical key catalogue
        resolver: Fallback resolver
        generator: Synthetic source used by a resolver built here
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[CacheStore] = None,
        catalog: Optional[ProviderCatalog] = None,
        resolver: Optional[FallbackResolver] = None,
        generator: Optional[SyntheticGenerator] = None
    ):
        self.settings = settings or load_settings()

        cache_settings = self.settings.section('cache')
        self.cache = cache or CacheStore(
            db_path=cache_settings['db_path'], namespace=cache_settings['namespace']
        )
        self.catalog = catalog or ProviderCatalog(self.settings)
        self.resolver = resolver or FallbackResolver(self.cache, generator)

        max_workers = int(self.settings.section('refresh').get('max_workers', 4))
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='fetch')

    def get_series(self, key: str) -> ResolvedSeries:
        """
        Named time series, e.g. 'equity:AAPL' or 'energy:oil'.

        Raises:
            CatalogError: If key is unknown or names a record
        """
        entry = self.catalog.lookup(key)
        if entry.kind != SERIES:
            raise CatalogError(f"{key} is a record, use get_record")
        return self.resolver.resolve(key, entry.chain, entry.params)

    def get_record(self, key: str) -> ResolvedRecord:
        """
        Scalar record, e.g. 'quote:AAPL', 'fundamentals:MSFT', 'crypto-global'.

        Raises:
            CatalogError: If key is unknown or names a series
        """
        entry = self.catalog.lookup(key)
        if entry.kind != RECORD:
            raise CatalogError(f"{key} is a series, use get_series")
        return self.resolver.resolve_record(key, entry.chain, entry.params)

    def get(self, key: str):
        """Series or record, whichever the key names."""
        if self.catalog.lookup(key).kind == RECORD:
            return self.get_record(key)
        return self.get_series(key)

    def get_many(self, keys: Sequence[str]) -> Dict[str, ResolvedSeries]:
        """Resolve several series concurrently, keyed by logical key."""
        # Fail fast on bad keys before any network call
        for key in keys:
            self.catalog.lookup(key)

        futures = {key: self._executor.submit(self.get_series, key) for key in dict.fromkeys(keys)}
        return {key: future.result() for key, future in futures.items()}

    def get_comparison(self, keys: Sequence[str], axis: str = AXIS_FIRST) -> Dict[str, ResolvedSeries]:
        """
        Series aligned on one label axis and rebased to 100.

        Provenance of each input is kept on its output.
        """
        resolved = self.get_many(keys)
        aligned = align({key: r.series for key, r in resolved.items()}, axis=axis)

        return {
            key: ResolvedSeries(
                series=rebase(aligned[key]),
                provenance=r.provenance,
                provider=r.provider,
                cached_at=r.cached_at,
            )
            for key, r in resolved.items()
        }

    def get_analytics(
        self,
        holdings: Sequence[PortfolioHolding],
        series_by_holding: Optional[Mapping[str, Any]] = None,
        benchmark: Optional[str] = None,
        factor_loadings: Optional[Mapping[str, Sequence[float]]] = None
    ) -> AnalyticsResult:
        """
        Portfolio analytics. Equity series are resolved for any holding
        not covered by series_by_holding.
        """
        series = dict(series_by_holding or {})
        missing = [h.symbol for h in holdings if h.symbol not in series]
        if missing:
            resolved = self.get_many([f"equity:{symbol}" for symbol in missing])
            for symbol in missing:
                series[symbol] = resolved[f"equity:{symbol}"]

        return get_analytics(holdings, series, benchmark=benchmark, factor_loadings=factor_loadings)

    def get_option_stats(self, underlying: str) -> Dict[str, Any]:
        """Option chain summary for the nearest expiry, with provenance."""
        record = self.get_record(f"options:{underlying.upper()}")
        stats = option_chain_stats(record.data)
        stats['underlying'] = underlying.upper()
        stats['expiration'] = record.data.get('expiration')
        stats['provenance'] = record.provenance.value
        return stats

    def build_scheduler(
        self,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None
    ) -> RefreshScheduler:
        """
        Scheduler with the configured jobs: market series every
        quotes_interval_s, watch-list quotes every watchlist_interval_s.
        """
        refresh = self.settings.section('refresh')
        scheduler = RefreshScheduler(
            refresh=self.get,
            clock=clock,
            max_workers=int(refresh.get('max_workers', 4)),
            rng=rng,
        )

        jitter = float(refresh.get('jitter_s', 0))
        scheduler.add_job(
            'markets',
            list(self.settings.values.get('markets', [])),
            float(refresh['quotes_interval_s']),
            jitter,
        )
        scheduler.add_job(
            'watchlist',
            [f"quote:{symbol}" for symbol in self.settings.values.get('watchlist', [])],
            float(refresh['watchlist_interval_s']),
            jitter,
        )
        return scheduler

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self.cache.close()
