"""
Fallback resolver - always-succeeding fetch for one logical key.
Composes: Providers (in order) → Cache write-through → Cache read → Synthetic.
"""

import logging
import threading
from typing import Any, Dict, Mapping, Optional, Sequence

from ingestion.providers.base import ProviderClient, ProviderError
from ingestion.series import Provenance, ResolvedRecord, ResolvedSeries, SeriesError, TimeSeries
from ingestion.synthetic import SyntheticGenerator
from storage.cache_store import CacheStore

# Set up logger
logger = logging.getLogger(__name__)


class FallbackResolver:
    """
    Resolves a key through provider chain, cache and synthetic tiers.

    Each resolution takes a per-key generation number. A live result is
    written to the cache only if no newer generation for that key has
    already been written, so a slow superseded refresh cannot overwrite
    fresher data.

    Args:
        cache: Shared cache store
        generator: Synthetic data source for the last tier
    """

    def __init__(self, cache: CacheStore, generator: Optional[SyntheticGenerator] = None):
        self.cache = cache
        self.generator = generator or SyntheticGenerator()
        self._lock = threading.Lock()
        self._issued: Dict[str, int] = {}
        self._committed: Dict[str, int] = {}

    def next_generation(self, key: str) -> int:
        """Reserve the next generation number for key."""
        with self._lock:
            generation = self._issued.get(key, 0) + 1
            self._issued[key] = generation
            return generation

    def resolve(
        self,
        key: str,
        provider_chain: Sequence[ProviderClient],
        params: Optional[Mapping[str, Any]] = None,
        generation: Optional[int] = None
    ) -> ResolvedSeries:
        """
        Resolve a time series. Never raises for data failures.

        Args:
            key: Logical key, also the cache key
            provider_chain: Clients to try in order
            params: Request parameters passed to every client
            generation: Pre-reserved generation (reserved here if None)

        Returns:
            ResolvedSeries tagged LIVE, STALE or SYNTHETIC
        """
        params = dict(params or {})
        params.setdefault('key', key)
        if generation is None:
            generation = self.next_generation(key)

        for client in provider_chain:
            try:
                series = client.fetch(params)
            except ProviderError as e:
                logger.error(f"{key}: {e}")
                continue

            if not isinstance(series, TimeSeries):
                logger.error(f"{key}: [{client.name}] returned {type(series).__name__}, expected TimeSeries")
                continue

            if series.key != key:
                series = TimeSeries(key=key, labels=series.labels, values=series.values)

            self._commit(key, generation, series.to_payload())
            logger.info(f"{key}: resolved live from {client.name} ({len(series)} points)")
            return ResolvedSeries(series=series, provenance=Provenance.LIVE, provider=client.name)

        entry = self.cache.load_entry(key)
        if entry is not None:
            try:
                series = TimeSeries.from_payload(entry.payload)
            except SeriesError as e:
                logger.warning(f"{key}: cached entry is corrupt, ignoring: {e}")
            else:
                logger.warning(f"{key}: all providers failed, serving cache from {entry.timestamp.isoformat()}")
                return ResolvedSeries(series=series, provenance=Provenance.STALE, cached_at=entry.timestamp)

        logger.warning(f"{key}: no provider or cache data, serving synthetic series")
        return ResolvedSeries(series=self.generator.generate(key, params), provenance=Provenance.SYNTHETIC)

    def resolve_record(
        self,
        key: str,
        provider_chain: Sequence[ProviderClient],
        params: Optional[Mapping[str, Any]] = None,
        generation: Optional[int] = None
    ) -> ResolvedRecord:
        """
        Resolve a scalar record (quote, fundamentals, ...) with the same
        tiers as `resolve`.

        Returns:
            ResolvedRecord tagged LIVE, STALE or SYNTHETIC
        """
        params = dict(params or {})
        params.setdefault('key', key)
        if generation is None:
            generation = self.next_generation(key)

        for client in provider_chain:
            try:
                data = client.fetch(params)
            except ProviderError as e:
                logger.error(f"{key}: {e}")
                continue

            if not isinstance(data, dict):
                logger.error(f"{key}: [{client.name}] returned {type(data).__name__}, expected dict")
                continue

            self._commit(key, generation, data)
            logger.info(f"{key}: resolved live from {client.name}")
            return ResolvedRecord(key=key, data=data, provenance=Provenance.LIVE, provider=client.name)

        entry = self.cache.load_entry(key)
        if entry is not None:
            if isinstance(entry.payload, dict):
                logger.warning(f"{key}: all providers failed, serving cache from {entry.timestamp.isoformat()}")
                return ResolvedRecord(
                    key=key, data=entry.payload, provenance=Provenance.STALE, cached_at=entry.timestamp
                )
            logger.warning(f"{key}: cached entry is corrupt, ignoring")

        logger.warning(f"{key}: no provider or cache data, serving synthetic record")
        return ResolvedRecord(
            key=key, data=self.generator.generate_record(key, params), provenance=Provenance.SYNTHETIC
        )

    def _commit(self, key: str, generation: int, payload: Any) -> bool:
        # Held across the save so commits for one key reach the cache in generation order
        with self._lock:
            if generation <= self._committed.get(key, 0):
                logger.info(f"{key}: generation {generation} superseded, cache write skipped")
                return False
            self._committed[key] = generation
            self.cache.save(key, payload)
            return True
