"""
Canonical series and record types shared by providers, cache and analytics.
Pure data containers - no IO.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class SeriesError(ValueError):
    """Raised when a series violates its shape invariants."""
    pass


class Provenance(str, Enum):
    """Where a resolved value came from."""
    LIVE = 'live'
    STALE = 'stale'
    SYNTHETIC = 'synthetic'


@dataclass(frozen=True)
class TimeSeries:
    """
    Named series of labelled observations.

    labels are date or index strings; values are floats or None (absent).
    Instances are immutable - transforms return new series.
    """
    key: str
    labels: tuple
    values: tuple

    def __post_init__(self):
        object.__setattr__(self, 'labels', tuple(str(label) for label in self.labels))
        object.__setattr__(self, 'values', tuple(
            None if v is None else float(v) for v in self.values
        ))

        if len(self.labels) != len(self.values):
            raise SeriesError(
                f"Series {self.key}: {len(self.labels)} labels but {len(self.values)} values"
            )

        for v in self.values:
            if v is not None and not math.isfinite(v):
                raise SeriesError(f"Series {self.key}: non-finite value {v}")

    def __len__(self) -> int:
        return len(self.values)

    @property
    def present_values(self) -> List[float]:
        """Values with absent points dropped."""
        return [v for v in self.values if v is not None]

    def with_values(self, values: Sequence[Optional[float]]) -> 'TimeSeries':
        return TimeSeries(key=self.key, labels=self.labels, values=tuple(values))

    def to_payload(self) -> Dict[str, Any]:
        """JSON-serialisable form used by the cache."""
        return {
            'key': self.key,
            'labels': list(self.labels),
            'values': list(self.values),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> 'TimeSeries':
        """
        Rebuild a series from its cached payload.

        Raises:
            SeriesError: If the payload is not a well-formed series
        """
        if not isinstance(payload, dict):
            raise SeriesError(f"Series payload must be an object, got {type(payload).__name__}")

        missing = {'key', 'labels', 'values'} - set(payload.keys())
        if missing:
            raise SeriesError(f"Series payload missing keys: {missing}")

        labels = payload['labels']
        values = payload['values']
        if not isinstance(labels, list) or not isinstance(values, list):
            raise SeriesError("Series payload labels/values must be lists")

        for v in values:
            if v is not None and (isinstance(v, bool) or not isinstance(v, (int, float))):
                raise SeriesError(f"Series payload value must be numeric or null, got {v!r}")

        return cls(key=str(payload['key']), labels=tuple(labels), values=tuple(values))


@dataclass(frozen=True)
class ResolvedSeries:
    """A series tagged with the tier of the fallback chain that produced it."""
    series: TimeSeries
    provenance: Provenance
    provider: Optional[str] = None
    cached_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.series.key

    @property
    def labels(self) -> tuple:
        return self.series.labels

    @property
    def values(self) -> tuple:
        return self.series.values

    @property
    def is_live(self) -> bool:
        return self.provenance == Provenance.LIVE


@dataclass(frozen=True)
class ResolvedRecord:
    """A scalar record (quote, fundamentals, ...) tagged with provenance."""
    key: str
    data: Dict[str, Any] = field(default_factory=dict)
    provenance: Provenance = Provenance.LIVE
    provider: Optional[str] = None
    cached_at: Optional[datetime] = None

    @property
    def is_live(self) -> bool:
        return self.provenance == Provenance.LIVE
