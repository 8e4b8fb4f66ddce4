"""
Normalizers for putting several series on a common footing.
Pure functions - no IO, network, or side effects.
Missing points are carried through as None, never interpolated.
"""

from datetime import date
from typing import Dict, List, Mapping, Optional

from ingestion.series import TimeSeries


class NormalizationError(ValueError):
    """Raised when series cannot be aligned."""
    pass


AXIS_FIRST = 'first'
AXIS_UNION = 'union'


def align(
    series_by_name: Mapping[str, TimeSeries],
    axis: str = AXIS_FIRST
) -> Dict[str, TimeSeries]:
    """
    Put every series on one shared label axis.

    axis='first' uses the labels of the first series that has any;
    axis='union' uses every label seen, in first-seen order (sorted
    chronologically when all labels are ISO dates).

    Args:
        series_by_name: Mapping of display name to series
        axis: 'first' or 'union'

    Returns:
        Mapping with the same names; all outputs share the same labels,
        points a series lacks become None

    Raises:
        NormalizationError: If axis is unknown
    """
    if axis not in (AXIS_FIRST, AXIS_UNION):
        raise NormalizationError(f"Unknown axis: {axis}")

    if not series_by_name:
        return {}

    labels = _shared_labels(list(series_by_name.values()), axis)

    aligned = {}
    for name, series in series_by_name.items():
        # Later duplicates win, same as a dict rebuild in the provider
        by_label = dict(zip(series.labels, series.values))
        aligned[name] = TimeSeries(
            key=series.key,
            labels=tuple(labels),
            values=tuple(by_label.get(label) for label in labels)
        )

    return aligned


def rebase(series: TimeSeries, level: float = 100.0) -> TimeSeries:
    """
    Rescale a series so its first present value equals `level`.

    Formula: v'_t = v_t / base * level, base = first non-absent value.
    If there is no present value, or it is zero, base defaults to 1.

    Args:
        series: Series to rescale
        level: Index level of the base point

    Returns:
        New rebased series with absent points kept absent
    """
    base = first_value(series)
    if base is None or base == 0:
        base = 1.0

    return series.with_values(
        [None if v is None else (v / base) * level for v in series.values]
    )


def rebase_all(
    series_by_name: Mapping[str, TimeSeries],
    level: float = 100.0
) -> Dict[str, TimeSeries]:
    """Rebase every series in a mapping."""
    return {name: rebase(series, level) for name, series in series_by_name.items()}


def first_value(series: TimeSeries) -> Optional[float]:
    """First present value, or None."""
    for v in series.values:
        if v is not None:
            return v
    return None


def latest_value(series: TimeSeries) -> Optional[float]:
    """Last present value, or None."""
    for v in reversed(series.values):
        if v is not None:
            return v
    return None


def _shared_labels(series_list: List[TimeSeries], axis: str) -> List[str]:
    if axis == AXIS_FIRST:
        for series in series_list:
            if series.labels:
                return list(series.labels)
        return []

    labels = []
    seen = set()
    for series in series_list:
        for label in series.labels:
            if label not in seen:
                seen.add(label)
                labels.append(label)

    if labels and all(_is_iso_date(label) for label in labels):
        labels.sort()

    return labels


def _is_iso_date(label: str) -> bool:
    try:
        date.fromisoformat(label)
    except ValueError:
        return False
    return True
