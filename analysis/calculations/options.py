"""
Option chain summary utilities.
Pure functions - averages over a chain record, ignoring absent values.
"""

import math
from typing import Any, Dict, Iterable, Mapping, Optional

GREEKS = ('delta', 'gamma', 'theta', 'vega')


def _mean(values: Iterable[Any]) -> Optional[float]:
    present = [
        float(v) for v in values
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
    ]
    if not present:
        return None
    return sum(present) / len(present)


def option_chain_stats(chain: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Summarise an option chain record.

    Args:
        chain: Record with a 'contracts' list of
            {'strike', 'iv', 'open_interest', 'delta', 'gamma', 'theta', 'vega'}

    Returns:
        {'contracts', 'average_iv', 'total_open_interest', 'average_delta',
         'average_gamma', 'average_theta', 'average_vega'}.
        Averages are None when no contract reports the field.
    """
    contracts = chain.get('contracts') or []

    open_interest = [
        c.get('open_interest') for c in contracts
        if isinstance(c.get('open_interest'), (int, float)) and math.isfinite(c['open_interest'])
    ]

    stats = {
        'contracts': len(contracts),
        'average_iv': _mean(c.get('iv') for c in contracts),
        'total_open_interest': float(sum(open_interest)),
    }
    for greek in GREEKS:
        stats[f"average_{greek}"] = _mean(c.get(greek) for c in contracts)

    return stats
