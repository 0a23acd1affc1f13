"""Tabular reports of aggregated event probabilities."""

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .exclusive import independent_exclusive
from .marginals import EmpiricalDistribution


def _event_names(num_events: int, event_names: Optional[Sequence[str]]) -> List[str]:
    if event_names is None:
        return [f"E{i + 1}" for i in range(num_events)]
    if len(event_names) != num_events:
        raise ValueError(f"Expected {num_events} event names, got {len(event_names)}")
    return list(event_names)


def create_exclusive_report(probabilities: Sequence[float],
                            exclusive_probabilities: Sequence[float],
                            indicators: np.ndarray,
                            event_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Create a DataFrame report of exclusive occurrence patterns.

    Args:
        probabilities: Marginal probability of each event
        exclusive_probabilities: Probability of each pattern (one per indicator row)
        indicators: Occurrence patterns (patterns x events)
        event_names: Optional event labels (default E1, E2, ...)

    Returns:
        DataFrame with one row per pattern, sorted by probability
    """
    p = np.asarray(probabilities, dtype=float)
    values = np.asarray(exclusive_probabilities, dtype=float)
    indicators = np.asarray(indicators)
    if indicators.shape != (values.size, p.size):
        raise ValueError(f"Indicators must have shape ({values.size}, {p.size}), "
                         f"got {indicators.shape}")
    names = _event_names(p.size, event_names)
    independent = independent_exclusive(p, indicators)
    union = float(np.sum(values))

    data = []
    for row, value, baseline in zip(indicators, values, independent):
        data.append({
            'Pattern': ' & '.join(n for n, flag in zip(names, row) if flag),
            'Num_Events': int(np.sum(row)),
            'Probability': value,
            'Independent_Probability': baseline,
            'Share_of_Union': value / union if union > 0 else 0.0
        })

    df = pd.DataFrame(data)
    df = df.sort_values('Probability', ascending=False, kind='stable')
    return df


def create_cif_report(cifs: Sequence[EmpiricalDistribution],
                      event_names: Optional[Sequence[str]] = None,
                      x_values: Optional[Sequence[float]] = None) -> pd.DataFrame:
    """Create a DataFrame report of cumulative incidence functions.

    Args:
        cifs: One cumulative incidence function per cause
        event_names: Optional cause labels (default E1, E2, ...)
        x_values: Points to evaluate (default: the first function's x values)

    Returns:
        DataFrame with an 'x' column, one column per cause and their 'Total'
    """
    if len(cifs) == 0:
        raise ValueError("At least one cumulative incidence function is required")
    names = _event_names(len(cifs), event_names)
    x = cifs[0].x_values if x_values is None else np.asarray(x_values, dtype=float)

    df = pd.DataFrame({'x': x})
    for name, cif in zip(names, cifs):
        df[name] = np.asarray(cif.cdf(x), dtype=float)
    df['Total'] = df[names].sum(axis=1)
    return df
