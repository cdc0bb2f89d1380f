"""
Neighborhood constructors.

A neighborhood function maps (time, unit) to the (unit, time) pairs whose
conditional densities form that unit's local predictive weight. Times are
1-based observation indices; units are 0-based. The pair (unit, time)
itself is never included: its density enters the weight separately.
"""

from typing import Callable, List, Tuple

NeighborhoodFn = Callable[[int, int], List[Tuple[int, int]]]


def default_neighborhood(time: int, unit: int) -> List[Tuple[int, int]]:
    """
    Same unit at the previous time and the previous unit at this time.
    """
    nbhd = []
    if time > 1:
        nbhd.append((unit, time - 1))
    if unit > 0:
        nbhd.append((unit - 1, time))
    return nbhd


def empty_neighborhood(time: int, unit: int) -> List[Tuple[int, int]]:
    """No neighbors: every unit is weighted by its own density only."""
    return []


def make_lagged_neighborhood(
    unit_lag: int = 1,
    time_lag: int = 1,
    n_units: int = None,
    circular: bool = False,
) -> NeighborhoodFn:
    """
    Neighborhood of the preceding units over a window of past times.

    Includes (v, k) for unit - unit_lag <= v <= unit and
    time - time_lag <= k <= time, excluding (unit, time) itself.
    With circular=True units wrap around a ring of n_units.

    Args:
        unit_lag: How many preceding units to include
        time_lag: How many past observation times to include
        n_units: Number of units (required when circular)
        circular: Wrap unit indices around

    Returns:
        nbhd(time, unit) -> [(unit, time), ...]
    """
    if unit_lag < 0 or time_lag < 0:
        raise ValueError("unit_lag and time_lag must be non-negative")
    if circular and not n_units:
        raise ValueError("n_units is required for a circular neighborhood")

    def nbhd(time: int, unit: int) -> List[Tuple[int, int]]:
        pairs = []
        for k in range(max(1, time - time_lag), time + 1):
            for offset in range(unit_lag, -1, -1):
                v = unit - offset
                if circular:
                    v %= n_units
                elif v < 0:
                    continue
                if (v, k) != (unit, time) and (v, k) not in pairs:
                    pairs.append((v, k))
        return pairs

    return nbhd
