"""
Bounded history of past conditional log-densities.

Neighborhoods may reach back in time, so the conditional densities of
earlier observations must be kept for as long as some unit's neighborhood
at the next time refers to them. Entries follow the same replicate
permutation as the live ensemble.
"""

import numpy as np
from typing import Callable, Optional, Sequence, Tuple

from .resampling import reindex


Neighborhood = Callable[[int, int], Sequence[Tuple[int, int]]]


def required_lookback(nbhd: Neighborhood, time: int, n_units: int) -> int:
    """
    Number of past observation times needed by the neighborhoods at `time`.

    Args:
        nbhd: nbhd(time, unit) -> [(unit, time), ...]
        time: Observation index (1-based) the history must serve
        n_units: Number of spatial units

    Returns:
        max over units of (time - earliest neighbor time), floored at 0
    """
    max_lookback = 0
    for unit in range(n_units):
        nbhd_times = [neighbor_time for _, neighbor_time in nbhd(time, unit)]
        if not nbhd_times:
            continue
        max_lookback = max(max_lookback, time - min(nbhd_times))
    return int(max_lookback)


def lagged_entry(entries: Optional[np.ndarray], lag: int) -> np.ndarray:
    """
    Entry of a history stack from `lag` observation times ago.

    Args:
        entries: [depth, U, R] log densities, oldest first (None if depth 0)
        lag: Steps back from the time being processed, 1 <= lag <= depth

    Returns:
        [U, R] log densities
    """
    depth = 0 if entries is None else entries.shape[0]
    if not 1 <= lag <= depth:
        raise ValueError(
            f"neighborhood reaches {lag} steps back but only {depth} are retained"
        )
    return entries[depth - lag]


class HistoryBuffer:
    """
    Stack of past [U, R] log-density matrices, oldest first.

    The newest entry belongs to the most recently processed observation
    time, so `lookup(lag)` returns the matrix of time (current - lag).
    """

    def __init__(self):
        self._entries: Optional[np.ndarray] = None  # [depth, U, R]

    @property
    def depth(self) -> int:
        return 0 if self._entries is None else self._entries.shape[0]

    @property
    def entries(self) -> Optional[np.ndarray]:
        return self._entries

    def clear(self):
        self._entries = None

    def update(
        self,
        log_cond_densities: np.ndarray,
        depth: int,
        permutation: np.ndarray,
    ):
        """
        Retain `depth` time steps of history after a resampling event.

        Args:
            log_cond_densities: [U, R] matrix just computed
            depth: Required lookback for the next observation time
            permutation: [R] replicate indices selected by resampling
        """
        if depth <= 0:
            self.clear()
            return

        newest = log_cond_densities[np.newaxis]
        if depth == 1 or self._entries is None:
            retained = newest
        else:
            retained = np.concatenate([self._entries[-(depth - 1):], newest], axis=0)

        self._entries = reindex(retained, permutation, axis=2)

    def lookup(self, lag: int) -> np.ndarray:
        """[U, R] log densities from `lag` observation times ago."""
        return lagged_entry(self._entries, lag)

    def block(self, columns: slice) -> Optional[np.ndarray]:
        """[depth, U, len] read-only view of one replicate block."""
        if self._entries is None:
            return None
        view = self._entries[:, :, columns]
        view.flags.writeable = False
        return view

    def __repr__(self) -> str:
        shape = None if self._entries is None else self._entries.shape
        return f"HistoryBuffer(depth={self.depth}, shape={shape})"
