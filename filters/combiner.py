"""
Neighborhood-weighted likelihood combination for one parameter block.

For unit u at observation n the local predictive weight of a replicate is
the product of the conditional densities over u's neighborhood:

    w_P[u] = prod_{(v, k) in nbhd(n, u)} f(y_{v,k} | x_{v,k})

Combined with the unit's own density w_M[u] = w_P[u] * f(y_{u,n} | x_{u,n}),
the block's contribution is

    sum_u log mean_r w_M[u, r] - log mean_r w_P[u, r]

which approximates the log-likelihood increment of observation n using
only local information.
"""

import numpy as np
from typing import Optional, Sequence, Tuple

from ..utils.history import lagged_entry
from ..utils.resampling import logmeanexp


def local_log_weights(
    log_cond_densities: np.ndarray,
    history: Optional[np.ndarray],
    neighborhoods: Sequence[Sequence[Tuple[int, int]]],
    time: int,
) -> np.ndarray:
    """
    Log local combined predictive weights.

    Args:
        log_cond_densities: [U, R] floored log densities at `time`
        history: [depth, U, R] floored log densities of the previous
                 `depth` observation times, oldest first (None if depth 0)
        neighborhoods: neighborhoods[u] = [(unit, time), ...] at `time`
        time: Current observation index (1-based)

    Returns:
        log_weights: [U, R]
    """
    n_units, n_rep = log_cond_densities.shape

    log_loc_comb_pred_weights = np.zeros((n_units, n_rep))
    for unit, nbhd in enumerate(neighborhoods):
        log_prod_cur = np.zeros(n_rep)
        log_prod_past = np.zeros(n_rep)
        for neighbor_u, neighbor_t in nbhd:
            if neighbor_t == time:
                log_prod_cur += log_cond_densities[neighbor_u]
                continue
            lag = time - neighbor_t
            if lag < 0:
                raise ValueError(
                    f"neighborhood of unit {unit} at time {time} refers to "
                    f"future time {neighbor_t}"
                )
            log_prod_past += lagged_entry(history, lag)[neighbor_u]
        log_loc_comb_pred_weights[unit] = log_prod_past + log_prod_cur

    return log_loc_comb_pred_weights


def block_log_weight(
    log_cond_densities: np.ndarray,
    log_loc_comb_pred_weights: np.ndarray,
) -> float:
    """
    Resampling log weight of one parameter block.

    Args:
        log_cond_densities: [U, R] floored log densities
        log_loc_comb_pred_weights: [U, R] local predictive log weights

    Returns:
        sum over units of logmeanexp(w_P + f) - logmeanexp(w_P)
    """
    log_wm = logmeanexp(log_loc_comb_pred_weights + log_cond_densities, axis=1)
    log_wp = logmeanexp(log_loc_comb_pred_weights, axis=1)
    return float(np.sum(log_wm - log_wp))


def combine_block(
    log_cond_densities: np.ndarray,
    history: Optional[np.ndarray],
    neighborhoods: Sequence[Sequence[Tuple[int, int]]],
    time: int,
) -> float:
    """Neighborhood-weighted log weight of one parameter block at `time`."""
    log_loc = local_log_weights(log_cond_densities, history, neighborhoods, time)
    return block_log_weight(log_cond_densities, log_loc)
