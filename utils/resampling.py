"""
Weight arithmetic and elite resampling for bagged filters.
"""

import logging
import numpy as np
from numpy.random import Generator
from scipy.special import logsumexp

logger = logging.getLogger(__name__)


def logmeanexp(x: np.ndarray, axis: int = None) -> np.ndarray:
    """
    Numerically stable log(mean(exp(x))).

    Args:
        x: Array of log values (must be non-empty along axis)
        axis: Axis to average over (None for all entries)

    Returns:
        log-mean-exp of x along axis
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.size if axis is None else x.shape[axis]
    if n == 0:
        raise ValueError("logmeanexp of an empty sequence is undefined")
    return logsumexp(x, axis=axis) - np.log(n)


def floor_log_densities(log_densities: np.ndarray, tol: float) -> np.ndarray:
    """
    Replace non-finite log densities with log(tol).

    Args:
        log_densities: [U, R] log conditional densities
        tol: Positive density floor

    Returns:
        floored: copy with every non-finite entry set to log(tol)
    """
    floored = np.array(log_densities, dtype=np.float64, copy=True)
    floored[~np.isfinite(floored)] = np.log(tol)
    return floored


def quantile_elite_resample(
    log_weights: np.ndarray,
    prop: float,
    rng: Generator,
) -> np.ndarray:
    """
    Quantile elite resampling of parameter replicates.

    Parameters whose weight strictly exceeds the (1 - prop) quantile form the
    elite set. The elite set is kept in order and the remaining slots are
    filled from it:
    - more than one elite: uniform draws with replacement
    - exactly one elite: that parameter repeated
    - no elite (e.g. all weights tied): the whole population, unchanged

    Args:
        log_weights: [Nparam] Per-parameter log importance weights
        prop: Fraction of parameters kept, in (0, 1]
        rng: NumPy random generator

    Returns:
        order: [Nparam] Indices into the previous population
    """
    log_weights = np.asarray(log_weights, dtype=np.float64)
    n_param = len(log_weights)

    threshold = np.quantile(log_weights, 1.0 - prop)
    elite = np.flatnonzero(log_weights > threshold)
    n_fill = n_param - len(elite)

    if len(elite) > 1:
        fill = rng.choice(elite, size=n_fill, replace=True)
    elif len(elite) == 1:
        fill = np.repeat(elite, n_fill)
    else:
        logger.debug("no parameter above the %.3g quantile; population kept", 1.0 - prop)
        return np.arange(n_param)

    return np.concatenate([elite, fill]).astype(int)


def expand_block_indices(order: np.ndarray, n_rep_per_param: int) -> np.ndarray:
    """
    Expand a parameter ordering to replicate granularity.

    Parameter k owns replicates [k*R, (k+1)*R). Each selected parameter
    contributes its whole contiguous block, so the output keeps the
    block structure.

    Args:
        order: [Nparam] Parameter indices
        n_rep_per_param: Replicates per parameter (R)

    Returns:
        indices: [Nparam * R] Replicate indices
    """
    order = np.asarray(order, dtype=int)
    offsets = np.arange(n_rep_per_param)
    return (order[:, np.newaxis] * n_rep_per_param + offsets).ravel()


def reindex(array: np.ndarray, permutation: np.ndarray, axis: int = 0) -> np.ndarray:
    """
    Apply a replicate permutation along one axis.

    Args:
        array: Array to reorder
        permutation: Indices along axis
        axis: Replicate axis

    Returns:
        Reordered copy
    """
    return np.take(array, permutation, axis=axis)


def block_of(replicate: np.ndarray, n_rep_per_param: int) -> np.ndarray:
    """Parameter index owning each (0-based) replicate index."""
    return np.asarray(replicate) // n_rep_per_param
