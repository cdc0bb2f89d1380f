"""
Random-walk parameter perturbation.

Perturbations are applied on the estimation scale. The per-parameter,
per-time sd schedule is built from an `rw_sd(...)` specification:

    rw_sd(rho=0.02, sigma=0.02, X1_0=ivp(0.1))

Each value may be a scalar (constant over time), a length-T array, a
callable mapping the observation times to a length-T array, or `ivp(sd)`
for initial-value parameters that are perturbed only at the first
observation time.
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Union
from numpy.random import Generator

from .errors import ConfigurationError


@dataclass(frozen=True)
class ivp:
    """
    Initial-value-parameter sd: nonzero only at the `lag`-th observation time.

    Attributes:
        sd: Random-walk sd at that time
        lag: 1-based observation index carrying the perturbation
    """
    sd: float
    lag: int = 1

    def __call__(self, times: np.ndarray) -> np.ndarray:
        times = np.asarray(times)
        if not 1 <= self.lag <= len(times):
            raise ConfigurationError(
                f"ivp lag {self.lag} outside 1..{len(times)}"
            )
        return self.sd * (times == times[self.lag - 1]).astype(np.float64)


SDValue = Union[float, Sequence[float], np.ndarray, Callable[[np.ndarray], np.ndarray]]


class RandomWalkSD:
    """
    Named random-walk sd specification.

    Parameters not named are not perturbed.
    """

    def __init__(self, sds: Dict[str, SDValue]):
        if not sds:
            raise ConfigurationError("'rw_sd' must name at least one parameter")
        self.sds = dict(sds)

    @property
    def names(self) -> List[str]:
        return list(self.sds)

    def __repr__(self) -> str:
        return f"RandomWalkSD({self.sds!r})"


def rw_sd(**sds: SDValue) -> RandomWalkSD:
    """Build a random-walk sd specification from keyword arguments."""
    return RandomWalkSD(sds)


def perturbation_kernel_sd(
    spec: Union[RandomWalkSD, Dict[str, SDValue], np.ndarray],
    times: np.ndarray,
    param_names: Sequence[str],
) -> np.ndarray:
    """
    Expand an sd specification into a [P, T] matrix.

    Args:
        spec: RandomWalkSD, dict of name -> sd value, or a ready [P, T] matrix
        times: [T] observation times
        param_names: Names of all P model parameters (row order)

    Returns:
        sd: [P, T] non-negative random-walk sds
    """
    times = np.asarray(times, dtype=np.float64)
    n_times = len(times)
    param_names = list(param_names)

    if isinstance(spec, np.ndarray):
        sd = np.asarray(spec, dtype=np.float64)
        if sd.shape != (len(param_names), n_times):
            raise ConfigurationError(
                f"'rw_sd' matrix has shape {sd.shape}, expected "
                f"{(len(param_names), n_times)}"
            )
    else:
        if isinstance(spec, dict):
            spec = RandomWalkSD(spec)
        unknown = [name for name in spec.names if name not in param_names]
        if unknown:
            raise ConfigurationError(
                f"'rw_sd' names parameters not in the model: {unknown}"
            )

        sd = np.zeros((len(param_names), n_times))
        for name, value in spec.sds.items():
            if callable(value):
                row = value(times)
            else:
                row = value
            row = np.asarray(row, dtype=np.float64)
            if row.ndim == 0:
                row = np.full(n_times, float(row))
            if row.shape != (n_times,):
                raise ConfigurationError(
                    f"'rw_sd' for '{name}' must be a scalar or length-{n_times} schedule"
                )
            sd[param_names.index(name)] = row

    if np.any(sd < 0) or not np.all(np.isfinite(sd)):
        raise ConfigurationError("'rw_sd' values must be finite and non-negative")
    return sd


def randwalk_perturbation(
    params: np.ndarray,
    sd: np.ndarray,
    rng: Generator,
) -> np.ndarray:
    """
    Add independent Gaussian random-walk noise to a parameter population.

    Coordinates with zero sd are copied unchanged.

    Args:
        params: [Nparam, P] parameters on the estimation scale
        sd: [P] noise sds for this step
        rng: NumPy random generator

    Returns:
        perturbed: [Nparam, P]
    """
    params = np.asarray(params, dtype=np.float64)
    sd = np.asarray(sd, dtype=np.float64)
    if sd.shape != (params.shape[1],):
        raise ValueError(f"sd has shape {sd.shape}, expected ({params.shape[1]},)")

    perturbed = params.copy()
    active = np.flatnonzero(sd > 0)
    if len(active) > 0:
        noise = rng.standard_normal((params.shape[0], len(active)))
        perturbed[:, active] += noise * sd[active]
    return perturbed
