"""
Filter configuration and result containers.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional, Union

from ..models.base import SpatPompModel
from ..utils.cooling import CoolingSchedule
from ..utils.errors import ConfigurationError, ModelEvaluationError
from ..utils.perturbation import RandomWalkSD


DEFAULT_TOL = (1e-18) ** 17


def _setting_error(name: str, requirement: str) -> ConfigurationError:
    return ConfigurationError(f"in 'iubf': '{name}' {requirement}")


@dataclass(frozen=True)
class IUBFConfig:
    """
    Settings of an iterated unadapted bagged filter run.

    Attributes:
        n_iter: Number of outer iterations (Nubf)
        n_rep_per_param: Replicates simulated per parameter vector
        n_param: Number of parameter vectors in the population
        nbhd: Neighborhood function nbhd(time, unit) -> [(unit, time), ...]
        prop: Fraction of parameters kept by elite resampling, in (0, 1]
        rw_sd: Random-walk sd specification (RandomWalkSD, dict or [P, T] array)
        cooling_type: "geometric" or "hyperbolic"
        cooling_fraction_50: Cooling multiplier after 50 iterations, in (0, 1]
        tol: Density floor; non-finite log densities become log(tol)
        n_jobs: Worker count for per-parameter tasks (1 = inline)
        backend: "thread" or "process" workers
        verbose: Report progress at INFO instead of DEBUG
    """
    n_iter: int
    n_rep_per_param: int
    n_param: int
    nbhd: Callable
    prop: float
    rw_sd: Union[RandomWalkSD, Dict, np.ndarray]
    cooling_type: Literal["geometric", "hyperbolic"] = "geometric"
    cooling_fraction_50: float = 0.5
    tol: float = DEFAULT_TOL
    n_jobs: int = 1
    backend: Literal["thread", "process"] = "thread"
    verbose: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ConfigurationError naming the first invalid setting."""
        def is_int(value) -> bool:
            return isinstance(value, (int, np.integer)) and not isinstance(value, bool)

        if self.n_iter is None:
            raise _setting_error("Nubf", "must be specified")
        if not is_int(self.n_iter) or self.n_iter < 1:
            raise _setting_error("Nubf", "must be a positive integer")
        if self.n_rep_per_param is None:
            raise _setting_error("Nrep_per_param", "must be specified")
        if not is_int(self.n_rep_per_param) or self.n_rep_per_param < 1:
            raise _setting_error("Nrep_per_param", "must be a positive integer")
        if self.n_param is None:
            raise _setting_error("Nparam", "must be specified")
        if not is_int(self.n_param) or self.n_param < 3:
            raise _setting_error("Nparam", "must be at least 3")
        if self.nbhd is None:
            raise _setting_error("nbhd", "must be specified")
        if not callable(self.nbhd):
            raise _setting_error("nbhd", "must be a function of (time, unit)")
        if self.prop is None:
            raise _setting_error("prop", "must be specified")
        if not 0.0 < float(self.prop) <= 1.0:
            raise _setting_error("prop", "must be in (0,1]")
        if self.rw_sd is None:
            raise _setting_error("rw_sd", "must be specified")
        if self.cooling_type not in CoolingSchedule.kinds:
            raise _setting_error(
                "cooling_type", f"must be one of {CoolingSchedule.kinds}"
            )
        if self.cooling_fraction_50 is None:
            raise _setting_error("cooling_fraction_50", "must be specified")
        if not 0.0 < float(self.cooling_fraction_50) <= 1.0:
            raise _setting_error("cooling_fraction_50", "must be in (0,1]")
        if not float(self.tol) > 0.0:
            raise _setting_error("tol", "must be positive")
        if not is_int(self.n_jobs) or self.n_jobs < 1:
            raise _setting_error("n_jobs", "must be a positive integer")
        if self.backend not in ("thread", "process"):
            raise _setting_error("backend", "must be 'thread' or 'process'")

    @property
    def n_replicates(self) -> int:
        """Total replicates per sweep (Nparam * Nrep_per_param)."""
        return self.n_param * self.n_rep_per_param


@dataclass
class UBFSweepResult:
    """
    Output of one unadapted bagged filter sweep.

    Attributes:
        cond_loglik: [T] per-observation log-likelihood increments
        param_matrix: [Nparam, P] resampled population, estimation scale
    """
    cond_loglik: np.ndarray
    param_matrix: np.ndarray

    @property
    def log_likelihood(self) -> float:
        return float(np.sum(self.cond_loglik))


@dataclass
class IUBFResult:
    """
    Result of an iterated unadapted bagged filter run.

    Composition of the model (carrying the final point estimate), the
    settings used, the convergence trace and the final parameter swarm.

    Attributes:
        model: Model whose params are the final point estimate
        config: Settings of the run
        rw_sd: [P, T] expanded random-walk sds
        traces: [Nubf+1, 1+P] rows (loglik, params...) per iteration;
                row 0 holds NaN and the starting parameters
        trace_names: Column names of traces
        param_swarm: [Nparam, P] final population, natural scale
        loglik: Log-likelihood estimate of the last sweep
        cond_loglik: [T] per-observation increments of the last sweep
    """
    model: SpatPompModel
    config: IUBFConfig
    rw_sd: np.ndarray
    traces: np.ndarray
    trace_names: List[str]
    param_swarm: np.ndarray
    loglik: float
    cond_loglik: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def n_iter(self) -> int:
        return self.traces.shape[0] - 1

    @property
    def iterations(self) -> np.ndarray:
        """Row labels of traces (0 = starting point)."""
        return np.arange(self.traces.shape[0])

    @property
    def coef(self) -> Dict[str, float]:
        """Final point estimate (population mean) by name."""
        return self.model.coef()

    @property
    def loglik_trace(self) -> np.ndarray:
        """[Nubf+1] log-likelihood column (NaN at row 0)."""
        return self.traces[:, 0]

    def trace(self, name: str) -> np.ndarray:
        """[Nubf+1] trace column by name ('loglik' or a parameter name)."""
        if name not in self.trace_names:
            raise KeyError(f"No trace named {name!r}")
        return self.traces[:, self.trace_names.index(name)]


__all__ = [
    "DEFAULT_TOL",
    "ConfigurationError",
    "ModelEvaluationError",
    "IUBFConfig",
    "UBFSweepResult",
    "IUBFResult",
]
