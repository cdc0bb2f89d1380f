"""
Iterated Unadapted Bagged Filter (IUBF).

Parameter estimation for spatiotemporal POMP models. Each iteration runs
one unadapted bagged filter sweep over the data:

1. perturb every parameter vector with a cooled Gaussian random walk
2. advance Nrep_per_param unadapted replicates per parameter vector
3. weight each parameter vector by neighborhood-combined local likelihoods
4. keep the top `prop` fraction of parameters and refill the population
   from them

Replicates are not resampled individually: a replicate follows its
parameter vector, so replicate j always belongs to parameter
j // Nrep_per_param.

Based on Ionides, Asfaw, Park & King (2021): "Bagged filters for partially
observed interacting systems", JASA.
"""

import logging
import pickle
import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Tuple, Union
from numpy.random import Generator, default_rng

from .base import (
    DEFAULT_TOL,
    IUBFConfig,
    IUBFResult,
    UBFSweepResult,
    _setting_error,
)
from .combiner import combine_block
from ..models.base import SpatPompModel
from ..utils.cooling import CoolingSchedule
from ..utils.errors import ModelEvaluationError
from ..utils.history import HistoryBuffer, required_lookback
from ..utils.parallel import ParameterTaskPool
from ..utils.perturbation import perturbation_kernel_sd, randwalk_perturbation
from ..utils.resampling import (
    expand_block_indices,
    floor_log_densities,
    logmeanexp,
    quantile_elite_resample,
    reindex,
)

logger = logging.getLogger(__name__)


@dataclass
class _BlockTask:
    """Inputs of one parameter's work at one observation time."""
    param_index: int
    model: SpatPompModel
    x: np.ndarray                      # [R, U, d] states at t_start
    params: np.ndarray                 # [R, P] natural scale
    t_start: float
    t_end: float
    time: int                          # 1-based observation index
    y: np.ndarray                      # [U, ...]
    history: Optional[np.ndarray]      # [depth, U, R]
    neighborhoods: List[List[Tuple[int, int]]]
    tol: float
    seed: int


def _run_block(task: _BlockTask) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Advance, evaluate and weight one parameter block.

    Returns:
        x: [R, U, d] advanced states
        log_cond_densities: [U, R] floored log densities
        log_weight: block resampling log weight
    """
    rng = default_rng(task.seed)
    where = f"at time {task.time} for parameter {task.param_index}"

    try:
        x = task.model.sample_dynamics(task.x, task.params, task.t_start, task.t_end, rng)
    except Exception as err:
        raise ModelEvaluationError(
            f"error in simulating the process {where}: {err}",
            time_index=task.time, param_index=task.param_index,
        ) from err

    try:
        log_cond_densities = task.model.observation_log_prob(x, task.y, task.params)
    except Exception as err:
        raise ModelEvaluationError(
            f"error in calculation of weights {where}: {err}",
            time_index=task.time, param_index=task.param_index,
        ) from err

    log_cond_densities = floor_log_densities(log_cond_densities, task.tol)
    log_weight = combine_block(
        log_cond_densities, task.history, task.neighborhoods, task.time
    )
    return x, log_cond_densities, log_weight


def _check_picklable(model: SpatPompModel):
    """Worker processes receive the model by pickling."""
    try:
        pickle.dumps(model)
    except (pickle.PicklingError, AttributeError, TypeError) as err:
        raise _setting_error(
            "backend", f"'process' requires a picklable model: {err}"
        ) from err


class IteratedUnadaptedBaggedFilter:
    """
    Iterated Unadapted Bagged Filter for spatiotemporal POMP models.

    Usage:
        iubf = IteratedUnadaptedBaggedFilter(
            n_iter=10, n_rep_per_param=20, n_param=50,
            nbhd=default_neighborhood, prop=0.8,
            rw_sd=rw_sd(rho=0.02, sigma=0.02),
            cooling_fraction_50=0.5, seed=1,
        )
        result = iubf.fit(model)
        result.coef, result.traces
    """

    def __init__(
        self,
        n_iter: int = 1,
        n_rep_per_param: Optional[int] = None,
        n_param: Optional[int] = None,
        nbhd=None,
        prop: Optional[float] = None,
        rw_sd=None,
        cooling_type: Literal["geometric", "hyperbolic"] = "geometric",
        cooling_fraction_50: Optional[float] = None,
        tol: float = DEFAULT_TOL,
        n_jobs: int = 1,
        backend: Literal["thread", "process"] = "thread",
        verbose: bool = False,
        seed: Optional[int] = None,
    ):
        """
        Args:
            n_iter: Number of iterations (Nubf)
            n_rep_per_param: Replicates per parameter vector
            n_param: Parameter vectors in the population (at least 3)
            nbhd: Neighborhood function nbhd(time, unit) -> [(unit, time), ...]
            prop: Fraction of parameters kept at each observation, in (0, 1]
            rw_sd: Random-walk sds (rw_sd(...), dict, or [P, T] array)
            cooling_type: "geometric" or "hyperbolic"
            cooling_fraction_50: Cooling multiplier after 50 iterations
            tol: Density floor for impossible observations
            n_jobs: Parallel workers for per-parameter tasks
            backend: "thread" or "process"
            verbose: Report progress at INFO level
            seed: Random seed
        """
        self.config = IUBFConfig(
            n_iter=n_iter,
            n_rep_per_param=n_rep_per_param,
            n_param=n_param,
            nbhd=nbhd,
            prop=prop,
            rw_sd=rw_sd,
            cooling_type=cooling_type,
            cooling_fraction_50=cooling_fraction_50,
            tol=tol,
            n_jobs=n_jobs,
            backend=backend,
            verbose=verbose,
        )
        self.seed = seed

    def _log(self, msg: str, *args):
        level = logging.INFO if self.config.verbose else logging.DEBUG
        logger.log(level, msg, *args)

    def fit(
        self,
        model: SpatPompModel,
        start: Optional[Union[np.ndarray, Dict[str, float]]] = None,
        rng: Optional[Generator] = None,
    ) -> IUBFResult:
        """
        Run IUBF.

        Args:
            model: SpatPompModel with data
            start: Starting parameters (natural scale, [P] or dict);
                   default model.params
            rng: Optional random generator (uses self.seed if None)

        Returns:
            IUBFResult
        """
        if rng is None:
            rng = default_rng(self.seed)

        cfg = self.config
        cooling = CoolingSchedule(cfg.cooling_type, cfg.cooling_fraction_50, model.n_times)
        rw_sd = perturbation_kernel_sd(cfg.rw_sd, model.times, model.param_names)

        if cfg.backend == "process" and cfg.n_jobs > 1:
            _check_picklable(model)

        if start is not None:
            model = model.with_params(start)
        start = model.params.copy()

        trace_names = ["loglik"] + model.param_names
        traces = np.full((cfg.n_iter + 1, len(trace_names)), np.nan)
        traces[0, 1:] = start

        param_matrix = np.tile(model.to_estimation_scale(start), (cfg.n_param, 1))

        with ParameterTaskPool(cfg.n_jobs, cfg.backend) as pool:
            for m in range(1, cfg.n_iter + 1):
                sweep = self._ubf_sweep(
                    model, param_matrix, cooling, rw_sd, m, rng, pool
                )
                param_matrix = sweep.param_matrix
                estimate = model.to_natural_scale(param_matrix).mean(axis=0)

                traces[m, 0] = sweep.log_likelihood
                traces[m, 1:] = estimate
                model = model.with_params(estimate)

                self._log(
                    "iubf iteration %d of %d completed with log-likelihood %.4f",
                    m, cfg.n_iter, sweep.log_likelihood,
                )
                self._log("estimate: %s", model.coef())

        return IUBFResult(
            model=model,
            config=cfg,
            rw_sd=rw_sd,
            traces=traces,
            trace_names=trace_names,
            param_swarm=model.to_natural_scale(param_matrix),
            loglik=sweep.log_likelihood,
            cond_loglik=sweep.cond_loglik,
        )

    def _ubf_sweep(
        self,
        model: SpatPompModel,
        params: np.ndarray,
        cooling: CoolingSchedule,
        rw_sd: np.ndarray,
        iteration: int,
        rng: Generator,
        pool: ParameterTaskPool,
    ) -> UBFSweepResult:
        """
        One unadapted bagged filter sweep with parameter perturbation.

        Args:
            model: SpatPompModel
            params: [Nparam, P] population on the estimation scale
            cooling: Cooling schedule
            rw_sd: [P, T] random-walk sds
            iteration: Outer iteration index (1-based)
            rng: NumPy random generator
            pool: Task pool for per-parameter work

        Returns:
            UBFSweepResult
        """
        cfg = self.config
        T = model.n_times
        U = model.n_units
        R = cfg.n_rep_per_param
        n_param = params.shape[0]
        all_times = model.all_times

        cond_loglik = np.zeros(T)
        history = HistoryBuffer()
        params = params.copy()
        x = None
        resample_ixs = None

        for n in range(1, T + 1):
            if n <= 2:
                self._log("working on observation time %d in iteration %d", n, iteration)

            pmag = cooling.alpha(n, iteration) * rw_sd[:, n - 1]
            params = randwalk_perturbation(params, pmag, rng)

            # [Nparam * R, P], parameter k repeated over replicates k*R .. (k+1)*R - 1
            tparams = model.to_natural_scale(np.repeat(params, R, axis=0))

            if n == 1:
                try:
                    x = model.sample_initial(tparams, rng)
                except Exception as err:
                    raise ModelEvaluationError(
                        f"error in sampling initial states: {err}", time_index=0,
                    ) from err
            else:
                x = reindex(x, resample_ixs, axis=0)

            neighborhoods = [list(cfg.nbhd(n, u)) for u in range(U)]
            seeds = rng.integers(0, np.iinfo(np.int64).max, size=n_param)

            tasks = []
            for i in range(n_param):
                block = slice(i * R, (i + 1) * R)
                tasks.append(_BlockTask(
                    param_index=i,
                    model=model,
                    x=x[block],
                    params=tparams[block],
                    t_start=all_times[n - 1],
                    t_end=all_times[n],
                    time=n,
                    y=model.observations[n - 1],
                    history=history.block(block),
                    neighborhoods=neighborhoods,
                    tol=cfg.tol,
                    seed=int(seeds[i]),
                ))

            results = pool.map(_run_block, tasks)
            x = np.concatenate([res[0] for res in results], axis=0)
            log_cond_densities = np.concatenate([res[1] for res in results], axis=1)
            param_log_weights = np.array([res[2] for res in results])

            order = quantile_elite_resample(param_log_weights, cfg.prop, rng)
            resample_ixs = expand_block_indices(order, R)
            params = params[order]

            # How far back must conditional densities be kept for time n + 1?
            depth = required_lookback(cfg.nbhd, n + 1, U) if n < T else 0
            history.update(log_cond_densities, depth, resample_ixs)

            cond_loglik[n - 1] = logmeanexp(param_log_weights)

        return UBFSweepResult(cond_loglik=cond_loglik, param_matrix=params)


def iubf(
    model: SpatPompModel,
    n_iter: int = 1,
    n_rep_per_param: Optional[int] = None,
    n_param: Optional[int] = None,
    nbhd=None,
    prop: Optional[float] = None,
    rw_sd=None,
    cooling_type: Literal["geometric", "hyperbolic"] = "geometric",
    cooling_fraction_50: Optional[float] = None,
    tol: float = DEFAULT_TOL,
    n_jobs: int = 1,
    backend: Literal["thread", "process"] = "thread",
    verbose: bool = False,
    start: Optional[Union[np.ndarray, Dict[str, float]]] = None,
    seed: Optional[int] = None,
    rng: Optional[Generator] = None,
) -> IUBFResult:
    """
    Run the Iterated Unadapted Bagged Filter on a model.

    Functional form of IteratedUnadaptedBaggedFilter(...).fit(model).
    """
    filt = IteratedUnadaptedBaggedFilter(
        n_iter=n_iter,
        n_rep_per_param=n_rep_per_param,
        n_param=n_param,
        nbhd=nbhd,
        prop=prop,
        rw_sd=rw_sd,
        cooling_type=cooling_type,
        cooling_fraction_50=cooling_fraction_50,
        tol=tol,
        n_jobs=n_jobs,
        backend=backend,
        verbose=verbose,
        seed=seed,
    )
    return filt.fit(model, start=start, rng=rng)
