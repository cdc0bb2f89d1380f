"""
Spatiotemporal POMP model base class.

Model specification consumed by the bagged filters. The latent state is a
vector per spatial unit; observations are recorded per unit at a common
sequence of observation times.
All functions operate on batched inputs where first axis is the replicate
dimension.
"""

import numpy as np
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence
from numpy.random import Generator


@dataclass
class SpatPompModel:
    """
    Spatiotemporal partially observed Markov process.

    Shapes (R replicates, U units, d state components per unit,
    P parameters):

        rinit(params [R, P], rng) -> x [R, U, d]
        rprocess(x [R, U, d], params [R, P], t_start, t_end, rng) -> x [R, U, d]
        dunit_measure(y [U, ...], x [R, U, d], params [R, P]) -> [U, R]
            log density of each unit's observation; may be -inf
        rmeasure(x [R, U, d], params [R, P], rng) -> y [R, U, ...]

    Parameters passed to these callables are on the natural scale.
    `to_est` / `from_est` map [N, P] parameter arrays between the natural
    and estimation scales (identity when omitted).

    Attributes:
        unit_names: Names of the U spatial units
        times: [T] observation times
        t0: Time of the initial state (before times[0])
        observations: [T, U, ...] data (y_1, ..., y_T)
        param_names: Names of the P parameters
        params: [P] natural-scale parameter values (the model coefficients)
    """
    unit_names: List[str]
    times: np.ndarray
    t0: float
    observations: np.ndarray
    param_names: List[str]
    params: np.ndarray

    rinit: Callable[[np.ndarray, Generator], np.ndarray]
    rprocess: Callable[[np.ndarray, np.ndarray, float, float, Generator], np.ndarray]
    dunit_measure: Callable[[np.ndarray, np.ndarray, np.ndarray], np.ndarray]

    # Optional: data simulation and reparameterization
    rmeasure: Optional[Callable[[np.ndarray, np.ndarray, Generator], np.ndarray]] = None
    to_est: Optional[Callable[[np.ndarray], np.ndarray]] = field(default=None, repr=False)
    from_est: Optional[Callable[[np.ndarray], np.ndarray]] = field(default=None, repr=False)

    def __post_init__(self):
        self.times = np.asarray(self.times, dtype=np.float64)
        self.observations = np.asarray(self.observations)
        self.params = np.asarray(self.params, dtype=np.float64)
        self.unit_names = list(self.unit_names)
        self.param_names = list(self.param_names)

        if self.times.ndim != 1 or len(self.times) == 0:
            raise ValueError("times must be a non-empty 1-D array")
        if np.any(np.diff(self.times) <= 0) or self.t0 >= self.times[0]:
            raise ValueError("t0 and times must be strictly increasing")
        if self.observations.shape[:2] != (len(self.times), len(self.unit_names)):
            raise ValueError(
                f"observations have shape {self.observations.shape}, expected "
                f"({len(self.times)}, {len(self.unit_names)}, ...)"
            )
        if self.params.shape != (len(self.param_names),):
            raise ValueError(
                f"params have shape {self.params.shape}, expected ({len(self.param_names)},)"
            )

    # -------------------------------------------------------------------------
    # Dimensions
    # -------------------------------------------------------------------------

    @property
    def n_units(self) -> int:
        return len(self.unit_names)

    @property
    def n_times(self) -> int:
        return len(self.times)

    @property
    def n_params(self) -> int:
        return len(self.param_names)

    @property
    def all_times(self) -> np.ndarray:
        """[T+1] times (t0, t_1, ..., t_T)."""
        return np.concatenate([[self.t0], self.times])

    def coef(self) -> Dict[str, float]:
        """Current parameter values by name."""
        return dict(zip(self.param_names, self.params.tolist()))

    def with_params(self, params) -> "SpatPompModel":
        """
        Copy of the model carrying new parameter values.

        Args:
            params: [P] array or dict of name -> value (missing names keep
                    their current values)
        """
        if isinstance(params, dict):
            unknown = set(params) - set(self.param_names)
            if unknown:
                raise ValueError(f"Unknown parameters: {sorted(unknown)}")
            values = np.array(
                [params.get(name, value) for name, value in zip(self.param_names, self.params)]
            )
        else:
            values = np.asarray(params, dtype=np.float64).copy()
        return replace(self, params=values)

    # -------------------------------------------------------------------------
    # Parameter transformations
    # -------------------------------------------------------------------------

    def to_estimation_scale(self, params: np.ndarray) -> np.ndarray:
        params = np.asarray(params, dtype=np.float64)
        if self.to_est is None:
            return params.copy()
        return np.asarray(self.to_est(params), dtype=np.float64)

    def to_natural_scale(self, params: np.ndarray) -> np.ndarray:
        params = np.asarray(params, dtype=np.float64)
        if self.from_est is None:
            return params.copy()
        return np.asarray(self.from_est(params), dtype=np.float64)

    # -------------------------------------------------------------------------
    # Simulation and densities
    # -------------------------------------------------------------------------

    def sample_initial(self, params: np.ndarray, rng: Generator) -> np.ndarray:
        """
        Sample one initial state per parameter row.

        Args:
            params: [R, P] natural-scale parameters
            rng: NumPy random generator

        Returns:
            x: [R, U, d]
        """
        x = np.asarray(self.rinit(params, rng), dtype=np.float64)
        return self._check_states(x, params.shape[0])

    def sample_dynamics(
        self,
        x: np.ndarray,
        params: np.ndarray,
        t_start: float,
        t_end: float,
        rng: Generator,
    ) -> np.ndarray:
        """
        Advance states from t_start to t_end.

        Args:
            x: [R, U, d] states at t_start
            params: [R, P] natural-scale parameters
            t_start, t_end: Time interval
            rng: NumPy random generator

        Returns:
            x_next: [R, U, d] states at t_end
        """
        x_next = np.asarray(self.rprocess(x, params, t_start, t_end, rng), dtype=np.float64)
        return self._check_states(x_next, x.shape[0])

    def observation_log_prob(
        self,
        x: np.ndarray,
        y: np.ndarray,
        params: np.ndarray,
    ) -> np.ndarray:
        """
        Per-unit log observation densities.

        Args:
            x: [R, U, d] states
            y: [U, ...] observation at one time
            params: [R, P] natural-scale parameters

        Returns:
            log_prob: [U, R]
        """
        log_prob = np.asarray(self.dunit_measure(y, x, params), dtype=np.float64)
        expected = (self.n_units, x.shape[0])
        if log_prob.shape != expected:
            raise ValueError(
                f"dunit_measure returned shape {log_prob.shape}, expected {expected}"
            )
        return log_prob

    def sample_observation(self, x: np.ndarray, params: np.ndarray, rng: Generator) -> np.ndarray:
        """
        Sample y from p(y | x).

        Args:
            x: [R, U, d] states
            params: [R, P] natural-scale parameters
            rng: NumPy random generator

        Returns:
            y: [R, U, ...]
        """
        if self.rmeasure is None:
            raise ValueError("model has no rmeasure; cannot simulate observations")
        return np.asarray(self.rmeasure(x, params, rng))

    def simulate(self, rng: Generator, params: Optional[np.ndarray] = None) -> tuple:
        """
        Simulate one trajectory at the model's observation times.

        Args:
            rng: NumPy random generator
            params: [P] natural-scale parameters (default: model params)

        Returns:
            states: [T+1, U, d] states (x_0, ..., x_T)
            observations: [T, U, ...] observations (y_1, ..., y_T)
        """
        if params is None:
            params = self.params
        params = np.asarray(params, dtype=np.float64)[np.newaxis, :]

        all_times = self.all_times
        x = self.sample_initial(params, rng)
        states = [x[0]]
        observations = []
        for n in range(self.n_times):
            x = self.sample_dynamics(x, params, all_times[n], all_times[n + 1], rng)
            states.append(x[0])
            observations.append(self.sample_observation(x, params, rng)[0])

        return np.stack(states), np.stack(observations)

    def _check_states(self, x: np.ndarray, n_rep: int) -> np.ndarray:
        if x.ndim == 2:
            x = x[:, :, np.newaxis]
        if x.ndim != 3 or x.shape[:2] != (n_rep, self.n_units):
            raise ValueError(
                f"state array has shape {x.shape}, expected ({n_rep}, {self.n_units}, d)"
            )
        return x

    def __repr__(self) -> str:
        return (
            f"SpatPompModel(U={self.n_units}, T={self.n_times}, "
            f"params={self.param_names})"
        )
