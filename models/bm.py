"""
Correlated Brownian motion on a ring of spatial units.

dX_u = sigma * dW_u,   Cor(dW_u, dW_v) = rho^dist(u, v)
Y_{u,n} = X_u(t_n) + eps_{u,n},   eps ~ N(0, tau^2)

dist(u, v) is the circular distance between units on a ring of U units.
The model callables are module-level functions bound with
functools.partial, so a model can be shipped to worker processes.
"""

import numpy as np
from functools import partial
from typing import Optional
from numpy.random import Generator, default_rng
from scipy.special import expit, logit
from scipy.stats import norm

from .base import SpatPompModel


def ring_distance(n_units: int) -> np.ndarray:
    """[U, U] circular distances between units on a ring."""
    idx = np.arange(n_units)
    diff = np.abs(idx[:, np.newaxis] - idx[np.newaxis, :])
    return np.minimum(diff, n_units - diff)


def bm_param_names(n_units: int) -> list:
    return ["rho", "sigma", "tau"] + [f"X{u + 1}_0" for u in range(n_units)]


def _unpack(params: np.ndarray, n_units: int):
    params = np.atleast_2d(params)
    return params[:, 0], params[:, 1], params[:, 2], params[:, 3:3 + n_units]


def _bm_rinit(params: np.ndarray, rng: Generator, n_units: int) -> np.ndarray:
    """params [R, P] -> x [R, U, 1]"""
    _, _, _, x_init = _unpack(params, n_units)
    return x_init[:, :, np.newaxis].astype(np.float64)


def _bm_rprocess(x, params, t_start, t_end, rng, dist, delta_t, eps=1e-10):
    """x [R, U, 1] -> x [R, U, 1]"""
    n_units = dist.shape[0]
    rho, sigma, _, _ = _unpack(params, n_units)
    n_rep = x.shape[0]

    # [R, U, U] correlation and Cholesky factors, one per replicate
    cor = rho[:, np.newaxis, np.newaxis] ** dist[np.newaxis]
    chol = np.linalg.cholesky(cor + eps * np.eye(n_units))

    n_steps = max(1, int(np.ceil((t_end - t_start) / delta_t - 1e-9)))
    dt = (t_end - t_start) / n_steps

    x = x.copy()
    for _ in range(n_steps):
        z = rng.standard_normal((n_rep, n_units))
        dw = np.einsum("rij,rj->ri", chol, z)
        x[:, :, 0] += sigma[:, np.newaxis] * np.sqrt(dt) * dw
    return x


def _bm_dunit_measure(y, x, params, n_units: int):
    """y [U], x [R, U, 1] -> [U, R]"""
    _, _, tau, _ = _unpack(params, n_units)
    log_prob = norm.logpdf(
        np.asarray(y, dtype=np.float64)[np.newaxis, :],
        loc=x[:, :, 0],
        scale=tau[:, np.newaxis],
    )
    return log_prob.T


def _bm_rmeasure(x, params, rng, n_units: int):
    """x [R, U, 1] -> y [R, U]"""
    _, _, tau, _ = _unpack(params, n_units)
    return x[:, :, 0] + tau[:, np.newaxis] * rng.standard_normal(x.shape[:2])


def bm_to_est(params: np.ndarray) -> np.ndarray:
    """logit(rho), log(sigma), log(tau); initial values unchanged."""
    est = np.array(params, dtype=np.float64, copy=True)
    est[..., 0] = logit(est[..., 0])
    est[..., 1] = np.log(est[..., 1])
    est[..., 2] = np.log(est[..., 2])
    return est


def bm_from_est(params: np.ndarray) -> np.ndarray:
    nat = np.array(params, dtype=np.float64, copy=True)
    nat[..., 0] = expit(nat[..., 0])
    nat[..., 1] = np.exp(nat[..., 1])
    nat[..., 2] = np.exp(nat[..., 2])
    return nat


def make_bm_model(
    n_units: int = 10,
    n_times: int = 20,
    rho: float = 0.4,
    sigma: float = 1.0,
    tau: float = 1.0,
    x0: float = 0.0,
    delta_t: float = 0.1,
    seed: Optional[int] = None,
    rng: Optional[Generator] = None,
) -> SpatPompModel:
    """
    Create the ring Brownian-motion model with simulated data.

    Args:
        n_units: Number of spatial units (U)
        n_times: Number of observation times (T), at times 1..T with t0 = 0
        rho: Spatial correlation in [0, 1)
        sigma: Process noise scale
        tau: Measurement noise sd
        x0: Initial value of every unit
        delta_t: Euler step for the process simulator
        seed: Random seed for the data (ignored if rng is provided)
        rng: NumPy random generator (optional)

    Returns:
        SpatPompModel with observations simulated at the given parameters
    """
    if rng is None:
        rng = default_rng(seed)

    U = n_units
    params = np.concatenate([[rho, sigma, tau], np.full(U, float(x0))])
    times = np.arange(1, n_times + 1, dtype=np.float64)

    model = SpatPompModel(
        unit_names=[f"U{u + 1}" for u in range(U)],
        times=times,
        t0=0.0,
        observations=np.zeros((n_times, U)),
        param_names=bm_param_names(U),
        params=params,
        rinit=partial(_bm_rinit, n_units=U),
        rprocess=partial(_bm_rprocess, dist=ring_distance(U), delta_t=delta_t),
        dunit_measure=partial(_bm_dunit_measure, n_units=U),
        rmeasure=partial(_bm_rmeasure, n_units=U),
        to_est=bm_to_est,
        from_est=bm_from_est,
    )

    _, observations = model.simulate(rng)
    model.observations = observations
    return model
