"""
Basic test script for bagged_filter library.

Run: python test_basic.py
"""

import numpy as np
from numpy.random import default_rng

from bagged_filter.models import make_bm_model, default_neighborhood, empty_neighborhood
from bagged_filter.simulation import simulate
from bagged_filter.filters import IteratedUnadaptedBaggedFilter
from bagged_filter.utils import rw_sd, ivp, logmeanexp


def test_model_simulation():
    """Test model simulation and sampling."""
    print("=" * 60)
    print("Testing Brownian Motion Model Simulation")
    print("=" * 60)

    model = make_bm_model(n_units=6, n_times=10, rho=0.4, sigma=1.0, tau=0.5, seed=0)
    print(f"Model: {model}")

    rng = default_rng(0)
    params = np.tile(model.params, (100, 1))

    # Test sampling
    x0 = model.sample_initial(params, rng)
    assert x0.shape == (100, 6, 1), f"Expected (100, 6, 1), got {x0.shape}"

    # Test dynamics: one time unit of Brownian motion has variance sigma^2
    x1 = model.sample_dynamics(x0, params, 0.0, 1.0, rng)
    assert x1.shape == (100, 6, 1)
    print(f"Propagated samples: mean={x1.mean():.3f}, std={x1.std():.3f}")

    # Test log densities
    log_probs = model.observation_log_prob(x1, model.observations[0], params)
    assert log_probs.shape == (6, 100)
    print(f"Log densities: mean={log_probs.mean():.3f}")

    trajectory = simulate(model, seed=1)
    print(f"States shape: {trajectory.states.shape}")
    print(f"Observations shape: {trajectory.observations.shape}")
    assert trajectory.observations.shape == (10, 6)

    print("\n✓ Model simulation working correctly!")


def test_iubf_runs():
    """Run a short IUBF fit and check the trace."""
    print("\n" + "=" * 60)
    print("Testing IUBF on Brownian Motion Model")
    print("=" * 60)

    truth = make_bm_model(n_units=4, n_times=8, rho=0.4, sigma=1.0, tau=1.0, seed=42)
    model = truth.with_params({"rho": 0.7, "sigma": 0.5, "tau": 2.0})

    n_iter = 3
    filt = IteratedUnadaptedBaggedFilter(
        n_iter=n_iter,
        n_rep_per_param=5,
        n_param=10,
        nbhd=default_neighborhood,
        prop=0.8,
        rw_sd=rw_sd(rho=0.02, sigma=0.02, tau=0.02, X1_0=ivp(0.1)),
        cooling_fraction_50=0.5,
        seed=123,
    )
    result = filt.fit(model)

    for m, row in zip(result.iterations, result.traces):
        print(f"iter {m}: loglik={row[0]:9.3f}  "
              f"rho={row[1]:.3f} sigma={row[2]:.3f} tau={row[3]:.3f}")

    assert result.traces.shape == (n_iter + 1, model.n_params + 1)
    assert np.isnan(result.traces[0, 0])
    assert np.all(np.isfinite(result.traces[1:, 0]))

    print("\n✓ IUBF working correctly!")


def test_bootstrap_reduction():
    """Empty neighborhoods with one unit reduce to a bootstrap average."""
    print("\n" + "=" * 60)
    print("Testing Bootstrap Special Case")
    print("=" * 60)

    model = make_bm_model(n_units=1, n_times=1, seed=3)
    n_param, n_rep = 4, 50
    filt = IteratedUnadaptedBaggedFilter(
        n_iter=1,
        n_rep_per_param=n_rep,
        n_param=n_param,
        nbhd=empty_neighborhood,
        prop=1.0,
        rw_sd=rw_sd(rho=0.0),
        cooling_fraction_50=1.0,
    )
    result = filt.fit(model, rng=default_rng(7))

    # Zero sds draw no perturbation noise and the initial state is
    # deterministic, so the first draws of the generator are the block seeds.
    seeds = default_rng(7).integers(0, np.iinfo(np.int64).max, size=n_param)
    params = np.tile(model.params, (n_rep, 1))
    x0 = model.sample_initial(params, default_rng(0))
    log_densities = []
    for seed in seeds:
        x1 = model.sample_dynamics(x0, params, 0.0, 1.0, default_rng(int(seed)))
        log_densities.append(model.observation_log_prob(x1, model.observations[0], params)[0])
    bootstrap = logmeanexp(np.concatenate(log_densities))

    print(f"IUBF log-likelihood:      {result.loglik:.6f}")
    print(f"Bootstrap log-likelihood: {bootstrap:.6f}")
    assert np.isclose(result.loglik, bootstrap), "IUBF should match bootstrap average"

    print("\n✓ Bootstrap special case working!")


def main():
    """Run all tests."""
    print("\n" + "#" * 60)
    print("# Bagged Filter Library Tests")
    print("#" * 60)

    tests = [
        test_model_simulation,
        test_iubf_runs,
        test_bootstrap_reduction,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"\n✗ {test.__name__} FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("\n" + "#" * 60)
    print(f"# Results: {passed} passed, {failed} failed")
    print("#" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    exit(0 if success else 1)
