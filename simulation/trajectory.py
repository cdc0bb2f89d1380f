"""
Trajectory simulation and storage.
"""

import numpy as np
from dataclasses import dataclass, replace
from typing import Optional, Dict, Any
from numpy.random import Generator, default_rng

from ..models.base import SpatPompModel


@dataclass
class SpatialTrajectory:
    """
    Container for a simulated spatiotemporal trajectory.

    Attributes:
        states: [T+1, U, d] State trajectory (x_0, x_1, ..., x_T)
        observations: [T, U, ...] Observations (y_1, y_2, ..., y_T)
        times: [T] Observation times
        params: [P] Natural-scale parameters used for simulation
        metadata: Optional dictionary for additional info
    """
    states: np.ndarray
    observations: np.ndarray
    times: np.ndarray
    params: Optional[np.ndarray] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def T(self) -> int:
        """Number of observation times."""
        return self.observations.shape[0]

    @property
    def n_units(self) -> int:
        return self.observations.shape[1]

    def attach(self, model: SpatPompModel) -> SpatPompModel:
        """Copy of `model` carrying these observations as its data."""
        if len(self.times) != model.n_times or not np.allclose(self.times, model.times):
            raise ValueError("trajectory times do not match the model's observation times")
        return replace(model, observations=self.observations.copy())

    def save(self, path: str):
        """Save trajectory to .npz file."""
        np.savez(
            path,
            states=self.states,
            observations=self.observations,
            times=self.times,
            params=self.params,
            metadata=self.metadata,
        )

    @classmethod
    def load(cls, path: str) -> "SpatialTrajectory":
        """Load trajectory from .npz file."""
        data = np.load(path, allow_pickle=True)
        metadata = data['metadata'].item() if 'metadata' in data else None
        params = data['params'] if data['params'].dtype != object else None
        return cls(
            states=data['states'],
            observations=data['observations'],
            times=data['times'],
            params=params,
            metadata=metadata,
        )


def simulate(
    model: SpatPompModel,
    params: Optional[np.ndarray] = None,
    seed: Optional[int] = None,
    rng: Optional[Generator] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> SpatialTrajectory:
    """
    Simulate a trajectory from a spatiotemporal model.

    Args:
        model: SpatPompModel instance
        params: [P] natural-scale parameters (default: model.params)
        seed: Random seed (ignored if rng is provided)
        rng: NumPy random generator (optional)
        metadata: Optional metadata to attach

    Returns:
        SpatialTrajectory object
    """
    if rng is None:
        rng = default_rng(seed)
    if params is None:
        params = model.params

    states, observations = model.simulate(rng, params=params)

    return SpatialTrajectory(
        states=states,
        observations=observations,
        times=model.times.copy(),
        params=np.asarray(params, dtype=np.float64).copy(),
        metadata=metadata,
    )
