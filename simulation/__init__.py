"""
Trajectory simulation.
"""

from .trajectory import SpatialTrajectory, simulate

__all__ = [
    "SpatialTrajectory",
    "simulate",
]
