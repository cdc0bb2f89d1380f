"""
Utility functions.
"""

from .errors import ConfigurationError, ModelEvaluationError
from .resampling import (
    logmeanexp,
    floor_log_densities,
    quantile_elite_resample,
    expand_block_indices,
    reindex,
    block_of,
)
from .cooling import Cooling, CoolingSchedule
from .perturbation import (
    ivp,
    rw_sd,
    RandomWalkSD,
    perturbation_kernel_sd,
    randwalk_perturbation,
)
from .history import HistoryBuffer, lagged_entry, required_lookback
from .parallel import ParameterTaskPool

__all__ = [
    "ConfigurationError",
    "ModelEvaluationError",
    "logmeanexp",
    "floor_log_densities",
    "quantile_elite_resample",
    "expand_block_indices",
    "reindex",
    "block_of",
    "Cooling",
    "CoolingSchedule",
    "ivp",
    "rw_sd",
    "RandomWalkSD",
    "perturbation_kernel_sd",
    "randwalk_perturbation",
    "HistoryBuffer",
    "lagged_entry",
    "required_lookback",
    "ParameterTaskPool",
]
