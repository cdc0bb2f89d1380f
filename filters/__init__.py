"""
Filtering algorithms.
"""

from .base import (
    ConfigurationError,
    ModelEvaluationError,
    IUBFConfig,
    UBFSweepResult,
    IUBFResult,
)
from .combiner import local_log_weights, block_log_weight, combine_block
from .iubf import IteratedUnadaptedBaggedFilter, iubf

__all__ = [
    "ConfigurationError",
    "ModelEvaluationError",
    "IUBFConfig",
    "UBFSweepResult",
    "IUBFResult",
    "local_log_weights",
    "block_log_weight",
    "combine_block",
    "IteratedUnadaptedBaggedFilter",
    "iubf",
]
