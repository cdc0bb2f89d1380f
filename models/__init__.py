"""
Spatiotemporal model definitions.
"""

from .base import SpatPompModel
from .bm import make_bm_model, ring_distance, bm_param_names
from .neighborhood import (
    default_neighborhood,
    empty_neighborhood,
    make_lagged_neighborhood,
)

__all__ = [
    "SpatPompModel",
    "make_bm_model",
    "ring_distance",
    "bm_param_names",
    "default_neighborhood",
    "empty_neighborhood",
    "make_lagged_neighborhood",
]
