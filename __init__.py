"""
Bagged Filter Library.

A NumPy-based library for parameter estimation in spatiotemporal
partially observed Markov process models with:
- Iterated unadapted bagged filter (IUBF)
- Neighborhood-weighted local likelihoods
- Cooled random-walk parameter perturbation
"""

from . import models
from . import filters
from . import simulation
from . import utils

__version__ = "0.1.0"
