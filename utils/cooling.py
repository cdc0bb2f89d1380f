"""
Cooling schedules for iterated perturbation.

alpha(n, m) scales the random-walk sd at observation n (1-based) of
iteration m (1-based). Both families reach `fraction_50` after 50
iterations.
"""

import numpy as np
from typing import Literal, NamedTuple

from .errors import ConfigurationError


class Cooling(NamedTuple):
    alpha: float
    gamma: float


class CoolingSchedule:
    """
    Geometric or hyperbolic cooling of perturbation magnitudes.

    geometric:  alpha = fraction^((n/T + m - 1) / 50)
    hyperbolic: alpha = (1 + s) / (s + n + T(m - 1)),
                s = (50 T fraction - 1) / (1 - fraction)
    """

    kinds = ("geometric", "hyperbolic")

    def __init__(
        self,
        kind: Literal["geometric", "hyperbolic"],
        fraction_50: float,
        n_times: int,
    ):
        """
        Args:
            kind: Schedule family
            fraction_50: Multiplier reached after 50 iterations, in (0, 1]
            n_times: Number of observation times per iteration (T)
        """
        if kind not in self.kinds:
            raise ConfigurationError(
                f"unrecognized cooling type '{kind}', expected one of {self.kinds}"
            )
        fraction_50 = float(fraction_50)
        if not 0.0 < fraction_50 <= 1.0:
            raise ConfigurationError("'cooling_fraction_50' must be in (0,1]")
        if n_times < 1:
            raise ConfigurationError("cooling schedule needs at least one time")

        self.kind = kind
        self.fraction_50 = fraction_50
        self.n_times = int(n_times)

        if kind == "geometric":
            self._factor = fraction_50 ** (1.0 / 50)
        elif fraction_50 < 1.0:
            self._scale = (50 * self.n_times * fraction_50 - 1) / (1 - fraction_50)
        else:
            self._scale = None

    def progress(self, n: int, m: int) -> float:
        """Combined (time, iteration) progress in units of iterations."""
        return n / self.n_times + m - 1

    def __call__(self, n: int, m: int) -> Cooling:
        if self.kind == "geometric":
            alpha = self._factor ** self.progress(n, m)
        elif self._scale is None:
            alpha = 1.0
        else:
            s = self._scale
            alpha = (1 + s) / (s + n + self.n_times * (m - 1))
        return Cooling(alpha=float(alpha), gamma=float(alpha ** 2))

    def alpha(self, n: int, m: int) -> float:
        return self(n, m).alpha

    def alphas(self, m: int) -> np.ndarray:
        """[T] multipliers for every observation time of iteration m."""
        return np.array([self.alpha(n, m) for n in range(1, self.n_times + 1)])

    def __repr__(self) -> str:
        return f"CoolingSchedule({self.kind!r}, fraction_50={self.fraction_50}, T={self.n_times})"
