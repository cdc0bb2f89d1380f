"""
Exception types raised by the bagged filters.
"""


class ConfigurationError(ValueError):
    """A required setting is missing or out of range."""


class ModelEvaluationError(RuntimeError):
    """
    A model callable failed inside a filtering sweep.

    Carries the observation time and parameter index of the failing
    computation; the original exception is chained as __cause__.
    """

    def __init__(self, message: str, time_index: int = None, param_index: int = None):
        super().__init__(message)
        self.time_index = time_index
        self.param_index = param_index

    def __reduce__(self):
        # keep the indices when raised inside a worker process
        return (self.__class__, (str(self), self.time_index, self.param_index))
