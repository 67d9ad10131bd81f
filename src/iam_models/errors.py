"""Exception hierarchy shared by the IAM models and the SCC engine."""

from __future__ import annotations


class SCCError(Exception):
    """Base class for all errors raised by the SCC engine."""


class ConfigurationError(SCCError, ValueError):
    """Invalid scenario, family, parameter, year or discount convention."""


class InvalidYear(ConfigurationError):
    """Raised when a time grid is empty or malformed."""


class InterpolationError(SCCError, ValueError):
    """Raised for out-of-range queries when extrapolation is disabled."""


class EngineError(SCCError, RuntimeError):
    """A simulation failed or produced a non-finite state."""


SimulationError = EngineError


class ModelStateError(SCCError, RuntimeError):
    """Raised when a model is used outside its build → update → run lifecycle."""


class BatchAbortedError(EngineError):
    """Monte Carlo batch stopped because too many trials failed."""

    def __init__(self, message: str, batch: object | None = None) -> None:
        super().__init__(message)
        self.batch = batch


__all__ = [
    "SCCError",
    "ConfigurationError",
    "InvalidYear",
    "InterpolationError",
    "EngineError",
    "SimulationError",
    "ModelStateError",
    "BatchAbortedError",
]
