"""
shootingmpc Exception Classes
=============================

Custom exceptions for shootingmpc error handling.
"""

from typing import Any, Optional


class ShootingMPCError(Exception):
    """Base exception for all shootingmpc errors."""
    
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DimensionError(ShootingMPCError):
    """
    Raised when a vector does not match the declared state/control size.
    """
    
    def __init__(self, message: str) -> None:
        super().__init__(f"Dimension mismatch: {message}")


class InvalidInputError(ShootingMPCError):
    """
    Raised when input data is invalid.
    
    Examples: NaN bounds, lower bound above upper bound, unknown
    constraint kind, non-positive step size.
    """
    
    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


class HorizonIndexError(InvalidInputError):
    """
    Raised when a stage index falls outside the prediction horizon.
    """
    
    def __init__(self, message: str) -> None:
        super().__init__(f"stage index out of range: {message}")


class AssemblyError(ShootingMPCError):
    """
    Raised when the NLP cannot be transcribed from a problem.
    
    Typical causes are a constraint returning a matrix instead of a
    column, a dynamics output of the wrong size or a non-scalar cost.
    """
    
    def __init__(self, message: str) -> None:
        super().__init__(f"Assembly failed: {message}")


class SolverError(ShootingMPCError):
    """
    Raised by ``MPC.solve`` when the backend does not report success.
    
    The full result of the failed solve (including the backend's raw
    return status) is kept on the exception so the caller can decide
    what to apply instead.
    """
    
    def __init__(
        self,
        message: str = "Solver did not converge",
        status: Optional[Any] = None,
        result: Optional[Any] = None,
    ) -> None:
        self.status = status
        self.result = result
        super().__init__(message)


class SolverWarning(UserWarning):
    """Warning emitted when a solve step returns a non-successful status."""
