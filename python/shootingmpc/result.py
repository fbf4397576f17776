"""
shootingmpc Result Classes
==========================

Data classes for solver status and receding-horizon solve results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping

import numpy as np


class Status(Enum):
    """
    Solver status codes.
    
    Attributes:
        OPTIMAL: Solution found within tolerance
        ACCEPTABLE: Solution found within the backend's relaxed tolerance
        PRIMAL_INFEASIBLE: Problem has no feasible solution
        MAX_ITERATIONS: Maximum iteration limit reached
        TIME_LIMIT: CPU or wall time limit exceeded
        NUMERICAL_ERROR: Numerical issues encountered (NaN, restoration failure)
        UNKNOWN: Backend reported a status that has no mapping
        UNSOLVED: Problem not yet solved
    """
    OPTIMAL = "optimal"
    ACCEPTABLE = "acceptable"
    PRIMAL_INFEASIBLE = "primal_infeasible"
    MAX_ITERATIONS = "max_iterations"
    TIME_LIMIT = "time_limit"
    NUMERICAL_ERROR = "numerical_error"
    UNKNOWN = "unknown"
    UNSOLVED = "unsolved"
    
    def __str__(self) -> str:
        return self.value
    
    @property
    def is_successful(self) -> bool:
        """True if the backend reported convergence."""
        return self in (Status.OPTIMAL, Status.ACCEPTABLE)
    
    @property
    def has_solution(self) -> bool:
        """True if a (possibly suboptimal) iterate is available."""
        return self in (
            Status.OPTIMAL,
            Status.ACCEPTABLE,
            Status.MAX_ITERATIONS,
            Status.TIME_LIMIT,
        )
    
    @classmethod
    def from_stats(cls, stats: Mapping[str, Any]) -> "Status":
        """
        Map a CasADi ``Function.stats()`` dictionary to a status.
        
        The ``success`` flag is authoritative; ``return_status`` (or the
        plugin-independent ``unified_return_status``) refines it.
        """
        raw = str(stats.get("return_status", ""))
        unified = str(stats.get("unified_return_status", ""))
        
        if stats.get("success", False):
            if raw in _ACCEPTABLE_STATUSES:
                return cls.ACCEPTABLE
            return cls.OPTIMAL
        
        if raw in _RETURN_STATUS_MAP:
            return _RETURN_STATUS_MAP[raw]
        if unified in _UNIFIED_STATUS_MAP:
            return _UNIFIED_STATUS_MAP[unified]
        return cls.UNKNOWN


_ACCEPTABLE_STATUSES = ("Solved_To_Acceptable_Level", "Feasible_Point_Found")

# IPOPT and sqpmethod return_status strings
_RETURN_STATUS_MAP = {
    "Infeasible_Problem_Detected": Status.PRIMAL_INFEASIBLE,
    "Not_Enough_Degrees_Of_Freedom": Status.PRIMAL_INFEASIBLE,
    "Restoration_Failed": Status.NUMERICAL_ERROR,
    "Error_In_Step_Computation": Status.NUMERICAL_ERROR,
    "Invalid_Number_Detected": Status.NUMERICAL_ERROR,
    "Diverging_Iterates": Status.NUMERICAL_ERROR,
    "Search_Direction_Becomes_Too_Small": Status.NUMERICAL_ERROR,
    "Maximum_Iterations_Exceeded": Status.MAX_ITERATIONS,
    "Maximum_CpuTime_Exceeded": Status.TIME_LIMIT,
    "Maximum_WallTime_Exceeded": Status.TIME_LIMIT,
}

_UNIFIED_STATUS_MAP = {
    "SOLVER_RET_INFEASIBLE": Status.PRIMAL_INFEASIBLE,
    "SOLVER_RET_LIMITED": Status.MAX_ITERATIONS,
    "SOLVER_RET_NAN": Status.NUMERICAL_ERROR,
}


@dataclass
class MPCResult:
    """
    Result of one receding-horizon solve.
    
    Attributes:
        x: Predicted state trajectory (N+1, n_x), row 0 is the measured state
        u: Optimal control sequence (N, n_u)
        cost: Objective value reported by the backend
        status: Mapped solver status
        return_status: Raw status string reported by the backend
        solve_time: Wall clock time of the backend call (seconds)
        iterations: Backend iterations, 0 if not reported
        lam_g: Constraint multipliers returned by the backend
        lam_x: Bound multipliers returned by the backend
        stats: Raw backend statistics
    
    Example:
        >>> result = mpc.step(x0)
        >>> if result.status.is_successful:
        ...     apply(result.optimal_control)
    """
    
    x: np.ndarray
    u: np.ndarray
    cost: float
    status: Status
    return_status: str
    solve_time: float
    iterations: int = 0
    lam_g: np.ndarray = field(default_factory=lambda: np.zeros(0))
    lam_x: np.ndarray = field(default_factory=lambda: np.zeros(0))
    stats: Dict[str, Any] = field(default_factory=dict)
    
    @property
    def optimal_control(self) -> np.ndarray:
        """First control action to apply (n_u,)."""
        return self.u[0]
    
    @property
    def predicted_trajectory(self) -> np.ndarray:
        """Predicted state trajectory (N+1, n_x)."""
        return self.x
    
    @property
    def is_optimal(self) -> bool:
        """Whether the backend reported convergence."""
        return self.status.is_successful
    
    def __repr__(self) -> str:
        return (
            f"MPCResult(status={self.status}, "
            f"cost={self.cost:.6g}, "
            f"iterations={self.iterations}, "
            f"time={self.solve_time:.4f}s, "
            f"horizon={len(self.u)})"
        )
    
    def summary(self) -> str:
        """Return a formatted summary of the solve result."""
        lines = [
            "=" * 50,
            "shootingmpc Solve Summary",
            "=" * 50,
            f"Status:           {self.status}",
            f"Return status:    {self.return_status}",
            f"Cost:             {self.cost:.10g}",
            f"Iterations:       {self.iterations}",
            f"Solve time:       {self.solve_time:.4f} s",
            "-" * 50,
            f"First control:    {np.array2string(self.optimal_control, precision=6)}",
            "=" * 50,
        ]
        return "\n".join(lines)
