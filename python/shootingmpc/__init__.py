"""
shootingmpc: Multiple-Shooting Nonlinear MPC on CasADi
======================================================

shootingmpc transcribes a finite-horizon optimal control problem into an
NLP with direct multiple shooting and re-solves it in a receding-horizon
loop, warm-starting every solve from the previous solution.

Quick Start
-----------
>>> import casadi as ca
>>> import numpy as np
>>> from shootingmpc import MPC, Problem, DynamicsType
>>>
>>> class Integrator(Problem):
...     def __init__(self):
...         super().__init__(DynamicsType.CONTINUOUS_RK4, nx=1, nu=1,
...                          horizon=5, dt=0.1)
...         self.set_input_bound(-1.0, 1.0)
...
...     def dynamics(self, x, u):
...         return u
...
...     def terminal_cost(self, x):
...         return ca.sumsqr(x - 1)
>>>
>>> mpc = MPC(Integrator())
>>> u = mpc.solve(np.array([0.0]))    # ~ [1.0]

Backends are selected by preset name (``"ipopt"``, ``"qpoases"``,
``"hpipm"``) or by raw CasADi nlpsol plugin name plus an option dict.
"""

__version__ = "0.1.0"
__author__ = "shootingmpc Contributors"

from .problem import Problem, ProblemLike, DynamicsType, ConstraintType
from .integrators import forward_euler, modified_euler, rk4, transition_function
from .transcription import TranscribedNLP, transcribe
from .controller import MPC
from .result import MPCResult, Status
from .config import SolverPreset, PRESETS, IPOPT, QPOASES, HPIPM, get_preset
from .exceptions import (
    ShootingMPCError,
    DimensionError,
    InvalidInputError,
    HorizonIndexError,
    AssemblyError,
    SolverError,
    SolverWarning,
)

__all__ = [
    # Version
    "__version__",
    
    # Problem definition
    "Problem",
    "ProblemLike",
    "DynamicsType",
    "ConstraintType",
    
    # Integration
    "forward_euler",
    "modified_euler",
    "rk4",
    "transition_function",
    
    # Transcription and control
    "TranscribedNLP",
    "transcribe",
    "MPC",
    
    # Results
    "MPCResult",
    "Status",
    
    # Configuration
    "SolverPreset",
    "PRESETS",
    "IPOPT",
    "QPOASES",
    "HPIPM",
    "get_preset",
    
    # Exceptions
    "ShootingMPCError",
    "DimensionError",
    "InvalidInputError",
    "HorizonIndexError",
    "AssemblyError",
    "SolverError",
    "SolverWarning",
]


def info() -> str:
    """Return information about the shootingmpc installation."""
    import platform
    
    import casadi
    
    lines = [
        f"shootingmpc version: {__version__}",
        f"Python version: {platform.python_version()}",
        f"Platform: {platform.platform()}",
        f"CasADi version: {casadi.__version__}",
    ]
    
    for plugin in ("ipopt", "sqpmethod"):
        lines.append(f"nlpsol '{plugin}': {casadi.has_nlpsol(plugin)}")
    
    return "\n".join(lines)
