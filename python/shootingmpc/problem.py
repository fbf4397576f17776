"""
Optimal Control Problem Definition
==================================

Base class for describing a finite-horizon optimal control problem.

A concrete problem subclasses :class:`Problem` and overrides
``dynamics`` (required), ``stage_cost`` and ``terminal_cost`` (both
default to zero). Box bounds on states and controls and general path
constraints are registered per stage before the problem is handed to
:class:`shootingmpc.MPC`.

Example
-------
>>> import casadi as ca
>>> from shootingmpc import Problem, DynamicsType
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
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, List, Protocol, Sequence, Tuple, Union, runtime_checkable

import numpy as np

from .exceptions import DimensionError, HorizonIndexError, InvalidInputError


ConstraintFunc = Callable[[Any, Any], Any]
BoundPair = Tuple[np.ndarray, np.ndarray]
BoundLike = Union[float, Sequence[float], np.ndarray]


class DynamicsType(Enum):
    """
    How ``Problem.dynamics`` is interpreted at assembly time.

    Attributes:
        CONTINUOUS_FORWARD_EULER: dx/dt = f(x, u), one explicit Euler step
        CONTINUOUS_MODIFIED_EULER: dx/dt = f(x, u), Heun predictor-corrector
        CONTINUOUS_RK4: dx/dt = f(x, u), classical Runge-Kutta 4
        DISCRETIZED: x_{k+1} = f(x_k, u_k), used as is
    """
    CONTINUOUS_FORWARD_EULER = "forward_euler"
    CONTINUOUS_MODIFIED_EULER = "modified_euler"
    CONTINUOUS_RK4 = "rk4"
    DISCRETIZED = "discretized"

    def __str__(self) -> str:
        return self.value


class ConstraintType(Enum):
    """Path constraint kind: ``g(x, u) = 0`` or ``g(x, u) <= 0``."""
    EQUALITY = "equality"
    INEQUALITY = "inequality"

    def __str__(self) -> str:
        return self.value


@runtime_checkable
class ProblemLike(Protocol):
    """
    Capability set required by the NLP assembler.

    Any object providing these members can be transcribed; subclassing
    :class:`Problem` is the usual way to get them.
    """

    @property
    def dynamics_type(self) -> DynamicsType: ...

    @property
    def nx(self) -> int: ...

    @property
    def nu(self) -> int: ...

    @property
    def horizon(self) -> int: ...

    @property
    def dt(self) -> float: ...

    @property
    def u_bounds(self) -> Tuple[BoundPair, ...]: ...

    @property
    def x_bounds(self) -> Tuple[BoundPair, ...]: ...

    @property
    def equality_constraints(self) -> Tuple[ConstraintFunc, ...]: ...

    @property
    def inequality_constraints(self) -> Tuple[ConstraintFunc, ...]: ...

    def dynamics(self, x: Any, u: Any) -> Any: ...

    def stage_cost(self, x: Any, u: Any) -> Any: ...

    def terminal_cost(self, x: Any) -> Any: ...


class Problem(ABC):
    """
    Finite-horizon optimal control problem.

    Args:
        dynamics_type: Interpretation of ``dynamics`` (enum or its value)
        nx: State dimension
        nu: Control dimension
        horizon: Number of shooting intervals N
        dt: Step size of one interval

    Bounds are stored per stage. ``u_bounds[k]`` bounds control ``U_k``;
    ``x_bounds[k]`` bounds state ``X_{k+1}`` (the initial state is pinned to
    the measurement on every solve, so it has no entry).

    Stage ranges for the ``set_*_bound`` methods:

    - ``start=-1, end=-1``: every stage ``[0, N)``
    - ``start=k, end=-1``: stage ``k`` only
    - ``start=k1, end=k2``: stages ``[k1, k2)``
    """

    def __init__(
        self,
        dynamics_type: Union[DynamicsType, str],
        nx: int,
        nu: int,
        horizon: int,
        dt: float,
    ) -> None:
        try:
            self._dynamics_type = DynamicsType(dynamics_type)
        except ValueError:
            raise InvalidInputError(
                f"unknown dynamics type {dynamics_type!r}"
            ) from None

        self._nx = _as_count(nx, "nx")
        self._nu = _as_count(nu, "nu")
        self._horizon = _as_count(horizon, "horizon")
        if not np.isfinite(dt) or dt <= 0:
            raise InvalidInputError(f"dt must be positive, got {dt}")

        self._dt = float(dt)

        self._u_bounds: List[List[np.ndarray]] = [
            [np.full(self._nu, -np.inf), np.full(self._nu, np.inf)]
            for _ in range(self._horizon)
        ]
        self._x_bounds: List[List[np.ndarray]] = [
            [np.full(self._nx, -np.inf), np.full(self._nx, np.inf)]
            for _ in range(self._horizon)
        ]

        self._equality_constraints: List[ConstraintFunc] = []
        self._inequality_constraints: List[ConstraintFunc] = []

    # ------------------------------------------------------------------
    # Behavior
    # ------------------------------------------------------------------

    @abstractmethod
    def dynamics(self, x: Any, u: Any) -> Any:
        """
        State derivative (continuous types) or next state (``DISCRETIZED``).

        Args:
            x: State column (nx, 1)
            u: Control column (nu, 1)

        Returns:
            Expression of shape (nx, 1)
        """

    def stage_cost(self, x: Any, u: Any) -> Any:
        """Running cost of one interval. Zero unless overridden."""
        return 0

    def terminal_cost(self, x: Any) -> Any:
        """Cost on the final state. Zero unless overridden."""
        return 0

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def dynamics_type(self) -> DynamicsType:
        return self._dynamics_type

    @property
    def nx(self) -> int:
        return self._nx

    @property
    def nu(self) -> int:
        return self._nu

    @property
    def horizon(self) -> int:
        return self._horizon

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def u_bounds(self) -> Tuple[BoundPair, ...]:
        """Per-stage (lower, upper) control bounds, copied."""
        return tuple((lb.copy(), ub.copy()) for lb, ub in self._u_bounds)

    @property
    def x_bounds(self) -> Tuple[BoundPair, ...]:
        """Per-stage (lower, upper) state bounds, copied. Entry k bounds X_{k+1}."""
        return tuple((lb.copy(), ub.copy()) for lb, ub in self._x_bounds)

    @property
    def equality_constraints(self) -> Tuple[ConstraintFunc, ...]:
        return tuple(self._equality_constraints)

    @property
    def inequality_constraints(self) -> Tuple[ConstraintFunc, ...]:
        return tuple(self._inequality_constraints)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(dynamics_type={self._dynamics_type}, "
            f"nx={self._nx}, nu={self._nu}, horizon={self._horizon}, "
            f"dt={self._dt:g})"
        )

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def set_input_bound(
        self, lb: BoundLike, ub: BoundLike, start: int = -1, end: int = -1
    ) -> None:
        """Set lower and upper control bounds on a stage range."""
        self._set_bounds(self._u_bounds, self._nu, "input", lb, ub, start, end)

    def set_input_lower_bound(self, lb: BoundLike, start: int = -1, end: int = -1) -> None:
        """Set the lower control bound on a stage range."""
        self._set_bounds(self._u_bounds, self._nu, "input", lb, None, start, end)

    def set_input_upper_bound(self, ub: BoundLike, start: int = -1, end: int = -1) -> None:
        """Set the upper control bound on a stage range."""
        self._set_bounds(self._u_bounds, self._nu, "input", None, ub, start, end)

    def set_state_bound(
        self, lb: BoundLike, ub: BoundLike, start: int = -1, end: int = -1
    ) -> None:
        """Set lower and upper state bounds on a stage range."""
        self._set_bounds(self._x_bounds, self._nx, "state", lb, ub, start, end)

    def set_state_lower_bound(self, lb: BoundLike, start: int = -1, end: int = -1) -> None:
        """Set the lower state bound on a stage range."""
        self._set_bounds(self._x_bounds, self._nx, "state", lb, None, start, end)

    def set_state_upper_bound(self, ub: BoundLike, start: int = -1, end: int = -1) -> None:
        """Set the upper state bound on a stage range."""
        self._set_bounds(self._x_bounds, self._nx, "state", None, ub, start, end)

    def index_range(self, start: int = -1, end: int = -1) -> Tuple[int, int]:
        """
        Resolve a ``(start, end)`` pair to a half-open stage range.

        Raises:
            HorizonIndexError: If the range leaves ``[0, horizon)`` or is empty
        """
        N = self._horizon

        if start == -1 and end == -1:
            return 0, N
        if start == -1:
            raise HorizonIndexError(f"end={end} given without start")
        if not 0 <= start < N:
            raise HorizonIndexError(f"start={start} not in [0, {N})")
        if end == -1:
            return start, start + 1
        if not start < end <= N:
            raise HorizonIndexError(f"end={end} not in ({start}, {N}]")
        return start, end

    def _set_bounds(
        self,
        store: List[List[np.ndarray]],
        dim: int,
        what: str,
        lb: BoundLike,
        ub: BoundLike,
        start: int,
        end: int,
    ) -> None:
        first, last = self.index_range(start, end)
        lower = None if lb is None else _as_bound(lb, dim, f"{what} lower bound")
        upper = None if ub is None else _as_bound(ub, dim, f"{what} upper bound")

        # validate every stage before touching any of them
        for i in range(first, last):
            new_lb = store[i][0] if lower is None else lower
            new_ub = store[i][1] if upper is None else upper
            if np.any(new_lb > new_ub):
                raise InvalidInputError(
                    f"{what} lower bound exceeds upper bound at stage {i}"
                )

        for i in range(first, last):
            if lower is not None:
                store[i][0] = lower.copy()
            if upper is not None:
                store[i][1] = upper.copy()

    # ------------------------------------------------------------------
    # Path constraints
    # ------------------------------------------------------------------

    def add_constraint(self, kind: Union[ConstraintType, str], fn: ConstraintFunc) -> None:
        """
        Register a path constraint ``fn(x, u)``.

        The constraint is evaluated once per stage i at ``(X_{i+1}, U_i)``.
        Equalities are enforced as ``fn == 0``, inequalities as ``fn <= 0``.

        Args:
            kind: ``ConstraintType.EQUALITY`` or ``ConstraintType.INEQUALITY``
            fn: Callable returning a column expression
        """
        try:
            kind = ConstraintType(kind)
        except ValueError:
            raise InvalidInputError(f"unknown constraint kind {kind!r}") from None
        if not callable(fn):
            raise InvalidInputError(f"constraint must be callable, got {type(fn).__name__}")

        if kind is ConstraintType.EQUALITY:
            self._equality_constraints.append(fn)
        else:
            self._inequality_constraints.append(fn)

    def add_equality_constraint(self, fn: ConstraintFunc) -> None:
        """Register ``fn(x, u) == 0``."""
        self.add_constraint(ConstraintType.EQUALITY, fn)

    def add_inequality_constraint(self, fn: ConstraintFunc) -> None:
        """Register ``fn(x, u) <= 0``."""
        self.add_constraint(ConstraintType.INEQUALITY, fn)


def _as_count(value: Any, name: str) -> int:
    """Validate a positive integer size."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise InvalidInputError(f"{name} must be >= 1, got {value}")
    return int(value)


def _as_bound(value: BoundLike, dim: int, name: str) -> np.ndarray:
    """Broadcast a scalar or validate a vector bound of length ``dim``."""
    if np.isscalar(value):
        arr = np.full(dim, float(value))
    else:
        arr = np.asarray(value, dtype=np.float64).ravel()
        if arr.shape != (dim,):
            raise DimensionError(f"{name} has {arr.size} elements, expected {dim}")

    if np.any(np.isnan(arr)):
        raise InvalidInputError(f"{name} contains NaN values")
    return arr
