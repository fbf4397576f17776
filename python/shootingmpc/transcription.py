"""
Multiple-Shooting Transcription
===============================

Turns a :class:`~shootingmpc.problem.Problem` into a fixed-structure NLP.

Decision vector (stage-interleaved):

    w = [X_0, U_0, X_1, U_1, ..., X_{N-1}, U_{N-1}, X_N]

Constraint vector, for each stage i = 0..N-1:

    F(X_i, U_i) - X_{i+1}                        (nx rows, = 0)
    h_1(X_{i+1}, U_i), ..., h_p(X_{i+1}, U_i)    (equalities, = 0)
    c_1(X_{i+1}, U_i), ..., c_q(X_{i+1}, U_i)    (inequalities, <= 0)

Bounds on w:

    X_0      0 / 0 placeholder, overwritten with the measured state
    U_i      u_bounds[i]
    X_i      x_bounds[i-1]            for i = 1..N
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import casadi as ca
import numpy as np

from .exceptions import AssemblyError, DimensionError, InvalidInputError
from .integrators import transition_function
from .problem import DynamicsType, ProblemLike

logger = logging.getLogger(__name__)


@dataclass
class TranscribedNLP:
    """
    Assembled NLP plus its bound vectors and layout.

    Attributes:
        nlp: ``{"x": w, "f": J, "g": g}`` CasADi expressions
        lbw, ubw: Decision-vector bounds (n_w,)
        lbg, ubg: Constraint bounds (n_g,)
        nx, nu, horizon: Problem dimensions
        eq_dims: Output size of each equality constraint
        ineq_dims: Output size of each inequality constraint
        transition: Numeric one-step map ``F(x, u) -> x_next``
    """
    nlp: Dict[str, Any]
    lbw: np.ndarray
    ubw: np.ndarray
    lbg: np.ndarray
    ubg: np.ndarray
    nx: int
    nu: int
    horizon: int
    eq_dims: List[int] = field(default_factory=list)
    ineq_dims: List[int] = field(default_factory=list)
    transition: Any = None

    @property
    def n_w(self) -> int:
        """Decision-vector length N*(nx+nu) + nx."""
        return len(self.lbw)

    @property
    def n_g(self) -> int:
        """Constraint-vector length."""
        return len(self.lbg)

    @property
    def stage_size(self) -> int:
        """Rows of g contributed by one stage."""
        return self.nx + sum(self.eq_dims) + sum(self.ineq_dims)

    def state_index(self, i: int) -> int:
        """Offset of X_i in w."""
        return i * (self.nx + self.nu)

    def control_index(self, i: int) -> int:
        """Offset of U_i in w."""
        return i * (self.nx + self.nu) + self.nx

    def split(self, w: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Split a decision vector into trajectories.

        Returns:
            States (N+1, nx) and controls (N, nu)
        """
        w = np.asarray(w, dtype=np.float64).ravel()
        N, nx, nu = self.horizon, self.nx, self.nu
        stages = w[:N * (nx + nu)].reshape(N, nx + nu)
        x = np.vstack([stages[:, :nx], w[N * (nx + nu):].reshape(1, nx)])
        u = stages[:, nx:]
        return x, u


def transcribe(problem: ProblemLike) -> TranscribedNLP:
    """
    Build the multiple-shooting NLP for ``problem``.

    Raises:
        InvalidInputError: If ``problem`` lacks part of the Problem interface
        DimensionError: If stored bounds do not match ``nx``/``nu``/``horizon``
        AssemblyError: If a user callback fails or returns a badly shaped
            expression
    """
    if not isinstance(problem, ProblemLike):
        raise InvalidInputError(
            f"{type(problem).__name__} does not provide the Problem interface"
        )
    if not isinstance(problem.dynamics_type, DynamicsType):
        raise InvalidInputError(f"unknown dynamics type {problem.dynamics_type!r}")

    nx, nu, N = int(problem.nx), int(problem.nu), int(problem.horizon)
    u_bounds = _checked_bounds(problem.u_bounds, N, nu, "u_bounds")
    x_bounds = _checked_bounds(problem.x_bounds, N, nx, "x_bounds")
    equalities = problem.equality_constraints
    inequalities = problem.inequality_constraints

    transition = transition_function(problem)

    Xs = [ca.MX.sym(f"X_{i}", nx) for i in range(N + 1)]
    Us = [ca.MX.sym(f"U_{i}", nu) for i in range(N)]

    w: List[ca.MX] = []
    g: List[ca.MX] = []
    lbw: List[np.ndarray] = []
    ubw: List[np.ndarray] = []
    lbg: List[np.ndarray] = []
    ubg: List[np.ndarray] = []
    J = ca.MX(0)

    eq_dims: List[int] = []
    ineq_dims: List[int] = []

    for i in range(N):
        w.append(Xs[i])
        if i == 0:
            lbw.append(np.zeros(nx))
            ubw.append(np.zeros(nx))
        else:
            lbw.append(x_bounds[i - 1][0])
            ubw.append(x_bounds[i - 1][1])

        w.append(Us[i])
        lbw.append(u_bounds[i][0])
        ubw.append(u_bounds[i][1])

        xplus = _call(transition, "dynamics", Xs[i], Us[i])
        xplus = _column(xplus, "dynamics")
        if xplus.shape != (nx, 1):
            raise AssemblyError(
                f"dynamics returned shape {xplus.shape}, expected ({nx}, 1)"
            )
        J += _scalar(_call(problem.stage_cost, "stage_cost", Xs[i], Us[i]), "stage_cost")

        g.append(xplus - Xs[i + 1])
        lbg.append(np.zeros(nx))
        ubg.append(np.zeros(nx))

        for k, con in enumerate(equalities):
            value = _column(_call(con, f"equality constraint {k}", Xs[i + 1], Us[i]),
                            f"equality constraint {k}")
            if i == 0:
                eq_dims.append(value.size1())
            g.append(value)
            lbg.append(np.zeros(value.size1()))
            ubg.append(np.zeros(value.size1()))

        for k, con in enumerate(inequalities):
            value = _column(_call(con, f"inequality constraint {k}", Xs[i + 1], Us[i]),
                            f"inequality constraint {k}")
            if i == 0:
                ineq_dims.append(value.size1())
            g.append(value)
            lbg.append(np.full(value.size1(), -np.inf))
            ubg.append(np.zeros(value.size1()))

    J += _scalar(_call(problem.terminal_cost, "terminal_cost", Xs[N]), "terminal_cost")

    w.append(Xs[N])
    lbw.append(x_bounds[N - 1][0])
    ubw.append(x_bounds[N - 1][1])

    nlp = {"x": ca.vertcat(*w), "f": J, "g": ca.vertcat(*g)}

    x_sym = ca.MX.sym("x", nx)
    u_sym = ca.MX.sym("u", nu)
    x_next = _column(_call(transition, "dynamics", x_sym, u_sym), "dynamics")
    F = ca.Function("F", [x_sym, u_sym], [x_next], ["x", "u"], ["x_next"])

    result = TranscribedNLP(
        nlp=nlp,
        lbw=np.concatenate(lbw).astype(np.float64),
        ubw=np.concatenate(ubw).astype(np.float64),
        lbg=np.concatenate(lbg).astype(np.float64),
        ubg=np.concatenate(ubg).astype(np.float64),
        nx=nx,
        nu=nu,
        horizon=N,
        eq_dims=eq_dims,
        ineq_dims=ineq_dims,
        transition=F,
    )
    logger.debug(
        "transcribed %s: n_w=%d n_g=%d (%s dynamics)",
        type(problem).__name__, result.n_w, result.n_g, problem.dynamics_type,
    )
    return result


def _checked_bounds(bounds, N: int, dim: int, name: str) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Validate a per-stage bound sequence from a ProblemLike."""
    bounds = list(bounds)
    if len(bounds) != N:
        raise DimensionError(f"{name} has {len(bounds)} entries, expected {N}")

    checked = []
    for k, (lb, ub) in enumerate(bounds):
        lb = np.asarray(lb, dtype=np.float64).ravel()
        ub = np.asarray(ub, dtype=np.float64).ravel()
        if lb.shape != (dim,) or ub.shape != (dim,):
            raise DimensionError(
                f"{name}[{k}] has sizes ({lb.size}, {ub.size}), expected {dim}"
            )
        checked.append((lb, ub))
    return checked


def _call(fn, what: str, *args):
    try:
        return fn(*args)
    except AssemblyError:
        raise
    except Exception as e:
        raise AssemblyError(f"{what} raised {type(e).__name__}: {e}") from e


def _column(value, what: str) -> ca.MX:
    """Coerce a callback result to a column MX expression."""
    if isinstance(value, (list, tuple)):
        value = ca.vertcat(*value)
    try:
        value = ca.MX(value)
    except (NotImplementedError, TypeError, RuntimeError) as e:
        raise AssemblyError(f"{what} returned {type(value).__name__}") from e
    if value.size2() != 1:
        raise AssemblyError(
            f"{what} must return a column vector, got shape {value.shape}"
        )
    return value


def _scalar(value, what: str) -> ca.MX:
    try:
        value = ca.MX(value)
    except (NotImplementedError, TypeError, RuntimeError) as e:
        raise AssemblyError(f"{what} returned {type(value).__name__}") from e
    if value.shape != (1, 1):
        raise AssemblyError(f"{what} must be scalar, got shape {value.shape}")
    return value
