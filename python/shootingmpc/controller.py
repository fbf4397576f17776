"""
Receding-Horizon Controller
===========================

Nonlinear MPC on top of the multiple-shooting transcription.

Classes:
- MPC: builds the NLP once, then re-solves it from each measured state
  with warm-started primal and dual guesses
"""

from __future__ import annotations

import logging
import time
import warnings
from typing import Any, Callable, Dict, Mapping, Optional

import numpy as np

from .backend import BackendFactory, CasadiBackend
from .config import resolve_solver
from .exceptions import DimensionError, InvalidInputError, SolverError, SolverWarning
from .problem import ProblemLike
from .result import MPCResult, Status
from .transcription import TranscribedNLP, transcribe

logger = logging.getLogger(__name__)


class MPC:
    """
    Receding-horizon NLP controller.

    At construction the problem is transcribed (multiple shooting) and bound
    to a numerical backend. Each call to :meth:`solve` then

    1. pins ``X_0`` to the measured state through coincident bounds,
    2. re-solves from the previous primal solution and multipliers,
    3. caches the new solution for the next call,
    4. returns the first control ``U_0``.

    The cached solution is reused as is (no horizon shift), which is a good
    guess when the control period matches ``problem.dt``.

    Instances are not thread-safe: ``solve`` mutates the bound vectors and
    the warm-start cache in place.

    Args:
        problem: Problem definition (any object with the Problem interface)
        solver: Preset name (``"ipopt"``, ``"qpoases"``, ``"hpipm"``) or a raw
            CasADi nlpsol plugin name
        config: Backend options, forwarded unmodified. ``None`` selects the
            preset's defaults
        backend: Factory ``(nlp, plugin, options) -> backend``; defaults to
            :class:`~shootingmpc.backend.CasadiBackend`

    Example:
        >>> mpc = MPC(problem)                      # IPOPT preset
        >>> u0 = mpc.solve(np.array([0.0]))         # first control
        >>>
        >>> mpc = MPC(problem, solver="hpipm")      # SQP + HPIPM
        >>> result = mpc.step(x_measured)           # full result, no raise
    """

    def __init__(
        self,
        problem: ProblemLike,
        solver: str = "ipopt",
        config: Optional[Mapping[str, Any]] = None,
        backend: Optional[BackendFactory] = None,
    ) -> None:
        self.problem = problem
        self.solver_name, self.config = resolve_solver(solver, config)

        self._nlp: TranscribedNLP = transcribe(problem)

        factory = backend if backend is not None else CasadiBackend
        self._backend = factory(self._nlp.nlp, self.solver_name, self.config)

        self.nx = self._nlp.nx
        self.nu = self._nlp.nu
        self.horizon = self._nlp.horizon

        self._lbw = self._nlp.lbw.copy()
        self._ubw = self._nlp.ubw.copy()
        self._lbg = self._nlp.lbg.copy()
        self._ubg = self._nlp.ubg.copy()

        self.reset_warm_start()
        self.last_result: Optional[MPCResult] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def casadi_prob(self) -> Dict[str, Any]:
        """Assembled symbolic problem ``{"x": w, "f": J, "g": g}``."""
        return dict(self._nlp.nlp)

    @property
    def nlp(self) -> TranscribedNLP:
        """Transcription layout (sizes, offsets, initial bounds)."""
        return self._nlp

    @property
    def bounds(self) -> Dict[str, np.ndarray]:
        """Current ``lbx/ubx/lbg/ubg`` vectors, copied."""
        return {
            "lbx": self._lbw.copy(),
            "ubx": self._ubw.copy(),
            "lbg": self._lbg.copy(),
            "ubg": self._ubg.copy(),
        }

    @property
    def warm_start(self) -> Dict[str, np.ndarray]:
        """Cached primal guess and multipliers, copied."""
        return {
            "x0": self._w0.copy(),
            "lam_x0": self._lam_x0.copy(),
            "lam_g0": self._lam_g0.copy(),
        }

    def reset_warm_start(self) -> None:
        """Forget the previous solution; the next solve starts from zeros."""
        self._w0 = np.zeros(self._nlp.n_w)
        self._lam_x0 = np.zeros(self._nlp.n_w)
        self._lam_g0 = np.zeros(self._nlp.n_g)

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def solve(self, current_state: np.ndarray) -> np.ndarray:
        """
        Compute the control to apply at the measured state.

        Args:
            current_state: Measured state (nx,)

        Returns:
            First control of the optimized sequence (nu,)

        Raises:
            DimensionError: If ``current_state`` has the wrong size
            InvalidInputError: If ``current_state`` is not finite
            SolverError: If the backend does not report success. The
                warm-start cache has already been updated; the failed
                result is available as ``error.result``.
        """
        result = self._solve(current_state)
        if not result.status.is_successful:
            raise SolverError(
                f"Solver '{self.solver_name}' returned {result.return_status}",
                status=result.status,
                result=result,
            )
        return result.optimal_control.copy()

    def step(self, current_state: np.ndarray) -> MPCResult:
        """
        Same as :meth:`solve` but returns the full result.

        Backend failures are reported through ``result.status`` and a
        :class:`~shootingmpc.exceptions.SolverWarning`, never raised.
        """
        result = self._solve(current_state)
        if not result.status.is_successful:
            warnings.warn(
                f"Solver '{self.solver_name}' returned {result.return_status} "
                f"({result.status})",
                SolverWarning,
                stacklevel=2,
            )
        return result

    def _solve(self, current_state: np.ndarray) -> MPCResult:
        x0 = self._check_state(current_state)
        nx = self.nx

        # X_0 == x0 via coincident bounds
        self._lbw[:nx] = x0
        self._ubw[:nx] = x0

        start = time.perf_counter()
        sol = self._backend(
            x0=self._w0,
            lbx=self._lbw,
            ubx=self._ubw,
            lbg=self._lbg,
            ubg=self._ubg,
            lam_x0=self._lam_x0,
            lam_g0=self._lam_g0,
        )
        solve_time = time.perf_counter() - start
        stats = self._backend.stats()

        w = np.asarray(sol["x"], dtype=np.float64).ravel()
        if w.shape != (self._nlp.n_w,):
            raise DimensionError(
                f"backend returned {w.size} primal values, expected {self._nlp.n_w}"
            )

        self._w0 = w.copy()
        self._lam_x0 = np.asarray(sol.get("lam_x", self._lam_x0), dtype=np.float64).ravel().copy()
        self._lam_g0 = np.asarray(sol.get("lam_g", self._lam_g0), dtype=np.float64).ravel().copy()

        x_traj, u_seq = self._nlp.split(w)
        status = Status.from_stats(stats)

        result = MPCResult(
            x=x_traj,
            u=u_seq,
            cost=float(np.asarray(sol.get("f", np.nan)).ravel()[0]),
            status=status,
            return_status=str(stats.get("return_status", status.value)),
            solve_time=solve_time,
            iterations=_iterations(stats),
            lam_g=self._lam_g0.copy(),
            lam_x=self._lam_x0.copy(),
            stats=stats,
        )
        self.last_result = result
        logger.debug("solve: %s in %.4fs, u0=%s", status, solve_time, u_seq[0])
        return result

    def _check_state(self, current_state: np.ndarray) -> np.ndarray:
        x0 = np.asarray(current_state, dtype=np.float64).ravel()
        if x0.shape != (self.nx,):
            raise DimensionError(
                f"current_state must have {self.nx} elements, got {x0.size}"
            )
        if not np.all(np.isfinite(x0)):
            raise InvalidInputError("current_state contains non-finite values")
        return x0

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def simulate(
        self,
        x0: np.ndarray,
        n_steps: int,
        plant: Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]] = None,
        disturbance: Optional[np.ndarray] = None,
    ) -> Dict[str, np.ndarray]:
        """
        Simulate closed-loop MPC control.

        Args:
            x0: Initial state
            n_steps: Number of control steps
            plant: ``(x, u) -> x_next``; defaults to the problem's own
                one-step transition
            disturbance: Additive disturbance (n_steps, n_x)

        Returns:
            Dictionary with 'x' (n_steps+1, n_x), 'u' (n_steps, n_u) and
            'status' (n_steps,) of status strings
        """
        if plant is None:
            plant = self.predict_step

        x = np.zeros((n_steps + 1, self.nx))
        u = np.zeros((n_steps, self.nu))
        status = np.empty(n_steps, dtype=object)

        x[0] = self._check_state(x0)

        for k in range(n_steps):
            result = self.step(x[k])

            u[k] = result.optimal_control
            status[k] = str(result.status)

            x[k + 1] = np.asarray(plant(x[k], u[k]), dtype=np.float64).ravel()

            if disturbance is not None:
                x[k + 1] += disturbance[k]

        return {"x": x, "u": u, "status": status}

    def predict_step(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """Evaluate the transcribed one-step transition numerically."""
        return np.asarray(self._nlp.transition(x, u).full()).ravel()


def _iterations(stats: Mapping[str, Any]) -> int:
    if "iter_count" in stats:
        return int(stats["iter_count"])
    iterations = stats.get("iterations")
    if isinstance(iterations, Mapping) and "obj" in iterations:
        return max(len(iterations["obj"]) - 1, 0)
    return 0

