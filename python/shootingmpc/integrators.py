"""
Integration Schemes
===================

One-step integrators turning continuous dynamics dx/dt = f(x, u) into the
transition x_{k+1} = F(x_k, u_k) used by the shooting defects.

All schemes only use ``+``, ``-`` and scalar ``*``/``/``, so they work on
CasADi symbols during assembly and on NumPy arrays for simulation.

Supported schemes:
- Forward Euler (first order, one evaluation)
- Modified Euler / Heun (second order, two evaluations)
- Classical Runge-Kutta 4 (fourth order, four evaluations)
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from .exceptions import InvalidInputError
from .problem import DynamicsType

Dynamics = Callable[[Any, Any], Any]
Transition = Callable[[Any, Any], Any]


def forward_euler(dt: float, x: Any, u: Any, dynamics: Dynamics) -> Any:
    """x + dt * f(x, u)"""
    return x + dt * dynamics(x, u)


def modified_euler(dt: float, x: Any, u: Any, dynamics: Dynamics) -> Any:
    """
    Heun's method.

    k1 = f(x, u)
    k2 = f(x + dt*k1, u)
    x_next = x + dt * (k1 + k2) / 2
    """
    k1 = dynamics(x, u)
    k2 = dynamics(x + dt * k1, u)
    return x + dt * (k1 + k2) / 2


def rk4(dt: float, x: Any, u: Any, dynamics: Dynamics) -> Any:
    """Classical fourth-order Runge-Kutta step with zero-order-hold input."""
    k1 = dynamics(x, u)
    k2 = dynamics(x + dt / 2 * k1, u)
    k3 = dynamics(x + dt / 2 * k2, u)
    k4 = dynamics(x + dt * k3, u)
    return x + dt / 6 * (k1 + 2 * k2 + 2 * k3 + k4)


INTEGRATORS: Dict[DynamicsType, Callable[[float, Any, Any, Dynamics], Any]] = {
    DynamicsType.CONTINUOUS_FORWARD_EULER: forward_euler,
    DynamicsType.CONTINUOUS_MODIFIED_EULER: modified_euler,
    DynamicsType.CONTINUOUS_RK4: rk4,
}


def transition_function(problem) -> Transition:
    """
    Build the one-step transition ``(x, u) -> x_next`` for a problem.

    Args:
        problem: Object exposing ``dynamics_type``, ``dt`` and ``dynamics``

    Returns:
        Callable producing the next state
    """
    dynamics_type = problem.dynamics_type

    if dynamics_type is DynamicsType.DISCRETIZED:
        return problem.dynamics

    try:
        scheme = INTEGRATORS[dynamics_type]
    except KeyError:
        raise InvalidInputError(f"no integrator for {dynamics_type!r}") from None

    dt = problem.dt
    dynamics = problem.dynamics

    def transition(x, u):
        return scheme(dt, x, u, dynamics)

    transition.__name__ = f"{scheme.__name__}_transition"
    return transition
