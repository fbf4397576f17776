"""
pytest configuration and fixtures for shootingmpc tests.
"""

import casadi as ca
import numpy as np
import pytest

from shootingmpc import DynamicsType, Problem


# ============================================================================
# Problems
# ============================================================================

class IntegratorProblem(Problem):
    """
    1-D integrator: dx/dt = u, terminal cost (x - 1)^2, |u| <= 1.
    
    With N=5 and dt=0.1 the target is out of reach, so the optimal
    sequence saturates at u = 1.
    """
    
    def __init__(self, dynamics_type=DynamicsType.CONTINUOUS_RK4, horizon=5, dt=0.1,
                 control_weight=0.0):
        super().__init__(dynamics_type, nx=1, nu=1, horizon=horizon, dt=dt)
        self.control_weight = control_weight
        self.set_input_bound(-1.0, 1.0)
    
    def dynamics(self, x, u):
        if self.dynamics_type is DynamicsType.DISCRETIZED:
            return x + self.dt * u
        return u
    
    def stage_cost(self, x, u):
        return self.control_weight * ca.sumsqr(u)
    
    def terminal_cost(self, x):
        return ca.sumsqr(x - 1)


class DoubleIntegratorProblem(Problem):
    """Point mass, x = [position, velocity], u = acceleration."""
    
    def __init__(self, horizon=10, dt=0.1, dynamics_type=DynamicsType.CONTINUOUS_FORWARD_EULER):
        super().__init__(dynamics_type, nx=2, nu=1, horizon=horizon, dt=dt)
    
    def dynamics(self, x, u):
        return ca.vertcat(x[1], u)
    
    def stage_cost(self, x, u):
        return ca.sumsqr(x) + 0.1 * ca.sumsqr(u)


@pytest.fixture
def integrator_problem():
    """The 1-D integrator round-trip problem."""
    return IntegratorProblem()


@pytest.fixture
def double_integrator_problem():
    """Unbounded double integrator, N=10."""
    return DoubleIntegratorProblem()


@pytest.fixture
def problem_factory():
    """Build problems with custom settings."""
    def make(kind="integrator", **kwargs):
        if kind == "integrator":
            return IntegratorProblem(**kwargs)
        return DoubleIntegratorProblem(**kwargs)
    return make


# ============================================================================
# Backends
# ============================================================================

class RecordingBackend:
    """
    Stand-in for ``CasadiBackend`` that records every call.
    
    Returns ``x = x0 + 1``, ``lam_x = lam_x0 + 0.5``, ``lam_g = lam_g0 - 0.5``
    so successive warm starts are easy to predict.
    """
    
    def __init__(self, nlp, plugin, options, success=True,
                 return_status="Solve_Succeeded"):
        self.nlp = nlp
        self.plugin = plugin
        self.options = options
        self.success = success
        self.return_status = return_status
        self.calls = []
    
    def __call__(self, x0, lbx, ubx, lbg, ubg, lam_x0, lam_g0):
        self.calls.append({
            "x0": np.array(x0, copy=True),
            "lbx": np.array(lbx, copy=True),
            "ubx": np.array(ubx, copy=True),
            "lbg": np.array(lbg, copy=True),
            "ubg": np.array(ubg, copy=True),
            "lam_x0": np.array(lam_x0, copy=True),
            "lam_g0": np.array(lam_g0, copy=True),
        })
        x = np.asarray(x0, dtype=float) + 1.0
        return {
            "x": x,
            "f": np.array([float(np.sum(x))]),
            "g": np.zeros(len(lbg)),
            "lam_x": np.asarray(lam_x0, dtype=float) + 0.5,
            "lam_g": np.asarray(lam_g0, dtype=float) - 0.5,
        }
    
    def stats(self):
        return {
            "success": self.success,
            "return_status": self.return_status,
            "iter_count": 3,
        }


@pytest.fixture
def recording_backend():
    """
    Backend factory for ``MPC(..., backend=...)``.
    
    Created backends are appended to ``factory.created``.
    """
    def factory(nlp, plugin, options):
        backend = RecordingBackend(nlp, plugin, options,
                                   success=factory.success,
                                   return_status=factory.return_status)
        factory.created.append(backend)
        return backend
    
    factory.created = []
    factory.success = True
    factory.return_status = "Solve_Succeeded"
    return factory


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests that run a real NLP solver")


# ============================================================================
# Skip Conditions
# ============================================================================

@pytest.fixture
def requires_ipopt():
    """Skip test if the IPOPT plugin is not available."""
    if not ca.has_nlpsol("ipopt"):
        pytest.skip("CasADi built without IPOPT")


@pytest.fixture
def requires_qpoases():
    """Skip test if sqpmethod + qpOASES is not available."""
    if not (ca.has_nlpsol("sqpmethod") and ca.has_conic("qpoases")):
        pytest.skip("CasADi built without qpOASES")
