"""
Tests for the receding-horizon controller.

Tests covering:
1. Initial-state enforcement through coincident bounds
2. Warm-start persistence between solves
3. First-control extraction
4. Failure reporting (SolverError, SolverWarning)
5. Backend selection and option forwarding
6. Closed-loop simulation

All tests run against a recording backend, no NLP solver is needed.
"""

import warnings

import numpy as np
import pytest

from shootingmpc import (
    HPIPM,
    MPC,
    AssemblyError,
    DimensionError,
    InvalidInputError,
    SolverError,
    SolverWarning,
    Status,
)


class TestConstruction:
    """Building the controller."""

    def test_dimensions(self, integrator_problem, recording_backend):
        """Sizes come from the transcription."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        assert mpc.nx == 1
        assert mpc.nu == 1
        assert mpc.horizon == 5
        assert mpc.nlp.n_w == 5 * 2 + 1
        assert mpc.last_result is None

    def test_backend_receives_nlp(self, integrator_problem, recording_backend):
        """The backend is built once from the assembled NLP."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        assert len(recording_backend.created) == 1
        backend = recording_backend.created[0]
        assert set(backend.nlp) == {"x", "f", "g"}
        assert backend.nlp["x"].shape == (mpc.nlp.n_w, 1)

    def test_casadi_prob_matches_nlp(self, integrator_problem, recording_backend):
        """casadi_prob exposes the symbolic problem."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        prob = mpc.casadi_prob
        assert prob["g"].shape == (mpc.nlp.n_g, 1)

    def test_initial_warm_start_is_zero(self, integrator_problem, recording_backend):
        """Before any solve the guesses are zero."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        ws = mpc.warm_start
        assert ws["x0"].shape == (11,)
        assert ws["lam_g0"].shape == (5,)
        for value in ws.values():
            np.testing.assert_array_equal(value, 0)

    def test_assembly_error_at_construction(self, integrator_problem, recording_backend):
        """A malformed problem fails before a backend is created."""
        integrator_problem.add_equality_constraint(lambda x, u: [x, x, u][3])

        with pytest.raises(AssemblyError):
            MPC(integrator_problem, backend=recording_backend)
        assert recording_backend.created == []


class TestSolverSelection:
    """Preset resolution and option forwarding."""

    def test_default_is_ipopt_preset(self, integrator_problem, recording_backend):
        """Default solver is the IPOPT preset."""
        MPC(integrator_problem, backend=recording_backend)

        backend = recording_backend.created[0]
        assert backend.plugin == "ipopt"
        assert backend.options["ipopt.warm_start_init_point"] == "yes"

    def test_hpipm_preset(self, integrator_problem, recording_backend):
        """HPIPM runs through sqpmethod."""
        mpc = MPC(integrator_problem, solver="hpipm", backend=recording_backend)

        backend = recording_backend.created[0]
        assert mpc.solver_name == "sqpmethod"
        assert backend.plugin == "sqpmethod"
        assert backend.options == HPIPM.options_copy()

    def test_hpipm_preset_config_without_qpsol(self, integrator_problem, recording_backend):
        """A preset config that would lose the QP solver is rejected."""
        with pytest.raises(InvalidInputError, match="qpsol"):
            MPC(integrator_problem, solver="hpipm", config={"max_iter": 20},
                backend=recording_backend)
        assert recording_backend.created == []

    def test_hpipm_preset_with_overrides(self, integrator_problem, recording_backend):
        """Overrides built from the preset keep the QP solver."""
        config = HPIPM.with_overrides({"max_iter": 20})

        MPC(integrator_problem, solver="hpipm", config=config, backend=recording_backend)

        backend = recording_backend.created[0]
        assert backend.options["qpsol"] == "hpipm"
        assert backend.options["max_iter"] == 20

    def test_config_forwarded_unmodified(self, integrator_problem, recording_backend):
        """A user config reaches the backend as given."""
        config = {"qpsol": "osqp", "max_iter": 7, "qpsol_options": {"osqp.verbose": False}}

        MPC(integrator_problem, solver="sqpmethod", config=config, backend=recording_backend)

        backend = recording_backend.created[0]
        assert backend.plugin == "sqpmethod"
        assert backend.options == config
        assert config == {"qpsol": "osqp", "max_iter": 7,
                          "qpsol_options": {"osqp.verbose": False}}


class TestSolve:
    """Single solves."""

    def test_initial_state_enforced(self, double_integrator_problem, recording_backend):
        """The first nx entries of lbx and ubx equal the measured state."""
        mpc = MPC(double_integrator_problem, backend=recording_backend)
        backend = recording_backend.created[0]

        mpc.solve(np.array([0.3, -0.2]))
        mpc.solve(np.array([1.5, 2.5]))

        np.testing.assert_allclose(backend.calls[0]["lbx"][:2], [0.3, -0.2])
        np.testing.assert_allclose(backend.calls[0]["ubx"][:2], [0.3, -0.2])
        np.testing.assert_allclose(backend.calls[1]["lbx"][:2], [1.5, 2.5])
        np.testing.assert_allclose(backend.calls[1]["ubx"][:2], [1.5, 2.5])

    def test_other_bounds_untouched(self, integrator_problem, recording_backend):
        """Only the X_0 slice of the bounds changes."""
        mpc = MPC(integrator_problem, backend=recording_backend)
        backend = recording_backend.created[0]

        mpc.solve(np.array([0.4]))

        call = backend.calls[0]
        np.testing.assert_array_equal(call["lbx"][1:], mpc.nlp.lbw[1:])
        np.testing.assert_array_equal(call["ubx"][1:], mpc.nlp.ubw[1:])
        np.testing.assert_array_equal(call["lbg"], mpc.nlp.lbg)
        np.testing.assert_array_equal(call["ubg"], mpc.nlp.ubg)
        np.testing.assert_allclose(mpc.bounds["lbx"][:1], [0.4])

    def test_first_control(self, double_integrator_problem, recording_backend):
        """solve returns w[nx:nx+nu]."""
        mpc = MPC(double_integrator_problem, backend=recording_backend)

        u0 = mpc.solve(np.zeros(2))

        # zero guess + 1 from the recording backend
        assert u0.shape == (1,)
        np.testing.assert_allclose(u0, [1.0])
        np.testing.assert_allclose(mpc.last_result.u[0], u0)

    def test_warm_start_persistence(self, integrator_problem, recording_backend):
        """The next solve starts from the previous primal and dual solution."""
        mpc = MPC(integrator_problem, backend=recording_backend)
        backend = recording_backend.created[0]

        mpc.solve(np.array([0.0]))
        mpc.solve(np.array([0.0]))
        mpc.solve(np.array([0.0]))

        np.testing.assert_array_equal(backend.calls[0]["x0"], 0)
        np.testing.assert_array_equal(backend.calls[1]["x0"], 1)
        np.testing.assert_array_equal(backend.calls[2]["x0"], 2)
        np.testing.assert_array_equal(backend.calls[1]["lam_x0"], 0.5)
        np.testing.assert_array_equal(backend.calls[1]["lam_g0"], -0.5)
        np.testing.assert_array_equal(backend.calls[2]["lam_g0"], -1.0)

    def test_warm_start_not_shifted(self, integrator_problem, recording_backend):
        """The previous solution is replayed as is."""
        mpc = MPC(integrator_problem, backend=recording_backend)
        backend = recording_backend.created[0]

        mpc.solve(np.array([0.0]))
        returned = backend.calls[0]["x0"] + 1.0
        mpc.solve(np.array([0.7]))

        np.testing.assert_array_equal(backend.calls[1]["x0"], returned)
        np.testing.assert_array_equal(mpc.warm_start["x0"], returned + 1.0)

    def test_reset_warm_start(self, integrator_problem, recording_backend):
        """reset_warm_start returns to zero guesses."""
        mpc = MPC(integrator_problem, backend=recording_backend)
        backend = recording_backend.created[0]

        mpc.solve(np.array([0.0]))
        mpc.reset_warm_start()
        mpc.solve(np.array([0.0]))

        np.testing.assert_array_equal(backend.calls[1]["x0"], 0)
        np.testing.assert_array_equal(backend.calls[1]["lam_x0"], 0)

    def test_result_fields(self, integrator_problem, recording_backend):
        """step returns trajectories, cost and backend statistics."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        result = mpc.step(np.array([0.0]))

        assert result.status is Status.OPTIMAL
        assert result.return_status == "Solve_Succeeded"
        assert result.iterations == 3
        assert result.x.shape == (6, 1)
        assert result.u.shape == (5, 1)
        assert result.cost == pytest.approx(11.0)
        assert result.solve_time >= 0
        np.testing.assert_array_equal(result.lam_g, -0.5)
        assert mpc.last_result is result

    def test_list_state_accepted(self, double_integrator_problem, recording_backend):
        """Any array-like of the right size is a valid state."""
        mpc = MPC(double_integrator_problem, backend=recording_backend)

        mpc.solve([0.1, 0.2])

        np.testing.assert_allclose(recording_backend.created[0].calls[0]["lbx"][:2], [0.1, 0.2])


class TestInputValidation:
    """Measured state checks."""

    def test_wrong_state_size(self, double_integrator_problem, recording_backend):
        """Error on state of wrong size, no backend call."""
        mpc = MPC(double_integrator_problem, backend=recording_backend)

        with pytest.raises(DimensionError, match="current_state"):
            mpc.solve(np.zeros(3))
        assert recording_backend.created[0].calls == []

    @pytest.mark.parametrize("bad", [np.nan, np.inf])
    def test_non_finite_state(self, integrator_problem, recording_backend, bad):
        """Error on NaN or infinite state."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        with pytest.raises(InvalidInputError, match="non-finite"):
            mpc.solve(np.array([bad]))

    def test_backend_returning_wrong_size(self, integrator_problem):
        """A backend that returns a short primal vector is rejected."""

        class Short:
            def __init__(self, nlp, plugin, options):
                pass

            def __call__(self, **kwargs):
                return {"x": np.zeros(3), "f": np.zeros(1)}

            def stats(self):
                return {"success": True}

        mpc = MPC(integrator_problem, backend=Short)

        with pytest.raises(DimensionError, match="primal"):
            mpc.solve(np.array([0.0]))


class TestFailure:
    """Backend failures."""

    @pytest.fixture
    def failing_backend(self, recording_backend):
        recording_backend.success = False
        recording_backend.return_status = "Maximum_Iterations_Exceeded"
        return recording_backend

    def test_solve_raises(self, integrator_problem, failing_backend):
        """solve raises SolverError carrying the result."""
        mpc = MPC(integrator_problem, backend=failing_backend)

        with pytest.raises(SolverError) as exc_info:
            mpc.solve(np.array([0.0]))

        err = exc_info.value
        assert err.status is Status.MAX_ITERATIONS
        assert err.result.return_status == "Maximum_Iterations_Exceeded"
        assert "Maximum_Iterations_Exceeded" in str(err)

    def test_cache_updated_on_failure(self, integrator_problem, failing_backend):
        """A failed solve still seeds the next one."""
        mpc = MPC(integrator_problem, backend=failing_backend)
        backend = failing_backend.created[0]

        with pytest.raises(SolverError):
            mpc.solve(np.array([0.0]))

        backend.success = True
        u0 = mpc.solve(np.array([0.0]))

        np.testing.assert_array_equal(backend.calls[1]["x0"], 1)
        np.testing.assert_allclose(u0, [2.0])

    def test_step_warns(self, integrator_problem, failing_backend):
        """step reports failure with a warning and returns the result."""
        mpc = MPC(integrator_problem, backend=failing_backend)

        with pytest.warns(SolverWarning, match="Maximum_Iterations_Exceeded"):
            result = mpc.step(np.array([0.0]))

        assert not result.status.is_successful
        assert result.status.has_solution
        assert mpc.last_result is result

    def test_step_silent_on_success(self, integrator_problem, recording_backend):
        """No warning on a successful step."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        with warnings.catch_warnings():
            warnings.simplefilter("error", SolverWarning)
            mpc.step(np.array([0.0]))


class TestSimulation:
    """Closed-loop simulation."""

    def test_simulate_shapes(self, double_integrator_problem, recording_backend):
        """simulate returns trajectories of the requested length."""
        mpc = MPC(double_integrator_problem, backend=recording_backend)

        sim = mpc.simulate(np.array([1.0, 0.0]), n_steps=4)

        assert sim["x"].shape == (5, 2)
        assert sim["u"].shape == (4, 1)
        assert list(sim["status"]) == ["optimal"] * 4

    def test_simulate_feeds_plant_state(self, integrator_problem, recording_backend):
        """Each solve starts from the state produced by the plant."""
        mpc = MPC(integrator_problem, backend=recording_backend)
        backend = recording_backend.created[0]

        sim = mpc.simulate(np.array([0.0]), n_steps=3, plant=lambda x, u: x + 0.1 * u)

        # the recording backend returns x0 + 1, so u_k = k + 1
        np.testing.assert_allclose(sim["u"].ravel(), [1, 2, 3])
        np.testing.assert_allclose(sim["x"].ravel(), [0.0, 0.1, 0.3, 0.6])
        for k, call in enumerate(backend.calls):
            np.testing.assert_allclose(call["lbx"][:1], sim["x"][k])

    def test_simulate_default_plant(self, integrator_problem, recording_backend):
        """Without a plant the transcribed transition is used."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        sim = mpc.simulate(np.array([0.0]), n_steps=2)

        # dx/dt = u integrated over dt = 0.1
        np.testing.assert_allclose(sim["x"].ravel(), [0.0, 0.1, 0.3])

    def test_simulate_disturbance(self, integrator_problem, recording_backend):
        """Disturbances are added after the plant update."""
        mpc = MPC(integrator_problem, backend=recording_backend)
        disturbance = np.array([[0.05], [-0.05]])

        sim = mpc.simulate(np.array([0.0]), n_steps=2,
                           plant=lambda x, u: x, disturbance=disturbance)

        np.testing.assert_allclose(sim["x"].ravel(), [0.0, 0.05, 0.0])

    def test_predict_step(self, integrator_problem, recording_backend):
        """predict_step evaluates the one-step transition."""
        mpc = MPC(integrator_problem, backend=recording_backend)

        np.testing.assert_allclose(mpc.predict_step(np.array([0.2]), np.array([0.5])), [0.25])
