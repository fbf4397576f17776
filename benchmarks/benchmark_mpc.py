#!/usr/bin/env python3
"""
shootingmpc Benchmark: cold vs warm-started receding-horizon solves
"""

import sys
sys.path.insert(0, '../python')

import time
import casadi as ca
import numpy as np

import shootingmpc
from shootingmpc import MPC, DynamicsType, Problem, SolverError

print(f"shootingmpc version: {shootingmpc.__version__}")
print(f"CasADi version: {ca.__version__}")
print()


class Pendulum(Problem):
    """Torque-limited pendulum swing-up, x = [theta, omega]."""
    
    def __init__(self, horizon, dt=0.05, dynamics_type=DynamicsType.CONTINUOUS_RK4):
        super().__init__(dynamics_type, nx=2, nu=1, horizon=horizon, dt=dt)
        self.set_input_bound(-2.0, 2.0)
        self.set_state_bound([-2 * np.pi, -8.0], [2 * np.pi, 8.0])
    
    def dynamics(self, x, u):
        g, l, b = 9.81, 1.0, 0.1
        return ca.vertcat(x[1], -g / l * ca.sin(x[0]) - b * x[1] + u)
    
    def stage_cost(self, x, u):
        return 10 * (x[0] - np.pi) ** 2 + 0.1 * x[1] ** 2 + 0.01 * ca.sumsqr(u)
    
    def terminal_cost(self, x):
        return 100 * ca.sumsqr(x - ca.vertcat(np.pi, 0))


def run_loop(mpc, x0, n_steps):
    """Closed loop on the model itself; returns per-step solve times."""
    times = []
    x = np.asarray(x0, dtype=float)
    for _ in range(n_steps):
        start = time.perf_counter()
        try:
            u = mpc.solve(x)
        except SolverError as e:
            u = e.result.optimal_control
        times.append(time.perf_counter() - start)
        x = mpc.predict_step(x, u)
    return np.array(times), x


def benchmark_warm_start(horizon=40, n_steps=50):
    print("=" * 70)
    print(f"Warm start benchmark (pendulum, N={horizon}, {n_steps} steps)")
    print("=" * 70)
    
    for preset in ("ipopt", "hpipm"):
        definition = shootingmpc.get_preset(preset)
        qpsol = definition.options.get("qpsol")
        if not ca.has_nlpsol(definition.plugin) or (
            qpsol is not None and not ca.has_conic(qpsol)
        ):
            print(f"  {preset}: plugin not available")
            continue
        
        warm = MPC(Pendulum(horizon), solver=preset)
        warm_times, x_warm = run_loop(warm, [0.0, 0.0], n_steps)
        
        cold = MPC(Pendulum(horizon), solver=preset)
        cold_times = []
        x = np.zeros(2)
        for _ in range(n_steps):
            cold.reset_warm_start()
            start = time.perf_counter()
            try:
                u = cold.solve(x)
            except SolverError as e:
                u = e.result.optimal_control
            cold_times.append(time.perf_counter() - start)
            x = cold.predict_step(x, u)
        
        print(f"  {preset:>6}: warm {np.mean(warm_times)*1000:8.2f} ms/step, "
              f"cold {np.mean(cold_times)*1000:8.2f} ms/step, "
              f"final angle {x_warm[0]:.3f} rad")


def benchmark_integrators(horizon=40, n_steps=20):
    print("\n" + "=" * 70)
    print("Integration scheme benchmark (IPOPT)")
    print("=" * 70)
    
    for dynamics_type in (
        DynamicsType.CONTINUOUS_FORWARD_EULER,
        DynamicsType.CONTINUOUS_MODIFIED_EULER,
        DynamicsType.CONTINUOUS_RK4,
    ):
        start = time.perf_counter()
        mpc = MPC(Pendulum(horizon, dynamics_type=dynamics_type))
        setup_time = time.perf_counter() - start
        
        times, x_final = run_loop(mpc, [0.0, 0.0], n_steps)
        print(f"  {str(dynamics_type):>15}: setup {setup_time*1000:8.1f} ms, "
              f"solve {np.mean(times)*1000:8.2f} ms/step, n_g={mpc.nlp.n_g}, "
              f"final angle {x_final[0]:.3f} rad")


if __name__ == "__main__":
    benchmark_warm_start()
    benchmark_integrators()
