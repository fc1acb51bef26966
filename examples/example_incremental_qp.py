"""
Example: Receding-horizon tracking with incremental re-solves

A point mass with position p and velocity v follows a moving reference.
Every step solves a small QP over a horizon of T steps and then shifts the
horizon: only the initial state and the reference change, so every solve
after the first updates the live OSQP session instead of setting it up
again.

Problem (for each step):
    minimize    sum_t (p_t - r_t)^2 + 0.1 * a_t^2
    subject to  p_{t+1} = p_t + dt * v_t
                v_{t+1} = v_t + dt * a_t
                -1 <= a_t <= 1
                p_0, v_0 fixed to the current state
"""

import logging

import numpy as np
import osqpmodel


def main():
    logging.basicConfig(level=logging.INFO)

    print()
    print("=" * 70)
    print("osqpmodel Example: Receding-horizon tracking - Python")
    print("=" * 70)
    print()

    T = 20
    dt = 0.1
    steps = 30

    model = osqpmodel.Model()
    model.settings.eps_abs = 1e-6
    model.settings.eps_rel = 1e-6

    p = model.add_variables(T + 1, name_prefix='p')
    v = model.add_variables(T + 1, name_prefix='v')
    a = model.add_variables(T, name_prefix='a', lower_bound=-1.0, upper_bound=1.0)

    # Dynamics
    for t in range(T):
        model.add_constraint(p[t + 1] - p[t] - dt * v[t] == 0)
        model.add_constraint(v[t + 1] - v[t] - dt * a[t] == 0)

    # Initial state, updated in place every step
    p0 = model.add_constraint(p[0] == 0.0, name='p0')
    v0 = model.add_constraint(v[0] == 0.0, name='v0')

    def tracking_objective(reference):
        objective = osqpmodel.QuadExpr()
        for t in range(T + 1):
            error = p[t] - reference[t]
            objective.add(error * error)
        for t in range(T):
            objective.add(0.1 * a[t] * a[t])
        return objective

    state = np.array([0.0, 0.0])
    with model:
        for step in range(steps):
            times = (step + np.arange(T + 1)) * dt
            reference = np.sin(times)

            p0.lower_bound = p0.upper_bound = state[0]
            v0.lower_bound = v0.upper_bound = state[1]
            model.set_objective(tracking_objective(reference))

            result = model.solve()
            accel = result[a[0]]

            # Apply the first control and advance the plant
            state = np.array([state[0] + dt * state[1], state[1] + dt * accel])

            print(f"step {step:2d}: status={result.status.value:<8s} "
                  f"reused={str(result.reused):<5s} iter={result.iterations:4d} "
                  f"a0={accel:+.4f} p={state[0]:+.4f} ref={reference[0]:+.4f}")

    print()
    print("=" * 70)
    print()


if __name__ == "__main__":
    main()
