#!/usr/bin/env python3
# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Standalone walking demo for the legged MPC without a physics simulator.

This script runs the complete control pipeline on Solo12:
1. Standing horizon and initial FDDP solve
2. Walking cycle generation (gait scheduler + swing references)
3. Receding-horizon loop (MPC iterate)
4. Inverse-dynamics QP turning the MPC plan into joint torques

The "simulation" replays the first predicted state of each solve, so the
script validates the pipeline rather than closed-loop tracking.

Usage:
    python scripts/walk_standalone.py --steps 200 --problem full_dynamics

Requirements:
    - crocoddyl, pinocchio, osqp
    - example-robot-data (robot model)
    - matplotlib for visualization (optional)
"""

import argparse
import logging
import time

import numpy as np

try:
    import matplotlib.pyplot as plt

    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

import example_robot_data

from legged_mpc import MPC, IDSettings, IDSolver, MPCSettings, RobotHandler, make_problem

FEET = ["FL_FOOT", "FR_FOOT", "HL_FOOT", "HR_FOOT"]


def build_controller(problem_kind: str, args) -> tuple:
    """Load Solo12 and build the MPC and the ID solver."""
    robot = example_robot_data.load("solo12")
    handler = RobotHandler(robot.model, FEET, q0=robot.q0)
    problem = make_problem(problem_kind, handler)

    settings = MPCSettings(
        T=args.horizon,
        dt=problem.settings.dt,
        T_fly=args.t_fly,
        T_contact=args.t_contact,
        x_translation=args.step_length,
        swing_apex=args.swing_apex,
        max_iters=args.max_iters,
        gait=args.gait,
    )
    mpc = MPC(settings, problem)

    id_solver = IDSolver(
        IDSettings(contact_ids=[handler.feet_ids[name] for name in FEET], mu=problem.settings.mu),
        robot.model,
    )
    return handler, mpc, id_solver


def run_walk(args) -> dict:
    """Run the receding-horizon loop and collect a log."""
    print("=" * 60)
    print(f"Solo12 {args.gait.upper()} with the {args.problem} problem")
    print("=" * 60)

    handler, mpc, id_solver = build_controller(args.problem, args)
    mpc.generate_walking_cycle()
    print(f"Horizon: T={mpc.settings.T}, pool of {len(mpc.horizon.pool)} stages")
    print(f"Takeoff steps: {mpc.foot_takeoff_times}")

    q, v = handler.q.copy(), handler.v.copy()
    dt = mpc.settings.dt
    log = {"dt": dt, "base": [], "torque": [], "solve_time": [], "converged": []}

    for step in range(args.steps):
        solution = mpc.iterate(q, v)

        tau = None
        if args.problem != "centroidal":
            # Replay the predicted state and track its acceleration with the ID QP
            x_next = solution.predicted_states[1]
            v_next = x_next[handler.nq :]
            a = (v_next - v) / dt
            support = [mpc.horizon[0].contact_phase[name] for name in FEET]
            forces = np.concatenate([mpc.get_reference_force(0, name) for name in FEET])
            handler.update_state(q, v)
            M = handler.update_dynamics()
            tau, _, _ = id_solver.solve_qp(handler.data, support, v, a, forces, M)
            q, v = x_next[: handler.nq].copy(), v_next.copy()

        log["base"].append(q[:3].copy())
        log["torque"].append(tau)
        log["solve_time"].append(solution.solve_time)
        log["converged"].append(solution.converged)

        if step % 50 == 0:
            print(
                f"step {step:4d}  base={np.round(q[:3], 3)}  "
                f"cost={solution.cost:.3f}  solve={solution.solve_time * 1000:.1f}ms"
            )

    print(f"\nMean solve time: {np.mean(log['solve_time']) * 1000:.1f}ms")
    print(f"Non-converged cycles: {mpc.non_convergence_count}/{args.steps}")
    return log


def visualize_results(log: dict, dt: float):
    """Plot base position and solve time."""
    if not HAS_MATPLOTLIB:
        return

    base = np.array(log["base"])
    time_axis = np.arange(len(base)) * dt
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    ax = axes[0]
    for i, label in enumerate(["x", "y", "z"]):
        ax.plot(time_axis, base[:, i], label=label, linewidth=1.5)
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Base position (m)")
    ax.set_title("Base Trajectory")
    ax.legend()
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    ax.plot(time_axis, np.array(log["solve_time"]) * 1000, "k-", linewidth=1.0)
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Solve time (ms)")
    ax.set_title("MPC Solve Time")
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()


def main():
    parser = argparse.ArgumentParser(description="Standalone legged MPC walking demo")
    parser.add_argument("--problem", default="full_dynamics",
                        choices=["full_dynamics", "centroidal", "kinodynamics"])
    parser.add_argument("--gait", default="trot")
    parser.add_argument("--steps", type=int, default=200)
    parser.add_argument("--horizon", type=int, default=50)
    parser.add_argument("--t-fly", type=int, default=15)
    parser.add_argument("--t-contact", type=int, default=5)
    parser.add_argument("--step-length", type=float, default=0.05)
    parser.add_argument("--swing-apex", type=float, default=0.05)
    parser.add_argument("--max-iters", type=int, default=1)
    parser.add_argument("--no-plot", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    t_start = time.time()
    log = run_walk(args)
    print(f"Total time: {time.time() - t_start:.1f}s")

    if not args.no_plot:
        visualize_results(log, log["dt"])


if __name__ == "__main__":
    main()
