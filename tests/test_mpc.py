# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

import numpy as np
import pinocchio
import pytest

from legged_mpc import MPC, MPCSettings, MPCSolution
from legged_mpc.errors import ConfigurationError, InvalidArgument, SolverNonConvergence
from legged_mpc.gait import ContactPhase, ContactSequence, GaitScheduler
from legged_mpc.problems import CentroidalProblem, CentroidalSettings, make_problem

FEET = ["FL_FOOT", "FR_FOOT", "HL_FOOT", "HR_FOOT"]
T = 20


def quad_walk_schedule() -> ContactSequence:
    """Stance 0-21, FR swing 22-31, stance 32-33, FL swing 34-43, stance 44-45."""
    segments = [(22, FEET), (10, ["FL_FOOT", "HL_FOOT", "HR_FOOT"]), (2, FEET),
                (10, ["FR_FOOT", "HL_FOOT", "HR_FOOT"]), (2, FEET)]
    phases = []
    for length, support in segments:
        phases.extend(ContactPhase.from_support(FEET, support) for _ in range(length))
    return ContactSequence(phases=phases)


@pytest.fixture
def settings():
    return MPCSettings(T=T, T_fly=8, T_contact=2, max_iters=1, swing_apex=0.05, x_translation=0.05)


@pytest.fixture
def problem(solo_handler):
    return CentroidalProblem(solo_handler, CentroidalSettings(dt=0.01))


@pytest.fixture
def mpc(settings, problem):
    return MPC(settings, problem)


def test_initial_horizon(mpc):
    assert len(mpc.horizon) == T + 1
    assert mpc.ocp.T == T
    assert len(mpc.xs) == T + 1
    assert len(mpc.us) == T
    assert mpc.get_contact_support(0) == 4


def test_iterate_returns_solution(mpc, solo_handler):
    solution = mpc.iterate(solo_handler.q0, np.zeros(solo_handler.nv))
    assert isinstance(solution, MPCSolution)
    assert solution.control.shape == (12,)
    assert solution.predicted_states.shape == (T + 1, 9)
    assert solution.predicted_controls.shape == (T, 12)
    assert mpc.horizon_iteration == 1
    assert mpc.ocp.T == T


def test_timings_follow_recede(mpc, solo_handler):
    mpc.generate_full_horizon(quad_walk_schedule())
    assert mpc.get_foot_takeoff_timings("FR_FOOT") == [22]
    assert mpc.get_foot_land_timings("FR_FOOT") == [32]
    for _ in range(2):
        mpc.iterate(solo_handler.q0, np.zeros(solo_handler.nv))
    assert mpc.get_foot_takeoff_timings("FR_FOOT") == [20]
    assert mpc.get_foot_land_timings("FR_FOOT") == [30]
    assert mpc.get_foot_takeoff_timings("FL_FOOT") == [32]
    assert mpc.get_foot_land_timings("FL_FOOT") == [42]
    assert mpc.foot_takeoff_times["HL_FOOT"] == []


def test_swing_reference_follows_arc(mpc, solo_handler):
    mpc.generate_full_horizon(quad_walk_schedule())
    stance = solo_handler.get_foot_pose("FR_FOOT").translation
    for _ in range(8):
        mpc.recede()
    # Stage 19 is schedule step 27, half way through the FR swing (lift 21, land 32)
    swing = mpc.get_reference_pose(19, "FR_FOOT").translation
    assert swing[2] > stance[2]
    # Stage 0 is still in stance at the takeoff placement
    np.testing.assert_allclose(mpc.get_reference_pose(0, "FR_FOOT").translation, stance)


def test_landing_is_translated(mpc, solo_handler):
    mpc.generate_full_horizon(quad_walk_schedule())
    stance = solo_handler.get_foot_pose("FR_FOOT").translation
    for _ in range(14):
        mpc.recede()
    # Stage 19 is schedule step 33, the first stance step after the FR swing
    landed = mpc.get_reference_pose(19, "FR_FOOT").translation
    np.testing.assert_allclose(landed, stance + np.array([0.05, 0.0, 0.0]))


def test_walking_cycle_keeps_length(mpc, solo_handler):
    mpc.generate_walking_cycle()
    for _ in range(25):
        mpc.recede_with_cycle()
        assert len(mpc.horizon) == T + 1
        assert mpc.ocp.T == T
    stages = [id(stage) for stage in mpc.horizon.stages]
    assert len(set(stages)) == len(stages)


def test_short_schedule(mpc):
    with pytest.raises(InvalidArgument):
        mpc.generate_full_horizon(ContactSequence(phases=quad_walk_schedule().phases[:5]))


def test_index_out_of_range(mpc):
    with pytest.raises(InvalidArgument):
        mpc.get_reference_pose(T, "FL_FOOT")
    with pytest.raises(InvalidArgument):
        mpc.set_reference_force(-1, "FL_FOOT", np.zeros(3))


def test_reference_setters(mpc):
    pose = pinocchio.SE3(np.eye(3), np.array([0.2, 0.1, 0.03]))
    mpc.set_reference_pose(3, "HL_FOOT", pose)
    assert mpc.get_reference_pose(3, "HL_FOOT").isApprox(pose)
    mpc.set_reference_forces(3, {"HL_FOOT": np.array([0.0, 0.0, 12.0])})
    np.testing.assert_allclose(mpc.get_reference_force(3, "HL_FOOT"), [0.0, 0.0, 12.0])
    with pytest.raises(InvalidArgument):
        mpc.set_reference_force(3, "HL_FOOT", np.zeros(6))
    mpc.set_terminal_reference_pose("HL_FOOT", pose)


def test_support_force_setting(settings, problem):
    settings.support_force = 40.0
    mpc = MPC(settings, problem)
    np.testing.assert_allclose(mpc.get_reference_force(0, "FL_FOOT"), [0.0, 0.0, 10.0])


def test_dt_mismatch(settings, solo_handler):
    with pytest.raises(ConfigurationError):
        MPC(settings, CentroidalProblem(solo_handler, CentroidalSettings(dt=0.02)))


def test_invalid_settings(problem):
    with pytest.raises(ConfigurationError):
        MPC(MPCSettings(T=10, T_fly=8, T_contact=5), problem)


def test_non_convergence_is_recorded(settings, problem, solo_handler):
    settings.tol = 1e-12
    mpc = MPC(settings, problem)
    v = np.zeros(solo_handler.nv)
    v[0] = 1.0
    solution = mpc.iterate(solo_handler.q0, v)
    assert not solution.converged
    assert mpc.non_convergence_count >= 1
    assert isinstance(mpc.last_non_convergence, SolverNonConvergence)
    assert mpc.last_non_convergence.solver == "fddp"


def test_strict_convergence_raises(settings, problem, solo_handler):
    settings.tol = 1e-12
    mpc = MPC(settings, problem)
    mpc.settings.strict_convergence = True
    v = np.zeros(solo_handler.nv)
    v[0] = 1.0
    with pytest.raises(SolverNonConvergence):
        mpc.iterate(solo_handler.q0, v)


def test_get_settings(mpc):
    values = mpc.get_settings()
    assert values["T"] == T
    assert values["gait"] == "walk"


def test_strict_convergence_still_recedes(settings, problem, solo_handler):
    settings.tol = 1e-12
    mpc = MPC(settings, problem)
    mpc.generate_full_horizon(quad_walk_schedule())
    mpc.settings.strict_convergence = True
    v = np.zeros(solo_handler.nv)
    v[0] = 1.0
    with pytest.raises(SolverNonConvergence):
        mpc.iterate(solo_handler.q0, v)
    assert mpc.horizon_iteration == 1
    assert mpc.get_foot_takeoff_timings("FR_FOOT") == [21]
    assert mpc.ocp.T == T


def test_timings_cover_pool_beyond_window(mpc):
    mpc.generate_full_horizon(quad_walk_schedule())
    pool = len(mpc.horizon.pool)
    landings = mpc.get_foot_land_timings("FL_FOOT")
    assert landings == [44]
    assert all(T <= t < pool for t in landings)


@pytest.mark.parametrize("kind", ["full_dynamics", "centroidal", "kinodynamics"])
def test_each_variant_runs_receding_horizon(kind, solo_handler):
    problem = make_problem(kind, solo_handler)
    horizon = 10
    mpc = MPC(MPCSettings(T=horizon, T_fly=4, T_contact=2, max_iters=1), problem)
    mpc.generate_walking_cycle()
    q0, v0 = solo_handler.q0, np.zeros(solo_handler.nv)
    for _ in range(3):
        solution = mpc.iterate(q0, v0)
        assert solution.control.shape == (problem.nu,)
        assert solution.predicted_states.shape == (horizon + 1, problem.nx)
        assert np.all(np.isfinite(solution.control))
    assert mpc.horizon_iteration == 3
    assert mpc.ocp.T == horizon
    assert len(mpc.get_full_horizon_data()) == len(mpc.horizon.pool)


def test_long_horizon_with_cycle(problem, solo_handler):
    horizon = 100
    mpc = MPC(MPCSettings(T=horizon, T_fly=8, T_contact=2, max_iters=1), problem)
    cycle = GaitScheduler(FEET).generate_cycle("walk", T_contact=2, T_fly=8)
    schedule = cycle.tile(130)
    mpc.generate_full_horizon(schedule)
    q0, v0 = solo_handler.q0, np.zeros(solo_handler.nv)

    first = mpc.iterate(q0, v0)
    force = np.array([1.0, -2.0, 25.0])
    mpc.set_reference_force(horizon - 1, "HL_FOOT", force)
    np.testing.assert_allclose(mpc.get_reference_force(horizon - 1, "HL_FOOT"), force)
    mpc.recede_with_cycle()
    np.testing.assert_allclose(mpc.get_reference_force(horizon - 2, "HL_FOOT"), force)

    for _ in range(50):
        mpc.recede_with_cycle()
    offset = 52
    assert mpc.horizon_iteration == offset
    assert len(mpc.horizon) == horizon + 1
    assert mpc.ocp.T == horizon
    for i, phase in enumerate(mpc.horizon.contact_schedule):
        assert phase == schedule[(offset + i) % len(schedule)]

    # Step 52 is in the FR swing, step 0 was in full support
    assert mpc.get_contact_support(0) == 3
    later = mpc.iterate(q0, v0)
    assert len(later.predicted_states) == horizon + 1
    assert not np.allclose(first.control, later.control)
