# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

import numpy as np
import pinocchio
import pytest

from legged_mpc.errors import ConfigurationError, InvalidArgument
from legged_mpc.gait import ContactPhase
from legged_mpc.problems import (
    CentroidalProblem,
    CentroidalSettings,
    FullDynamicsProblem,
    FullDynamicsSettings,
    KinodynamicsProblem,
    make_problem,
)

SOLO_FEET = ["FL_FOOT", "FR_FOOT", "HL_FOOT", "HR_FOOT"]
TALOS_FEET = ["left_sole_link", "right_sole_link"]

VARIANTS = ["full_dynamics", "centroidal", "kinodynamics"]


@pytest.fixture(params=VARIANTS)
def problem(request, solo_handler):
    return make_problem(request.param, solo_handler)


def test_registry_builds_each_variant(solo_handler):
    assert isinstance(make_problem("full_dynamics", solo_handler), FullDynamicsProblem)
    assert isinstance(make_problem("centroidal", solo_handler), CentroidalProblem)
    assert isinstance(make_problem("kinodynamics", solo_handler), KinodynamicsProblem)


def test_unknown_variant(solo_handler):
    with pytest.raises(ConfigurationError):
        make_problem("hybrid", solo_handler)


def test_unknown_weight(solo_handler):
    with pytest.raises(ConfigurationError):
        CentroidalProblem(solo_handler, CentroidalSettings(weights={"not_a_cost": 1.0}))


def test_invalid_settings(solo_handler):
    with pytest.raises(ConfigurationError):
        CentroidalProblem(solo_handler, CentroidalSettings(force_size=4))
    with pytest.raises(ConfigurationError):
        FullDynamicsProblem(solo_handler, FullDynamicsSettings(u0=np.zeros(3)))


def test_dimensions(solo_handler):
    nv = solo_handler.nv
    assert make_problem("centroidal", solo_handler).nx == 9
    assert make_problem("centroidal", solo_handler).nu == 12
    assert make_problem("full_dynamics", solo_handler).nu == nv - 6
    assert make_problem("kinodynamics", solo_handler).nu == 12 + nv - 6


def test_state_size_matches_models(problem, solo_handler):
    stage = problem.create_stage(problem.standing_phase())
    x = problem.get_problem_state(solo_handler.q0, np.zeros(solo_handler.nv))
    assert x.shape == (stage.model.state.nx,)
    assert stage.model.nu == problem.nu
    assert problem.initial_control(stage, x).shape == (problem.nu,)


def test_default_forces_share_weight(problem, solo_handler):
    phase = ContactPhase.from_support(SOLO_FEET, ["FL_FOOT", "HR_FOOT"])
    refs = problem.default_force_refs(phase)
    weight = solo_handler.mass * 9.81
    assert np.isclose(refs["FL_FOOT"][2], weight / 2)
    assert np.allclose(refs["FR_FOOT"], 0.0)


def test_pose_reference_round_trip(problem):
    stage = problem.create_stage(problem.standing_phase())
    pose = pinocchio.SE3(np.eye(3), np.array([0.3, -0.1, 0.02]))
    problem.set_reference_pose(stage, "FR_FOOT", pose)
    assert problem.get_reference_pose(stage, "FR_FOOT").isApprox(pose)
    # Other feet untouched
    assert not problem.get_reference_pose(stage, "FL_FOOT").isApprox(pose)


def test_force_reference_round_trip(problem):
    stage = problem.create_stage(problem.standing_phase())
    force = np.array([1.0, -2.0, 30.0])
    problem.set_reference_force(stage, "HL_FOOT", force)
    np.testing.assert_allclose(problem.get_reference_force(stage, "HL_FOOT"), force)
    problem.set_reference_forces(stage, {"FL_FOOT": force, "FR_FOOT": 2 * force})
    np.testing.assert_allclose(problem.get_reference_force(stage, "FR_FOOT"), 2 * force)


def test_force_size_mismatch(problem):
    stage = problem.create_stage(problem.standing_phase())
    with pytest.raises(InvalidArgument):
        problem.set_reference_force(stage, "FL_FOOT", np.zeros(6))


def test_batch_force_update_is_atomic(problem):
    stage = problem.create_stage(problem.standing_phase())
    before = problem.get_reference_force(stage, "FL_FOOT")
    with pytest.raises(InvalidArgument):
        problem.set_reference_forces(stage, {"FL_FOOT": np.ones(3), "FR_FOOT": np.ones(2)})
    np.testing.assert_allclose(problem.get_reference_force(stage, "FL_FOOT"), before)


def test_unknown_end_effector(problem):
    stage = problem.create_stage(problem.standing_phase())
    with pytest.raises(InvalidArgument):
        problem.get_reference_pose(stage, "TAIL")


def test_phase_with_wrong_feet(problem):
    with pytest.raises(InvalidArgument):
        problem.create_stage(ContactPhase({"left": True, "right": True}))


def test_flight_stage(problem):
    phase = ContactPhase.from_support(SOLO_FEET, [])
    stage = problem.create_stage(phase)
    assert problem.get_contact_support(stage) == 0
    for name in SOLO_FEET:
        assert np.allclose(problem.get_reference_force(stage, name), 0.0)


def test_centroidal_dynamics_standing(solo_handler):
    problem = CentroidalProblem(solo_handler)
    stage = problem.create_stage(problem.standing_phase())
    x = problem.get_problem_state(solo_handler.q0, np.zeros(solo_handler.nv))
    u = problem.initial_control(stage, x)
    stage.model.calc(stage.data, x, u)
    # Weight-compensating forces keep the robot at rest
    np.testing.assert_allclose(stage.data.xnext[3:6], x[3:6], atol=1e-9)


def test_biped_wrench_contacts(talos_handler):
    problem = make_problem("centroidal", talos_handler, CentroidalSettings(force_size=6))
    assert problem.nu == 12
    stage = problem.create_stage(problem.standing_phase())
    wrench = np.array([0.0, 0.0, 400.0, 0.0, 1.0, 0.0])
    problem.set_reference_force(stage, TALOS_FEET[0], wrench)
    np.testing.assert_allclose(problem.get_reference_force(stage, TALOS_FEET[0]), wrench)
