# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

import numpy as np
import pinocchio
import pytest

from legged_mpc.errors import ConfigurationError, InvalidArgument
from legged_mpc.lowlevel import IDSettings, IDSolver, QPSettings, contact_cone_matrix

TIGHT = QPSettings(eps_abs=1e-7, eps_rel=1e-7, max_iter=20000)


@pytest.fixture
def standing(solo_handler):
    """Solver, mass matrix and weight-sharing forces at the reference posture."""
    solo_handler.update_state(solo_handler.q0, np.zeros(solo_handler.nv))
    M = solo_handler.update_dynamics()
    settings = IDSettings(contact_ids=list(solo_handler.feet_ids.values()), qp=TIGHT)
    solver = IDSolver(settings, solo_handler.model)
    forces = np.tile([0.0, 0.0, solo_handler.mass * 9.81 / 4], 4)
    return solver, M, forces


def dynamics_residual(handler, M, acc, forces, torque, active):
    residual = M @ acc + handler.data.nle
    residual[6:] -= torque
    for i, frame_id in enumerate(handler.feet_ids.values()):
        if active[i]:
            J = pinocchio.getFrameJacobian(
                handler.model, handler.data, frame_id, pinocchio.LOCAL_WORLD_ALIGNED
            )
            residual -= J[:3].T @ forces[3 * i : 3 * i + 3]
    return residual


def test_standing_torques(solo_handler, standing):
    solver, M, forces = standing
    v = np.zeros(solo_handler.nv)
    active = [True] * 4
    torque, out_forces, acc = solver.solve_qp(
        solo_handler.data, active, v, np.zeros(solo_handler.nv), forces, M
    )
    assert solver.converged
    assert torque.shape == (solo_handler.nv - 6,)
    residual = dynamics_residual(solo_handler, M, acc, out_forces, torque, active)
    np.testing.assert_allclose(residual, 0.0, atol=1e-3)

    cone = contact_cone_matrix(3, 0.8, 0.1, 0.075)
    for i in range(4):
        assert np.all(cone @ out_forces[3 * i : 3 * i + 3] >= -1e-4)


def test_inactive_contact_force_is_zero(solo_handler, standing):
    solver, M, forces = standing
    active = [True, True, True, False]
    _, out_forces, _ = solver.solve_qp(
        solo_handler.data, active, np.zeros(solo_handler.nv), np.zeros(solo_handler.nv), forces, M
    )
    np.testing.assert_array_equal(out_forces[9:], 0.0)
    np.testing.assert_array_equal(solver.solved_forces[9:], 0.0)


def test_results_are_copies(solo_handler, standing):
    solver, M, forces = standing
    torque, _, _ = solver.solve_qp(
        solo_handler.data, [True] * 4, np.zeros(solo_handler.nv), np.zeros(solo_handler.nv), forces, M
    )
    torque[:] = 1e6
    assert not np.allclose(solver.solved_torque, 1e6)


def test_input_shapes(solo_handler, standing):
    solver, M, forces = standing
    v = np.zeros(solo_handler.nv)
    with pytest.raises(InvalidArgument):
        solver.solve_qp(solo_handler.data, [True] * 3, v, v, forces, M)
    with pytest.raises(InvalidArgument):
        solver.solve_qp(solo_handler.data, [True] * 4, v, v, forces[:6], M)
    with pytest.raises(InvalidArgument):
        solver.solve_qp(solo_handler.data, [True] * 4, v, v[:6], forces, M)


def test_invalid_settings(solo_handler):
    model = solo_handler.model
    with pytest.raises(ConfigurationError):
        IDSolver(IDSettings(contact_ids=[]), model)
    with pytest.raises(ConfigurationError):
        IDSolver(IDSettings(contact_ids=[model.nframes]), model)
    with pytest.raises(ConfigurationError):
        IDSolver(IDSettings(contact_ids=[1], mu=0.0), model)


def test_default_iteration_cap():
    assert IDSettings().qp.max_iter == 10


def test_capped_solve_falls_back_to_inverse_dynamics(solo_handler):
    solo_handler.update_state(solo_handler.q0, np.zeros(solo_handler.nv))
    M = solo_handler.update_dynamics()
    capped = QPSettings(eps_abs=1e-12, eps_rel=1e-12, max_iter=1)
    settings = IDSettings(contact_ids=list(solo_handler.feet_ids.values()), qp=capped)
    solver = IDSolver(settings, solo_handler.model)
    forces = np.tile([0.0, 0.0, solo_handler.mass * 9.81 / 4], 4)
    a = np.zeros(solo_handler.nv)
    active = [True, True, True, False]

    torque, out_forces, acc = solver.solve_qp(
        solo_handler.data, active, np.zeros(solo_handler.nv), a, forces, M
    )
    assert not solver.converged
    assert solver.last_non_convergence.solver == "id_qp"
    np.testing.assert_array_equal(acc, a)
    np.testing.assert_array_equal(out_forces[:9], forces[:9])
    np.testing.assert_array_equal(out_forces[9:], 0.0)
    # Zero corrections: the torque closes the actuated rows of the dynamics
    residual = dynamics_residual(solo_handler, M, acc, out_forces, torque, active)
    np.testing.assert_allclose(residual[6:], 0.0, atol=1e-9)


def test_identical_inputs_give_identical_torques(solo_handler, standing):
    solver, M, forces = standing
    v = np.zeros(solo_handler.nv)
    a = np.zeros(solo_handler.nv)
    first = solver.solve_qp(solo_handler.data, [True] * 4, v, a, forces, M)
    solver.solve_qp(solo_handler.data, [True, False, True, True], v, a, 2.0 * forces, M)
    second = solver.solve_qp(solo_handler.data, [True] * 4, v, a, forces, M)
    for before, after in zip(first, second):
        np.testing.assert_array_equal(before, after)


def test_wrench_contacts_stay_in_cone(talos_handler):
    handler = talos_handler
    handler.update_state(handler.q0, np.zeros(handler.nv))
    M = handler.update_dynamics()
    settings = IDSettings(contact_ids=list(handler.feet_ids.values()), force_size=6, qp=TIGHT)
    solver = IDSolver(settings, handler.model)
    forces = np.tile([0.0, 0.0, handler.mass * 9.81 / 2, 0.0, 0.0, 0.0], 2)
    # Off-centre request: the corrected wrench has to come back inside the sole
    forces[3] = 0.2 * forces[2]

    torque, out_forces, acc = solver.solve_qp(
        handler.data, [True, True], np.zeros(handler.nv), np.zeros(handler.nv), forces, M
    )
    assert solver.converged
    assert torque.shape == (handler.nv - 6,)
    cone = contact_cone_matrix(6, settings.mu, settings.Lfoot, settings.Wfoot)
    assert np.any(cone @ forces[:6] < 0)
    for i in range(2):
        assert np.all(cone @ out_forces[6 * i : 6 * i + 6] >= -1e-3)

    residual = M @ acc + handler.data.nle
    residual[6:] -= torque
    for i, frame_id in enumerate(handler.feet_ids.values()):
        J = pinocchio.getFrameJacobian(
            handler.model, handler.data, frame_id, pinocchio.LOCAL_WORLD_ALIGNED
        )
        residual -= J.T @ out_forces[6 * i : 6 * i + 6]
    np.testing.assert_allclose(residual, 0.0, atol=1e-2)
