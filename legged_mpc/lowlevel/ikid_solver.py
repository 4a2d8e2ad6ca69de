# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Combined inverse-kinematics / inverse-dynamics QP.

Variables x = [a (nv), df (nk * fs), tau (nv - 6)]. The accelerations track,
as weighted least-squares PD tasks folded into one Hessian:
    - the posture reference x0 (joint space)
    - every foot placement reference (SE(3), LOCAL frame)
    - the orientation of the fixed frames (e.g. keep the torso level)
    - a centroidal momentum rate reference dH
subject to the floating-base dynamics, rigid contact accelerations of the
feet in contact, their friction/wrench cones and the actuator effort limits.

`compute_differences` refreshes the PD errors from the measured state and
must be called before every `solve_qp`.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pinocchio

from ..errors import ConfigurationError, InvalidArgument
from .base_solver import BaseContactSolver, ContactSolverSettings
from .dense_qp import QPSettings


@dataclass
class IKIDSettings(ContactSolverSettings):
    """Settings of the IK/ID QP.

    Attributes:
        Kp_gains: Proportional gains [posture (nv), foot pose (6), base rotation (3)].
            Defaults to [10, 100, 100] per component.
        Kd_gains: Derivative gains with the same layout. Defaults to 2 sqrt(Kp).
        fixed_frame_ids: Frames whose orientation is kept level.
        x0: Posture reference [q, v] (nq + nv). Defaults to the neutral configuration.
        dt: Timestep between consecutive foot references, in seconds.
        w_qref: Weight of the posture task.
        w_footpose: Weight of the foot placement tasks.
        w_centroidal: Weight of the centroidal momentum task.
        w_baserot: Weight of the fixed-frame orientation tasks.
        w_force: Weight of the force corrections.
        qp: OSQP settings, capped at 100 iterations for the control tick.
    """

    Kp_gains: Optional[List[np.ndarray]] = None
    Kd_gains: Optional[List[np.ndarray]] = None
    fixed_frame_ids: List[int] = field(default_factory=list)
    x0: Optional[np.ndarray] = None
    dt: float = 0.01
    w_qref: float = 1.0
    w_footpose: float = 1.0
    w_centroidal: float = 1.0
    w_baserot: float = 1.0
    w_force: float = 1.0
    qp: QPSettings = field(default_factory=lambda: QPSettings(max_iter=100))

    def validate(self, model):
        super().validate(model)
        if self.dt <= 0:
            raise ConfigurationError(f"dt must be positive, got {self.dt}")
        for name in ("w_qref", "w_footpose", "w_centroidal", "w_baserot"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative")
        if self.w_force <= 0:
            raise ConfigurationError(f"w_force must be positive, got {self.w_force}")
        for frame_id in self.fixed_frame_ids:
            if not 0 <= frame_id < model.nframes:
                raise ConfigurationError(f"Fixed frame id {frame_id} not in the model")
        if self.x0 is not None and np.shape(self.x0) != (model.nq + model.nv,):
            raise ConfigurationError(f"x0 must have shape ({model.nq + model.nv},)")
        sizes = (model.nv, 6, 3)
        for label, gains in (("Kp_gains", self.Kp_gains), ("Kd_gains", self.Kd_gains)):
            if gains is None:
                continue
            if len(gains) != 3 or any(np.shape(k) != (s,) for k, s in zip(gains, sizes)):
                raise ConfigurationError(f"{label} must hold vectors of sizes {sizes}")
        if np.any(model.effortLimit[6:] <= 0):
            raise ConfigurationError("Model effort limits must be positive for the torque box")


class IKIDSolver(BaseContactSolver):
    """IK/ID QP over [a (nv), df (nk * fs), tau (nv - 6)]."""

    name = "ikid_qp"

    def initialize(self, settings: IKIDSettings, model):
        super().initialize(settings, model)
        nv = self.nv
        self.qp.lb[:] = -model.effortLimit[6:]
        self.qp.ub[:] = model.effortLimit[6:]

        if settings.x0 is None:
            self.x0 = np.concatenate([pinocchio.neutral(model), np.zeros(nv)])
        else:
            self.x0 = np.asarray(settings.x0, dtype=float)
        if settings.Kp_gains is None:
            self.Kp = [10.0 * np.ones(nv), 100.0 * np.ones(6), 100.0 * np.ones(3)]
        else:
            self.Kp = [np.asarray(k, dtype=float) for k in settings.Kp_gains]
        if settings.Kd_gains is None:
            self.Kd = [2.0 * np.sqrt(k) for k in self.Kp]
        else:
            self.Kd = [np.asarray(k, dtype=float) for k in settings.Kd_gains]

        self.q_diff = np.zeros(nv)
        self.dq_diff = np.zeros(nv)
        self.foot_diffs = [np.zeros(6) for _ in range(self.nk)]
        self.dfoot_diffs = [np.zeros(6) for _ in range(self.nk)]
        self.frame_diffs = [np.zeros(3) for _ in settings.fixed_frame_ids]
        self.dframe_diffs = [np.zeros(3) for _ in settings.fixed_frame_ids]

    def _box_indices(self) -> Sequence[int]:
        return range(self.nv + self.force_dim, 2 * self.nv - 6 + self.force_dim)

    def _force_weight(self) -> float:
        return self.settings.w_force

    def compute_differences(
        self,
        data: pinocchio.Data,
        x_measured: np.ndarray,
        foot_refs: Sequence[pinocchio.SE3],
        foot_refs_next: Sequence[pinocchio.SE3],
    ):
        """Refresh the PD errors of every task.

        Args:
            data: Pinocchio data with placements and velocities at x_measured.
            x_measured: Measured state [q, v].
            foot_refs: Foot placement references of the current step.
            foot_refs_next: Foot placement references of the next step.
        """
        model = self.model
        if np.shape(x_measured) != (model.nq + model.nv,):
            raise InvalidArgument(f"x_measured must have shape ({model.nq + model.nv},)")
        if len(foot_refs) != self.nk or len(foot_refs_next) != self.nk:
            raise InvalidArgument(f"Expected {self.nk} foot references")
        q, v = x_measured[: model.nq], x_measured[model.nq :]

        self.q_diff = pinocchio.difference(model, q, self.x0[: model.nq])
        self.dq_diff = self.x0[model.nq :] - v

        dt = self.settings.dt
        for i, frame_id in enumerate(self.settings.contact_ids):
            oMf = data.oMf[frame_id]
            ref, ref_next = foot_refs[i], foot_refs_next[i]
            velocity = pinocchio.getFrameVelocity(model, data, frame_id, pinocchio.LOCAL)
            self.foot_diffs[i][:3] = ref.translation - oMf.translation
            self.foot_diffs[i][3:] = -pinocchio.log3(ref.rotation.T @ oMf.rotation)
            self.dfoot_diffs[i][:3] = (
                ref_next.translation - ref.translation
            ) / dt - velocity.linear
            self.dfoot_diffs[i][3:] = (
                pinocchio.log3(ref.rotation.T @ ref_next.rotation) / dt - velocity.angular
            )

        for i, frame_id in enumerate(self.settings.fixed_frame_ids):
            self.frame_diffs[i] = -pinocchio.log3(data.oMf[frame_id].rotation)
            self.dframe_diffs[i] = -pinocchio.getFrameVelocity(
                model, data, frame_id, pinocchio.LOCAL
            ).angular

    def compute_matrices(
        self,
        data: pinocchio.Data,
        contact_state: Sequence[bool],
        v: np.ndarray,
        forces: np.ndarray,
        dH: np.ndarray,
        M: np.ndarray,
    ):
        """Refresh the QP buffers.

        `data` must hold the joint Jacobians and their time variation, frame
        placements, nonlinear effects and the centroidal momentum matrix with
        its time variation (`dccrba`).
        """
        self._check_inputs(contact_state, v, forces)
        if np.shape(dH) != (6,):
            raise InvalidArgument(f"dH has shape {np.shape(dH)}, expected (6,)")
        s = self.settings
        nv, fs = self.nv, self.fs
        H, g = self.qp.H, self.qp.g
        A, b = self.qp.A, self.qp.b

        H_acc = s.w_qref * np.eye(nv) + s.w_centroidal * data.Ag.T @ data.Ag
        g_acc = s.w_qref * (-self.Kp[0] * self.q_diff - self.Kd[0] * self.dq_diff)
        g_acc -= s.w_centroidal * data.Ag.T @ (dH - data.dAg @ v)

        A[:] = 0.0
        A[:nv, :nv] = M
        A[:nv, self.torque_slice] = -self.S
        b[:nv] = -data.nle
        b[nv:] = 0.0
        self._clear_constraints()

        for i, frame_id in enumerate(s.contact_ids):
            J = pinocchio.getFrameJacobian(self.model, data, frame_id, pinocchio.LOCAL)
            dJ = pinocchio.getFrameJacobianTimeVariation(
                self.model, data, frame_id, pinocchio.LOCAL
            )
            H_acc += s.w_footpose * J.T @ J
            g_acc += s.w_footpose * J.T @ (
                dJ @ v - self.Kp[1] * self.foot_diffs[i] - self.Kd[1] * self.dfoot_diffs[i]
            )
            if not contact_state[i]:
                continue
            rows = self._contact_rows(i)
            cols = slice(nv + i * fs, nv + (i + 1) * fs)
            A[:nv, cols] = -J[:fs].T
            A[nv + i * fs : nv + (i + 1) * fs, :nv] = J[:fs]
            b[:nv] += J[:fs].T @ forces[rows]
            b[nv + i * fs : nv + (i + 1) * fs] = -dJ[:fs] @ v
            self._set_cone(i, forces[rows])

        for i, frame_id in enumerate(s.fixed_frame_ids):
            Jr = pinocchio.getFrameJacobian(self.model, data, frame_id, pinocchio.LOCAL)[3:]
            dJr = pinocchio.getFrameJacobianTimeVariation(
                self.model, data, frame_id, pinocchio.LOCAL
            )[3:]
            H_acc += s.w_baserot * Jr.T @ Jr
            g_acc += s.w_baserot * Jr.T @ (
                dJr @ v - self.Kp[2] * self.frame_diffs[i] - self.Kd[2] * self.dframe_diffs[i]
            )

        H[:nv, :nv] = H_acc
        g[:nv] = g_acc

    def solve_qp(
        self,
        data: pinocchio.Data,
        contact_state: Sequence[bool],
        v: np.ndarray,
        forces: np.ndarray,
        dH: np.ndarray,
        M: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Compute torques, forces and accelerations for one control tick.

        Args:
            data: Pinocchio data at the measured state.
            contact_state: Contact flag per contact frame.
            v: Measured velocity, shape (nv,).
            forces: Desired contact forces, shape (nk * fs,).
            dH: Desired centroidal momentum rate, shape (6,).
            M: Mass matrix, shape (nv, nv).

        Returns:
            (torque, forces, acc). If the QP ends unsolved (infeasible or at
            the iteration cap) the acceleration and force corrections are
            zero and the torque balances the nonlinear effects within the
            effort limits.
        """
        self.compute_matrices(data, contact_state, v, forces, dH, M)
        x = self.qp.solve()
        if x is None:
            x = np.zeros(self.qp.n)
            tau = data.nle + self.qp.A[: self.nv, self.force_slice] @ forces
            x[self.torque_slice] = np.clip(tau[6:], self.qp.lb, self.qp.ub)

        return self._store(
            x[: self.nv].copy(),
            forces + x[self.force_slice],
            x[self.torque_slice].copy(),
            contact_state,
        )
