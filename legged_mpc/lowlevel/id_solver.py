# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Inverse-dynamics QP: torques that realize the MPC accelerations and forces.

Given desired accelerations a and contact forces f, find the smallest
corrections (da, df) and the torques tau such that

    M (a + da) + nle = J_c^T (f + df) + S tau
    J_c (a + da) + gamma = 0
    C (f + df) >= 0                      (per active contact)

with gamma = dJ_c v + kd * v_c the drift of the contact points.
"""

from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np
import pinocchio

from ..errors import ConfigurationError, InvalidArgument
from .base_solver import BaseContactSolver, ContactSolverSettings
from .dense_qp import QPSettings


@dataclass
class IDSettings(ContactSolverSettings):
    """Settings of the inverse-dynamics QP.

    Attributes:
        kd: Baumgarte gain on the contact point velocity.
        w_acc: Weight of the acceleration corrections.
        w_force: Weight of the force corrections.
        qp: OSQP settings, capped at 10 iterations for the control tick.
    """

    kd: float = 0.0
    w_acc: float = 1.0
    w_force: float = 1.0
    qp: QPSettings = field(default_factory=lambda: QPSettings(max_iter=10))

    def validate(self, model):
        super().validate(model)
        if self.kd < 0:
            raise ConfigurationError(f"kd must be non-negative, got {self.kd}")
        if self.w_acc <= 0 or self.w_force <= 0:
            raise ConfigurationError("w_acc and w_force must be positive")


class IDSolver(BaseContactSolver):
    """Inverse-dynamics QP over [da (nv), df (nk * fs), tau (nv - 6)].

    Example:
        >>> solver = IDSolver(IDSettings(contact_ids=list(handler.feet_ids.values())), model)
        >>> M = handler.update_dynamics()
        >>> tau, forces, acc = solver.solve_qp(handler.data, [True] * 4, v, a, f, M)
    """

    name = "id_qp"

    def initialize(self, settings: IDSettings, model):
        super().initialize(settings, model)
        self.qp.H[: self.nv, : self.nv] = settings.w_acc * np.eye(self.nv)
        self.Jc = np.zeros((self.force_dim, self.nv))
        self.gamma = np.zeros(self.force_dim)

    def _force_weight(self) -> float:
        return self.settings.w_force

    def compute_matrices(
        self,
        data: pinocchio.Data,
        contact_state: Sequence[bool],
        v: np.ndarray,
        a: np.ndarray,
        forces: np.ndarray,
        M: np.ndarray,
    ):
        """Refresh the QP buffers for the current state.

        `data` must hold the joint Jacobians, their time variation, frame
        placements and nonlinear effects at the current (q, v).
        """
        self._check_inputs(contact_state, v, forces)
        if np.shape(a) != (self.nv,):
            raise InvalidArgument(f"a has shape {np.shape(a)}, expected ({self.nv},)")
        nv, fs = self.nv, self.fs
        frame = pinocchio.LOCAL_WORLD_ALIGNED

        self.Jc[:] = 0.0
        self.gamma[:] = 0.0
        self._clear_constraints()
        for i, frame_id in enumerate(self.settings.contact_ids):
            if not contact_state[i]:
                continue
            rows = self._contact_rows(i)
            J = pinocchio.getFrameJacobian(self.model, data, frame_id, frame)
            dJ = pinocchio.getFrameJacobianTimeVariation(self.model, data, frame_id, frame)
            velocity = pinocchio.getFrameVelocity(self.model, data, frame_id, frame).vector
            self.Jc[rows] = J[:fs]
            self.gamma[rows] = dJ[:fs] @ v + self.settings.kd * velocity[:fs]
            self._set_cone(i, forces[rows])

        A, b = self.qp.A, self.qp.b
        A[:nv, :nv] = M
        A[:nv, self.force_slice] = -self.Jc.T
        A[:nv, self.torque_slice] = -self.S
        A[nv:, :nv] = self.Jc
        b[:nv] = -data.nle - M @ a + self.Jc.T @ forces
        b[nv:] = -self.gamma - self.Jc @ a

    def solve_qp(
        self,
        data: pinocchio.Data,
        contact_state: Sequence[bool],
        v: np.ndarray,
        a: np.ndarray,
        forces: np.ndarray,
        M: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Compute torques, forces and accelerations for one control tick.

        Args:
            data: Pinocchio data at the measured state.
            contact_state: Contact flag per contact frame.
            v: Measured velocity, shape (nv,).
            a: Desired acceleration, shape (nv,).
            forces: Desired contact forces, shape (nk * fs,).
            M: Mass matrix, shape (nv, nv).

        Returns:
            (torque, forces, acc). If the QP ends unsolved (infeasible or at
            the iteration cap) the corrections are zero and the torque solves
            the dynamics rows of the actuated joints.
        """
        self.compute_matrices(data, contact_state, v, a, forces, M)
        x = self.qp.solve()
        if x is None:
            x = np.zeros(self.qp.n)
            x[self.torque_slice] = (M @ a + data.nle - self.Jc.T @ forces)[6:]

        return self._store(
            a + x[: self.nv],
            forces + x[self.force_slice],
            x[self.torque_slice].copy(),
            contact_state,
        )
