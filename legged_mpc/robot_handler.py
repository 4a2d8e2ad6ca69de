# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Pinocchio model wrapper for a floating-base robot with named contact frames.

State representation: (nq + nv) dimensional
    q = [x, y, z, qx, qy, qz, qw, joints...]
    v = [vx, vy, vz, wx, wy, wz, joint velocities...]
"""

from typing import Dict, Optional, Sequence

import numpy as np
import pinocchio

from .errors import ConfigurationError, InvalidArgument


class RobotHandler:
    """Holds the robot model, its data and the measured state.

    Attributes:
        model: Pinocchio robot model.
        data: Pinocchio data, refreshed by `update_state`.
        feet_names: Contact frame names, in schedule order.
        feet_ids: Mapping from contact frame name to Pinocchio frame id.
        mass: Total robot mass.
    """

    def __init__(
        self,
        model: pinocchio.Model,
        feet_names: Sequence[str],
        q0: Optional[np.ndarray] = None,
    ):
        self.model = model
        self.data = model.createData()
        self.feet_names = list(feet_names)

        self.feet_ids: Dict[str, int] = {}
        for name in self.feet_names:
            if not model.existFrame(name):
                raise ConfigurationError(f"Frame '{name}' not found in model '{model.name}'")
            self.feet_ids[name] = model.getFrameId(name)

        if q0 is None:
            q0 = pinocchio.neutral(model)
        q0 = np.asarray(q0, dtype=float)
        if q0.shape != (model.nq,):
            raise ConfigurationError(f"q0 has shape {q0.shape}, expected ({model.nq},)")
        self.q0 = q0.copy()
        self.mass = pinocchio.computeTotalMass(model)

        self.q = self.q0.copy()
        self.v = np.zeros(model.nv)
        self.update_state(self.q, self.v)

    @property
    def nq(self) -> int:
        return self.model.nq

    @property
    def nv(self) -> int:
        return self.model.nv

    @property
    def state(self) -> np.ndarray:
        """Current state [q, v]."""
        return np.concatenate([self.q, self.v])

    @property
    def x0(self) -> np.ndarray:
        """Reference state [q0, 0]."""
        return np.concatenate([self.q0, np.zeros(self.nv)])

    def get_foot_id(self, name: str) -> int:
        try:
            return self.feet_ids[name]
        except KeyError:
            raise InvalidArgument(
                f"Unknown end-effector '{name}'. Known: {self.feet_names}"
            ) from None

    def update_state(self, q: np.ndarray, v: np.ndarray, update_kinematics: bool = True):
        """Store the measured state and refresh placements and momentum.

        Args:
            q: Configuration, shape (nq,).
            v: Velocity, shape (nv,).
            update_kinematics: If False, only the stored state changes.
        """
        q = np.asarray(q, dtype=float)
        v = np.asarray(v, dtype=float)
        if q.shape != (self.nq,) or v.shape != (self.nv,):
            raise InvalidArgument(
                f"State has shapes {q.shape}/{v.shape}, expected ({self.nq},)/({self.nv},)"
            )
        self.q = q.copy()
        self.v = v.copy()
        if update_kinematics:
            pinocchio.forwardKinematics(self.model, self.data, q, v)
            pinocchio.updateFramePlacements(self.model, self.data)
            pinocchio.centerOfMass(self.model, self.data, q, v)
            pinocchio.computeCentroidalMomentum(self.model, self.data, q, v)

    def update_dynamics(self) -> np.ndarray:
        """Refresh every quantity the low-level QP solvers read from `data`.

        Jacobians and their time variation, frame placements and velocities,
        nonlinear effects, centroidal momentum matrix and its time variation.

        Returns:
            Symmetric mass matrix, shape (nv, nv).
        """
        q, v = self.q, self.v
        pinocchio.forwardKinematics(self.model, self.data, q, v)
        pinocchio.computeJointJacobians(self.model, self.data, q)
        pinocchio.computeJointJacobiansTimeVariation(self.model, self.data, q, v)
        pinocchio.updateFramePlacements(self.model, self.data)
        pinocchio.nonLinearEffects(self.model, self.data, q, v)
        pinocchio.dccrba(self.model, self.data, q, v)
        pinocchio.crba(self.model, self.data, q)
        return self.mass_matrix()

    def mass_matrix(self) -> np.ndarray:
        """Return the mass matrix computed by the last `crba` call, symmetrized."""
        upper = np.triu(self.data.M)
        return upper + np.triu(self.data.M, 1).T

    def get_foot_pose(self, name: str) -> pinocchio.SE3:
        """Return a copy of the current world placement of a contact frame."""
        return pinocchio.SE3(self.data.oMf[self.get_foot_id(name)])

    def get_foot_poses(self) -> Dict[str, pinocchio.SE3]:
        return {name: self.get_foot_pose(name) for name in self.feet_names}

    def centroidal_state(self) -> np.ndarray:
        """Return [com position, linear momentum, angular momentum about the CoM]."""
        return np.concatenate(
            [self.data.com[0], self.data.hg.linear, self.data.hg.angular]
        )
