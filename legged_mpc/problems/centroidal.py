# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Centroidal problem: momentum dynamics driven by contact forces.

State: x = [c, h_lin, h_ang] (9), the CoM position, the linear momentum and
the angular momentum about the CoM. Control: contact forces (or wrenches)
stacked in end-effector order, force_size each.

Dynamics (explicit Euler, timestep dt):
    dc/dt     = h_lin / m
    dh_lin/dt = sum_i f_i + m g
    dh_ang/dt = sum_i (p_i - c) x f_i + tau_i

Only end-effectors in contact contribute. Derivatives are analytic, cost
Hessians use the Gauss-Newton approximation.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import crocoddyl
import numpy as np
import pinocchio

from ..errors import ConfigurationError
from ..gait.contact_sequence import ContactPhase
from ..robot_handler import RobotHandler
from .base_problem import BaseProblem, ProblemSettings, Stage


@dataclass
class CentroidalSettings(ProblemSettings):
    """Settings of the centroidal problem.

    Attributes:
        w_u: Per-component control weights (n_feet * force_size). Defaults to ones.
    """

    w_u: Optional[np.ndarray] = None

    def validate(self, handler: RobotHandler):
        super().validate(handler)
        nu = len(handler.feet_names) * self.force_size
        if self.w_u is not None and np.asarray(self.w_u).shape != (nu,):
            raise ConfigurationError(f"w_u must have shape ({nu},)")


class CentroidalActionModel(crocoddyl.ActionModelAbstract):
    """Discrete centroidal dynamics of one step.

    Costs:
    - control_reg: distance of the forces to their references
    - linear_momentum / angular_momentum: momentum regularization
    - linear_acc / angular_acc: momentum rate regularization
    - friction_cone: squared violation of the linearized cone per contact
    """

    def __init__(
        self,
        problem: "CentroidalProblem",
        contact_phase: ContactPhase,
        contact_points: Dict[str, np.ndarray],
        u_ref: np.ndarray,
        dt: float,
        terminal: bool = False,
    ):
        crocoddyl.ActionModelAbstract.__init__(self, crocoddyl.StateVector(9), problem.nu)
        self.ee_names = problem.ee_names
        self.fs = problem.force_size
        self.mass = problem.handler.mass
        self.gravity = problem.gravity
        self.cone = problem.cone
        self.weights = problem.weights
        self.control_weights = problem.control_weights
        self.active = {name: contact_phase[name] for name in self.ee_names}
        self.contact_points = {name: np.array(p, dtype=float) for name, p in contact_points.items()}
        self.u_ref = np.array(u_ref, dtype=float)
        self.dt = dt
        self.terminal = terminal

    def _contact_terms(self, x: np.ndarray, u: np.ndarray):
        """Return the momentum rates and their Jacobians w.r.t. u and c."""
        c = x[:3]
        nu = self.u_ref.shape[0]
        lin = self.mass * self.gravity
        ang = np.zeros(3)
        A_u = np.zeros((3, nu))
        B_u = np.zeros((3, nu))
        B_c = np.zeros((3, 3))
        for k, name in enumerate(self.ee_names):
            if not self.active[name]:
                continue
            i = k * self.fs
            f = u[i : i + 3]
            r = self.contact_points[name] - c
            lin = lin + f
            ang = ang + np.cross(r, f)
            A_u[:, i : i + 3] = np.eye(3)
            B_u[:, i : i + 3] = pinocchio.skew(r)
            B_c += pinocchio.skew(f)
            if self.fs == 6:
                ang = ang + u[i + 3 : i + 6]
                B_u[:, i + 3 : i + 6] = np.eye(3)
        return lin, ang, A_u, B_u, B_c

    def _cone_violations(self, u: np.ndarray):
        for k, name in enumerate(self.ee_names):
            if self.active[name]:
                i = k * self.fs
                yield i, -self.cone @ u[i : i + self.fs]

    def _momentum_cost(self, x: np.ndarray) -> float:
        hl, ha = x[3:6], x[6:9]
        return 0.5 * (
            self.weights["linear_momentum"] * hl.dot(hl)
            + self.weights["angular_momentum"] * ha.dot(ha)
        )

    def calc(self, data, x, u=None):
        cost = self._momentum_cost(x)
        if u is None or self.terminal:
            data.xnext = np.array(x)
            data.cost = cost
            return

        lin, ang, _, _, _ = self._contact_terms(x, u)
        xdot = np.concatenate([x[3:6] / self.mass, lin, ang])
        data.xnext = x + self.dt * xdot

        du = u - self.u_ref
        cost += 0.5 * du.dot(self.control_weights * du)
        cost += 0.5 * self.weights["linear_acc"] * lin.dot(lin)
        cost += 0.5 * self.weights["angular_acc"] * ang.dot(ang)
        for _, r in self._cone_violations(u):
            violation = np.maximum(r, 0.0)
            cost += 0.5 * self.weights["friction_cone"] * violation.dot(violation)
        data.cost = cost

    def calcDiff(self, data, x, u=None):
        w = self.weights
        Lx = np.zeros(9)
        Lxx = np.zeros((9, 9))
        Lx[3:6] = w["linear_momentum"] * x[3:6]
        Lx[6:9] = w["angular_momentum"] * x[6:9]
        Lxx[3:6, 3:6] = w["linear_momentum"] * np.eye(3)
        Lxx[6:9, 6:9] = w["angular_momentum"] * np.eye(3)
        if u is None or self.terminal:
            data.Fx = np.eye(9)
            data.Lx = Lx
            data.Lxx = Lxx
            return

        nu = self.u_ref.shape[0]
        lin, ang, A_u, B_u, B_c = self._contact_terms(x, u)

        Fx = np.eye(9)
        Fx[0:3, 3:6] += self.dt / self.mass * np.eye(3)
        Fx[6:9, 0:3] += self.dt * B_c
        Fu = np.zeros((9, nu))
        Fu[3:6] = self.dt * A_u
        Fu[6:9] = self.dt * B_u

        du = u - self.u_ref
        Lu = self.control_weights * du + w["linear_acc"] * A_u.T @ lin + w["angular_acc"] * B_u.T @ ang
        Luu = (
            np.diag(self.control_weights)
            + w["linear_acc"] * A_u.T @ A_u
            + w["angular_acc"] * B_u.T @ B_u
        )
        Lx[0:3] += w["angular_acc"] * B_c.T @ ang
        Lxx[0:3, 0:3] += w["angular_acc"] * B_c.T @ B_c
        Lxu = np.zeros((9, nu))
        Lxu[0:3] = w["angular_acc"] * B_c.T @ B_u

        for i, r in self._cone_violations(u):
            active_rows = (r > 0).astype(float)
            C = self.cone
            Lu[i : i + self.fs] -= w["friction_cone"] * C.T @ (active_rows * r)
            Luu[i : i + self.fs, i : i + self.fs] += w["friction_cone"] * C.T @ (active_rows[:, None] * C)

        data.Fx = Fx
        data.Fu = Fu
        data.Lx = Lx
        data.Lu = Lu
        data.Lxx = Lxx
        data.Luu = Luu
        data.Lxu = Lxu


class CentroidalProblem(BaseProblem):
    """Builds centroidal-dynamics stages."""

    name = "centroidal"

    DEFAULT_WEIGHTS = {
        "control_reg": 1e-4,
        "linear_momentum": 1e1,
        "angular_momentum": 1e1,
        "linear_acc": 1e-2,
        "angular_acc": 1e-2,
        "friction_cone": 1e2,
    }

    def __init__(self, handler: RobotHandler, settings: Optional[CentroidalSettings] = None):
        if settings is None:
            settings = CentroidalSettings()
        super().__init__(handler, settings)
        w_u = np.ones(self.nu) if settings.w_u is None else np.asarray(settings.w_u, dtype=float)
        self.control_weights = self.weights["control_reg"] * w_u

    @property
    def nx(self) -> int:
        return 9

    @property
    def nu(self) -> int:
        return len(self.ee_names) * self.force_size

    def _stack_forces(self, force_refs: Dict[str, np.ndarray]) -> np.ndarray:
        return np.concatenate([force_refs[name] for name in self.ee_names])

    def _build_model(
        self,
        contact_phase: ContactPhase,
        pose_refs: Dict[str, pinocchio.SE3],
        force_refs: Dict[str, np.ndarray],
        components: Dict[str, Any],
    ) -> Any:
        points = {name: pose.translation for name, pose in pose_refs.items()}
        model = CentroidalActionModel(
            self, contact_phase, points, self._stack_forces(force_refs), self.settings.dt
        )
        components["dynamics"] = model
        return model

    def create_terminal_stage(self) -> Stage:
        phase = self.standing_phase()
        poses = self.handler.get_foot_poses()
        forces = self.default_force_refs(phase)
        points = {name: pose.translation for name, pose in poses.items()}
        model = CentroidalActionModel(
            self, phase, points, self._stack_forces(forces), 0.0, terminal=True
        )
        return Stage(
            model=model,
            contact_phase=phase,
            pose_refs=poses,
            force_refs=forces,
            components={"dynamics": model},
        )

    def _apply_pose(self, stage: Stage, ee_name: str, pose: pinocchio.SE3):
        stage.components["dynamics"].contact_points[ee_name] = pose.translation.copy()

    def _apply_force(self, stage: Stage, ee_name: str, force: np.ndarray):
        k = self.ee_names.index(ee_name)
        stage.components["dynamics"].u_ref[k * self.force_size : (k + 1) * self.force_size] = force

    def get_problem_state(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self.handler.update_state(q, v)
        return self.handler.centroidal_state()

    def initial_control(self, stage: Stage, x: np.ndarray) -> np.ndarray:
        return stage.components["dynamics"].u_ref.copy()
