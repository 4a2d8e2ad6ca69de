# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Kinodynamics problem: joint accelerations and contact forces as controls.

State: [q, v] (nq + nv). Control: u = [contact forces (n_feet * force_size),
joint accelerations (nv - 6)].

The base acceleration follows from the six unactuated rows of the rigid-body
dynamics given the joint accelerations and contact forces:
    M_bb a_b = sum_i J_i,b^T f_i - nle_b - M_bj a_j

Only `calc` is written here; derivatives come from
crocoddyl.DifferentialActionModelNumDiff.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import crocoddyl
import numpy as np
import pinocchio

from ..errors import ConfigurationError
from ..gait.contact_sequence import ContactPhase
from ..robot_handler import RobotHandler
from .base_problem import BaseProblem, ProblemSettings, Stage


@dataclass
class KinodynamicsSettings(ProblemSettings):
    """Settings of the kinodynamics problem.

    Attributes:
        x0: Regularization state (nq + nv). Defaults to the robot reference state.
        w_x: State weights in tangent space (2 nv). Defaults to a standing profile.
        w_frame: Foot placement weights (6).
    """

    x0: Optional[np.ndarray] = None
    w_x: Optional[np.ndarray] = None
    w_frame: np.ndarray = field(default_factory=lambda: np.array([1.0, 1.0, 1.0, 0.1, 0.1, 0.1]))

    def validate(self, handler: RobotHandler):
        super().validate(handler)
        nq, nv = handler.nq, handler.nv
        if self.x0 is not None and np.asarray(self.x0).shape != (nq + nv,):
            raise ConfigurationError(f"x0 must have shape ({nq + nv},)")
        if self.w_x is not None and np.asarray(self.w_x).shape != (2 * nv,):
            raise ConfigurationError(f"w_x must have shape ({2 * nv},)")
        if np.asarray(self.w_frame).shape != (6,):
            raise ConfigurationError("w_frame must have shape (6,)")


class KinodynamicsActionModel(crocoddyl.DifferentialActionModelAbstract):
    """Continuous-time kinodynamics of one step.

    Costs:
    - state_reg: weighted distance to the regularization state
    - control_reg: distance of forces/accelerations to their references
    - centroidal: centroidal momentum regularization
    - foot_pose: placement error of every end-effector (log6)
    - friction_cone: squared violation of the linearized cone per contact
    """

    def __init__(
        self,
        problem: "KinodynamicsProblem",
        contact_phase: ContactPhase,
        pose_refs: Dict[str, pinocchio.SE3],
        u_ref: np.ndarray,
        terminal: bool = False,
    ):
        crocoddyl.DifferentialActionModelAbstract.__init__(self, problem.state, problem.nu)
        self.problem = problem
        self.active = {name: contact_phase[name] for name in problem.ee_names}
        self.pose_refs = {name: pinocchio.SE3(p) for name, p in pose_refs.items()}
        self.u_ref = np.array(u_ref, dtype=float)
        self.terminal = terminal

    def calc(self, data, x, u=None):
        p = self.problem
        rmodel, rdata = p.handler.model, p.rdata
        q, v = x[: rmodel.nq], x[rmodel.nq :]
        w = p.weights

        pinocchio.forwardKinematics(rmodel, rdata, q, v)
        pinocchio.updateFramePlacements(rmodel, rdata)

        dx = p.state.diff(p.x0, x)
        cost = 0.5 * w["state_reg"] * dx.dot(p.state_weights * dx)
        for name in p.ee_names:
            error = pinocchio.log6(
                self.pose_refs[name].actInv(rdata.oMf[p.handler.get_foot_id(name)])
            ).vector
            cost += 0.5 * w["foot_pose"] * error.dot(p.frame_weights * error)
        hg = pinocchio.computeCentroidalMomentum(rmodel, rdata, q, v).vector
        cost += 0.5 * w["centroidal"] * hg.dot(hg)

        if u is None or self.terminal:
            data.xout = np.zeros(rmodel.nv)
            data.cost = cost
            return

        nf = len(p.ee_names) * p.force_size
        a_j = u[nf:]
        pinocchio.computeJointJacobians(rmodel, rdata, q)
        pinocchio.crba(rmodel, rdata, q)
        M = np.triu(rdata.M) + np.triu(rdata.M, 1).T
        nle = pinocchio.nonLinearEffects(rmodel, rdata, q, v)

        tau_contact = np.zeros(rmodel.nv)
        for k, name in enumerate(p.ee_names):
            if not self.active[name]:
                continue
            f = u[k * p.force_size : (k + 1) * p.force_size]
            J = pinocchio.getFrameJacobian(
                rmodel, rdata, p.handler.get_foot_id(name), pinocchio.LOCAL_WORLD_ALIGNED
            )
            tau_contact += J[: p.force_size].T @ f
            violation = np.maximum(-p.cone @ f, 0.0)
            cost += 0.5 * w["friction_cone"] * violation.dot(violation)

        a_b = np.linalg.solve(M[:6, :6], tau_contact[:6] - nle[:6] - M[:6, 6:] @ a_j)
        data.xout = np.concatenate([a_b, a_j])

        du = u - self.u_ref
        cost += 0.5 * w["control_reg"] * du.dot(du)
        data.cost = cost


class KinodynamicsProblem(BaseProblem):
    """Builds kinodynamics stages (numerical derivatives)."""

    name = "kinodynamics"

    DEFAULT_WEIGHTS = {
        "state_reg": 1e1,
        "control_reg": 1e-3,
        "centroidal": 1e-1,
        "foot_pose": 1e4,
        "friction_cone": 1e3,
    }

    def __init__(self, handler: RobotHandler, settings: Optional[KinodynamicsSettings] = None):
        if settings is None:
            settings = KinodynamicsSettings()
        super().__init__(handler, settings)
        self.state = crocoddyl.StateMultibody(handler.model)
        # Shared by every stage; stages are evaluated one at a time
        self.rdata = handler.model.createData()

        nv = handler.nv
        self.x0 = handler.x0 if settings.x0 is None else np.asarray(settings.x0, dtype=float)
        if settings.w_x is None:
            self.state_weights = np.array(
                [0.0] * 3 + [500.0] * 3 + [0.01] * (nv - 6) + [10.0] * 6 + [1.0] * (nv - 6)
            )
        else:
            self.state_weights = np.asarray(settings.w_x, dtype=float)
        self.frame_weights = np.asarray(settings.w_frame, dtype=float)

    @property
    def nx(self) -> int:
        return self.state.nx

    @property
    def nu(self) -> int:
        return len(self.ee_names) * self.force_size + self.handler.nv - 6

    def _control_ref(self, force_refs: Dict[str, np.ndarray]) -> np.ndarray:
        forces = [force_refs[name] for name in self.ee_names]
        return np.concatenate(forces + [np.zeros(self.handler.nv - 6)])

    def _integrate(self, dmodel: KinodynamicsActionModel, dt: float) -> Any:
        return crocoddyl.IntegratedActionModelEuler(
            crocoddyl.DifferentialActionModelNumDiff(dmodel, False), dt
        )

    def _build_model(
        self,
        contact_phase: ContactPhase,
        pose_refs: Dict[str, pinocchio.SE3],
        force_refs: Dict[str, np.ndarray],
        components: Dict[str, Any],
    ) -> Any:
        dmodel = KinodynamicsActionModel(self, contact_phase, pose_refs, self._control_ref(force_refs))
        components["dynamics"] = dmodel
        return self._integrate(dmodel, self.settings.dt)

    def create_terminal_stage(self) -> Stage:
        phase = self.standing_phase()
        poses = self.handler.get_foot_poses()
        forces = self.default_force_refs(phase)
        dmodel = KinodynamicsActionModel(
            self, phase, poses, self._control_ref(forces), terminal=True
        )
        return Stage(
            model=self._integrate(dmodel, 0.0),
            contact_phase=phase,
            pose_refs=poses,
            force_refs=forces,
            components={"dynamics": dmodel},
        )

    def _apply_pose(self, stage: Stage, ee_name: str, pose: pinocchio.SE3):
        stage.components["dynamics"].pose_refs[ee_name] = pinocchio.SE3(pose)

    def _apply_force(self, stage: Stage, ee_name: str, force: np.ndarray):
        k = self.ee_names.index(ee_name)
        stage.components["dynamics"].u_ref[k * self.force_size : (k + 1) * self.force_size] = force

    def get_problem_state(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self.handler.update_state(q, v)
        return self.handler.state

    def initial_control(self, stage: Stage, x: np.ndarray) -> np.ndarray:
        return stage.components["dynamics"].u_ref.copy()
