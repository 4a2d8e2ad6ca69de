# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Whole-body problem built from Crocoddyl's contact forward dynamics.

State: [q, v] (nq + nv). Control: actuated joint torques (nv - 6).

Reference Crocoddyl API classes used:
    - crocoddyl.StateMultibody / ActuationModelFloatingBase
    - crocoddyl.ContactModelMultiple / ContactModel3D / ContactModel6D
    - crocoddyl.CostModelSum / CostModelResidual
    - crocoddyl.ResidualModelState              → state regularization
    - crocoddyl.ResidualModelControl            → control regularization
    - crocoddyl.ResidualModelCentroidalMomentum → momentum regularization
    - crocoddyl.ResidualModelFramePlacement     → foot placement tracking
    - crocoddyl.ResidualModelContactForce       → contact force tracking
    - crocoddyl.ResidualModelContactFrictionCone / ContactWrenchCone
    - crocoddyl.ActivationModelWeightedQuad / ActivationModelQuadraticBarrier
    - crocoddyl.DifferentialActionModelContactFwdDynamics
    - crocoddyl.DifferentialActionModelFreeFwdDynamics (flight phases)
    - crocoddyl.IntegratedActionModelEuler
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
class FullDynamicsSettings(ProblemSettings):
    """Settings of the full-dynamics problem.

    Attributes:
        x0: Regularization state (nq + nv). Defaults to the robot reference state.
        u0: Regularization control (nv - 6). Defaults to zeros.
        w_x: State weights in tangent space (2 nv). Defaults to a standing profile.
        w_frame: Foot placement weights (6).
        contact_gains: Baumgarte gains [Kp, Kd] of the contact models.
    """

    x0: Optional[np.ndarray] = None
    u0: Optional[np.ndarray] = None
    w_x: Optional[np.ndarray] = None
    w_frame: np.ndarray = field(default_factory=lambda: np.array([1.0, 1.0, 1.0, 0.1, 0.1, 0.1]))
    contact_gains: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))

    def validate(self, handler: RobotHandler):
        super().validate(handler)
        nq, nv = handler.nq, handler.nv
        if self.x0 is not None and np.asarray(self.x0).shape != (nq + nv,):
            raise ConfigurationError(f"x0 must have shape ({nq + nv},)")
        if self.u0 is not None and np.asarray(self.u0).shape != (nv - 6,):
            raise ConfigurationError(f"u0 must have shape ({nv - 6},)")
        if self.w_x is not None and np.asarray(self.w_x).shape != (2 * nv,):
            raise ConfigurationError(f"w_x must have shape ({2 * nv},)")
        if np.asarray(self.w_frame).shape != (6,):
            raise ConfigurationError("w_frame must have shape (6,)")
        if np.asarray(self.contact_gains).shape != (2,):
            raise ConfigurationError("contact_gains must have shape (2,)")


class FullDynamicsProblem(BaseProblem):
    """Builds contact forward-dynamics stages for a floating-base robot.

    Costs per running stage:
    - state_reg: weighted state regularization
    - control_reg: control regularization
    - centroidal: centroidal momentum regularization
    - <ee>_pose: placement tracking of every end-effector
    - <ee>_force: force tracking of every end-effector in contact
    - <ee>_cone: friction (or wrench) cone barrier per end-effector in contact
    """

    name = "full_dynamics"

    DEFAULT_WEIGHTS = {
        "state_reg": 1e1,
        "control_reg": 1e-3,
        "centroidal": 1e-1,
        "foot_pose": 1e4,
        "contact_force": 1e-3,
        "friction_cone": 1e3,
    }

    def __init__(self, handler: RobotHandler, settings: Optional[FullDynamicsSettings] = None):
        if settings is None:
            settings = FullDynamicsSettings()
        super().__init__(handler, settings)

        self.state = crocoddyl.StateMultibody(handler.model)
        self.actuation = crocoddyl.ActuationModelFloatingBase(self.state)

        nv = handler.nv
        self.x0 = handler.x0 if settings.x0 is None else np.asarray(settings.x0, dtype=float)
        self.u0 = np.zeros(nv - 6) if settings.u0 is None else np.asarray(settings.u0, dtype=float)
        if settings.w_x is None:
            self.state_weights = np.array(
                [0.0] * 3  # base position - free
                + [500.0] * 3  # base orientation - keep upright
                + [0.01] * (nv - 6)  # joints
                + [10.0] * 6  # base velocity
                + [1.0] * (nv - 6)  # joint velocities
            )
        else:
            self.state_weights = np.asarray(settings.w_x, dtype=float)
        self.frame_weights = np.asarray(settings.w_frame, dtype=float)
        self.contact_gains = np.asarray(settings.contact_gains, dtype=float)

    @property
    def nx(self) -> int:
        return self.state.nx

    @property
    def nu(self) -> int:
        return self.actuation.nu

    def _contact_model(self, frame_id: int, pose: pinocchio.SE3) -> Any:
        if self.force_size == 3:
            return crocoddyl.ContactModel3D(
                self.state,
                frame_id,
                pose.translation,
                pinocchio.LOCAL_WORLD_ALIGNED,
                self.nu,
                self.contact_gains,
            )
        return crocoddyl.ContactModel6D(
            self.state, frame_id, pose, pinocchio.LOCAL, self.nu, self.contact_gains
        )

    def _cone_cost(self, frame_id: int) -> Any:
        # Cone normal aligned with the world z-axis
        if self.force_size == 3:
            cone = crocoddyl.FrictionCone(np.eye(3), self.settings.mu, 4, False)
            residual = crocoddyl.ResidualModelContactFrictionCone(
                self.state, frame_id, cone, self.nu
            )
        else:
            cone = crocoddyl.WrenchCone(
                np.eye(3), self.settings.mu, np.array([self.settings.Lfoot, self.settings.Wfoot])
            )
            residual = crocoddyl.ResidualModelContactWrenchCone(
                self.state, frame_id, cone, self.nu
            )
        activation = crocoddyl.ActivationModelQuadraticBarrier(
            crocoddyl.ActivationBounds(cone.lb, cone.ub)
        )
        return crocoddyl.CostModelResidual(self.state, activation, residual)

    def _base_costs(
        self, pose_refs: Dict[str, pinocchio.SE3], components: Dict[str, Any]
    ) -> Any:
        """Costs shared by running and terminal stages."""
        costs = crocoddyl.CostModelSum(self.state, self.nu)

        state_residual = crocoddyl.ResidualModelState(self.state, self.x0, self.nu)
        state_activation = crocoddyl.ActivationModelWeightedQuad(self.state_weights)
        costs.addCost(
            "state_reg",
            crocoddyl.CostModelResidual(self.state, state_activation, state_residual),
            self.weights["state_reg"],
        )

        centroidal_residual = crocoddyl.ResidualModelCentroidalMomentum(
            self.state, np.zeros(6), self.nu
        )
        costs.addCost(
            "centroidal",
            crocoddyl.CostModelResidual(self.state, centroidal_residual),
            self.weights["centroidal"],
        )

        for name in self.ee_names:
            pose_residual = crocoddyl.ResidualModelFramePlacement(
                self.state, self.handler.get_foot_id(name), pose_refs[name], self.nu
            )
            pose_activation = crocoddyl.ActivationModelWeightedQuad(self.frame_weights)
            costs.addCost(
                f"{name}_pose",
                crocoddyl.CostModelResidual(self.state, pose_activation, pose_residual),
                self.weights["foot_pose"],
            )
            components[f"{name}_pose"] = pose_residual
        return costs

    def _build_model(
        self,
        contact_phase: ContactPhase,
        pose_refs: Dict[str, pinocchio.SE3],
        force_refs: Dict[str, np.ndarray],
        components: Dict[str, Any],
    ) -> Any:
        costs = self._base_costs(pose_refs, components)

        control_residual = crocoddyl.ResidualModelControl(self.state, self.u0)
        costs.addCost(
            "control_reg",
            crocoddyl.CostModelResidual(self.state, control_residual),
            self.weights["control_reg"],
        )

        if contact_phase.is_flight:
            dmodel = crocoddyl.DifferentialActionModelFreeFwdDynamics(
                self.state, self.actuation, costs
            )
            return crocoddyl.IntegratedActionModelEuler(dmodel, self.settings.dt)

        contacts = crocoddyl.ContactModelMultiple(self.state, self.nu)
        for name in contact_phase.support_feet:
            frame_id = self.handler.get_foot_id(name)
            contact = self._contact_model(frame_id, pose_refs[name])
            contacts.addContact(f"{name}_contact", contact)
            components[f"{name}_contact"] = contact

            force_residual = crocoddyl.ResidualModelContactForce(
                self.state, frame_id, self._to_force(force_refs[name]), self.force_size, self.nu
            )
            costs.addCost(
                f"{name}_force",
                crocoddyl.CostModelResidual(self.state, force_residual),
                self.weights["contact_force"],
            )
            components[f"{name}_force"] = force_residual
            costs.addCost(f"{name}_cone", self._cone_cost(frame_id), self.weights["friction_cone"])

        dmodel = crocoddyl.DifferentialActionModelContactFwdDynamics(
            self.state, self.actuation, contacts, costs, 0.0, True
        )
        return crocoddyl.IntegratedActionModelEuler(dmodel, self.settings.dt)

    def create_terminal_stage(self) -> Stage:
        phase = self.standing_phase()
        poses = self.handler.get_foot_poses()
        components: Dict[str, Any] = {}
        costs = self._base_costs(poses, components)
        dmodel = crocoddyl.DifferentialActionModelFreeFwdDynamics(self.state, self.actuation, costs)
        model = crocoddyl.IntegratedActionModelEuler(dmodel, 0.0)
        return Stage(
            model=model,
            contact_phase=phase,
            pose_refs=poses,
            force_refs=self.default_force_refs(phase),
            components=components,
        )

    def _to_force(self, force: np.ndarray) -> pinocchio.Force:
        wrench = np.zeros(6)
        wrench[: self.force_size] = force
        return pinocchio.Force(wrench)

    def _apply_pose(self, stage: Stage, ee_name: str, pose: pinocchio.SE3):
        stage.components[f"{ee_name}_pose"].reference = pose
        contact = stage.components.get(f"{ee_name}_contact")
        if contact is not None:
            contact.reference = pose.translation if self.force_size == 3 else pose

    def _apply_force(self, stage: Stage, ee_name: str, force: np.ndarray):
        residual = stage.components.get(f"{ee_name}_force")
        if residual is not None:
            residual.reference = self._to_force(force)

    def get_problem_state(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self.handler.update_state(q, v)
        return self.handler.state

    def initial_control(self, stage: Stage, x: np.ndarray) -> np.ndarray:
        if stage.contact_phase.is_flight:
            return self.u0.copy()
        return stage.model.quasiStatic(stage.data, x)
