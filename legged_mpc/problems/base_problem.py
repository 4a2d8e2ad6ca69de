# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Common interface of the optimal-control problem variants.

A problem turns one ContactPhase into one Crocoddyl action model (a Stage)
and knows how to push pose/force references into the stages it built. The
horizon manager only talks to this interface; the three variants
(full dynamics, centroidal, kinodynamics) differ in state/control spaces
and in the action models they assemble.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pinocchio

from ..errors import ConfigurationError, InvalidArgument
from ..gait.contact_sequence import ContactPhase
from ..lowlevel.contact_cone import contact_cone_matrix
from ..robot_handler import RobotHandler


@dataclass
class ProblemSettings:
    """Settings shared by every problem variant.

    Attributes:
        dt: Integration timestep of the running stages, in seconds.
        force_size: 3 for point contacts, 6 for surface (wrench) contacts.
        mu: Friction coefficient.
        Lfoot: Half length of the foot sole (wrench contacts only).
        Wfoot: Half width of the foot sole (wrench contacts only).
        gravity: Gravity vector.
        weights: Cost weight overrides, merged with the variant's DEFAULT_WEIGHTS.
    """

    dt: float = 0.01
    force_size: int = 3
    mu: float = 0.8
    Lfoot: float = 0.1
    Wfoot: float = 0.075
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, -9.81]))
    weights: Dict[str, float] = field(default_factory=dict)

    def validate(self, handler: RobotHandler):
        """Raise ConfigurationError if the settings do not fit the robot."""
        if self.dt <= 0:
            raise ConfigurationError(f"dt must be positive, got {self.dt}")
        if self.force_size not in (3, 6):
            raise ConfigurationError(f"force_size must be 3 or 6, got {self.force_size}")
        if self.mu <= 0:
            raise ConfigurationError(f"mu must be positive, got {self.mu}")
        if self.force_size == 6 and (self.Lfoot <= 0 or self.Wfoot <= 0):
            raise ConfigurationError("Lfoot and Wfoot must be positive for wrench contacts")
        if np.asarray(self.gravity).shape != (3,):
            raise ConfigurationError("gravity must be a 3D vector")


@dataclass
class Stage:
    """One step of the horizon.

    Attributes:
        model: Crocoddyl action model of the step.
        contact_phase: Contact flags this stage was built for (owned copy).
        pose_refs: Reference placement per end-effector.
        force_refs: Reference contact force per end-effector.
        components: Model components receiving the references, by name.
            Resolved once when the stage is built.
        data: Crocoddyl action data matching `model`. Stages inside the
            horizon window hold the shooting problem's own data.
    """

    model: Any
    contact_phase: ContactPhase
    pose_refs: Dict[str, pinocchio.SE3]
    force_refs: Dict[str, np.ndarray]
    components: Dict[str, Any] = field(default_factory=dict)
    data: Any = None

    def __post_init__(self):
        if self.data is None and self.model is not None:
            self.data = self.model.createData()

    @property
    def contact_support(self) -> int:
        return self.contact_phase.num_support_feet


class BaseProblem(ABC):
    """Interface shared by FullDynamicsProblem, CentroidalProblem and KinodynamicsProblem.

    Subclasses implement `_build_model`, `_apply_pose`, `_apply_force`,
    `create_terminal_stage`, `get_problem_state` and `initial_control`.

    Attributes:
        handler: Robot model wrapper.
        settings: Variant settings.
        ee_names: Contact end-effector names, in schedule order.
        force_size: Dimension of each contact force.
        weights: Cost weights (DEFAULT_WEIGHTS merged with overrides).
    """

    name: str = "base"
    DEFAULT_WEIGHTS: Dict[str, float] = {}

    def __init__(self, handler: RobotHandler, settings: ProblemSettings):
        settings.validate(handler)
        self.handler = handler
        self.settings = settings
        self.ee_names = list(handler.feet_names)
        self.force_size = settings.force_size
        self.gravity = np.asarray(settings.gravity, dtype=float)
        self.cone = contact_cone_matrix(
            settings.force_size, settings.mu, settings.Lfoot, settings.Wfoot
        )

        unknown = set(settings.weights) - set(self.DEFAULT_WEIGHTS)
        if unknown:
            raise ConfigurationError(
                f"Unknown {self.name} cost weights: {sorted(unknown)}. "
                f"Available: {sorted(self.DEFAULT_WEIGHTS)}"
            )
        self.weights = self.DEFAULT_WEIGHTS.copy()
        self.weights.update(settings.weights)

    # ------------------------------------------------------------------
    # Variant hooks
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def nx(self) -> int:
        """State dimension of the stages."""

    @property
    @abstractmethod
    def nu(self) -> int:
        """Control dimension of the stages."""

    @abstractmethod
    def _build_model(
        self,
        contact_phase: ContactPhase,
        pose_refs: Dict[str, pinocchio.SE3],
        force_refs: Dict[str, np.ndarray],
        components: Dict[str, Any],
    ) -> Any:
        """Assemble the action model of one running stage, filling `components`."""

    @abstractmethod
    def _apply_pose(self, stage: Stage, ee_name: str, pose: pinocchio.SE3):
        """Push a pose reference into the stage model."""

    @abstractmethod
    def _apply_force(self, stage: Stage, ee_name: str, force: np.ndarray):
        """Push a force reference into the stage model."""

    @abstractmethod
    def create_terminal_stage(self) -> Stage:
        """Build the terminal stage (cost only, terminal constraints off)."""

    @abstractmethod
    def get_problem_state(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        """Convert a measured robot state into the problem's state vector."""

    @abstractmethod
    def initial_control(self, stage: Stage, x: np.ndarray) -> np.ndarray:
        """Return an initial control guess for a stage around state x."""

    # ------------------------------------------------------------------
    # Stage construction
    # ------------------------------------------------------------------

    def _check_ee(self, ee_name: str):
        if ee_name not in self.ee_names:
            raise InvalidArgument(f"Unknown end-effector '{ee_name}'. Known: {self.ee_names}")

    def _check_force(self, ee_name: str, force: np.ndarray) -> np.ndarray:
        self._check_ee(ee_name)
        force = np.asarray(force, dtype=float)
        if force.shape != (self.force_size,):
            raise InvalidArgument(
                f"Force of '{ee_name}' has shape {force.shape}, expected ({self.force_size},)"
            )
        return force.copy()

    def default_force_refs(
        self, contact_phase: ContactPhase, support_force: Optional[float] = None
    ) -> Dict[str, np.ndarray]:
        """Share the support force evenly between the feet in contact.

        Args:
            contact_phase: Contact flags of the step.
            support_force: Total vertical force; defaults to the robot weight.
        """
        if support_force is None:
            support_force = -self.handler.mass * self.gravity[2]
        n_active = contact_phase.num_support_feet
        refs = {}
        for name in self.ee_names:
            force = np.zeros(self.force_size)
            if contact_phase[name]:
                force[2] = support_force / n_active
            refs[name] = force
        return refs

    def create_stage(
        self,
        contact_phase: ContactPhase,
        force_refs: Optional[Mapping[str, np.ndarray]] = None,
        contact_poses: Optional[Mapping[str, pinocchio.SE3]] = None,
    ) -> Stage:
        """Build the stage of one step.

        Args:
            contact_phase: Contact flags of the step.
            force_refs: Reference forces; missing entries use `default_force_refs`.
            contact_poses: Reference placements; missing entries use the
                current foot placements of the robot.
        """
        if set(contact_phase.ee_names) != set(self.ee_names):
            raise InvalidArgument(
                f"Contact phase covers {sorted(contact_phase.ee_names)}, "
                f"expected {sorted(self.ee_names)}"
            )
        forces = self.default_force_refs(contact_phase)
        for name, force in (force_refs or {}).items():
            forces[name] = self._check_force(name, force)

        poses = self.handler.get_foot_poses()
        for name, pose in (contact_poses or {}).items():
            self._check_ee(name)
            poses[name] = pinocchio.SE3(pose)

        components: Dict[str, Any] = {}
        model = self._build_model(contact_phase, poses, forces, components)
        return Stage(
            model=model,
            contact_phase=contact_phase.copy(),
            pose_refs=poses,
            force_refs=forces,
            components=components,
        )

    def standing_phase(self) -> ContactPhase:
        return ContactPhase.from_support(self.ee_names, self.ee_names)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def set_reference_pose(self, stage: Stage, ee_name: str, pose: pinocchio.SE3):
        self._check_ee(ee_name)
        pose = pinocchio.SE3(pose)
        stage.pose_refs[ee_name] = pose
        self._apply_pose(stage, ee_name, pose)

    def set_reference_poses(self, stage: Stage, poses: Mapping[str, pinocchio.SE3]):
        for name in poses:
            self._check_ee(name)
        for name, pose in poses.items():
            self.set_reference_pose(stage, name, pose)

    def get_reference_pose(self, stage: Stage, ee_name: str) -> pinocchio.SE3:
        self._check_ee(ee_name)
        return pinocchio.SE3(stage.pose_refs[ee_name])

    def set_reference_force(self, stage: Stage, ee_name: str, force: np.ndarray):
        force = self._check_force(ee_name, force)
        stage.force_refs[ee_name] = force
        self._apply_force(stage, ee_name, force)

    def set_reference_forces(self, stage: Stage, forces: Mapping[str, np.ndarray]):
        checked = {name: self._check_force(name, f) for name, f in forces.items()}
        for name, force in checked.items():
            self.set_reference_force(stage, name, force)

    def get_reference_force(self, stage: Stage, ee_name: str) -> np.ndarray:
        self._check_ee(ee_name)
        return stage.force_refs[ee_name].copy()

    def get_contact_support(self, stage: Stage) -> int:
        """Return the number of end-effectors in contact at a stage."""
        return stage.contact_support
