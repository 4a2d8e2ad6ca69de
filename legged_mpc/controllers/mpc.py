# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Receding-horizon controller over a Crocoddyl shooting problem.

Each control cycle:
    1. Inject the measured robot state as the problem's initial state
    2. Run FDDP from the shifted previous solution
    3. Recede: rotate the horizon by one stage, append the entering stage
       to the shooting problem and shift the warm start
    4. Update the takeoff/landing tables and the swing references of the
       entering stage

Swing-foot references follow a Bezier arc from the last stance placement to
that placement shifted by (x_translation, y_translation), peaking at
swing_apex.
"""

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import crocoddyl
import numpy as np
import pinocchio

from ..errors import ConfigurationError, InvalidArgument, SolverNonConvergence
from ..gait.contact_sequence import ContactPhase
from ..gait.foot_timings import FootTimingTracker
from ..gait.gait_scheduler import GaitScheduler
from ..problems.base_problem import BaseProblem, Stage
from ..trajectory.swing_trajectory import SwingFootTrajectory
from .horizon import HorizonBuffer

logger = logging.getLogger(__name__)


@dataclass
class MPCSettings:
    """Parameters of the MPC controller.

    Attributes:
        ddp_iteration: Solver runs per control cycle.
        support_force: Total vertical force shared by the feet in contact.
            None uses the robot weight.
        tol: Stopping threshold of the solver.
        mu_init: Initial regularization of the solver.
        max_iters: Iterations per solver run.
        num_threads: Threads used to evaluate the shooting problem.
        swing_apex: Height of the swing-foot arc, in meters.
        x_translation: Forward displacement of each step, in meters.
        y_translation: Lateral displacement of each step, in meters.
        T_fly: Swing duration of a gait cycle, in steps.
        T_contact: Double support duration of a gait cycle, in steps.
        T: Horizon length, in steps.
        dt: Timestep, must match the problem's.
        gait: Gait of `generate_walking_cycle`.
        verbose: Print solver iterations.
        strict_convergence: Raise SolverNonConvergence instead of recording it.
    """

    ddp_iteration: int = 1
    support_force: Optional[float] = None
    tol: float = 1e-4
    mu_init: float = 1e-8
    max_iters: int = 1
    num_threads: int = 1
    swing_apex: float = 0.1
    x_translation: float = 0.0
    y_translation: float = 0.0
    T_fly: int = 80
    T_contact: int = 20
    T: int = 100
    dt: float = 0.01
    gait: str = "walk"
    verbose: bool = False
    strict_convergence: bool = False

    # Key names of the original parameter dictionaries
    _ALIASES = {"ddpIteration": "ddp_iteration", "TOL": "tol"}

    def validate(self):
        """Raise ConfigurationError on invalid or inconsistent values."""
        for name in ("T", "ddp_iteration", "max_iters", "num_threads"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.dt <= 0:
            raise ConfigurationError(f"dt must be positive, got {self.dt}")
        if self.tol <= 0:
            raise ConfigurationError(f"tol must be positive, got {self.tol}")
        if self.mu_init < 0:
            raise ConfigurationError(f"mu_init must be non-negative, got {self.mu_init}")
        if self.swing_apex < 0:
            raise ConfigurationError(f"swing_apex must be non-negative, got {self.swing_apex}")
        if self.T_fly < 0:
            raise ConfigurationError(f"T_fly must be non-negative, got {self.T_fly}")
        if self.T_contact <= 0:
            raise ConfigurationError(f"T_contact must be positive, got {self.T_contact}")
        if self.T_fly + self.T_contact > self.T:
            raise ConfigurationError(
                f"Gait phase (T_fly={self.T_fly} + T_contact={self.T_contact}) "
                f"does not fit in the horizon T={self.T}"
            )
        if self.support_force is not None and self.support_force <= 0:
            raise ConfigurationError(f"support_force must be positive, got {self.support_force}")
        if self.gait not in GaitScheduler.GAIT_PATTERNS:
            raise ConfigurationError(
                f"Unknown gait '{self.gait}'. Available: {GaitScheduler.get_available_gaits()}"
            )

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "MPCSettings":
        """Build settings from a parameter dictionary.

        Raises:
            ConfigurationError: On unknown keys.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = cls._ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown MPC setting '{key}'")
            kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class MPCSolution:
    """Container for MPC solver output.

    Attributes:
        control: First optimal control action to apply.
            Shape: (nu,)
        predicted_states: Predicted state trajectory over horizon.
            Shape: (T + 1, nx)
        predicted_controls: Predicted control trajectory over horizon.
            Shape: (T, nu)
        feedback_gain: Feedback gain of the first stage.
        solve_time: Wall-clock solver time in seconds.
        converged: Whether the solver converged to a solution.
        cost: Optimal cost value achieved.
        iterations: Number of solver iterations of the last run.
    """

    control: np.ndarray
    predicted_states: np.ndarray
    predicted_controls: np.ndarray
    feedback_gain: np.ndarray
    solve_time: float
    converged: bool
    cost: float
    iterations: int = 0


@dataclass
class SwingPlan:
    """Swing of one foot, in absolute planning steps.

    Attributes:
        start: Placement at takeoff.
        end: Placement at landing.
        lift: Last stance step before the swing.
        land: First stance step after the swing.
    """

    start: pinocchio.SE3
    end: pinocchio.SE3
    lift: int
    land: int

    def phase(self, step: int) -> float:
        return (step - self.lift) / (self.land - self.lift)


class MPC:
    """Model predictive controller for legged locomotion.

    Example:
        >>> problem = FullDynamicsProblem(handler)
        >>> mpc = MPC(MPCSettings(T=100), problem)
        >>> mpc.generate_walking_cycle()
        >>> solution = mpc.iterate(q, v)
        >>> torque = solution.control

    Attributes:
        settings: Controller settings.
        problem: Problem variant building the stages.
        horizon: Horizon buffer.
        ocp: Crocoddyl shooting problem over the horizon window.
        solver: FDDP solver bound to `ocp`.
        xs: Last solved state trajectory (T + 1 states).
        us: Last solved control trajectory (T controls).
        K0: Feedback gain of the first stage of the last solve.
        horizon_iteration: Number of recede steps performed.
        non_convergence_count: Number of solves that did not converge.
        last_non_convergence: Diagnostics of the last non-converged solve.
    """

    def __init__(self, settings: MPCSettings, problem: BaseProblem):
        self.initialize(settings, problem)

    def initialize(self, settings: MPCSettings, problem: BaseProblem):
        """Validate settings, build a standing horizon and solve once."""
        settings.validate()
        if abs(settings.dt - problem.settings.dt) > 1e-12:
            raise ConfigurationError(
                f"MPC dt ({settings.dt}) differs from the problem dt ({problem.settings.dt})"
            )
        self.settings = settings
        self.problem = problem
        self.ee_names = list(problem.ee_names)
        self.horizon = HorizonBuffer(problem, settings.T)
        self.timings = FootTimingTracker(self.ee_names)
        self.gait_scheduler = GaitScheduler(self.ee_names)
        self.swing_trajectory = SwingFootTrajectory(settings.swing_apex)

        self.horizon_iteration = 0
        self.non_convergence_count = 0
        self.last_non_convergence: Optional[SolverNonConvergence] = None
        self.xs: List[np.ndarray] = []
        self.us: List[np.ndarray] = []
        self.K0: Optional[np.ndarray] = None
        self._xs_guess: List[np.ndarray] = []
        self._us_guess: List[np.ndarray] = []
        self._foot_poses: Dict[str, pinocchio.SE3] = {}
        self._swings: Dict[str, Optional[SwingPlan]] = {}
        self._tail_step = 0

        handler = problem.handler
        self.x0 = problem.get_problem_state(handler.q, handler.v)
        self.generate_full_horizon(self.gait_scheduler.generate_standing(settings.T))
        converged = self._solve()
        logger.info(
            "Initialized %s MPC: T=%d, dt=%.4f, %d end-effectors",
            problem.name,
            settings.T,
            settings.dt,
            len(self.ee_names),
        )
        self._check_convergence(converged)

    # ------------------------------------------------------------------
    # Horizon generation
    # ------------------------------------------------------------------

    def _default_force_refs(self, schedule: Sequence[ContactPhase]) -> List[Dict[str, np.ndarray]]:
        return [
            self.problem.default_force_refs(phase, self.settings.support_force) for phase in schedule
        ]

    def generate_full_horizon(
        self,
        schedule: Sequence[ContactPhase],
        force_refs: Optional[Sequence[Mapping[str, np.ndarray]]] = None,
    ):
        """Rebuild the horizon from an explicit contact schedule (length >= T)."""
        schedule = list(schedule)
        if force_refs is None:
            force_refs = self._default_force_refs(schedule)
        self.horizon.generate_full(schedule, force_refs)
        self._on_generated()

    def generate_cycle_horizon(
        self,
        cycle: Sequence[ContactPhase],
        force_refs: Optional[Sequence[Mapping[str, np.ndarray]]] = None,
    ):
        """Rebuild the horizon from a gait cycle repeated until T steps are filled."""
        cycle = list(cycle)
        if force_refs is None:
            force_refs = self._default_force_refs(cycle)
        self.horizon.generate_cycle(cycle, force_refs)
        self._on_generated()

    def generate_walking_cycle(self, gait: Optional[str] = None):
        """Rebuild the horizon from a GaitScheduler cycle of T_contact / T_fly steps."""
        cycle = self.gait_scheduler.generate_cycle(
            gait or self.settings.gait, self.settings.T_contact, self.settings.T_fly
        )
        self.generate_cycle_horizon(cycle)

    def _on_generated(self):
        self.timings.reset(self.horizon.full_schedule)
        self._plan_swing_references()
        self._build_solver()
        logger.debug(
            "Horizon regenerated in %s mode, pool of %d stages",
            self.horizon.mode,
            len(self.horizon.pool),
        )

    def _build_solver(self):
        running = self.horizon.running_stages
        terminal = self.horizon.terminal_stage
        self.ocp = crocoddyl.ShootingProblem(
            self.x0, [stage.model for stage in running], terminal.model
        )
        # The shooting problem creates the data, stages point at it
        for stage, data in zip(running, self.ocp.runningDatas):
            stage.data = data
        terminal.data = self.ocp.terminalData
        if self.settings.num_threads > 1:
            self.ocp.nthreads = self.settings.num_threads
        self.solver = crocoddyl.SolverFDDP(self.ocp)
        self.solver.th_stop = self.settings.tol
        if self.settings.verbose:
            self.solver.setCallbacks([crocoddyl.CallbackVerbose()])

        # Keep the previous solution as warm start when sizes still match
        if len(self._xs_guess) != self.settings.T + 1:
            self._xs_guess = [self.x0.copy() for _ in range(self.settings.T + 1)]
            self._us_guess = [self.problem.initial_control(stage, self.x0) for stage in running]

    # ------------------------------------------------------------------
    # Swing references
    # ------------------------------------------------------------------

    def _steps_to_landing(self, schedule: Sequence[ContactPhase], position: int, name: str):
        for k in range(1, len(schedule)):
            if schedule[(position + k) % len(schedule)][name]:
                return k
        return None

    def _plan_position(self, position: int):
        """Set the pose references of one pool position.

        Stance feet keep their last landed placement. A foot entering the air
        starts a new swing, landing at the next stance step of the schedule.
        """
        schedule = self.horizon.full_schedule
        stage = self.horizon.pool[position]
        step = self._tail_step
        phase = schedule[position]
        for name in self.ee_names:
            swing = self._swings[name]
            if phase[name]:
                if swing is not None:
                    self._foot_poses[name] = swing.end
                    self._swings[name] = None
                self.problem.set_reference_pose(stage, name, self._foot_poses[name])
                continue

            if swing is None:
                steps = self._steps_to_landing(schedule, position, name)
                if steps is None:
                    # Never lands again: hold the takeoff placement
                    self.problem.set_reference_pose(stage, name, self._foot_poses[name])
                    continue
                start = self._foot_poses[name]
                shift = np.array([self.settings.x_translation, self.settings.y_translation, 0.0])
                end = pinocchio.SE3(start.rotation, start.translation + shift)
                swing = SwingPlan(start=start, end=end, lift=step - 1, land=step + steps)
                self._swings[name] = swing

            point = self.swing_trajectory.evaluate(
                swing.start.translation, swing.end.translation, swing.phase(step)
            )
            self.problem.set_reference_pose(stage, name, pinocchio.SE3(swing.start.rotation, point))

    def _plan_swing_references(self):
        self._foot_poses = self.problem.handler.get_foot_poses()
        self._swings = {name: None for name in self.ee_names}
        for position in range(len(self.horizon.pool)):
            self._tail_step = position
            self._plan_position(position)

    # ------------------------------------------------------------------
    # Control cycle
    # ------------------------------------------------------------------

    def _solve(self) -> bool:
        xs_init = [self.x0] + list(self._xs_guess[1:])
        us_init = list(self._us_guess)
        converged = False
        for _ in range(self.settings.ddp_iteration):
            converged = self.solver.solve(
                xs_init, us_init, self.settings.max_iters, False, self.settings.mu_init
            )
            xs_init, us_init = list(self.solver.xs), list(self.solver.us)

        self.xs = [np.array(x) for x in self.solver.xs]
        self.us = [np.array(u) for u in self.solver.us]
        self.K0 = np.array(self.solver.K[0])
        self._xs_guess = [x.copy() for x in self.xs]
        self._us_guess = [u.copy() for u in self.us]

        if not converged:
            self.last_non_convergence = SolverNonConvergence(
                "fddp", self.solver.iter, residual=self.solver.stop
            )
            self.non_convergence_count += 1
            logger.warning("%s", self.last_non_convergence)
        return converged

    def _check_convergence(self, converged: bool):
        if not converged and self.settings.strict_convergence:
            raise self.last_non_convergence

    def iterate(self, q: np.ndarray, v: np.ndarray) -> MPCSolution:
        """Run one control cycle from the measured configuration and velocity.

        The horizon recedes whether or not the solver converged, so the
        foot timings stay in step with the stages.

        Returns:
            MPCSolution of this cycle. `xs`, `us` and `K0` hold the same data.

        Raises:
            SolverNonConvergence: Only with `strict_convergence`, after the
                recede. `xs`, `us` and `K0` still hold the unconverged solve.
        """
        start_time = time.time()
        self.x0 = self.problem.get_problem_state(q, v)
        self.ocp.x0 = self.x0
        converged = self._solve()
        solve_time = time.time() - start_time

        solution = MPCSolution(
            control=self.us[0].copy(),
            predicted_states=np.array(self.xs),
            predicted_controls=np.array(self.us),
            feedback_gain=self.K0.copy(),
            solve_time=solve_time,
            converged=converged,
            cost=self.solver.cost,
            iterations=self.solver.iter,
        )
        self.recede()
        self._check_convergence(converged)
        return solution

    def recede(self):
        """Advance the horizon by one step."""
        stage = self.horizon.recede()
        self.ocp.circularAppend(stage.model)
        stage.data = self.ocp.runningDatas[-1]

        self._xs_guess = self._xs_guess[1:] + [self._xs_guess[-1].copy()]
        self._us_guess = self._us_guess[1:] + [self._us_guess[-1].copy()]

        self.timings.recede(self.horizon.full_schedule)
        self._tail_step += 1
        self._plan_position(len(self.horizon.pool) - 1)
        self.horizon_iteration += 1
        logger.debug("Receded horizon, iteration %d", self.horizon_iteration)

    def recede_with_cycle(self):
        """Advance the horizon by one step of the repeating schedule."""
        self.recede()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def _stage(self, t: int) -> Stage:
        if not 0 <= t < self.settings.T:
            raise InvalidArgument(f"Stage index {t} outside [0, {self.settings.T})")
        return self.horizon[t]

    @property
    def foot_takeoff_times(self) -> Dict[str, List[int]]:
        return {name: list(steps) for name, steps in self.timings.foot_takeoff_times.items()}

    @property
    def foot_land_times(self) -> Dict[str, List[int]]:
        return {name: list(steps) for name, steps in self.timings.foot_land_times.items()}

    def get_foot_takeoff_timings(self, ee_name: str) -> List[int]:
        return self.timings.takeoff_timings(ee_name)

    def get_foot_land_timings(self, ee_name: str) -> List[int]:
        return self.timings.land_timings(ee_name)

    def get_full_horizon(self) -> List[Any]:
        """Action models of the whole stage pool, window first."""
        return self.horizon.full_horizon

    def get_full_horizon_data(self) -> List[Any]:
        return self.horizon.full_horizon_data

    def get_contact_support(self, t: int) -> int:
        return self.problem.get_contact_support(self._stage(t))

    def set_reference_pose(self, t: int, ee_name: str, pose: pinocchio.SE3):
        self.problem.set_reference_pose(self._stage(t), ee_name, pose)

    def set_reference_poses(self, t: int, poses: Mapping[str, pinocchio.SE3]):
        self.problem.set_reference_poses(self._stage(t), poses)

    def get_reference_pose(self, t: int, ee_name: str) -> pinocchio.SE3:
        return self.problem.get_reference_pose(self._stage(t), ee_name)

    def set_reference_force(self, t: int, ee_name: str, force: np.ndarray):
        self.problem.set_reference_force(self._stage(t), ee_name, force)

    def set_reference_forces(self, t: int, forces: Mapping[str, np.ndarray]):
        self.problem.set_reference_forces(self._stage(t), forces)

    def get_reference_force(self, t: int, ee_name: str) -> np.ndarray:
        return self.problem.get_reference_force(self._stage(t), ee_name)

    def set_terminal_reference_pose(self, ee_name: str, pose: pinocchio.SE3):
        self.problem.set_reference_pose(self.horizon.terminal_stage, ee_name, pose)

    def get_settings(self) -> Dict[str, Any]:
        return self.settings.to_dict()
