# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Receding-horizon control for legged robots.

Builds Crocoddyl shooting problems over a rotating horizon of contact-phase
stages, solves them with FDDP each control cycle, and turns the result into
joint torques with an inverse-dynamics QP (OSQP).
"""

from .controllers import MPC, HorizonBuffer, MPCSettings, MPCSolution
from .errors import ConfigurationError, InvalidArgument, SolverNonConvergence
from .gait import ContactPhase, ContactSequence, FootTimingTracker, GaitScheduler
from .lowlevel import IDSettings, IDSolver, IKIDSettings, IKIDSolver
from .problems import (
    CentroidalProblem,
    FullDynamicsProblem,
    KinodynamicsProblem,
    make_problem,
)
from .robot_handler import RobotHandler

__version__ = "0.1.0"

__all__ = [
    "CentroidalProblem",
    "ConfigurationError",
    "ContactPhase",
    "ContactSequence",
    "FootTimingTracker",
    "FullDynamicsProblem",
    "GaitScheduler",
    "HorizonBuffer",
    "IDSettings",
    "IDSolver",
    "IKIDSettings",
    "IKIDSolver",
    "InvalidArgument",
    "KinodynamicsProblem",
    "MPC",
    "MPCSettings",
    "MPCSolution",
    "RobotHandler",
    "SolverNonConvergence",
    "make_problem",
]
