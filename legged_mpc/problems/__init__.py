# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Optimal-control problem variants.

Exactly three variants share the BaseProblem interface:
- full_dynamics: whole-body contact forward dynamics, joint torques as controls
- centroidal: momentum dynamics, contact forces as controls
- kinodynamics: whole-body state, contact forces + joint accelerations as controls
"""

from typing import Dict, Optional, Type

from ..errors import ConfigurationError
from ..robot_handler import RobotHandler
from .base_problem import BaseProblem, ProblemSettings, Stage
from .centroidal import CentroidalActionModel, CentroidalProblem, CentroidalSettings
from .full_dynamics import FullDynamicsProblem, FullDynamicsSettings
from .kinodynamics import KinodynamicsActionModel, KinodynamicsProblem, KinodynamicsSettings

PROBLEM_REGISTRY: Dict[str, Type[BaseProblem]] = {
    FullDynamicsProblem.name: FullDynamicsProblem,
    CentroidalProblem.name: CentroidalProblem,
    KinodynamicsProblem.name: KinodynamicsProblem,
}


def make_problem(
    kind: str, handler: RobotHandler, settings: Optional[ProblemSettings] = None
) -> BaseProblem:
    """Build a problem variant by name.

    Raises:
        ConfigurationError: If the variant is unknown.
    """
    try:
        problem_cls = PROBLEM_REGISTRY[kind]
    except KeyError:
        raise ConfigurationError(
            f"Unknown problem '{kind}'. Available: {sorted(PROBLEM_REGISTRY)}"
        ) from None
    return problem_cls(handler, settings)


__all__ = [
    "BaseProblem",
    "CentroidalActionModel",
    "CentroidalProblem",
    "CentroidalSettings",
    "FullDynamicsProblem",
    "FullDynamicsSettings",
    "KinodynamicsActionModel",
    "KinodynamicsProblem",
    "KinodynamicsSettings",
    "PROBLEM_REGISTRY",
    "ProblemSettings",
    "Stage",
    "make_problem",
]
