# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Swing-foot trajectory generator.

Given the foot position at takeoff, its landing position and an apex height,
produces a parabolic arc for the swing phase. The arc is a quadratic Bezier
curve whose middle control point sits at twice the apex height above the
midpoint, so the curve reaches exactly the apex half way through the swing:

              P1
             /  \\
            /    \\
         ..--------..
        /            \\
    P0 /              \\ P2
    ────                ────
    ground            ground
"""

from typing import Optional

import numpy as np

from ..utils.math_utils import bezier_curve, bezier_point, bezier_tangent


class SwingFootTrajectory:
    """Generate swing-foot positions on a parabolic arc.

    Attributes:
        apex_height: Default height of the arc above the takeoff/landing
            midpoint, in meters.
    """

    def __init__(self, apex_height: float = 0.1):
        self.apex_height = apex_height

    def get_control_points(
        self,
        start_pos: np.ndarray,
        end_pos: np.ndarray,
        apex_height: Optional[float] = None,
    ) -> np.ndarray:
        """Return the three control points of the arc, shape (3, 3)."""
        start_pos = np.asarray(start_pos, dtype=float)
        end_pos = np.asarray(end_pos, dtype=float)
        if apex_height is None:
            apex_height = self.apex_height

        middle = 0.5 * (start_pos + end_pos) + np.array([0.0, 0.0, 2.0 * apex_height])
        return np.array([start_pos, middle, end_pos])

    def evaluate(
        self,
        start_pos: np.ndarray,
        end_pos: np.ndarray,
        phase: float,
        apex_height: Optional[float] = None,
    ) -> np.ndarray:
        """Return the foot position at a swing phase in [0, 1]."""
        return bezier_point(self.get_control_points(start_pos, end_pos, apex_height), phase)

    def generate(
        self,
        start_pos: np.ndarray,
        end_pos: np.ndarray,
        num_samples: int,
        apex_height: Optional[float] = None,
    ) -> np.ndarray:
        """Sample the whole swing, shape (num_samples, 3)."""
        return bezier_curve(self.get_control_points(start_pos, end_pos, apex_height), num_samples)

    def get_velocity(
        self,
        start_pos: np.ndarray,
        end_pos: np.ndarray,
        phase: float,
        swing_duration: float,
        apex_height: Optional[float] = None,
    ) -> np.ndarray:
        """Foot velocity at a swing phase, for a swing lasting `swing_duration` seconds."""
        control_points = self.get_control_points(start_pos, end_pos, apex_height)
        return bezier_tangent(control_points, phase) / swing_duration
