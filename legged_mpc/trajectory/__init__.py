# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Trajectory generators."""

from .swing_trajectory import SwingFootTrajectory

__all__ = ["SwingFootTrajectory"]
