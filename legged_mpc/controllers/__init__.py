# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Receding-horizon MPC controller module."""

from .horizon import HorizonBuffer
from .mpc import MPC, MPCSettings, MPCSolution, SwingPlan

__all__ = ["HorizonBuffer", "MPC", "MPCSettings", "MPCSolution", "SwingPlan"]
