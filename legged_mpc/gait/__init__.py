# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Gait management module for legged locomotion.

This module provides:
- Step-indexed contact schedule data structures
- Gait scheduler for standing, walking and jumping schedules
- Takeoff/landing timing tables kept relative to the horizon origin
"""

from .contact_sequence import ContactPhase, ContactSequence
from .foot_timings import FootTimingTracker, compute_foot_timings
from .gait_scheduler import GaitScheduler

__all__ = [
    "ContactPhase",
    "ContactSequence",
    "FootTimingTracker",
    "GaitScheduler",
    "compute_foot_timings",
]
