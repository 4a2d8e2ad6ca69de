# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Shared fixtures: contact schedules and Solo12 / Talos legs robot models."""

import numpy as np
import pytest

from legged_mpc.gait import ContactPhase, ContactSequence

SOLO_FEET = ["FL_FOOT", "FR_FOOT", "HL_FOOT", "HR_FOOT"]
TALOS_FEET = ["left_sole_link", "right_sole_link"]


def biped_walk_schedule(left: str = "left", right: str = "right") -> ContactSequence:
    """Double support 0-109, right swing 110-159, double support 160-169,
    left swing 170-219, double support 220-229."""
    segments = [
        (110, True, True),
        (50, True, False),
        (10, True, True),
        (50, False, True),
        (10, True, True),
    ]
    phases = []
    for length, left_contact, right_contact in segments:
        phases.extend(
            ContactPhase({left: left_contact, right: right_contact}) for _ in range(length)
        )
    return ContactSequence(phases=phases)


@pytest.fixture
def walk_schedule():
    return biped_walk_schedule()


@pytest.fixture
def solo12():
    example_robot_data = pytest.importorskip("example_robot_data")
    return example_robot_data.load("solo12")


@pytest.fixture
def solo_handler(solo12):
    from legged_mpc import RobotHandler

    return RobotHandler(solo12.model, SOLO_FEET, q0=solo12.q0)


@pytest.fixture
def talos_handler():
    example_robot_data = pytest.importorskip("example_robot_data")
    from legged_mpc import RobotHandler

    robot = example_robot_data.load("talos_legs")
    return RobotHandler(robot.model, TALOS_FEET, q0=robot.q0)


@pytest.fixture
def rng():
    return np.random.default_rng(0)
