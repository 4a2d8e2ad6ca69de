# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Gait scheduler for generating step-indexed contact schedules.

This module generates ContactSequence objects (one phase per MPC step) for
standard gaits. It is pure logic with NO Crocoddyl dependency.

Swing groups are given as positions in the robot's end-effector list, so the
same pattern applies to any robot with the expected number of feet. Feet of a
quadruped are expected in the order [front-left, front-right, hind-left,
hind-right]; feet of a biped in the order [left, right].

Supported gaits:
- walk: one foot at a time (biped: L→R, quadruped: RH→RF→LH→LF)
- trot: diagonal pairs alternate (quadruped)
- pace: lateral pairs alternate (quadruped)
- bound: front/hind pairs alternate (quadruped)
"""

from typing import Dict, List, Sequence

from ..errors import InvalidArgument
from .contact_sequence import ContactPhase, ContactSequence


class GaitScheduler:
    """Generate contact schedules for standard gaits.

    Each gait cycle consists of, per swing group, `T_contact` steps with every
    foot on the ground followed by `T_fly` steps with the group in the air.

    Attributes:
        ee_names: End-effector names, in the order the patterns refer to.
        GAIT_PATTERNS: Dictionary of gait definitions keyed by foot count.
    """

    GAIT_PATTERNS: Dict[str, Dict] = {
        "walk": {
            "swing_groups": {2: [[0], [1]], 4: [[3], [1], [2], [0]]},
            "description": "One foot at a time",
        },
        "trot": {
            "swing_groups": {4: [[1, 2], [0, 3]]},
            "description": "Diagonal pairs alternate",
        },
        "pace": {
            "swing_groups": {4: [[1, 3], [0, 2]]},
            "description": "Lateral pairs alternate",
        },
        "bound": {
            "swing_groups": {4: [[0, 1], [2, 3]]},
            "description": "Front/hind pairs alternate",
        },
    }

    def __init__(self, ee_names: Sequence[str]):
        """Initialize the scheduler for a robot.

        Args:
            ee_names: Contact end-effector names of the robot.
        """
        if len(ee_names) == 0:
            raise InvalidArgument("GaitScheduler needs at least one end-effector")
        self.ee_names = list(ee_names)

    @classmethod
    def get_available_gaits(cls) -> List[str]:
        """Return list of available gait types."""
        return list(cls.GAIT_PATTERNS.keys())

    def get_swing_groups(self, gait_type: str) -> List[List[str]]:
        """Return the end-effector names swinging together, per group.

        Raises:
            InvalidArgument: If the gait is unknown or not defined for this
                number of feet.
        """
        if gait_type not in self.GAIT_PATTERNS:
            raise InvalidArgument(
                f"Unknown gait type: {gait_type}. Available: {self.get_available_gaits()}"
            )
        groups = self.GAIT_PATTERNS[gait_type]["swing_groups"].get(len(self.ee_names))
        if groups is None:
            raise InvalidArgument(
                f"Gait '{gait_type}' is not defined for {len(self.ee_names)} feet"
            )
        return [[self.ee_names[i] for i in group] for group in groups]

    def _support(self) -> ContactPhase:
        return ContactPhase.from_support(self.ee_names, self.ee_names)

    def _swing(self, swing_feet: Sequence[str]) -> ContactPhase:
        support = [name for name in self.ee_names if name not in swing_feet]
        return ContactPhase.from_support(self.ee_names, support)

    def generate_standing(self, num_steps: int) -> ContactSequence:
        """Generate a schedule with every foot on the ground."""
        return ContactSequence(phases=[self._support() for _ in range(num_steps)])

    def generate_cycle(self, gait_type: str, T_contact: int, T_fly: int) -> ContactSequence:
        """Generate one gait cycle.

        Structure (e.g. biped walk):
            [T_contact x support] → [T_fly x left swing] →
            [T_contact x support] → [T_fly x right swing]

        Args:
            gait_type: Type of gait.
            T_contact: Steps of full support before each swing.
            T_fly: Steps each swing group spends in the air.

        Returns:
            ContactSequence of length n_groups * (T_contact + T_fly).
        """
        if T_contact < 0 or T_fly < 0:
            raise InvalidArgument("Phase durations must be non-negative")
        phases: List[ContactPhase] = []
        for swing_feet in self.get_swing_groups(gait_type):
            phases.extend(self._support() for _ in range(T_contact))
            phases.extend(self._swing(swing_feet) for _ in range(T_fly))
        if not phases:
            raise InvalidArgument("Gait cycle has zero steps")
        return ContactSequence(phases=phases)

    def generate(
        self,
        gait_type: str,
        T_contact: int,
        T_fly: int,
        num_cycles: int = 1,
        initial_support: int = 0,
        final_support: int = 0,
    ) -> ContactSequence:
        """Generate a complete schedule for a walking sequence.

        Args:
            gait_type: Type of gait.
            T_contact: Steps of full support before each swing.
            T_fly: Steps each swing group spends in the air.
            num_cycles: Number of complete gait cycles.
            initial_support: Extra standing steps at the start.
            final_support: Extra standing steps at the end.

        Returns:
            ContactSequence with all steps of the sequence.
        """
        sequence = self.generate_standing(initial_support)
        sequence.extend(self.generate_cycle(gait_type, T_contact, T_fly).repeat(num_cycles))
        sequence.extend(self.generate_standing(final_support))
        return sequence

    def generate_single_step(
        self,
        swing_feet: Sequence[str],
        T_fly: int,
        support_before: int = 0,
        support_after: int = 0,
    ) -> ContactSequence:
        """Generate a schedule for a single step of the given feet."""
        sequence = self.generate_standing(support_before)
        for _ in range(T_fly):
            sequence.append_phase(self._swing(swing_feet))
        sequence.extend(self.generate_standing(support_after))
        return sequence

    def generate_jump(
        self,
        T_flight: int,
        support_before: int = 0,
        support_after: int = 0,
    ) -> ContactSequence:
        """Generate a jumping schedule (takeoff → flight → landing)."""
        return self.generate_single_step(
            self.ee_names, T_flight, support_before=support_before, support_after=support_after
        )
