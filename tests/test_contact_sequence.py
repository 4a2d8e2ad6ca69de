# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

import pytest

from legged_mpc.errors import InvalidArgument
from legged_mpc.gait import ContactPhase, ContactSequence


class TestContactPhase:
    def test_support_and_swing_feet(self):
        phase = ContactPhase({"LF": True, "RF": False, "LH": False, "RH": True})
        assert phase.support_feet == ["LF", "RH"]
        assert phase.swing_feet == ["RF", "LH"]
        assert phase.num_support_feet == 2
        assert not phase.is_flight

    def test_flight_phase(self):
        phase = ContactPhase({"left": False, "right": False})
        assert phase.is_flight
        assert phase.num_support_feet == 0

    def test_from_support(self):
        phase = ContactPhase.from_support(["a", "b", "c"], ["b"])
        assert phase.contacts == {"a": False, "b": True, "c": False}

    def test_from_support_unknown_foot(self):
        with pytest.raises(InvalidArgument):
            ContactPhase.from_support(["a", "b"], ["z"])

    def test_unknown_foot_lookup(self):
        phase = ContactPhase({"left": True})
        with pytest.raises(InvalidArgument):
            phase["right"]

    def test_rejects_empty_and_non_bool(self):
        with pytest.raises(InvalidArgument):
            ContactPhase({})
        with pytest.raises(InvalidArgument):
            ContactPhase({"left": 1})

    def test_copy_is_independent(self):
        phase = ContactPhase({"left": True, "right": True})
        clone = phase.copy()
        clone.contacts["left"] = False
        assert phase["left"]


class TestContactSequence:
    def test_takeoff_and_landing_steps(self, walk_schedule):
        assert walk_schedule.get_takeoff_steps("right") == [110]
        assert walk_schedule.get_landing_steps("right") == [160]
        assert walk_schedule.get_takeoff_steps("left") == [170]
        assert walk_schedule.get_landing_steps("left") == [220]

    def test_mismatched_feet_rejected(self):
        with pytest.raises(InvalidArgument):
            ContactSequence.from_states([{"left": True}, {"right": True}])

    def test_append_mismatched_phase(self):
        sequence = ContactSequence.from_states([{"left": True, "right": True}])
        with pytest.raises(InvalidArgument):
            sequence.append_phase(ContactPhase({"left": True}))

    def test_repeat_and_tile(self):
        cycle = ContactSequence.from_states(
            [{"left": True, "right": False}, {"left": False, "right": True}]
        )
        assert len(cycle.repeat(3)) == 6
        tiled = cycle.tile(5)
        assert len(tiled) == 5
        assert [p["left"] for p in tiled] == [True, False, True, False, True]

    def test_tile_empty(self):
        with pytest.raises(InvalidArgument):
            ContactSequence().tile(3)

    def test_ee_names(self, walk_schedule):
        assert walk_schedule.ee_names == ["left", "right"]
        assert ContactSequence().ee_names == []
