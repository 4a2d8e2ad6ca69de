# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Takeoff and landing step tables of every end-effector.

A takeoff is a step index i whose foot is in the air while it was in contact
at i-1; a landing is the reverse. Indices are relative to the current horizon
origin: an entry equal to 0 is an event happening now.
"""

from typing import Dict, List, Sequence, Tuple

from ..errors import InvalidArgument
from .contact_sequence import ContactPhase

TimingTable = Dict[str, List[int]]


def compute_foot_timings(
    contact_schedule: Sequence[ContactPhase], start_index: int = 0
) -> Tuple[TimingTable, TimingTable]:
    """Scan a schedule for contact transitions.

    Every transition found at or after `start_index` is listed in ascending
    step order. A foot without any further transition gets an empty list,
    meaning its current contact state continues indefinitely.

    Args:
        contact_schedule: Step-ordered contact phases.
        start_index: First step to consider.

    Returns:
        (takeoff_table, landing_table) keyed by end-effector name.
    """
    if start_index < 0 or start_index > len(contact_schedule):
        raise InvalidArgument(
            f"start_index {start_index} outside schedule of length {len(contact_schedule)}"
        )
    takeoffs: TimingTable = {}
    landings: TimingTable = {}
    if len(contact_schedule) == 0:
        return takeoffs, landings

    for name in contact_schedule[0].ee_names:
        takeoffs[name] = []
        landings[name] = []
        for i in range(max(start_index, 1), len(contact_schedule)):
            before = contact_schedule[i - 1][name]
            now = contact_schedule[i][name]
            if before and not now:
                takeoffs[name].append(i)
            elif not before and now:
                landings[name].append(i)
    return takeoffs, landings


class FootTimingTracker:
    """Keeps the timing tables in step with a rotating contact schedule.

    `reset` recomputes everything from a freshly generated schedule. `recede`
    is called once the schedule has rotated left by one step: existing events
    move one step closer, events that moved past the origin are dropped, and
    the transition introduced by the new tail step (if any) is appended.

    The tables span the whole schedule handed to them and are not clipped to
    a horizon window. The MPC passes its full stage pool, so a landing
    planned beyond step T is already listed while its swing is in the window.
    """

    def __init__(self, ee_names: Sequence[str]):
        self.ee_names = list(ee_names)
        self.foot_takeoff_times: TimingTable = {name: [] for name in self.ee_names}
        self.foot_land_times: TimingTable = {name: [] for name in self.ee_names}

    def reset(self, contact_schedule: Sequence[ContactPhase]):
        """Recompute both tables from index 0."""
        self.foot_takeoff_times, self.foot_land_times = compute_foot_timings(contact_schedule)

    def recede(self, contact_schedule: Sequence[ContactPhase]):
        """Shift the tables after the schedule advanced by one step."""
        for table in (self.foot_takeoff_times, self.foot_land_times):
            for name, steps in table.items():
                table[name] = [i - 1 for i in steps if i - 1 >= 0]

        if len(contact_schedule) < 2:
            return
        tail = len(contact_schedule) - 1
        before, now = contact_schedule[tail - 1], contact_schedule[tail]
        for name in self.ee_names:
            if before[name] and not now[name]:
                self.foot_takeoff_times[name].append(tail)
            elif not before[name] and now[name]:
                self.foot_land_times[name].append(tail)

    def _check(self, ee_name: str):
        if ee_name not in self.foot_takeoff_times:
            raise InvalidArgument(f"Unknown end-effector '{ee_name}'. Known: {self.ee_names}")

    def takeoff_timings(self, ee_name: str) -> List[int]:
        """Return the takeoff steps of one end-effector."""
        self._check(ee_name)
        return list(self.foot_takeoff_times[ee_name])

    def land_timings(self, ee_name: str) -> List[int]:
        """Return the landing steps of one end-effector."""
        self._check(ee_name)
        return list(self.foot_land_times[ee_name])
