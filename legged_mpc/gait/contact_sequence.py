# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Contact schedule data structures for legged locomotion.

This module defines pure data structures describing which end-effectors are
in contact at each discrete step of the horizon. It has no dependency on
Crocoddyl or Pinocchio, making it easy to test and use standalone.

The key data structures are:
- ContactPhase: contact flags of every end-effector for a single step
- ContactSequence: the ordered per-step schedule (step order is significant)
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

from ..errors import InvalidArgument


@dataclass
class ContactPhase:
    """Contact flags of every end-effector for one time step.

    Attributes:
        contacts: Ordered mapping from end-effector name to "in contact" flag,
            e.g. {"left_sole_link": True, "right_sole_link": False}.
    """

    contacts: Dict[str, bool]

    def __post_init__(self):
        """Validate the contact flags."""
        if len(self.contacts) == 0:
            raise InvalidArgument("A contact phase needs at least one end-effector")
        for name, flag in self.contacts.items():
            if not isinstance(flag, bool):
                raise InvalidArgument(
                    f"Contact flag of '{name}' must be a bool, got {type(flag).__name__}"
                )
        self.contacts = dict(self.contacts)

    @classmethod
    def from_support(cls, ee_names: Sequence[str], support_feet: Iterable[str]) -> "ContactPhase":
        """Build a phase from the list of feet on the ground."""
        support = set(support_feet)
        unknown = support - set(ee_names)
        if unknown:
            raise InvalidArgument(f"Unknown end-effectors: {sorted(unknown)}")
        return cls({name: name in support for name in ee_names})

    @property
    def ee_names(self) -> List[str]:
        return list(self.contacts.keys())

    @property
    def support_feet(self) -> List[str]:
        """Return end-effectors in contact."""
        return [name for name, flag in self.contacts.items() if flag]

    @property
    def swing_feet(self) -> List[str]:
        """Return end-effectors in the air."""
        return [name for name, flag in self.contacts.items() if not flag]

    @property
    def num_support_feet(self) -> int:
        return len(self.support_feet)

    @property
    def is_flight(self) -> bool:
        """Check if no end-effector is in contact."""
        return self.num_support_feet == 0

    def is_foot_in_contact(self, foot_name: str) -> bool:
        """Check if a specific end-effector is in contact.

        Raises:
            InvalidArgument: If the end-effector is not part of this phase.
        """
        try:
            return self.contacts[foot_name]
        except KeyError:
            raise InvalidArgument(
                f"Unknown end-effector '{foot_name}'. Known: {self.ee_names}"
            ) from None

    def __getitem__(self, foot_name: str) -> bool:
        return self.is_foot_in_contact(foot_name)

    def copy(self) -> "ContactPhase":
        """Create a copy of this contact phase."""
        return ContactPhase(contacts=dict(self.contacts))


@dataclass
class ContactSequence:
    """Step-indexed contact schedule.

    Entry i holds the contact flags of step i. All phases must describe the
    same set of end-effectors.

    Attributes:
        phases: List of ContactPhase objects in step order.
    """

    phases: List[ContactPhase] = field(default_factory=list)

    def __post_init__(self):
        """Validate that every phase covers the same end-effectors."""
        self.phases = [
            p if isinstance(p, ContactPhase) else ContactPhase(dict(p)) for p in self.phases
        ]
        if self.phases:
            names = set(self.phases[0].contacts)
            for i, phase in enumerate(self.phases[1:], start=1):
                if set(phase.contacts) != names:
                    raise InvalidArgument(
                        f"Phase {i} covers {sorted(phase.contacts)}, expected {sorted(names)}"
                    )

    @classmethod
    def from_states(cls, states: Iterable[Mapping[str, bool]]) -> "ContactSequence":
        """Build a schedule from a list of {name: in_contact} mappings."""
        return cls(phases=[ContactPhase(dict(s)) for s in states])

    @property
    def ee_names(self) -> List[str]:
        """Return the end-effector names of the schedule."""
        if not self.phases:
            return []
        return self.phases[0].ee_names

    def get_takeoff_steps(self, foot_name: str) -> List[int]:
        """Return step indices where the foot leaves the ground (contact → swing)."""
        return [
            i
            for i in range(1, len(self.phases))
            if self.phases[i - 1][foot_name] and not self.phases[i][foot_name]
        ]

    def get_landing_steps(self, foot_name: str) -> List[int]:
        """Return step indices where the foot touches down (swing → contact)."""
        return [
            i
            for i in range(1, len(self.phases))
            if not self.phases[i - 1][foot_name] and self.phases[i][foot_name]
        ]

    def append_phase(self, phase: ContactPhase):
        """Add a step at the end of the schedule."""
        if self.phases and set(phase.contacts) != set(self.phases[0].contacts):
            raise InvalidArgument(
                f"Phase covers {sorted(phase.contacts)}, expected {sorted(self.ee_names)}"
            )
        self.phases.append(phase)

    def extend(self, other: "ContactSequence"):
        """Extend this schedule with the steps of another one."""
        for phase in other.phases:
            self.append_phase(phase)

    def repeat(self, n: int) -> "ContactSequence":
        """Create a new schedule by repeating this one n times."""
        new_phases = []
        for _ in range(n):
            new_phases.extend([p.copy() for p in self.phases])
        return ContactSequence(phases=new_phases)

    def tile(self, length: int) -> "ContactSequence":
        """Create a new schedule of `length` steps by cycling through this one."""
        if not self.phases:
            raise InvalidArgument("Cannot tile an empty contact schedule")
        period = len(self.phases)
        return ContactSequence(phases=[self.phases[i % period].copy() for i in range(length)])

    def __iter__(self):
        """Iterate over steps."""
        return iter(self.phases)

    def __len__(self):
        """Return number of steps."""
        return len(self.phases)

    def __getitem__(self, index: int) -> ContactPhase:
        """Get the phase of a step."""
        return self.phases[index]
