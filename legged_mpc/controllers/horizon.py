# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Fixed-length window of horizon stages over a rotating stage pool.

The buffer keeps a pool of stages, one per step of a reference schedule:
- full mode: one stage per entry of an explicit schedule (length N >= T)
- cycle mode: the cycle (period P) tiled up to P * ceil(T / P) stages

The first T pool stages are the running stages of the horizon, followed by
a terminal stage built once. Receding rotates the pool left by one: the
leading stage is dropped from the window and goes to the back of the pool,
and the stage for schedule position (offset + T) mod period enters the window.
A dropped stage only comes back after it has left the window, so the window
never holds the same stage object twice.
"""

import logging
import math
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from ..errors import ConfigurationError, InvalidArgument
from ..gait.contact_sequence import ContactPhase
from ..problems.base_problem import BaseProblem, Stage

logger = logging.getLogger(__name__)

ForceRefs = Sequence[Mapping[str, np.ndarray]]


class HorizonBuffer:
    """Indexable horizon of T running stages plus one terminal stage.

    Attributes:
        problem: Problem variant building the stages.
        horizon_size: Number of running stages T.
        terminal_stage: Terminal stage, index T.
        mode: "full", "cycle", or None before the first generation.
        offset: Number of recede steps since the last generation.
    """

    FULL = "full"
    CYCLE = "cycle"

    def __init__(self, problem: BaseProblem, horizon_size: int):
        if horizon_size <= 0:
            raise ConfigurationError(f"Horizon size must be positive, got {horizon_size}")
        self.problem = problem
        self.horizon_size = horizon_size
        self.terminal_stage = problem.create_terminal_stage()
        self.mode: Optional[str] = None
        self.offset = 0
        self._pool: List[Stage] = []
        self._period = 0

    def _build_pool(
        self, schedule: Sequence[ContactPhase], force_refs: Optional[ForceRefs], length: int
    ) -> List[Stage]:
        if force_refs is not None and len(force_refs) != len(schedule):
            raise InvalidArgument(
                f"Got {len(force_refs)} force references for {len(schedule)} schedule steps"
            )
        pool = []
        for i in range(length):
            j = i % len(schedule)
            refs = None if force_refs is None else force_refs[j]
            pool.append(self.problem.create_stage(schedule[j], force_refs=refs))
        return pool

    def generate_full(
        self, schedule: Sequence[ContactPhase], force_refs: Optional[ForceRefs] = None
    ):
        """Build one stage per schedule entry.

        Raises:
            InvalidArgument: If the schedule is shorter than the horizon.
        """
        if len(schedule) < self.horizon_size:
            raise InvalidArgument(
                f"Contact schedule has {len(schedule)} steps, horizon needs {self.horizon_size}"
            )
        self._pool = self._build_pool(schedule, force_refs, len(schedule))
        self._period = len(schedule)
        self.mode = self.FULL
        self.offset = 0
        logger.debug("Generated full horizon: %d stages, window %d", len(self._pool), self.horizon_size)

    def generate_cycle(
        self, cycle: Sequence[ContactPhase], force_refs: Optional[ForceRefs] = None
    ):
        """Tile a gait cycle until the window is filled.

        Raises:
            InvalidArgument: If the cycle is empty.
        """
        if len(cycle) == 0:
            raise InvalidArgument("Gait cycle must contain at least one step")
        length = len(cycle) * math.ceil(self.horizon_size / len(cycle))
        self._pool = self._build_pool(cycle, force_refs, length)
        self._period = len(cycle)
        self.mode = self.CYCLE
        self.offset = 0
        logger.debug("Generated cycle horizon: period %d, pool %d", len(cycle), length)

    def _check_generated(self):
        if self.mode is None:
            raise InvalidArgument("Horizon has not been generated yet")

    def recede(self) -> Stage:
        """Advance the window by one step.

        Returns:
            The stage that entered the window at index T-1.
        """
        self._check_generated()
        self._pool.append(self._pool.pop(0))
        self.offset += 1
        return self._pool[self.horizon_size - 1]

    @property
    def period(self) -> int:
        """Length of the reference schedule the pool repeats."""
        return self._period

    @property
    def running_stages(self) -> List[Stage]:
        return self._pool[: self.horizon_size]

    @property
    def stages(self) -> List[Stage]:
        """Running stages followed by the terminal stage."""
        return self.running_stages + [self.terminal_stage]

    @property
    def pool(self) -> List[Stage]:
        """Every stage of the rotating pool, window first."""
        return list(self._pool)

    @property
    def contact_schedule(self) -> List[ContactPhase]:
        """Contact phases of the running stages."""
        return [stage.contact_phase for stage in self.running_stages]

    @property
    def full_schedule(self) -> List[ContactPhase]:
        """Contact phases of the whole pool, window first."""
        return [stage.contact_phase for stage in self._pool]

    @property
    def full_horizon(self) -> List[Any]:
        return [stage.model for stage in self._pool]

    @property
    def full_horizon_data(self) -> List[Any]:
        return [stage.data for stage in self._pool]

    def __len__(self) -> int:
        return self.horizon_size + 1

    def __getitem__(self, index: int) -> Stage:
        self._check_generated()
        if not 0 <= index <= self.horizon_size:
            raise InvalidArgument(
                f"Stage index {index} outside horizon [0, {self.horizon_size}]"
            )
        if index == self.horizon_size:
            return self.terminal_stage
        return self._pool[index]

    def __iter__(self):
        return iter(self.stages)
