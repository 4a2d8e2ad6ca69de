# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Pieces shared by the inverse-dynamics QP solvers.

Both solvers optimize over x = [accelerations (nv), contact force
increments (nk * fs), actuated torques (nv - 6)] subject to the floating-base
dynamics, rigid contact accelerations and one friction/wrench cone block per
contact.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..errors import ConfigurationError, InvalidArgument, SolverNonConvergence
from .contact_cone import CONE_ROWS, contact_cone_matrix
from .dense_qp import DenseQP, QPSettings


@dataclass
class ContactSolverSettings:
    """Settings shared by IDSolver and IKIDSolver.

    Attributes:
        contact_ids: Pinocchio frame ids of the contacts, in force order.
        mu: Friction coefficient.
        Lfoot: Half length of the foot sole (wrench contacts).
        Wfoot: Half width of the foot sole (wrench contacts).
        force_size: 3 for point contacts, 6 for wrench contacts.
        verbose: Print QP solver output.
        qp: OSQP settings.
    """

    contact_ids: List[int] = field(default_factory=list)
    mu: float = 0.8
    Lfoot: float = 0.1
    Wfoot: float = 0.075
    force_size: int = 3
    verbose: bool = False
    qp: QPSettings = field(default_factory=QPSettings)

    def validate(self, model):
        if not self.contact_ids:
            raise ConfigurationError("At least one contact frame is required")
        for frame_id in self.contact_ids:
            if not 0 <= frame_id < model.nframes:
                raise ConfigurationError(f"Contact frame id {frame_id} not in the model")
        if self.force_size not in (3, 6):
            raise ConfigurationError(f"force_size must be 3 or 6, got {self.force_size}")
        if self.mu <= 0:
            raise ConfigurationError(f"mu must be positive, got {self.mu}")
        if self.force_size == 6 and (self.Lfoot <= 0 or self.Wfoot <= 0):
            raise ConfigurationError("Lfoot and Wfoot must be positive for wrench contacts")
        self.qp.validate()


class BaseContactSolver(ABC):
    """Owns the QP buffers and the bookkeeping common to both solvers.

    Attributes:
        solved_acc: Accelerations of the last solve, shape (nv,).
        solved_forces: Contact forces of the last solve, shape (nk * fs,).
        solved_torque: Actuated torques of the last solve, shape (nv - 6,).
    """

    name = "qp"

    def __init__(self, settings: ContactSolverSettings, model):
        self.initialize(settings, model)

    def initialize(self, settings: ContactSolverSettings, model):
        settings.validate(model)
        self.settings = settings
        self.model = model
        self.nv = model.nv
        self.nk = len(settings.contact_ids)
        self.fs = settings.force_size
        self.force_dim = self.nk * self.fs

        n = 2 * self.nv - 6 + self.force_dim
        self.qp = DenseQP(
            n,
            self.nv + self.force_dim,
            CONE_ROWS * self.nk,
            box_indices=self._box_indices(),
            settings=replace(settings.qp, verbose=settings.qp.verbose or settings.verbose),
            name=self.name,
        )
        self.S = np.zeros((self.nv, self.nv - 6))
        self.S[6:] = np.eye(self.nv - 6)
        self.cone = contact_cone_matrix(self.fs, settings.mu, settings.Lfoot, settings.Wfoot)
        self.qp.H[self.nv : self.nv + self.force_dim, self.nv : self.nv + self.force_dim] = (
            self._force_weight() * np.eye(self.force_dim)
        )

        self.solved_acc = np.zeros(self.nv)
        self.solved_forces = np.zeros(self.force_dim)
        self.solved_torque = np.zeros(self.nv - 6)

    def _box_indices(self) -> Sequence[int]:
        return ()

    @abstractmethod
    def _force_weight(self) -> float:
        """Weight of the force increments in the objective."""

    @property
    def torque_slice(self) -> slice:
        return slice(self.nv + self.force_dim, None)

    @property
    def force_slice(self) -> slice:
        return slice(self.nv, self.nv + self.force_dim)

    @property
    def converged(self) -> bool:
        return self.qp.converged

    @property
    def last_non_convergence(self) -> Optional[SolverNonConvergence]:
        return self.qp.last_non_convergence

    def _check_inputs(self, contact_state: Sequence[bool], v: np.ndarray, forces: np.ndarray):
        if len(contact_state) != self.nk:
            raise InvalidArgument(
                f"contact_state has {len(contact_state)} entries, expected {self.nk}"
            )
        if np.shape(v) != (self.nv,):
            raise InvalidArgument(f"v has shape {np.shape(v)}, expected ({self.nv},)")
        if np.shape(forces) != (self.force_dim,):
            raise InvalidArgument(
                f"forces has shape {np.shape(forces)}, expected ({self.force_dim},)"
            )

    def _contact_rows(self, i: int) -> slice:
        return slice(i * self.fs, (i + 1) * self.fs)

    def _set_cone(self, i: int, force: np.ndarray):
        """Constrain contact i to C (f + df) >= 0."""
        rows = slice(i * CONE_ROWS, (i + 1) * CONE_ROWS)
        cols = slice(self.nv + i * self.fs, self.nv + (i + 1) * self.fs)
        self.qp.C[rows, cols] = self.cone
        self.qp.l[rows] = -self.cone @ force

    def _clear_constraints(self):
        self.qp.C[:] = 0.0
        self.qp.l[:] = 0.0

    def _store(
        self, acc: np.ndarray, forces: np.ndarray, torque: np.ndarray, contact_state: Sequence[bool]
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        self.solved_acc = acc
        self.solved_forces = forces
        for i, active in enumerate(contact_state):
            if not active:
                self.solved_forces[self._contact_rows(i)] = 0.0
        self.solved_torque = torque
        return self.solved_torque.copy(), self.solved_forces.copy(), self.solved_acc.copy()
