# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Low-level torque controllers solving one dense QP per control tick."""

from .base_solver import BaseContactSolver, ContactSolverSettings
from .contact_cone import CONE_ROWS, contact_cone_matrix
from .dense_qp import DenseQP, QPSettings
from .id_solver import IDSettings, IDSolver
from .ikid_solver import IKIDSettings, IKIDSolver

__all__ = [
    "BaseContactSolver",
    "CONE_ROWS",
    "ContactSolverSettings",
    "DenseQP",
    "IDSettings",
    "IDSolver",
    "IKIDSettings",
    "IKIDSolver",
    "QPSettings",
    "contact_cone_matrix",
]
