# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Linearized friction / wrench cone of a single contact.

The cone is nine linear inequalities `C f >= 0` on the contact force
f = [fx, fy, fz] (point contact) or wrench f = [fx, fy, fz, tx, ty, tz]:

    rows 0-3  |fx| <= mu fz, |fy| <= mu fz
    row  4    fz >= 0
    rows 5-8  |tx| <= W fz, |ty| <= L fz   (centre of pressure inside the foot)

For point contacts rows 5-8 repeat the unilateral row so the block keeps nine
rows whatever the force dimension.
"""

import numpy as np

from ..errors import ConfigurationError

CONE_ROWS = 9


def contact_cone_matrix(
    force_size: int, mu: float, Lfoot: float = 0.0, Wfoot: float = 0.0
) -> np.ndarray:
    """Return the (9, force_size) cone generator matrix."""
    if force_size not in (3, 6):
        raise ConfigurationError(f"force_size must be 3 or 6, got {force_size}")
    if mu <= 0:
        raise ConfigurationError(f"Friction coefficient must be positive, got {mu}")

    C = np.zeros((CONE_ROWS, force_size))
    C[0, 0], C[1, 0] = -1.0, 1.0
    C[2, 1], C[3, 1] = -1.0, 1.0
    C[0:4, 2] = mu
    C[4:, 2] = 1.0
    if force_size == 6:
        C[5:7, 2] = Wfoot
        C[7:9, 2] = Lfoot
        C[5, 3], C[6, 3] = -1.0, 1.0
        C[7, 4], C[8, 4] = -1.0, 1.0
    return C
