# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Math utilities."""

from .math_utils import bernstein_weights, bezier_curve, bezier_point, bezier_tangent

__all__ = [
    "bernstein_weights",
    "bezier_curve",
    "bezier_point",
    "bezier_tangent",
]
