# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Bezier helpers used by the swing-foot trajectory generator.

Curves of any degree are evaluated in Bernstein form:
    B(t) = sum_i C(n, i) (1-t)^(n-i) t^i P_i
"""

import numpy as np
from scipy.special import comb


def bernstein_weights(degree: int, t: float) -> np.ndarray:
    """Return the degree+1 Bernstein basis values at parameter t."""
    t = float(np.clip(t, 0.0, 1.0))
    return np.array(
        [comb(degree, i, exact=True) * (1.0 - t) ** (degree - i) * t**i for i in range(degree + 1)]
    )


def bezier_point(control_points: np.ndarray, t: float) -> np.ndarray:
    """Evaluate a Bezier curve at a single parameter value.

    Args:
        control_points: Control points with shape (n+1, D).
        t: Parameter value, clipped to [0, 1].

    Returns:
        Curve point with shape (D,).
    """
    control_points = np.asarray(control_points, dtype=float)
    weights = bernstein_weights(len(control_points) - 1, t)
    return weights @ control_points


def bezier_curve(control_points: np.ndarray, num_samples: int) -> np.ndarray:
    """Evaluate a Bezier curve at uniform parameter values.

    Args:
        control_points: Control points with shape (n+1, D).
        num_samples: Number of points to sample along the curve.

    Returns:
        Sampled curve points with shape (num_samples, D).
    """
    control_points = np.asarray(control_points, dtype=float)
    t = np.linspace(0.0, 1.0, num_samples)
    return np.array([bezier_point(control_points, ti) for ti in t])


def bezier_tangent(control_points: np.ndarray, t: float) -> np.ndarray:
    """Compute dB/dt at parameter t.

    The derivative of a degree-n curve is a degree-(n-1) curve over the
    scaled control point differences n (P_{i+1} - P_i).
    """
    control_points = np.asarray(control_points, dtype=float)
    degree = len(control_points) - 1
    if degree == 0:
        return np.zeros(control_points.shape[1])
    differences = degree * np.diff(control_points, axis=0)
    return bezier_point(differences, t)
