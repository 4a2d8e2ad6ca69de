# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

import numpy as np
import pytest

from legged_mpc.errors import ConfigurationError, SolverNonConvergence
from legged_mpc.lowlevel import DenseQP, QPSettings

TIGHT = QPSettings(eps_abs=1e-7, eps_rel=1e-7, max_iter=20000)


def make_qp(**kwargs) -> DenseQP:
    """min 1/2 |x|^2 - x2  s.t.  x0 + x1 = 2,  x0 - x1 >= 1,  x1 <= ub."""
    qp = DenseQP(3, 1, 1, box_indices=[1], settings=kwargs.pop("settings", TIGHT), **kwargs)
    qp.H[:] = np.eye(3)
    qp.g[:] = [0.0, 0.0, -1.0]
    qp.A[0] = [1.0, 1.0, 0.0]
    qp.b[0] = 2.0
    qp.C[0] = [1.0, -1.0, 0.0]
    qp.l[0] = 1.0
    return qp


def test_inequality_active():
    qp = make_qp()
    x = qp.solve()
    np.testing.assert_allclose(x, [1.5, 0.5, 1.0], atol=1e-4)
    assert qp.converged
    assert qp.status == "solved"


def test_box_bound_active():
    qp = make_qp()
    qp.ub[0] = 0.2
    x = qp.solve()
    np.testing.assert_allclose(x, [1.8, 0.2, 1.0], atol=1e-4)


def test_values_change_between_solves():
    qp = make_qp()
    qp.solve()
    # Entries that were zero at setup can change afterwards
    qp.H[0, 1] = qp.H[1, 0] = 0.5
    qp.C[0] = [0.0, 0.0, 1.0]
    qp.l[0] = -np.inf
    qp.u[0] = 0.5
    x = qp.solve()
    # x0 = x1 = 1 by symmetry, x2 capped at 0.5
    np.testing.assert_allclose(x, [1.0, 1.0, 0.5], atol=1e-4)


def test_repeated_solves_are_identical():
    qp = make_qp()
    first = qp.solve()
    qp.g[2] = -3.0
    qp.solve()
    qp.g[2] = -1.0
    second = qp.solve()
    np.testing.assert_array_equal(first, second)


def test_iteration_cap_is_recorded():
    qp = make_qp(settings=QPSettings(eps_abs=1e-9, max_iter=1))
    qp.solve()
    assert not qp.converged
    record = qp.last_non_convergence
    assert isinstance(record, SolverNonConvergence)
    assert record.solver == "qp"
    assert record.status == qp.status


def test_iteration_capped_iterate_is_discarded():
    qp = make_qp(settings=QPSettings(eps_abs=1e-9, eps_rel=1e-9, max_iter=2))
    assert qp.solve() is None
    assert qp.status != "solved"


def test_infeasible_returns_none():
    qp = DenseQP(1, 2, 0, settings=TIGHT, name="infeasible")
    qp.H[:] = 1.0
    qp.A[:, 0] = 1.0
    qp.b[:] = [1.0, 2.0]
    assert qp.solve() is None
    assert not qp.converged
    assert qp.last_non_convergence.solver == "infeasible"


def test_invalid_settings():
    with pytest.raises(ConfigurationError):
        DenseQP(2, 0, 0, settings=QPSettings(max_iter=0))
    with pytest.raises(ConfigurationError):
        DenseQP(2, 0, 0, settings=QPSettings(rho=-1.0))
