# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Dense QP with fixed dimensions, solved by OSQP.

    min   1/2 x^T H x + g^T x
    s.t.  A x = b
          l <= C x <= u
          lb <= x[box] <= ub

The problem buffers (H, g, A, b, C, l, u, lb, ub) are allocated once and
refreshed in place by the caller before every `solve`. OSQP is set up on the
first solve with a fully dense sparsity pattern, later solves only push the
new values with `update`.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import osqp
import scipy.sparse as sp

from ..errors import ConfigurationError, SolverNonConvergence

logger = logging.getLogger(__name__)

# Stands in for exact zeros at setup so that OSQP keeps every pattern entry
_PATTERN_EPS = 1e-12

# OSQP status values whose iterate is a usable solution
OSQP_SOLVED = 1
OSQP_SOLVED_INACCURATE = 2
_USABLE_STATUS = (OSQP_SOLVED, OSQP_SOLVED_INACCURATE)


@dataclass
class QPSettings:
    """OSQP settings of the low-level solvers.

    Attributes:
        eps_abs: Absolute tolerance.
        eps_rel: Relative tolerance.
        max_iter: Iteration cap of one solve.
        rho: ADMM step size every solve starts from.
        verbose: Print OSQP output.
    """

    eps_abs: float = 1e-3
    eps_rel: float = 0.0
    max_iter: int = 4000
    rho: float = 0.1
    verbose: bool = False

    def validate(self):
        if self.eps_abs <= 0 or self.eps_rel < 0:
            raise ConfigurationError("QP tolerances must be positive")
        if self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be at least 1, got {self.max_iter}")
        if self.rho <= 0:
            raise ConfigurationError(f"rho must be positive, got {self.rho}")


def _pattern(mask: np.ndarray) -> Tuple[sp.csc_matrix, np.ndarray]:
    """Return the CSC pattern of a boolean mask and, per stored entry, its flat index."""
    pattern = sp.csc_matrix(mask.astype(float))
    cols = np.repeat(np.arange(mask.shape[1]), np.diff(pattern.indptr))
    return pattern, pattern.indices * mask.shape[1] + cols


class DenseQP:
    """Fixed-size QP over preallocated dense buffers.

    Args:
        n: Number of variables.
        n_eq: Number of equality rows.
        n_in: Number of two-sided inequality rows.
        box_indices: Variables with box bounds.
        settings: OSQP settings.
        name: Solver name used in diagnostics.
    """

    def __init__(
        self,
        n: int,
        n_eq: int,
        n_in: int,
        box_indices: Sequence[int] = (),
        settings: Optional[QPSettings] = None,
        name: str = "qp",
    ):
        self.settings = settings or QPSettings()
        self.settings.validate()
        self.name = name
        self.n, self.n_eq, self.n_in = n, n_eq, n_in
        self.box_indices = np.asarray(box_indices, dtype=int)
        nb = len(self.box_indices)
        m = n_eq + n_in + nb

        self.H = np.zeros((n, n))
        self.g = np.zeros(n)
        # A and C are views into the stacked constraint matrix
        self._K = np.zeros((m, n))
        self.A = self._K[:n_eq]
        self.C = self._K[n_eq : n_eq + n_in]
        self._K[n_eq + n_in + np.arange(nb), self.box_indices] = 1.0
        self.b = np.zeros(n_eq)
        self.l = np.zeros(n_in)
        self.u = np.full(n_in, np.inf)
        self.lb = np.full(nb, -np.inf)
        self.ub = np.full(nb, np.inf)
        self._lo = np.zeros(m)
        self._hi = np.zeros(m)

        mask = np.zeros((m, n), dtype=bool)
        mask[: n_eq + n_in] = True
        mask[n_eq + n_in :] = self._K[n_eq + n_in :] != 0.0
        self._P_pattern, self._P_take = _pattern(np.triu(np.ones((n, n), dtype=bool)))
        self._K_pattern, self._K_take = _pattern(mask)
        self._Px = np.zeros(len(self._P_take))
        self._Kx = np.zeros(len(self._K_take))

        self._prob: Optional[osqp.OSQP] = None
        self.status = "unsolved"
        self.iterations = 0
        self.converged = False
        self.last_non_convergence: Optional[SolverNonConvergence] = None

    def _gather(self):
        np.take(self.H, self._P_take, out=self._Px)
        np.take(self._K, self._K_take, out=self._Kx)
        n_eq, n_in = self.n_eq, self.n_in
        self._lo[:n_eq] = self.b
        self._hi[:n_eq] = self.b
        self._lo[n_eq : n_eq + n_in] = self.l
        self._hi[n_eq : n_eq + n_in] = self.u
        self._lo[n_eq + n_in :] = self.lb
        self._hi[n_eq + n_in :] = self.ub

    def _setup(self):
        def with_pattern(pattern: sp.csc_matrix, values: np.ndarray) -> sp.csc_matrix:
            data = np.where(values == 0.0, _PATTERN_EPS, values)
            return sp.csc_matrix((data, pattern.indices, pattern.indptr), shape=pattern.shape)

        self._prob = osqp.OSQP()
        self._prob.setup(
            P=with_pattern(self._P_pattern, self._Px),
            q=self.g.copy(),
            A=with_pattern(self._K_pattern, self._Kx),
            l=self._lo.copy(),
            u=self._hi.copy(),
            eps_abs=self.settings.eps_abs,
            eps_rel=self.settings.eps_rel,
            max_iter=self.settings.max_iter,
            # Short caps still get a termination check before they run out
            check_termination=min(25, self.settings.max_iter),
            rho=self.settings.rho,
            adaptive_rho_interval=25,
            polish=False,
            verbose=self.settings.verbose,
        )
        logger.info("Set up %s: %d variables, %d constraints", self.name, self.n, len(self._lo))

    def solve(self) -> Optional[np.ndarray]:
        """Solve with the current buffer values.

        Every solve starts from zero primal/dual iterates and the initial rho,
        so identical buffers give identical results.

        Returns:
            The solution, or None unless OSQP reports it solved (accurately or
            not). Infeasible and iteration-capped results are discarded.
        """
        self._gather()
        if self._prob is None:
            self._setup()
        self._prob.update(Px=self._Px, Ax=self._Kx, q=self.g, l=self._lo, u=self._hi)
        self._prob.update_settings(rho=self.settings.rho)
        self._prob.warm_start(x=np.zeros(self.n), y=np.zeros(len(self._lo)))

        res = self._prob.solve()
        self.status = str(res.info.status)
        self.iterations = int(res.info.iter)
        self.converged = self.status == "solved"
        if not self.converged:
            # Field renamed prim_res in OSQP 1.0
            residual = getattr(res.info, "pri_res", getattr(res.info, "prim_res", None))
            self.last_non_convergence = SolverNonConvergence(
                self.name,
                self.iterations,
                residual=None if residual is None else float(residual),
                status=self.status,
            )
            logger.warning("%s", self.last_non_convergence)

        if int(res.info.status_val) not in _USABLE_STATUS:
            return None
        if res.x is None or not np.all(np.isfinite(res.x)):
            return None
        return np.array(res.x)
