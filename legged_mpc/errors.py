# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

"""Exception types shared by the horizon manager and the low-level QP solvers.

- ConfigurationError: malformed settings, raised once at construction.
- InvalidArgument: bad call arguments (short schedule, index out of range,
  unknown end-effector), raised before any state is modified.
- SolverNonConvergence: iteration cap reached without meeting tolerance.
  Recorded on the solver that produced it; only raised on request.
"""

from typing import Optional


class ConfigurationError(ValueError):
    """Settings are inconsistent with themselves or with the robot model."""


class InvalidArgument(ValueError):
    """An argument passed to an operation is out of its valid domain."""


class SolverNonConvergence(RuntimeError):
    """Diagnostic record for a solve that stopped at its iteration cap.

    Attributes:
        solver: Name of the solver that stopped ("fddp", "id_qp", "ikid_qp").
        iterations: Iterations consumed.
        residual: Last stopping-criterion value, if the solver reports one.
        status: Solver status string, if the solver reports one.
    """

    def __init__(
        self,
        solver: str,
        iterations: int,
        residual: Optional[float] = None,
        status: Optional[str] = None,
    ):
        self.solver = solver
        self.iterations = iterations
        self.residual = residual
        self.status = status
        message = f"{solver} stopped after {iterations} iterations"
        if residual is not None:
            message += f" (residual {residual:.3e})"
        if status is not None:
            message += f" [{status}]"
        super().__init__(message)
