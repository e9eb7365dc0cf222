"""
Failure kinds raised by the lateral QP optimizer.

- StructuralError: malformed caller input, raised before any matrix is built
- InternalConsistencyError: a builder produced a malformed system
- SolverFailure: OSQP did not return a solved status
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class SolverStatus(Enum):
    SOLVED = "solved"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    MAX_ITER_REACHED = "max_iter_reached"
    FAILED = "failed"


class LateralQPError(Exception):
    """Base class for all lateral QP failures."""


class StructuralError(LateralQPError, ValueError):
    pass


class InternalConsistencyError(LateralQPError, RuntimeError):
    pass


class SolverFailure(LateralQPError, RuntimeError):
    """OSQP returned without a solution. `status` tells why; `iterations` is None when unreported."""

    def __init__(self, status: SolverStatus, raw_status: str = "", iterations: Optional[int] = None):
        self.status = status
        self.raw_status = raw_status
        self.iterations = iterations
        message = f"QP solve failed: {status.value} (solver status '{raw_status}'"
        if iterations is not None:
            message += f", iterations={iterations}"
        super().__init__(message + ")")
