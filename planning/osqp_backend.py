"""
OSQP adapter for sparse QPs of the form

    minimize    0.5 x'Px + q'x
    subject to  l <= Ax <= u

OSQP is reached through CasADi's conic interface. `osqp_session` hands out a
SolverHandle that owns the CasADi function; the handle is closed on every exit
path, failed solves included, and refuses calls afterwards.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import casadi as ca
import numpy as np

from utils.sparse import CscMatrix

from .config import OsqpSettings
from .errors import SolverFailure, SolverStatus


@dataclass
class QPSolution:
    x: np.ndarray
    objective: float
    iterations: Optional[int]   # None when the plugin does not report it
    raw_status: str
    solve_time: float


class SolverHandle:
    """CasADi conic function that is only usable while its session is open."""

    def __init__(self, function: ca.Function):
        self.function = function

    @property
    def closed(self) -> bool:
        return self.function is None

    def _require_open(self) -> ca.Function:
        if self.function is None:
            raise RuntimeError("OSQP session is closed")
        return self.function

    def __call__(self, **kwargs) -> dict:
        return self._require_open()(**kwargs)

    def stats(self) -> dict:
        return self._require_open().stats()

    def close(self) -> None:
        self.function = None


def csc_to_casadi(matrix: CscMatrix) -> ca.DM:
    """Wrap CSC arrays as a CasADi DM without densifying."""
    n_rows, n_cols = matrix.shape
    if matrix.nnz == 0:
        return ca.DM(n_rows, n_cols)
    sparsity = ca.Sparsity(n_rows, n_cols, matrix.indptr.tolist(), matrix.indices.tolist())
    return ca.DM(sparsity, ca.DM(matrix.data.tolist()))


def classify_status(stats: dict) -> SolverStatus:
    """Map CasADi/OSQP stats onto a SolverStatus."""
    if stats.get("success", False):
        return SolverStatus.SOLVED

    # Both "primal infeasible" and "OSQP_PRIMAL_INFEASIBLE" spellings occur
    raw = str(stats.get("return_status", "")).lower().replace("_", " ")
    if "dual infeasible" in raw or "unbounded" in raw:
        return SolverStatus.UNBOUNDED
    if "infeasible" in raw:
        return SolverStatus.INFEASIBLE
    if "max" in raw and "iter" in raw:
        return SolverStatus.MAX_ITER_REACHED
    if stats.get("unified_return_status") == "SOLVER_RET_LIMITED":
        return SolverStatus.MAX_ITER_REACHED
    return SolverStatus.FAILED


def iteration_count(stats: dict) -> Optional[int]:
    """Iterations from CasADi stats; None when missing or left at CasADi's -1 placeholder."""
    value = stats.get("iter_count")
    if value is None:
        return None
    value = int(value)
    return value if value > 0 else None


@contextmanager
def osqp_session(P: CscMatrix, A: CscMatrix, settings: OsqpSettings, verbose: bool = False) -> Iterator[SolverHandle]:
    """
    Create an OSQP conic solver for the sparsity patterns of P and A.

    The yielded handle is closed when the `with` block exits.
    """
    opts = {
        "error_on_fail": False,
        "print_time": False,
        "osqp": settings.to_options(verbose=verbose),
    }
    handle = SolverHandle(ca.conic(
        "lateral_qp",
        "osqp",
        {"h": csc_to_casadi(P).sparsity(), "a": csc_to_casadi(A).sparsity()},
        opts,
    ))
    try:
        yield handle
    finally:
        handle.close()


def solve_qp(
    P: CscMatrix,
    q: np.ndarray,
    A: CscMatrix,
    lower: np.ndarray,
    upper: np.ndarray,
    settings: OsqpSettings,
    verbose: bool = False,
) -> QPSolution:
    """
    Solve the QP with OSQP.

    Returns:
        QPSolution with the primal vector

    Raises:
        SolverFailure: OSQP did not reach the solved status
    """
    t_start = time.time()
    with osqp_session(P, A, settings, verbose=verbose) as solver:
        try:
            sol = solver(
                h=csc_to_casadi(P),
                g=ca.DM(np.asarray(q, dtype=float)),
                a=csc_to_casadi(A),
                lba=ca.DM(np.asarray(lower, dtype=float)),
                uba=ca.DM(np.asarray(upper, dtype=float)),
            )
        except RuntimeError as e:
            if verbose:
                print(f"    [QP FAILURE] exception:\n{str(e)}")
            raise SolverFailure(SolverStatus.FAILED, raw_status=str(e)) from e

        stats = solver.stats()

    status = classify_status(stats)
    raw_status = str(stats.get("return_status", ""))
    iterations = iteration_count(stats)

    if status is not SolverStatus.SOLVED:
        raise SolverFailure(status, raw_status=raw_status, iterations=iterations)

    x = np.array(sol["x"], dtype=float).flatten()
    if not np.all(np.isfinite(x)):
        raise SolverFailure(SolverStatus.FAILED, raw_status=raw_status, iterations=iterations)

    return QPSolution(
        x=x,
        objective=float(sol["cost"]),
        iterations=iterations,
        raw_status=raw_status,
        solve_time=time.time() - t_start,
    )
