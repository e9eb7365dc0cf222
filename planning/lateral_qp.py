"""
Lateral offset QP optimizer.

Finds a piecewise-cubic lateral offset profile d(s) over N uniformly spaced
stations, starting from a fixed (d, d', d'') state and staying inside
per-station (low, high) bounds.

Decision vector: [d_0..d_{N-1}, d'_0..d'_{N-1}, d''_0..d''_{N-1}] (3N)
Cost: diagonal weighted squares (KernelBuilder)
Constraints: jerk box, d'/d continuity, initial state, variable boxes
    (ConstraintBuilder)
Solver: OSQP
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import LateralQPConfig
from .constraints import ConstraintBuilder
from .errors import SolverFailure
from .kernel import KernelBuilder
from .osqp_backend import solve_qp
from .piecewise_jerk import PiecewiseJerkTrajectory1d
from .validation import as_bounds_array, as_initial_state, check_step_size


@dataclass
class LateralQPResult:
    """Container for a solved lateral profile."""
    success: bool
    d: np.ndarray             # Lateral offset [N]
    d_prime: np.ndarray       # dd/ds [N]
    d_pprime: np.ndarray      # d2d/ds2 [N]
    delta_s: float            # Station spacing [m]
    status: str               # Raw solver status
    iterations: Optional[int]  # Solver iterations, None when OSQP does not report them
    objective: float          # 0.5 x'Px + q'x at the solution
    solve_time: float         # Wall clock time [s]

    @property
    def s(self) -> np.ndarray:
        """Station arc lengths, starting at 0."""
        return np.arange(len(self.d)) * self.delta_s


@dataclass
class FrenetFramePoint:
    s: float
    l: float
    dl: float
    ddl: float


class LateralQPOptimizer:
    """
    Lateral offset optimizer over uniformly spaced stations.

    One instance must not be used from several threads at once: the solved
    sequences are stored on the instance.
    """

    def __init__(self, config: Optional[LateralQPConfig] = None):
        self.config = config or LateralQPConfig()

        self.kernel_builder = KernelBuilder(self.config)
        self.constraint_builder = ConstraintBuilder(self.config.derivative_bound)

        self.delta_s = 0.0
        self.opt_d: List[float] = []
        self.opt_d_prime: List[float] = []
        self.opt_d_pprime: List[float] = []

    def optimize(
        self,
        d_state: Sequence[float],
        delta_s: float,
        d_bounds: Sequence[Tuple[float, float]],
    ) -> LateralQPResult:
        """
        Solve the lateral QP.

        Args:
            d_state: Initial (d, d', d'') at station 0
            delta_s: Station spacing [m]
            d_bounds: (low, high) offset bounds, one pair per station (N >= 2)

        Returns:
            LateralQPResult with the solved sequences

        Raises:
            StructuralError: malformed inputs (nothing is built or stored)
            InternalConsistencyError: the constraint system came out malformed
            SolverFailure: OSQP did not solve; stored sequences are unchanged
        """
        t_start = time.time()
        verbose = self.config.debug_verbose

        state = as_initial_state(d_state)
        delta_s = check_step_size(delta_s)
        bounds = as_bounds_array(d_bounds)
        num_var = bounds.shape[0]

        P = self.kernel_builder.build(bounds)
        q = self.kernel_builder.linear_term(bounds)
        constraints = self.constraint_builder.build(state, delta_s, bounds, self.config.jerk_max)

        if verbose:
            print(f"Lateral QP: N={num_var}, ds={delta_s}m, vars={3 * num_var}, "
                  f"constraints={constraints.num_constraints}, nnz(A)={constraints.A.nnz}")

        try:
            sol = solve_qp(
                P, q, constraints.A, constraints.lower, constraints.upper,
                self.config.osqp, verbose=verbose,
            )
        except SolverFailure as e:
            if verbose:
                print(f"    [QP FAILURE] status={e.status.value}, solver status='{e.raw_status}'"
                      + (f", iterations={e.iterations}" if e.iterations is not None else ""))
                print(f"    [QP FAILURE] d0=({state[0]:.3f}, {state[1]:.3f}, {state[2]:.3f}), "
                      f"bounds[0]=({bounds[0, 0]:.3f}, {bounds[0, 1]:.3f})")
            raise

        d = sol.x[:num_var].copy()
        d_prime = sol.x[num_var:2 * num_var].copy()
        d_pprime = sol.x[2 * num_var:3 * num_var].copy()

        # Terminal station comes to rest
        d_prime[num_var - 1] = 0.0
        d_pprime[num_var - 1] = 0.0

        self.delta_s = delta_s
        self.opt_d = d.tolist()
        self.opt_d_prime = d_prime.tolist()
        self.opt_d_pprime = d_pprime.tolist()

        if verbose:
            iterations = f", iterations={sol.iterations}" if sol.iterations is not None else ""
            print(f"    [QP] status='{sol.raw_status}'{iterations}, "
                  f"objective={sol.objective:.6f}, time={sol.solve_time * 1e3:.2f}ms")

        return LateralQPResult(
            success=True,
            d=d,
            d_prime=d_prime,
            d_pprime=d_pprime,
            delta_s=delta_s,
            status=sol.raw_status,
            iterations=sol.iterations,
            objective=sol.objective,
            solve_time=time.time() - t_start,
        )

    def _check_solved(self) -> None:
        if not (self.opt_d and self.opt_d_prime and self.opt_d_pprime):
            raise RuntimeError("No lateral solution available; call optimize() first")

    def frenet_frame_path(self) -> List[FrenetFramePoint]:
        """Solved profile as (s, l, dl, ddl) points, s starting at 0."""
        self._check_solved()
        path = []
        accumulated_s = 0.0
        for l, dl, ddl in zip(self.opt_d, self.opt_d_prime, self.opt_d_pprime):
            path.append(FrenetFramePoint(s=accumulated_s, l=l, dl=dl, ddl=ddl))
            accumulated_s += self.delta_s
        return path

    def optimal_trajectory(self) -> PiecewiseJerkTrajectory1d:
        """Solved profile as a chain of constant-jerk segments, one per station gap."""
        self._check_solved()
        trajectory = PiecewiseJerkTrajectory1d(self.opt_d[0], self.opt_d_prime[0], self.opt_d_pprime[0])
        for i in range(1, len(self.opt_d)):
            jerk = (self.opt_d_pprime[i] - self.opt_d_pprime[i - 1]) / self.delta_s
            trajectory.append_segment(jerk, self.delta_s)
        return trajectory
