"""
Affine constraint system l <= A x <= u of the lateral offset QP.

Rows, in order (N stations, ds = station spacing):
    [0, N-1)        jerk bound:   -j_max*ds <= d''_{i+1} - d''_i <= j_max*ds
    [N-1, 2N-2)     d' continuity (trapezoid rule):
                    d'_{i+1} - d'_i - 0.5*ds*(d''_i + d''_{i+1}) = 0
    [2N-2, 3N-3)    d continuity (cubic with linear d''):
                    d_{i+1} - d_i - ds*d'_i - ds^2/3*d''_i - ds^2/6*d''_{i+1} = 0
    [3N-3, 3N)      initial state: d_0, d'_0, d''_0 pinned
    [3N, 6N)        box on every variable

Total rows: 3N + 3(N-1) + 3.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from utils.sparse import CscMatrix, TripletAssembler

from .errors import InternalConsistencyError
from .validation import as_bounds_array, as_initial_state, check_step_size, compress_checked


@dataclass(frozen=True)
class ConstraintSystem:
    A: CscMatrix
    lower: np.ndarray
    upper: np.ndarray

    @property
    def num_constraints(self) -> int:
        return self.A.shape[0]


def num_constraints(num_var: int) -> int:
    return 3 * num_var + 3 * (num_var - 1) + 3


class ConstraintBuilder:
    """
    Builds the constraint rows for the stacked [d, d', d''] decision vector.

    Args:
        derivative_bound: finite box applied to d' and d'' in the bound rows
    """

    def __init__(self, derivative_bound: float = 2.0):
        self.derivative_bound = derivative_bound

    def build(
        self,
        d_state: Sequence[float],
        delta_s: float,
        d_bounds: Sequence[Tuple[float, float]],
        jerk_max: float,
    ) -> ConstraintSystem:
        state = as_initial_state(d_state)
        delta_s = check_step_size(delta_s)
        bounds = as_bounds_array(d_bounds)

        num_var = bounds.shape[0]
        num_param = 3 * num_var
        num_constraint = num_constraints(num_var)

        prime_offset = num_var
        pprime_offset = 2 * num_var

        A = TripletAssembler(num_constraint, num_param)
        lower_bounds = np.zeros(num_constraint)
        upper_bounds = np.zeros(num_constraint)
        row = 0

        # d''_{i+1} - d''_i
        for i in range(num_var - 1):
            A.add(row, pprime_offset + i, -1.0)
            A.add(row, pprime_offset + i + 1, 1.0)
            lower_bounds[row] = -jerk_max * delta_s
            upper_bounds[row] = jerk_max * delta_s
            row += 1

        # d'_{i+1} - d'_i - 0.5 * ds * (d''_i + d''_{i+1})
        for i in range(num_var - 1):
            A.add(row, prime_offset + i, -1.0)
            A.add(row, prime_offset + i + 1, 1.0)
            A.add(row, pprime_offset + i, -0.5 * delta_s)
            A.add(row, pprime_offset + i + 1, -0.5 * delta_s)
            row += 1

        # d_{i+1} - d_i - d'_i * ds - 1/3 * d''_i * ds^2 - 1/6 * d''_{i+1} * ds^2
        for i in range(num_var - 1):
            A.add(row, i, -1.0)
            A.add(row, i + 1, 1.0)
            A.add(row, prime_offset + i, -delta_s)
            A.add(row, pprime_offset + i, -delta_s * delta_s / 3.0)
            A.add(row, pprime_offset + i + 1, -delta_s * delta_s / 6.0)
            row += 1

        for col, value in zip((0, prime_offset, pprime_offset), state):
            A.add(row, col, 1.0)
            lower_bounds[row] = value
            upper_bounds[row] = value
            row += 1

        for i in range(num_param):
            A.add(row, i, 1.0)
            if i < num_var:
                lower_bounds[row] = bounds[i, 0]
                upper_bounds[row] = bounds[i, 1]
            else:
                lower_bounds[row] = -self.derivative_bound
                upper_bounds[row] = self.derivative_bound
            row += 1

        if row != num_constraint:
            raise InternalConsistencyError(
                f"Emitted {row} constraint rows, expected {num_constraint} for {num_var} stations"
            )

        A = compress_checked(A, (num_constraint, num_param))
        return ConstraintSystem(A=A, lower=lower_bounds, upper=upper_bounds)
