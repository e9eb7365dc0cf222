"""
Quadratic and linear cost terms of the lateral offset QP.

Decision vector layout (N stations):
    x = [d_0 .. d_{N-1}, d'_0 .. d'_{N-1}, d''_0 .. d''_{N-1}]

The kernel is diagonal: each variable is penalized by its own weighted square,
there is no coupling between neighbouring stations in the cost.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from utils.sparse import CscMatrix, TripletAssembler

from .config import LateralQPConfig
from .validation import as_bounds_array, compress_checked


class KernelBuilder:
    """Builds P (3N x 3N, CSC) and q (3N) for 0.5 x'Px + q'x."""

    def __init__(self, config: LateralQPConfig):
        self.config = config

    def diagonal(self, num_var: int) -> np.ndarray:
        c = self.config
        diag = np.empty(3 * num_var)
        diag[:num_var] = 2.0 * c.weight_offset + 2.0 * c.weight_obstacle_distance
        diag[num_var:2 * num_var] = 2.0 * c.weight_derivative
        diag[2 * num_var:] = 2.0 * c.weight_second_derivative
        return diag

    def build(self, d_bounds: Sequence[Tuple[float, float]]) -> CscMatrix:
        bounds = as_bounds_array(d_bounds, min_stations=1)
        num_param = 3 * bounds.shape[0]

        kernel = TripletAssembler(num_param, num_param)
        for i, value in enumerate(self.diagonal(bounds.shape[0])):
            kernel.add(i, i, value)
        return compress_checked(kernel, (num_param, num_param))

    def linear_term(self, d_bounds: Sequence[Tuple[float, float]]) -> np.ndarray:
        """
        q_i = -2 * weight_obstacle_distance * (low_i + high_i)  for i < N, else 0.

        Together with the offset block of P, the unconstrained minimizer of
        each offset is w_obs * (low + high) / (w_offset + w_obs), which is the
        interval midpoint when the two weights are equal.
        """
        bounds = as_bounds_array(d_bounds, min_stations=1)
        num_var = bounds.shape[0]
        q = np.zeros(3 * num_var)
        q[:num_var] = -2.0 * self.config.weight_obstacle_distance * (bounds[:, 0] + bounds[:, 1])
        return q
