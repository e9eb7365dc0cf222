"""Input and output checks shared by the kernel and constraint builders."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from utils.sparse import CscMatrix, TripletAssembler

from .errors import InternalConsistencyError, StructuralError

MIN_STATIONS = 2


def as_bounds_array(d_bounds: Sequence[Tuple[float, float]], min_stations: int = MIN_STATIONS) -> np.ndarray:
    """
    Convert per-station (low, high) pairs to an [N, 2] float array.

    Raises:
        StructuralError: fewer than `min_stations` pairs, wrong shape,
            non-finite values or low > high at some station
    """
    try:
        bounds = np.asarray(d_bounds, dtype=float)
    except (TypeError, ValueError) as e:
        raise StructuralError(f"Bounds must be a sequence of (low, high) pairs: {e}") from e

    if bounds.ndim != 2 or bounds.shape[1] != 2:
        if bounds.size == 0 and min_stations > 0:
            raise StructuralError(f"Need at least {min_stations} stations, got 0")
        raise StructuralError(f"Bounds must have shape [N, 2], got {bounds.shape}")
    if bounds.shape[0] < min_stations:
        raise StructuralError(f"Need at least {min_stations} stations, got {bounds.shape[0]}")
    if not np.all(np.isfinite(bounds)):
        raise StructuralError("Bounds must be finite")

    inverted = np.flatnonzero(bounds[:, 0] > bounds[:, 1])
    if len(inverted):
        i = int(inverted[0])
        raise StructuralError(f"Station {i} has low > high: ({bounds[i, 0]}, {bounds[i, 1]})")
    return bounds


def as_initial_state(d_state: Sequence[float]) -> np.ndarray:
    """(d0, d0', d0'') as a length-3 float array."""
    try:
        state = np.asarray(d_state, dtype=float).reshape(-1)
    except (TypeError, ValueError) as e:
        raise StructuralError(f"Initial state must be three numbers: {e}") from e
    if state.shape != (3,):
        raise StructuralError(f"Initial state must be (d, d', d''), got {state.shape[0]} values")
    if not np.all(np.isfinite(state)):
        raise StructuralError("Initial state must be finite")
    return state


def check_step_size(delta_s: float) -> float:
    try:
        delta_s = float(delta_s)
    except (TypeError, ValueError) as e:
        raise StructuralError(f"Step size must be a number: {e}") from e
    if not math.isfinite(delta_s) or delta_s <= 0.0:
        raise StructuralError(f"Step size must be positive and finite, got {delta_s}")
    return delta_s


def compress_checked(assembler: TripletAssembler, expected_shape: Tuple[int, int]) -> CscMatrix:
    """
    Compress builder triplets to CSC and check the result against the declared shape.

    Raises:
        InternalConsistencyError: the CSC arrays are malformed or the shape differs
    """
    try:
        matrix = assembler.to_csc()
    except ValueError as e:
        raise InternalConsistencyError(f"Malformed CSC structure: {e}") from e
    if tuple(matrix.shape) != tuple(expected_shape):
        raise InternalConsistencyError(
            f"CSC shape {tuple(matrix.shape)} does not match declared shape {tuple(expected_shape)}"
        )
    return matrix
