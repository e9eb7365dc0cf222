"""
Column-compressed (CSC) sparse matrix helpers for the QP backends.

Two ways to get a CscMatrix:
- dense_to_csc: compress a dense numpy matrix, dropping exact zeros
- TripletAssembler: append (row, col, value) triplets while a system is
  being derived, then compress once

Both produce the same layout: values, row indices and column pointers with
row indices sorted inside each column.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import scipy.sparse as sp


@dataclass(frozen=True)
class CscMatrix:
    """Column-compressed sparse matrix (values, row indices, column pointers)."""
    shape: Tuple[int, int]
    data: np.ndarray      # nonzero values [nnz]
    indices: np.ndarray   # row index of each value [nnz]
    indptr: np.ndarray    # column start offsets [n_cols + 1]

    def __post_init__(self):
        n_rows, n_cols = self.shape
        if len(self.indptr) != n_cols + 1:
            raise ValueError(
                f"indptr must have {n_cols + 1} entries for {n_cols} columns, got {len(self.indptr)}"
            )
        if len(self.data) != len(self.indices):
            raise ValueError(f"data and indices differ in length: {len(self.data)} vs {len(self.indices)}")
        if self.indptr[0] != 0 or self.indptr[-1] != len(self.data):
            raise ValueError("indptr must start at 0 and end at nnz")
        if np.any(np.diff(self.indptr) < 0):
            raise ValueError("indptr must be non-decreasing")
        if len(self.indices) and (self.indices.min() < 0 or self.indices.max() >= n_rows):
            raise ValueError(f"row indices out of range for {n_rows} rows")

    @property
    def nnz(self) -> int:
        return int(len(self.data))

    @classmethod
    def from_scipy(cls, matrix) -> CscMatrix:
        csc = sp.csc_matrix(matrix, dtype=float)
        csc.sum_duplicates()
        csc.eliminate_zeros()
        csc.sort_indices()
        return cls(
            shape=(int(csc.shape[0]), int(csc.shape[1])),
            data=np.array(csc.data, dtype=float),
            indices=np.array(csc.indices, dtype=np.int64),
            indptr=np.array(csc.indptr, dtype=np.int64),
        )

    def to_scipy(self) -> sp.csc_matrix:
        return sp.csc_matrix((self.data, self.indices, self.indptr), shape=self.shape)

    def toarray(self) -> np.ndarray:
        return self.to_scipy().toarray()


def dense_to_csc(matrix) -> CscMatrix:
    """
    Compress a dense 2D matrix into CSC form.

    Only entries that are numerically nonzero are kept; stored values are the
    exact floats of the input.

    Args:
        matrix: 2D array-like

    Returns:
        CscMatrix with the same shape as the input
    """
    dense = np.asarray(matrix, dtype=float)
    if dense.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got shape {dense.shape}")
    return CscMatrix.from_scipy(dense)


class TripletAssembler:
    """
    Collect (row, col, value) triplets and compress them once into CSC.

    Duplicate (row, col) pairs are summed. Zero values are dropped.
    """

    def __init__(self, n_rows: int, n_cols: int):
        self.n_rows = n_rows
        self.n_cols = n_cols
        self._rows = []
        self._cols = []
        self._vals = []

    def add(self, row: int, col: int, value: float) -> None:
        if not (0 <= row < self.n_rows and 0 <= col < self.n_cols):
            raise IndexError(f"Entry ({row}, {col}) outside a {self.n_rows}x{self.n_cols} matrix")
        self._rows.append(row)
        self._cols.append(col)
        self._vals.append(float(value))

    def __len__(self) -> int:
        return len(self._vals)

    def to_csc(self) -> CscMatrix:
        coo = sp.coo_matrix(
            (np.array(self._vals, dtype=float), (np.array(self._rows, dtype=np.int64), np.array(self._cols, dtype=np.int64))),
            shape=(self.n_rows, self.n_cols),
        )
        return CscMatrix.from_scipy(coo)
