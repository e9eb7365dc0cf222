from .config import LateralQPConfig, OsqpSettings
from .constraints import ConstraintBuilder, ConstraintSystem
from .errors import (
    InternalConsistencyError,
    LateralQPError,
    SolverFailure,
    SolverStatus,
    StructuralError,
)
from .kernel import KernelBuilder
from .lateral_qp import FrenetFramePoint, LateralQPOptimizer, LateralQPResult
from .piecewise_jerk import ConstantJerkTrajectory1d, PiecewiseJerkTrajectory1d

__all__ = [
    'LateralQPConfig',
    'OsqpSettings',
    'ConstraintBuilder',
    'ConstraintSystem',
    'KernelBuilder',
    'LateralQPOptimizer',
    'LateralQPResult',
    'FrenetFramePoint',
    'ConstantJerkTrajectory1d',
    'PiecewiseJerkTrajectory1d',
    'LateralQPError',
    'StructuralError',
    'InternalConsistencyError',
    'SolverFailure',
    'SolverStatus',
]
