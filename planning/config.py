"""
Tunable parameters for the lateral offset QP.

Weights, jerk limit and OSQP settings are bundled into immutable dataclasses
that can be loaded from a YAML file (see config/lateral_qp.yaml).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Union

from yaml import safe_load


@dataclass(frozen=True)
class OsqpSettings:
    """OSQP settings used for every lateral QP solve."""
    alpha: float = 1.0       # ADMM relaxation parameter
    eps_abs: float = 1.0e-5
    eps_rel: float = 1.0e-5
    max_iter: int = 5000
    polish: bool = True

    def to_options(self, verbose: bool = False) -> dict:
        return {
            "alpha": float(self.alpha),
            "eps_abs": float(self.eps_abs),
            "eps_rel": float(self.eps_rel),
            "max_iter": int(self.max_iter),
            "polish": bool(self.polish),
            "verbose": bool(verbose),
        }


@dataclass(frozen=True)
class LateralQPConfig:
    """
    Lateral QP parameters - immutable dataclass.

    The four weights scale the diagonal kernel blocks:
        offset block:            2 * (weight_offset + weight_obstacle_distance)
        first derivative block:  2 * weight_derivative
        second derivative block: 2 * weight_second_derivative

    weight_obstacle_distance also enters the linear cost term, pulling each
    offset towards low + high of its interval (the midpoint when
    weight_offset == weight_obstacle_distance).
    """

    weight_offset: float = 1.0
    weight_obstacle_distance: float = 0.0
    weight_derivative: float = 500.0
    weight_second_derivative: float = 1000.0

    jerk_max: float = 0.1            # max |d'''| [1/m^2]
    derivative_bound: float = 2.0    # box on d' and d'' standing in for "unbounded"

    debug_verbose: bool = False
    osqp: OsqpSettings = field(default_factory=OsqpSettings)

    def __post_init__(self):
        for name in ("weight_offset", "weight_obstacle_distance", "weight_derivative", "weight_second_derivative"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"{name} must be a finite non-negative number, got {value}")
        if not math.isfinite(self.jerk_max) or self.jerk_max <= 0.0:
            raise ValueError(f"jerk_max must be positive, got {self.jerk_max}")
        if not math.isfinite(self.derivative_bound) or self.derivative_bound <= 0.0:
            raise ValueError(f"derivative_bound must be positive, got {self.derivative_bound}")

    @staticmethod
    def load_from_yaml(yaml_file: Union[str, Path]) -> LateralQPConfig:
        """
        Load lateral QP parameters from a YAML file.

        Expected layout:
            lateral_qp:
              weight_offset: 1.0
              ...
            osqp:
              max_iter: 5000
              ...

        Args:
            yaml_file: Path to YAML config file

        Returns:
            LateralQPConfig instance
        """
        yaml_file = Path(yaml_file)
        if not yaml_file.exists():
            raise FileNotFoundError(f"Lateral QP config not found at {yaml_file}")

        with open(yaml_file, "r") as stream:
            data = safe_load(stream) or {}

        # Filter to only include fields the dataclasses accept
        qp_fields = {f.name for f in fields(LateralQPConfig)} - {"osqp"}
        qp_dict = {k: v for k, v in (data.get("lateral_qp") or {}).items() if k in qp_fields}

        osqp_fields = {f.name for f in fields(OsqpSettings)}
        osqp_dict = {k: v for k, v in (data.get("osqp") or {}).items() if k in osqp_fields}

        return LateralQPConfig(osqp=OsqpSettings(**osqp_dict), **qp_dict)
