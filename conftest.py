"""Pytest fixtures for lateral QP tests."""

import sys
from pathlib import Path

import pytest

# Add project root so `planning` and `utils` import without installation
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from planning import LateralQPConfig


@pytest.fixture
def unit_config() -> LateralQPConfig:
    """All weights 1.0, jerk limit 2.0."""
    return LateralQPConfig(
        weight_offset=1.0,
        weight_obstacle_distance=1.0,
        weight_derivative=1.0,
        weight_second_derivative=1.0,
        jerk_max=2.0,
    )


@pytest.fixture
def nudge_config() -> LateralQPConfig:
    return LateralQPConfig(
        weight_offset=1.0,
        weight_obstacle_distance=0.0,
        weight_derivative=10.0,
        weight_second_derivative=100.0,
        jerk_max=0.1,
    )


@pytest.fixture
def nudge_bounds():
    """30 stations, 1.5 m half width, stations 10..15 pushed to d >= 0.5."""
    bounds = [(-1.5, 1.5) for _ in range(30)]
    for i in range(10, 16):
        bounds[i] = (0.5, 1.5)
    return bounds
