"""
Piecewise constant-jerk 1D trajectories.

A lateral QP solution (d, d', d'' at uniformly spaced stations) is a chain of
cubic segments whose third derivative is constant within each segment:
    jerk_i = (d''_{i+1} - d''_i) / ds
"""

from __future__ import annotations

import bisect
from typing import List


class ConstantJerkTrajectory1d:
    """Cubic segment p(s) = p0 + v0*s + a0*s^2/2 + jerk*s^3/6 on [0, param]."""

    def __init__(self, p0: float, v0: float, a0: float, jerk: float, param: float):
        if param <= 0.0:
            raise ValueError(f"Segment length must be positive, got {param}")
        self.p0 = p0
        self.v0 = v0
        self.a0 = a0
        self.jerk = jerk
        self.param = param

        self.end_position = self.evaluate(0, param)
        self.end_velocity = self.evaluate(1, param)
        self.end_acceleration = self.evaluate(2, param)

    def evaluate(self, order: int, s: float) -> float:
        if order == 0:
            return self.p0 + self.v0 * s + 0.5 * self.a0 * s * s + self.jerk * s * s * s / 6.0
        if order == 1:
            return self.v0 + self.a0 * s + 0.5 * self.jerk * s * s
        if order == 2:
            return self.a0 + self.jerk * s
        if order == 3:
            return self.jerk
        return 0.0

    def __repr__(self):
        return (f"ConstantJerkTrajectory1d(p0={self.p0:.4f}, v0={self.v0:.4f}, "
                f"a0={self.a0:.4f}, jerk={self.jerk:.4f}, param={self.param:.4f})")


class PiecewiseJerkTrajectory1d:
    """Chain of constant-jerk segments starting from (p0, v0, a0)."""

    def __init__(self, p0: float, v0: float, a0: float):
        self.last_p = p0
        self.last_v = v0
        self.last_a = a0
        self.segments: List[ConstantJerkTrajectory1d] = []
        self.params: List[float] = []  # accumulated end parameter of each segment

    def append_segment(self, jerk: float, param: float) -> None:
        segment = ConstantJerkTrajectory1d(self.last_p, self.last_v, self.last_a, jerk, param)
        self.segments.append(segment)
        self.params.append(param if not self.params else self.params[-1] + param)

        self.last_p = segment.end_position
        self.last_v = segment.end_velocity
        self.last_a = segment.end_acceleration

    @property
    def num_segments(self) -> int:
        return len(self.segments)

    @property
    def param_length(self) -> float:
        return self.params[-1] if self.params else 0.0

    def evaluate(self, order: int, s: float) -> float:
        """
        Evaluate the order-th derivative at arc length s.

        s before the start uses the first segment; s past the end extrapolates
        the last segment measured from that segment's own start, so values stay
        continuous across the final station.
        """
        if not self.segments:
            raise RuntimeError("Trajectory has no segments")

        index = min(bisect.bisect_left(self.params, s), len(self.params) - 1)
        if index == 0:
            return self.segments[0].evaluate(order, s)
        return self.segments[index].evaluate(order, s - self.params[index - 1])
