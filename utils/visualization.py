"""
Visualization utilities for lateral QP results.

All functions save outputs to files instead of displaying them.
"""

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving
import matplotlib.pyplot as plt
from pathlib import Path
from typing import Optional, Dict
from dataclasses import dataclass


@dataclass
class PlotConfig:
    """Configuration for plot styling."""
    figsize_corridor: tuple = (10, 4)
    figsize_derivatives: tuple = (10, 6)

    dpi: int = 150
    line_width: float = 1.5
    marker_size: float = 3

    # Colors
    bounds_color: str = 'gray'
    profile_color: str = 'tab:blue'
    dense_color: str = 'tab:orange'


class LateralProfileVisualizer:
    """
    Plots of a solved lateral offset profile against its corridor.

    All plots are saved to files, not displayed.
    """

    def __init__(
        self,
        output_dir: str = "results",
        config: Optional[PlotConfig] = None
    ):
        """
        Initialize visualizer.

        Args:
            output_dir: Directory to save outputs
            config: Plot configuration
        """
        self.output_dir = Path(output_dir)
        self.config = config or PlotConfig()

        # Create output directory
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def plot_corridor(
        self,
        result,
        d_bounds,
        trajectory=None,
        filename: str = "lateral_corridor.png",
        title: Optional[str] = None
    ) -> str:
        """
        Plot the solved offset inside its bound corridor.

        Args:
            result: LateralQPResult
            d_bounds: (low, high) per station
            trajectory: Optional PiecewiseJerkTrajectory1d, drawn densely
            filename: Output filename
            title: Plot title

        Returns:
            Path to saved file
        """
        fig, ax = plt.subplots(figsize=self.config.figsize_corridor)

        bounds = np.asarray(d_bounds, dtype=float)
        s_m = result.s

        ax.fill_between(s_m, bounds[:, 0], bounds[:, 1],
                        color=self.config.bounds_color, alpha=0.2, label='Bounds')
        ax.plot(s_m, bounds[:, 0], color=self.config.bounds_color, linewidth=1.0)
        ax.plot(s_m, bounds[:, 1], color=self.config.bounds_color, linewidth=1.0)

        ax.plot(s_m, result.d, color=self.config.profile_color, marker='o',
                ms=self.config.marker_size, linewidth=self.config.line_width,
                label='Stations')

        if trajectory is not None:
            s_dense = np.linspace(0.0, trajectory.param_length, 20 * max(trajectory.num_segments, 1) + 1)
            d_dense = [trajectory.evaluate(0, s) for s in s_dense]
            ax.plot(s_dense, d_dense, color=self.config.dense_color,
                    linewidth=1.0, linestyle='--', label='Piecewise jerk')

        ax.set_xlabel('Arc length $s$ [m]')
        ax.set_ylabel('Lateral offset $d$ [m]')
        ax.legend(loc='best')
        ax.grid(True, alpha=0.3)
        if title is None:
            title = "Lateral profile"
            if result.iterations is not None:
                title += f" ({result.iterations} OSQP iterations)"
        ax.set_title(title)

        filepath = self.output_dir / filename
        fig.savefig(filepath, dpi=self.config.dpi, bbox_inches='tight')
        plt.close(fig)

        return str(filepath)

    def plot_derivatives(
        self,
        result,
        jerk_max: Optional[float] = None,
        filename: str = "lateral_derivatives.png",
        title: Optional[str] = None
    ) -> str:
        """
        Plot d', d'' and the per-segment jerk vs arc length.

        Args:
            result: LateralQPResult
            jerk_max: Draw +/- jerk limit lines when given
            filename: Output filename
            title: Plot title

        Returns:
            Path to saved file
        """
        fig, axes = plt.subplots(3, 1, figsize=self.config.figsize_derivatives, sharex=True)

        s_m = result.s
        jerk = np.diff(result.d_pprime) / result.delta_s

        axes[0].plot(s_m, result.d_prime, color=self.config.profile_color,
                     linewidth=self.config.line_width)
        axes[0].set_ylabel(r"$d'$ [-]")

        axes[1].plot(s_m, result.d_pprime, color=self.config.profile_color,
                     linewidth=self.config.line_width)
        axes[1].set_ylabel(r"$d''$ [1/m]")

        axes[2].step(s_m[:-1], jerk, where='post', color=self.config.profile_color,
                     linewidth=self.config.line_width)
        if jerk_max is not None:
            axes[2].axhline(jerk_max, color='tab:red', linestyle='--', linewidth=1.0)
            axes[2].axhline(-jerk_max, color='tab:red', linestyle='--', linewidth=1.0)
        axes[2].set_ylabel(r"$d'''$ [1/m$^2$]")
        axes[2].set_xlabel('Arc length $s$ [m]')

        for ax in axes:
            ax.grid(True, alpha=0.3)

        if title:
            fig.suptitle(title)

        fig.tight_layout()

        filepath = self.output_dir / filename
        fig.savefig(filepath, dpi=self.config.dpi, bbox_inches='tight')
        plt.close(fig)

        return str(filepath)

    def generate_full_report(
        self,
        result,
        d_bounds,
        trajectory=None,
        jerk_max: Optional[float] = None,
        prefix: str = "lateral"
    ) -> Dict[str, str]:
        """
        Generate all visualization plots for a result.

        Returns:
            Dict mapping plot type -> filepath
        """
        filepaths = {}

        filepaths['corridor'] = self.plot_corridor(
            result, d_bounds, trajectory, f"{prefix}_corridor.png"
        )

        filepaths['derivatives'] = self.plot_derivatives(
            result, jerk_max, f"{prefix}_derivatives.png"
        )

        return filepaths
