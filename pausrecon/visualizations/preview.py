from pathlib import Path
from typing import Optional

import cv2
import matplotlib.pyplot as plt
import numpy as np

from ..data_objs.frame import BScanData


def plot_frame(data: BScanData, dest_path: Optional[Path] = None, show: bool = False) -> plt.Figure:
    """Plot the US radial image next to the PA/US overlay, both in mm.

    Args:
        data (BScanData): A reconstructed frame.
        dest_path (Path): If given, the figure is saved there (must end with .png).
        show (bool): Block on `plt.show()`.

    Returns:
        plt.Figure: The figure.
    """
    us_radial = data.radial.US
    half_mm = us_radial.shape[0] * data.fct * 1e3 / 2
    extent = [-half_mm, half_mm, -half_mm, half_mm]

    fig, axes = plt.subplots(1, 2, figsize=(10, 5))
    axes[0].imshow(us_radial, cmap='gray', extent=extent)
    axes[0].set_title(f"US {data.frame_idx}")
    axes[1].imshow(cv2.cvtColor(data.paus_radial, cv2.COLOR_BGR2RGB), extent=extent)
    axes[1].set_title(f"PAUS {data.frame_idx}")
    for ax in axes:
        ax.set_xlabel('mm')
        ax.set_ylabel('mm')
    fig.tight_layout()

    if dest_path is not None:
        assert str(dest_path).endswith('.png'), "Preview output path must end with .png"
        fig.savefig(dest_path, bbox_inches='tight')
    if show:
        plt.show()
    return fig


def plot_rf_lines(data: BScanData, line: int = 0) -> plt.Figure:
    """Plot one A-line of the filtered RF and its envelope for both channels."""
    fig, axes = plt.subplots(2, 1, figsize=(10, 6), sharex=False)
    for ax, name in zip(axes, ("PA", "US")):
        rf = getattr(data.rf_filt, name)[:, line]
        env = getattr(data.rf_env, name)[:, line]
        ax.plot(np.arange(rf.size), rf, linewidth=0.5, label='RF')
        ax.plot(np.arange(env.size), env, linewidth=1, label='Envelope')
        ax.set_title(f"{name} A-line {line}")
        ax.legend()
    fig.tight_layout()
    return fig
