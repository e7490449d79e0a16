from dataclasses import dataclass

import numpy as np

from .frame import BScanData


@dataclass(frozen=True)
class FrameCountKnown:
    count: int


@dataclass(frozen=True)
class FrameIdxChanged:
    idx: int


@dataclass(frozen=True)
class FrameReady:
    """Images ready to be displayed. pix2m is the depth [m] of one radial pixel."""
    data: BScanData
    paus_radial: np.ndarray
    us_radial: np.ndarray
    pix2m: float


@dataclass(frozen=True)
class PlaybackFinished:
    completed: bool  # False when stopped by pause()


@dataclass(frozen=True)
class StatusMessage:
    text: str
    is_error: bool = False
