from dataclasses import dataclass, field, fields
from typing import Generic, TypeVar

import numpy as np

T = TypeVar("T")


@dataclass
class PAUSpair(Generic[T]):
    """A photoacoustic / ultrasound pair of anything."""
    PA: T
    US: T


@dataclass
class PerformanceMetrics:
    """Per-stage timings of one frame (ms)."""
    fileloader_ms: float = 0.0
    split_ms: float = 0.0
    recon_ms: float = 0.0
    overlay_ms: float = 0.0
    write_images_ms: float = 0.0
    total_ms: float = 0.0

    def __str__(self) -> str:
        return " ".join(f"{f.name}: {getattr(self, f.name):.1f}" for f in fields(self))


@dataclass
class BScanData:
    """
    All intermediate and final data of one reconstructed frame.

    A new instance is created for every frame and handed to consumers by
    reference. Nothing in it changes after it has been published.
    """
    frame_idx: int
    rf: np.ndarray = None  # (samples, lines) raw
    rf_pair: PAUSpair = None  # background subtracted, split
    rf_filt: PAUSpair = None
    rf_env: PAUSpair = None
    rf_log: PAUSpair = None  # uint8
    radial: PAUSpair = None  # uint8 radial images
    paus_radial: np.ndarray = None  # BGR overlay
    fct: float = 0.0  # [m] depth of one radial pixel
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    saft_channels: tuple = ()  # channels that went through SAFT
