import logging
from typing import Optional, Tuple

import numpy as np
from scipy.signal import fftconvolve, hilbert

from .filters import firwin2
from .saft import TimeDelay, apply_saft
from ..data_objs.params import ReconParams

DEFAULT_NUMTAPS = 95


def apply_fir_filt(rf: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Convolve every A-line (column) of `rf` with `kernel`, keeping the input length."""
    return fftconvolve(rf, kernel[:, np.newaxis], mode="same", axes=0)


def envelope(rf: np.ndarray) -> np.ndarray:
    """Magnitude of the analytic signal along fast time."""
    return np.abs(hilbert(rf, axis=0))


def log_compress(env: np.ndarray, noise_floor: float, desired_dynamic_range: float) -> np.ndarray:
    """Map an envelope to 8 bit intensity.

    Values at or below `noise_floor` map to 0 and values `desired_dynamic_range`
    dB above it map to 255.
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        db = 20 * np.log10(env / noise_floor)
    db = np.nan_to_num(db, nan=0.0, neginf=0.0)
    scaled = np.clip(db / desired_dynamic_range, 0, 1) * 255
    return scaled.astype(np.uint8)


def orient(img: np.ndarray, flip: bool, rotate_offset: int) -> np.ndarray:
    """Mirror A-lines of frames acquired in reverse, then rotate by `rotate_offset` lines."""
    if flip:
        img = img[:, ::-1]
    return np.roll(img, rotate_offset, axis=1)


def recon_one_scan(params: ReconParams, rf: np.ndarray, flip: bool, dtype=np.float64,
                   numtaps: int = DEFAULT_NUMTAPS,
                   time_delay: Optional[TimeDelay] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Reconstruct one channel of one frame.

    Args:
        params (ReconParams): Filter and display parameters of this channel.
        rf (np.ndarray): Background subtracted RF of shape (samples, lines).
        flip (bool): Mirror the A-lines, see `ReconParams.flip`.
        dtype: np.float32 or np.float64. All intermediate arrays use this type.
        numtaps (int): FIR filter length.
        time_delay (TimeDelay): When given, the filtered RF goes through SAFT
            and its coherence factor weighted output replaces it.

    Returns:
        Tuple[np.ndarray, np.ndarray, np.ndarray]: Filtered RF, envelope and
            log compressed uint8 image, all of shape (samples, lines) and
            oriented for display.
    """
    kernel = firwin2(numtaps, params.filter_freq, params.filter_gain, dtype=dtype)
    rf_filt = apply_fir_filt(np.asarray(rf, dtype=dtype), kernel).astype(dtype, copy=False)

    if time_delay is not None:
        _, rf_filt = apply_saft(time_delay, rf_filt, dtype=dtype)
        logging.debug("Applied SAFT over depth [%d, %d)", time_delay.z_start, time_delay.z_end)

    rf_env = envelope(rf_filt).astype(dtype, copy=False)
    rf_log = log_compress(rf_env, params.noise_floor, params.desired_dynamic_range)

    rf_filt = orient(rf_filt, flip, params.rotate_offset)
    rf_env = orient(rf_env, flip, params.rotate_offset)
    rf_log = np.ascontiguousarray(orient(rf_log, flip, params.rotate_offset))
    return rf_filt, rf_env, rf_log
