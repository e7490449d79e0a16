import numpy as np
from scipy.signal import resample_poly

from .decorators import channel_layout
from ..data_objs.frame import PAUSpair
from ..data_objs.params import IOParams
from ..exceptions import ConfigError


def _shift_down(rf: np.ndarray, offset: int) -> np.ndarray:
    """Roll `rf` by `offset` samples along fast time and zero the samples rolled in."""
    out = np.roll(rf, offset, axis=0)
    if offset > 0:
        out[:offset] = 0
    elif offset < 0:
        out[offset:] = 0
    return out


@channel_layout("sequential")
def sequential(rf: np.ndarray, ioparams: IOParams) -> PAUSpair:
    """
    Every A-line holds the PA window, a spacer, then the US window.

    The US window is acquired at an integer multiple of the PA window length,
    so PA is upsampled to match. Both offsets are in PA samples.
    """
    n_samples = rf.shape[0]
    us_start = ioparams.rf_size_PA + ioparams.rf_size_spacer
    us_end = us_start + ioparams.rf_size_US
    if ioparams.rf_size_PA <= 0 or ioparams.rf_size_US <= 0:
        raise ConfigError("rf_size_PA and rf_size_US must be positive")
    if us_end > n_samples:
        raise ConfigError(f"PA/US windows end at sample {us_end} but an A-line only holds {n_samples} samples")
    if ioparams.rf_size_US % ioparams.rf_size_PA != 0:
        raise ConfigError(f"rf_size_US ({ioparams.rf_size_US}) must be an integer multiple "
                          f"of rf_size_PA ({ioparams.rf_size_PA})")
    upsample = ioparams.rf_size_US // ioparams.rf_size_PA

    pa = _shift_down(rf[:ioparams.rf_size_PA], ioparams.offset_US // 2 + ioparams.offset_PA)
    us = _shift_down(rf[us_start:us_end], ioparams.offset_US)
    if upsample > 1:
        pa = resample_poly(pa, upsample, 1, axis=0)
    return PAUSpair(PA=np.ascontiguousarray(pa), US=np.ascontiguousarray(us))


@channel_layout("interleaved")
def interleaved(rf: np.ndarray, ioparams: IOParams) -> PAUSpair:
    """A-lines alternate between PA (even) and US (odd) firings."""
    if rf.shape[1] % 2 != 0:
        raise ConfigError(f"Interleaved layout needs an even number of A-lines, got {rf.shape[1]}")
    return PAUSpair(PA=np.ascontiguousarray(rf[:, 0::2]), US=np.ascontiguousarray(rf[:, 1::2]))
