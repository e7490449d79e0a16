import math

import numpy as np

from ..exceptions import ConfigError


def hamming_window(numtaps: int, dtype=np.float64) -> np.ndarray:
    """Symmetric Hamming window of length `numtaps`."""
    i = np.arange(numtaps, dtype=dtype)
    return 0.54 - 0.46 * np.cos(2 * np.pi * i / (numtaps - 1))


def interp(x: np.ndarray, xp: np.ndarray, fp: np.ndarray) -> np.ndarray:
    """1D linear interpolation for non-descending sample points `xp`.

    Values left of `xp[0]` take `fp[0]` and values right of `xp[-1]` take
    `fp[-1]`. A repeated point in `xp` implements a discontinuity: `x` equal to
    the repeated point takes the value left of the jump.
    """
    x = np.asarray(x)
    xp = np.asarray(xp, dtype=x.dtype)
    fp = np.asarray(fp, dtype=x.dtype)
    if xp.shape != fp.shape or xp.size < 2:
        raise ConfigError("xp and fp must have the same size and at least two elements")

    lower = np.searchsorted(xp, x, side="left")
    hi = np.clip(lower, 1, xp.size - 1)
    x0, x1 = xp[hi - 1], xp[hi]
    f0, f1 = fp[hi - 1], fp[hi]

    denom = x1 - x0
    t = np.divide(x - x0, denom, out=np.zeros_like(x), where=denom != 0)
    fx = f0 + t * (f1 - f0)

    fx = np.where(lower == 0, fp[0], fx)
    fx = np.where(lower >= xp.size, fp[-1], fx)
    return fx


def firwin2(numtaps: int, freq, gain, nfreqs: int = 0, fs: float = 2.0, dtype=np.float64) -> np.ndarray:
    """FIR filter design using the window method.

    From the given frequencies `freq` and corresponding gains `gain`, construct
    a linear phase FIR filter with approximately that frequency response. A
    Hamming window is applied to the result. Follows `scipy.signal.firwin2`.

    Args:
        numtaps (int): Number of taps. Must be odd, >= 3 and less than `nfreqs`.
        freq (array_like): Non-descending frequency sampling points from 0 to
            `fs/2`. A value may be repeated once to implement a discontinuity.
        gain (array_like): Filter gains at the frequency sampling points.
        nfreqs (int): Size of the interpolation mesh. Defaults to one more than
            the smallest power of 2 not less than `numtaps`.
        fs (float): Sampling frequency. Default 2, so Nyquist is 1.
        dtype: Floating point type of the returned coefficients.

    Returns:
        np.ndarray: The `numtaps` filter coefficients.

    Raises:
        ConfigError: If any of the above constraints is violated.
    """
    if numtaps < 3 or numtaps % 2 == 0:
        raise ConfigError("numtaps must be odd and greater or equal to 3.")

    freq = np.asarray(freq, dtype=np.float64)
    gain = np.asarray(gain, dtype=np.float64)
    nyq = 0.5 * fs

    if freq.ndim != 1 or freq.shape != gain.shape:
        raise ConfigError("freq and gain must be 1-D arrays of the same length.")
    if freq.size < 2:
        raise ConfigError("freq and gain must have at least two elements.")
    if freq[0] != 0 or freq[-1] > nyq:
        raise ConfigError("freq must start with 0 and end at most at fs/2.")
    if np.any(np.diff(freq) < 0):
        raise ConfigError("The values in freq must be nondecreasing.")

    if nfreqs == 0:
        nfreqs = 1 + 2 ** int(math.ceil(math.log2(numtaps)))
    if nfreqs <= numtaps:
        raise ConfigError(f"nfreqs ({nfreqs}) must be greater than numtaps ({numtaps}).")

    # Linearly interpolate the desired response on a uniform mesh `x`
    x = np.linspace(0.0, nyq, nfreqs)
    fx = interp(x, freq, gain)

    # Adjust the phase so the first `numtaps` samples of the inverse FFT
    # are the desired filter coefficients
    shift = np.exp(-(numtaps - 1) / 2.0 * 1j * np.pi * x / nyq)
    fx2 = fx * shift

    # np.fft.irfft already normalizes by the transform length
    out_full = np.fft.irfft(fx2, n=2 * (nfreqs - 1))

    out = out_full[:numtaps] * hamming_window(numtaps)
    return out.astype(dtype, copy=False)
