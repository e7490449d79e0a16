import numpy as np

from .functions import *
from ..data_objs.frame import PAUSpair
from ..data_objs.params import IOParams
from ..exceptions import ConfigError


def get_split_rules() -> dict:
    """Get PA/US de-multiplexing rules keyed by channel layout.

    Returns:
        dict: Dictionary of split rules.
    """
    functions = {}
    for name, obj in globals().items():
        if type(obj) is dict:
            try:
                if callable(obj['func']) and obj['func'].__module__ == 'pausrecon.splitting.functions':
                    functions[obj['layout']] = {}
                    functions[obj['layout']]['func'] = obj['func']
                    functions[obj['layout']]['name'] = name
            except KeyError:
                pass

    return functions


def background(rf: np.ndarray, dtype=np.float64) -> np.ndarray:
    """Mean over A-lines of every sample row, shape (samples, 1)."""
    return rf.mean(axis=1, dtype=dtype, keepdims=True)


def split_rf_paus(rf: np.ndarray, bg: np.ndarray, ioparams: IOParams, dtype=np.float64) -> PAUSpair:
    """Subtract the background and split one raw frame into PA and US RF.

    Args:
        rf (np.ndarray): Raw frame of shape (samples_per_line, alines_per_bscan).
        bg (np.ndarray): Per-sample background, see `background`.
        ioparams (IOParams): Geometry and channel layout.
        dtype: Floating point type of the returned RF.

    Returns:
        PAUSpair: PA and US RF, each of shape (samples, lines).

    Raises:
        ConfigError: If the frame does not match the geometry or the layout
            is unknown or cannot be applied.
    """
    expected = (ioparams.samples_per_line, ioparams.alines_per_bscan)
    if rf.shape != expected:
        raise ConfigError(f"RF shape {rf.shape} does not match IOParams geometry {expected}")

    rules = get_split_rules()
    try:
        rule = rules[ioparams.channel_layout]['func']
    except KeyError:
        raise ConfigError(f"Unknown channel layout '{ioparams.channel_layout}'. "
                          f"Available layouts: {', '.join(rules.keys())}") from None

    rf_sub = np.asarray(rf, dtype=dtype) - np.asarray(bg, dtype=dtype)
    return rule(rf_sub, ioparams)
