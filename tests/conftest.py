import queue

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from pausrecon.data_objs import IOParams
from pausrecon.engine import DataProcWorker, EngineConfig
from pausrecon.image_loading import to_bin


def make_frames(n_frames: int, ioparams: IOParams, seed: int = 0) -> np.ndarray:
    """Noise around mid-scale with PA echoes on every 4th A-line and US echoes on every odd one.

    Echoes must differ across lines, the per-sample background removes anything common to all.
    """
    rng = np.random.default_rng(seed)
    shape = (n_frames, ioparams.samples_per_line, ioparams.alines_per_bscan)
    rf = 32768 + rng.normal(0, 50, size=shape)

    t = np.arange(40)
    burst = 2000 * np.sin(2 * np.pi * t / 8) * np.hanning(t.size)
    lines = np.arange(ioparams.alines_per_bscan)
    pa_depth = 200
    us_depth = ioparams.rf_size_PA + ioparams.rf_size_spacer + 400
    for line in lines[::4]:
        rf[:, pa_depth:pa_depth + t.size, line] += burst[np.newaxis]
    for line in lines[1::2]:
        rf[:, us_depth:us_depth + t.size, line] += burst[np.newaxis]
    return np.clip(rf, 0, 65535).astype(np.uint16)


def drain(q: queue.Queue) -> list:
    out = []
    while True:
        try:
            out.append(q.get_nowait())
        except queue.Empty:
            return out


@pytest.fixture
def small_ioparams() -> IOParams:
    return IOParams(samples_per_line=2048, alines_per_bscan=512, byte_offset=0, sample_width=2,
                    rf_size_PA=600, rf_size_spacer=48, rf_size_US=1200, offset_US=0, offset_PA=0)


@pytest.fixture
def frames(small_ioparams) -> np.ndarray:
    return make_frames(2, small_ioparams)


@pytest.fixture
def binfile(tmp_path, small_ioparams, frames):
    path = tmp_path / "scan.bin"
    to_bin(path, frames, small_ioparams)
    return path


@pytest.fixture
def worker(small_ioparams):
    w = DataProcWorker(queue.Queue(), EngineConfig(), ioparams=small_ioparams)
    yield w
    w.close()
