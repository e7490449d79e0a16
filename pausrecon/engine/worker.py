import copy
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from ..data_export.images import ImageWriter
from ..data_objs.events import FrameCountKnown, FrameIdxChanged, FrameReady, PlaybackFinished, StatusMessage
from ..data_objs.frame import BScanData, PAUSpair, PerformanceMetrics
from ..data_objs.params import IOParams, ReconParams, ReconParams2
from ..exceptions import ComputeError, ConfigError, FrameIndexError, PausReconError, ScanIOError
from ..image_loading.binfile import BinfileLoader
from ..processing.recon import recon_one_scan
from ..processing.saft import SaftDelayParams, TimeDelay
from ..splitting.options import background, split_rf_paus
from ..visualizations.radial import make_overlay, make_radial

FLOAT_TYPES = {"float32": np.float32, "float64": np.float64}
CHANNELS = ("PA", "US")


@dataclass
class EngineConfig:
    """Engine settings that do not change while a binfile is played."""
    float_type: str = "float64"
    sound_speed: float = 1500.0  # [m/s]
    sample_rate: float = 180e6  # [Hz]
    final_size: int = 0  # side of the radial images, 0 keeps the natural size
    write_images: bool = True
    use_async: bool = True  # reconstruct PA and US concurrently
    saft_enabled: bool = False
    saft_channels: tuple = ("PA",)
    writer_threads: int = 4
    numtaps: int = 95

    def __post_init__(self):
        if self.float_type not in FLOAT_TYPES:
            raise ConfigError(f"float_type must be one of {', '.join(FLOAT_TYPES)}, got '{self.float_type}'")
        self.saft_channels = tuple(self.saft_channels)
        for name in self.saft_channels:
            if name not in CHANNELS:
                raise ConfigError(f"Unknown SAFT channel '{name}'")

    @property
    def dtype(self):
        return FLOAT_TYPES[self.float_type]

    @classmethod
    def from_dict(cls, config: dict) -> "EngineConfig":
        names = {f.name for f in fields(cls)}
        unknown = set(config) - names
        if unknown:
            raise ConfigError(f"Unknown engine config keys: {', '.join(sorted(unknown))}")
        return cls(**config)


def _ms_since(t0: float) -> float:
    return (time.perf_counter() - t0) * 1e3


class DataProcWorker:
    """
    Reconstructs frames of one binfile and plays them back.

    All methods except `pause`, `update_params` and the queries must be called
    from a single thread (see `EngineThread`). Results and status messages are
    put on the `events` queue in the order they are produced.

    States: not ready (no binfile), ready (binfile open and frame 0 processed),
    playing (`play` is advancing frames).
    """

    def __init__(self, events: Optional[queue.Queue] = None, config: Optional[EngineConfig] = None,
                 params: Optional[ReconParams2] = None, ioparams: Optional[IOParams] = None):
        self.events = events if events is not None else queue.Queue()
        self.config = config or EngineConfig()

        self._params_lock = threading.Lock()
        self._params = params or ReconParams2.system2024v1()
        self._ioparams = ioparams or IOParams.system2024v1()

        self._playing = threading.Event()
        self._ready = False
        self.frame_idx = 0

        self._loader = BinfileLoader(self._ioparams)
        self._binfile_path: Optional[Path] = None
        self._image_save_dir: Optional[Path] = None
        self._rf_buf: Optional[np.ndarray] = None
        self._time_delay: Optional[TimeDelay] = None
        self.data: Optional[BScanData] = None

        self._recon_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="Recon")
        self._writer = ImageWriter(self.config.writer_threads,
                                   on_error=lambda msg: self.status(f"Failed to save image: {msg}", True))

    # ---- notifications ----

    def _emit(self, event) -> None:
        self.events.put(event)

    def status(self, text: str, is_error: bool = False) -> None:
        if is_error:
            logging.error(text)
        else:
            logging.info(text)
        self._emit(StatusMessage(text, is_error))

    # ---- queries ----

    def is_ready(self) -> bool:
        return self._ready

    def is_playing(self) -> bool:
        return self._playing.is_set()

    def get_binfile_path(self) -> Optional[Path]:
        return self._binfile_path

    def get_image_save_dir(self) -> Optional[Path]:
        return self._image_save_dir

    def frame_count(self) -> int:
        return self._loader.size()

    def get_params(self) -> Tuple[ReconParams2, IOParams]:
        """Copy of the live parameters."""
        with self._params_lock:
            return copy.deepcopy(self._params), copy.deepcopy(self._ioparams)

    # ---- parameters ----

    def update_params(self, params: ReconParams2, ioparams: IOParams) -> bool:
        """Replace the live parameters. Takes effect from the next processed frame.

        Invalid parameters are reported and the previous ones are kept.
        """
        try:
            params.validate()
            ioparams.sample_dtype()
        except ConfigError as e:
            self.status(f"Rejected parameter update: {e}", True)
            return False
        with self._params_lock:
            self._params = copy.deepcopy(params)
            self._ioparams = copy.deepcopy(ioparams)
        return True

    def reset_params(self) -> None:
        with self._params_lock:
            self._params = ReconParams2.system2024v1()
            self._ioparams = IOParams.system2024v1()
        self.status("Parameters reset to system defaults.")

    def save_params_to_file(self) -> bool:
        """Persist the live parameters as params.json and ioparams.json in the image save dir."""
        if self._image_save_dir is None:
            self.status("Cannot save parameters: no binfile loaded", True)
            return False
        params, ioparams = self.get_params()
        try:
            params.serialize_to_file(self._image_save_dir / "params.json")
            ioparams.serialize_to_file(self._image_save_dir / "ioparams.json")
        except ScanIOError as e:
            self.status(str(e), True)
            return False
        return True

    # ---- playback ----

    def set_binfile(self, path) -> bool:
        """Open `path`, create its image save dir and process frame 0.

        On failure the previously loaded binfile, if any, stays active.
        """
        path = Path(path)
        save_dir = path.parent / path.stem

        _, ioparams = self.get_params()
        try:
            loader = BinfileLoader(ioparams, str(path))
        except (ScanIOError, ConfigError) as e:
            self.status(f"Failed to load binfile: {e}", True)
            return False

        try:
            save_dir.mkdir(exist_ok=True)
        except OSError as e:
            loader.close()
            self.status(f"Failed to create image save dir {save_dir}: {e}", True)
            return False

        self._loader.close()
        self._loader = loader
        self._binfile_path = path
        self._image_save_dir = save_dir
        self._rf_buf = None
        self._ready = False
        self.status(f"Saving images to {save_dir}")
        self._emit(FrameCountKnown(loader.size()))

        self.save_params_to_file()
        self._ready = self.play_one(0)
        return self._ready

    def play(self) -> None:
        """Process frames from the current index until the end of the file or `pause`."""
        self._playing.set()
        completed = False
        try:
            self._sync_loader(self.get_params()[1])
            while self._playing.is_set() and self.frame_idx < self._loader.size():
                self.play_one(self.frame_idx)
                self.frame_idx += 1
            completed = self._playing.is_set()
        finally:
            self._playing.clear()
            # Keep the index on a valid frame so replay_one still works
            if self._loader.size() and self.frame_idx >= self._loader.size():
                self.frame_idx = self._loader.size() - 1
            self.status("Finished." if completed else "Paused.")
            self._emit(PlaybackFinished(completed))

    def pause(self) -> None:
        """Stop playback after the frame in flight."""
        self._playing.clear()

    def play_one(self, idx: int) -> bool:
        if not self._loader.is_open():
            self.status("No binfile loaded", True)
            return False
        self._sync_loader(self.get_params()[1])
        if not 0 <= idx < self._loader.size():
            self.status(f"Frame index {idx} out of range [0, {self._loader.size()})", True)
            return False
        self.frame_idx = idx
        return self.process_current_frame()

    def replay_one(self) -> bool:
        """Reprocess the current frame, e.g. after a parameter change."""
        return self.play_one(self.frame_idx)

    # ---- per frame ----

    def _saft_time_delay(self) -> TimeDelay:
        if self._time_delay is None:
            self._time_delay = SaftDelayParams.make().compute_saft_time_delay()
            logging.info("Computed SAFT delay table for depth [%d, %d)",
                         self._time_delay.z_start, self._time_delay.z_end)
        return self._time_delay

    def _sync_loader(self, ioparams: IOParams) -> None:
        if self._loader.geometry_matches(ioparams):
            return
        self._loader.set_params(ioparams)
        self._rf_buf = None
        logging.info("Binfile geometry changed, %d frames", self._loader.size())
        self._emit(FrameCountKnown(self._loader.size()))

    def process_current_frame(self) -> bool:
        """Reconstruct the current frame. Every failure is reported and drops the frame."""
        try:
            self._process_frame()
        except (ScanIOError, FrameIndexError, ConfigError) as e:
            self.status(f"Frame {self.frame_idx}: {e}", True)
            return False
        except Exception as e:
            if not isinstance(e, PausReconError):
                logging.exception("Unexpected error reconstructing frame %d", self.frame_idx)
                e = ComputeError(f"{type(e).__name__}: {e}")
            self.status(f"Frame {self.frame_idx} dropped: {e}", True)
            return False
        return True

    def _recon_channel(self, name: str, params: ReconParams, rf: np.ndarray, flip: bool):
        cfg = self.config
        time_delay = None
        if cfg.saft_enabled and name in cfg.saft_channels:
            time_delay = self._saft_time_delay()
        rf_filt, rf_env, rf_log = recon_one_scan(params, rf, flip, cfg.dtype, cfg.numtaps, time_delay)
        radial = make_radial(rf_log, cfg.final_size)
        return rf_filt, rf_env, rf_log, radial

    def _process_frame(self) -> None:
        cfg = self.config
        metrics = PerformanceMetrics()
        t_frame = time.perf_counter()
        idx = self.frame_idx

        # Copy out, so the lock is never held during compute
        params, ioparams = self.get_params()
        self._sync_loader(ioparams)

        t0 = time.perf_counter()
        self._rf_buf = self._loader.get(idx, out=self._rf_buf)
        metrics.fileloader_ms = _ms_since(t0)

        t0 = time.perf_counter()
        bg = background(self._rf_buf, cfg.dtype)
        rf_pair = split_rf_paus(self._rf_buf, bg, ioparams, cfg.dtype)
        metrics.split_ms = _ms_since(t0)

        flip = ReconParams.flip(idx)
        if cfg.saft_enabled:
            self._saft_time_delay()

        t0 = time.perf_counter()
        if cfg.use_async:
            futures = {name: self._recon_pool.submit(self._recon_channel, name, getattr(params, name),
                                                     getattr(rf_pair, name), flip)
                       for name in CHANNELS}
            # Join both before anything is published
            wait(futures.values())
            results = {name: f.result() for name, f in futures.items()}
        else:
            results = {name: self._recon_channel(name, getattr(params, name), getattr(rf_pair, name), flip)
                       for name in CHANNELS}
        metrics.recon_ms = _ms_since(t0)

        def pair(i):
            return PAUSpair(PA=results["PA"][i], US=results["US"][i])

        radial = pair(3)
        fct_rect = cfg.sound_speed / cfg.sample_rate / 2  # [m] per sample, 2x travel path
        fct = fct_rect * rf_pair.US.shape[0] / (radial.US.shape[0] / 2)

        t0 = time.perf_counter()
        paus_radial = make_overlay(radial.US, radial.PA)
        metrics.overlay_ms = _ms_since(t0)

        # Writers take their own copies of the images
        t0 = time.perf_counter()
        if cfg.write_images and self._image_save_dir is not None:
            self._writer.submit(radial.US, self._image_save_dir / f"US_{idx:03d}.png")
            self._writer.submit(radial.PA, self._image_save_dir / f"PA_{idx:03d}.png")
            self._writer.submit(paus_radial, self._image_save_dir / f"PAUS_{idx:03d}.png")
        metrics.write_images_ms = _ms_since(t0)
        metrics.total_ms = _ms_since(t_frame)

        # The read buffer is reused by the next frame
        data = BScanData(frame_idx=idx, rf=self._rf_buf.copy(), rf_pair=rf_pair, rf_filt=pair(0),
                         rf_env=pair(1), rf_log=pair(2), radial=radial, paus_radial=paus_radial,
                         fct=fct, metrics=metrics,
                         saft_channels=cfg.saft_channels if cfg.saft_enabled else ())
        self.data = data
        self._emit(FrameReady(data, paus_radial, radial.US, fct))
        self._emit(FrameIdxChanged(idx))

        self.status(f"Frame {idx}/{self._loader.size()} took {int(metrics.total_ms)} ms. {metrics}")

    def flush_writes(self) -> None:
        """Block until every queued image write has finished."""
        self._writer.flush()

    def close(self) -> None:
        self.pause()
        self._writer.shutdown()
        self._recon_pool.shutdown(wait=True)
        self._loader.close()
