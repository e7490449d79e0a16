# Standard Library Imports
import logging
import os
import threading
from pathlib import Path
from typing import Optional

# Third-Party Library Imports
import numpy as np

# Local Module Imports
from ..data_objs.params import IOParams
from ..exceptions import FrameIndexError, ScanIOError


def swap_endian_inplace(arr: np.ndarray) -> np.ndarray:
    """Swap the byte order of every element of `arr` in place.

    The dtype is left untouched, so this corrects data that was read with the
    wrong byte order.
    """
    arr.byteswap(inplace=True)
    return arr


def load_bin(path: str, ioparams: IOParams) -> np.ndarray:
    """Bulk load every complete frame of a binfile.

    Args:
        path (str): Path to the binfile.
        ioparams (IOParams): Geometry, sample width and byte order of the file.

    Returns:
        np.ndarray: Native-endian samples of shape (frames, samples, lines).
    """
    dtype = ioparams.sample_dtype()
    frame_values = ioparams.samples_per_line * ioparams.alines_per_bscan
    try:
        fsize = os.path.getsize(path)
        num_frames = max(fsize - ioparams.byte_offset, 0) // ioparams.scan_size_bytes()
        data = np.fromfile(path, dtype=dtype, count=num_frames * frame_values,
                           offset=ioparams.byte_offset)
    except OSError as e:
        raise ScanIOError(f"Failed to load {path}: {e}") from e

    data = data.reshape((num_frames, ioparams.alines_per_bscan, ioparams.samples_per_line))
    logging.info("Loaded %d frames from %s", num_frames, path)
    return np.ascontiguousarray(np.swapaxes(data, 1, 2)).astype(dtype.newbyteorder("="), copy=False)


def to_bin(path: str, data: np.ndarray, ioparams: Optional[IOParams] = None) -> None:
    """Write frames of shape (samples, lines) or (frames, samples, lines) to a binfile.

    A-lines are written contiguously, in the layout `BinfileLoader` reads.
    When `ioparams` is given, its sample width and byte order are used and
    `byte_offset` zero bytes are written as a header.
    """
    if data.ndim == 2:
        data = data[np.newaxis]
    dtype = data.dtype if ioparams is None else ioparams.sample_dtype()
    raw = np.ascontiguousarray(np.swapaxes(data, 1, 2), dtype=dtype)
    try:
        with open(path, "wb") as f:
            if ioparams is not None and ioparams.byte_offset:
                f.write(bytes(ioparams.byte_offset))
            f.write(raw.tobytes())
    except OSError as e:
        raise ScanIOError(f"Failed to write {path}: {e}") from e


class BinfileLoader:
    """
    Random access reader over a raw PAUS binfile.

    The loader is shared between sequential playback and single frame seeks,
    so the file position and current index are guarded by one lock.
    """

    def __init__(self, ioparams: Optional[IOParams] = None, path: Optional[str] = None):
        self._file = None
        self._path: Optional[Path] = None
        self._fsize = 0
        self.num_scans = 0
        self.curr_scan_idx = 0
        self._lock = threading.Lock()
        self.set_params(ioparams or IOParams.system2024v1())
        if path is not None:
            self.open(path)

    def set_params(self, ioparams: IOParams) -> None:
        """Update the geometry. Recomputes the frame count of an open file."""
        dtype = ioparams.sample_dtype()
        with self._lock:
            self.byte_offset = ioparams.byte_offset
            self.samples_per_line = ioparams.samples_per_line
            self.alines_per_bscan = ioparams.alines_per_bscan
            self.dtype = dtype
            if self._file is not None:
                self.num_scans = self._count_scans()

    def _count_scans(self) -> int:
        return max(self._fsize - self.byte_offset, 0) // self.scan_size_bytes()

    def geometry_matches(self, ioparams: IOParams) -> bool:
        return (self.byte_offset == ioparams.byte_offset
                and self.samples_per_line == ioparams.samples_per_line
                and self.alines_per_bscan == ioparams.alines_per_bscan
                and self.dtype == ioparams.sample_dtype())

    def open(self, path: str) -> None:
        """Open a binfile and derive the number of complete frames it holds.

        Raises:
            ScanIOError: If the file cannot be opened.
        """
        try:
            f = open(path, "rb")
            fsize = f.seek(0, os.SEEK_END)
        except OSError as e:
            raise ScanIOError(f"Failed to open file {path}: {e}") from e

        with self._lock:
            if self._file is not None:
                self._file.close()
            self._file = f
            self._path = Path(path)
            self._fsize = fsize
            self.num_scans = self._count_scans()
            self.curr_scan_idx = 0
            self._file.seek(self.byte_offset)
        logging.info("Opened %s: %d bytes, %d frames", path, fsize, self.num_scans)

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
            self._file = None
            self.num_scans = 0

    def is_open(self) -> bool:
        return self._file is not None

    def scan_size_bytes(self) -> int:
        """Raw RF size of one PAUS scan in bytes."""
        return self.samples_per_line * self.alines_per_bscan * self.dtype.itemsize

    def size(self) -> int:
        if not self.is_open():
            return 0
        return self.num_scans

    def _check_idx(self, idx: int) -> None:
        if not 0 <= idx < self.num_scans:
            raise FrameIndexError(f"Frame index {idx} out of range [0, {self.num_scans})")

    def set_curr_idx(self, idx: int) -> None:
        if not self.is_open():
            return
        with self._lock:
            self._check_idx(idx)
            self.curr_scan_idx = idx

    def has_more_scans(self) -> bool:
        if not self.is_open():
            return False
        with self._lock:
            return self.curr_scan_idx < self.num_scans

    def _alloc(self, out: Optional[np.ndarray]) -> np.ndarray:
        shape = (self.samples_per_line, self.alines_per_bscan)
        if out is not None and out.shape == shape and out.dtype == self.dtype and out.T.flags.c_contiguous:
            return out
        # A-lines are contiguous on disk. Allocate (lines, samples) and view it transposed.
        return np.empty(shape[::-1], dtype=self.dtype).T

    def get(self, idx: Optional[int] = None, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Read one frame.

        Args:
            idx (int): Frame index. Defaults to the current index.
            out (np.ndarray): Buffer returned by a previous call. Reused when its
                shape and dtype still match the geometry, reallocated otherwise.

        Returns:
            np.ndarray: RF samples of shape (samples_per_line, alines_per_bscan).

        Raises:
            ScanIOError: If no file is open or the read is short.
            FrameIndexError: If `idx` is outside of the file.
        """
        if not self.is_open():
            raise ScanIOError("No binfile is open")

        with self._lock:
            if idx is not None:
                self._check_idx(idx)
                self.curr_scan_idx = idx
            self._check_idx(self.curr_scan_idx)

            rf = self._alloc(out)
            size_bytes = self.scan_size_bytes()
            try:
                self._file.seek(self.byte_offset + size_bytes * self.curr_scan_idx)
                nread = self._file.readinto(rf.T)
            except OSError as e:
                raise ScanIOError(f"Failed to read frame {self.curr_scan_idx} from {self._path}: {e}") from e

        if nread != size_bytes:
            raise ScanIOError(f"Unexpected frame size at frame {self.curr_scan_idx}: "
                              f"Expected {size_bytes} bytes, got {nread}")
        return rf

    def get_next(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        rf = self.get(out=out)
        with self._lock:
            self.curr_scan_idx += 1
        return rf

    @property
    def path(self) -> Optional[Path]:
        return self._path
