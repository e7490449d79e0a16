import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional

import cv2
import numpy as np

from ..exceptions import ScanIOError


def write_image(img: np.ndarray, path: Path) -> Path:
    if not cv2.imwrite(str(path), img):
        raise ScanIOError(f"Failed to write image {path}")
    return path


class ImageWriter:
    """
    Fire-and-forget PNG writer backed by a thread pool.

    Every submitted image is copied first, so the caller may reuse or mutate
    its buffer immediately. Failures are logged and passed to `on_error`.
    """

    def __init__(self, max_workers: int = 4, on_error: Optional[Callable[[str], None]] = None):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ImageWriter")
        self._pending: List[Future] = []
        self.on_error = on_error

    def _write(self, img: np.ndarray, path: Path) -> Optional[Path]:
        try:
            return write_image(img, path)
        except (OSError, cv2.error) as e:
            logging.error("Background image write failed: %s", e)
            if self.on_error is not None:
                self.on_error(str(e))
            return None

    def submit(self, img: np.ndarray, path: Path) -> Future:
        future = self._pool.submit(self._write, img.copy(), Path(path))
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(future)
        return future

    def flush(self) -> None:
        """Block until every submitted write has finished."""
        for future in list(self._pending):
            future.result()
        self._pending = []

    def shutdown(self) -> None:
        self._pool.shutdown(wait=True)
