import logging
import queue
import threading
from pathlib import Path
from typing import List, Optional

from .worker import DataProcWorker, EngineConfig
from ..data_objs.params import IOParams, ReconParams2


class EngineThread:
    """
    Runs a `DataProcWorker` on its own thread.

    Operations are posted to a command queue and executed in order on the
    engine thread. `pause` and `update_params` act immediately, as they only
    touch the playing flag and the lock guarded parameters. Everything the
    worker produces arrives on `events`.
    """

    def __init__(self, config: Optional[EngineConfig] = None, params: Optional[ReconParams2] = None,
                 ioparams: Optional[IOParams] = None):
        self.events: queue.Queue = queue.Queue()
        self.worker = DataProcWorker(self.events, config, params, ioparams)
        self._commands: queue.Queue = queue.Queue()
        self._thread = threading.Thread(target=self._run, name="DataProcWorker", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while True:
            item = self._commands.get()
            try:
                if item is None:
                    return
                func, args = item
                try:
                    func(*args)
                except Exception as e:
                    logging.exception("Engine command %s failed", func.__name__)
                    self.worker.status(f"{func.__name__} failed: {e}", True)
            finally:
                self._commands.task_done()

    def _post(self, func, *args) -> None:
        self._commands.put((func, args))

    def set_binfile(self, path) -> None:
        self._post(self.worker.set_binfile, Path(path))

    def play(self) -> None:
        self._post(self.worker.play)

    def play_one(self, idx: int) -> None:
        self._post(self.worker.play_one, idx)

    def replay_one(self) -> None:
        self._post(self.worker.replay_one)

    def reset_params(self) -> None:
        self._post(self.worker.reset_params)

    def save_params_to_file(self) -> None:
        self._post(self.worker.save_params_to_file)

    def pause(self) -> None:
        self.worker.pause()

    def update_params(self, params: ReconParams2, ioparams: IOParams) -> bool:
        return self.worker.update_params(params, ioparams)

    def apply_params(self, params: ReconParams2, ioparams: IOParams) -> bool:
        """Update the parameters and, unless playing, repaint the current frame with them."""
        if not self.worker.update_params(params, ioparams):
            return False
        if self.worker.is_ready() and not self.worker.is_playing():
            self.replay_one()
            self.save_params_to_file()
        return True

    def is_ready(self) -> bool:
        return self.worker.is_ready()

    def is_playing(self) -> bool:
        return self.worker.is_playing()

    def get_binfile_path(self) -> Optional[Path]:
        return self.worker.get_binfile_path()

    def get_image_save_dir(self) -> Optional[Path]:
        return self.worker.get_image_save_dir()

    def wait_idle(self) -> None:
        """Block until every posted command has run."""
        self._commands.join()

    def drain_events(self) -> List:
        out = []
        while True:
            try:
                out.append(self.events.get_nowait())
            except queue.Empty:
                return out

    def stop(self) -> None:
        self.worker.pause()
        self._commands.put(None)
        self._thread.join()
        self.worker.close()
