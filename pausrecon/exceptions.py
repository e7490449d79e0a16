class PausReconError(Exception):
    """Base class for all reconstruction engine errors."""


class ScanIOError(PausReconError, OSError):
    """File open/read failure or output directory creation failure."""


class FrameIndexError(PausReconError, IndexError):
    """Requested frame index is outside of the open binfile."""


class ConfigError(PausReconError, ValueError):
    """Malformed filter design, mismatched shapes or invalid parameter file."""


class ComputeError(PausReconError, RuntimeError):
    """Unexpected numeric failure while reconstructing a frame."""
