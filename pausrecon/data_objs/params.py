import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

import numpy as np

from ..exceptions import ConfigError, ScanIOError

SAMPLE_DTYPES = {1: "u1", 2: "u2", 4: "u4"}
BYTE_ORDERS = {"little": "<", "big": ">"}


def _write_json(doc: dict, path: Path) -> None:
    try:
        with open(path, "w") as f:
            json.dump(doc, f, indent=4)
    except OSError as e:
        raise ScanIOError(f"Failed to write {path}: {e}") from e


def _read_json(path: Path) -> dict:
    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise ScanIOError(f"Failed to read {path}: {e}") from e


@dataclass
class IOParams:
    """
    Binfile geometry and PA/US de-multiplexing rule.

    One A-line holds `samples_per_line` samples. In the "sequential" layout the
    PA window comes first, followed by a spacer and the US window.
    """
    samples_per_line: int = 8192
    alines_per_bscan: int = 1000
    byte_offset: int = 0
    sample_width: int = 2  # bytes
    endian: str = "little"
    channel_layout: str = "sequential"

    rf_size_PA: int = 2650
    rf_size_spacer: int = 87
    rf_size_US: int = 5300  # integer multiple of rf_size_PA
    offset_US: int = 350
    offset_PA: int = 215  # in addition to offset_US // 2

    _json_keys = {
        "samples_per_line": "samplesPerLine",
        "alines_per_bscan": "alinesPerBscan",
        "byte_offset": "byteOffset",
        "sample_width": "sampleWidth",
        "endian": "endian",
        "channel_layout": "channelLayout",
        "rf_size_PA": "rfSizePA",
        "rf_size_spacer": "rfSizeSpacer",
        "rf_size_US": "rfSizeUS",
        "offset_US": "offsetUS",
        "offset_PA": "offsetPA",
    }

    @staticmethod
    def system2024v1() -> "IOParams":
        """Config for the late 2023 to 2024 acquisition system."""
        return IOParams()

    def sample_dtype(self) -> np.dtype:
        """Numpy dtype of one stored sample, including its byte order."""
        if self.sample_width not in SAMPLE_DTYPES:
            raise ConfigError(f"Unsupported sample width {self.sample_width} (expected 1, 2 or 4 bytes)")
        if self.endian not in BYTE_ORDERS:
            raise ConfigError(f"Unsupported endian '{self.endian}' (expected 'little' or 'big')")
        return np.dtype(BYTE_ORDERS[self.endian] + SAMPLE_DTYPES[self.sample_width])

    def scan_size_bytes(self) -> int:
        """Raw RF size of one PAUS scan in bytes."""
        return self.samples_per_line * self.alines_per_bscan * self.sample_width

    def serialize(self) -> dict:
        return {key: getattr(self, name) for name, key in self._json_keys.items()}

    @classmethod
    def deserialize(cls, obj: dict) -> "IOParams":
        try:
            return cls(**{name: obj[key] for name, key in cls._json_keys.items()})
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Invalid IOParams document: missing or bad key {e}") from e

    def serialize_to_file(self, path) -> None:
        _write_json(self.serialize(), Path(path))

    @classmethod
    def deserialize_from_file(cls, path) -> "IOParams":
        return cls.deserialize(_read_json(Path(path)))


@dataclass
class ReconParams:
    """Reconstruction parameters of one channel."""
    filter_freq: List[float]
    filter_gain: List[float]
    noise_floor: int
    desired_dynamic_range: int  # dB
    rotate_offset: int  # A-lines

    _json_keys = {
        "filter_freq": "filterFreq",
        "filter_gain": "filterGain",
        "noise_floor": "noiseFloor",
        "desired_dynamic_range": "desiredDynamicRange",
        "rotate_offset": "rotateOffset",
    }

    @staticmethod
    def flip(frame_idx: int) -> bool:
        """Consecutive frames are acquired in alternating rotation directions."""
        return frame_idx % 2 == 0

    def validate(self) -> None:
        freq = np.asarray(self.filter_freq, dtype=float)
        gain = np.asarray(self.filter_gain, dtype=float)
        if freq.ndim != 1 or freq.shape != gain.shape:
            raise ConfigError("filter_freq and filter_gain must be 1-D and of the same length")
        if freq.size < 2:
            raise ConfigError("filter_freq must have at least two elements")
        if freq[0] != 0:
            raise ConfigError("filter_freq must start with 0")
        if np.any(np.diff(freq) < 0):
            raise ConfigError("filter_freq must be non-descending")
        if np.any((freq < 0) | (freq > 1)) or np.any((gain < 0) | (gain > 1)):
            raise ConfigError("filter_freq and filter_gain values must be in [0, 1]")
        if self.noise_floor <= 0:
            raise ConfigError("noise_floor must be positive")
        if self.desired_dynamic_range <= 0:
            raise ConfigError("desired_dynamic_range must be positive")

    def serialize(self) -> dict:
        out = {key: getattr(self, name) for name, key in self._json_keys.items()}
        out["filterFreq"] = list(out["filterFreq"])
        out["filterGain"] = list(out["filterGain"])
        return out

    @classmethod
    def deserialize(cls, obj: dict) -> "ReconParams":
        try:
            params = cls(**{name: obj[key] for name, key in cls._json_keys.items()})
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Invalid ReconParams document: missing or bad key {e}") from e
        params.filter_freq = [float(v) for v in params.filter_freq]
        params.filter_gain = [float(v) for v in params.filter_gain]
        return params


@dataclass
class ReconParams2:
    PA: ReconParams
    US: ReconParams

    @staticmethod
    def system2024v1() -> "ReconParams2":
        PA = ReconParams([0, 0.03, 0.035, 0.2, 0.22, 1], [0, 0, 1, 1, 0, 0], 300, 35, 25)
        US = ReconParams([0, 0.1, 0.3, 1], [0, 1, 1, 0], 200, 48, 25)
        return ReconParams2(PA, US)

    def validate(self) -> None:
        for name in ("PA", "US"):
            try:
                getattr(self, name).validate()
            except ConfigError as e:
                raise ConfigError(f"{name}: {e}") from e

    def serialize(self) -> dict:
        return {"PA": self.PA.serialize(), "US": self.US.serialize()}

    @classmethod
    def deserialize(cls, doc: dict) -> "ReconParams2":
        if not isinstance(doc, dict) or "PA" not in doc or "US" not in doc:
            raise ConfigError("ReconParams2 document must contain 'PA' and 'US' objects")
        return cls(ReconParams.deserialize(doc["PA"]), ReconParams.deserialize(doc["US"]))

    def serialize_to_file(self, path) -> None:
        _write_json(self.serialize(), Path(path))
        logging.debug("Saved ReconParams2 to %s", path)

    @classmethod
    def deserialize_from_file(cls, path) -> "ReconParams2":
        return cls.deserialize(_read_json(Path(path)))
