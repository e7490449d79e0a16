import json

import numpy as np
import pytest

from pausrecon.data_objs import IOParams, ReconParams, ReconParams2
from pausrecon.exceptions import ConfigError, ScanIOError


def perturbed_params(seed: int) -> ReconParams2:
    rng = np.random.default_rng(seed)

    def one(n):
        freq = np.sort(rng.uniform(0, 1, n))
        freq[0] = 0
        return ReconParams(
            filter_freq=[float(v) for v in freq],
            filter_gain=[float(v) for v in rng.uniform(0, 1, n)],
            noise_floor=int(rng.integers(1, 1000)),
            desired_dynamic_range=int(rng.integers(10, 80)),
            rotate_offset=int(rng.integers(-100, 100)),
        )

    return ReconParams2(one(int(rng.integers(2, 10))), one(int(rng.integers(2, 10))))


def perturbed_ioparams(seed: int) -> IOParams:
    rng = np.random.default_rng(seed)
    return IOParams(
        samples_per_line=int(rng.integers(100, 10000)),
        alines_per_bscan=int(rng.integers(10, 2000)),
        byte_offset=int(rng.integers(0, 4096)),
        sample_width=int(rng.choice([1, 2, 4])),
        endian=str(rng.choice(["little", "big"])),
        channel_layout=str(rng.choice(["sequential", "interleaved"])),
        rf_size_PA=int(rng.integers(1, 3000)),
        rf_size_spacer=int(rng.integers(0, 100)),
        rf_size_US=int(rng.integers(1, 6000)),
        offset_US=int(rng.integers(-500, 500)),
        offset_PA=int(rng.integers(-500, 500)),
    )


def test_system_defaults():
    params = ReconParams2.system2024v1()
    assert params.PA.filter_freq == [0, 0.03, 0.035, 0.2, 0.22, 1]
    assert params.PA.filter_gain == [0, 0, 1, 1, 0, 0]
    assert (params.PA.noise_floor, params.PA.desired_dynamic_range, params.PA.rotate_offset) == (300, 35, 25)
    assert params.US.filter_freq == [0, 0.1, 0.3, 1]
    assert (params.US.noise_floor, params.US.desired_dynamic_range, params.US.rotate_offset) == (200, 48, 25)
    params.validate()

    ioparams = IOParams.system2024v1()
    assert ioparams.rf_size_US % ioparams.rf_size_PA == 0
    assert ioparams.scan_size_bytes() == 8192 * 1000 * 2


def test_recon_params_round_trip_default():
    params = ReconParams2.system2024v1()
    assert ReconParams2.deserialize(params.serialize()) == params


@pytest.mark.parametrize("seed", range(5))
def test_recon_params_round_trip_perturbed(seed, tmp_path):
    params = perturbed_params(seed)
    assert ReconParams2.deserialize(params.serialize()) == params

    path = tmp_path / "params.json"
    params.serialize_to_file(path)
    assert ReconParams2.deserialize_from_file(path) == params


def test_io_params_round_trip_default(tmp_path):
    ioparams = IOParams.system2024v1()
    assert IOParams.deserialize(ioparams.serialize()) == ioparams

    path = tmp_path / "ioparams.json"
    ioparams.serialize_to_file(path)
    assert IOParams.deserialize_from_file(path) == ioparams


@pytest.mark.parametrize("seed", range(5))
def test_io_params_round_trip_perturbed(seed, tmp_path):
    ioparams = perturbed_ioparams(seed)
    path = tmp_path / "ioparams.json"
    ioparams.serialize_to_file(path)
    assert IOParams.deserialize_from_file(path) == ioparams


def test_json_keys(tmp_path):
    path = tmp_path / "params.json"
    ReconParams2.system2024v1().serialize_to_file(path)
    with open(path) as f:
        doc = json.load(f)
    assert set(doc) == {"PA", "US"}
    assert set(doc["PA"]) == {"filterFreq", "filterGain", "noiseFloor", "desiredDynamicRange", "rotateOffset"}

    assert "samplesPerLine" in IOParams().serialize()
    assert "rfSizeUS" in IOParams().serialize()


def test_invalid_json_is_config_error(tmp_path):
    path = tmp_path / "params.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        ReconParams2.deserialize_from_file(path)
    with pytest.raises(ConfigError):
        IOParams.deserialize_from_file(path)


def test_missing_keys_are_config_error():
    with pytest.raises(ConfigError):
        ReconParams2.deserialize({"PA": ReconParams2.system2024v1().PA.serialize()})
    doc = ReconParams2.system2024v1().serialize()
    del doc["US"]["noiseFloor"]
    with pytest.raises(ConfigError):
        ReconParams2.deserialize(doc)
    with pytest.raises(ConfigError):
        IOParams.deserialize({"samplesPerLine": 10})


def test_missing_file_is_io_error(tmp_path):
    with pytest.raises(ScanIOError):
        ReconParams2.deserialize_from_file(tmp_path / "nope.json")


@pytest.mark.parametrize("freq,gain", [
    ([0.1, 1], [1, 0]),
    ([0, 0.6, 0.5, 1], [0, 1, 1, 0]),
    ([0, 1], [1, 0, 0]),
    ([0], [1]),
    ([0, 1.2], [1, 0]),
    ([0, 1], [1, 2]),
])
def test_validate_rejects(freq, gain):
    with pytest.raises(ConfigError):
        ReconParams(freq, gain, 100, 40, 0).validate()


def test_flip_alternates():
    assert ReconParams.flip(0)
    assert not ReconParams.flip(1)
    assert ReconParams.flip(2)


def test_sample_dtype():
    assert IOParams(sample_width=2, endian="little").sample_dtype() == np.dtype("<u2")
    assert IOParams(sample_width=4, endian="big").sample_dtype() == np.dtype(">u4")
    with pytest.raises(ConfigError):
        IOParams(sample_width=3).sample_dtype()
    with pytest.raises(ConfigError):
        IOParams(endian="middle").sample_dtype()
