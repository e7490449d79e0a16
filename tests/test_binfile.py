import numpy as np
import pytest

from pausrecon.data_objs import IOParams
from pausrecon.exceptions import FrameIndexError, ScanIOError
from pausrecon.image_loading import BinfileLoader, load_bin, swap_endian_inplace, to_bin

TINY = IOParams(samples_per_line=64, alines_per_bscan=16, byte_offset=128, sample_width=2)


def tiny_frames(n, dtype=np.uint16):
    vals = np.arange(n * TINY.samples_per_line * TINY.alines_per_bscan) % 60000
    return vals.reshape(n, TINY.samples_per_line, TINY.alines_per_bscan).astype(dtype)


@pytest.mark.parametrize("k", [0, 1, 5, 100])
def test_size_counts_complete_frames(tmp_path, k):
    path = tmp_path / "scan.bin"
    path.write_bytes(bytes(TINY.byte_offset + k * TINY.scan_size_bytes()))
    loader = BinfileLoader(TINY, str(path))
    assert loader.size() == k
    loader.close()


def test_size_ignores_trailing_partial_frame(tmp_path):
    path = tmp_path / "scan.bin"
    path.write_bytes(bytes(TINY.byte_offset + 3 * TINY.scan_size_bytes() + 10))
    assert BinfileLoader(TINY, str(path)).size() == 3


def test_size_zero_when_not_open():
    loader = BinfileLoader(TINY)
    assert not loader.is_open()
    assert loader.size() == 0
    assert not loader.has_more_scans()


def test_open_missing_file(tmp_path):
    loader = BinfileLoader(TINY)
    with pytest.raises(ScanIOError):
        loader.open(str(tmp_path / "missing.bin"))
    with pytest.raises(OSError):
        loader.open(str(tmp_path / "missing.bin"))
    assert not loader.is_open()


def test_get_reads_line_major_frames(tmp_path):
    frames = tiny_frames(3)
    path = tmp_path / "scan.bin"
    to_bin(path, frames, TINY)

    loader = BinfileLoader(TINY, str(path))
    assert loader.size() == 3
    for i in range(3):
        rf = loader.get(i)
        assert rf.shape == (TINY.samples_per_line, TINY.alines_per_bscan)
        np.testing.assert_array_equal(rf, frames[i])


def test_get_reuses_buffer(tmp_path):
    frames = tiny_frames(2)
    path = tmp_path / "scan.bin"
    to_bin(path, frames, TINY)
    loader = BinfileLoader(TINY, str(path))

    buf = loader.get(0)
    out = loader.get(1, out=buf)
    assert out is buf
    np.testing.assert_array_equal(out, frames[1])

    # wrong shape is reallocated
    out = loader.get(0, out=np.empty((3, 3), dtype=np.uint16))
    assert out.shape == (TINY.samples_per_line, TINY.alines_per_bscan)


def test_get_next_and_has_more_scans(tmp_path):
    frames = tiny_frames(2)
    path = tmp_path / "scan.bin"
    to_bin(path, frames, TINY)
    loader = BinfileLoader(TINY, str(path))

    seen = []
    while loader.has_more_scans():
        seen.append(loader.get_next().copy())
    assert len(seen) == 2
    np.testing.assert_array_equal(seen[1], frames[1])


def test_get_out_of_range(tmp_path):
    path = tmp_path / "scan.bin"
    to_bin(path, tiny_frames(2), TINY)
    loader = BinfileLoader(TINY, str(path))
    with pytest.raises(FrameIndexError):
        loader.get(2)
    with pytest.raises(IndexError):
        loader.get(-1)
    with pytest.raises(FrameIndexError):
        loader.set_curr_idx(5)


def test_short_read(tmp_path):
    path = tmp_path / "scan.bin"
    to_bin(path, tiny_frames(2), TINY)
    loader = BinfileLoader(TINY, str(path))
    assert loader.size() == 2

    with open(path, "r+b") as f:
        f.truncate(TINY.byte_offset + TINY.scan_size_bytes() + 7)
    with pytest.raises(ScanIOError):
        loader.get(1)


def test_get_without_open():
    with pytest.raises(ScanIOError):
        BinfileLoader(TINY).get(0)


def test_set_params_recomputes_size(tmp_path):
    path = tmp_path / "scan.bin"
    to_bin(path, tiny_frames(4), TINY)
    loader = BinfileLoader(TINY, str(path))
    assert loader.size() == 4

    half = IOParams(samples_per_line=64, alines_per_bscan=8, byte_offset=128)
    assert not loader.geometry_matches(half)
    loader.set_params(half)
    assert loader.size() == 8
    assert loader.get(7).shape == (64, 8)


def test_big_endian(tmp_path):
    ioparams = IOParams(samples_per_line=64, alines_per_bscan=16, byte_offset=128, endian="big")
    frames = tiny_frames(2)
    path = tmp_path / "scan_be.bin"
    to_bin(path, frames, ioparams)

    loader = BinfileLoader(ioparams, str(path))
    np.testing.assert_array_equal(loader.get(1), frames[1])

    bulk = load_bin(str(path), ioparams)
    assert bulk.dtype.isnative
    np.testing.assert_array_equal(bulk, frames)

    # Reading with the wrong byte order and swapping recovers the data
    wrong = BinfileLoader(TINY, str(path)).get(1).copy()
    np.testing.assert_array_equal(swap_endian_inplace(wrong), frames[1])


def test_load_bin(tmp_path):
    frames = tiny_frames(3)
    path = tmp_path / "scan.bin"
    to_bin(path, frames, TINY)
    data = load_bin(str(path), TINY)
    assert data.shape == (3, 64, 16)
    np.testing.assert_array_equal(data, frames)


def test_load_bin_missing(tmp_path):
    with pytest.raises(ScanIOError):
        load_bin(str(tmp_path / "missing.bin"), TINY)
