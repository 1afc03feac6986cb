import bz2
import gzip
import io

import numpy as np
import pytest
import soundfile as sf

from core.convert import (
    clamp_loop, decode_mca, decode_mca_to_wav, encode_pcm_to_mca, encode_wav_to_mca,
)
from formats.mca_header import parse_header, resolve_offsets
from formats.mca_loader import load_mca
from formats.wav_io import build_wav, parse_wav


def test_short_silent_mono_file():
    data = encode_pcm_to_mca(np.zeros(8, dtype=np.int16), 1, 32000, version=4)
    assert len(data) == 0x64 + 8
    header = parse_header(data)
    assert header.version == 4
    assert header.num_samples == 8
    assert header.data_size == 8
    assert header.head_size == 0x64
    assert data[0x64:] == bytes(8)

    _, channels = decode_mca(data)
    assert channels[0].tolist() == [0] * 8


def test_loop_points_are_clamped():
    assert clamp_loop(-5, 10, 8) == (0, 8)
    assert clamp_loop(6, 2, 8) == (6, 6)
    assert clamp_loop(20, 30, 8) == (8, 8)

    data = encode_pcm_to_mca(np.zeros(100, dtype=np.int16), 1, 32000,
                             loop_start=-3, loop_end=10 ** 6)
    header = parse_header(data)
    assert (header.loop_start, header.loop_end) == (0, 100)


def test_mono_wav_round_trip(sine_pcm, snr_db):
    wav = build_wav(sine_pcm, 1, 32000)
    mca = encode_wav_to_mca(wav, version=3)
    back = parse_wav(decode_mca_to_wav(mca))
    assert back.channel_count == 1
    assert back.sample_rate == 32000
    assert back.samples.size == sine_pcm.size
    assert snr_db(sine_pcm, back.samples) > 20.0


def test_stereo_round_trip(stereo_pcm, snr_db):
    mca = encode_pcm_to_mca(stereo_pcm, 2, 32000, version=5)
    header = parse_header(mca)
    assert header.channel_count == 2
    assert header.num_samples == 1501
    # 108 frames per channel, padded to four 0x100 blocks each
    assert header.data_size == 2 * 4 * 0x100

    wav = decode_mca_to_wav(mca)
    read, rate = sf.read(io.BytesIO(wav), dtype="int16")
    assert rate == 32000
    assert read.shape == (1501, 2)

    left = stereo_pcm.reshape(-1, 2)[:, 0]
    assert snr_db(left, read[:, 0]) > 15.0


def test_version_and_interleave_from_environment(monkeypatch, stereo_pcm):
    monkeypatch.setenv("MCA_VERSION", "5")
    monkeypatch.setenv("MCA_INTERLEAVE", "0x80")
    mca = encode_pcm_to_mca(stereo_pcm, 2, 32000)
    header = parse_header(mca)
    assert header.version == 5
    assert header.interleave_block_size == 0x80
    offsets = resolve_offsets(mca, header)
    assert offsets.coef_offset == 0x38
    assert header.data_size == 2 * 7 * 0x80

    _, channels = decode_mca(mca)
    assert [c.size for c in channels] == [1501, 1501]


def test_bad_environment_value(monkeypatch):
    monkeypatch.setenv("MCA_VERSION", "four")
    with pytest.raises(ValueError):
        encode_pcm_to_mca(np.zeros(14, dtype=np.int16), 1, 32000)


@pytest.mark.parametrize("kwargs", [
    {"channel_count": 3},
    {"version": -1},
    {"version": 0x8000},
    {"interleave_block_size": 0},
])
def test_bad_encode_arguments(kwargs):
    args = {"samples": np.zeros(28, dtype=np.int16), "channel_count": 1, "sample_rate": 32000}
    args.update(kwargs)
    with pytest.raises(ValueError):
        encode_pcm_to_mca(**args)


def test_every_version_decodes(sine_pcm):
    reference = None
    for version in (0, 3, 4, 5, 6):
        mca = encode_pcm_to_mca(sine_pcm, 1, 32000, version=version)
        _, channels = decode_mca(mca)
        if reference is None:
            reference = channels[0]
        assert np.array_equal(channels[0], reference)


def test_compressed_container_loads(tmp_path):
    mca = encode_pcm_to_mca(np.zeros(30, dtype=np.int16), 1, 24000)
    path = tmp_path / "quiet.mca.gz"
    path.write_bytes(gzip.compress(mca))
    assert load_mca(str(path)) == mca

    renamed = tmp_path / "renamed.mca"
    renamed.write_bytes(bz2.compress(mca))
    assert load_mca(str(renamed)) == mca

    plain = tmp_path / "plain.mca"
    plain.write_bytes(mca)
    assert load_mca(str(plain)) == mca

    broken = tmp_path / "broken.mca.gz"
    broken.write_bytes(b"not gzip at all")
    with pytest.raises(ValueError):
        load_mca(str(broken))

    with pytest.raises(ValueError):
        load_mca(str(tmp_path / "missing.mca"))
