# core/convert.py
import os

import numpy as np
from core.coefs import correlate_coefs
from core.decoder import decode_channel
from core.encoder import encode_channel
from core.interleave import (
    DEFAULT_BLOCK_SIZE, deinterleave_blocks, interleave_blocks, merge_channels,
    split_channels,
)
from formats.mca_header import parse_header, read_coef_tables, resolve_offsets
from formats.mca_io import build_mca_bytes
from formats.wav_io import build_wav, parse_wav


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw, 0)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")

def default_version() -> int:
    return _env_int("MCA_VERSION", 4)

def default_interleave() -> int:
    return _env_int("MCA_INTERLEAVE", DEFAULT_BLOCK_SIZE)


def clamp_loop(loop_start: int, loop_end: int, num_samples: int) -> tuple[int, int]:
    """Force 0 <= loop_start <= loop_end <= num_samples."""
    start = min(max(0, int(loop_start)), num_samples)
    end = min(max(start, int(loop_end)), num_samples)
    return start, end


# ---------------------------
# MCA -> WAV
# ---------------------------
def decode_mca(data: bytes):
    """
    Decode a container to (header, per-channel int16 arrays).
    Each channel runs with its own zeroed history and is cut to numSamples.
    """
    header = parse_header(data)
    offsets = resolve_offsets(data, header)
    tables = read_coef_tables(data, offsets.coef_offset, header.channel_count,
                              offsets.coef_spacing)

    payload = data[offsets.start_offset:offsets.start_offset + header.data_size]
    block = header.interleave_block_size if header.interleave_block_size > 0 else DEFAULT_BLOCK_SIZE
    streams = deinterleave_blocks(payload, header.channel_count, block)

    n = max(0, header.num_samples)
    channels = [decode_channel(s, t, n) for s, t in zip(streams, tables)]
    return header, channels


def decode_mca_to_wav(data: bytes) -> bytes:
    header, channels = decode_mca(data)
    return build_wav(merge_channels(channels), header.channel_count, header.sample_rate)


# ---------------------------
# WAV -> MCA
# ---------------------------
def encode_pcm_to_mca(samples, channel_count: int, sample_rate: int,
                      version: int | None = None, loop_start: int = 0, loop_end: int = 0,
                      interleave_block_size: int | None = None) -> bytes:
    """Interleaved int16 PCM -> MCA bytes."""
    if channel_count not in (1, 2):
        raise ValueError(f"Only mono and stereo are supported (channels={channel_count}).")
    version = default_version() if version is None else int(version)
    if version < 0:
        raise ValueError("Version can't be negative!")
    if version > 0x7FFF:
        raise ValueError(f"Version too large for the header: {version}")
    block = default_interleave() if interleave_block_size is None else int(interleave_block_size)
    if block <= 0 or block > 0x7FFF:
        raise ValueError(f"Bad interleave block size: {block}")

    pcm_channels = split_channels(np.asarray(samples, dtype=np.int16), channel_count)
    num_samples = int(pcm_channels[0].size)
    loop_start, loop_end = clamp_loop(loop_start, loop_end, num_samples)

    tables = [correlate_coefs(ch) for ch in pcm_channels]
    streams = [encode_channel(ch, t) for ch, t in zip(pcm_channels, tables)]
    payload = interleave_blocks(streams, block)

    return build_mca_bytes(
        version=version,
        sample_rate=sample_rate,
        num_samples=num_samples,
        loop_start=loop_start,
        loop_end=loop_end,
        coef_tables=tables,
        payload=payload,
        interleave_block_size=block,
    )


def encode_wav_to_mca(data: bytes, version: int | None = None,
                      loop_start: int = 0, loop_end: int = 0,
                      interleave_block_size: int | None = None) -> bytes:
    wav = parse_wav(data)
    return encode_pcm_to_mca(
        wav.samples, wav.channel_count, wav.sample_rate,
        version=version, loop_start=loop_start, loop_end=loop_end,
        interleave_block_size=interleave_block_size,
    )
