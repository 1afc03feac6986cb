# core/interleave.py

import numpy as np

DEFAULT_BLOCK_SIZE = 0x100

# ---------- compressed domain: fixed-size blocks ----------
def interleave_blocks(streams: list[bytes], block_size: int = DEFAULT_BLOCK_SIZE) -> bytes:
    """
    Round-robin per-channel byte streams in blocks of `block_size`.
    With more than one channel every stream is zero padded to a whole
    number of blocks (to the longest stream); a single stream passes through.
    """
    if block_size <= 0:
        raise ValueError(f"Bad interleave block size: {block_size}")
    if not streams:
        return b""
    if len(streams) == 1:
        return bytes(streams[0])

    longest = max(len(s) for s in streams)
    n_blocks = (longest + block_size - 1) // block_size
    padded = [bytes(s).ljust(n_blocks * block_size, b"\x00") for s in streams]

    out = bytearray()
    for k in range(n_blocks):
        lo = k * block_size
        for s in padded:
            out += s[lo:lo + block_size]
    return bytes(out)


def deinterleave_blocks(payload: bytes, channel_count: int,
                        block_size: int = DEFAULT_BLOCK_SIZE) -> list[bytes]:
    """Inverse of interleave_blocks; the last group may hold short blocks."""
    if channel_count < 1:
        raise ValueError(f"Bad channel count: {channel_count}")
    if block_size <= 0:
        raise ValueError(f"Bad interleave block size: {block_size}")
    if channel_count == 1:
        return [bytes(payload)]

    outs = [bytearray() for _ in range(channel_count)]
    pos = 0
    total = len(payload)
    while pos < total:
        for ch in range(channel_count):
            outs[ch] += payload[pos:pos + block_size]
            pos += block_size
    return [bytes(o) for o in outs]


# ---------- PCM domain: one sample per channel ----------
def split_channels(pcm: np.ndarray, channel_count: int) -> list[np.ndarray]:
    """Interleaved int16 samples -> one array per channel (a trailing partial group is dropped)."""
    pcm = np.asarray(pcm, dtype=np.int16).reshape(-1)
    usable = (pcm.size // channel_count) * channel_count
    frames = pcm[:usable].reshape(-1, channel_count)
    return [np.ascontiguousarray(frames[:, c]) for c in range(channel_count)]


def merge_channels(channels: list[np.ndarray]) -> np.ndarray:
    """Per-channel int16 arrays -> interleaved samples, cut to the shortest channel."""
    if not channels:
        return np.zeros((0,), dtype=np.int16)
    n = min(int(np.asarray(c).size) for c in channels)
    stacked = np.column_stack([np.asarray(c, dtype=np.int16)[:n] for c in channels])
    return stacked.reshape(-1).astype(np.int16, copy=False)
