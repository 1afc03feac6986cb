# core/decoder.py

import numpy as np
from core.codec_utils import (
    BYTES_PER_FRAME, clamp16, coef_pairs, high_nibble, low_nibble,
)


class ChannelState:
    """Coefficient table plus the two history cells owned by one channel."""

    def __init__(self, coefs, hist1: int = 0, hist2: int = 0):
        self.coefs = coef_pairs(coefs)
        self.hist1 = int(hist1)
        self.hist2 = int(hist2)


def predict_sample(nibble: int, scale: int, coef1: int, coef2: int,
                   hist1: int, hist2: int) -> int:
    # Rounding bias 1024 is half of the final >> 11; saturate after the shift.
    acc = ((nibble * scale) << 11) + 1024 + (coef1 * hist1 + coef2 * hist2)
    return clamp16(acc >> 11)


def decode_frame(frame: bytes, state: ChannelState, out: list) -> None:
    """Decode one 8-byte frame into 14 samples appended to `out`; updates history."""
    head = frame[0]
    index = head >> 4
    if index >= len(state.coefs):
        raise ValueError(f"Frame header 0x{head:02X} selects coefficient pair {index}, only 0..7 exist.")
    scale = 1 << (head & 0xF)
    coef1, coef2 = state.coefs[index]
    hist1, hist2 = state.hist1, state.hist2

    for b in frame[1:BYTES_PER_FRAME]:
        # high nibble first
        for nib in (high_nibble(b), low_nibble(b)):
            sample = predict_sample(nib, scale, coef1, coef2, hist1, hist2)
            hist2 = hist1
            hist1 = sample
            out.append(sample)

    state.hist1, state.hist2 = hist1, hist2


def decode_channel(data: bytes, coefs, num_samples: int | None = None) -> np.ndarray:
    """
    Decode one channel's compressed stream.
    History starts at zero; trailing bytes short of a whole frame are ignored.
    When num_samples is given the output is trimmed to it.
    """
    state = ChannelState(coefs)
    n_frames = len(data) // BYTES_PER_FRAME
    out: list[int] = []
    for f in range(n_frames):
        off = f * BYTES_PER_FRAME
        decode_frame(data[off:off + BYTES_PER_FRAME], state, out)

    pcm = np.asarray(out, dtype=np.int16)
    if num_samples is not None and num_samples >= 0:
        pcm = pcm[:int(num_samples)]
    return pcm
