# core/encoder.py

import numpy as np
from core.codec_utils import (
    COEF_PAIRS, SAMPLES_PER_FRAME, as_pcm16, cdiv, clamp16, coef_pairs, frame_count,
    pack_nibbles, pad_to_multiple,
)

# float32 0.4999999 widened to double
_ROUND = 0.4999999105930328
_MAX_SCALE = 12


def _initial_scale(block: list, coef1: int, coef2: int) -> int:
    """Coarse scale guess from the largest raw prediction residual of the block."""
    distance = 0
    for s in range(SAMPLES_PER_FRAME):
        v1 = cdiv(block[s] * coef2 + block[s + 1] * coef1, 2048)
        v3 = clamp16(block[s + 2] - v1)
        if abs(v3) > abs(distance):
            distance = v3

    scale = 0
    while scale <= _MAX_SCALE and (distance > 7 or distance < -8):
        scale += 1
        distance = cdiv(distance, 2)
    return -1 if scale <= 1 else scale - 2


def _trial_encode(block: list, coef1: int, coef2: int, scale: int):
    """
    Quantize the 14 targets of `block` at one scale exponent, running the
    decoder's prediction on the reconstructed samples.
    Returns (residuals, reconstructed, squared_error, worst_overflow).
    """
    recon = [block[0], block[1]]
    residuals = []
    err = 0.0
    overflow = 0
    step = 1 << scale
    for s in range(SAMPLES_PER_FRAME):
        v1 = recon[s] * coef2 + recon[s + 1] * coef1
        v2 = (block[s + 2] << 11) - v1
        q = v2 / step / 2048
        v3 = int(q + _ROUND) if v2 > 0 else int(q - _ROUND)

        if v3 < -8:
            overflow = max(overflow, -8 - v3)
            v3 = -8
        elif v3 > 7:
            overflow = max(overflow, v3 - 7)
            v3 = 7
        residuals.append(v3)

        sample = clamp16((v1 + ((v3 * step) << 11) + 1024) >> 11)
        recon.append(sample)
        d = block[s + 2] - sample
        err += d * d
    return residuals, recon[2:], err, overflow


def _search_scale(block: list, coef1: int, coef2: int):
    scale = _initial_scale(block, coef1, coef2)
    while True:
        scale += 1
        used = scale
        residuals, recon, err, overflow = _trial_encode(block, coef1, coef2, used)

        x = overflow + 8
        while x > 256:
            scale += 1
            if scale >= _MAX_SCALE:
                scale = _MAX_SCALE - 1
            x >>= 1

        if used >= _MAX_SCALE or not (scale < _MAX_SCALE and overflow > 1):
            return used, residuals, recon, err


def encode_frame(block, coefs):
    """
    Encode one frame.

    block: 16 samples, [hist2, hist1, target_0 .. target_13].
    coefs: the channel's 8 coefficient pairs.

    Every coefficient index is tried; the one whose trial reconstruction has
    the smallest squared error wins, the lowest index on ties.
    Returns (frame_bytes, reconstructed_samples).
    """
    block = [int(v) for v in block]
    if len(block) != SAMPLES_PER_FRAME + 2:
        raise ValueError(f"Frame block needs {SAMPLES_PER_FRAME + 2} samples, got {len(block)}")
    pairs = coef_pairs(coefs)

    best_err = None
    best_index = 0
    best_scale = 0
    best_residuals = None
    best_recon = None
    for index in range(COEF_PAIRS):
        coef1, coef2 = pairs[index]
        scale, residuals, recon, err = _search_scale(block, coef1, coef2)
        if best_err is None or err < best_err:
            best_err = err
            best_index = index
            best_scale = scale
            best_residuals = residuals
            best_recon = recon

    header = ((best_index << 4) | (best_scale & 0xF)) & 0xFF
    return bytes([header]) + pack_nibbles(best_residuals), best_recon


def encode_channel(pcm, coefs) -> bytes:
    """
    Encode one channel of 16-bit PCM into 8-byte frames.
    The final partial frame is zero padded.
    """
    pairs = coef_pairs(coefs)
    pcm = as_pcm16(pcm)
    samples = pad_to_multiple(pcm, SAMPLES_PER_FRAME).astype(np.int64).tolist()

    out = bytearray()
    hist2, hist1 = 0, 0
    for f in range(frame_count(pcm.size)):
        block = [hist2, hist1] + samples[f * SAMPLES_PER_FRAME:(f + 1) * SAMPLES_PER_FRAME]
        frame, _recon = encode_frame(block, pairs)
        out += frame
        # next history is the source samples, not the reconstruction
        hist2, hist1 = block[-2], block[-1]
    return bytes(out)
