# core/codec_utils.py
import numpy as np

# ---------- nibble table ----------
# 4-bit slot -> signed residual. Slots 8..15 are the negative half.
NIBBLE_TO_SBYTE = (0, 1, 2, 3, 4, 5, 6, 7, -8, -7, -6, -5, -4, -3, -2, -1)

SAMPLES_PER_FRAME = 14
BYTES_PER_FRAME = 8
COEF_PAIRS = 8

def high_nibble(value: int) -> int:
    return NIBBLE_TO_SBYTE[(value >> 4) & 0xF]

def low_nibble(value: int) -> int:
    return NIBBLE_TO_SBYTE[value & 0xF]

def decode_nibble(slot: int) -> int:
    return NIBBLE_TO_SBYTE[slot & 0xF]

def encode_nibble(value: int) -> int:
    """Signed residual in [-8, 7] -> 4-bit slot (two's complement low nibble)."""
    if value < -8 or value > 7:
        raise ValueError(f"Residual out of 4-bit range: {value}")
    return value & 0xF

def pack_nibbles(residuals) -> bytes:
    """
    Pack signed residuals two per byte, first one in the high nibble.
    An odd count is completed with a zero low nibble.
    """
    vals = [int(v) for v in residuals]
    if len(vals) % 2:
        vals.append(0)
    out = bytearray()
    for i in range(0, len(vals), 2):
        out.append((encode_nibble(vals[i]) << 4) | encode_nibble(vals[i + 1]))
    return bytes(out)

def unpack_nibbles(data: bytes) -> list[int]:
    out = []
    for b in data:
        out.append(high_nibble(b))
        out.append(low_nibble(b))
    return out


# ---------- fixed-point helpers ----------
def clamp16(value: int) -> int:
    if value < -32768:
        return -32768
    if value > 32767:
        return 32767
    return value

def cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero (C semantics, not Python's floor)."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


# ---------- array helpers ----------
def as_pcm16(samples) -> np.ndarray:
    """Coerce any integer sequence (or raw little-endian bytes) to a 1-D int16 array."""
    if isinstance(samples, (bytes, bytearray, memoryview)):
        raw = bytes(samples)
        raw = raw[:(len(raw) // 2) * 2]
        return np.frombuffer(raw, dtype="<i2").astype(np.int16)
    arr = np.asarray(samples)
    if arr.dtype != np.int16:
        arr = np.clip(arr.astype(np.int64), -32768, 32767).astype(np.int16)
    return arr.reshape(-1)

def pad_to_multiple(arr: np.ndarray, unit: int) -> np.ndarray:
    arr = np.asarray(arr)
    rem = arr.size % unit
    if rem == 0:
        return arr
    return np.pad(arr, (0, unit - rem), mode="constant")

def frame_count(num_samples: int) -> int:
    return (int(num_samples) + SAMPLES_PER_FRAME - 1) // SAMPLES_PER_FRAME

def coef_pairs(coefs) -> tuple:
    """(8, 2) or flat 16-value coefficient table -> tuple of 8 (coef1, coef2) int pairs."""
    table = np.asarray(coefs, dtype=np.int64).reshape(-1)
    if table.size != 2 * COEF_PAIRS:
        raise ValueError(f"Coefficient table needs {2 * COEF_PAIRS} values, got {table.size}")
    return tuple((int(table[2 * i]), int(table[2 * i + 1])) for i in range(COEF_PAIRS))
