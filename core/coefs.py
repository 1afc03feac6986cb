# core/coefs.py
"""
Derive the 8 second-order predictor pairs used by the ADPCM frames.

Each 14-sample frame (with the previous frame as lag context) yields a
small autocorrelation system. Frames with enough energy and a well
conditioned system are solved for a 2nd-order predictor, stored as
reflection-style "records". The records are averaged into one starting
predictor, which is then split 1 -> 2 -> 4 -> 8 and refined by assigning
each record to its closest predictor (a tiny vector quantizer). The final
predictors are scaled by 2048 to match the >> 11 of the frame formula.
"""
import math
import sys

import numpy as np
from core.codec_utils import COEF_PAIRS, SAMPLES_PER_FRAME, as_pcm16, pad_to_multiple

_EPS = sys.float_info.epsilon
_MIN_ENERGY = 10.0
_REFINE_PASSES = 2


# ---------- per-frame statistics (numpy) ----------
def frame_statistics(pcm) -> tuple[np.ndarray, np.ndarray]:
    """
    For every frame return
      vec: (F, 3)  -sum(x[n-i] * x[n]) for i = 0, 1, 2
      mtx: (F, 3, 3) sum(x[n-i] * x[n-j]) for i, j in 1..2 (row/col 0 unused)
    The previous frame supplies the lagged samples; frame 0 sees zeros.
    """
    x = pad_to_multiple(as_pcm16(pcm).astype(np.float64), SAMPLES_PER_FRAME)
    frames = x.reshape(-1, SAMPLES_PER_FRAME)
    n = frames.shape[0]
    if n == 0:
        return np.zeros((0, 3)), np.zeros((0, 3, 3))

    prev = np.vstack([np.zeros((1, SAMPLES_PER_FRAME)), frames[:-1]])
    win = np.hstack([prev, frames])
    cur = win[:, 14:28]
    lag1 = win[:, 13:27]
    lag2 = win[:, 12:26]

    vec = np.empty((n, 3), dtype=np.float64)
    vec[:, 0] = -np.sum(cur * cur, axis=1)
    vec[:, 1] = -np.sum(lag1 * cur, axis=1)
    vec[:, 2] = -np.sum(lag2 * cur, axis=1)

    mtx = np.zeros((n, 3, 3), dtype=np.float64)
    mtx[:, 1, 1] = np.sum(lag1 * lag1, axis=1)
    mtx[:, 1, 2] = np.sum(lag1 * lag2, axis=1)
    mtx[:, 2, 1] = mtx[:, 1, 2]
    mtx[:, 2, 2] = np.sum(lag2 * lag2, axis=1)
    return vec, mtx


# ---------- 2x2 solve with partial pivoting ----------
def _analyze_ranges(mtx: list, idx: list) -> bool:
    """LU-factorize mtx[1..2][1..2] in place; True when the system is degenerate."""
    recips = [0.0, 0.0, 0.0]
    for x in (1, 2):
        val = max(abs(mtx[x][1]), abs(mtx[x][2]))
        if val < _EPS:
            return True
        recips[x] = 1.0 / val

    max_index = 0
    for i in (1, 2):
        for x in range(1, i):
            tmp = mtx[x][i]
            for y in range(1, x):
                tmp -= mtx[x][y] * mtx[y][i]
            mtx[x][i] = tmp

        val = 0.0
        for x in range(i, 3):
            tmp = mtx[x][i]
            for y in range(1, i):
                tmp -= mtx[x][y] * mtx[y][i]
            mtx[x][i] = tmp
            tmp = abs(tmp) * recips[x]
            if tmp >= val:
                val = tmp
                max_index = x

        if max_index != i:
            for y in (1, 2):
                mtx[max_index][y], mtx[i][y] = mtx[i][y], mtx[max_index][y]
            recips[max_index] = recips[i]

        idx[i] = max_index

        if mtx[i][i] == 0.0:
            return True

        if i != 2:
            tmp = 1.0 / mtx[i][i]
            for x in range(i + 1, 3):
                mtx[x][i] *= tmp

    lo, hi = 1.0e10, 0.0
    for i in (1, 2):
        tmp = abs(mtx[i][i])
        lo = min(lo, tmp)
        hi = max(hi, tmp)
    return lo / hi < 1.0e-10


def _bidirectional_filter(mtx: list, idx: list, vec: list) -> None:
    """Forward/back substitution of the factorized system; solution lands in vec[1..2]."""
    x = 0
    for i in (1, 2):
        index = idx[i]
        tmp = vec[index]
        vec[index] = vec[i]
        if x != 0:
            for y in range(x, i):
                tmp -= vec[y] * mtx[i][y]
        elif tmp != 0.0:
            x = i
        vec[i] = tmp

    for i in (2, 1):
        tmp = vec[i]
        for y in range(i + 1, 3):
            tmp -= vec[y] * mtx[i][y]
        vec[i] = tmp / mtx[i][i]

    vec[0] = 1.0


def _quadratic_merge(vec: list) -> bool:
    """Predictor -> reflection form in place; True when it is unstable."""
    v2 = vec[2]
    tmp = 1.0 - v2 * v2
    if tmp == 0.0:
        return True
    v0 = (vec[0] - v2 * v2) / tmp
    v1 = (vec[1] - vec[1] * v2) / tmp
    vec[0] = v0
    vec[1] = v1
    return abs(v1) > 1.0


def _finish_record(vec: list) -> list:
    for z in (1, 2):
        if vec[z] >= 1.0:
            vec[z] = 0.9999999999
        elif vec[z] <= -1.0:
            vec[z] = -0.9999999999
    return [1.0, vec[2] * vec[1] + vec[1], vec[2]]


# ---------- record algebra ----------
def _matrix_filter(src: list) -> list:
    """Record -> autocorrelation-like vector (Levinson step-up in reverse)."""
    mtx = [[0.0] * 3 for _ in range(3)]
    mtx[2][0] = 1.0
    for i in (1, 2):
        mtx[2][i] = -src[i]

    # step down once; row 0 is never read, and for an exactly predictable
    # frame its divisor is 0
    val = 1.0 - mtx[2][2] * mtx[2][2]
    for y in (1, 2):
        mtx[1][y] = (mtx[2][2] * mtx[2][y] + mtx[2][y]) / val

    dst = [1.0, 0.0, 0.0]
    for i in (1, 2):
        acc = 0.0
        for y in range(1, i + 1):
            acc += mtx[i][y] * dst[i - y]
        dst[i] = acc
    return dst


def _merge_finish_record(src: list) -> list:
    """Levinson-Durbin on an averaged autocorrelation vector -> predictor."""
    dst = [1.0, 0.0, 0.0]
    val = src[0]
    for i in (1, 2):
        v2 = 0.0
        for y in range(1, i):
            v2 += dst[y] * src[i - y]

        if val > 0.0:
            dst[i] = -(v2 + src[i]) / val
        else:
            dst[i] = 0.0

        for y in range(1, i):
            dst[y] += dst[i] * dst[i - y]

        val *= 1.0 - dst[i] * dst[i]
    return dst


def _contrast_vectors(best: list, record: list) -> float:
    """Residual-energy distance between a candidate predictor and a record."""
    val = (record[2] * record[1] - record[1]) / (1.0 - record[2] * record[2])
    val1 = best[0] * best[0] + best[1] * best[1] + best[2] * best[2]
    val2 = best[0] * best[1] + best[1] * best[2]
    val3 = best[0] * best[2]
    return val1 + 2.0 * val * val2 + 2.0 * (-record[1] * val - record[2]) * val3


def _filter_records(vec_best: list, count: int, records: list) -> None:
    for _ in range(_REFINE_PASSES):
        hits = [0] * count
        sums = [[0.0, 0.0, 0.0] for _ in range(count)]

        for rec in records:
            index = 0
            value = 1.0e30
            for i in range(count):
                tmp = _contrast_vectors(vec_best[i], rec)
                if tmp < value:
                    value = tmp
                    index = i
            hits[index] += 1
            filtered = _matrix_filter(rec)
            for k in range(3):
                sums[index][k] += filtered[k]

        for i in range(count):
            if hits[i] > 0:
                sums[i] = [v / hits[i] for v in sums[i]]

        for i in range(count):
            vec_best[i] = _merge_finish_record(sums[i])


# ---------- quantization ----------
def _lround(d: float) -> int:
    # half away from zero
    return int(math.floor(d + 0.5)) if d >= 0 else -int(math.floor(-d + 0.5))

def _to_coef(value: float) -> int:
    d = -value * 2048.0
    if math.isnan(d):
        return 0
    if d > 0.0:
        return 32767 if d > 32767.0 else _lround(d)
    return -32768 if d < -32768.0 else _lround(d)


# ---------------- entry point ----------------
def collect_records(pcm) -> list:
    vec, mtx = frame_statistics(pcm)
    records = []
    for f in range(vec.shape[0]):
        v = [float(a) for a in vec[f]]
        if abs(v[0]) <= _MIN_ENERGY:
            continue
        m = [[float(a) for a in row] for row in mtx[f]]
        idx = [0, 0, 0]
        if _analyze_ranges(m, idx):
            continue
        _bidirectional_filter(m, idx, v)
        if _quadratic_merge(v):
            continue
        records.append(_finish_record(v))
    return records


def correlate_coefs(pcm) -> np.ndarray:
    """
    One channel of 16-bit PCM -> (8, 2) int16 table of (coef1, coef2) pairs.

    Silent or degenerate input produces no usable records; every pair then
    comes out as (0, 0).
    """
    records = collect_records(pcm)

    avg = [1.0, 0.0, 0.0]
    for rec in records:
        filtered = _matrix_filter(rec)
        avg[1] += filtered[1]
        avg[2] += filtered[2]
    if records:
        avg[1] /= len(records)
        avg[2] /= len(records)

    vec_best = [[0.0, 0.0, 0.0] for _ in range(COEF_PAIRS)]
    vec_best[0] = _merge_finish_record(avg)

    # split 1 -> 2 -> 4 -> 8 by nudging each predictor, then refine
    count = 1
    while count < COEF_PAIRS:
        nudge = (0.0, -1.0, 0.0)
        for i in range(count):
            vec_best[count + i] = [0.01 * nudge[y] + vec_best[i][y] for y in range(3)]
        count <<= 1
        _filter_records(vec_best, count, records)

    table = np.zeros((COEF_PAIRS, 2), dtype=np.int16)
    for z in range(COEF_PAIRS):
        table[z, 0] = _to_coef(vec_best[z][1])
        table[z, 1] = _to_coef(vec_best[z][2])
    return table
