import numpy as np
import pytest
from scipy import signal


def _snr_db(ref: np.ndarray, test: np.ndarray) -> float:
    ref = ref.astype(np.float64)
    test = test.astype(np.float64)
    num = float(np.mean(ref ** 2)) + 1e-12
    den = float(np.mean((ref - test) ** 2)) + 1e-12
    return 10.0 * np.log10(num / den)


@pytest.fixture
def snr_db():
    return _snr_db


@pytest.fixture
def sine_pcm():
    sr = 32000
    t = np.arange(3000) / sr
    return np.rint(16000 * np.sin(2 * np.pi * 440.0 * t)).astype(np.int16)


@pytest.fixture
def chirp_pcm():
    sr = 32000
    t = np.arange(4000) / sr
    y = signal.chirp(t, f0=200.0, f1=3000.0, t1=t[-1], method="linear")
    return np.rint(12000 * y).astype(np.int16)


@pytest.fixture
def stereo_pcm():
    """Interleaved stereo: sine left, square-ish right, odd sample count."""
    sr = 32000
    t = np.arange(1501) / sr
    left = np.rint(10000 * np.sin(2 * np.pi * 300.0 * t)).astype(np.int16)
    right = np.rint(6000 * signal.square(2 * np.pi * 150.0 * t)).astype(np.int16)
    return np.column_stack([left, right]).reshape(-1)
