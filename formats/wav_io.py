# formats/wav_io.py
"""16-bit PCM WAV read/write through soundfile (libsndfile)."""
from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
import soundfile as sf

WAV_FORMAT = "WAV"
WAV_FORMATS = ("WAV", "WAVEX")
PCM_SUBTYPE = "PCM_16"
SUPPORTED_CHANNELS = (1, 2)


class WAVError(ValueError):
    """Unsupported or malformed WAV input."""


@dataclass
class WAVInfo:
    channel_count: int
    sample_rate: int
    subtype: str
    samples: np.ndarray  # interleaved int16

    @property
    def num_samples(self) -> int:
        """Samples per channel."""
        return int(self.samples.size) // max(1, self.channel_count)


def _read(source, name: str) -> WAVInfo:
    try:
        with sf.SoundFile(source) as f:
            if f.format not in WAV_FORMATS or f.subtype != PCM_SUBTYPE:
                raise WAVError(f"Only 16bit PCM WAV supported ({name}: {f.format}/{f.subtype}).")
            if f.channels not in SUPPORTED_CHANNELS:
                raise WAVError(f"Only mono and stereo WAVs are supported (channels={f.channels}).")
            data = f.read(dtype="int16", always_2d=True)
            channels, rate, subtype = f.channels, f.samplerate, f.subtype
    except RuntimeError as e:
        # LibsndfileError: not a sound file, truncated header, ...
        raise WAVError(f"Unsupported WAV: {name} ({e})")
    return WAVInfo(channels, rate, subtype, np.ascontiguousarray(data).reshape(-1))


def parse_wav(data: bytes) -> WAVInfo:
    """WAV bytes -> WAVInfo. Only 16-bit PCM, mono or stereo, is accepted."""
    return _read(io.BytesIO(data), "<bytes>")


def read_wav(path: str) -> WAVInfo:
    return _read(path, path)


def _frames(samples, channel_count: int) -> np.ndarray:
    pcm = np.asarray(samples, dtype=np.int16).reshape(-1)
    return pcm.reshape(-1, channel_count)


def build_wav(samples: np.ndarray, channel_count: int, sample_rate: int) -> bytes:
    """Interleaved int16 samples -> WAV bytes."""
    buf = io.BytesIO()
    sf.write(buf, _frames(samples, channel_count), sample_rate,
             format=WAV_FORMAT, subtype=PCM_SUBTYPE)
    return buf.getvalue()


def write_wav(path: str, samples: np.ndarray, channel_count: int, sample_rate: int) -> None:
    sf.write(path, _frames(samples, channel_count), sample_rate,
             format=WAV_FORMAT, subtype=PCM_SUBTYPE)
