# cli/encode_file.py

import os, math
import numpy as np

from core.convert import decode_mca, encode_pcm_to_mca
from core.interleave import merge_channels
from formats.mca_io import save_mca_file
from formats.wav_io import read_wav


def _human(n: int) -> str:
    units = ["B","KB","MB","GB","TB"]
    s = float(n)
    for u in units:
        if s < 1024 or u == units[-1]:
            return f"{s:.2f} {u}"
        s /= 1024.0

def quality_report(source: np.ndarray, recon: np.ndarray) -> dict:
    """Peak error and classic SNR of a decoded result against its source PCM."""
    n = min(source.size, recon.size)
    ref = source[:n].astype(np.float64)
    test = recon[:n].astype(np.float64)
    err = ref - test
    mse = float(np.mean(err ** 2)) if n else 0.0
    power = float(np.mean(ref ** 2)) if n else 0.0
    snr = 10.0 * math.log10((power + 1e-12) / (mse + 1e-12))
    return {
        "samples": int(n),
        "length_match": bool(source.size == recon.size),
        "peak_error": int(np.max(np.abs(err))) if n else 0,
        "mse": mse,
        "snr_db": snr,
    }

def _print_report(rep: dict):
    print("\n📊 Encode Quality")
    print("================================")
    print(f"📏 Samples     : {rep['samples']}  (length match: {rep['length_match']})")
    print(f"🎯 Peak error  : {rep['peak_error']}")
    print(f"📶 SNR (classic): {rep['snr_db']:.2f} dB")
    print("================================")


def encode_file(input_path=None, output_path=None, version=None,
                loop_start: int = 0, loop_end: int = 0, report: bool = True) -> str | None:
    """Encode a 16-bit PCM WAV to .mca, then decode it again for a quality report."""
    if input_path is None or not input_path.strip():
        input_path = input("📂 Enter .wav file to encode: ").strip()
    if not input_path:
        print("⚠️ No input path provided.")
        return None
    if not os.path.exists(input_path):
        print(f"Couldn't open file {input_path}.")
        return None

    output_path = output_path or (input_path + ".mca")

    print(f"📂 Loading: {input_path}")
    wav = read_wav(input_path)
    print(f"🎚 Channels: {wav.channel_count}   🎶 Sample rate: {wav.sample_rate} Hz   "
          f"📏 Samples: {wav.num_samples}")

    print("🔄 Encoding...")
    mca = encode_pcm_to_mca(wav.samples, wav.channel_count, wav.sample_rate,
                            version=version, loop_start=loop_start, loop_end=loop_end)

    print(f"💾 Saving .mca → {output_path}")
    save_mca_file(output_path, mca)
    print(f"🎧 Source WAV: {_human(os.path.getsize(input_path))}   📦 MCA: {_human(len(mca))}")
    print(f"✅ .mca saved: {output_path}")

    if report:
        _header, channels = decode_mca(mca)
        _print_report(quality_report(wav.samples, merge_channels(channels)))
    return output_path
