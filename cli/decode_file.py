# cli/decode_file.py
import os
import numpy as np
from formats.mca_loader import load_mca
from formats.mca_header import parse_header, resolve_offsets
from core.convert import decode_mca
from core.interleave import merge_channels
from formats.wav_io import write_wav


def _default_wav_path(input_path: str) -> str:
    return input_path + ".wav"

def decode_file(input_path=None, output_path=None) -> str | None:
    """Decode an .mca (optionally .gz/.bz2/.xz/.zst) to a 16-bit PCM WAV."""
    if input_path is None or not input_path.strip():
        input_path = input("📂 Enter .mca file to decode: ").strip()
    if not input_path:
        print("⚠️ No input path provided.")
        return None
    if not os.path.exists(input_path):
        print(f"Couldn't open file {input_path}.")
        return None

    output_path = output_path or _default_wav_path(input_path)

    print(f"📂 Loading: {input_path}")
    data = load_mca(input_path)

    header = parse_header(data)
    print(f"🧩 Version: {header.version}   🎚 Channels: {header.channel_count}   "
          f"🎶 Sample rate: {header.sample_rate} Hz   📏 Samples: {header.num_samples}")

    print("🔄 Decoding...")
    header, channels = decode_mca(data)
    pcm = merge_channels(channels)

    sr = header.sample_rate
    dur = channels[0].size / float(sr) if sr > 0 and channels else 0.0
    peak = int(np.max(np.abs(pcm.astype(np.int32)))) if pcm.size else 0
    print(f"🕒 Duration: {dur:.2f} s   🔊 Peak: {peak}")

    print(f"💽 Writing WAV: {output_path}")
    write_wav(output_path, pcm, header.channel_count, sr)
    print("✅ Decode complete.")
    return output_path


def describe_file(input_path: str) -> dict:
    """Parsed header plus resolved offsets, for inspection."""
    data = load_mca(input_path)
    header = parse_header(data)
    offsets = resolve_offsets(data, header)
    info = {
        "file_size": len(data),
        "version": header.version,
        "channels": header.channel_count,
        "interleave": header.interleave_block_size,
        "num_samples": header.num_samples,
        "sample_rate": header.sample_rate,
        "loop_start": header.loop_start,
        "loop_end": header.loop_end,
        "declared_head_size": header.head_size,
        "data_size": header.data_size,
        "coef_shift": header.coef_shift,
        "head_size": offsets.head_size,
        "coef_start": offsets.coef_start,
        "coef_offset": offsets.coef_offset,
        "start_offset": offsets.start_offset,
        "recovered": offsets.recovered,
    }
    return info


def print_file_info(input_path: str) -> None:
    info = describe_file(input_path)
    print(f"\n🔎 {input_path}")
    print("=====================")
    for key, value in info.items():
        if isinstance(value, int) and not isinstance(value, bool) and key.endswith(("offset", "start", "size")):
            print(f"  {key:<20} 0x{value:X}")
        else:
            print(f"  {key:<20} {value}")
