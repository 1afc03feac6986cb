# cli/generate_test_signals.py
import os
import numpy as np
import soundfile as sf
from scipy import signal

from core.convert import encode_pcm_to_mca
from formats.mca_io import save_mca_file

DEFAULT_SR = 32000
OUT_DIR = os.path.join("test_signals")

# ---- Signal generators (float, -1..1) ----
def sine(freq, dur, sr):
    t = np.linspace(0, dur, int(sr * dur), endpoint=False)
    return np.sin(2 * np.pi * freq * t)

def square(freq, duty, dur, sr):
    t = np.linspace(0, dur, int(sr * dur), endpoint=False)
    duty = np.clip(duty, 0.0, 1.0)
    return signal.square(2 * np.pi * freq * t, duty=duty)

def triangle(freq, dur, sr):
    t = np.linspace(0, dur, int(sr * dur), endpoint=False)
    return signal.sawtooth(2 * np.pi * freq * t, width=0.5)

def sawtooth(freq, dur, sr):
    t = np.linspace(0, dur, int(sr * dur), endpoint=False)
    return signal.sawtooth(2 * np.pi * freq * t, width=1.0)

def chirp_linear(f0, f1, dur, sr):
    t = np.linspace(0, dur, int(sr * dur), endpoint=False)
    return signal.chirp(t, f0=f0, f1=f1, t1=dur, method="linear")

def impulse(dur, sr):
    n = int(sr * dur)
    y = np.zeros(n, dtype=np.float64)
    if n > 0:
        y[0] = 1.0
    return y

def silence(dur, sr):
    return np.zeros(int(sr * dur), dtype=np.float64)

def white_noise(dur, sr, std=0.3, seed=None):
    rng = np.random.default_rng(seed)
    return rng.normal(0.0, std, int(sr * dur))

GENERATORS = {
    "sine": lambda a: sine(a.freq, a.duration, a.sr),
    "square": lambda a: square(a.freq, 0.5, a.duration, a.sr),
    "triangle": lambda a: triangle(a.freq, a.duration, a.sr),
    "sawtooth": lambda a: sawtooth(a.freq, a.duration, a.sr),
    "chirp": lambda a: chirp_linear(a.freq, a.freq_end, a.duration, a.sr),
    "impulse": lambda a: impulse(a.duration, a.sr),
    "silence": lambda a: silence(a.duration, a.sr),
    "noise": lambda a: white_noise(a.duration, a.sr, seed=a.seed),
}


def to_pcm16(y: np.ndarray, amp: float = 1.0) -> np.ndarray:
    """Float signal -> int16, scaled by amp and clipped to full scale."""
    y = np.clip(np.asarray(y, dtype=np.float64) * float(amp), -1.0, 1.0)
    return np.rint(y * 32767.0).astype(np.int16)

def to_stereo(left: np.ndarray, right: np.ndarray | None = None) -> np.ndarray:
    """Two int16 channels -> (n, 2) frames; right defaults to a copy of left."""
    right = left if right is None else right
    n = min(left.size, right.size)
    return np.column_stack([left[:n], right[:n]]).astype(np.int16)


# ---- I/O helpers ----
def _ensure_outdir(out_dir):
    os.makedirs(out_dir, exist_ok=True)

def save_wav(path, pcm: np.ndarray, sr: int):
    _ensure_outdir(os.path.dirname(os.path.abspath(path)))
    sf.write(path, pcm, sr, subtype="PCM_16")
    print(f"✅ Saved: {path}")

def save_mca(path, pcm: np.ndarray, sr: int, version: int = 4):
    channels = 1 if pcm.ndim == 1 else pcm.shape[1]
    data = encode_pcm_to_mca(pcm.reshape(-1), channels, sr, version=version)
    save_mca_file(path, data)
    print(f"✅ Saved: {path}")


def main_cli(argv=None) -> int:
    import argparse
    parser = argparse.ArgumentParser(description="Generate 16-bit PCM test signals (WAV and/or MCA)")
    parser.add_argument("kind", choices=sorted(GENERATORS))
    parser.add_argument("--freq", type=float, default=440.0)
    parser.add_argument("--freq-end", type=float, default=4000.0, help="End frequency for chirp")
    parser.add_argument("--duration", type=float, default=1.0)
    parser.add_argument("--sr", type=int, default=DEFAULT_SR)
    parser.add_argument("--amp", type=float, default=0.8)
    parser.add_argument("--stereo", action="store_true")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--mca", action="store_true", help="Also write an .mca next to the .wav")
    parser.add_argument("--version", type=int, default=4)
    parser.add_argument("--out-dir", default=OUT_DIR)
    args = parser.parse_args(argv)

    if args.duration <= 0:
        print("❌ Duration must be > 0.")
        return 1
    if not (8000 <= args.sr <= 192000):
        print("❌ Sample rate out of sane range (8k–192k).")
        return 1

    pcm = to_pcm16(GENERATORS[args.kind](args), args.amp)
    if args.stereo:
        pcm = to_stereo(pcm)

    base = f"{args.kind}_{int(args.freq)}Hz_{args.duration:.2f}s" + ("_stereo" if args.stereo else "")
    wav_path = os.path.join(args.out_dir, base + ".wav")
    save_wav(wav_path, pcm, args.sr)
    if args.mca:
        save_mca(wav_path + ".mca", pcm, args.sr, version=args.version)
    return 0


if __name__ == "__main__":
    raise SystemExit(main_cli())
