# formats/mca_loader.py
import gzip
import bz2
import lzma

try:
    import zstandard as zstd
    HAS_ZSTD = True
except Exception:
    HAS_ZSTD = False

_ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"


def _unzstd(raw: bytes) -> bytes:
    if not HAS_ZSTD:
        raise RuntimeError("zstd file but `zstandard` is not installed. pip install zstandard")
    return zstd.ZstdDecompressor().decompress(raw, max_output_size=1 << 31)


# suffix -> unwrapper for the whole file content
_BY_SUFFIX = {
    ".gz": gzip.decompress,
    ".bz2": bz2.decompress,
    ".xz": lzma.decompress,
    ".lzma": lzma.decompress,
    ".zst": _unzstd,
}

# leading bytes -> unwrapper, for rips that were compressed and renamed
_BY_MAGIC = (
    (b"\x1f\x8b", gzip.decompress),
    (b"BZh", bz2.decompress),
    (b"\xfd7zXZ\x00", lzma.decompress),
    (_ZSTD_MAGIC, _unzstd),
)


def read_container_bytes(path: str) -> bytes:
    """Read a file and unwrap one compression layer, chosen by suffix or by content."""
    with open(path, "rb") as f:
        raw = f.read()

    lower = path.lower()
    for suffix, unwrap in _BY_SUFFIX.items():
        if lower.endswith(suffix):
            return unwrap(raw)

    if raw[:4] == b"MADP":
        return raw
    for magic, unwrap in _BY_MAGIC:
        if raw.startswith(magic):
            return unwrap(raw)
    return raw


def load_mca(path: str) -> bytes:
    """Load .mca bytes (plain or compressed); I/O and decompression errors become ValueError."""
    try:
        return read_container_bytes(path)
    except (OSError, EOFError, lzma.LZMAError) as e:
        raise ValueError(f"Failed to read file: {path} ({e})")
