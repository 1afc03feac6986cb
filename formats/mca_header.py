# formats/mca_header.py
"""
MCA ("MADP") container header.

Fixed 0x2C-byte little-endian header:

    magic[4] version:i16 reserved:i16 channels:i16 interleave:i16
    num_samples:i32 sample_rate:i32 loop_start:i32 loop_end:i32
    head_size:i32 data_size:i32 unused:f32 coef_shift:i16 unused:i16

Where the coefficient tables and the payload live depends on the version;
resolve_offsets() turns the declared fields plus the file length into the
concrete offsets.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

MAGIC = b"MADP"
HEADER_STRUCT = struct.Struct("<4shhhhiiiiiifhh")
HEADER_SIZE = HEADER_STRUCT.size  # 0x2C
RESERVED_SIZE = 8
COEF_SPACING = 0x30
COEF_BYTES = 0x20
COEF_SHIFT_UNIT = 0x14
DEFAULT_INTERLEAVE = 0x100
SUPPORTED_CHANNELS = (1, 2)


class MCAError(ValueError):
    """Fatal container problem."""


class HeaderMismatchError(MCAError):
    """headSize/dataSize disagree with the file length even after recovery."""


@dataclass
class MCAHeader:
    version: int
    channel_count: int
    num_samples: int
    sample_rate: int
    loop_start: int = 0
    loop_end: int = 0
    head_size: int = 0
    data_size: int = 0
    interleave_block_size: int = DEFAULT_INTERLEAVE
    coef_shift: int = 0
    reserved: int = 0
    unk_float: float = 0.0
    unk_short: int = 0
    magic: bytes = MAGIC

    def pack(self) -> bytes:
        return HEADER_STRUCT.pack(
            self.magic, self.version, self.reserved, self.channel_count,
            self.interleave_block_size, self.num_samples, self.sample_rate,
            self.loop_start, self.loop_end, self.head_size, self.data_size,
            self.unk_float, self.coef_shift, self.unk_short,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "MCAHeader":
        if len(data) < HEADER_SIZE:
            raise MCAError(f"File too small for an MCA header ({len(data)} < {HEADER_SIZE} bytes).")
        (magic, version, reserved, channels, interleave, num_samples, sample_rate,
         loop_start, loop_end, head_size, data_size, unk_float, coef_shift,
         unk_short) = HEADER_STRUCT.unpack_from(data, 0)
        return cls(
            version=version, channel_count=channels, num_samples=num_samples,
            sample_rate=sample_rate, loop_start=loop_start, loop_end=loop_end,
            head_size=head_size, data_size=data_size,
            interleave_block_size=interleave, coef_shift=coef_shift,
            reserved=reserved, unk_float=unk_float, unk_short=unk_short,
            magic=magic,
        )


def parse_header(data: bytes) -> MCAHeader:
    """Unpack and validate magic and channel count."""
    header = MCAHeader.unpack(data)
    if header.magic != MAGIC:
        raise MCAError(f"This is no mca file (magic {header.magic!r}, expected {MAGIC!r}).")
    if header.channel_count not in SUPPORTED_CHANNELS:
        raise MCAError(f"Only mono and stereo mca files are supported (channels={header.channel_count}).")
    if header.data_size < 0:
        raise MCAError(f"Negative data size in header: {header.data_size}")
    return header


# ---------- version-dependent offsets ----------
@dataclass(frozen=True)
class ResolvedOffsets:
    head_size: int
    coef_shift: int
    coef_start: int
    start_offset: int
    coef_offset: int
    coef_spacing: int = COEF_SPACING
    recovered: bool = False


def _coef_start(head_size: int, channels: int) -> int:
    return head_size - COEF_SPACING * channels

def _resolve_v3(data: bytes, header: MCAHeader) -> ResolvedOffsets:
    # no declared head size or coef shift; both come from the file length
    head_size = len(data) - header.data_size
    coef_start = _coef_start(head_size, header.channel_count)
    return ResolvedOffsets(head_size, 0, coef_start, head_size, coef_start)

def _resolve_v4(data: bytes, header: MCAHeader) -> ResolvedOffsets:
    head_size = header.head_size
    coef_start = _coef_start(head_size, header.channel_count)
    return ResolvedOffsets(
        head_size, header.coef_shift, coef_start,
        len(data) - header.data_size,
        coef_start + header.coef_shift * COEF_SHIFT_UNIT,
    )

def _resolve_v5(data: bytes, header: MCAHeader) -> ResolvedOffsets:
    head_size = header.head_size
    coef_start = _coef_start(head_size, header.channel_count)
    field = coef_start - 4
    if field < 0 or field + 4 > len(data):
        raise MCAError(f"Start-offset field at 0x{field:X} lies outside the file.")
    (start_offset,) = struct.unpack_from("<i", data, field)
    return ResolvedOffsets(
        head_size, header.coef_shift, coef_start, start_offset,
        coef_start + header.coef_shift * COEF_SHIFT_UNIT,
    )

def _variant_for(version: int):
    if version <= 3:
        return _resolve_v3
    if version == 4:
        return _resolve_v4
    return _resolve_v5


def resolve_offsets(data: bytes, header: MCAHeader) -> ResolvedOffsets:
    """
    Resolve head size, coefficient table and payload offsets for `header`.

    Bad rips sometimes have the header hand-truncated or re-headered; when
    the payload would run past the end of the file but headSize + dataSize
    still fits, the payload is assumed to sit at the very end of the file.
    """
    offsets = _variant_for(header.version)(data, header)
    file_size = len(data)

    start = offsets.start_offset
    if start < 0 or start + header.data_size > file_size:
        if offsets.head_size + header.data_size > file_size:
            raise HeaderMismatchError(
                "Mismatching information. headSize + dataSize don't correlate with fileSize. "
                f"(headSize=0x{offsets.head_size:X}, dataSize=0x{header.data_size:X}, "
                f"fileSize=0x{file_size:X}) Please check the header."
            )
        recovered = file_size - header.data_size
        print(f"[mca_header] payload offset 0x{start:X} overruns the file; using 0x{recovered:X}")
        offsets = ResolvedOffsets(
            offsets.head_size, offsets.coef_shift, offsets.coef_start,
            recovered, offsets.coef_offset, offsets.coef_spacing, recovered=True,
        )
    return offsets


# ---------- coefficient tables ----------
def read_coef_tables(data: bytes, coef_offset: int, channel_count: int,
                     spacing: int = COEF_SPACING) -> list[np.ndarray]:
    """Read channel_count tables of 16 int16 values, `spacing` bytes apart."""
    tables = []
    for ch in range(channel_count):
        off = coef_offset + ch * spacing
        if off < 0 or off + COEF_BYTES > len(data):
            raise MCAError(f"Coefficient table of channel {ch} at 0x{off:X} lies outside the file.")
        table = np.frombuffer(data, dtype="<i2", count=16, offset=off)
        tables.append(table.astype(np.int16).reshape(8, 2))
    return tables


def pack_coef_table(coefs) -> bytes:
    """One channel's table padded to COEF_SPACING bytes."""
    table = np.asarray(coefs, dtype=np.int16).reshape(-1)
    if table.size != 16:
        raise ValueError(f"Coefficient table needs 16 values, got {table.size}")
    return table.astype("<i2").tobytes().ljust(COEF_SPACING, b"\x00")
