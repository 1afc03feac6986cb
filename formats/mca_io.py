# formats/mca_io.py
from __future__ import annotations
import os
import struct

from formats.mca_header import (
    COEF_SPACING, HEADER_SIZE, RESERVED_SIZE, MCAHeader, pack_coef_table,
)


def coef_area_start(version: int) -> int:
    """Where the first coefficient table is written; v5+ stores the payload offset first."""
    base = HEADER_SIZE + RESERVED_SIZE
    return base + 4 if version >= 5 else base


def build_mca_bytes(*,
                    version: int,
                    sample_rate: int,
                    num_samples: int,
                    loop_start: int,
                    loop_end: int,
                    coef_tables: list,
                    payload: bytes,
                    interleave_block_size: int) -> bytes:
    """
    Assemble a complete MCA container.

      header | 8 reserved | [v5+: i32 payload offset] | per channel 0x30 coefs | payload
    """
    channels = len(coef_tables)
    coef_start = coef_area_start(version)
    head_size = coef_start + COEF_SPACING * channels

    header = MCAHeader(
        version=version,
        channel_count=channels,
        num_samples=num_samples,
        sample_rate=sample_rate,
        loop_start=loop_start,
        loop_end=loop_end,
        head_size=head_size,
        data_size=len(payload),
        interleave_block_size=interleave_block_size,
    )

    out = bytearray(header.pack())
    out += b"\x00" * RESERVED_SIZE
    if version >= 5:
        out += struct.pack("<i", head_size)
    for table in coef_tables:
        out += pack_coef_table(table)
    assert len(out) == head_size
    out += payload
    return bytes(out)


def save_mca_file(path: str, data: bytes) -> None:
    """Write container bytes; the caller picks the filename."""
    folder = os.path.dirname(os.path.abspath(path))
    os.makedirs(folder, exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
