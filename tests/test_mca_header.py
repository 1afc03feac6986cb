import struct

import numpy as np
import pytest

from formats.mca_header import (
    HEADER_SIZE, HeaderMismatchError, MCAError, MCAHeader, pack_coef_table,
    parse_header, read_coef_tables, resolve_offsets,
)
from formats.mca_io import build_mca_bytes, coef_area_start


def _container(version, channels=1, payload=bytes(16)):
    tables = [np.arange(16, dtype=np.int16) + 100 * c for c in range(channels)]
    return build_mca_bytes(
        version=version, sample_rate=32000, num_samples=28,
        loop_start=0, loop_end=0, coef_tables=tables, payload=payload,
        interleave_block_size=0x100,
    )


def test_header_size_and_pack_unpack():
    assert HEADER_SIZE == 0x2C
    header = MCAHeader(version=4, channel_count=2, num_samples=1234, sample_rate=48000,
                       loop_start=10, loop_end=1200, head_size=0x94, data_size=0x200,
                       coef_shift=1)
    raw = header.pack()
    assert len(raw) == 0x2C
    assert raw[:4] == b"MADP"
    assert MCAHeader.unpack(raw) == header


def test_field_positions():
    raw = MCAHeader(version=5, channel_count=1, num_samples=7, sample_rate=44100,
                    head_size=0x68, data_size=8).pack()
    assert struct.unpack_from("<h", raw, 0x04)[0] == 5
    assert struct.unpack_from("<h", raw, 0x08)[0] == 1
    assert struct.unpack_from("<h", raw, 0x0A)[0] == 0x100
    assert struct.unpack_from("<i", raw, 0x0C)[0] == 7
    assert struct.unpack_from("<i", raw, 0x10)[0] == 44100
    assert struct.unpack_from("<i", raw, 0x1C)[0] == 0x68
    assert struct.unpack_from("<i", raw, 0x20)[0] == 8


@pytest.mark.parametrize("version,coef_offset", [(0, 0x34), (2, 0x34), (3, 0x34), (4, 0x34), (5, 0x38), (7, 0x38)])
def test_written_files_resolve_per_version(version, coef_offset):
    assert coef_area_start(version) == coef_offset
    data = _container(version)
    header = parse_header(data)
    offsets = resolve_offsets(data, header)
    assert offsets.coef_offset == coef_offset
    assert offsets.head_size == coef_offset + 0x30
    assert offsets.start_offset == len(data) - 16
    assert not offsets.recovered
    table = read_coef_tables(data, offsets.coef_offset, 1)[0]
    assert table.reshape(-1).tolist() == list(range(16))


def test_v3_and_v4_agree_on_the_same_layout():
    data = bytearray(_container(4))
    v4 = resolve_offsets(bytes(data), parse_header(bytes(data)))
    struct.pack_into("<h", data, 4, 3)
    v3 = resolve_offsets(bytes(data), parse_header(bytes(data)))
    assert (v3.head_size, v3.coef_offset, v3.start_offset) == (v4.head_size, v4.coef_offset, v4.start_offset)


def test_stereo_tables_are_spaced():
    data = _container(5, channels=2)
    offsets = resolve_offsets(data, parse_header(data))
    assert offsets.coef_offset == 0x38
    assert offsets.head_size == 0x38 + 0x60
    left, right = read_coef_tables(data, offsets.coef_offset, 2)
    assert left.reshape(-1).tolist() == list(range(16))
    assert right.reshape(-1).tolist() == list(range(100, 116))


def test_coef_shift_moves_tables_in_v4():
    data = bytearray(_container(4))
    struct.pack_into("<h", data, 0x28, 1)
    offsets = resolve_offsets(bytes(data), parse_header(bytes(data)))
    assert offsets.coef_shift == 1
    assert offsets.coef_offset == 0x34 + 0x14


def test_v3_ignores_declared_head_size():
    data = bytearray(_container(3))
    struct.pack_into("<i", data, 0x1C, 0x1000)
    offsets = resolve_offsets(bytes(data), parse_header(bytes(data)))
    assert offsets.head_size == 0x64
    assert offsets.coef_offset == 0x34


@pytest.mark.parametrize("bad_offset", [0x7FFFFFF0, -4])
def test_v5_bad_offset_is_recovered(bad_offset, capsys):
    data = bytearray(_container(5))
    struct.pack_into("<i", data, 0x34, bad_offset)
    offsets = resolve_offsets(bytes(data), parse_header(bytes(data)))
    assert offsets.recovered
    assert offsets.start_offset == len(data) - 16
    assert "[mca_header]" in capsys.readouterr().out


def test_oversized_data_size_is_a_mismatch():
    data = bytearray(_container(4))
    struct.pack_into("<i", data, 0x20, len(data) + 4)
    header = parse_header(bytes(data))
    with pytest.raises(HeaderMismatchError):
        resolve_offsets(bytes(data), header)


def test_parse_header_rejects_bad_input():
    data = bytearray(_container(4))
    with pytest.raises(MCAError):
        parse_header(bytes(data[:0x20]))

    wrong_magic = bytearray(data)
    wrong_magic[:4] = b"RIFF"
    with pytest.raises(MCAError):
        parse_header(bytes(wrong_magic))

    three = bytearray(data)
    struct.pack_into("<h", three, 8, 3)
    with pytest.raises(MCAError):
        parse_header(bytes(three))


def test_mismatch_is_an_mca_error():
    assert issubclass(HeaderMismatchError, MCAError)
    assert issubclass(MCAError, ValueError)


def test_pack_coef_table_pads_to_spacing():
    raw = pack_coef_table(np.full((8, 2), -2, dtype=np.int16))
    assert len(raw) == 0x30
    assert raw[:4] == b"\xfe\xff\xfe\xff"
    assert raw[0x20:] == bytes(16)
    with pytest.raises(ValueError):
        pack_coef_table([1, 2, 3])


def test_table_outside_file_is_rejected():
    data = _container(4)
    with pytest.raises(MCAError):
        read_coef_tables(data, len(data) - 8, 1)


def test_v5_offset_field_inside_fixed_header_is_read():
    data = bytearray(_container(5))
    struct.pack_into("<i", data, 0x1C, 0x58)
    offsets = resolve_offsets(bytes(data), parse_header(bytes(data)))
    # field at 0x24 overlaps the unused float, which is 0
    assert offsets.coef_offset == 0x28
    assert offsets.start_offset == 0
    assert not offsets.recovered

    struct.pack_into("<i", data, 0x24, 0x7FFFFFF0)
    offsets = resolve_offsets(bytes(data), parse_header(bytes(data)))
    assert offsets.recovered
    assert offsets.start_offset == len(data) - 16


def test_v5_offset_field_before_file_start():
    data = bytearray(_container(5))
    struct.pack_into("<i", data, 0x1C, 0)
    with pytest.raises(MCAError):
        resolve_offsets(bytes(data), parse_header(bytes(data)))
