import struct

import pytest

from cpm_driver import (
    CATALOG_OFFSET,
    DIRENTRY_SIZE,
    EMPTY_ENTRY,
    DirEntry,
    FormatError,
    InvalidNameError,
    parse_cpm_name,
)


def raw_record():
    return (bytes([3]) + b"HELLO   "
            + bytes([ord('C') | 0x80, ord('O') | 0x80, ord('M')])
            + bytes([1, 0x42, 0, 0x80])
            + struct.pack('<8H', 2, 3, 0x123, 0, 0, 0, 0, 0))


def test_decode_record():
    entry = DirEntry.from_bytes(raw_record(), slot=5)
    assert entry.slot == 5
    assert entry.user_number == 3
    assert entry.filename == "HELLO"
    assert entry.filetype == "COM"
    assert entry.readonly
    assert entry.system
    assert entry.extent_low == 1
    assert entry.reserved == 0x42
    assert entry.extent_high == 0
    assert entry.record_count == 0x80
    assert entry.allocation == [2, 3, 0x123]
    assert entry.offset == CATALOG_OFFSET + 5 * DIRENTRY_SIZE


def test_encode_is_inverse_of_decode():
    raw = raw_record()
    assert DirEntry.from_bytes(raw, 5).to_bytes() == raw


@pytest.mark.parametrize("entry", [
    DirEntry(0, 0, "A", ""),
    DirEntry(127, 31, "ABCDEFGH", "XYZ", 31, 0, 7, 0x7f, [2, 3, 4, 5, 6, 7, 8, 9]),
    DirEntry(12, 0, "DATA", "BIN", 0, 0, 1, 10, [0x13a], readonly=True),
    DirEntry(64, 2, "SYS", "X", record_count=0x80, allocation=[300], system=True),
])
def test_round_trip(entry):
    raw = entry.to_bytes()
    assert len(raw) == DIRENTRY_SIZE
    assert DirEntry.from_bytes(raw, entry.slot) == entry


def test_empty_slot_decodes_to_nothing():
    assert DirEntry.from_bytes(bytes([EMPTY_ENTRY]) * 32) is None
    # Only the first byte matters
    assert DirEntry.from_bytes(bytes([EMPTY_ENTRY]) + raw_record()[1:]) is None


def test_wrong_record_length():
    with pytest.raises(FormatError):
        DirEntry.from_bytes(bytes(31), slot=9)


def test_encode_pads_names_and_allocation():
    raw = DirEntry(0, 0, "AB", "C", allocation=[7]).to_bytes()
    assert raw[1:9] == b"AB      "
    assert raw[9:12] == b"C  "
    assert raw[16:18] == b"\x07\x00"
    assert raw[18:] == bytes(14)


def test_encode_rejects_long_name():
    with pytest.raises(FormatError) as excinfo:
        DirEntry(4, 0, "TOOLONGNAME", "COM").to_bytes()
    assert excinfo.value.slot == 4


def test_encode_rejects_too_many_blocks():
    with pytest.raises(FormatError):
        DirEntry(0, 0, "BIG", "DAT", allocation=list(range(2, 11))).to_bytes()


def test_encode_rejects_non_ascii():
    with pytest.raises(FormatError):
        DirEntry(0, 0, "GRÜN", "TXT").to_bytes()


def test_extent_size():
    assert DirEntry(0, 0, "A", "B", record_count=0x80).extent_size == 16384
    assert DirEntry(0, 0, "A", "B", record_count=10).extent_size == 1280
    assert DirEntry(0, 0, "A", "B", record_count=0).extent_size == 0


def test_entry_number():
    assert DirEntry(0, 0, "A", "B", extent_low=5, extent_high=2).entry_number == 69


@pytest.mark.parametrize("name, expected", [
    ("0:myprog.cmd", (0, "MYPROG", "CMD")),
    ("31:A.B", (31, "A", "B")),
    ("5:NOEXT.", (5, "NOEXT", "")),
    ("00:FILE1234.XYZ", (0, "FILE1234", "XYZ")),
])
def test_parse_name(name, expected):
    assert parse_cpm_name(name) == expected


@pytest.mark.parametrize("name", [
    "myprog.cmd",
    "0:myprog",
    "0:my.prog.cmd",
    "0:a:b.cmd",
    "x:myprog.cmd",
    "-1:myprog.cmd",
    "32:myprog.cmd",
    "0:.cmd",
    "0:toolongname.cmd",
    "0:prog.text",
    "0:my prog.cmd",
    "0:a*b.cmd",
    "0:grün.txt",
])
def test_parse_invalid_name(name):
    with pytest.raises(InvalidNameError):
        parse_cpm_name(name)


def test_invalid_name_is_value_error():
    with pytest.raises(ValueError):
        parse_cpm_name("nonsense")
