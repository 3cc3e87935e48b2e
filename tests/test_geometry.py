import os

import pytest

from cpm_driver import (
    DISKSIZE_OFFSET,
    EMPTY_ENTRY,
    DiskImage,
    DiskSize,
    create_image,
)


@pytest.mark.parametrize("size, num_bytes, descriptor", [
    (DiskSize.K160, 160 * 1024, 0x00),
    (DiskSize.K320, 320 * 1024, 0x01),
    (DiskSize.K1200, 1200 * 1024, 0x0c),
    (DiskSize.K360, 360 * 1024, 0x10),
    (DiskSize.K720, 720 * 1024, 0x11),
    (DiskSize.K360_2, 360 * 1024, 0x40),
    (DiskSize.K720_2, 720 * 1024, 0x48),
    (DiskSize.K1440, 1440 * 1024, 0x90),
    (DiskSize.K640, 636 * 1024, 0xe5),
])
def test_capacity_classes(size, num_bytes, descriptor):
    assert size.num_bytes == num_bytes
    assert size.media_descriptor == descriptor
    assert size.sector_size == 512
    assert size.sectors_per_track == 8
    assert size.num_tracks * 8 * 512 == num_bytes


def test_compis_track_count():
    assert DiskSize.K640.num_tracks == 159


def test_from_label():
    assert DiskSize.from_label("320K") is DiskSize.K320
    assert DiskSize.from_label("720k2") is DiskSize.K720_2
    with pytest.raises(ValueError):
        DiskSize.from_label("800K")


def test_labels_are_unique():
    labels = DiskSize.labels()
    assert len(labels) == len(set(labels)) == 9


def test_create_320k(tmp_path):
    path = tmp_path / "small.img"
    create_image(str(path), DiskSize.K320)

    data = path.read_bytes()
    assert len(data) == 320 * 1024
    assert data[DISKSIZE_OFFSET] == 0x01
    # Everything else reads as empty directory slots
    assert data[:DISKSIZE_OFFSET] == bytes([EMPTY_ENTRY]) * DISKSIZE_OFFSET
    assert data[DISKSIZE_OFFSET + 1:] == bytes([EMPTY_ENTRY]) * (len(data) - DISKSIZE_OFFSET - 1)


def test_create_overwrites_existing_file(tmp_path):
    path = tmp_path / "reuse.img"
    path.write_bytes(b"\x00" * 2 * 1024 * 1024)
    create_image(str(path), DiskSize.K160)
    assert os.path.getsize(path) == 160 * 1024


def test_detect_geometry(tmp_path):
    path = tmp_path / "pcpm.img"
    create_image(str(path), DiskSize.K360_2)
    disk = DiskImage(str(path), readonly=True)
    assert disk.media_descriptor == 0x40
    assert DiskSize.detect(disk.file_size, disk.media_descriptor) is DiskSize.K360_2
    assert "360K2" in disk.get_geometry()


def test_detect_unknown_size():
    assert DiskSize.detect(12345, 0x00) is None
    # Size known, descriptor not: fall back to the first class of that size
    assert DiskSize.detect(360 * 1024, 0x77) is DiskSize.K360
