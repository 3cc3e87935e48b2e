"""
Pytest configuration for the cpmtools86 test suite.

Every test gets its own freshly formatted image in a temporary directory.
"""

import pytest

from cpm_driver import CPMFileSystem, DiskImage, DiskSize, create_image


@pytest.fixture
def image_path(tmp_path):
    """A fresh, empty 640K COMPIS image."""
    path = tmp_path / "compis.img"
    create_image(str(path), DiskSize.K640)
    return str(path)


@pytest.fixture
def fs(image_path):
    return CPMFileSystem(DiskImage(image_path))


def reopen(path, readonly=False):
    """Filesystem over a new DiskImage, so nothing is reused in memory."""
    return CPMFileSystem(DiskImage(path, readonly=readonly))


def pattern(size, seed=0):
    """Deterministic, non-repeating-per-block test data."""
    return bytes((i * 7 + seed + i // 2048) & 0xFF for i in range(size))
