#!/usr/bin/env python3
"""
CP/M-86 Disk Driver Module.

This module provides classes and functions to interact with raw COMPIS
CP/M-86 floppy images (512 byte sectors, 8 sectors per track, 2 sides).

Classes:
    DiskSize: Supported capacity classes and their media descriptor bytes.
    DiskImage: In-memory copy of a raw sector image.
    DirEntry: One 32-byte directory record (an extent).
    FileEntry: A logical file built from one or more extents.
    FreeSpaceMap: Free directory slots and data blocks derived from the catalog.
    CPMFileSystem: High-level interface for listing, reading, writing and deleting files.

Functions:
    create_image(filename, size): Format a new, empty image.
    block_offset(block): Translate an allocation block number to a byte offset.
    merge_extents(entries): Group directory entries into logical files.
    parse_cpm_name(name): Split "user:filename.filetype" into its parts.
"""

import enum
import errno
import logging
import struct
import sys
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

# Constants
SECTOR_SIZE = 512
SECTORS_PER_TRACK = 8
NUM_SIDES = 2
# Data at or above 0xa0000 is never touched by the firmware
NUM_TRACKS = 80
LAYOUT_SIZE = NUM_TRACKS * SECTORS_PER_TRACK * SECTOR_SIZE * NUM_SIDES

RECORD_SIZE = 128
BLOCK_SIZE = 16 * RECORD_SIZE       # 16 records per block, $800 bytes
DIRBLOCKS = 2
DIRENTRY_SIZE = 32
MAXDIR_ENTRIES = 128
CATALOG_OFFSET = 0x2000             # directory starts at track 1, side 0
DATA_OFFSET = CATALOG_OFFSET        # block 0 is the first directory block
DIR_TRACK = 1

BLOCKS_PER_EXTENT = 8               # 16 bytes of 16-bit block pointers
RECORDS_PER_EXTENT = 128
EXTENT_SIZE = RECORDS_PER_EXTENT * RECORD_SIZE
FULL_EXTENT = 0x80

MAX_NUM_BLOCKS = (LAYOUT_SIZE - DATA_OFFSET) // BLOCK_SIZE
SIDE_THRESHOLD = 0x9e

EMPTY_ENTRY = 0xE5
MAX_USER = 31
DISKSIZE_OFFSET = 0x1ff

# Characters CP/M reserves for command line parsing
_RESERVED_CHARS = set('<>.,;:=?*[] ')

# Data in the image is stored like this:
# $0000-$1000 side 0
# $1000-$2000 side 1
# $2000-$3000 side 0
# $3000-$4000 side 1
# ... and so on
# When copying to disk with pip, side 0 is used first, increasing the
# track number until track 80 is reached. Then side 1 is used BACKWARDS,
# decreasing the track number. The bios hides this from CP/M-86, block
# numbers in the directory keep increasing.


class CPMError(Exception):
    """Base class for all errors raised by the driver."""
    errno = errno.EIO


class NotFoundError(CPMError):
    errno = errno.ENOENT


class AlreadyExistsError(CPMError):
    errno = errno.EEXIST


class InsufficientSpaceError(CPMError):
    """Not enough free directory slots or data blocks for a copy-in."""
    errno = errno.ENOSPC

    def __init__(self, message, needed=0, free=0):
        super().__init__(message)
        self.needed = needed
        self.free = free


class InvalidNameError(CPMError, ValueError):
    errno = errno.EINVAL


class FormatError(CPMError):
    """A directory record or block reference that does not fit the layout."""

    def __init__(self, message, slot=None, block=None):
        super().__init__(message)
        self.slot = slot
        self.block = block


class IoFailure(CPMError):
    pass


class DiskSize(enum.Enum):
    """
    Capacity classes understood by CP/M-86.

    The last byte of the first sector (offset 0x1FF) is used by CP/M-86 to
    determine the capacity. Each member carries its command line label,
    its size in bytes and that media descriptor byte.
    """
    K160 = ("160K", 160 * 1024, 0x00)
    K320 = ("320K", 320 * 1024, 0x01)
    K1200 = ("1200K", 1200 * 1024, 0x0c)     # 144FEAT
    K360 = ("360K", 360 * 1024, 0x10)        # PCP/M-86
    K720 = ("720K", 720 * 1024, 0x11)        # PCP/M-86
    K360_2 = ("360K2", 360 * 1024, 0x40)     # PCP/M-86
    K720_2 = ("720K2", 720 * 1024, 0x48)     # 144FEAT
    K1440 = ("1440K", 1440 * 1024, 0x90)     # 144FEAT
    # COMPIS, 636 KiB usable. No descriptor is known, 0xE5 leaves the
    # formatted byte untouched.
    K640 = ("640K", 636 * 1024, 0xe5)

    def __init__(self, label, num_bytes, media_descriptor):
        self.label = label
        self.num_bytes = num_bytes
        self.media_descriptor = media_descriptor

    @property
    def sector_size(self):
        return SECTOR_SIZE

    @property
    def sectors_per_track(self):
        return SECTORS_PER_TRACK

    @property
    def num_tracks(self):
        return self.num_bytes // SECTOR_SIZE // SECTORS_PER_TRACK

    @classmethod
    def labels(cls):
        return [size.label for size in cls]

    @classmethod
    def from_label(cls, label):
        for size in cls:
            if size.label == label.upper():
                return size
        raise ValueError(f"Unknown disk size '{label}', expected one of {', '.join(cls.labels())}")

    @classmethod
    def detect(cls, num_bytes, media_descriptor):
        """Best match for an existing image, or None."""
        by_size = [size for size in cls if size.num_bytes == num_bytes]
        for size in by_size:
            if size.media_descriptor == media_descriptor:
                return size
        return by_size[0] if by_size else None


def block_offset(block):
    """
    Translate an allocation block number to a byte offset in the image.

    Args:
        block (int): Block number as stored in the directory.

    Returns:
        int: Offset of the first byte of the block.

    Raises:
        FormatError: If the block number is outside the layout.
    """
    if not 0 <= block < MAX_NUM_BLOCKS:
        raise FormatError(f"Block number {block:#x} outside 0..{MAX_NUM_BLOCKS - 1:#x}", block=block)

    even = block & 0xfffe
    odd = block & 1
    if block < SIDE_THRESHOLD:
        # side 0, counting UP
        return DATA_OFFSET + even * BLOCK_SIZE * NUM_SIDES + odd * BLOCK_SIZE
    # side 1, counting DOWN from the end of the layout
    return LAYOUT_SIZE - (even - (SIDE_THRESHOLD - 1)) * BLOCK_SIZE * NUM_SIDES + odd * BLOCK_SIZE


def addressable_blocks(image_size):
    """Block numbers whose data fits completely inside an image of *image_size* bytes."""
    return [b for b in range(MAX_NUM_BLOCKS) if block_offset(b) + BLOCK_SIZE <= image_size]


def parse_cpm_name(name):
    """
    Split a name of the form "user:filename.filetype".

    Returns:
        tuple: (user, FILENAME, FILETYPE), upper case.

    Raises:
        InvalidNameError: If the name is malformed or too long.
    """
    user_part, sep, rest = name.partition(':')
    filename, dot, filetype = rest.partition('.')
    if not sep or not dot or ':' in rest or '.' in filetype:
        raise InvalidNameError(f"Invalid format, expected user:filename.filetype: {name}")

    if not user_part.isdecimal():
        raise InvalidNameError(f"Invalid user number '{user_part}' in {name}")
    user = int(user_part)
    if user > MAX_USER:
        raise InvalidNameError(f"User number {user} out of range 0..{MAX_USER} in {name}")

    filename = filename.upper()
    filetype = filetype.upper()
    if not filename:
        raise InvalidNameError(f"Empty filename in {name}")
    if len(filename) > 8 or len(filetype) > 3:
        raise InvalidNameError(f"Filename too long: {name}")
    for c in filename + filetype:
        if c in _RESERVED_CHARS or not 33 <= ord(c) <= 126:
            raise InvalidNameError(f"Invalid character {c!r} in {name}")

    return user, filename, filetype


def format_cpm_name(user, filename, filetype):
    return f"{user}:{filename}.{filetype}"


@dataclass
class DirEntry:
    """One 32-byte directory record."""
    slot: int                   # index in the directory, 0..127
    user_number: int
    filename: str
    filetype: str
    extent_low: int = 0         # EX
    reserved: int = 0           # S1
    extent_high: int = 0        # S2
    record_count: int = 0       # RC
    allocation: List[int] = field(default_factory=list)
    readonly: bool = False
    system: bool = False

    @property
    def entry_number(self):
        return 32 * self.extent_high + self.extent_low

    @property
    def is_full_extent(self):
        return self.record_count >= FULL_EXTENT

    @property
    def extent_size(self):
        if self.is_full_extent:
            return EXTENT_SIZE
        return self.record_count * RECORD_SIZE

    @property
    def offset(self):
        return CATALOG_OFFSET + self.slot * DIRENTRY_SIZE

    @classmethod
    def from_bytes(cls, raw, slot=0):
        """
        Decode a raw directory record.

        Args:
            raw (bytes): 32 bytes of directory data.
            slot (int): Position of the record in the directory.

        Returns:
            DirEntry: The decoded record, or None if the slot is empty.
        """
        if len(raw) != DIRENTRY_SIZE:
            raise FormatError(f"Directory entry must be {DIRENTRY_SIZE} bytes, got {len(raw)}", slot=slot)

        user_number = raw[0]
        if user_number == EMPTY_ENTRY:
            return None

        # MSB of the name characters is used for attributes
        filename = bytes(b & 0x7F for b in raw[1:9]).decode('ascii').rstrip()
        filetype = bytes(b & 0x7F for b in raw[9:12]).decode('ascii').rstrip()
        readonly = raw[9] & 0x80 != 0
        system = raw[10] & 0x80 != 0

        extent_low, reserved, extent_high, record_count = raw[12:16]
        allocation = [al for al in struct.unpack_from('<8H', raw, 16) if al != 0]

        return cls(slot, user_number, filename, filetype, extent_low, reserved,
                   extent_high, record_count, allocation, readonly, system)

    def to_bytes(self):
        """
        Encode the record into 32 bytes.

        Raises:
            FormatError: If a field does not fit the record.
        """
        where = f"{format_cpm_name(self.user_number, self.filename, self.filetype)} at slot {self.slot}"
        try:
            name = self.filename.ljust(8).encode('ascii')
            ftype = bytearray(self.filetype.ljust(3).encode('ascii'))
        except UnicodeEncodeError as e:
            raise FormatError(f"Directory entry name is not ASCII for {where}", slot=self.slot) from e
        if len(name) > 8 or len(ftype) > 3:
            raise FormatError(f"Directory entry name is too large for {where}", slot=self.slot)

        if self.readonly:
            ftype[0] |= 0x80
        if self.system:
            ftype[1] |= 0x80

        buf = bytearray([self.user_number & 0xFF])
        buf += name
        buf += ftype
        try:
            buf += bytes([self.extent_low, self.reserved, self.extent_high, self.record_count])
            for al in self.allocation:
                buf += struct.pack('<H', al)
        except (ValueError, struct.error) as e:
            raise FormatError(f"Directory entry field out of range for {where}: {e}", slot=self.slot) from e

        if len(buf) > DIRENTRY_SIZE:
            raise FormatError(f"Directory entry is too large for {where}", slot=self.slot)

        buf += bytes(DIRENTRY_SIZE - len(buf))
        return bytes(buf)


@dataclass
class FileEntry:
    """A logical file made of all extents sharing (user, filename, filetype)."""
    first_slot: int
    user_number: int
    filename: str
    filetype: str
    readonly: bool = False
    system: bool = False
    extents: List[DirEntry] = field(default_factory=list)

    @property
    def name(self):
        return format_cpm_name(self.user_number, self.filename, self.filetype)

    @property
    def key(self):
        return (self.user_number, self.filename.upper(), self.filetype.upper())

    @property
    def file_size(self):
        return sum(e.extent_size for e in self.extents)

    @property
    def blocks(self):
        return [al for e in self.extents for al in e.allocation]

    @property
    def slots(self):
        return [e.slot for e in self.extents]


def merge_extents(entries):
    """
    Group directory entries into logical files.

    Extents of a file are sorted by extent number; files are sorted by
    the lowest directory slot they occupy.
    """
    files = {}

    for entry in entries:
        key = (entry.user_number, entry.filename, entry.filetype)
        file = files.get(key)
        if file is None:
            file = files[key] = FileEntry(entry.slot, entry.user_number, entry.filename, entry.filetype)
        file.first_slot = min(file.first_slot, entry.slot)
        # A flag set on any extent applies to the whole file
        file.readonly = file.readonly or entry.readonly
        file.system = file.system or entry.system
        file.extents.append(entry)

    file_list = sorted(files.values(), key=lambda f: f.first_slot)
    for f in file_list:
        f.extents.sort(key=lambda e: (e.entry_number, e.slot))
    return file_list


@dataclass
class FreeSpaceMap:
    """Directory slot and data block usage, derived from the catalog."""
    used_slots: set
    used_blocks: set
    blocks: List[int]
    invalid_blocks: list = field(default_factory=list)

    @classmethod
    def compute(cls, files, blocks=None):
        """
        Args:
            files (list): FileEntry objects currently in the directory.
            blocks (list): Allocatable block numbers. Defaults to the full layout.
        """
        if blocks is None:
            blocks = list(range(MAX_NUM_BLOCKS))
        universe = set(blocks)

        used_slots = set()
        # block 0 and 1 are reserved for the directory
        used_blocks = set(range(DIRBLOCKS))
        invalid = []

        for f in files:
            for e in f.extents:
                used_slots.add(e.slot)
                for al in e.allocation:
                    if al not in universe:
                        logger.warning("Invalid block number %d for file %s (slot %d)", al, f.name, e.slot)
                        invalid.append((f.name, al))
                        continue
                    used_blocks.add(al)

        return cls(used_slots, used_blocks, sorted(universe), invalid)

    @property
    def free_slots(self):
        return [idx for idx in range(MAXDIR_ENTRIES) if idx not in self.used_slots]

    @property
    def free_blocks(self):
        return [b for b in self.blocks if b not in self.used_blocks]

    @property
    def free_bytes(self):
        return len(self.free_blocks) * BLOCK_SIZE


class DiskImage:
    """
    Raw CP/M-86 sector image.

    Attributes:
        filename (str): Path to the disk image file.
        file_size (int): Size of the disk image in bytes.
        data (bytearray): In-memory copy of the disk data.
        readonly (bool): Reject writes and saves.
    """
    def __init__(self, filename, readonly=False):
        self.filename = filename
        self.readonly = readonly
        self.dirty = False
        try:
            with open(filename, 'rb') as f:
                self.data = bytearray(f.read())
        except OSError as e:
            raise IoFailure(f"Cannot read image '{filename}': {e.strerror}") from e
        self.file_size = len(self.data)

    def read(self, offset, length):
        """Read exactly *length* bytes at *offset*."""
        if offset < 0 or offset + length > len(self.data):
            raise IoFailure(f"Short read of {length} bytes at {offset:#x} in '{self.filename}' ({len(self.data)} bytes)")
        return bytes(self.data[offset:offset + length])

    def write(self, offset, data):
        if self.readonly:
            raise IoFailure(f"Image '{self.filename}' is opened read-only")
        if offset < 0 or offset + len(data) > len(self.data):
            raise IoFailure(f"Short write of {len(data)} bytes at {offset:#x} in '{self.filename}'")
        self.data[offset:offset + len(data)] = data
        self.dirty = True

    def _sector_offset(self, track, side, sector):
        return ((track * NUM_SIDES + side) * SECTORS_PER_TRACK + sector) * SECTOR_SIZE

    def read_sector(self, track, side, sector):
        """
        Read a sector from the disk.

        Args:
            track (int): Track number (0-based).
            side (int): Side number (0 or 1).
            sector (int): Sector number (0-based).

        Returns:
            bytes: 512 bytes of sector data, or None if outside the image.
        """
        if side >= NUM_SIDES or sector >= SECTORS_PER_TRACK:
            return None
        offset = self._sector_offset(track, side, sector)
        if offset + SECTOR_SIZE > len(self.data):
            return None
        return bytes(self.data[offset:offset + SECTOR_SIZE])

    def write_sector(self, track, side, sector, data):
        if len(data) != SECTOR_SIZE or side >= NUM_SIDES or sector >= SECTORS_PER_TRACK:
            return False
        offset = self._sector_offset(track, side, sector)
        if offset + SECTOR_SIZE > len(self.data):
            return False
        self.write(offset, data)
        return True

    def snapshot(self):
        return bytes(self.data)

    def restore(self, snapshot):
        self.data[:] = snapshot

    def save(self):
        """Write the in-memory data back to the disk image file."""
        if self.readonly:
            raise IoFailure(f"Called save() on read-only image '{self.filename}'")
        if not self.dirty:
            logger.debug("Nothing changed, no need to flush %s", self.filename)
            return
        try:
            with open(self.filename, 'r+b') as f:
                f.write(self.data)
        except OSError as e:
            raise IoFailure(f"Cannot write image '{self.filename}': {e.strerror}") from e
        self.dirty = False

    @property
    def media_descriptor(self):
        if len(self.data) <= DISKSIZE_OFFSET:
            return None
        return self.data[DISKSIZE_OFFSET]

    def get_geometry(self):
        """Return a string describing the disk geometry."""
        size = DiskSize.detect(self.file_size, self.media_descriptor)
        tracks = self.file_size // (SECTOR_SIZE * SECTORS_PER_TRACK)
        label = size.label if size else "unknown size"
        return f"CP/M-86 raw ({tracks} tracks of {SECTORS_PER_TRACK}x{SECTOR_SIZE}, {label})"


class CPMFileSystem:
    """
    High-level interface for a CP/M-86 filesystem.

    Handles directory parsing, file reading/writing and free space
    management. Nothing is cached: every operation rebuilds the catalog
    from the image data.
    """
    def __init__(self, disk):
        """
        Initialize the filesystem handler.

        Args:
            disk (DiskImage): The underlying disk image object.
        """
        self.disk = disk

    def read_catalog(self):
        """Decode every used directory slot."""
        catalog = []
        sectors = MAXDIR_ENTRIES * DIRENTRY_SIZE // SECTOR_SIZE
        per_sector = SECTOR_SIZE // DIRENTRY_SIZE
        for sector in range(sectors):
            data = self.disk.read_sector(DIR_TRACK, 0, sector)
            if data is None:
                raise FormatError(f"Directory sector {sector} is outside the image")
            for i in range(per_sector):
                slot = sector * per_sector + i
                raw = data[i * DIRENTRY_SIZE:(i + 1) * DIRENTRY_SIZE]
                entry = DirEntry.from_bytes(raw, slot)
                if entry is not None:
                    catalog.append(entry)
        return catalog

    def list_files(self):
        """
        List all files in the directory.

        Returns:
            list: FileEntry objects in directory order.
        """
        return merge_extents(self.read_catalog())

    def _find(self, files, name):
        user, filename, filetype = parse_cpm_name(name)
        for f in files:
            if f.key == (user, filename, filetype):
                return f
        return None

    def find_file(self, name):
        f = self._find(self.list_files(), name)
        if f is None:
            raise NotFoundError(f"File {name} not found in image")
        return f

    def exists(self, name):
        return self._find(self.list_files(), name) is not None

    def free_space(self, files=None):
        """Return the FreeSpaceMap for the current catalog."""
        if files is None:
            files = self.list_files()
        return FreeSpaceMap.compute(files, addressable_blocks(self.disk.file_size))

    def get_free_space(self):
        """Calculate free space in bytes."""
        return self.free_space().free_bytes

    def _read_block(self, block, length):
        offset = block_offset(block)
        if offset + length > self.disk.file_size:
            raise FormatError(f"Block {block:#x} at {offset:#x} lies beyond the end of the image", block=block)
        return self.disk.read(offset, length)

    def read_file(self, name, sink=None):
        """
        Read the content of a file.

        Args:
            name (str): "user:filename.filetype"
            sink: Optional binary file object receiving the data.

        Returns:
            bytes: The file content (also when written to *sink*).
        """
        file_entry = self.find_file(name)
        total_size = file_entry.file_size
        written = 0
        content = bytearray()

        for block in file_entry.blocks:
            if written >= total_size:
                break
            # The last block may hold stale bytes past the end of the file
            read_size = min(BLOCK_SIZE, total_size - written)
            chunk = self._read_block(block, read_size)
            content += chunk
            if sink is not None:
                sink.write(chunk)
            written += read_size

        if written < total_size:
            logger.warning("%s: %d bytes recorded but only %d allocated", file_entry.name, total_size, written)
        return bytes(content)

    def _plan_entries(self, user, filename, filetype, data, files):
        """Assign slots and blocks for *data*. Nothing is written."""
        chunks = [data[i:i + BLOCK_SIZE] for i in range(0, len(data), BLOCK_SIZE)]
        blocks_needed = len(chunks)
        # an empty file still needs one directory entry
        entries_needed = max(1, -(-blocks_needed // BLOCKS_PER_EXTENT))

        space = self.free_space(files)
        free_slots = space.free_slots
        free_blocks = space.free_blocks
        name = format_cpm_name(user, filename, filetype)

        if len(free_slots) < entries_needed:
            raise InsufficientSpaceError(
                f"Not enough free entries in directory for {name}. Free: {len(free_slots)} Needed: {entries_needed}",
                needed=entries_needed, free=len(free_slots))
        if len(free_blocks) < blocks_needed:
            raise InsufficientSpaceError(
                f"Not enough free blocks for {name}. Free: {len(free_blocks)} Needed: {blocks_needed}",
                needed=blocks_needed, free=len(free_blocks))

        entries = []
        for i in range(entries_needed):
            al_list = free_blocks[i * BLOCKS_PER_EXTENT:min((i + 1) * BLOCKS_PER_EXTENT, blocks_needed)]
            extent_bytes = min(len(data) - i * EXTENT_SIZE, EXTENT_SIZE)
            record_count = min(RECORDS_PER_EXTENT, -(-extent_bytes // RECORD_SIZE))
            entries.append(DirEntry(
                slot=free_slots[i],
                user_number=user,
                filename=filename,
                filetype=filetype,
                extent_low=i & 0x1f,
                extent_high=(i >> 5) & 0xff,
                record_count=record_count,
                allocation=al_list,
            ))

        return entries, list(zip(free_blocks[:blocks_needed], chunks))

    def _insert(self, name, data, files):
        user, filename, filetype = parse_cpm_name(name)
        if self._find(files, name) is not None:
            raise AlreadyExistsError(f"File {name} already exists in image")

        entries, placements = self._plan_entries(user, filename, filetype, data, files)
        # Resolve every offset before touching the buffer
        offsets = []
        for block, chunk in placements:
            offset = block_offset(block)
            if offset + BLOCK_SIZE > self.disk.file_size:
                raise FormatError(f"Block {block:#x} lies beyond the end of the image", block=block)
            offsets.append((offset, chunk))
        raw_entries = [(e.offset, e.to_bytes()) for e in entries]

        for offset, raw in raw_entries:
            self.disk.write(offset, raw)
        for offset, chunk in offsets:
            self.disk.write(offset, chunk)

        logger.debug("Wrote %s: %d bytes, slots %s, blocks %s", name, len(data),
                     [e.slot for e in entries], [b for b, _ in placements])
        return entries

    def _delete(self, file_entry):
        for e in file_entry.extents:
            # Directory sectors are rewritten whole
            sector, index = divmod(e.slot * DIRENTRY_SIZE, SECTOR_SIZE)
            data = bytearray(self.disk.read_sector(DIR_TRACK, 0, sector))
            data[index] = EMPTY_ENTRY
            self.disk.write_sector(DIR_TRACK, 0, sector, bytes(data))
        logger.debug("Deleted %s from slots %s", file_entry.name, file_entry.slots)

    def write_file(self, name, data):
        """
        Copy a new file into the image.

        Args:
            name (str): "user:filename.filetype"
            data (bytes): File content.

        Returns:
            list: The DirEntry records written.
        """
        entries = self._insert(name, bytes(data), self.list_files())
        self.disk.save()
        return entries

    def delete_file(self, name):
        """Delete a file by name. Data blocks are left as they are."""
        file_entry = self.find_file(name)
        self._delete(file_entry)
        self.disk.save()
        return file_entry

    def replace_file(self, name, data):
        """Write a file, removing an existing one with the same name first."""
        snapshot = self.disk.snapshot()
        try:
            existing = self._find(self.list_files(), name)
            if existing is not None:
                self._delete(existing)
            entries = self._insert(name, bytes(data), self.list_files())
        except CPMError:
            self.disk.restore(snapshot)
            raise
        self.disk.save()
        return entries


def create_image(filename, size=DiskSize.K640):
    """
    Create a new empty image: every sector is filled with 0xE5, then the
    media descriptor is written at offset 0x1FF.
    """
    sector = bytes([EMPTY_ENTRY]) * size.sector_size
    try:
        with open(filename, 'wb') as out:
            for _ in range(size.num_tracks):
                for _ in range(size.sectors_per_track):
                    out.write(sector)
            out.seek(DISKSIZE_OFFSET)
            out.write(bytes([size.media_descriptor]))
    except OSError as e:
        raise IoFailure(f"Cannot create image '{filename}': {e.strerror}") from e
    logger.debug("Created %s (%s, %d tracks)", filename, size.label, size.num_tracks)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python cpm_driver.py <disk_image>")
        sys.exit(1)

    disk = DiskImage(sys.argv[1], readonly=True)
    print(f"Detected Format: {disk.get_geometry()}")
    fs = CPMFileSystem(disk)
    for f in fs.list_files():
        flags = []
        if f.readonly: flags.append("R/O")
        if f.system: flags.append("SYS")
        flag_str = f"[{','.join(flags)}]" if flags else ""
        print(f" - {f.name:<16}  Size: {f.file_size:>7} bytes  {flag_str}")
