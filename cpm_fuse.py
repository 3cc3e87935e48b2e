#!/usr/bin/env python3
"""
CP/M-86 FUSE Filesystem Implementation.

This module provides a FUSE (Filesystem in Userspace) interface for raw
CP/M-86 disk images. One user area of the image is mounted as a flat
directory, enabling standard file operations (ls, cp, cat, rm, etc.).

Dependencies:
    - fusepy
    - cpm_driver
"""

import os
import sys
import errno
import time
import logging

# Configure FUSE library path for macOS with FUSE-T
if sys.platform == 'darwin' and not os.environ.get('FUSE_LIBRARY_PATH'):
    if os.path.exists('/usr/local/lib/libfuse-t.dylib'):
        os.environ['FUSE_LIBRARY_PATH'] = '/usr/local/lib/libfuse-t.dylib'

from fuse import FUSE, FuseOSError, Operations
from cpm_driver import (
    BLOCK_SIZE,
    MAXDIR_ENTRIES,
    CPMError,
    CPMFileSystem,
    DiskImage,
    format_cpm_name,
    parse_cpm_name,
)

logger = logging.getLogger(__name__)


class CPM_FUSE(Operations):
    """
    FUSE Operations implementation for CP/M-86 images.

    Handles mapping between POSIX filesystem calls and CP/M operations.
    Implements a write-back buffer for file modifications.
    """
    def __init__(self, disk_image, user=0):
        self.disk_image = disk_image
        self.user = user
        self.disk = DiskImage(disk_image)
        self.fs = CPMFileSystem(self.disk)
        logger.info("Mounted %s (%s), user %d", disk_image, self.disk.get_geometry(), user)

        self.files = {}         # filename -> FileEntry
        self.buffers = {}       # path -> bytearray
        self.failed_paths = set()
        self._refresh_files()

    def _refresh_files(self):
        self.files = {}
        for f in self.fs.list_files():
            if f.user_number != self.user:
                continue
            # Map to "NAME.TYP" for modern OS
            filename = f"{f.filename}.{f.filetype}" if f.filetype else f.filename
            self.files[filename] = f

    def _lookup(self, path):
        return self.files.get(path[1:].upper())

    def _get_cpm_name(self, path):
        entry = self._lookup(path)
        if entry is not None:
            return entry.name
        name, _, ext = path[1:].partition('.')  # Remove leading /
        return format_cpm_name(self.user, name, ext)

    def _call(self, func, *args):
        try:
            return func(*args)
        except CPMError as e:
            logger.error("%s", e)
            raise FuseOSError(e.errno)

    def getattr(self, path, fh=None):
        if path == '/':
            return dict(st_mode=(0o40755), st_nlink=2)

        entry = self._lookup(path)
        now = time.time()

        # Check if in buffer (being written)
        if path in self.buffers:
            size = len(self.buffers[path])
            return dict(st_mode=(0o100644), st_nlink=1, st_size=size,
                        st_ctime=now, st_mtime=now, st_atime=now)

        if entry is not None:
            mode = 0o100444 if entry.readonly else 0o100644
            # UF_HIDDEN (macOS/BSD) for system files
            st_flags = 0x8000 if entry.system else 0
            return dict(st_mode=mode, st_nlink=1, st_size=entry.file_size,
                        st_ctime=now, st_mtime=now, st_atime=now,
                        st_flags=st_flags)

        raise FuseOSError(errno.ENOENT)

    def readdir(self, path, fh):
        if path != '/':
            return []
        # Include files in buffer (newly created)
        buffered_files = [p[1:] for p in self.buffers.keys() if p not in self.failed_paths]
        all_files = list(self.files.keys()) + buffered_files
        return ['.', '..'] + list(set(all_files))

    def create(self, path, mode, fi=None):
        # Reject names CP/M cannot store before any data is buffered
        self._call(parse_cpm_name, self._get_cpm_name(path))
        self.buffers[path] = bytearray()
        self.failed_paths.discard(path)
        return 0

    def open(self, path, flags):
        self.failed_paths.discard(path)
        # If opening for write, load content
        if (flags & os.O_WRONLY) or (flags & os.O_RDWR):
            entry = self._lookup(path)
            if entry is not None and entry.readonly:
                raise FuseOSError(errno.EACCES)
            if path not in self.buffers:
                if entry is not None:
                    content = self._call(self.fs.read_file, entry.name)
                    self.buffers[path] = bytearray(content)
                else:
                    self.buffers[path] = bytearray()
        return 0

    def read(self, path, length, offset, fh):
        if path in self.buffers:
            return bytes(self.buffers[path][offset:offset + length])

        entry = self._lookup(path)
        if entry is not None:
            content = self._call(self.fs.read_file, entry.name)
            return content[offset:offset + length]
        raise FuseOSError(errno.ENOENT)

    def write(self, path, buf, offset, fh):
        if path not in self.buffers:
            self.buffers[path] = bytearray()

        end = offset + len(buf)

        # Check free space
        # Count data buffered for other paths but not yet on disk
        total_buffered = sum(len(b) for p, b in self.buffers.items() if p != path)
        free_space = self.fs.get_free_space()
        entry = self._lookup(path)
        if entry is not None:
            # Rewriting a file releases its own blocks
            free_space += len(entry.blocks) * BLOCK_SIZE

        if (total_buffered + end) > free_space:
            self.failed_paths.add(path)
            del self.buffers[path]
            raise FuseOSError(errno.ENOSPC)

        if end > len(self.buffers[path]):
            self.buffers[path].extend(b'\x00' * (end - len(self.buffers[path])))

        self.buffers[path][offset:end] = buf
        return len(buf)

    def truncate(self, path, length, fh=None):
        if path not in self.buffers:
            # Load first
            self.open(path, os.O_RDWR)

        if len(self.buffers[path]) > length:
            self.buffers[path] = self.buffers[path][:length]
        elif len(self.buffers[path]) < length:
            if length > self.fs.get_free_space():
                raise FuseOSError(errno.ENOSPC)
            self.buffers[path].extend(b'\x00' * (length - len(self.buffers[path])))
        return 0

    def unlink(self, path):
        if path in self.buffers:
            del self.buffers[path]

        entry = self._lookup(path)
        if entry is not None:
            self._call(self.fs.delete_file, entry.name)
            self._refresh_files()
        return 0

    def release(self, path, fh):
        if path in self.buffers:
            cpm_name = self._get_cpm_name(path)
            try:
                self.fs.replace_file(cpm_name, self.buffers[path])
            except CPMError as e:
                logger.error("Error writing %s: %s", path, e)
                # Drop the buffer so it doesn't persist as a ghost file
                self.failed_paths.add(path)
            else:
                self._refresh_files()
            del self.buffers[path]
        return 0

    def statfs(self, path):
        space = self.fs.free_space()
        return dict(f_bsize=BLOCK_SIZE, f_frsize=BLOCK_SIZE,
                    f_blocks=len(space.blocks), f_bfree=len(space.free_blocks),
                    f_bavail=len(space.free_blocks),
                    f_files=MAXDIR_ENTRIES, f_ffree=len(space.free_slots),
                    f_namemax=12)

    def access(self, path, mode):
        return 0

    def chmod(self, path, mode):
        return 0

    def chown(self, path, uid, gid):
        return 0

    def utimens(self, path, times=None):
        return 0


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(
        description="Mount a CP/M-86 raw floppy image as a FUSE filesystem.",
        epilog="Example: cpmmount mycompis.img ./mnt"
    )
    parser.add_argument("disk_image", help="Path to the disk image file")
    parser.add_argument("mountpoint", help="Directory to mount the filesystem")
    parser.add_argument("--user", type=int, default=0, choices=range(32), metavar="N",
                        help="CP/M user area to expose (default: 0)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--foreground", "-f", action="store_true", help="Run in foreground (default: False)")

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if not os.path.exists(args.mountpoint):
        print(f"Error: Mount point '{args.mountpoint}' does not exist.")
        sys.exit(1)

    try:
        operations = CPM_FUSE(args.disk_image, args.user)
    except CPMError as e:
        print(f"Error: {e}")
        sys.exit(1)

    try:
        # foreground=True blocks, foreground=False daemonizes
        FUSE(operations, args.mountpoint, foreground=args.foreground, ro=False, nothreads=True)
    except RuntimeError as e:
        print(f"Failed to mount: {e}")
        print("Ensure FUSE-T or macFUSE is installed and libfuse is available.")
        sys.exit(1)


if __name__ == '__main__':
    main()
