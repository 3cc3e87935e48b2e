#!/usr/bin/env python3
"""
cpmtool - A tool for COMPIS CP/M-86 raw floppy images.

Examples:
    cpmtool create mycompis.img
    cpmtool copyin mycompis.img myprog.bin 0:myprog.cmd
    cpmtool copyout mycompis.img 0:myprog.cmd myprog.bin
    cpmtool delete mycompis.img 0:myprog.cmd
    cpmtool list mycompis.img
"""

import argparse
import logging
import os
import sys

from cpm_driver import (
    BLOCK_SIZE,
    CPMError,
    CPMFileSystem,
    DiskImage,
    DiskSize,
    create_image,
)

logger = logging.getLogger(__name__)


def cmd_create(args):
    size = DiskSize.from_label(args.size)
    create_image(args.image, size)
    logger.info("Created %s (%s)", args.image, size.label)


def cmd_list(args):
    disk = DiskImage(args.image, readonly=True)
    files = CPMFileSystem(disk).list_files()

    print(f"Files in image '{args.image}':")
    print("UID Name     Ext     Size Readonly System")
    print("------------------------------------------")
    for entry in files:
        print(f"{entry.user_number:>3} {entry.filename:>8} {entry.filetype:>3} {entry.file_size:>8} "
              f"{str(entry.readonly):>8} {str(entry.system):>6}")


def cmd_copyin(args):
    with open(args.source, 'rb') as f:
        data = f.read()
    fs = CPMFileSystem(DiskImage(args.image))
    entries = fs.write_file(args.cpm_file, data)
    logger.info("Copied %s -> %s (%d bytes, %d extents)", args.source, args.cpm_file, len(data), len(entries))


def cmd_copyout(args):
    fs = CPMFileSystem(DiskImage(args.image, readonly=True))
    # Look the file up before creating the target
    fs.find_file(args.cpm_file)
    with open(args.target, 'wb') as out:
        fs.read_file(args.cpm_file, sink=out)


def cmd_delete(args):
    fs = CPMFileSystem(DiskImage(args.image))
    fs.delete_file(args.cpm_file)


def cmd_free(args):
    disk = DiskImage(args.image, readonly=True)
    space = CPMFileSystem(disk).free_space()

    print(f"Image '{args.image}': {disk.get_geometry()}")
    print(f"Directory entries: {len(space.free_slots):>4} free of 128")
    print(f"Blocks:            {len(space.free_blocks):>4} free of {len(space.blocks)} ({BLOCK_SIZE} bytes each)")
    print(f"Free space:        {space.free_bytes // 1024}K")
    for name, block in space.invalid_blocks:
        print(f"Invalid block number {block} for file {name}")


def build_parser():
    # Allow overriding program name via environment variable (for wrapper scripts)
    prog_name = os.environ.get("CPM_PROG_NAME")

    parser = argparse.ArgumentParser(
        prog=prog_name,
        description="A tool for COMPIS CP/M-86 raw floppy images."
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create", help="Create a new empty floppy image: 512 bytes per sector, 8 sectors per track.")
    p.add_argument("image", metavar="IMAGE_FILE", help="Path to the new floppy image")
    p.add_argument("size", metavar="SIZE", nargs="?", default=DiskSize.K640.label,
                   choices=DiskSize.labels(), help="Capacity class (default: %(default)s)")
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("copyin", help="Copy a file from the local filesystem to the floppy image.")
    p.add_argument("image", metavar="IMAGE_FILE", help="Path to the floppy image")
    p.add_argument("source", metavar="SOURCE_FILE", help="Path to file in local filesystem")
    p.add_argument("cpm_file", metavar="CPM_FILE", help="User:Name.Type of destination file in image")
    p.set_defaults(func=cmd_copyin)

    p = sub.add_parser("copyout", help="Copy a file from the floppy image to the local filesystem.")
    p.add_argument("image", metavar="IMAGE_FILE", help="Path to the floppy image")
    p.add_argument("cpm_file", metavar="CPM_FILE", help="User:Name.Type of source file in image")
    p.add_argument("target", metavar="TARGET_FILE", help="Path to file in local filesystem")
    p.set_defaults(func=cmd_copyout)

    p = sub.add_parser("delete", help="Delete a file from the floppy image.")
    p.add_argument("image", metavar="IMAGE_FILE", help="Path to the floppy image")
    p.add_argument("cpm_file", metavar="CPM_FILE", help="User:Name.Type of file in image")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("list", help="List content of floppy image.")
    p.add_argument("image", metavar="IMAGE_FILE", help="Path to the floppy image")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("free", help="Show free directory entries and blocks.")
    p.add_argument("image", metavar="IMAGE_FILE", help="Path to the floppy image")
    p.set_defaults(func=cmd_free)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        args.func(args)
    except (CPMError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
