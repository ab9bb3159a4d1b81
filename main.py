#!/usr/bin/env python3
"""
Embedded initramfs extraction — Entry Point.

Usage:
    python main.py vmlinuz                 # list the initramfs contents
    python main.py -c initramfs.cpio vmlinuz
    python main.py -x rootfs/ vmlinuz
"""

APP_VERSION = "1.0.0"

import os
import sys
import json
import shutil
import logging
import argparse
import tempfile

from initramfs.cpio import extract_all, iter_entries
from initramfs.errors import InitramfsError
from initramfs.manager import ExtractionManager

logger = logging.getLogger("initramfs.cli")

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILED = 2


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _write_atomic(path: str, data: bytes):
    """Write `data` to `path` through a temporary file in the same directory."""
    parent = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(prefix=".initramfs_", dir=parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise


def query_mode(archive: bytes):
    count = 0
    for entry in iter_entries(archive):
        print(entry)
        count += 1
    print(f"\n  {count} entries, {_fmt(len(archive))}")


def copy_mode(archive: bytes, output: str):
    _write_atomic(output, archive)
    print(f"  Saved archive to: {output} ({_fmt(len(archive))})")


def extract_mode(archive: bytes, output: str):
    parent = os.path.dirname(os.path.abspath(output))
    staging = tempfile.mkdtemp(prefix=".initramfs_", dir=parent)
    try:
        names = extract_all(archive, staging)
        os.rename(staging, output)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    print(f"  Extracted {len(names)} entries to: {output}")


def _fmt(n):
    s = float(n)
    for u in ("B", "KB", "MB", "GB"):
        if s < 1024:
            return f"{s:.1f} {u}"
        s /= 1024
    return f"{s:.1f} TB"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extract-initramfs",
        description="Recover the initramfs embedded in a compressed kernel image.")
    parser.add_argument("image", help="Kernel image (zImage / bzImage / vmlinuz)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-q", "--query", action="store_true",
                      help="List archive contents (default)")
    mode.add_argument("-c", "--copy", metavar="OUT", default="",
                      help="Save the raw cpio archive to OUT")
    mode.add_argument("-x", "--extract", metavar="OUT", default="",
                      help="Extract the archive into directory OUT")
    parser.add_argument("--kernel-out", metavar="PATH", default="",
                        help="Also save the decompressed kernel binary")
    parser.add_argument("--report", metavar="PATH", default="",
                        help="Write a JSON report of the run")
    parser.add_argument("--no-verify-cpio", action="store_true",
                        help="Accept any non-empty decompression as the archive")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log every candidate attempt")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def _write_report(path: str, session):
    _write_atomic(path, json.dumps(session.summary, indent=2).encode())


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    output = args.copy or args.extract
    for path in (output, args.kernel_out, args.report):
        if path and os.path.lexists(path):
            print(f"Error: output path already exists: {path}", file=sys.stderr)
            return EXIT_USAGE

    manager = ExtractionManager(require_cpio_magic=not args.no_verify_cpio)
    try:
        session = manager.run(args.image)
    except OSError as e:
        print(f"Error: cannot read {args.image}: {e}", file=sys.stderr)
        return EXIT_USAGE
    except InitramfsError as e:
        logger.error("%s", e)
        session = manager.last_session
        if args.report and session is not None:
            try:
                _write_report(args.report, session)
            except OSError as report_error:
                print(f"Error: cannot write report: {report_error}", file=sys.stderr)
        return EXIT_FAILED

    try:
        if args.kernel_out:
            _write_atomic(args.kernel_out, session.kernel)
            print(f"  Saved kernel to: {args.kernel_out} ({_fmt(session.kernel_size)})")

        if args.copy:
            copy_mode(session.archive, args.copy)
        elif args.extract:
            extract_mode(session.archive, args.extract)
        else:
            query_mode(session.archive)

        if args.report:
            _write_report(args.report, session)
    except InitramfsError as e:
        logger.error("%s", e)
        return EXIT_FAILED
    except OSError as e:
        print(f"Error: cannot write output: {e}", file=sys.stderr)
        return EXIT_USAGE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
