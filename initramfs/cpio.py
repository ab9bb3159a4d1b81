"""
cpio newc reader — list and extract a recovered initramfs archive.

Header layout ("070701", or "070702" with checksum), all fields 8-digit
ASCII hex after the 6-byte magic:

    inode mode uid gid nlink mtime filesize devmajor devminor
    rdevmajor rdevminor namesize check

The name (namesize bytes, NUL included) follows the 110-byte header and is
padded to a 4-byte boundary; so is the file data.  An entry named
"TRAILER!!!" ends the archive.  Initramfs images are often several archives
concatenated with zero padding in between, so parsing resumes when another
header follows the trailer.

Extraction refuses absolute names and anything that would land outside the
target directory.  Device nodes, FIFOs and sockets are skipped.
"""

from __future__ import annotations

import os
import stat
import logging
from dataclasses import dataclass, field
from typing import Iterator

from .errors import CpioFormatError, UnsafePathError
from .smart_filter import CPIO_MAGICS, CPIO_TRAILER

logger = logging.getLogger(__name__)

HEADER_SIZE = 110
_FIELDS = (
    "inode", "mode", "uid", "gid", "nlink", "mtime", "size",
    "dev_major", "dev_minor", "rdev_major", "rdev_minor", "namesize", "check",
)


def _pad4(offset: int) -> int:
    return (offset + 3) & ~3


@dataclass
class CpioEntry:
    """One member of a cpio archive."""
    name: str
    inode: int = 0
    mode: int = 0
    uid: int = 0
    gid: int = 0
    nlink: int = 1
    mtime: int = 0
    size: int = 0
    dev_major: int = 0
    dev_minor: int = 0
    rdev_major: int = 0
    rdev_minor: int = 0
    data: bytes = field(default=b"", repr=False)
    offset: int = 0                 # Header position within the stream

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_file(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def symlink_target(self) -> str:
        return self.data.decode("utf-8", "surrogateescape") if self.is_symlink else ""

    @property
    def permissions(self) -> int:
        return stat.S_IMODE(self.mode)

    @property
    def inode_key(self) -> tuple[int, int, int]:
        return self.dev_major, self.dev_minor, self.inode

    def __str__(self) -> str:
        line = f"{stat.filemode(self.mode)} {self.uid}/{self.gid} {self.size:>9d} {self.name}"
        if self.is_symlink:
            line += f" -> {self.symlink_target}"
        return line


def _parse_header(data: bytes, pos: int) -> dict:
    raw = data[pos:pos + HEADER_SIZE]
    if len(raw) < HEADER_SIZE:
        raise CpioFormatError(f"truncated header ({len(raw)} bytes)", offset=pos)
    if raw[:6] not in CPIO_MAGICS:
        raise CpioFormatError(f"bad magic {bytes(raw[:6])!r}", offset=pos)
    values = {}
    for i, name in enumerate(_FIELDS):
        text = raw[6 + i * 8:14 + i * 8]
        try:
            values[name] = int(text, 16)
        except ValueError:
            raise CpioFormatError(f"bad {name} field {bytes(text)!r}", offset=pos) from None
    return values


def _skip_padding(data: bytes, pos: int) -> int:
    while pos < len(data) and data[pos] == 0:
        pos += 1
    return pos


def iter_entries(data: bytes) -> Iterator[CpioEntry]:
    """Yield every entry of the (possibly concatenated) archive in `data`."""
    pos = 0
    size = len(data)
    while True:
        fields = _parse_header(data, pos)
        name_start = pos + HEADER_SIZE
        name_end = name_start + fields["namesize"]
        if fields["namesize"] == 0 or name_end > size:
            raise CpioFormatError("name runs past end of archive", offset=pos)
        name = data[name_start:name_end].rstrip(b"\x00").decode("utf-8", "surrogateescape")

        data_start = _pad4(name_end)
        data_end = data_start + fields["size"]
        if data_end > size:
            raise CpioFormatError(f"data of {name!r} runs past end of archive", offset=pos)

        if name == CPIO_TRAILER.decode():
            # Another archive may follow after zero padding
            nxt = _skip_padding(data, _pad4(data_end))
            if nxt + 6 <= size and data[nxt:nxt + 6] in CPIO_MAGICS:
                pos = nxt
                continue
            return

        del fields["namesize"], fields["check"]
        yield CpioEntry(name=name, data=bytes(data[data_start:data_end]), offset=pos, **fields)
        pos = _pad4(data_end)


def list_entries(data: bytes) -> list[CpioEntry]:
    return list(iter_entries(data))


def list_names(data: bytes) -> list[str]:
    return [e.name for e in iter_entries(data)]


# ═════════════════════════════════════════════════════════════
#  Extraction
# ═════════════════════════════════════════════════════════════

def _safe_join(root: str, name: str) -> str:
    """Map an archive name under `root`, refusing anything that escapes it."""
    if os.path.isabs(name) or name.startswith("/"):
        raise UnsafePathError(f"absolute path {name!r} refused")
    path = os.path.join(root, name)
    real = os.path.realpath(path)
    if real != root and not real.startswith(root + os.sep):
        raise UnsafePathError(f"path {name!r} escapes target directory")
    return path


def _set_mtime(path: str, mtime: int, symlink: bool = False):
    if symlink:
        if os.utime in os.supports_follow_symlinks:
            os.utime(path, (mtime, mtime), follow_symlinks=False)
        return
    os.utime(path, (mtime, mtime))


def _remove_existing(path: str):
    if os.path.islink(path) or os.path.isfile(path):
        os.unlink(path)


def extract_all(data: bytes, target_dir: str) -> list[str]:
    """
    Materialize the archive under `target_dir` (created if missing).

    Returns:
        The archive names that were written, in archive order.

    Raises:
        CpioFormatError: the archive is malformed.
        UnsafePathError: an entry is absolute or escapes `target_dir`.
    """
    os.makedirs(target_dir, exist_ok=True)
    root = os.path.realpath(target_dir)
    written: list[str] = []
    directories: list[tuple[str, CpioEntry]] = []
    links: dict[tuple[int, int, int], list[str]] = {}

    for entry in iter_entries(data):
        if entry.name in (".", "./", ""):
            directories.append((root, entry))
            continue
        path = _safe_join(root, entry.name)

        if entry.is_dir:
            os.makedirs(path, exist_ok=True)
            directories.append((path, entry))
        elif entry.is_symlink:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            _remove_existing(path)
            os.symlink(entry.symlink_target, path)
            _set_mtime(path, entry.mtime, symlink=True)
        elif entry.is_file:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            _remove_existing(path)
            with open(path, "wb") as f:
                f.write(entry.data)
            os.chmod(path, entry.permissions)
            _set_mtime(path, entry.mtime)
            if entry.nlink > 1:
                # Hard links carry their data on the last member only;
                # earlier names are replaced by links to it
                group = links.setdefault(entry.inode_key, [])
                if entry.data:
                    for other in group:
                        _remove_existing(other)
                        os.link(path, other)
                group.append(path)
        else:
            logger.warning("Skipping special file %s (%s)",
                           entry.name, stat.filemode(entry.mode))
            continue
        written.append(entry.name)

    # Deepest first so contents don't bump parent mtimes afterwards
    for path, entry in reversed(directories):
        os.chmod(path, entry.permissions | stat.S_IRWXU)
        _set_mtime(path, entry.mtime)

    logger.info("Extracted %d entries to %s", len(written), target_dir)
    return written
