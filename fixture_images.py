"""
Synthetic kernel images for the test suite.

Builds newc cpio archives, wraps them (compressed or raw) inside a fake
kernel binary, and wraps that kernel in a gzip payload behind a boot stub,
mirroring the layout of a self-extracting zImage / bzImage.
"""
import bz2
import gzip
import lzma
import random
import struct

# (name, data); data None means directory
SAMPLE_FILES = [
    (".", None),
    ("bin", None),
    ("bin/busybox", b"\x7fELF" + b"busybox" * 300),
    ("etc", None),
    ("etc/hostname", b"initramfs-test\n"),
    ("init", b"#!/bin/sh\nexec /bin/busybox sh\n"),
]

SAMPLE_MTIME = 1_600_000_000


def noise(size: int, seed: int) -> bytes:
    """Deterministic high-entropy filler (no signature collisions for the seeds used)."""
    return random.Random(seed).randbytes(size)


def cpio_entry(name: str, data: bytes = b"", mode: int = 0o100644,
               mtime: int = SAMPLE_MTIME, inode: int = 1, nlink: int = 1) -> bytes:
    encoded = name.encode() + b"\x00"
    fields = (inode, mode, 0, 0, nlink, mtime, len(data), 0, 0, 0, 0, len(encoded), 0)
    out = b"070701" + b"".join(b"%08X" % v for v in fields) + encoded
    out += b"\x00" * (-len(out) % 4)
    out += data
    out += b"\x00" * (-len(out) % 4)
    return out


def build_cpio(files=SAMPLE_FILES, mtime: int = SAMPLE_MTIME) -> bytes:
    """Pack `files` into a newc archive padded to 512 bytes."""
    out = b""
    for inode, (name, data) in enumerate(files, start=1):
        if data is None:
            out += cpio_entry(name, b"", mode=0o040755, mtime=mtime, inode=inode, nlink=2)
        else:
            out += cpio_entry(name, data, mode=0o100755, mtime=mtime, inode=inode)
    out += cpio_entry("TRAILER!!!", b"", mode=0, mtime=0, inode=0)
    out += b"\x00" * (-len(out) % 512)
    return out


def compress(archive: bytes, scheme: str) -> bytes:
    if scheme == "gzip":
        return gzip.compress(archive, mtime=0)
    if scheme == "bzip2":
        return bz2.compress(archive)
    if scheme == "lzma":
        return lzma.compress(archive, format=lzma.FORMAT_ALONE)
    return archive


def build_kernel(blob: bytes, lead: bytes = b"") -> bytes:
    """Fake vmlinux: ELF-ish header, code-like filler, optional extra bytes, the archive."""
    return (b"\x7fELF\x02\x01\x01" + noise(4096, seed=1) + lead
            + blob + noise(2048, seed=2))


def build_image(kernel: bytes, stub_size: int = 1024) -> bytes:
    """Boot stub, gzip payload, 4-byte size trailer, zero padding."""
    stub = b"\xfc\xe8" + noise(stub_size, seed=3)
    payload = gzip.compress(kernel, mtime=0)
    return stub + payload + struct.pack("<I", len(kernel)) + b"\x00" * 64


def sample_image(scheme: str = "gzip") -> bytes:
    return build_image(build_kernel(compress(build_cpio(), scheme)))


# A gzip header whose first deflate block uses the reserved block type
BOGUS_GZIP = b"\x1f\x8b\x08\x00" + b"\x00" * 6 + b"\xff" * 32
