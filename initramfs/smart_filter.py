"""
Smart Filter — validation for decompressed initramfs candidates.

Key design decisions:
  • A candidate is accepted only if decompression produced data at all
  • For compressed schemes the output must also start with a cpio newc
    magic, which rejects streams that decode cleanly but are not archives
    (the kernel embeds other compressed blobs, e.g. firmware or configs)
  • We do NOT walk the whole cpio structure here — the cpio consumer does
    that and reports its own errors
"""

from __future__ import annotations

import logging

from .signatures import Scheme

logger = logging.getLogger(__name__)

# newc ("070701") and newc with CRC ("070702")
CPIO_MAGICS = (b"070701", b"070702")
CPIO_TRAILER = b"TRAILER!!!"


def is_cpio_archive(data: bytes) -> bool:
    """Check for a cpio newc header at the start of `data`."""
    return len(data) >= 6 and data[:6] in CPIO_MAGICS


def has_cpio_trailer(data: bytes) -> bool:
    return CPIO_TRAILER in data


def validate_archive(
    data: bytes,
    scheme: Scheme,
    require_cpio_magic: bool = True,
) -> tuple[bool, str]:
    """
    Decide whether a decompressed candidate is an initramfs archive.

    Returns:
        (ok, reason) — reason describes the rejection, or the accepted shape.
    """
    if not data:
        return False, "empty output"
    if require_cpio_magic and scheme.is_compressed and not is_cpio_archive(data):
        return False, f"no cpio magic (starts with {bytes(data[:6])!r})"
    if not has_cpio_trailer(data):
        logger.debug("%s candidate has no cpio trailer", scheme.name)
    return True, f"{len(data)} bytes"
