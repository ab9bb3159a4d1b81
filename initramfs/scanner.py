"""
Binary Scanner — locate every occurrence of a signature in a byte buffer.

HOW SCANNING WORKS
──────────────────
1.  Split the pattern into runs of fixed bytes separated by wildcards.
2.  Anchor on the longest fixed run and find EVERY occurrence of it with
    Python's fast bytes.find(), stepping one byte at a time so overlapping
    matches are kept.
3.  For each anchor hit, check the remaining fixed runs at their positions
    relative to the pattern start.  Wildcard bytes accept any value.

The scan is binary safe: no byte value (NUL, newline, high bytes) is
treated specially.  Results are eager and strictly ascending.
"""

from __future__ import annotations

import logging

from .signatures import SignaturePattern

logger = logging.getLogger(__name__)


def _fixed_runs(pattern: SignaturePattern) -> list[tuple[int, bytes]]:
    """Return (position, bytes) for each maximal run of fixed bytes."""
    runs: list[tuple[int, bytes]] = []
    start = None
    for i, b in enumerate(pattern):
        if b is None:
            if start is not None:
                runs.append((start, bytes(pattern[start:i])))
                start = None
        elif start is None:
            start = i
    if start is not None:
        runs.append((start, bytes(pattern[start:])))
    return runs


def find_all_fixed(data: bytes, needle: bytes) -> list[int]:
    """Return all positions of `needle` in `data`, overlaps included."""
    positions = []
    start = 0
    while True:
        pos = data.find(needle, start)
        if pos == -1:
            break
        positions.append(pos)
        start = pos + 1
    return positions


def matches_at(data: bytes, pattern: SignaturePattern, offset: int) -> bool:
    """Check whether `pattern` matches `data` starting at `offset`."""
    if offset < 0 or offset + len(pattern) > len(data):
        return False
    for i, b in enumerate(pattern):
        if b is not None and data[offset + i] != b:
            return False
    return True


def find_all(data: bytes, pattern: SignaturePattern) -> list[int]:
    """
    Return every offset in `data` where `pattern` matches.

    Args:
        data:    Buffer to scan (bytes, bytearray or mmap).
        pattern: Sequence of byte values, None for a wildcard byte.

    Returns:
        Ascending list of match offsets; empty when nothing matches.
    """
    if not pattern:
        raise ValueError("cannot scan for an empty pattern")

    plen = len(pattern)
    size = len(data)
    if plen > size:
        return []

    runs = _fixed_runs(pattern)
    if not runs:
        # All wildcards: every alignment where the pattern fits
        return list(range(size - plen + 1))

    anchor_pos, anchor = max(runs, key=lambda r: len(r[1]))
    others = [r for r in runs if r[0] != anchor_pos]

    positions = []
    for hit in find_all_fixed(data, anchor):
        start = hit - anchor_pos
        if start < 0 or start + plen > size:
            continue
        if all(data[start + pos:start + pos + len(run)] == run for pos, run in others):
            positions.append(start)
    return positions


class BinaryScanner:
    """
    Scans buffers for signature patterns.

    Usage:
        scanner = BinaryScanner()
        offsets = scanner.scan(kernel, scheme.pattern)
    """

    def __init__(self):
        self.scans = 0

    def scan(self, data: bytes, pattern: SignaturePattern) -> list[int]:
        self.scans += 1
        offsets = find_all(data, pattern)
        logger.debug("Pattern of %d bytes: %d match(es) in %d bytes",
                     len(pattern), len(offsets), len(data))
        return offsets
