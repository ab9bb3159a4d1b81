"""
Archive Extractor — trial-and-verify recovery of the initramfs archive.

HOW EXTRACTION WORKS
────────────────────
Compressed-archive magic numbers are 4–13 bytes long and collide with
incidental binary data, so a signature match is only a candidate.  For each
candidate offset, earliest first:

1.  start = offset + scheme.offset_adjustment; a start outside the buffer
    fails this candidate only.
2.  Slice the kernel from `start` to its end.
3.  Decompress it (identity for uncompressed cpio).
4.  Validate the output (non-empty, cpio magic — see smart_filter).
5.  Return on the first success; otherwise discard and move on.

Candidates are tried strictly one at a time; the first success wins.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import AllCandidatesFailed, DecompressionError, InvalidOffsetAdjustment
from .signatures import Scheme
from .smart_filter import validate_archive

logger = logging.getLogger(__name__)


@dataclass
class CandidateAttempt:
    """Outcome of one extraction attempt."""
    offset: int                     # Raw signature match offset
    start: int                      # offset + adjustment
    success: bool = False
    reason: str = ""
    data: Optional[bytes] = None    # Archive bytes (success only)
    elapsed: float = 0.0

    @property
    def size(self) -> int:
        return len(self.data) if self.data else 0

    def as_dict(self) -> dict:
        return {
            "offset": self.offset,
            "offset_hex": f"0x{self.offset:X}",
            "start": self.start,
            "success": self.success,
            "reason": self.reason,
            "size": self.size,
            "elapsed": round(self.elapsed, 4),
        }


class ArchiveExtractor:
    """
    Try candidate offsets in order until one yields an archive.

    Usage:
        extractor = ArchiveExtractor()
        archive = extractor.extract(kernel, scheme, offsets)
        extractor.attempts   # every CandidateAttempt of the last call
    """

    def __init__(self, require_cpio_magic: bool = True):
        self.require_cpio_magic = require_cpio_magic
        self.attempts: list[CandidateAttempt] = []

    def try_candidate(self, kernel: bytes, scheme: Scheme, offset: int) -> CandidateAttempt:
        """Run steps 1–4 for a single offset.  Never raises for bad data."""
        start = offset + scheme.offset_adjustment
        attempt = CandidateAttempt(offset=offset, start=start)
        t0 = time.time()

        try:
            self._check_start(kernel, scheme, offset, start)
            data = scheme.decompress(kernel[start:])
        except (InvalidOffsetAdjustment, DecompressionError) as e:
            attempt.reason = e.message
            attempt.elapsed = time.time() - t0
            return attempt

        ok, reason = validate_archive(data, scheme, self.require_cpio_magic)
        attempt.success = ok
        attempt.reason = reason
        if ok:
            attempt.data = data
        attempt.elapsed = time.time() - t0
        return attempt

    @staticmethod
    def _check_start(kernel: bytes, scheme: Scheme, offset: int, start: int):
        if start < 0 or start >= len(kernel):
            raise InvalidOffsetAdjustment(
                f"start {start} outside kernel of {len(kernel)} bytes",
                scheme=scheme.name, offset=offset, start=start,
            )

    def extract(self, kernel: bytes, scheme: Scheme, offsets: Iterable[int]) -> bytes:
        """
        Return the first candidate's archive bytes that validate.

        Raises:
            AllCandidatesFailed: every offset was tried and rejected.
        """
        self.attempts = []
        for offset in offsets:
            attempt = self.try_candidate(kernel, scheme, offset)
            self.attempts.append(attempt)
            if attempt.success:
                logger.info(
                    "Recovered %s archive at offset 0x%X (start 0x%X): %d bytes",
                    scheme.name, offset, attempt.start, attempt.size,
                )
                return attempt.data
            logger.debug("Candidate %s @ 0x%X rejected: %s",
                         scheme.name, offset, attempt.reason)

        tried = ", ".join(f"0x{a.offset:X}" for a in self.attempts)
        raise AllCandidatesFailed(
            f"all {len(self.attempts)} candidate offset(s) failed: {tried}",
            scheme=scheme.name, attempts=self.attempts,
        )

    @property
    def winning_attempt(self) -> Optional[CandidateAttempt]:
        for attempt in self.attempts:
            if attempt.success:
                return attempt
        return None


def extract(kernel: bytes, scheme: Scheme, offsets: Iterable[int]) -> bytes:
    return ArchiveExtractor().extract(kernel, scheme, offsets)
