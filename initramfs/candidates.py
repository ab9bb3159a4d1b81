"""
Archive Candidate Finder — pick the initramfs scheme inside a kernel binary.

Schemes are tried in registry priority order (gzip, bzip2, lzma, none); the
first one whose signature occurs at least once wins, and ALL of its match
offsets are returned in discovery order.  A raw initramfs is found through
the "none" scheme, whose signature is the cpio magic itself.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .errors import NoArchiveSignatureFound
from .scanner import BinaryScanner
from .signatures import Scheme, all_schemes

logger = logging.getLogger(__name__)


class ArchiveCandidateFinder:

    def __init__(
        self,
        schemes: Optional[Iterable[Scheme]] = None,
        scanner: Optional[BinaryScanner] = None,
    ):
        self.schemes = tuple(schemes) if schemes is not None else all_schemes()
        self.scanner = scanner or BinaryScanner()

    def find_candidates(self, kernel: bytes) -> tuple[Scheme, list[int]]:
        """
        Return the first scheme with matches and its ascending offsets.

        Raises:
            NoArchiveSignatureFound: no scheme matched anywhere.
        """
        for scheme in self.schemes:
            offsets = self.scanner.scan(kernel, scheme.pattern)
            if offsets:
                logger.info(
                    "Archive scheme %s: %d candidate offset(s), first at 0x%X",
                    scheme.name, len(offsets), offsets[0],
                )
                return scheme, offsets
            logger.debug("No %s signature in kernel", scheme.name)

        raise NoArchiveSignatureFound(
            f"none of {', '.join(s.name for s in self.schemes)} "
            f"matched in {len(kernel)}-byte kernel"
        )


def find_candidates(kernel: bytes) -> tuple[Scheme, list[int]]:
    return ArchiveCandidateFinder().find_candidates(kernel)
