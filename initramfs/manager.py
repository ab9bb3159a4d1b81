"""
Extraction Manager — Orchestrates locate → find → extract.
"""

from __future__ import annotations

import time
import logging
from dataclasses import dataclass, field
from typing import Optional

from .candidates import ArchiveCandidateFinder
from .extractor import ArchiveExtractor, CandidateAttempt
from .locator import KernelPayloadLocator
from .mmap_reader import read_image
from .scanner import BinaryScanner

logger = logging.getLogger(__name__)


@dataclass
class ExtractionSession:
    """Represents one complete pipeline run."""
    image_path: str = ""
    image_size: int = 0
    start_time: float = 0.0
    end_time: float = 0.0
    payload_offset: int = -1
    kernel: bytes = field(default=b"", repr=False)
    scheme: str = ""
    scheme_description: str = ""
    candidate_offsets: list[int] = field(default_factory=list)
    attempts: list[CandidateAttempt] = field(default_factory=list)
    archive: bytes = field(default=b"", repr=False)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def kernel_size(self) -> int:
        return len(self.kernel)

    @property
    def archive_size(self) -> int:
        return len(self.archive)

    @property
    def archive_offset(self) -> Optional[int]:
        for attempt in self.attempts:
            if attempt.success:
                return attempt.offset
        return None

    @property
    def summary(self) -> dict:
        return {
            "image": self.image_path,
            "image_size": self.image_size,
            "payload_offset": self.payload_offset,
            "kernel_size": self.kernel_size,
            "scheme": self.scheme,
            "scheme_description": self.scheme_description,
            "candidates": len(self.candidate_offsets),
            "attempts": [a.as_dict() for a in self.attempts],
            "archive_offset": self.archive_offset,
            "archive_size": self.archive_size,
            "duration": round(self.duration, 3),
        }


class ExtractionManager:
    """
    High-level manager for initramfs recovery.

    Each stage consumes the complete output of the previous one; a stage
    error aborts the run and propagates unchanged.
    """

    def __init__(self, require_cpio_magic: bool = True):
        scanner = BinaryScanner()
        self.locator = KernelPayloadLocator(scanner=scanner)
        self.finder = ArchiveCandidateFinder(scanner=scanner)
        self.extractor = ArchiveExtractor(require_cpio_magic=require_cpio_magic)
        self.last_session: Optional[ExtractionSession] = None

    def run_buffer(self, image: bytes, image_path: str = "") -> ExtractionSession:
        session = ExtractionSession(
            image_path=image_path,
            image_size=len(image),
            start_time=time.time(),
        )
        self.last_session = session
        try:
            session.kernel = self.locator.locate(image)
            session.payload_offset = self.locator.payload_offset

            scheme, offsets = self.finder.find_candidates(session.kernel)
            session.scheme = scheme.name
            session.scheme_description = scheme.description
            session.candidate_offsets = offsets

            try:
                session.archive = self.extractor.extract(session.kernel, scheme, offsets)
            finally:
                session.attempts = list(self.extractor.attempts)
        finally:
            session.end_time = time.time()

        logger.info(
            "Done in %.2fs: %s archive, %d bytes, %d attempt(s)",
            session.duration, session.scheme, session.archive_size, len(session.attempts),
        )
        return session

    def run(self, image_path: str) -> ExtractionSession:
        image = read_image(image_path)
        return self.run_buffer(image, image_path=image_path)

    def process_buffer(self, image: bytes) -> bytes:
        return self.run_buffer(image).archive

    def process(self, image_path: str) -> bytes:
        """Return the initramfs archive recovered from the image at `image_path`."""
        return self.run(image_path).archive


def process(image_path: str, require_cpio_magic: bool = True) -> bytes:
    return ExtractionManager(require_cpio_magic=require_cpio_magic).process(image_path)
