"""
Error kinds raised by the extraction pipeline.

Every error records the pipeline stage that produced it and, where one was
being attempted, the scheme name and byte offset.  All are terminal for a
run: the only retry lives inside the extractor's candidate loop.
"""

from __future__ import annotations

from typing import Optional


class InitramfsError(Exception):
    """Base class for all pipeline errors."""

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        scheme: Optional[str] = None,
        offset: Optional[int] = None,
    ):
        self.message = message
        self.scheme = scheme
        self.offset = offset
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [f"[{self.stage}]"]
        if self.scheme is not None:
            parts.append(f"scheme={self.scheme}")
        if self.offset is not None:
            parts.append(f"offset=0x{self.offset:X}")
        return " ".join(parts) + f" {self.message}"


class UnknownSchemeError(InitramfsError, KeyError):
    stage = "registry"

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self._render()


class DecompressionError(InitramfsError):
    """A decompression capability rejected its input."""
    stage = "decompress"


class NoCompressedPayload(InitramfsError):
    stage = "locate"


class KernelDecompressionFailed(InitramfsError):
    stage = "locate"


class NoArchiveSignatureFound(InitramfsError):
    stage = "find"


class InvalidOffsetAdjustment(InitramfsError):
    stage = "extract"

    def __init__(self, message: str, scheme: str, offset: int, start: int):
        self.start = start
        super().__init__(message, scheme=scheme, offset=offset)


class AllCandidatesFailed(InitramfsError):
    stage = "extract"

    def __init__(self, message: str, scheme: str, attempts: list):
        self.attempts = attempts
        super().__init__(message, scheme=scheme)


class CpioFormatError(InitramfsError):
    stage = "cpio"


class UnsafePathError(InitramfsError):
    stage = "cpio"
