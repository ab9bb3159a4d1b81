"""
Kernel Payload Locator — recover the kernel binary from a compressed image.

The boot stub at the front of the image is not gzip-signed, so the first
gzip signature marks the start of the compressed payload.  Everything before
it is stripped and the rest is decompressed; decompression stops at the end
of the gzip member, ignoring the size trailer and any padding.

The first match is taken without checking for an earlier coincidental
signature inside the stub.  A bad guess is caught by the decompression,
which is fatal here: nothing downstream can run without a kernel.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import DecompressionError, KernelDecompressionFailed, NoCompressedPayload
from .scanner import BinaryScanner
from .signatures import KERNEL_SCHEME, Scheme

logger = logging.getLogger(__name__)


class KernelPayloadLocator:
    """Find and decompress the kernel payload inside an image buffer."""

    def __init__(self, scheme: Scheme = KERNEL_SCHEME, scanner: Optional[BinaryScanner] = None):
        self.scheme = scheme
        self.scanner = scanner or BinaryScanner()
        self.payload_offset = -1

    def find_payload_offset(self, image: bytes) -> int:
        offsets = self.scanner.scan(image, self.scheme.pattern)
        if not offsets:
            raise NoCompressedPayload(
                f"no {self.scheme.name} signature in {len(image)}-byte image",
                scheme=self.scheme.name,
            )
        return offsets[0]

    def locate(self, image: bytes) -> bytes:
        """
        Return the decompressed kernel embedded in `image`.

        Raises:
            NoCompressedPayload:        no signature anywhere in the image.
            KernelDecompressionFailed:  the payload does not decompress.
        """
        offset = self.find_payload_offset(image)
        self.payload_offset = offset
        logger.info("Kernel payload (%s) at offset 0x%X", self.scheme.name, offset)

        try:
            kernel = self.scheme.decompress(image[offset:])
        except DecompressionError as e:
            raise KernelDecompressionFailed(
                f"payload does not decompress: {e.message}",
                scheme=self.scheme.name, offset=offset,
            ) from e
        if not kernel:
            raise KernelDecompressionFailed(
                "payload decompressed to nothing",
                scheme=self.scheme.name, offset=offset,
            )

        logger.info("Decompressed kernel: %d bytes", len(kernel))
        return kernel


def locate(image: bytes) -> bytes:
    return KernelPayloadLocator().locate(image)
