"""
Test kernel payload location: first gzip signature, then full decompression.
"""
import gzip
import struct

import pytest

from initramfs.errors import KernelDecompressionFailed, NoCompressedPayload
from initramfs.locator import KernelPayloadLocator, locate
from fixture_images import BOGUS_GZIP, build_image, build_kernel, noise


def test_recovers_payload_after_arbitrary_prefix():
    kernel = build_kernel(b"payload")
    for stub_size in (0, 1, 513, 8192):
        image = build_image(kernel, stub_size=stub_size)
        locator = KernelPayloadLocator()
        assert locator.locate(image) == kernel
        # stub is 2 fixed bytes + stub_size bytes of noise
        assert locator.payload_offset == 2 + stub_size


def test_trailing_bytes_ignored():
    kernel = b"vmlinux" * 1000
    image = noise(300, seed=7) + gzip.compress(kernel, mtime=0) + struct.pack("<I", len(kernel)) + b"\xff" * 100
    assert locate(image) == kernel


def test_no_signature():
    with pytest.raises(NoCompressedPayload) as exc:
        locate(noise(4096, seed=8))
    assert exc.value.stage == "locate"
    with pytest.raises(NoCompressedPayload):
        locate(b"")


def test_first_match_is_used_even_when_bogus():
    # An earlier signature is not skipped: first match wins and is fatal
    image = b"stub" + BOGUS_GZIP + gzip.compress(b"real kernel", mtime=0)
    with pytest.raises(KernelDecompressionFailed) as exc:
        locate(image)
    assert exc.value.offset == 4
    assert exc.value.scheme == "gzip"
    assert "offset=0x4" in str(exc.value)


def test_truncated_payload():
    payload = gzip.compress(noise(10000, seed=9), mtime=0)
    with pytest.raises(KernelDecompressionFailed):
        locate(b"stub" + payload[:len(payload) // 2])
