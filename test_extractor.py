"""
Test candidate selection and the trial-and-verify extraction loop.
"""
import gzip

import pytest

from initramfs.candidates import ArchiveCandidateFinder, find_candidates
from initramfs.errors import AllCandidatesFailed, NoArchiveSignatureFound
from initramfs.extractor import ArchiveExtractor, extract
from initramfs.signatures import lookup
from initramfs.smart_filter import is_cpio_archive, validate_archive
from fixture_images import BOGUS_GZIP, build_cpio, build_kernel, compress, noise


def test_finder_priority_order():
    archive = build_cpio()
    # Raw cpio plus a gzip blob: gzip outranks none
    kernel = build_kernel(archive + compress(archive, "gzip"))
    scheme, offsets = find_candidates(kernel)
    assert scheme.name == "gzip"
    assert len(offsets) == 1


def test_finder_raw_cpio_uses_none():
    archive = build_cpio()
    kernel = build_kernel(archive)
    scheme, offsets = find_candidates(kernel)
    assert scheme.name == "none"
    assert scheme.offset_adjustment == 0
    # Every newc header matches; the first is the archive start
    assert offsets[0] == kernel.index(archive)
    assert offsets == sorted(offsets)


def test_finder_nothing_found():
    with pytest.raises(NoArchiveSignatureFound) as exc:
        ArchiveCandidateFinder().find_candidates(noise(8192, seed=11))
    assert exc.value.stage == "find"


def test_skips_spurious_earlier_offset():
    archive = build_cpio()
    blob = compress(archive, "gzip")
    kernel = build_kernel(blob, lead=BOGUS_GZIP + noise(512, seed=12))
    scheme, offsets = find_candidates(kernel)
    o1, o2 = offsets
    assert o1 < o2 == kernel.index(blob)

    extractor = ArchiveExtractor()
    assert extractor.extract(kernel, scheme, offsets) == archive
    assert [a.success for a in extractor.attempts] == [False, True]
    assert "gzip" in extractor.attempts[0].reason
    assert extractor.winning_attempt.offset == o2


def test_decodable_non_archive_rejected_by_cpio_check():
    archive = build_cpio()
    decoy = gzip.compress(b"kernel config blob " * 50, mtime=0)
    kernel = build_kernel(compress(archive, "gzip"), lead=decoy)
    scheme, offsets = find_candidates(kernel)

    assert extract(kernel, scheme, offsets) == archive
    # Without the cpio check the first clean decompression wins
    loose = ArchiveExtractor(require_cpio_magic=False)
    assert loose.extract(kernel, scheme, offsets) == b"kernel config blob " * 50


@pytest.mark.parametrize("name", ["bzip2", "lzma"])
def test_adjusted_schemes(name):
    archive = build_cpio()
    blob = compress(archive, name)
    kernel = build_kernel(blob)
    scheme, offsets = find_candidates(kernel)
    assert scheme.name == name
    assert offsets[0] + scheme.offset_adjustment == kernel.index(blob)
    assert extract(kernel, scheme, offsets) == archive


def test_none_scheme_returns_bytes_from_match():
    archive = build_cpio()
    kernel = build_kernel(archive)
    scheme, offsets = find_candidates(kernel)
    start = kernel.index(archive)
    assert extract(kernel, scheme, offsets) == kernel[start:]


def test_all_candidates_failed():
    kernel = build_kernel(BOGUS_GZIP, lead=BOGUS_GZIP)
    scheme, offsets = find_candidates(kernel)
    assert len(offsets) == 2
    with pytest.raises(AllCandidatesFailed) as exc:
        extract(kernel, scheme, offsets)
    assert exc.value.scheme == "gzip"
    assert len(exc.value.attempts) == 2
    for offset in offsets:
        assert f"0x{offset:X}" in str(exc.value)
    assert not any(a.success for a in exc.value.attempts)
    assert all(a.data is None for a in exc.value.attempts)


def test_start_out_of_range_is_candidate_failure():
    bzip2 = lookup("bzip2")
    kernel = b"\x00\x001AY&SY" + b"\x00" * 32
    extractor = ArchiveExtractor()
    attempt = extractor.try_candidate(kernel, bzip2, 2)
    assert attempt.start == -2
    assert not attempt.success
    assert "outside" in attempt.reason

    with pytest.raises(AllCandidatesFailed):
        extractor.extract(kernel, bzip2, [2, len(kernel) + 10])
    assert len(extractor.attempts) == 2


def test_validate_archive():
    gz = lookup("gzip")
    assert validate_archive(b"", gz) == (False, "empty output")
    assert validate_archive(b"hello", gz)[0] is False
    assert validate_archive(b"hello", gz, require_cpio_magic=False)[0] is True
    assert validate_archive(b"070701rest", gz)[0] is True
    assert is_cpio_archive(b"070702")
    assert not is_cpio_archive(b"0707")
