"""
Test the signature registry and the wildcard-aware binary scanner.
"""
import pytest

from initramfs.errors import UnknownSchemeError
from initramfs.scanner import BinaryScanner, find_all, find_all_fixed, matches_at
from initramfs.signatures import (
    SCHEMES,
    all_schemes,
    format_pattern,
    lookup,
    parse_pattern,
)


def test_registry_order_and_lookup():
    assert [s.name for s in all_schemes()] == ["gzip", "bzip2", "lzma", "none"]
    assert lookup("bzip2") is SCHEMES["bzip2"]
    assert lookup("bzip2").offset_adjustment == -4
    assert lookup("none").pattern == tuple(b"070701")
    assert lookup("none").is_compressed is False

    with pytest.raises(UnknownSchemeError) as exc:
        lookup("zstd")
    assert "zstd" in str(exc.value)
    assert exc.value.stage == "registry"


def test_parse_pattern():
    pattern = parse_pattern("5d 00 ?? ff")
    assert pattern == (0x5D, 0x00, None, 0xFF)
    assert format_pattern(pattern) == "5d 00 ?? ff"
    assert lookup("lzma").pattern.count(None) == 2
    with pytest.raises(ValueError):
        parse_pattern("   ")


def test_fixed_pattern_all_offsets_ascending():
    data = b"xx\x1f\x8b\x08\x00yy\x1f\x8b\x08\x00"
    assert find_all(data, lookup("gzip").pattern) == [2, 8]


def test_overlapping_matches():
    assert find_all_fixed(b"aaaa", b"aa") == [0, 1, 2]
    assert find_all(b"aaaa", parse_pattern("61 61")) == [0, 1, 2]


def test_wildcards_ignored():
    pattern = parse_pattern("5d 00 00 ?? ?? ff ff")
    data = (b"\x5d\x00\x00\x80\x00\xff\xff"      # 0: match
            + b"\x5d\x00\x00\x12\x34\xff\xff"    # 7: match, different wildcard bytes
            + b"\x5d\x00\x01\x80\x00\xff\xff")   # 14: fixed byte differs
    assert find_all(data, pattern) == [0, 7]
    assert matches_at(data, pattern, 7)
    assert not matches_at(data, pattern, 14)
    assert not matches_at(data, pattern, -1)


def test_wildcard_at_edges():
    pattern = parse_pattern("?? 41 ??")
    assert find_all(b"A", pattern) == []
    assert find_all(b"xAy", pattern) == [0]
    # No room for the trailing wildcard
    assert find_all(b"xA", pattern) == []
    assert find_all(b"abc", parse_pattern("?? ??")) == [0, 1]


def test_embedded_zero_bytes():
    pattern = parse_pattern("00 0a 00")
    plain = b"\x01\x00\x0a\x00\x02"
    padded = b"\x00" * 100 + plain
    assert find_all(plain, pattern) == [1]
    assert find_all(padded, pattern) == [101]


def test_no_match_and_short_buffer():
    assert find_all(b"", lookup("gzip").pattern) == []
    assert find_all(b"\x1f\x8b\x08", lookup("gzip").pattern) == []
    assert find_all(b"\x00" * 1000, lookup("lzma").pattern) == []
    with pytest.raises(ValueError):
        find_all(b"abc", ())


def test_scanner_counts_scans():
    scanner = BinaryScanner()
    assert scanner.scan(b"070701070701", lookup("none").pattern) == [0, 6]
    assert scanner.scans == 1
