"""
Compression Signature Registry — initramfs archive schemes.

DESIGN RATIONALE
────────────────
A kernel image embeds its initramfs either compressed or as a raw cpio
stream.  Each scheme is described by:
  • a magic-byte pattern (``??`` marks a wildcard byte)
  • a decompression capability  ``decompress(bytes) -> bytes``
  • an offset adjustment added to a raw pattern match to reach the first
    byte the decompressor expects

Adjustments are 0-based slice offsets.  The bzip2 pattern is the block magic
"1AY&SY", which sits 4 bytes after the stream start ("BZh" + level digit),
so it needs -4.  The other patterns begin at the first byte of the stream.

Exported:
  • SCHEMES          — name → Scheme, in priority order
  • KERNEL_SCHEME    — the scheme used for the outer kernel payload
  • lookup()         — registry access by name
  • parse_pattern()  — hex notation → SignaturePattern
"""

from __future__ import annotations

import bz2
import lzma
import zlib
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import DecompressionError, UnknownSchemeError

# One matcher per byte: a fixed value, or None for "any byte"
SignaturePattern = tuple[Optional[int], ...]


def parse_pattern(text: str) -> SignaturePattern:
    """Parse ``"5d 00 ?? ff"`` style hex notation into a pattern."""
    matchers: list[Optional[int]] = []
    for token in text.split():
        if token == "??":
            matchers.append(None)
        else:
            matchers.append(int(token, 16))
    if not matchers:
        raise ValueError("empty signature pattern")
    return tuple(matchers)


def format_pattern(pattern: SignaturePattern) -> str:
    return " ".join("??" if b is None else f"{b:02x}" for b in pattern)


# ══════════════════════════════════════════════════════════════
#  D E C O M P R E S S I O N   C A P A B I L I T I E S
# ══════════════════════════════════════════════════════════════
# Streams embedded in a kernel are followed by unrelated bytes, so every
# decoder stops at end-of-stream and ignores what follows.  A stream that
# never reaches its end marker is treated as malformed.

def decompress_gzip(data: bytes) -> bytes:
    # 16 + MAX_WBITS: expect a gzip header and trailer
    dec = zlib.decompressobj(16 + zlib.MAX_WBITS)
    try:
        out = dec.decompress(data)
    except zlib.error as e:
        raise DecompressionError(f"gzip: {e}", scheme="gzip") from e
    if not dec.eof:
        raise DecompressionError("gzip: truncated stream", scheme="gzip")
    return out


def decompress_bzip2(data: bytes) -> bytes:
    dec = bz2.BZ2Decompressor()
    try:
        out = dec.decompress(data)
    except (OSError, ValueError) as e:
        raise DecompressionError(f"bzip2: {e}", scheme="bzip2") from e
    if not dec.eof:
        raise DecompressionError("bzip2: truncated stream", scheme="bzip2")
    return out


def decompress_lzma(data: bytes) -> bytes:
    # Legacy .lzma ("alone") container, as produced for kernel initramfs
    dec = lzma.LZMADecompressor(format=lzma.FORMAT_ALONE)
    try:
        out = dec.decompress(data)
    except lzma.LZMAError as e:
        raise DecompressionError(f"lzma: {e}", scheme="lzma") from e
    if not dec.eof:
        raise DecompressionError("lzma: truncated stream", scheme="lzma")
    return out


def decompress_none(data: bytes) -> bytes:
    """Identity pass-through for an uncompressed cpio archive."""
    return bytes(data)


# ══════════════════════════════════════════════════════════════
#  S C H E M E S
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Scheme:
    """Describes one archive compression scheme."""
    name: str
    pattern: SignaturePattern
    decompress: Callable[[bytes], bytes]
    offset_adjustment: int = 0
    description: str = ""

    @property
    def is_compressed(self) -> bool:
        return self.name != "none"

    def __repr__(self) -> str:
        return (f"Scheme({self.name!r}, pattern='{format_pattern(self.pattern)}', "
                f"adjust={self.offset_adjustment:+d})")


# ── gzip ──  (ID1 ID2 CM=deflate FLG=0)
SCHEME_GZIP = Scheme(
    name="gzip",
    pattern=parse_pattern("1f 8b 08 00"),
    decompress=decompress_gzip,
    offset_adjustment=0,
    description="gzip (deflate)",
)

# ── bzip2 ──  (block magic "1AY&SY", stream header "BZh<level>" precedes it)
SCHEME_BZIP2 = Scheme(
    name="bzip2",
    pattern=parse_pattern("31 41 59 26 53 59"),
    decompress=decompress_bzip2,
    offset_adjustment=-4,
    description="bzip2",
)

# ── lzma ──  (props 0x5D, dict size with two variable bytes, unknown length)
SCHEME_LZMA = Scheme(
    name="lzma",
    pattern=parse_pattern("5d 00 00 ?? ?? ff ff ff ff ff ff ff ff"),
    decompress=decompress_lzma,
    offset_adjustment=0,
    description="lzma (alone)",
)

# ── none ──  (raw cpio newc magic "070701")
SCHEME_NONE = Scheme(
    name="none",
    pattern=parse_pattern("30 37 30 37 30 31"),
    decompress=decompress_none,
    offset_adjustment=0,
    description="uncompressed cpio",
)


# ═════════════════════════════════════════════════════════════
#  Registry: first scheme with a match wins
# ═════════════════════════════════════════════════════════════

SCHEMES: dict[str, Scheme] = {
    s.name: s for s in (SCHEME_GZIP, SCHEME_BZIP2, SCHEME_LZMA, SCHEME_NONE)
}

KERNEL_SCHEME = SCHEME_GZIP


def lookup(name: str) -> Scheme:
    try:
        return SCHEMES[name]
    except KeyError:
        raise UnknownSchemeError(
            f"unknown scheme {name!r} (known: {', '.join(SCHEMES)})"
        ) from None


def all_schemes() -> tuple[Scheme, ...]:
    """Return every scheme in priority order."""
    return tuple(SCHEMES.values())
