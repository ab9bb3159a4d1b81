# initramfs — Embedded initramfs extraction from compressed kernel images.
# Pure-Python signature scanning with trial-and-verify decompression.
#
# Architecture (bottom → top):
#   errors        — Error kinds, tagged with stage / scheme / offset
#   signatures    — Scheme registry (gzip, bzip2, lzma, none) + decoders
#   scanner       — Wildcard-aware binary signature scan
#   mmap_reader   — Load an image file into one in-memory buffer
#   locator       — Find + decompress the kernel payload
#   candidates    — Pick the archive scheme and its candidate offsets
#   smart_filter  — Validate decompressed candidates
#   extractor     — Ordered trial of candidates, first success wins
#   manager       — Orchestrator (locate → find → extract)
#   cpio          — List / extract the recovered newc archive
