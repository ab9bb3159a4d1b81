"""
Image Reader — load a kernel image into memory as one immutable buffer.

1. Memory-mapped I/O (mmap) for the read — the OS handles paging.
2. Fallback to plain read() if mmap fails (empty files, pipes, some
   platforms).

The pipeline works on whole in-memory buffers, so the mapping is copied
into a bytes object and released before any stage runs.
"""

import os
import mmap
import logging
from typing import Optional, BinaryIO

logger = logging.getLogger(__name__)


class ImageReader:
    """
    Reader for a kernel image file with mmap support.

    Usage:
        with ImageReader(file_handle) as reader:
            data = reader.read_all()
    """

    def __init__(self, fd: BinaryIO, use_mmap: bool = True):
        self._fd = fd
        self._size = os.fstat(fd.fileno()).st_size
        self._mmap: Optional[mmap.mmap] = None
        self._using_mmap = False

        if use_mmap and self._size > 0:
            self._try_mmap()

    def _try_mmap(self):
        """Attempt to memory-map the file."""
        try:
            self._mmap = mmap.mmap(
                self._fd.fileno(),
                0,  # Map entire file
                access=mmap.ACCESS_READ,
            )
            self._using_mmap = True
            logger.debug("mmap enabled: %d bytes", self._size)
        except (OSError, ValueError, OverflowError) as e:
            logger.debug("mmap unavailable (%s), using buffered reads", e)
            self._mmap = None
            self._using_mmap = False

    @property
    def is_mmap(self) -> bool:
        return self._using_mmap

    @property
    def size(self) -> int:
        return self._size

    def read_all(self) -> bytes:
        if self._using_mmap and self._mmap is not None:
            return self._mmap[:]
        self._fd.seek(0)
        return self._fd.read()

    def close(self):
        """Release mmap resources."""
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
            self._using_mmap = False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def read_image(path: str, use_mmap: bool = True) -> bytes:
    """Load the whole file at `path`.  OSError propagates to the caller."""
    with open(path, "rb") as f:
        with ImageReader(f, use_mmap=use_mmap) as reader:
            data = reader.read_all()
            logger.info(
                "Read %s: %d bytes (%s)",
                path, len(data), "mmap" if reader.is_mmap else "buffered",
            )
            return data
