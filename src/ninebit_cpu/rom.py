"""ROM image loading and writing.

A ROM image is a headerless sequence of 2-byte little-endian cells, one
per instruction word. Only the low 9 bits of a cell are significant.
Images shorter than 64 cells are zero-filled and longer images are
truncated unless strict loading is requested.
"""

import logging
import struct
from pathlib import Path
from typing import Iterable, Tuple, Union

from .state import ROM_SIZE, WORD_MASK

logger = logging.getLogger(__name__)

CELL_BYTES = 2
IMAGE_BYTES = ROM_SIZE * CELL_BYTES


class RomLoadError(ValueError):
    """ROM image rejected by strict loading."""


def load_rom(data: bytes, strict: bool = False) -> Tuple[int, ...]:
    """Decode a ROM image into 64 instruction cells.

    Args:
        data: Raw image bytes
        strict: Reject empty, odd-length or oversized images

    Returns:
        Tuple of 64 cell values, each in 0..511

    Raises:
        RomLoadError: If strict is set and the image is malformed
    """
    data = bytes(data)
    logger.info(f"Read {len(data)} bytes of code")

    if strict:
        if not data:
            raise RomLoadError("ROM image is empty")
        if len(data) % CELL_BYTES:
            raise RomLoadError(f"ROM image has odd length: {len(data)} bytes")
        if len(data) > IMAGE_BYTES:
            raise RomLoadError(
                f"ROM image too large: {len(data)} bytes (max {IMAGE_BYTES})")

    # Truncate, then pad so a trailing odd byte becomes a cell's low byte
    data = data[:IMAGE_BYTES].ljust(IMAGE_BYTES, b"\x00")
    cells = struct.unpack(f"<{ROM_SIZE}H", data)
    return tuple(cell & WORD_MASK for cell in cells)


def load_rom_file(path: Union[str, Path], strict: bool = False) -> Tuple[int, ...]:
    """Read and decode a ROM image file."""
    return load_rom(Path(path).read_bytes(), strict=strict)


def dump_rom(words: Iterable[int]) -> bytes:
    """Encode instruction words as a ROM image (no padding).

    Raises:
        RomLoadError: If more than 64 words are given or a word exceeds 9 bits
    """
    words = list(words)
    if len(words) > ROM_SIZE:
        raise RomLoadError(f"Too many words for ROM: {len(words)} (max {ROM_SIZE})")
    for addr, word in enumerate(words):
        if not 0 <= word <= WORD_MASK:
            raise RomLoadError(f"Word at address {addr} out of range: 0x{word:x}")
    return struct.pack(f"<{len(words)}H", *words)
