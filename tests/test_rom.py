"""Tests for ROM image loading and writing."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from ninebit_cpu.rom import RomLoadError, dump_rom, load_rom, load_rom_file
from ninebit_cpu.state import ROM_SIZE


class TestLoadRom:
    """Test permissive loading."""

    def test_little_endian_cells(self):
        """Cells are 2 bytes, low byte first."""
        rom = load_rom(b"\x11\x00\x05\x00\x40\x01")
        assert rom[:3] == (0x11, 0x05, 0x140)

    def test_short_image_zero_filled(self):
        """Missing cells read as zero."""
        rom = load_rom(b"\x11\x00")
        assert len(rom) == ROM_SIZE
        assert rom[0] == 0x11
        assert all(cell == 0 for cell in rom[1:])

    def test_empty_image(self):
        """An empty image is an all-zero ROM."""
        assert load_rom(b"") == (0,) * ROM_SIZE

    def test_long_image_truncated(self):
        """Cells past 64 are ignored."""
        data = b"\x01\x00" * ROM_SIZE + b"\x00\x00" * 4
        rom = load_rom(data)
        assert len(rom) == ROM_SIZE
        assert all(cell == 1 for cell in rom)

    def test_unused_high_bits_ignored(self):
        """Only the low 9 bits of a cell are kept."""
        rom = load_rom(b"\xff\xff\x00\xfe")
        assert rom[0] == 0x1FF
        assert rom[1] == 0

    def test_odd_trailing_byte(self):
        """A trailing odd byte becomes the low byte of a final cell."""
        rom = load_rom(b"\x11\x00\x07")
        assert rom[1] == 0x07

    def test_load_rom_file(self, tmp_path):
        """Images load from files."""
        path = tmp_path / "prog.bin"
        path.write_bytes(b"\x11\x00\x05\x00")
        assert load_rom_file(path)[:2] == (0x11, 0x05)


class TestStrictLoad:
    """Test strict loading."""

    def test_rejects_empty(self):
        with pytest.raises(RomLoadError, match="empty"):
            load_rom(b"", strict=True)

    def test_rejects_odd_length(self):
        with pytest.raises(RomLoadError, match="odd"):
            load_rom(b"\x11\x00\x05", strict=True)

    def test_rejects_oversized(self):
        with pytest.raises(RomLoadError, match="too large"):
            load_rom(b"\x00\x00" * (ROM_SIZE + 1), strict=True)

    def test_accepts_short_and_full_images(self):
        """Even-length images up to 128 bytes pass."""
        assert load_rom(b"\x11\x00", strict=True)[0] == 0x11
        assert len(load_rom(b"\x00\x00" * ROM_SIZE, strict=True)) == ROM_SIZE


class TestDumpRom:
    """Test ROM image writing."""

    def test_layout(self):
        """Words are written as little-endian cells without padding."""
        assert dump_rom([0x11, 0x05, 0x1C9]) == b"\x11\x00\x05\x00\xc9\x01"

    def test_too_many_words(self):
        with pytest.raises(RomLoadError):
            dump_rom([0] * (ROM_SIZE + 1))

    def test_word_too_wide(self):
        with pytest.raises(RomLoadError):
            dump_rom([0x200])

    def test_reload(self):
        """A dumped image loads back to the same words."""
        words = [0x11, 0x05, 0x80, 0x1C2, 0]
        assert load_rom(dump_rom(words))[:len(words)] == tuple(words)
