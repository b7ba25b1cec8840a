"""Integration tests for example programs."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from ninebit_cpu import NineBitCPU
from ninebit_cpu.assembler import assemble, assemble_file
from ninebit_cpu.rom import dump_rom

PROGRAMS = Path(__file__).parent.parent / "programs"


@pytest.fixture
def cpu():
    return NineBitCPU()


class TestFibonacciProgram:
    """Test fibonacci.s - largest Fibonacci number below 256."""

    def test_result(self, cpu):
        """Stops at 233 when 144 + 233 carries."""
        cpu.load_words(assemble_file(PROGRAMS / "fibonacci.s"))
        cpu.run()
        assert cpu.get_register("x0") == 233
        assert cpu.get_halt_reason() == "halt"

    def test_cycles(self, cpu):
        """2 loads + 11 full iterations + carry exit + 2 = 61 cycles."""
        cpu.load_words(assemble_file(PROGRAMS / "fibonacci.s"))
        cpu.run()
        assert cpu.get_cycle_count() == 61


class TestMultiplyProgram:
    """Test multiply.s - 7 * 6 using the write strobe's carry."""

    def test_multiply_7_times_6(self, cpu):
        cpu.load_words(assemble_file(PROGRAMS / "multiply.s"))
        cpu.run()
        assert cpu.result() == (42, 23)

    def test_legacy_encoding_same_result(self, cpu):
        """multiply.s only uses add, so the legacy encoder agrees."""
        cpu.load_words(assemble_file(PROGRAMS / "multiply.s", encode_alu_op=False))
        cpu.run()
        assert cpu.result() == (42, 23)


class TestLoadHaltProgram:
    """Test load_halt.s."""

    def test_load_halt(self, cpu):
        cpu.load_words(assemble_file(PROGRAMS / "load_halt.s"))
        cpu.run()
        assert cpu.result() == (5, 2)

    def test_via_rom_image(self, cpu, tmp_path):
        """Assembling to an image file and loading it gives the same run."""
        image = tmp_path / "load_halt.bin"
        image.write_bytes(dump_rom(assemble_file(PROGRAMS / "load_halt.s")))
        cpu.load_rom_file(image)
        cpu.run()
        assert cpu.result() == (5, 2)


class TestSimplePrograms:
    """Test small inline programs."""

    def test_immediate_halt(self, cpu):
        cpu.load_words(assemble("halt"))
        cpu.run()
        assert cpu.is_halted() is True
        assert cpu.get_cycle_count() == 1

    def test_bitwise(self, cpu):
        cpu.load_words(assemble("""
            ldi x0, $0x0f
            ldi y0, $0x3c
            xor x0, y0, x1      ; 0x33
            and x0, y0, y1      ; 0x0c
            or  x1, y1, x0      ; 0x3f
            halt
        """))
        cpu.run()
        assert cpu.dump_registers() == {"x0": 0x3F, "x1": 0x33, "y0": 0x3C, "y1": 0x0C}

    def test_register_swap(self, cpu):
        """Swap x0 and y0 through x1 with pass-through ops."""
        cpu.load_words(assemble("""
            ldi x0, $10
            ldi y0, $20
            nopx x0, y0, x1     ; x1 = x0
            nopy x0, y0, x0     ; x0 = y0
            nopx x1, y0, y0     ; y0 = x1
            halt
        """))
        cpu.run()
        assert cpu.get_register("x0") == 20
        assert cpu.get_register("y0") == 10

    def test_jz_loop(self, cpu):
        """Count x0 up by 0x40 until the next step would wrap to zero."""
        cpu.load_words(assemble("""
            ldi y0, $0x40
        loop:
            add x0, y0, x0
            jnz loop
            halt
        """))
        cpu.run()
        # The write strobe re-adds y0, so jnz tests x0 + 0x40 after each store
        assert cpu.get_register("x0") == 0xC0
        assert cpu.get_cycle_count() == 1 + 3 * 2 + 1

    def test_clc_after_carry(self, cpu):
        """clc drops the carry left by an overflowing add."""
        cpu.load_words(assemble("""
            ldi x0, $0xff
            ldi y0, $0x01
            add x0, y0, x1
            clc
            jc bad
            halt
        bad:
            ldi x0, $0xee
            halt
        """))
        cpu.run()
        assert cpu.get_register("x0") == 0xFF
        assert cpu.get_flags()["carry"] is False

    def test_legacy_encoding_runs_add(self, cpu):
        """With the legacy encoder xor executes as add."""
        source = "ldi x0, $5 | ldi y0, $3 | xor x0, y0, x1 | halt".replace("|", "\n")
        cpu.load_words(assemble(source))
        cpu.run()
        assert cpu.get_register("x1") == 6

        cpu.load_words(assemble(source, encode_alu_op=False))
        cpu.run()
        assert cpu.get_register("x1") == 8
