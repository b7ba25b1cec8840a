"""Tests for the combinational ALU."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from ninebit_cpu.alu import AluOp, alu_name, evaluate
from ninebit_cpu.state import MachineFault


class TestAdd:
    """Test the add operation."""

    def test_add_all_operand_pairs(self):
        """Result is the sum mod 256, carry iff the sum reaches 256."""
        for x in range(256):
            for y in range(256):
                out = evaluate(AluOp.ADD, x, y)
                assert out.result == (x + y) % 256
                assert out.carry == (x + y >= 256)
                assert out.zero == (out.result == 0)

    def test_add_overflow_to_zero(self):
        """0x80 + 0x80 wraps to zero with carry."""
        out = evaluate(AluOp.ADD, 0x80, 0x80)
        assert out.result == 0
        assert out.carry is True
        assert out.zero is True


class TestBitwise:
    """Test xor/and/or."""

    @pytest.mark.parametrize("op,fn", [
        (AluOp.XOR, lambda x, y: x ^ y),
        (AluOp.AND, lambda x, y: x & y),
        (AluOp.OR, lambda x, y: x | y),
    ])
    def test_bitwise_all_operand_pairs(self, op, fn):
        """Result matches the bitwise operation, carry is always clear."""
        for x in range(256):
            for y in range(256):
                out = evaluate(op, x, y)
                assert out.result == fn(x, y)
                assert out.carry is False
                assert out.zero == (out.result == 0)


class TestPassThrough:
    """Test nopx/nopy."""

    def test_nopx(self):
        """nopx passes the X operand."""
        out = evaluate(AluOp.NOPX, 0x12, 0xFF)
        assert out.result == 0x12
        assert out.carry is False
        assert out.zero is False

    def test_nopy(self):
        """nopy passes the Y operand."""
        out = evaluate(AluOp.NOPY, 0xFF, 0x34)
        assert out.result == 0x34
        assert out.carry is False

    @pytest.mark.parametrize("op", [AluOp.NOPX, AluOp.NOPY])
    def test_pass_through_sets_zero(self, op):
        """Zero flag is computed for pass-through too."""
        assert evaluate(op, 0, 0).zero is True


class TestZeroFlag:
    """Zero flag for every operation."""

    @pytest.mark.parametrize("op", list(AluOp))
    def test_zero_flag_tracks_result(self, op):
        """zero == (result == 0) on a spread of operands."""
        for x, y in [(0, 0), (1, 0), (0, 1), (0xFF, 0x01), (0xAA, 0x55), (0xF0, 0xF0)]:
            out = evaluate(op, x, y)
            assert out.zero == (out.result == 0)


class TestInvalidOps:
    """Out-of-range op codes."""

    @pytest.mark.parametrize("op", [6, 7, -1])
    def test_invalid_op_faults(self, op):
        """Op codes outside 0..5 are a machine fault."""
        with pytest.raises(MachineFault):
            evaluate(op, 1, 2)

    def test_alu_names(self):
        """Mnemonics follow op code order."""
        assert [alu_name(op) for op in range(6)] == ["add", "xor", "and", "or", "nopx", "nopy"]
        with pytest.raises(MachineFault):
            alu_name(6)
