"""Combinational ALU.

The ALU reads one register from each bank and produces an 8-bit result
and a carry bit. It has no state of its own; the hold latch and flags
it feeds live in MachineState.
"""

from dataclasses import dataclass
from enum import IntEnum

from .state import BYTE_MASK, MachineFault


class AluOp(IntEnum):
    ADD = 0
    XOR = 1
    AND = 2
    OR = 3
    NOPX = 4    # pass X operand through
    NOPY = 5    # pass Y operand through


ALU_MAX = len(AluOp)

ALU_NAMES = {op: op.name.lower() for op in AluOp}


@dataclass(frozen=True)
class AluResult:
    """Output of one ALU evaluation.

    Attributes:
        result: 8-bit result value
        carry: Bit 8 of the sum for ADD, False otherwise
        zero: Whether result is zero
    """
    result: int
    carry: bool
    zero: bool


def evaluate(op: int, in_x: int, in_y: int) -> AluResult:
    """Compute the ALU output for an operation and two operands.

    Args:
        op: ALU operation code (0..5)
        in_x: X-bank operand
        in_y: Y-bank operand

    Returns:
        AluResult with result, carry and zero

    Raises:
        MachineFault: If op is not a valid operation code
    """
    carry = False

    if op == AluOp.ADD:
        total = in_x + in_y
        carry = bool(total & 0x100)
        out = total & BYTE_MASK
    elif op == AluOp.XOR:
        out = in_x ^ in_y
    elif op == AluOp.AND:
        out = in_x & in_y
    elif op == AluOp.OR:
        out = in_x | in_y
    elif op == AluOp.NOPX:
        out = in_x
    elif op == AluOp.NOPY:
        out = in_y
    else:
        raise MachineFault(f"Invalid ALU op code: {op}")

    return AluResult(result=out, carry=carry, zero=(out == 0))


def alu_name(op: int) -> str:
    """Mnemonic for an ALU operation code.

    Raises:
        MachineFault: If op is not a valid operation code
    """
    if not 0 <= op < ALU_MAX:
        raise MachineFault(f"Invalid ALU op code: {op}")
    return ALU_NAMES[AluOp(op)]
