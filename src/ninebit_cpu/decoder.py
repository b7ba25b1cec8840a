"""Decoder: instruction classification for the 9-bit CPU.

Each 9-bit word is classified by its highest set bit, tested from bit 8
downwards; the first match wins:

    bit 8   conditional branch   1 i z a a a a a a   (i=invert, z=test zero)
    bit 7   ALU + writeback      0 1 x y o o o d d   (x/y=bank, o=op, d=dest)
    bit 6   branch               0 0 1 a a a a a a
    bit 5   reserved             0 0 0 1 - - - - -
    bit 4   load immediate       0 0 0 0 1 m m m m   (m=register mask)
    none    no-operand           0 0 0 0 0 - n n n   (0=halt, 1=clc)

The decoder emits a DecodeResult naming the execution key the registry
runs and the operands it needs. Reserved words and undefined no-operand
codes decode as invalid; the controller turns them into a fault-halt.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Set

from .alu import ALU_NAMES, AluOp
from .state import REGISTER_NAMES, ROM_ADDR_MASK, WORD_MASK


class InstructionKind(Enum):
    COND_BRANCH = "cond_branch"
    ALU = "alu"
    BRANCH = "branch"
    RESERVED = "reserved"
    LOAD_IMMEDIATE = "load_immediate"
    NO_OPERAND = "no_operand"


COND_BRANCH_NAMES = {
    # (invert, test_zero) -> mnemonic
    (False, False): "jc",
    (True, False): "jnc",
    (False, True): "jz",
    (True, True): "jnz",
}


@dataclass
class DecodeResult:
    """Result of instruction decode operation.

    Attributes:
        key: Execution key (e.g., "OP_ALU")
        params: Operand dictionary for the execution primitive
        valid: Whether the word has defined semantics
        error: Reason the word is invalid
        kind: Instruction class the word was routed to
        word: Raw instruction word
        text: Disassembly of the word
    """
    key: str
    params: Dict = field(default_factory=dict)
    valid: bool = True
    error: Optional[str] = None
    kind: Optional[InstructionKind] = None
    word: int = 0
    text: str = ""


class Decoder:
    """Priority decoder for 9-bit instruction words.

    Attributes:
        VALID_KEYS: Execution keys the decoder can emit
    """

    VALID_KEYS: Set[str] = {
        "OP_COND_BRANCH",
        "OP_ALU",
        "OP_BRANCH",
        "OP_LOAD_IMMEDIATE",
        "OP_HALT",
        "OP_CLC",
        "OP_INVALID",
    }

    def classify(self, word: int) -> InstructionKind:
        """Return the instruction class of a word by bit precedence."""
        word &= WORD_MASK
        if word & (1 << 8):
            return InstructionKind.COND_BRANCH
        if word & (1 << 7):
            return InstructionKind.ALU
        if word & (1 << 6):
            return InstructionKind.BRANCH
        if word & (1 << 5):
            return InstructionKind.RESERVED
        if word & (1 << 4):
            return InstructionKind.LOAD_IMMEDIATE
        return InstructionKind.NO_OPERAND

    def decode(self, word: int) -> DecodeResult:
        """Decode an instruction word to an execution key and operands.

        Args:
            word: Instruction word (only the low 9 bits are significant)

        Returns:
            DecodeResult with execution key and parameters
        """
        word &= WORD_MASK
        kind = self.classify(word)

        if kind is InstructionKind.COND_BRANCH:
            params = {
                "invert": bool(word & (1 << 7)),
                "test_zero": bool(word & (1 << 6)),
                "target": word & ROM_ADDR_MASK,
            }
            return self._result("OP_COND_BRANCH", params, kind, word)

        if kind is InstructionKind.ALU:
            params = {
                "bank_x": (word >> 6) & 1,
                "bank_y": (word >> 5) & 1,
                "op": (word >> 2) & 0x7,
                "dest": word & 0x3,
            }
            # Op codes 6 and 7 pass through; selecting them faults the machine
            return self._result("OP_ALU", params, kind, word)

        if kind is InstructionKind.BRANCH:
            return self._result("OP_BRANCH", {"target": word & ROM_ADDR_MASK}, kind, word)

        if kind is InstructionKind.RESERVED:
            return self._invalid(word, kind, "Reserved instruction encoding")

        if kind is InstructionKind.LOAD_IMMEDIATE:
            return self._result("OP_LOAD_IMMEDIATE", {"mask": word & 0xF}, kind, word)

        code = word & 0x7
        if code == 0:
            return self._result("OP_HALT", {}, kind, word)
        if code == 1:
            return self._result("OP_CLC", {}, kind, word)
        return self._invalid(word, kind, f"Undefined no-operand code {code}")

    def _result(self, key: str, params: Dict, kind: InstructionKind, word: int) -> DecodeResult:
        return DecodeResult(key, params, True, kind=kind, word=word,
                            text=disassemble(word))

    def _invalid(self, word: int, kind: InstructionKind, error: str) -> DecodeResult:
        return DecodeResult("OP_INVALID", {"word": word}, False, error=error,
                            kind=kind, word=word, text=disassemble(word))


def disassemble(word: int) -> str:
    """Render an instruction word in assembler syntax.

    Load-immediate words show only the register mask since the payload
    lives in the following cell. Words without defined semantics render
    as a .word directive.
    """
    word &= WORD_MASK

    if word & (1 << 8):
        name = COND_BRANCH_NAMES[(bool(word & (1 << 7)), bool(word & (1 << 6)))]
        return f"{name} ${word & ROM_ADDR_MASK}"

    if word & (1 << 7):
        op = (word >> 2) & 0x7
        if op >= len(AluOp):
            return f".word 0x{word:03x}"
        x = (word >> 6) & 1
        y = (word >> 5) & 1
        return f"{ALU_NAMES[AluOp(op)]} x{x}, y{y}, {REGISTER_NAMES[word & 0x3]}"

    if word & (1 << 6):
        return f"jmp ${word & ROM_ADDR_MASK}"

    if word & (1 << 5):
        return f".word 0x{word:03x}"

    if word & (1 << 4):
        regs = [REGISTER_NAMES[i] for i in range(4) if word & (1 << i)]
        return f"ldi {'+'.join(regs) or '-'}"

    if word & 0x7 == 0:
        return "halt"
    if word & 0x7 == 1:
        return "clc"
    return f".word 0x{word:03x}"
