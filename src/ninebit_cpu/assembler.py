"""Assembler: mnemonic source to ROM words for the 9-bit CPU.

Source format:
    - One statement per line, ';' starts a comment
    - "name:" on its own line defines a label at the current address
    - Registers: x0, x1, y0, y1
    - Immediates: '$' then a C-style integer ($10, $0x0a, $012 octal)
    - Branch targets: a label or a '$' address below 64

Instructions:
    ldi  reg, $imm          two words: 0x10 | (1 << reg), imm
    add|xor|and|or|nopx|nopy xN, yN, reg
    jmp  target
    jc|jnc|jz|jnz target
    clc
    halt

The controller never depends on this module; it only consumes the
words (or ROM image) produced here.
"""

import re
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union

from .alu import AluOp
from .state import REGISTER_NAMES, ROM_ADDR_MASK, ROM_SIZE

LABEL_RE = re.compile(r'^[A-Za-z_.][\w.]*$')


class AssemblerError(ValueError):
    """Source program could not be assembled."""


@dataclass
class SourceLine:
    """One instruction statement from the source.

    Attributes:
        lineno: 1-based source line number
        address: ROM address of the statement's first word
        mnemonic: Lowercased instruction name
        operands: Operand strings, stripped
    """
    lineno: int
    address: int
    mnemonic: str
    operands: List[str]


def instruction_size(mnemonic: str) -> int:
    """Number of ROM words a statement occupies."""
    return 2 if mnemonic == "ldi" else 1


def parse_program(source: str, filename: str = "<string>") -> Tuple[List[SourceLine], Dict[str, int]]:
    """Parse assembly source into statements and labels.

    Handles:
        - Labels (lines ending with :)
        - Comments (starting with ;)
        - Blank lines

    Args:
        source: Assembly source code
        filename: Name used in error messages

    Returns:
        Tuple of (list of statements, label-to-address dict)

    Raises:
        AssemblerError: On duplicate or malformed labels
    """
    statements = []
    labels = {}
    address = 0

    for lineno, line in enumerate(source.splitlines(), start=1):
        line = re.sub(r';.*$', '', line).strip()

        if not line:
            continue

        if line.endswith(":"):
            label = line[:-1].strip()
            if not LABEL_RE.match(label):
                raise AssemblerError(f"{filename}:{lineno}: invalid label name: {label}")
            if label in labels:
                raise AssemblerError(f"{filename}:{lineno}: duplicate label: {label}")
            labels[label] = address
            continue

        parts = line.split(None, 1)
        mnemonic = parts[0].lower()
        operands = [op.strip() for op in parts[1].split(",")] if len(parts) > 1 else []
        statements.append(SourceLine(lineno, address, mnemonic, operands))
        address += instruction_size(mnemonic)

    return statements, labels


def parse_number(text: str) -> int:
    """Parse an integer the way C strtoul does with base 0.

    Raises:
        ValueError: If text is not a valid number
    """
    digits = text.lower()
    if digits.startswith("+"):
        digits = digits[1:]
    if not digits or "_" in digits or digits.startswith("-"):
        raise ValueError(text)
    if digits.startswith("0x"):
        return int(digits[2:], 16)
    if len(digits) > 1 and digits.startswith("0"):
        return int(digits[1:], 8)
    return int(digits, 10)


class Assembler:
    """Two-pass assembler with table-driven mnemonic dispatch.

    Attributes:
        encode_alu_op: Encode the ALU operation into ALU instructions. The
            original encoder left the op field clear, so every ALU
            mnemonic ran as "add"; pass False to reproduce that.
    """

    def __init__(self, encode_alu_op: bool = True):
        self.encode_alu_op = encode_alu_op
        self.mnemonics: Dict[str, Callable[[SourceLine], List[int]]] = {
            "ldi": self._op_ldi,
            "add": partial(self._op_alu, AluOp.ADD),
            "xor": partial(self._op_alu, AluOp.XOR),
            "and": partial(self._op_alu, AluOp.AND),
            "or": partial(self._op_alu, AluOp.OR),
            "nopx": partial(self._op_alu, AluOp.NOPX),
            "nopy": partial(self._op_alu, AluOp.NOPY),
            "jmp": self._op_jmp,
            "jc": partial(self._op_cond_branch, False, False),
            "jnc": partial(self._op_cond_branch, True, False),
            "jz": partial(self._op_cond_branch, False, True),
            "jnz": partial(self._op_cond_branch, True, True),
            "clc": partial(self._op_no_operand, 1),
            "halt": partial(self._op_no_operand, 0),
        }
        self._filename = "<string>"
        self._labels: Dict[str, int] = {}

    def assemble(self, source: str, filename: str = "<string>") -> List[int]:
        """Assemble source code into ROM words.

        Args:
            source: Assembly source code
            filename: Name used in error messages

        Returns:
            List of instruction words, at most 64

        Raises:
            AssemblerError: On any syntax, operand or size error
        """
        self._filename = filename
        statements, self._labels = parse_program(source, filename)

        words: List[int] = []
        for stmt in statements:
            handler = self.mnemonics.get(stmt.mnemonic)
            if handler is None:
                self._fail(stmt, f"unknown instruction: {stmt.mnemonic}")
            encoded = handler(stmt)
            if len(words) + len(encoded) > ROM_SIZE:
                self._fail(stmt, f"program exceeds {ROM_SIZE} words")
            words.extend(encoded)

        return words

    # =========================================================================
    # Encoders
    # =========================================================================

    def _op_ldi(self, stmt: SourceLine) -> List[int]:
        reg_name, imm_text = self._operands(stmt, 2)
        reg = self._register(stmt, reg_name)
        imm = self._immediate(stmt, imm_text)
        return [(1 << 4) | (1 << reg), imm]

    def _op_alu(self, op: AluOp, stmt: SourceLine) -> List[int]:
        x_name, y_name, dest_name = self._operands(stmt, 3)
        x = self._bank_register(stmt, "x", x_name)
        y = self._bank_register(stmt, "y", y_name)
        dest = self._register(stmt, dest_name)
        op_bits = (int(op) << 2) if self.encode_alu_op else 0
        return [(1 << 7) | (x << 6) | (y << 5) | op_bits | dest]

    def _op_jmp(self, stmt: SourceLine) -> List[int]:
        target, = self._operands(stmt, 1)
        return [(1 << 6) | self._target(stmt, target)]

    def _op_cond_branch(self, invert: bool, test_zero: bool, stmt: SourceLine) -> List[int]:
        target, = self._operands(stmt, 1)
        return [(1 << 8) | (int(invert) << 7) | (int(test_zero) << 6) | self._target(stmt, target)]

    def _op_no_operand(self, code: int, stmt: SourceLine) -> List[int]:
        self._operands(stmt, 0)
        return [code]

    # =========================================================================
    # Operand Parsing
    # =========================================================================

    def _fail(self, stmt: SourceLine, message: str):
        raise AssemblerError(f"{self._filename}:{stmt.lineno}: {message}")

    def _operands(self, stmt: SourceLine, count: int) -> List[str]:
        if len(stmt.operands) != count or any(not op for op in stmt.operands):
            self._fail(stmt, f"{stmt.mnemonic}: wrong number of arguments")
        return stmt.operands

    def _register(self, stmt: SourceLine, name: str) -> int:
        name = name.lower()
        if name not in REGISTER_NAMES:
            self._fail(stmt, f"unknown register: {name}")
        return REGISTER_NAMES.index(name)

    def _bank_register(self, stmt: SourceLine, bank: str, name: str) -> int:
        name = name.lower()
        if name not in (f"{bank}0", f"{bank}1"):
            self._fail(stmt, f"bad {bank} register, {name}")
        return int(name[1])

    def _immediate(self, stmt: SourceLine, text: str) -> int:
        if not text.startswith("$"):
            self._fail(stmt, f"bad address or integer literal: {text}")
        try:
            value = parse_number(text[1:])
        except ValueError:
            self._fail(stmt, f"bad address or integer literal: {text}")
        if not 0 <= value <= 0xFF:
            self._fail(stmt, f"bad address or integer literal: {text}")
        return value

    def _target(self, stmt: SourceLine, text: str) -> int:
        if text.startswith("$"):
            addr = self._immediate(stmt, text)
            if addr > ROM_ADDR_MASK:
                self._fail(stmt, f"branch target out of range: {text}")
            return addr
        if text not in self._labels:
            self._fail(stmt, f"unknown label: {text}")
        # A label after the last word of a full ROM has no address
        if self._labels[text] > ROM_ADDR_MASK:
            self._fail(stmt, f"branch target out of range: {text}")
        return self._labels[text]


def assemble(source: str, filename: str = "<string>", encode_alu_op: bool = True) -> List[int]:
    """Assemble source code into ROM words."""
    return Assembler(encode_alu_op=encode_alu_op).assemble(source, filename)


def assemble_file(path: Union[str, Path], encode_alu_op: bool = True) -> List[int]:
    """Assemble a source file into ROM words."""
    path = Path(path)
    return assemble(path.read_text(), str(path), encode_alu_op=encode_alu_op)
