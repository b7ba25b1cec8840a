"""MachineState: Immutable state representation for the 9-bit CPU.

This module defines the register-transfer-level state of the machine.
Every component operates on a state and returns a new one, so each
cycle boundary is an independent snapshot that can be inspected while
execution continues.

State Components:
    - Registers: x0, x1, y0, y1 (4 unsigned 8-bit values)
    - Bank selectors: bank_x picks x0/x1, bank_y picks y0/y1 as ALU inputs
    - ALU: selected operation, hold latch, carry and zero flags
    - Bus: last value driven onto the shared write bus
    - IP: instruction pointer into the 64-word ROM
    - Halted: execution termination flag (plus the reason)
    - Cycle count: number of fetches performed
    - ROM: 64 cells of 9-bit instructions (shared, never mutated)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union


ROM_ADDR_BITS = 6
ROM_SIZE = 1 << ROM_ADDR_BITS        # 64
ROM_ADDR_MASK = ROM_SIZE - 1         # 0x3f
WORD_MASK = 0x1FF                    # 9 significant bits
BYTE_MASK = 0xFF

NUM_REGS = 4
REGISTER_NAMES = ("x0", "x1", "y0", "y1")
REG_X = 0
REG_Y = 2

HALT_NORMAL = "halt"
HALT_FAULT = "fault"


class MachineFault(RuntimeError):
    """Internal invariant violation inside one machine instance.

    Raised for conditions the decoder can never produce on its own:
    fetching outside the ROM, an ALU op code >= 6, a register index
    outside 0..3.
    """


@dataclass
class MachineState:
    """Immutable machine state representation.

    Attributes:
        registers: Register values in order x0, x1, y0, y1
        bank_x: X-bank selector (0 = x0, 1 = x1)
        bank_y: Y-bank selector (0 = y0, 1 = y1)
        alu_op: Selected ALU operation code (0..5)
        carry: Carry flag from the last ALU evaluation
        zero: Zero flag from the last ALU evaluation
        bus: Value last driven onto the shared bus
        hold: ALU output latch
        ip: Instruction pointer
        halted: Whether the machine has halted
        halt_reason: None, "halt" or "fault"
        cycle_count: Number of fetches performed
        rom: The 64-cell instruction ROM
    """
    registers: List[int] = field(default_factory=lambda: [0] * NUM_REGS)
    bank_x: int = 0
    bank_y: int = 0
    alu_op: int = 0
    carry: bool = False
    zero: bool = False
    bus: int = 0
    hold: int = 0
    ip: int = 0
    halted: bool = False
    halt_reason: Optional[str] = None
    cycle_count: int = 0
    rom: Tuple[int, ...] = field(default_factory=lambda: (0,) * ROM_SIZE)

    def _evolve(self, **changes) -> "MachineState":
        fields = {
            "registers": list(self.registers),
            "bank_x": self.bank_x,
            "bank_y": self.bank_y,
            "alu_op": self.alu_op,
            "carry": self.carry,
            "zero": self.zero,
            "bus": self.bus,
            "hold": self.hold,
            "ip": self.ip,
            "halted": self.halted,
            "halt_reason": self.halt_reason,
            "cycle_count": self.cycle_count,
            "rom": self.rom,  # Shared reference (immutable)
        }
        fields.update(changes)
        return MachineState(**fields)

    def snapshot(self) -> dict:
        """Create a snapshot of current state for tracing.

        Returns:
            Dictionary with copies of all state components except the ROM
        """
        return {
            "registers": self.dump_registers(),
            "bank_x": self.bank_x,
            "bank_y": self.bank_y,
            "alu_op": self.alu_op,
            "flags": self.flags,
            "bus": self.bus,
            "hold": self.hold,
            "ip": self.ip,
            "halted": self.halted,
            "halt_reason": self.halt_reason,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Exactly four registers, each an unsigned byte
            - Bank selectors are single bits, alu_op is in range
            - Bus and hold are bytes
            - IP is within the ROM, or one past its end
            - ROM has 64 cells of at most 9 bits

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.registers) != NUM_REGS:
            return False
        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= BYTE_MASK:
                return False

        if self.bank_x not in (0, 1) or self.bank_y not in (0, 1):
            return False
        if not 0 <= self.alu_op < 6:
            return False
        if not 0 <= self.bus <= BYTE_MASK or not 0 <= self.hold <= BYTE_MASK:
            return False

        # A non-branch at address 63 leaves the IP one past the end
        if not 0 <= self.ip <= ROM_SIZE:
            return False

        if len(self.rom) != ROM_SIZE:
            return False
        if any(not 0 <= word <= WORD_MASK for word in self.rom):
            return False

        if self.cycle_count < 0:
            return False

        return True

    @property
    def flags(self) -> Dict[str, bool]:
        return {"carry": self.carry, "zero": self.zero}

    def get_register(self, reg: Union[str, int]) -> int:
        """Get value of a register.

        Args:
            reg: Register name (x0, x1, y0, y1, case insensitive) or index

        Returns:
            Register value

        Raises:
            KeyError: If register doesn't exist
        """
        return self.registers[register_index(reg)]

    def set_register(self, reg: Union[str, int], value: int) -> "MachineState":
        """Create new state with one register updated (truncated to 8 bits)."""
        registers = list(self.registers)
        registers[register_index(reg)] = value & BYTE_MASK
        return self._evolve(registers=registers)

    def set_registers(self, values: List[int]) -> "MachineState":
        """Create new state with all four registers replaced."""
        if len(values) != NUM_REGS:
            raise ValueError(f"Expected {NUM_REGS} register values, got {len(values)}")
        return self._evolve(registers=[v & BYTE_MASK for v in values])

    def set_alu_result(self, hold: int, carry: bool, zero: bool) -> "MachineState":
        return self._evolve(hold=hold & BYTE_MASK, carry=carry, zero=zero)

    def select_alu(self, op: int, bank_x: Optional[int] = None,
                   bank_y: Optional[int] = None) -> "MachineState":
        """Create new state with ALU op and (optionally) input banks selected.

        Raises:
            MachineFault: If op is not a valid ALU operation code
        """
        if not 0 <= op < 6:
            raise MachineFault(f"ALU op select out of range: {op}")
        changes = {"alu_op": int(op)}
        if bank_x is not None:
            changes["bank_x"] = bank_x & 1
        if bank_y is not None:
            changes["bank_y"] = bank_y & 1
        return self._evolve(**changes)

    def set_bus(self, value: int) -> "MachineState":
        return self._evolve(bus=value & BYTE_MASK)

    def clear_carry(self) -> "MachineState":
        return self._evolve(carry=False)

    def increment_ip(self) -> "MachineState":
        """Create new state with IP incremented by 1 (not wrapped)."""
        return self._evolve(ip=self.ip + 1)

    def set_ip(self, new_ip: int) -> "MachineState":
        """Create new state with IP set to an address masked to 6 bits."""
        return self._evolve(ip=new_ip & ROM_ADDR_MASK)

    def set_halted(self, reason: str = HALT_NORMAL) -> "MachineState":
        """Create new state with halted flag set.

        Args:
            reason: "halt" for the halt instruction, "fault" for a fault-halt

        Returns:
            New MachineState with halted flag
        """
        return self._evolve(halted=True, halt_reason=reason)

    def restart(self) -> "MachineState":
        """Create new state with halt cleared, IP at 0 and cycle count at 0.

        Only the reset sequence may clear the halted flag.
        """
        return self._evolve(halted=False, halt_reason=None, ip=0, cycle_count=0)

    def increment_cycle(self) -> "MachineState":
        return self._evolve(cycle_count=self.cycle_count + 1)

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed by name."""
        return dict(zip(REGISTER_NAMES, self.registers))

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"{k}=0x{v:02x}" for k, v in zip(REGISTER_NAMES, self.registers))
        flags = f"C={int(self.carry)} Z={int(self.zero)}"
        status = f"HALTED({self.halt_reason})" if self.halted else ""
        return (f"[Cycle {self.cycle_count}] IP={self.ip} {regs} {flags} "
                f"bus=0x{self.bus:02x} hold=0x{self.hold:02x} {status}").rstrip()


def register_index(reg: Union[str, int]) -> int:
    """Map a register name or index to its index in the register file.

    Raises:
        KeyError: If the register doesn't exist
    """
    if isinstance(reg, int):
        if not 0 <= reg < NUM_REGS:
            raise KeyError(f"Invalid register index: {reg}")
        return reg
    name = reg.lower()
    if name not in REGISTER_NAMES:
        raise KeyError(f"Invalid register: {reg}")
    return REGISTER_NAMES.index(name)


def create_initial_state(rom: Tuple[int, ...]) -> MachineState:
    """Create a power-on machine state holding a ROM image.

    The state is not yet reset; NineBitCPU.reset() runs the reset
    sequence through the normal write-enable path.

    Args:
        rom: 64 ROM cells

    Returns:
        Fresh MachineState with the ROM installed
    """
    if len(rom) != ROM_SIZE:
        raise ValueError(f"ROM must have {ROM_SIZE} cells, got {len(rom)}")
    return MachineState(rom=tuple(rom))
