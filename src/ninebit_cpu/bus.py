"""Register file and shared write bus.

Registers are split into two banks: X (x0, x1) and Y (y0, y1). One
register from each bank feeds the ALU. Writes go through a single
write-enable strobe that latches the same source value into every
register selected by a 4-bit mask.

The strobe line is shared with the ALU: every write_enable() re-evaluates
the ALU against the current bank and op selection, so carry, zero and
hold change even on writes that have nothing to do with arithmetic
(reset, immediate loads). Flag values after those writes depend on it.
"""

import logging

from .alu import alu_name, evaluate
from .state import (
    BYTE_MASK, NUM_REGS, REG_X, REG_Y, REGISTER_NAMES, ROM_SIZE,
    MachineFault, MachineState,
)

logger = logging.getLogger(__name__)

BANK_BASE = {"x": REG_X, "y": REG_Y}


def read_operand(state: MachineState, bank: str, selector: int) -> int:
    """Read register bank_base + selector.

    Args:
        state: Current machine state
        bank: "x" or "y"
        selector: 0 or 1

    Returns:
        Register value
    """
    if bank not in BANK_BASE:
        raise KeyError(f"Invalid bank: {bank}")
    if selector not in (0, 1):
        raise MachineFault(f"Invalid bank selector: {selector}")
    return state.registers[BANK_BASE[bank] + selector]


def update_alu(state: MachineState) -> MachineState:
    """Evaluate the ALU on the selected operands and latch the outputs.

    Returns:
        New state with hold, carry and zero updated
    """
    in_x = read_operand(state, "x", state.bank_x)
    in_y = read_operand(state, "y", state.bank_y)
    out = evaluate(state.alu_op, in_x, in_y)

    logger.debug(
        f" + alu: {alu_name(state.alu_op)} "
        f"{REGISTER_NAMES[REG_X + state.bank_x]}, {REGISTER_NAMES[REG_Y + state.bank_y]} "
        f"= 0x{out.result:02x} ({out.result}) {'' if out.carry else 'no-'}carry"
    )
    return state.set_alu_result(out.result, out.carry, out.zero)


def write_enable(state: MachineState, mask: int, immediate: bool = False) -> MachineState:
    """Strobe the write-enable lines for the registers in mask.

    Args:
        state: Current machine state
        mask: 4-bit register mask (bit i selects register i)
        immediate: Source the value from the ROM cell at IP instead of the bus

    Returns:
        New state with the selected registers latched and the ALU re-evaluated

    Raises:
        MachineFault: If immediate mode reads outside the ROM
    """
    if immediate:
        if not 0 <= state.ip < ROM_SIZE:
            raise MachineFault(f"Immediate read outside ROM at address {state.ip}")
        value = state.rom[state.ip] & BYTE_MASK
    else:
        value = state.bus

    registers = list(state.registers)
    for i in range(NUM_REGS):
        if mask & (1 << i):
            logger.debug(
                f" + reg: (from {'code' if immediate else 'data'} bus) "
                f"{REGISTER_NAMES[i]} := 0x{value:02x} ({value})"
            )
            registers[i] = value

    # ALU state is reflected immediately on store
    return update_alu(state.set_registers(registers))
