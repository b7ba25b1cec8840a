"""Control-flow resolution for branch instructions.

Branch targets are absolute 6-bit addresses. The fetch has already moved
the IP past the branch word, so a branch that is not taken simply leaves
the IP alone.
"""

import logging
from typing import Any, Dict

from .state import ROM_ADDR_MASK, MachineState

logger = logging.getLogger(__name__)


def branch_target(operand: int) -> int:
    """Extract the absolute target address from a branch operand."""
    return operand & ROM_ADDR_MASK


def branch_taken(state: MachineState, invert: bool, test_zero: bool) -> bool:
    """Evaluate a branch condition.

    Args:
        state: Current machine state
        invert: Branch when the flag is clear instead of set
        test_zero: Test the zero flag (True) or the carry flag (False)

    Returns:
        True iff selected_flag XOR invert
    """
    flag = state.zero if test_zero else state.carry
    return bool(flag) != bool(invert)


def resolve_cond_branch(state: MachineState, params: Dict[str, Any]) -> MachineState:
    """jc / jnc / jz / jnz: jump to target when the condition holds."""
    target = branch_target(params["target"])
    if branch_taken(state, params["invert"], params["test_zero"]):
        logger.debug(f" cond-branch: TAKEN to 0x{target:02x} ({target})")
        return state.set_ip(target)
    return state


def resolve_branch(state: MachineState, params: Dict[str, Any]) -> MachineState:
    """jmp: unconditional jump to target."""
    target = branch_target(params["target"])
    logger.debug(f" branch: to address 0x{target:02x} ({target})")
    return state.set_ip(target)
