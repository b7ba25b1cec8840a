"""ExecutionRegistry: Execution primitives for the 9-bit CPU.

Each decoded instruction is executed by a frozen primitive looked up by
its execution key. Primitives are pure functions of
(MachineState, params) -> MachineState.

Registry Keys:
    OP_COND_BRANCH: jc / jnc / jz / jnz
    OP_ALU: select banks and op, evaluate, drive bus, write destination
    OP_BRANCH: unconditional jump
    OP_LOAD_IMMEDIATE: latch the next ROM cell into masked registers
    OP_HALT: stop execution
    OP_CLC: clear the carry flag
    OP_INVALID: fault-halt on reserved or undefined encodings

The fetch (IP and cycle increments) is done by the controller before a
primitive runs, so primitives see the IP already pointing past the
opcode word.
"""

import logging
from typing import Any, Callable, Dict, Optional

from .bus import update_alu, write_enable
from .control import resolve_branch, resolve_cond_branch
from .state import HALT_FAULT, HALT_NORMAL, MachineState

logger = logging.getLogger(__name__)

Primitive = Callable[[MachineState, Dict[str, Any]], MachineState]


class ExecutionRegistry:
    """Registry of execution primitives.

    The registry is frozen after initialization to ensure
    no runtime modifications can occur.

    Attributes:
        _primitives: Dictionary mapping execution keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all execution primitives."""
        self._primitives: Dict[str, Primitive] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        # Control flow
        self.register("OP_COND_BRANCH", resolve_cond_branch)
        self.register("OP_BRANCH", resolve_branch)

        # Data path
        self.register("OP_ALU", self._op_alu)
        self.register("OP_LOAD_IMMEDIATE", self._op_load_immediate)

        # No-operand
        self.register("OP_HALT", self._op_halt)
        self.register("OP_CLC", self._op_clc)
        self.register("OP_INVALID", self._op_invalid)

    def register(self, key: str, handler: Primitive) -> None:
        """Register a primitive operation.

        Args:
            key: Execution key (e.g., "OP_ALU")
            handler: Function that takes (state, params) and returns new state

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        return set(self._primitives.keys())

    def execute(self, state: MachineState, key: str, params: Dict[str, Any]) -> MachineState:
        """Execute a registered primitive.

        Args:
            state: Machine state after fetch
            key: Execution key
            params: Operation parameters

        Returns:
            New machine state after execution

        Raises:
            KeyError: If key not in registry
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown execution key: {key}")
        return self._primitives[key](state, params)

    # =========================================================================
    # Data Path Primitives
    # =========================================================================

    def _op_alu(self, state: MachineState, params: Dict[str, Any]) -> MachineState:
        """add/xor/and/or/nopx/nopy xN, yN, dest.

        Params:
            bank_x: X-bank selector
            bank_y: Y-bank selector
            op: ALU operation code
            dest: Destination register index

        Returns:
            New state with the result written to dest through the bus
        """
        state = state.select_alu(params["op"], params["bank_x"], params["bank_y"])
        state = update_alu(state)

        # Once output is stable in the hold latch, drive it onto the bus
        state = state.set_bus(state.hold)
        return write_enable(state, 1 << params["dest"])

    def _op_load_immediate(self, state: MachineState, params: Dict[str, Any]) -> MachineState:
        """ldi mask, imm - Latch the next ROM cell into every masked register.

        Params:
            mask: 4-bit register mask

        Returns:
            New state with registers written and IP moved past the payload
        """
        state = write_enable(state, params["mask"], immediate=True)

        # Skip the payload so it is never interpreted as code
        return state.increment_ip()

    # =========================================================================
    # No-Operand Primitives
    # =========================================================================

    def _op_halt(self, state: MachineState, params: Dict[str, Any]) -> MachineState:
        return state.set_halted(HALT_NORMAL)

    def _op_clc(self, state: MachineState, params: Dict[str, Any]) -> MachineState:
        """clc - Clear the carry flag, nothing else."""
        return state.clear_carry()

    def _op_invalid(self, state: MachineState, params: Dict[str, Any]) -> MachineState:
        """Fault-halt on a word with no defined semantics.

        Params:
            word: The offending instruction word
        """
        word = params.get("word", 0)
        logger.warning(f"INVALID INSN 0x{word:03x} at address {state.ip - 1}")
        return state.set_halted(HALT_FAULT)


# Singleton registry instance
_registry: Optional[ExecutionRegistry] = None


def get_registry() -> ExecutionRegistry:
    """Get the shared frozen ExecutionRegistry instance."""
    global _registry
    if _registry is None:
        _registry = ExecutionRegistry()
    return _registry
