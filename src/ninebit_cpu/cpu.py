"""NineBitCPU: Machine controller for the 9-bit CPU simulator.

This module implements the fetch-execute loop:
    ROM → FETCH → DECODE → KEY → REGISTRY → EXECUTE → STATE

Each fetch advances the instruction pointer and the cycle counter
before the decoded instruction runs. Every cycle is recorded as a trace
entry holding the fetched word, its decode and the state on both sides
of the cycle boundary.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .alu import AluOp
from .bus import write_enable
from .decoder import Decoder, DecodeResult
from .registry import get_registry
from .rom import dump_rom, load_rom, load_rom_file
from .state import (
    HALT_FAULT, ROM_SIZE, MachineFault, MachineState, create_initial_state,
)

logger = logging.getLogger(__name__)

ALL_REGS_MASK = 0xF


class CycleLimitExceeded(RuntimeError):
    """run() reached its cycle limit before the machine halted."""


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number of this fetch (1-based)
        address: ROM address the word was fetched from
        word: Raw instruction word
        decode_result: Result from the decoder
        pre_state: State snapshot before the fetch
        post_state: State snapshot after execution
        error: Decode error for fault-halts
    """
    cycle: int
    address: int
    word: int
    decode_result: DecodeResult
    pre_state: dict
    post_state: dict
    error: Optional[str] = None

    @property
    def key(self) -> str:
        return self.decode_result.key

    @property
    def params(self) -> Dict:
        return self.decode_result.params

    @property
    def text(self) -> str:
        return self.decode_result.text

    def register_changes(self) -> Dict[str, Tuple[int, int]]:
        """Registers whose value changed in this cycle, as (before, after)."""
        pre = self.pre_state["registers"]
        post = self.post_state["registers"]
        return {reg: (pre[reg], post[reg]) for reg in pre if pre[reg] != post[reg]}


class NineBitCPU:
    """Cycle-accurate simulator of the 9-bit, 4-register CPU.

    Attributes:
        decoder: Decoder for instruction words
        registry: ExecutionRegistry with the execution primitives
        state: Current machine state (None until a ROM is loaded)
        trace: List of execution trace entries since the last reset
        max_cycles: Default cycle limit for run()
        strict_rom: Reject malformed ROM images instead of padding them
    """

    DEFAULT_MAX_CYCLES = 10000

    def __init__(self, max_cycles: int = DEFAULT_MAX_CYCLES, strict_rom: bool = False):
        self.decoder = Decoder()
        self.registry = get_registry()
        self.state: Optional[MachineState] = None
        self.trace: List[ExecutionTraceEntry] = []
        self.max_cycles = max_cycles
        self.strict_rom = strict_rom
        self._rom: Optional[Tuple[int, ...]] = None

    # =========================================================================
    # Loading and Reset
    # =========================================================================

    def load_rom(self, data: bytes) -> None:
        """Load a ROM image from bytes and reset the machine."""
        self._install(load_rom(data, strict=self.strict_rom))

    def load_rom_file(self, path: Union[str, Path]) -> None:
        """Load a ROM image file and reset the machine."""
        self._install(load_rom_file(path, strict=self.strict_rom))

    def load_words(self, words: Iterable[int]) -> None:
        """Load instruction words (e.g. assembler output) and reset the machine."""
        self._install(load_rom(dump_rom(words)))

    def _install(self, rom: Tuple[int, ...]) -> None:
        self._rom = rom
        self.state = None
        self.reset()

    def reset(self) -> MachineState:
        """Run the power-on reset sequence.

        Clears halt and the cycle counter, points IP at the reset vector,
        selects "add" on x0/y0, zeroes the bus and strobes write-enable on
        all four registers. The strobe re-evaluates the ALU like any
        other register write.

        Returns:
            The reset state

        Raises:
            RuntimeError: If no ROM is loaded
        """
        if self._rom is None:
            raise RuntimeError("No ROM loaded")

        logger.info("cpu: reset")
        state = self.state if self.state is not None else create_initial_state(self._rom)
        state = state.restart()
        state = state.select_alu(AluOp.ADD, bank_x=0, bank_y=0)
        state = state.set_bus(0)
        state = write_enable(state, ALL_REGS_MASK)

        self.state = state
        self.trace = []
        return state

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> ExecutionTraceEntry:
        """Execute a single fetch-execute cycle.

        Returns:
            ExecutionTraceEntry with full cycle information

        Raises:
            RuntimeError: If no ROM loaded or machine halted
            MachineFault: If the fetch falls outside the ROM or an
                internal invariant breaks; state stays at the last
                cycle boundary
        """
        if self.state is None:
            raise RuntimeError("No ROM loaded")
        if self.state.halted:
            raise RuntimeError("CPU is halted")

        # FETCH
        address = self.state.ip
        if not 0 <= address < ROM_SIZE:
            raise MachineFault(f"Instruction fetch outside ROM at address {address}")
        word = self.state.rom[address]
        pre_state = self.state.snapshot()
        state = self.state.increment_ip().increment_cycle()
        logger.debug(f"clu: Fetched insn 0x{word:03x} at address 0x{address:02x} ({address})")

        # DECODE
        decode_result = self.decoder.decode(word)

        # EXECUTE
        state = self.registry.execute(state, decode_result.key, decode_result.params)
        self.state = state

        entry = ExecutionTraceEntry(
            cycle=state.cycle_count,
            address=address,
            word=word,
            decode_result=decode_result,
            pre_state=pre_state,
            post_state=state.snapshot(),
            error=decode_result.error,
        )
        self.trace.append(entry)

        if state.halted:
            self._report_halt()
        return entry

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Run the machine until it halts.

        Args:
            max_cycles: Override the cycle limit (instance default if None)

        Returns:
            Complete execution trace

        Raises:
            CycleLimitExceeded: If the cycle limit is reached before halting
        """
        if self.state is None:
            raise RuntimeError("No ROM loaded")

        limit = max_cycles if max_cycles is not None else self.max_cycles

        while not self.state.halted and self.state.cycle_count < limit:
            self.step()

        if not self.state.halted:
            raise CycleLimitExceeded(f"Max cycles ({limit}) exceeded")

        return self.trace

    def _report_halt(self) -> None:
        x0 = self.state.registers[0]
        tag = " (fault)" if self.state.halt_reason == HALT_FAULT else ""
        logger.info(f"HALT{tag}: reg x0 is 0x{x0:02x} ({x0})")
        logger.info(f"HALT: program terminated in {self.state.cycle_count} cycles")

    # =========================================================================
    # State Inspection
    # =========================================================================

    def _require_state(self) -> MachineState:
        if self.state is None:
            raise RuntimeError("No ROM loaded")
        return self.state

    def get_register(self, reg: Union[str, int]) -> int:
        """Get value of a register by name (x0, x1, y0, y1) or index."""
        return self._require_state().get_register(reg)

    def dump_registers(self) -> Dict[str, int]:
        return self._require_state().dump_registers()

    def get_flags(self) -> Dict[str, bool]:
        return self._require_state().flags

    def get_pc(self) -> int:
        return self._require_state().ip

    def get_cycle_count(self) -> int:
        if self.state is None:
            return 0
        return self.state.cycle_count

    def is_halted(self) -> bool:
        if self.state is None:
            return False
        return self.state.halted

    def get_halt_reason(self) -> Optional[str]:
        if self.state is None:
            return None
        return self.state.halt_reason

    def get_trace(self) -> List[ExecutionTraceEntry]:
        return list(self.trace)

    def result(self) -> Tuple[int, int]:
        """Observable program result: (x0, cycle count)."""
        state = self._require_state()
        return state.registers[0], state.cycle_count

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"FAULT: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  Fetched: 0x{entry.word:03x} at {entry.address}  {entry.text}")
            print(f"  Decoded: {entry.key} {entry.params}")

            changes = entry.register_changes()
            if changes:
                print("  Changes: " + ", ".join(
                    f"{reg}: 0x{old:02x} → 0x{new:02x}" for reg, (old, new) in sorted(changes.items())))

            pre_flags, post_flags = entry.pre_state["flags"], entry.post_state["flags"]
            if pre_flags != post_flags:
                print(f"  Flags: {pre_flags} → {post_flags}")

            pre_ip, post_ip = entry.pre_state["ip"], entry.post_state["ip"]
            if post_ip != pre_ip + 1:
                print(f"  IP: {pre_ip} → {post_ip}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        if self.state:
            print(f"  Registers: {self.dump_registers()}")
            print(f"  Flags: {self.get_flags()}")
            print(f"  Bus: 0x{self.state.bus:02x}  Hold: 0x{self.state.hold:02x}")
            print(f"  IP: {self.get_pc()}")
            print(f"  Cycles: {self.get_cycle_count()}")
            print(f"  Halted: {self.is_halted()} ({self.get_halt_reason()})")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "halt_reason": self.get_halt_reason(),
            "registers": self.dump_registers() if self.state else {},
            "flags": self.get_flags() if self.state else {},
            "ip": self.get_pc() if self.state else 0,
            "bus": self.state.bus if self.state else 0,
            "hold": self.state.hold if self.state else 0,
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
        }
