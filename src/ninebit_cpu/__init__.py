"""ninebit-cpu: Cycle-accurate simulator for a 9-bit educational CPU.

The machine has four 8-bit registers in two banks (x0, x1 / y0, y1), a
shared write bus, a combinational ALU with carry and zero flags, and a
64-word ROM of 9-bit instructions.

Architecture:
    ROM -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> STATE
            |         |                 |
        [IP++, clk++] [bit priority] [write-enable strobe + ALU]

Modules:
    state: MachineState dataclass for immutable state management
    rom: ROM image loading and writing
    alu: Combinational ALU
    bus: Register file and write-enable strobe
    control: Branch resolution
    decoder: Priority instruction decoder
    registry: Execution primitives (OP_ALU, OP_LOAD_IMMEDIATE, etc.)
    cpu: Main NineBitCPU controller
    assembler: Mnemonic source to ROM words
"""

__version__ = "0.1.0"

from .state import MachineState, MachineFault
from .rom import RomLoadError, load_rom, dump_rom
from .decoder import Decoder, DecodeResult, InstructionKind, disassemble
from .registry import ExecutionRegistry
from .cpu import NineBitCPU, CycleLimitExceeded
from .assembler import Assembler, AssemblerError, assemble

__all__ = [
    "MachineState", "MachineFault",
    "RomLoadError", "load_rom", "dump_rom",
    "Decoder", "DecodeResult", "InstructionKind", "disassemble",
    "ExecutionRegistry",
    "NineBitCPU", "CycleLimitExceeded",
    "Assembler", "AssemblerError", "assemble",
]
