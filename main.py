#!/usr/bin/env python3
"""ninebit-cpu Command Line Interface.

Assemble and run programs on the 9-bit CPU simulator.

Usage:
    python main.py --program programs/fibonacci.s
    python main.py --rom fib.bin --trace
    python main.py --program programs/multiply.s --output multiply.bin
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from ninebit_cpu import NineBitCPU, AssemblerError, CycleLimitExceeded, MachineFault, RomLoadError
from ninebit_cpu.assembler import assemble
from ninebit_cpu.rom import dump_rom


def main():
    parser = argparse.ArgumentParser(
        description="ninebit-cpu: 9-bit educational CPU simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Assemble and run a program
    python main.py --program programs/fibonacci.s

    # Run a ROM image with full trace output
    python main.py --rom fibonacci.bin --trace

    # Assemble only, writing a ROM image
    python main.py --program programs/multiply.s --output multiply.bin

    # Run inline assembly (statements separated by |)
    python main.py --inline 'ldi x0, $42 | halt'
        """
    )

    source_group = parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument(
        "--program", "-p",
        type=str,
        help="Path to assembly program file"
    )
    source_group.add_argument(
        "--rom", "-r",
        type=str,
        help="Path to binary ROM image (2-byte little-endian cells)"
    )
    source_group.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline assembly (separate statements with |)"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write the assembled ROM image to this file and exit"
    )
    parser.add_argument(
        "--legacy-alu-encoding",
        action="store_true",
        help="Leave the ALU op field clear like the original assembler"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=NineBitCPU.DEFAULT_MAX_CYCLES,
        help=f"Maximum execution cycles (safety limit). Default: {NineBitCPU.DEFAULT_MAX_CYCLES}"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject empty, odd-length or oversized ROM images"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (x0 and cycle count only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every fetch, ALU evaluation and register write"
    )

    args = parser.parse_args()

    if args.output and args.rom:
        parser.error("--output needs an assembly source (--program or --inline)")

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")

    cpu = NineBitCPU(max_cycles=args.max_cycles, strict_rom=args.strict)

    try:
        if args.rom:
            rom_path = Path(args.rom)
            if not rom_path.exists():
                print(f"Error: ROM file not found: {args.rom}")
                return 1
            cpu.load_rom_file(rom_path)
        else:
            if args.program:
                program_path = Path(args.program)
                if not program_path.exists():
                    print(f"Error: Program file not found: {args.program}")
                    return 1
                source, filename = program_path.read_text(), str(program_path)
            else:
                source, filename = args.inline.replace("|", "\n"), "<inline>"

            words = assemble(source, filename, encode_alu_op=not args.legacy_alu_encoding)

            if args.output:
                Path(args.output).write_bytes(dump_rom(words))
                print(f"{len(words)} insns successfully written")
                return 0

            cpu.load_words(words)
    except (AssemblerError, RomLoadError) as e:
        print(f"Error: {e}")
        return 1

    try:
        cpu.run()
    except (CycleLimitExceeded, MachineFault) as e:
        print(f"Execution error: {e}")

    if args.trace:
        cpu.print_trace()
    elif not args.quiet:
        print()
        summary = cpu.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']} ({summary['halt_reason']})")
        print(f"Registers: {summary['registers']}")
        print(f"Flags: {summary['flags']}")
        if summary['errors']:
            print(f"Errors: {summary['errors']}")
    else:
        x0, cycles = cpu.result()
        print(f"x0={x0}")
        print(f"cycles={cycles}")

    return 0 if cpu.get_halt_reason() == "halt" else 1


if __name__ == "__main__":
    sys.exit(main())
