"""ninebit-cpu Interactive Demo.

A Gradio web interface for assembling, running and inspecting programs
on the 9-bit CPU simulator.

Usage:
    cd /path/to/ninebit-cpu
    python demo/gradio_app.py

Features:
    - Write or load assembly programs
    - See the assembled ROM words
    - Step-by-step execution trace with register and flag changes
    - Final registers, flags, bus and hold latch
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from ninebit_cpu import NineBitCPU, AssemblerError, CycleLimitExceeded, MachineFault
from ninebit_cpu.assembler import assemble
from ninebit_cpu.decoder import disassemble


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Fibonacci < 256": """    ldi x0, $1          ; a
    ldi y0, $1          ; b
loop:
    add x0, y0, x1      ; t = a + b
    jc done
    nopy x0, y0, x0     ; a = b
    nopx x1, y0, y0     ; b = t
    jmp loop
done:
    nopy x0, y0, x0     ; x0 = 233
    halt""",

    "Multiply 7x6": """    ldi x0, $0          ; result
    ldi y0, $7          ; multiplicand
    ldi x1, $6          ; counter
    ldi y1, $0xff       ; -1
loop:
    add x0, y0, x0      ; result += multiplicand
    add x1, y1, x1      ; counter -= 1, carry while non-zero
    jc loop
    halt                ; x0 = 42""",

    "Bitwise": """    ldi x0, $0x0f
    ldi y0, $0x3c
    xor x0, y0, x1      ; x1 = 0x33
    and x0, y0, y1      ; y1 = 0x0c
    or  x1, y1, x0      ; x0 = 0x3f
    halt""",

    "Load and halt": """    ldi x0, $5
    halt""",

    "Custom": ""
}


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, max_cycles: int, legacy_alu: bool) -> tuple:
    """Assemble and execute a program and return results.

    Args:
        program: Assembly source code
        max_cycles: Maximum execution cycles
        legacy_alu: Leave the ALU op field clear like the original assembler

    Returns:
        Tuple of (summary_text, trace_text, registers_text, rom_text)
    """
    if not program.strip():
        return "Error: No program provided", "", "", ""

    try:
        words = assemble(program, "<demo>", encode_alu_op=not legacy_alu)
    except AssemblerError as e:
        return f"Assembler error: {e}", "", "", ""

    cpu = NineBitCPU(max_cycles=int(max_cycles))
    cpu.load_words(words)

    try:
        trace = cpu.run()
    except (CycleLimitExceeded, MachineFault) as e:
        error_msg = str(e)
        trace = cpu.get_trace()
    else:
        error_msg = None

    # Format summary
    summary = cpu.get_summary()
    x0, cycles = cpu.result()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Cycles: {cycles}",
        f"Halted: {'Yes' if summary['halted'] else 'No'}"
        + (f" ({summary['halt_reason']})" if summary['halt_reason'] else ""),
        f"x0: 0x{x0:02x} ({x0})",
    ]
    if error_msg:
        summary_lines.append(f"\nRuntime: {error_msg}")
    if summary['errors']:
        summary_lines.append("\nDecode Faults:")
        for err in summary['errors'][:5]:
            summary_lines.append(f"  - {err}")

    summary_text = "\n".join(summary_lines)

    # Format trace
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in trace[:200]:
        trace_lines.append(f"\n--- Cycle {entry.cycle} (IP={entry.address}) ---")
        trace_lines.append(f"Word:    0x{entry.word:03x}  {entry.text}")
        trace_lines.append(f"Key:     {entry.key} {entry.params}")

        changes = entry.register_changes()
        if changes:
            trace_lines.append("Changes: " + ", ".join(
                f"{reg}: {old} -> {new}" for reg, (old, new) in sorted(changes.items())))
        post_flags = entry.post_state['flags']
        trace_lines.append(f"Flags:   C={int(post_flags['carry'])} Z={int(post_flags['zero'])}")

    if len(trace) > 200:
        trace_lines.append(f"\n... ({len(trace) - 200} more entries)")

    trace_text = "\n".join(trace_lines)

    # Format registers
    regs = cpu.dump_registers()
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg, value in regs.items():
        marker = " *" if value != 0 else ""
        reg_lines.append(f"  {reg}: 0x{value:02x} {value:>4}{marker}")

    reg_lines.append("")
    reg_lines.append("FLAGS")
    reg_lines.append("-" * 30)
    for flag, value in summary['flags'].items():
        reg_lines.append(f"  {flag}: {int(value)}")
    reg_lines.append(f"  bus:  0x{summary['bus']:02x}")
    reg_lines.append(f"  hold: 0x{summary['hold']:02x}")

    registers_text = "\n".join(reg_lines)

    # Format ROM listing
    rom_lines = [f"{addr:2d}: 0x{word:03x}  {disassemble(word)}" for addr, word in enumerate(words)]
    rom_text = "\n".join(rom_lines)

    return summary_text, trace_text, registers_text, rom_text


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="ninebit-cpu Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # ninebit-cpu: 9-bit Educational CPU Simulator

        Four 8-bit registers in two banks, one shared bus, a six-operation ALU
        with carry and zero flags, and a 64-word ROM of 9-bit instructions.

        **Cycle**: `fetch (IP++) -> decode by highest set bit -> execute -> state`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Assembly Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Fibonacci < 256",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Fibonacci < 256"],
                    label="Source Code",
                    lines=15,
                    placeholder="Enter assembly code here..."
                )

                gr.Markdown("### Settings")

                with gr.Row():
                    max_cycles = gr.Slider(
                        minimum=10,
                        maximum=100000,
                        value=10000,
                        step=10,
                        label="Max Cycles"
                    )
                    legacy_alu = gr.Checkbox(
                        value=False,
                        label="Legacy ALU encoding",
                        info="Assemble every ALU mnemonic as add"
                    )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=10,
                        interactive=False
                    )

                rom_output = gr.Textbox(
                    label="Assembled ROM",
                    lines=8,
                    interactive=False
                )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Instruction | Encoding | Description |
            |-------------|----------|-------------|
            | `jc/jnc/jz/jnz target` | `1 i z aaaaaa` | Branch if carry/zero (i = invert) |
            | `add/xor/and/or/nopx/nopy xN, yN, rd` | `01 x y ooo dd` | ALU op, result to rd via the bus |
            | `jmp target` | `001 aaaaaa` | Unconditional branch |
            | *(reserved)* | `0001 xxxxx` | Fault-halt |
            | `ldi rd, $imm` | `00001 mmmm` + imm | Load next ROM word into masked registers |
            | `halt` | `00000 x 000` | Stop |
            | `clc` | `00000 x 001` | Clear carry |

            **Registers**: x0, x1 (X bank), y0, y1 (Y bank), 8-bit unsigned
            **Flags**: carry (ADD overflow), zero (ALU result == 0)
            **Note**: every register write re-evaluates the ALU, so flags change after `ldi` too
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, max_cycles, legacy_alu],
            outputs=[summary_output, trace_output, registers_output, rom_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
