from __future__ import annotations

from typing import Iterable, List

import click

from armcore.cpu import FLAG_ORDER, REGISTER_ORDER, RegisterSnapshot
from armcore.diagnostics import Diagnostic
from armcore.emulator import RunResult, StepOutcome
from armcore.instructions import InstructionDef
from armcore.model import LabelTable, ProgramStore

PROMPT = "arm-emu"


def format_state(snapshot: RegisterSnapshot) -> str:
    lines = ["ARM processor emulator state:"]
    for name in REGISTER_ORDER:
        lines.append(f"\t{name.upper()}:\t0x{snapshot.get_reg(name):08X}")
    flags = ", ".join(f"{name}: {snapshot.flag(name)}" for name in FLAG_ORDER)
    lines.append(f"\tPSR: {flags}")
    return click.style("\n".join(lines), fg="green", bold=True)


def format_program(program: ProgramStore) -> str:
    lines = ["PROG:"]
    lines.extend(f"\t{record.text.strip()}" for record in program)
    return click.style("\n".join(lines), fg="blue", bold=True)


def format_labels(labels: LabelTable) -> str:
    lines = ["LABELS:"]
    lines.extend(f"\tLabel: {name}, PC: {pc}" for name, pc in labels.items())
    return click.style("\n".join(lines), fg="yellow", bold=True)


def format_diagnostic(diagnostic: Diagnostic) -> str:
    color = "red" if diagnostic.kind.terminal else "yellow"
    return click.style(str(diagnostic), fg=color)


def format_step(outcome: StepOutcome) -> str:
    return f"Run: PC - {outcome.pc:08X}, instr - {outcome.record.text.strip()}"


def format_run_result(result: RunResult) -> List[str]:
    lines = [format_diagnostic(diagnostic) for diagnostic in result.diagnostics]
    color = "green" if result.ok else "red"
    lines.append(click.style(f"{result.reason.value} after {result.steps} steps", fg=color))
    return lines


def format_instructions(defs: Iterable[InstructionDef]) -> str:
    lines = ["INSTRUCTIONS:"]
    for defn in defs:
        lines.append(f"\t{defn.mnemonic}\t{defn.summary}")
        lines.append(f"\t\tSyntax: {defn.syntax}")
        lines.append(f"\t\tFlags: {defn.flags}")
        lines.append(f"\t\t{defn.description}")
    return click.style("\n".join(lines), fg="cyan")
