"""
arm-emu command line tool.

Runs Cortex-M style assembly programs and provides the interactive prompt.
"""

from __future__ import annotations

import logging
import sys

import click

from armcore.config import EmulatorConfig
from armcore.cpu import RegisterSnapshot
from armcore.emulator import Emulator, HaltReason, RunResult, StepOutcome
from armcore.instructions import get_instruction_defs
from armui.console import (
    PROMPT,
    format_diagnostic,
    format_instructions,
    format_labels,
    format_program,
    format_run_result,
    format_state,
    format_step,
)

QUIT_COMMANDS = {"quit", "exit"}
HELP_COMMANDS = {"help", "?"}


def setup_logging(level: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=level,
        format="[%(levelname)-8s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.root.setLevel(level)


def _echo_run(emulator: Emulator, result: RunResult, listing: bool = True) -> None:
    if listing and result.reason is not HaltReason.ABORTED:
        click.echo(format_program(emulator.program.store))
        click.echo(format_labels(emulator.program.labels))
    for line in format_run_result(result):
        click.echo(line)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-d", "--debug", is_flag=True, help="Enables DEBUG level logs.")
@click.option("-v", "--verbose", is_flag=True, help="Enables INFO level logs.")
@click.option(
    "--step-limit",
    type=click.IntRange(min=1),
    default=EmulatorConfig.step_limit,
    show_default=True,
    envvar="ARMEMU_STEP_LIMIT",
    show_envvar=True,
    help="Maximum number of instructions executed per load.",
)
@click.option(
    "--max-instructions",
    type=click.IntRange(min=1),
    default=EmulatorConfig.max_instructions,
    show_default=True,
    envvar="ARMEMU_MAX_INSTRUCTIONS",
    show_envvar=True,
    help="Program store capacity.",
)
@click.pass_context
def main(ctx, debug, verbose, step_limit, max_instructions):
    if debug:
        setup_logging(logging.DEBUG)
    elif verbose:
        setup_logging(logging.INFO)
    else:
        setup_logging()
    ctx.obj = EmulatorConfig(max_instructions=max_instructions, step_limit=step_limit)


@main.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--quiet", "-q", is_flag=True, help="Only print the final state.")
@click.pass_obj
def run(config, path, quiet):
    """Loads and runs a program file, then prints the register state."""
    emulator = Emulator(config)
    result = emulator.load_file(path)
    _echo_run(emulator, result, listing=not quiet)
    click.echo(format_state(result.state))
    if not result.ok:
        sys.exit(1)


@main.command()
@click.pass_obj
def shell(config):
    """Interactive prompt. Accepts instructions, the load/state commands and help."""
    emulator = Emulator(config)
    while True:
        click.echo(f"{PROMPT}> ", nl=False)
        line = sys.stdin.readline()
        if not line:
            click.echo()
            break
        command = line.strip().lower()
        if command in QUIT_COMMANDS:
            break
        if command in HELP_COMMANDS:
            click.echo(format_instructions(get_instruction_defs()))
            continue
        result = emulator.execute(line)
        if isinstance(result, RegisterSnapshot):
            click.echo(format_state(result))
        elif isinstance(result, RunResult):
            _echo_run(emulator, result)
        elif isinstance(result, StepOutcome):
            click.echo(format_step(result))
            for diagnostic in emulator.diagnostics:
                click.echo(format_diagnostic(diagnostic))


@main.command()
def instructions():
    """Lists the supported instructions."""
    click.echo(format_instructions(get_instruction_defs()))


@main.command()
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def gui(config, path):
    """Opens the graphical emulator window."""
    from armui.main_window import run_app

    run_app(config, path)


if __name__ == "__main__":
    main()
