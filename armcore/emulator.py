from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from armcore.config import DEFAULT_CONFIG, EmulatorConfig
from armcore.cpu import RegisterFile, RegisterSnapshot
from armcore.diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink, EmulationError
from armcore.instructions import SESSION_COMMANDS, Opcode, classify_opcode, get_instruction_def
from armcore.model import InstructionRecord, Program
from armcore.parser import parse_program, read_source_lines, tokenize_line

logger = logging.getLogger(__name__)

FIELD_SPLIT_RE = re.compile(r"[\s,]+")


class HaltReason(Enum):
    END = "Program finished"
    STALLED = "Stalled"
    STEP_LIMIT = "Step limit exceeded"
    ABORTED = "Load aborted"


@dataclass
class StepOutcome:
    pc: int
    record: InstructionRecord
    opcode: Opcode
    halted: bool = False
    error: Optional[EmulationError] = None


@dataclass
class RunResult:
    reason: HaltReason
    steps: int
    state: RegisterSnapshot
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.reason is HaltReason.END


class Emulator:
    """A single emulator session.

    Owns the register file, the loaded program and its label table. Every
    failure is reported as a :class:`Diagnostic` (collected on the session,
    forwarded to ``sink`` and logged); nothing raised by a program escapes
    ``load``, ``run``, ``step`` or ``execute``.
    """

    def __init__(self, config: EmulatorConfig = DEFAULT_CONFIG, sink: Optional[DiagnosticSink] = None) -> None:
        self.config = config
        self.sink = sink
        self.cpu = RegisterFile(initial_sp=config.stack_pointer)
        self.cpu.reset()
        self.program = Program.empty(config.max_instructions)
        self.diagnostics: List[Diagnostic] = []
        self.halted = False

    def reset(self) -> None:
        self.cpu.reset()
        self.halted = False

    def state(self) -> RegisterSnapshot:
        return self.cpu.snapshot()

    def report(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)
        if diagnostic.kind.terminal:
            logger.error("%s", diagnostic)
        else:
            logger.warning("%s", diagnostic)
        if self.sink is not None:
            self.sink(diagnostic)

    def _abort(self, exc: EmulationError) -> RunResult:
        self.report(exc.to_diagnostic())
        return RunResult(HaltReason.ABORTED, 0, self.state(), list(self.diagnostics))

    def load(self, lines: Iterable[str]) -> RunResult:
        self.diagnostics = []
        try:
            store = parse_program(lines, self.config)
        except EmulationError as exc:
            return self._abort(exc)
        except (OSError, UnicodeDecodeError) as exc:
            return self._abort(
                EmulationError(DiagnosticKind.SOURCE_UNAVAILABLE, f"Reading program failed ({exc})")
            )

        self.program = Program.from_store(store)
        self.reset()
        logger.info("Loaded %d instructions, %d labels", len(self.program), len(self.program.labels))
        for pc, record in enumerate(store.records):
            if record.truncated:
                self.report(self._truncated(record, pc))
        return self._run()

    def load_file(self, path: Union[str, Path]) -> RunResult:
        self.diagnostics = []
        try:
            lines = read_source_lines(path)
        except EmulationError as exc:
            return self._abort(exc)
        logger.info("Loading program from %s", path)
        return self.load(lines)

    def _truncated(self, record: InstructionRecord, pc: int) -> Diagnostic:
        return Diagnostic(
            DiagnosticKind.LINE_TRUNCATED,
            f"Line longer than {self.config.max_line_length} characters was cut",
            pc,
            record.text,
        )

    def run(self) -> RunResult:
        self.diagnostics = []
        return self._run()

    def _run(self) -> RunResult:
        steps = 0
        while True:
            record = self.program.store.fetch(self.cpu.pc)
            if record.is_end:
                self.halted = True
                return self._finish(HaltReason.END, steps)
            if steps >= self.config.step_limit:
                self.report(
                    Diagnostic(
                        DiagnosticKind.STEP_LIMIT_EXCEEDED,
                        f"Executed {steps} instructions without reaching the end of the program",
                        self.cpu.pc,
                        record.text,
                    )
                )
                self.halted = True
                return self._finish(HaltReason.STEP_LIMIT, steps)

            before = self.cpu.pc
            self.dispatch(record)
            steps += 1
            if self.cpu.pc == before:
                self.report(
                    Diagnostic(
                        DiagnosticKind.STALLED_EXECUTION,
                        "Program counter did not advance",
                        before,
                        record.text,
                    )
                )
                self.halted = True
                return self._finish(HaltReason.STALLED, steps)

    def _finish(self, reason: HaltReason, steps: int) -> RunResult:
        logger.info("%s after %d steps (PC %d)", reason.value, steps, self.cpu.pc)
        return RunResult(reason, steps, self.state(), list(self.diagnostics))

    def step(self) -> StepOutcome:
        pc = self.cpu.pc
        record = self.program.store.fetch(pc)
        if record.is_end:
            self.halted = True
            return StepOutcome(pc=pc, record=record, opcode=Opcode.BAD, halted=True)
        return self.dispatch(record)

    def dispatch(self, record: InstructionRecord) -> StepOutcome:
        pc = self.cpu.pc
        opcode = classify_opcode(record)
        defn = None if opcode in SESSION_COMMANDS else get_instruction_def(opcode)
        if defn is None:
            if opcode in SESSION_COMMANDS:
                message = f"Session command {opcode.value!r} cannot run inside a program"
            else:
                message = "Bad instruction"
            error = EmulationError(DiagnosticKind.BAD_OPCODE, message, pc, record.text)
            self.report(error.to_diagnostic())
            return StepOutcome(pc=pc, record=record, opcode=opcode, error=error)

        logger.debug("Run: PC - %08X, instr - %s", pc, record.text)
        try:
            result = defn.executor(self.cpu, record, self.program)
        except EmulationError as exc:
            self.report(exc.to_diagnostic())
            return StepOutcome(pc=pc, record=record, opcode=opcode, error=exc)

        if result.error is not None:
            self.report(result.error.to_diagnostic())
        if result.next_pc is None:
            self.cpu.pc = pc + 1
        else:
            self.cpu.pc = result.next_pc
        return StepOutcome(pc=pc, record=record, opcode=opcode, error=result.error)

    def execute(self, line: str) -> Union[StepOutcome, RunResult, RegisterSnapshot, None]:
        """Runs one interactive line.

        ``load <path>`` and ``state`` are session commands; anything else is
        dispatched against the session registers, with branch labels resolved
        against the most recently loaded program.
        """
        record = tokenize_line(line, self.config.max_line_length)
        if record.is_end:
            return None
        opcode = classify_opcode(record)
        if opcode is Opcode.LOAD:
            fields = [item for item in FIELD_SPLIT_RE.split(record.text.strip()) if item]
            if len(fields) < 2:
                self.diagnostics = []
                return self._abort(EmulationError(DiagnosticKind.SOURCE_UNAVAILABLE, "No program file given"))
            return self.load_file(fields[1])
        if opcode is Opcode.STATE:
            return self.state()
        self.diagnostics = []
        if record.truncated:
            self.report(self._truncated(record, self.cpu.pc))
        return self.dispatch(record)
