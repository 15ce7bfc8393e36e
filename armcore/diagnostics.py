from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class DiagnosticKind(Enum):
    UNRESOLVED_OPERAND = "Unresolved operand"
    UNKNOWN_LABEL = "Unknown label"
    BAD_OPCODE = "Bad opcode"
    SOURCE_UNAVAILABLE = "Source unavailable"
    CAPACITY_EXCEEDED = "Capacity exceeded"
    STALLED_EXECUTION = "Stalled execution"
    STEP_LIMIT_EXCEEDED = "Step limit exceeded"
    LINE_TRUNCATED = "Line truncated"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_KINDS


TERMINAL_KINDS = {
    DiagnosticKind.SOURCE_UNAVAILABLE,
    DiagnosticKind.CAPACITY_EXCEEDED,
    DiagnosticKind.STALLED_EXECUTION,
    DiagnosticKind.STEP_LIMIT_EXCEEDED,
}


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    pc: Optional[int] = None
    text: str = ""

    def __str__(self) -> str:
        location = f" at PC {self.pc}" if self.pc is not None else ""
        suffix = f": {self.text}" if self.text else ""
        return f"{self.kind.value}{location} - {self.message}{suffix}"


DiagnosticSink = Callable[[Diagnostic], None]


class EmulationError(Exception):
    def __init__(self, kind: DiagnosticKind, message: str, pc: Optional[int] = None, text: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.pc = pc
        self.text = text

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(kind=self.kind, message=self.message, pc=self.pc, text=self.text)
