from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from armcore.diagnostics import DiagnosticKind, EmulationError

logger = logging.getLogger(__name__)

MAX_TOKENS = 5
LABEL_SUFFIX = ":"


@dataclass(frozen=True)
class InstructionRecord:
    text: str
    tokens: Tuple[str, ...] = ("",) * MAX_TOKENS
    is_label: bool = False
    truncated: bool = False

    def __post_init__(self) -> None:
        if len(self.tokens) != MAX_TOKENS:
            padded = tuple(self.tokens[:MAX_TOKENS]) + ("",) * (MAX_TOKENS - len(self.tokens))
            object.__setattr__(self, "tokens", padded)

    @property
    def mnemonic(self) -> str:
        return self.tokens[0]

    @property
    def operands(self) -> List[str]:
        return [token for token in self.tokens[1:] if token]

    @property
    def label_name(self) -> Optional[str]:
        if not self.is_label:
            return None
        return self.tokens[0][: -len(LABEL_SUFFIX)]

    @property
    def is_end(self) -> bool:
        return not self.tokens[0] and not self.is_label

    def operand(self, position: int) -> str:
        if position < 1 or position >= MAX_TOKENS:
            return ""
        return self.tokens[position]


END_RECORD = InstructionRecord(text="")


@dataclass(frozen=True)
class RegisterOperand:
    name: str
    index: Optional[int] = None


@dataclass(frozen=True)
class ImmediateOperand:
    value: int
    text: str


@dataclass(frozen=True)
class LabelOperand:
    name: str


Operand = Union[RegisterOperand, ImmediateOperand, LabelOperand]


class LabelTable:
    def __init__(self) -> None:
        self._entries: Dict[str, int] = {}

    def define(self, name: str, pc: int) -> bool:
        if name in self._entries:
            logger.warning("Duplicate label %r at PC %d ignored (defined at PC %d)", name, pc, self._entries[name])
            return False
        self._entries[name] = pc
        return True

    def resolve(self, name: str) -> Optional[int]:
        return self._entries.get(name)

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> List[Tuple[str, int]]:
        return list(self._entries.items())

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_program(cls, program: "ProgramStore") -> "LabelTable":
        table = cls()
        for pc, record in enumerate(program):
            if record.is_label:
                table.define(record.label_name or "", pc)
        return table


class ProgramStore:
    def __init__(self, capacity: int, records: Iterable[InstructionRecord] = ()) -> None:
        self.capacity = capacity
        self._records: List[InstructionRecord] = []
        for record in records:
            self.append(record)

    def append(self, record: InstructionRecord) -> None:
        if len(self._records) >= self.capacity:
            raise EmulationError(
                DiagnosticKind.CAPACITY_EXCEEDED,
                f"Program exceeds {self.capacity} instructions",
                pc=len(self._records),
                text=record.text,
            )
        self._records.append(record)

    @property
    def length(self) -> int:
        for index, record in enumerate(self._records):
            if record.is_end:
                return index
        return len(self._records)

    def fetch(self, pc: int) -> InstructionRecord:
        if 0 <= pc < self.length:
            return self._records[pc]
        return END_RECORD

    @property
    def stored(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[InstructionRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return self.length

    def __iter__(self) -> Iterator[InstructionRecord]:
        return iter(self._records[: self.length])

    def __getitem__(self, pc: int) -> InstructionRecord:
        return self.fetch(pc)


@dataclass
class Program:
    store: ProgramStore
    labels: LabelTable

    @classmethod
    def empty(cls, capacity: int) -> "Program":
        return cls(store=ProgramStore(capacity), labels=LabelTable())

    @classmethod
    def from_store(cls, store: ProgramStore) -> "Program":
        return cls(store=store, labels=LabelTable.from_program(store))

    def get_label(self, name: str) -> Optional[int]:
        return self.labels.resolve(name)

    def __len__(self) -> int:
        return len(self.store)
