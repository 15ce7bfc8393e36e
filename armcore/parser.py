from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Union

from armcore.config import DEFAULT_CONFIG, EmulatorConfig
from armcore.cpu import GENERAL_REGISTER_COUNT, SPECIAL_REGISTERS, clamp_u32
from armcore.diagnostics import DiagnosticKind, EmulationError
from armcore.model import (
    LABEL_SUFFIX,
    MAX_TOKENS,
    ImmediateOperand,
    InstructionRecord,
    LabelOperand,
    Operand,
    ProgramStore,
    RegisterOperand,
)

logger = logging.getLogger(__name__)

LINE_TERMINATORS = ("\n", "\r")
SEPARATORS = str.maketrans({",": " ", "\t": " "})
IMMEDIATE_PREFIX = "#"
HEX_PREFIX = "0x"
# CPython's default int-string conversion limit
DECIMAL_DIGIT_LIMIT = 4300

REGISTER_RE = re.compile(r"r(\d+)", re.ASCII)
DECIMAL_RE = re.compile(r"-?\d+", re.ASCII)
HEX_RE = re.compile(r"[0-9a-fA-F]+")


def _truncate_at_terminator(line: str) -> str:
    cut = len(line)
    for terminator in LINE_TERMINATORS:
        index = line.find(terminator)
        if index != -1:
            cut = min(cut, index)
    return line[:cut]


def tokenize_line(line: str, max_line_length: int = DEFAULT_CONFIG.max_line_length) -> InstructionRecord:
    full = _truncate_at_terminator(line)
    text = full[:max_line_length]
    normalized = text.lower().translate(SEPARATORS)
    tokens = normalized.split(" ")
    tokens = [token for token in tokens if token][:MAX_TOKENS]
    is_label = bool(tokens) and tokens[0].endswith(LABEL_SUFFIX)
    return InstructionRecord(
        text=text,
        tokens=tuple(tokens),
        is_label=is_label,
        truncated=len(full) > max_line_length,
    )


def resolve_register(token: str) -> Optional[RegisterOperand]:
    if token in SPECIAL_REGISTERS:
        return RegisterOperand(name=token)
    match = REGISTER_RE.fullmatch(token)
    if not match:
        return None
    index = int(match.group(1))
    if index >= GENERAL_REGISTER_COUNT:
        return None
    return RegisterOperand(name=f"r{index}", index=index)


def resolve_immediate(token: str) -> Optional[ImmediateOperand]:
    if not token.startswith(IMMEDIATE_PREFIX):
        return None
    literal = token[len(IMMEDIATE_PREFIX) :]
    if literal.startswith(HEX_PREFIX):
        digits = literal[len(HEX_PREFIX) :]
        if not HEX_RE.fullmatch(digits):
            return None
        value = int(digits, 16)
    else:
        if not DECIMAL_RE.fullmatch(literal) or len(literal.lstrip("-")) > DECIMAL_DIGIT_LIMIT:
            return None
        try:
            value = int(literal, 10)
        except ValueError:
            return None
    return ImmediateOperand(value=clamp_u32(value), text=token)


def resolve_operand(record: InstructionRecord, position: int) -> Optional[Union[RegisterOperand, ImmediateOperand]]:
    token = record.operand(position)
    if not token:
        return None
    register = resolve_register(token)
    if register is not None:
        return register
    return resolve_immediate(token)


def resolve_branch_target(record: InstructionRecord, position: int = 1) -> Optional[Operand]:
    token = record.operand(position)
    if not token:
        return None
    operand = resolve_operand(record, position)
    if operand is not None:
        return operand
    if token.startswith(IMMEDIATE_PREFIX):
        return None
    return LabelOperand(name=token)


def parse_program(lines: Iterable[str], config: EmulatorConfig = DEFAULT_CONFIG) -> ProgramStore:
    program = ProgramStore(config.max_instructions)
    for line in lines:
        record = tokenize_line(line, config.max_line_length)
        if record.is_end:
            if record.truncated:
                logger.warning("Line %d was cut to blank at %d characters", program.stored, config.max_line_length)
            break
        program.append(record)
    logger.debug("Parsed %d records (%d executable)", program.stored, len(program))
    return program


def read_source_lines(path: Union[str, Path]) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            return handle.readlines()
    except OSError as exc:
        raise EmulationError(
            DiagnosticKind.SOURCE_UNAVAILABLE,
            f"File: {path} - opening failed ({exc.strerror or exc})",
            text=str(path),
        ) from exc
