from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from armcore.cpu import RegisterFile
from armcore.diagnostics import DiagnosticKind, EmulationError
from armcore.model import ImmediateOperand, InstructionRecord, LabelOperand, Program, RegisterOperand
from armcore.parser import resolve_branch_target, resolve_operand, resolve_register


class Opcode(Enum):
    BAD = ""
    LOAD = "load"
    STATE = "state"
    MOV = "mov"
    CMP = "cmp"
    BLT = "blt"
    LABEL = ":"


# Classification order; token 0 is matched against each mnemonic as a prefix.
MNEMONIC_TABLE = [Opcode.LOAD, Opcode.STATE, Opcode.MOV, Opcode.CMP, Opcode.BLT]
SESSION_COMMANDS = {Opcode.LOAD, Opcode.STATE}
READ_ONLY_REGISTERS = {"pc"}


@dataclass
class ExecResult:
    next_pc: int | None = None
    error: EmulationError | None = None


Executor = Callable[[RegisterFile, InstructionRecord, Program], ExecResult]


@dataclass(frozen=True)
class InstructionDef:
    mnemonic: str
    summary: str
    description: str
    syntax: str
    flags: str
    executor: Executor


INSTRUCTION_SET: Dict[Opcode, InstructionDef] = {}


def register_instruction(opcode: Opcode, defn: InstructionDef) -> None:
    INSTRUCTION_SET[opcode] = defn


def get_instruction_def(opcode: Opcode) -> Optional[InstructionDef]:
    return INSTRUCTION_SET.get(opcode)


def get_instruction_defs() -> List[InstructionDef]:
    return list(INSTRUCTION_SET.values())


def classify_opcode(record: InstructionRecord) -> Opcode:
    if record.is_label:
        return Opcode.LABEL
    mnemonic = record.mnemonic
    if not mnemonic:
        return Opcode.BAD
    for opcode in MNEMONIC_TABLE:
        if mnemonic.startswith(opcode.value):
            return opcode
    return Opcode.BAD


def _unresolved(cpu: RegisterFile, record: InstructionRecord, position: int) -> EmulationError:
    token = record.operand(position)
    if not token:
        message = f"Missing operand {position} for {record.mnemonic}"
    elif token.startswith("#"):
        message = f"Malformed immediate: {token}"
    else:
        message = f"Unsupported operand for {record.mnemonic}: {token}"
    return EmulationError(DiagnosticKind.UNRESOLVED_OPERAND, message, cpu.pc, record.text)


def _require_reg(cpu: RegisterFile, record: InstructionRecord, position: int, writable: bool = False) -> str:
    register = resolve_register(record.operand(position))
    if register is None:
        raise _unresolved(cpu, record, position)
    if writable and register.name in READ_ONLY_REGISTERS:
        raise EmulationError(
            DiagnosticKind.UNRESOLVED_OPERAND,
            f"Register {register.name} is not writable by {record.mnemonic}",
            cpu.pc,
            record.text,
        )
    return register.name


def _value_of(cpu: RegisterFile, record: InstructionRecord, position: int) -> int:
    operand = resolve_operand(record, position)
    if isinstance(operand, RegisterOperand):
        return cpu.get_reg(operand.name)
    if isinstance(operand, ImmediateOperand):
        return operand.value
    raise _unresolved(cpu, record, position)


def exec_mov(cpu: RegisterFile, record: InstructionRecord, program: Program) -> ExecResult:
    dest = _require_reg(cpu, record, 1, writable=True)
    value = _value_of(cpu, record, 2)
    cpu.set_reg(dest, value)
    return ExecResult()


def exec_cmp(cpu: RegisterFile, record: InstructionRecord, program: Program) -> ExecResult:
    left = cpu.get_reg(_require_reg(cpu, record, 1))
    right = _value_of(cpu, record, 2)
    if left == right:
        cpu.set_flag("Z", 1)
        cpu.set_flag("N", 0)
    elif left > right:
        cpu.set_flag("Z", 0)
        cpu.set_flag("N", 0)
    else:
        cpu.set_flag("Z", 0)
        cpu.set_flag("N", 1)
    cpu.set_flag("C", 0)
    return ExecResult()


def _branch_target(cpu: RegisterFile, record: InstructionRecord, program: Program) -> int:
    target = resolve_branch_target(record, 1)
    if isinstance(target, LabelOperand):
        pc = program.get_label(target.name)
        if pc is None:
            raise EmulationError(
                DiagnosticKind.UNKNOWN_LABEL,
                f"Unknown label: {target.name}",
                cpu.pc,
                record.text,
            )
        return pc
    if isinstance(target, ImmediateOperand):
        if target.value > len(program):
            raise EmulationError(
                DiagnosticKind.UNRESOLVED_OPERAND,
                f"Branch target {target.value} outside program (length {len(program)})",
                cpu.pc,
                record.text,
            )
        return target.value
    raise _unresolved(cpu, record, 1)


def exec_blt(cpu: RegisterFile, record: InstructionRecord, program: Program) -> ExecResult:
    if cpu.get_flag("N") and not cpu.get_flag("Z"):
        try:
            return ExecResult(next_pc=_branch_target(cpu, record, program))
        except EmulationError as exc:
            return ExecResult(error=exc)
    return ExecResult()


def exec_label(cpu: RegisterFile, record: InstructionRecord, program: Program) -> ExecResult:
    return ExecResult()


register_instruction(
    Opcode.MOV,
    InstructionDef(
        mnemonic="mov",
        summary="Move",
        description="Copy a register or immediate value into a register.",
        syntax="mov Rd, Rm | mov Rd, #imm",
        flags="-",
        executor=exec_mov,
    ),
)
register_instruction(
    Opcode.CMP,
    InstructionDef(
        mnemonic="cmp",
        summary="Compare",
        description="Compare a register with a register or immediate (unsigned) and set N and Z. C is cleared.",
        syntax="cmp Rn, Rm | cmp Rn, #imm",
        flags="N Z C",
        executor=exec_cmp,
    ),
)
register_instruction(
    Opcode.BLT,
    InstructionDef(
        mnemonic="blt",
        summary="Branch if less than",
        description="Branch to a label when N is set and Z is clear.",
        syntax="blt label | blt #pc",
        flags="-",
        executor=exec_blt,
    ),
)
register_instruction(
    Opcode.LABEL,
    InstructionDef(
        mnemonic="label:",
        summary="Label declaration",
        description="Names the program counter of this line. Executes as a no-op.",
        syntax="name:",
        flags="-",
        executor=exec_label,
    ),
)
