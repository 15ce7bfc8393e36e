from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


GENERAL_REGISTER_COUNT = 13
SPECIAL_REGISTERS = ("sp", "lr", "pc")
REGISTER_ORDER = [f"r{index}" for index in range(GENERAL_REGISTER_COUNT)] + list(SPECIAL_REGISTERS)

# Program Status Register bit offsets.
FLAG_BITS: Dict[str, int] = {
    "N": 31,
    "Z": 30,
    "C": 29,
    "V": 28,
    "Q": 27,
}
FLAG_ORDER = ["N", "Z", "C", "V", "Q"]


def clamp_u32(value: int) -> int:
    return value & 0xFFFFFFFF


def get_bit(value: int, bit: int) -> int:
    return (value >> bit) & 1


def set_bit(value: int, bit: int, state: int) -> int:
    if state:
        return clamp_u32(value | (1 << bit))
    return clamp_u32(value & ~(1 << bit))


@dataclass(frozen=True)
class RegisterSnapshot:
    r: Tuple[int, ...]
    sp: int
    lr: int
    pc: int
    psr: int

    def get_reg(self, name: str) -> int:
        name = name.lower()
        if name in SPECIAL_REGISTERS:
            return getattr(self, name)
        return self.r[int(name[1:])]

    def flag(self, name: str) -> int:
        return get_bit(self.psr, FLAG_BITS[name.upper()])

    @property
    def flags(self) -> Dict[str, int]:
        return {name: self.flag(name) for name in FLAG_ORDER}

    def registers(self) -> Dict[str, int]:
        return {name: self.get_reg(name) for name in REGISTER_ORDER}


@dataclass
class RegisterFile:
    r: List[int] = field(default_factory=lambda: [0] * GENERAL_REGISTER_COUNT)
    sp: int = 0
    lr: int = 0
    pc: int = 0
    psr: int = 0
    initial_sp: int = 0

    def reset(self) -> None:
        self.r = [0] * GENERAL_REGISTER_COUNT
        self.sp = clamp_u32(self.initial_sp)
        self.lr = 0
        self.pc = 0
        self.psr = 0

    def get_reg(self, name: str) -> int:
        name = name.lower()
        if name in SPECIAL_REGISTERS:
            return getattr(self, name)
        return self.r[self._index(name)]

    def set_reg(self, name: str, value: int) -> None:
        name = name.lower()
        if name in SPECIAL_REGISTERS:
            setattr(self, name, clamp_u32(value))
            return
        self.r[self._index(name)] = clamp_u32(value)

    def _index(self, name: str) -> int:
        if not name.startswith("r") or not name[1:].isdigit():
            raise KeyError(name)
        index = int(name[1:])
        if index >= GENERAL_REGISTER_COUNT:
            raise KeyError(name)
        return index

    def get_flag(self, name: str) -> int:
        return get_bit(self.psr, FLAG_BITS[name.upper()])

    def set_flag(self, name: str, state: int) -> None:
        self.psr = set_bit(self.psr, FLAG_BITS[name.upper()], state)

    def snapshot(self) -> RegisterSnapshot:
        return RegisterSnapshot(r=tuple(self.r), sp=self.sp, lr=self.lr, pc=self.pc, psr=self.psr)

