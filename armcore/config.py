from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EmulatorConfig:
    max_instructions: int = 128
    max_line_length: int = 128
    step_limit: int = 1000
    stack_pointer: int = 0

    def __post_init__(self) -> None:
        if self.max_instructions <= 0:
            raise ValueError("max_instructions must be positive")
        if self.max_line_length <= 0:
            raise ValueError("max_line_length must be positive")
        if self.step_limit <= 0:
            raise ValueError("step_limit must be positive")


DEFAULT_CONFIG = EmulatorConfig()
