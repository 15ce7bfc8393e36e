import pytest

from armcore.config import EmulatorConfig
from armcore.emulator import Emulator


@pytest.fixture
def emulator():
    return Emulator(EmulatorConfig(step_limit=50))


@pytest.fixture
def write_program(tmp_path):
    def _write(text: str, name: str = "prog.s"):
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write
