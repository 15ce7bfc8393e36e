import pytest

from armcore.config import EmulatorConfig
from armcore.cpu import RegisterSnapshot
from armcore.diagnostics import DiagnosticKind
from armcore.emulator import Emulator, HaltReason, RunResult, StepOutcome


def _kinds(result_or_emulator):
    return [diagnostic.kind for diagnostic in result_or_emulator.diagnostics]


def test_state_starts_zeroed(emulator):
    snapshot = emulator.state()
    assert snapshot.r == (0,) * 13
    assert (snapshot.sp, snapshot.lr, snapshot.pc, snapshot.psr) == (0, 0, 0, 0)
    assert snapshot.flags == {"N": 0, "Z": 0, "C": 0, "V": 0, "Q": 0}


def test_state_is_a_pure_read(emulator):
    emulator.load(["mov r0, #5"])
    assert emulator.state() == emulator.state()
    assert emulator.state().get_reg("r0") == 5


def test_load_runs_program_to_end(emulator):
    result = emulator.load(["MOV R0, #5\n", "mov r1, r0\n", "cmp r0, #0x5\n"])

    assert result.reason is HaltReason.END
    assert result.ok
    assert result.steps == 3
    assert result.diagnostics == []
    assert result.state.get_reg("r0") == 5
    assert result.state.get_reg("r1") == 5
    assert result.state.pc == 3
    assert result.state.flag("Z") == 1
    assert result.state.flag("N") == 0


def test_branch_to_label_skips_instructions(emulator):
    result = emulator.load(
        [
            "mov r0, #1\n",
            "cmp r0, #2\n",
            "blt end\n",
            "mov r1, #9\n",
            "end:\n",
        ]
    )

    assert result.reason is HaltReason.END
    assert result.steps == 4
    assert result.state.get_reg("r1") == 0
    assert result.state.pc == 5


def test_step_by_step_branch_lands_on_label_then_advances(emulator):
    emulator.load(["mov r0, #1", "cmp r0, #2", "blt end", "mov r1, #9", "end:"])
    emulator.cpu.pc = 2

    outcome = emulator.step()
    assert outcome.error is None
    assert emulator.cpu.pc == 4

    outcome = emulator.step()
    assert outcome.record.is_label
    assert emulator.cpu.pc == 5

    outcome = emulator.step()
    assert outcome.halted
    assert emulator.halted


def test_counting_loop_with_labels_reaches_end(emulator):
    result = emulator.load(["mov r0, #3", "loop:", "cmp r0, #0", "blt loop", "mov r2, #1"])
    assert result.reason is HaltReason.END
    assert result.state.get_reg("r2") == 1


def test_compare_loop_from_reset_state_halts_within_cap(emulator):
    result = emulator.load(["loop: cmp r0, #0", "blt loop"])
    assert result.reason is HaltReason.END
    assert result.steps <= emulator.config.step_limit


def test_bad_opcode_stalls(emulator):
    result = emulator.load(["mov r0, #1", "add r0, #1", "mov r1, #1"])

    assert result.reason is HaltReason.STALLED
    assert _kinds(result) == [DiagnosticKind.BAD_OPCODE, DiagnosticKind.STALLED_EXECUTION]
    assert result.state.pc == 1
    assert result.state.get_reg("r0") == 1
    assert result.state.get_reg("r1") == 0


def test_unresolved_operand_stalls_without_mutation(emulator):
    result = emulator.load(["mov r0, #zz"])

    assert result.reason is HaltReason.STALLED
    assert _kinds(result) == [DiagnosticKind.UNRESOLVED_OPERAND, DiagnosticKind.STALLED_EXECUTION]
    assert result.state.get_reg("r0") == 0


def test_session_commands_inside_program_are_bad_opcodes(emulator):
    result = emulator.load(["mov r0, #1", "state"])
    assert result.reason is HaltReason.STALLED
    assert _kinds(result)[0] is DiagnosticKind.BAD_OPCODE


def test_unknown_label_falls_through(emulator):
    result = emulator.load(["mov r0, #1", "cmp r0, #2", "blt nowhere", "mov r1, #7"])

    assert result.reason is HaltReason.END
    assert _kinds(result) == [DiagnosticKind.UNKNOWN_LABEL]
    assert result.diagnostics[0].pc == 2
    assert result.state.get_reg("r1") == 7


def test_endless_cycle_hits_step_limit():
    emulator = Emulator(EmulatorConfig(step_limit=10))
    result = emulator.load(["mov r0, #0", "loop:", "cmp r0, #1", "blt loop"])

    assert result.reason is HaltReason.STEP_LIMIT
    assert result.steps == 10
    assert _kinds(result) == [DiagnosticKind.STEP_LIMIT_EXCEEDED]


def test_straight_line_program_longer_than_limit():
    emulator = Emulator(EmulatorConfig(step_limit=2))
    result = emulator.load(["mov r0, #1", "mov r1, #1", "mov r2, #1"])

    assert result.reason is HaltReason.STEP_LIMIT
    assert result.state.get_reg("r1") == 1
    assert result.state.get_reg("r2") == 0


def test_program_ends_at_first_blank_line(emulator):
    result = emulator.load(["mov r0, #1", "", "mov r1, #1"])
    assert result.reason is HaltReason.END
    assert result.state.get_reg("r1") == 0
    assert len(emulator.program) == 1


def test_load_resets_registers(emulator):
    emulator.load(["mov r3, #3", "cmp r3, #4"])
    result = emulator.load(["mov r0, #1"])
    assert result.state.get_reg("r3") == 0
    assert result.state.flag("N") == 0
    assert result.state.pc == 1


def test_load_replaces_labels(emulator):
    emulator.load(["old:"])
    emulator.load(["new:"])
    assert emulator.program.get_label("old") is None
    assert emulator.program.get_label("new") == 0


def test_load_file_runs_program(emulator, write_program):
    path = write_program("mov r0, #0x10\nend:\n")
    result = emulator.load_file(path)
    assert result.ok
    assert result.state.get_reg("r0") == 16


def test_missing_source_leaves_session_unchanged(emulator, tmp_path):
    emulator.load(["mov r0, #5", "here:"])
    before = emulator.state()
    program_before = emulator.program

    result = emulator.load_file(tmp_path / "missing.s")

    assert result.reason is HaltReason.ABORTED
    assert _kinds(result) == [DiagnosticKind.SOURCE_UNAVAILABLE]
    assert emulator.state() == before
    assert emulator.program is program_before
    assert emulator.program.get_label("here") == 1


def test_capacity_overflow_aborts_load():
    emulator = Emulator(EmulatorConfig(max_instructions=2))
    emulator.load(["mov r0, #5"])
    before = emulator.state()

    result = emulator.load(["mov r1, #1", "mov r2, #2", "mov r3, #3"])

    assert result.reason is HaltReason.ABORTED
    assert _kinds(result) == [DiagnosticKind.CAPACITY_EXCEEDED]
    assert emulator.state() == before
    assert len(emulator.program) == 1


def test_unreadable_line_source_aborts_load(emulator):
    def lines():
        yield "mov r0, #1"
        raise OSError("device went away")

    result = emulator.load(lines())
    assert result.reason is HaltReason.ABORTED
    assert _kinds(result) == [DiagnosticKind.SOURCE_UNAVAILABLE]


def test_undecodable_line_source_aborts_load(emulator, tmp_path):
    path = tmp_path / "binary.s"
    path.write_bytes(b"mov r0, #1\n\xff\xfe\n")
    emulator.load(["mov r3, #3"])
    before = emulator.state()

    with open(path, encoding="utf-8") as handle:
        result = emulator.load(handle)

    assert result.reason is HaltReason.ABORTED
    assert _kinds(result) == [DiagnosticKind.SOURCE_UNAVAILABLE]
    assert emulator.state() == before


def test_oversized_decimal_immediate_is_unresolved():
    emulator = Emulator(EmulatorConfig(max_line_length=10000))
    result = emulator.load(["mov r0, #" + "9" * 5000])

    assert result.reason is HaltReason.STALLED
    assert _kinds(result) == [DiagnosticKind.UNRESOLVED_OPERAND, DiagnosticKind.STALLED_EXECUTION]
    assert result.state.get_reg("r0") == 0


def test_over_long_line_is_reported():
    emulator = Emulator(EmulatorConfig(step_limit=50))
    result = emulator.load([" " * 118 + "mov r0 #12345", "mov r1, #1"])

    assert result.reason is HaltReason.END
    assert _kinds(result) == [DiagnosticKind.LINE_TRUNCATED]
    assert result.diagnostics[0].pc == 0
    assert result.state.get_reg("r0") == 12


def test_execute_reports_over_long_line(emulator):
    outcome = emulator.execute("mov r0, #1" + " " * 200 + "x")
    assert outcome.error is None
    assert _kinds(emulator) == [DiagnosticKind.LINE_TRUNCATED]
    assert emulator.state().get_reg("r0") == 1


def test_trailing_blank_lines_beyond_capacity_still_load():
    emulator = Emulator(EmulatorConfig(max_instructions=1))
    result = emulator.load(["mov r0, #1\n"] + ["\n"] * 10)
    assert result.ok
    assert result.state.get_reg("r0") == 1


def test_diagnostics_are_forwarded_to_sink():
    received = []
    emulator = Emulator(EmulatorConfig(step_limit=5), sink=received.append)
    emulator.load(["bogus"])
    assert [diagnostic.kind for diagnostic in received] == [
        DiagnosticKind.BAD_OPCODE,
        DiagnosticKind.STALLED_EXECUTION,
    ]
    assert received[0].text == "bogus"


def test_new_load_after_stall_recovers(emulator):
    assert emulator.load(["bogus"]).reason is HaltReason.STALLED
    result = emulator.load(["mov r0, #2"])
    assert result.ok
    assert result.diagnostics == []


def test_execute_runs_single_instructions(emulator):
    outcome = emulator.execute("mov r0, #5")
    assert isinstance(outcome, StepOutcome)
    assert outcome.error is None
    assert emulator.state().get_reg("r0") == 5
    assert emulator.state().pc == 1

    emulator.execute("mov r1, r0")
    assert emulator.state().get_reg("r1") == 5

    emulator.execute("cmp r0, #7")
    snapshot = emulator.execute("state")
    assert isinstance(snapshot, RegisterSnapshot)
    assert snapshot.flag("N") == 1
    assert snapshot.flag("Z") == 0


def test_execute_reports_bad_instruction(emulator):
    outcome = emulator.execute("jump somewhere")
    assert outcome.error.kind is DiagnosticKind.BAD_OPCODE
    assert _kinds(emulator) == [DiagnosticKind.BAD_OPCODE]
    assert emulator.state().pc == 0


def test_execute_ignores_blank_lines(emulator):
    assert emulator.execute("\n") is None


def test_execute_load_keeps_path_case(write_program):
    emulator = Emulator(EmulatorConfig(max_line_length=4096))
    path = write_program("mov r4, #4\n", name="Prog.S")
    result = emulator.execute(f"load {path}\n")
    assert isinstance(result, RunResult)
    assert result.ok
    assert emulator.state().get_reg("r4") == 4


@pytest.mark.parametrize("line", ["load", "load does-not-exist.s"])
def test_execute_load_without_readable_file(emulator, line):
    result = emulator.execute(line)
    assert result.reason is HaltReason.ABORTED
    assert _kinds(result) == [DiagnosticKind.SOURCE_UNAVAILABLE]


def test_configured_stack_pointer_survives_reset():
    emulator = Emulator(EmulatorConfig(stack_pointer=0x20001000))
    assert emulator.state().sp == 0x20001000

    result = emulator.load(["mov sp, #0", "mov r0, sp"])
    assert result.state.sp == 0
    emulator.load(["mov r0, sp"])
    assert emulator.state().get_reg("r0") == 0x20001000


@pytest.mark.parametrize("field", ["max_instructions", "max_line_length", "step_limit"])
def test_config_rejects_non_positive_limits(field):
    with pytest.raises(ValueError):
        EmulatorConfig(**{field: 0})
