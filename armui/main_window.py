from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QColor, QFont, QFontDatabase, QKeySequence, QSyntaxHighlighter, QTextCharFormat
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QHeaderView,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QSplitter,
    QTableView,
    QVBoxLayout,
    QWidget,
)

from armcore.config import DEFAULT_CONFIG, EmulatorConfig
from armcore.cpu import REGISTER_ORDER
from armcore.diagnostics import Diagnostic, EmulationError
from armcore.emulator import Emulator, RunResult
from armcore.instructions import get_instruction_defs
from armcore.parser import read_source_lines
from armui.registers import FlagsTableModel, RegistersTableModel


class AsmHighlighter(QSyntaxHighlighter):
    def __init__(self, parent) -> None:
        super().__init__(parent)
        self.mnemonic_format = QTextCharFormat()
        self.mnemonic_format.setForeground(QColor("#ff79c6"))
        self.mnemonic_format.setFontWeight(QFont.Weight.Bold)

        self.register_format = QTextCharFormat()
        self.register_format.setForeground(QColor("#bd93f9"))

        self.number_format = QTextCharFormat()
        self.number_format.setForeground(QColor("#ffb86c"))

        self.label_format = QTextCharFormat()
        self.label_format.setForeground(QColor("#50fa7b"))

        self.mnemonics = {d.mnemonic for d in get_instruction_defs() if d.mnemonic.isalpha()}
        self.registers = set(REGISTER_ORDER)

    def highlightBlock(self, text: str) -> None:
        lowered = text.lower()
        offset = 0
        for token in lowered.replace(",", " ").replace("\t", " ").split(" "):
            if not token:
                offset += 1
                continue
            if token.endswith(":"):
                self.setFormat(offset, len(token), self.label_format)
            elif token in self.mnemonics:
                self.setFormat(offset, len(token), self.mnemonic_format)
            elif token in self.registers:
                self.setFormat(offset, len(token), self.register_format)
            elif token.startswith("#"):
                self.setFormat(offset, len(token), self.number_format)
            offset += len(token) + 1


class MainWindow(QMainWindow):
    def __init__(self, config: EmulatorConfig = DEFAULT_CONFIG) -> None:
        super().__init__()
        self.setWindowTitle("ARM Emulator")
        self.resize(1000, 640)

        self.current_file: Optional[str] = None
        self.emulator = Emulator(config, sink=self.on_diagnostic)
        self.register_model = RegistersTableModel(self)
        self.flag_model = FlagsTableModel(self)

        self._build_ui()
        self._update_views()

    def _build_ui(self) -> None:
        self.editor = QPlainTextEdit()
        self.editor.setFont(QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont))
        self.highlighter = AsmHighlighter(self.editor.document())

        self.register_table = QTableView()
        self.register_table.setModel(self.register_model)
        self.register_table.verticalHeader().setVisible(False)
        self.register_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)

        self.flag_table = QTableView()
        self.flag_table.setModel(self.flag_model)
        self.flag_table.verticalHeader().setVisible(False)
        self.flag_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)

        self.log_output = QPlainTextEdit()
        self.log_output.setReadOnly(True)

        self.state_label = QLabel("Ready")

        state_panel = QWidget()
        state_layout = QVBoxLayout(state_panel)
        state_layout.setContentsMargins(0, 0, 0, 0)
        state_layout.addWidget(self.register_table, 3)
        state_layout.addWidget(self.flag_table, 1)

        top = QSplitter(Qt.Orientation.Horizontal)
        top.addWidget(self.editor)
        top.addWidget(state_panel)
        top.setStretchFactor(0, 3)
        top.setStretchFactor(1, 2)

        root = QSplitter(Qt.Orientation.Vertical)
        root.addWidget(top)
        root.addWidget(self.log_output)
        root.setStretchFactor(0, 4)
        root.setStretchFactor(1, 1)
        self.setCentralWidget(root)
        self.statusBar().addWidget(self.state_label)

        file_menu = self.menuBar().addMenu("&File")
        open_action = QAction("&Open...", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_file)
        file_menu.addAction(open_action)

        run_menu = self.menuBar().addMenu("&Run")
        run_action = QAction("&Load && Run", self)
        run_action.setShortcut(QKeySequence("F5"))
        run_action.triggered.connect(self.run_program)
        run_menu.addAction(run_action)
        reset_action = QAction("&Reset", self)
        reset_action.triggered.connect(self.reset_state)
        run_menu.addAction(reset_action)

    def open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open Program", "", "Assembly (*.s *.asm *.txt);;All Files (*)")
        if path:
            self.open_path(path)

    def open_path(self, path: str) -> bool:
        try:
            lines = read_source_lines(path)
        except EmulationError as exc:
            QMessageBox.warning(self, "Open Failed", exc.message)
            return False
        self.editor.setPlainText("".join(lines))
        self.current_file = path
        self.setWindowTitle(f"ARM Emulator - {path}")
        return True

    def run_program(self) -> None:
        self.log_output.clear()
        result = self.emulator.load(self.editor.toPlainText().splitlines(keepends=True))
        self.handle_run_result(result)

    def handle_run_result(self, result: RunResult) -> None:
        self.set_state(result.reason.value)
        self.log(f"{result.reason.value} after {result.steps} steps.")
        self._update_views()

    def reset_state(self) -> None:
        self.emulator.reset()
        self.register_model.clear_history()
        self.set_state("Ready")
        self._update_views()
        self.log("CPU state reset.")

    def on_diagnostic(self, diagnostic: Diagnostic) -> None:
        self.log(str(diagnostic))

    def _update_views(self) -> None:
        snapshot = self.emulator.state()
        self.register_model.update_snapshot(snapshot)
        self.flag_model.update_snapshot(snapshot)

    def set_state(self, state: str) -> None:
        self.state_label.setText(state)

    def log(self, message: str) -> None:
        self.log_output.appendPlainText(message)


def run_app(config: EmulatorConfig = DEFAULT_CONFIG, path: Optional[str] = None) -> None:
    app = QApplication([])
    window = MainWindow(config)
    if path:
        window.open_path(path)
    window.show()
    app.exec()
