from __future__ import annotations

from typing import Dict

from PyQt6.QtCore import QAbstractTableModel, QModelIndex, QObject, Qt
from PyQt6.QtGui import QColor

from armcore.cpu import FLAG_ORDER, REGISTER_ORDER, RegisterSnapshot

CHANGED_BACKGROUND = "#ffb86c"
CHANGED_FOREGROUND = "#1a1b26"
FLAG_NAMES = {
    "N": "Negative",
    "Z": "Zero",
    "C": "Carry",
    "V": "Overflow",
    "Q": "Saturation",
}


class RegistersTableModel(QAbstractTableModel):
    headers = ["Register", "Hex", "Decimal"]

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._values: Dict[str, int] = {name: 0 for name in REGISTER_ORDER}
        self._previous: Dict[str, int] = {}

    def update_snapshot(self, snapshot: RegisterSnapshot) -> None:
        self.beginResetModel()
        self._previous = dict(self._values)
        self._values = snapshot.registers()
        self.endResetModel()

    def clear_history(self) -> None:
        self.beginResetModel()
        self._previous = {}
        self.endResetModel()

    def changed(self, name: str) -> bool:
        previous = self._previous.get(name)
        return previous is not None and previous != self._values[name]

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(REGISTER_ORDER)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self.headers)

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.ItemDataRole.DisplayRole):
        if role == Qt.ItemDataRole.DisplayRole and orientation == Qt.Orientation.Horizontal:
            return self.headers[section]
        return None

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        name = REGISTER_ORDER[index.row()]
        value = self._values[name]
        column = index.column()

        if role == Qt.ItemDataRole.DisplayRole:
            if column == 0:
                return name.upper()
            if column == 1:
                return f"0x{value:08X}"
            if column == 2:
                return str(value)
        if column > 0 and self.changed(name):
            if role == Qt.ItemDataRole.BackgroundRole:
                return QColor(CHANGED_BACKGROUND)
            if role == Qt.ItemDataRole.ForegroundRole:
                return QColor(CHANGED_FOREGROUND)
        if role == Qt.ItemDataRole.ToolTipRole and column > 0:
            return str(value)
        return None


class FlagsTableModel(QAbstractTableModel):
    headers = ["Flag", "Value"]

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._flags: Dict[str, int] = {name: 0 for name in FLAG_ORDER}

    def update_snapshot(self, snapshot: RegisterSnapshot) -> None:
        self.beginResetModel()
        self._flags = snapshot.flags
        self.endResetModel()

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(FLAG_ORDER)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self.headers)

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.ItemDataRole.DisplayRole):
        if role == Qt.ItemDataRole.DisplayRole and orientation == Qt.Orientation.Horizontal:
            return self.headers[section]
        return None

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        name = FLAG_ORDER[index.row()]
        if role == Qt.ItemDataRole.DisplayRole:
            return name if index.column() == 0 else str(self._flags[name])
        if role == Qt.ItemDataRole.ToolTipRole:
            return FLAG_NAMES[name]
        return None
