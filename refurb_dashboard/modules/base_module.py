from PySide6.QtCore import QObject
from PySide6.QtWidgets import QWidget


class BaseModule(QObject):
    """A screen: owns a view widget and the logic that feeds it."""

    def get_widget(self) -> QWidget:
        raise NotImplementedError
