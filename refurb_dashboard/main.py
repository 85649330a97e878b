from __future__ import annotations

import sys
from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QApplication, QMainWindow

from .config import DB_PATH, ENGINE_MAX_WORKERS
from .constants import APP_NAME, STYLE_FILE
from .database import connection_factory, get_connection
from .modules.analytics.engine import AggregationEngine
from .modules.dashboard import DashboardController
from .modules.insights import InsightService
from .utils.loggers import get_logger


def load_qss() -> str:
    qss = ""
    f = Path(__file__).resolve().parent / STYLE_FILE
    if f.exists():
        qss = f.read_text(encoding="utf-8")
    return qss


class MainWindow(QMainWindow):
    def __init__(self, controller: DashboardController):
        super().__init__()
        self.setWindowTitle(APP_NAME)
        self.setWindowFlag(Qt.WindowMinimizeButtonHint, True)
        self.setWindowFlag(Qt.WindowMaximizeButtonHint, True)
        self.setMinimumSize(1024, 640)

        self.controller = controller
        self.setCentralWidget(controller.get_widget())


def main():
    log = get_logger()

    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)

    # ensure schema & version row exist before the engine opens read connections
    get_connection(DB_PATH).close()
    log.info("Using database %s", DB_PATH)

    engine = AggregationEngine(connection_factory(DB_PATH), max_workers=ENGINE_MAX_WORKERS)
    controller = DashboardController(engine, InsightService())

    qss = load_qss()
    if qss:
        app.setStyleSheet(qss)

    win = MainWindow(controller)
    win.resize(1280, 800)
    win.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
