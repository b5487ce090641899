from PySide6.QtWidgets import QApplication, QMainWindow
from PySide6.QtCore import Qt
from pathlib import Path
import argparse
import logging
import sys

from .config import DB_PATH, load_preferences
from .constants import APP_NAME, STYLE_FILE
from .database import get_connection
from .modules.base_module import BaseModule
from .utils.loggers import get_logger


def load_qss() -> str:
    qss = ""
    f = Path(__file__).resolve().parent / STYLE_FILE
    if f.exists():
        qss = f.read_text(encoding="utf-8")
    return qss


class MainWindow(QMainWindow):
    def __init__(self, module: BaseModule):
        super().__init__()
        self.setWindowTitle(APP_NAME)
        self.setWindowFlag(Qt.WindowMinimizeButtonHint, True)
        self.setWindowFlag(Qt.WindowMaximizeButtonHint, True)
        self.setMinimumSize(820, 520)
        self.module = module
        self.setCentralWidget(module.get_widget())

    def closeEvent(self, event):
        self.module.shutdown()
        super().closeEvent(event)


def _parse_args(argv):
    p = argparse.ArgumentParser(prog="pos-terminal", description=APP_NAME)
    p.add_argument("--db", default=str(DB_PATH), help="SQLite database file")
    p.add_argument("--cashier", type=int, default=1, help="cashier id for this session")
    p.add_argument("--debug", action="store_true", help="verbose logging")
    return p.parse_known_args(argv)[0]


def main(argv=None):
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    log = get_logger("pos_terminal", logging.DEBUG if args.debug else logging.INFO)

    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)

    # DB connection (ensure schema, etc.)
    conn = get_connection(args.db)
    log.info("Opened %s for cashier %s", args.db, args.cashier)

    # lazy import keeps the repositories importable without building widgets
    from .modules.sales.controller import SalesController

    controller = SalesController(conn, args.cashier, prefs=load_preferences())

    qss = load_qss()
    if qss:
        app.setStyleSheet(qss)

    win = MainWindow(controller)
    win.resize(1100, 720)
    win.show()
    code = app.exec()
    conn.close()
    return code


if __name__ == "__main__":
    sys.exit(main())
