import faulthandler
import logging
import sys

faulthandler.enable()  # Dump traceback on segfault/crash to stderr

from PySide6.QtWidgets import QApplication

from planscale.constants import APP_NAME
from planscale.infra.config_store import Config
from planscale_qt.takeoff_window import TakeoffWindow


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    config = Config()
    window = TakeoffWindow(config=config)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
