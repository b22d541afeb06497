"""Application entry point."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

# Ensure project root is on the path when running as `python app/main.py`
_ROOT = Path(__file__).parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

# Relative paths (config.json, profiles/, runs/) resolve against the project root
os.chdir(_ROOT)

from PySide6 import QtAsyncio
from PySide6.QtWidgets import QApplication

from app.config import Config, ConfigManager
from app.controller import Controller
from ui.main_window import MainWindow


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    _configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("Gaze Remote – starting up.")

    app = QApplication(sys.argv)
    app.setApplicationName("GazeRemote")

    config_manager = ConfigManager(Config.load())
    controller = Controller(config_manager)

    window = MainWindow(controller)
    window.show()

    # Runs the asyncio core on Qt's event loop until the last window closes
    QtAsyncio.run(window.restore(), keep_running=True, quit_qapp=True)

    controller.shutdown()
    logger.info("Exiting.")


if __name__ == "__main__":
    main()
