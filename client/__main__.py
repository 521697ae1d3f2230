"""RoomSync Client entry point."""
from __future__ import annotations
import argparse
import asyncio
import logging
import sys
import threading
from pathlib import Path

from PySide6.QtWidgets import QApplication

from client.app import ClientApp
from client.ui.room_window import RoomWindow
from shared.config import load_config
from shared.logging_utils import setup_rotating_logger


def _run_asyncio_loop(loop: asyncio.AbstractEventLoop) -> None:
    asyncio.set_event_loop(loop)
    loop.run_forever()


def main() -> None:
    parser = argparse.ArgumentParser(prog="roomsync", description="Synchronized playback client")
    parser.add_argument("config", nargs="?", type=Path, default=Path("roomsync.toml"))
    args = parser.parse_args()

    config = load_config(args.config)
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"config error: {error}", file=sys.stderr)
        sys.exit(2)

    setup_rotating_logger("roomsync.client", Path(config.client.log_dir))
    logger = logging.getLogger("roomsync.client")
    logger.info("RoomSync Client starting (room=%s, role=%s)", config.client.room_id, config.client.role)

    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=_run_asyncio_loop, args=(loop,), daemon=True)
    thread.start()

    qt_app = QApplication(sys.argv)
    qt_app.setApplicationName("RoomSync Client")
    qt_app.setOrganizationName("RoomSync")

    app = ClientApp(config)
    window = RoomWindow(loop, app)
    window.show()
    asyncio.run_coroutine_threadsafe(app.run(), loop)

    exit_code = qt_app.exec()

    # Cleanup
    try:
        asyncio.run_coroutine_threadsafe(app.shutdown(), loop).result(timeout=5)
    except Exception as e:
        logger.warning("Shutdown did not finish cleanly: %s", e)
    loop.call_soon_threadsafe(loop.stop)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
