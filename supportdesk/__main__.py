"""Entry point for launching the SupportDesk chat client."""

from __future__ import annotations

import sys

from PyQt6.QtWidgets import QApplication

from .config import load_settings
from .logging import install_exception_hook, setup_logging
from .services.chat_client import HttpConversationClient
from .services.conversation import SessionLifecycleManager
from .services.qt_dispatch import QtCallDispatcher, QtScheduler
from .services.session_list import SessionListService
from .services.session_store import SessionStore
from .ui import ChatWindow


def main() -> None:
    """Start the PyQt6 application."""
    logger = setup_logging()
    install_exception_hook(logger)
    logger.debug("Starting QApplication")

    app = QApplication(sys.argv)
    app.setApplicationName("SupportDesk")

    settings = load_settings()
    logger.info(
        "Loaded client settings",
        extra={
            "api_base_url": settings.api_base_url,
            "session_poll_interval_ms": settings.session_poll_interval_ms,
            "authenticated": settings.access_token is not None,
        },
    )

    client = HttpConversationClient.from_settings(settings)
    dispatcher = QtCallDispatcher()
    scheduler = QtScheduler()
    manager = SessionLifecycleManager(client, store=SessionStore(), dispatcher=dispatcher)
    session_list = SessionListService(
        client,
        scheduler=scheduler,
        dispatcher=dispatcher,
        interval_ms=settings.session_poll_interval_ms,
        limit=settings.session_list_limit,
    )

    window = ChatWindow(
        settings=settings,
        client=client,
        manager=manager,
        session_list=session_list,
        dispatcher=dispatcher,
    )
    window.show()
    logger.info("Main window shown")

    manager.hydrate()
    session_list.start()

    logger.info("Application started")
    try:
        exit_code = app.exec()
        logger.info("Application event loop exited", extra={"exit_code": exit_code})
    finally:
        logger.info("Commencing shutdown sequence")
        session_list.stop()
        manager.close()
        logger.info("Shutdown complete")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
