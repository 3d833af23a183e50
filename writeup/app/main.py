from __future__ import annotations

import argparse
import logging
import os
import sys
import time
import traceback
from pathlib import Path

from PySide6.QtCore import QtMsgType, qInstallMessageHandler
from PySide6.QtWidgets import QApplication

from writeup.app import config
from writeup.app.documents import DocumentStore, FileDocumentStore, HttpDocumentStore
from writeup.app.ui.editor_window import EditorWindow


# ============================================================================
# DEBUG CONFIGURATION - Environment Variables
# ============================================================================
# WRITEUP_DEBUG   - DEBUG level logging for every writeup.* module
# WRITEUP_CONFIG  - Alternate path for the global JSON config
# WRITEUP_TOKEN   - Bearer token sent to the document API (--api mode)
#
# Example:
#   WRITEUP_DEBUG=1 writeup --documents ~/notes my-post
# ============================================================================

logger = logging.getLogger(__name__)


def _debug_enabled(var_name: str) -> bool:
    """Check if a debug flag is enabled."""
    return os.getenv(var_name, "0") not in ("0", "false", "False", "", None)


def _configure_logging() -> None:
    level = logging.DEBUG if _debug_enabled("WRITEUP_DEBUG") else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("MARKDOWN").setLevel(logging.WARNING)


def _qt_message_handler(mode: QtMsgType, context, message: str) -> None:
    """Custom Qt message handler to suppress known harmless warnings."""
    if "QWindowsFontEngineDirectWrite::recalcAdvances" in message:
        return
    if "GetDesignGlyphMetrics failed" in message:
        return
    if "Accessible invalid" in message or "Could not find accessible on path" in message:
        return
    qt_logger = logging.getLogger("qt")
    if mode == QtMsgType.QtDebugMsg:
        qt_logger.debug(message)
    elif mode == QtMsgType.QtWarningMsg:
        qt_logger.warning(message)
    elif mode == QtMsgType.QtCriticalMsg:
        qt_logger.error(message)
    elif mode == QtMsgType.QtFatalMsg:
        qt_logger.critical(message)
        sys.exit(1)
    else:
        qt_logger.info(message)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Writeup desktop markdown editor.")
    parser.add_argument("document", nargs="?", default="untitled", help="Document id to open (default: untitled).")
    parser.add_argument("--documents", help="Folder holding local JSON documents.")
    parser.add_argument("--api", help="Base URL of a document API (overrides --documents).")
    parser.add_argument(
        "--autosave-delay",
        type=int,
        metavar="MS",
        help="Milliseconds of idle time before a draft is autosaved (remembered).",
    )
    return parser.parse_args(argv)


def _apply_settings(args: argparse.Namespace) -> None:
    if args.autosave_delay is not None:
        config.save_autosave_delay_ms(args.autosave_delay)
        logger.info("Autosave delay set to %s ms", config.load_autosave_delay_ms())


def _build_store(args: argparse.Namespace) -> DocumentStore:
    api_base = args.api or config.load_api_base()
    if api_base:
        logger.info("Using document API at %s", api_base)
        return HttpDocumentStore(api_base, token=os.getenv("WRITEUP_TOKEN") or None)
    root = args.documents or config.load_documents_root() or str(Path.home() / "Writeup")
    if args.documents:
        config.save_documents_root(args.documents)
    logger.info("Using local documents in %s", root)
    return FileDocumentStore(root)


def main() -> None:
    args = _parse_args(sys.argv[1:])
    _configure_logging()
    start_ts = time.time()
    config.init_settings()
    _apply_settings(args)
    # Install custom message handler to suppress harmless Qt warnings
    qInstallMessageHandler(_qt_message_handler)
    qt_app = QApplication(sys.argv)
    qt_app.setApplicationName("Writeup")
    store = _build_store(args)
    try:
        window = EditorWindow(store, args.document)
        window.show()
        logger.debug("Editor window shown; entering Qt event loop.")
        rc = qt_app.exec()
        logger.debug("Qt event loop exited with code %s after %.2fs.", rc, time.time() - start_ts)
        sys.exit(rc)
    except Exception as exc:
        logger.error("Unhandled exception after %.2fs: %s", time.time() - start_ts, exc)
        traceback.print_exc()
        qt_app.quit()
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()
