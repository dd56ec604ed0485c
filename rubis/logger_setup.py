import logging
import sys
from typing import Optional

from lsprotocol.types import LogMessageParams, MessageType
from pygls.lsp.server import LanguageServer

LOGGER_NAME = "rubis"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CLIENT_FORMAT = "%(levelname)s - %(message)s"


def message_type_for(levelno: int) -> MessageType:
    if levelno >= logging.ERROR:
        return MessageType.Error
    if levelno >= logging.WARNING:
        return MessageType.Warning
    if levelno >= logging.INFO:
        return MessageType.Info
    return MessageType.Log


class LspLogHandler(logging.Handler):
    """Forwards ``rubis`` records to the editor as ``window/logMessage``."""

    def __init__(self, ls: Optional[LanguageServer]):
        super().__init__()
        self.ls = ls

    def emit(self, record: logging.LogRecord) -> None:
        # Records emitted before the server is wired to a client are dropped
        if self.ls is None or not hasattr(self.ls, "window_log_message"):
            return
        try:
            self.ls.window_log_message(
                LogMessageParams(
                    type=message_type_for(record.levelno),
                    message=self.format(record),
                )
            )
        except Exception:
            self.handleError(record)


def _handler(handler: logging.Handler, fmt: str, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(ls: LanguageServer, level: int = logging.INFO) -> logging.Logger:
    """
    Configure the ``rubis`` logger.

    Records go to stderr (stdout carries the LSP stream) and to the client.
    Calling it again only updates the level, so handlers never stack.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not logger.hasHandlers():
        logger.addHandler(_handler(logging.StreamHandler(sys.stderr), CONSOLE_FORMAT, level))
        logger.addHandler(_handler(LspLogHandler(ls), CLIENT_FORMAT, level))

    return logger


def set_level(level: int) -> None:
    """Change the level of the ``rubis`` logger and all of its handlers."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
