import logging
import sys
import traceback

from followup.core.config import settings
from followup.core.security import sanitize_error_message


class SanitizingFormatter(logging.Formatter):
    """Formatter that redacts credentials from the full record, traceback included."""

    def format(self, record: logging.LogRecord) -> str:
        return sanitize_error_message(super().format(record))


class AppLogger:
    """Application logger that scrubs credentials from every message."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self._setup_logger()

    def _setup_logger(self):
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(SanitizingFormatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ))
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    def debug(self, message: str, **kwargs):
        self.logger.debug(sanitize_error_message(message))

    def info(self, message: str, **kwargs):
        self.logger.info(sanitize_error_message(message))

    def warning(self, message: str, **kwargs):
        self.logger.warning(sanitize_error_message(message))

    def error(self, message: str, **kwargs):
        self.logger.error(sanitize_error_message(message))

    def exception(self, message: str, **kwargs):
        # Traceback is rendered here so propagated handlers never see raw exception text
        self.logger.error(sanitize_error_message(f"{message}\n{traceback.format_exc().rstrip()}"))


def get_logger(name: str) -> AppLogger:
    """Get a logger instance."""
    return AppLogger(name)
