# core/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

# Third-party loggers that are chatty at INFO/DEBUG during page fetches
QUIET_LOGGERS = ("urllib3", "charset_normalizer", "bs4")

_configured = False


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging():
    global _configured
    if _configured:
        return

    log_level = _level(os.getenv("LOG_LEVEL", "INFO"))
    log_to_file = _env_flag("LOG_TO_FILE", "false")
    log_file = os.getenv("LOG_FILE", "/data/gusto_ko.log")
    log_max_bytes = int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024)))
    log_backups = int(os.getenv("LOG_BACKUPS", "3"))
    log_to_stdout = _env_flag("LOG_TO_STDOUT", "true")
    library_level = _level(os.getenv("LIBRARY_LOG_LEVEL", "WARNING"))

    root = logging.getLogger()
    root.setLevel(log_level)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    # Host apps (and pytest) may already own the root handlers
    if not root.handlers:
        if log_to_stdout:
            ch = logging.StreamHandler(sys.stdout)
            ch.setLevel(log_level)
            ch.setFormatter(formatter)
            root.addHandler(ch)

        if log_to_file:
            try:
                os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
                fh = RotatingFileHandler(
                    log_file,
                    maxBytes=log_max_bytes,
                    backupCount=log_backups,
                    encoding="utf-8",
                )
                fh.setLevel(log_level)
                fh.setFormatter(formatter)
                root.addHandler(fh)
            except OSError as e:
                root.warning("Failed to initialize file logging at %s: %s", log_file, e)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(library_level, log_level))

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
