from __future__ import annotations

import logging
from pathlib import Path
from typing import Final


DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty third-party loggers kept at WARNING unless we are debugging.
NOISY_LOGGERS: Final[tuple[str, ...]] = ("urllib3", "requests")


def configure_logging(level: int = logging.WARNING, log_dir: str | None = None) -> None:
    """Configure standard library logging for the CLI.

    Logs go to stderr so they never mix with the rendered report. If log_dir
    is provided, they are also written to '<log_dir>/run.log'.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        Path(log_dir).expanduser().mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(Path(log_dir).expanduser() / "run.log", encoding="utf-8")
        )

    logging.basicConfig(level=level, format=DEFAULT_LOG_FORMAT, handlers=handlers, force=True)

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
