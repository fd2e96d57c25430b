"""Logging configuration shared by the API server and the CLI."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO.
_NOISY = ("LiteLLM", "litellm", "httpx", "httpcore", "urllib3")


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single stdout handler on the root logger.

    Safe to call more than once: existing root handlers are replaced.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))

    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.addHandler(handler)

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
