"""RoadORM Logger - Timestamped statement log files.

Each destination is a file written through its own ``logging.Logger`` with
a ``FileHandler``. Lines look like ``[2026-01-31 12:00:00] message``.

Logging is fire-and-forget: a failed write becomes a warning on this
module's logger and never reaches the caller.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import Dict, List, Union

from roadorm_core.errors import UsageError

logger = logging.getLogger(__name__)

LINE_FORMAT = "[%(asctime)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class MultiDestinationLogger:
    """Writes messages to named log files.

    Destinations must be initialized before use. Instances are passed to
    the executor explicitly; there is no module-level instance.
    """

    _instances = itertools.count(1)

    def __init__(self):
        self._instance = next(self._instances)
        self._loggers: Dict[str, logging.Logger] = {}
        self._handlers: Dict[str, logging.FileHandler] = {}

    @property
    def destinations(self) -> List[str]:
        return list(self._loggers)

    def is_initialized(self, destination: str) -> bool:
        return destination in self._loggers

    def initialize_destination(self, destination: Union[str, Path]) -> None:
        """Open (append mode) a log file, creating parent directories."""
        key = str(destination)
        if key in self._loggers:
            return

        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT))

        file_logger = logging.getLogger(f"{__name__}.{self._instance}.{key}")
        file_logger.setLevel(logging.INFO)
        file_logger.propagate = False
        for stale in list(file_logger.handlers):
            file_logger.removeHandler(stale)
            stale.close()
        file_logger.addHandler(handler)

        self._loggers[key] = file_logger
        self._handlers[key] = handler
        logger.info(f"Log destination initialized: {key}")

    def log(self, destination: Union[str, Path], message: str) -> None:
        """Append a timestamped line to ``destination``.

        Raises:
            UsageError: if the destination was never initialized
        """
        key = str(destination)
        file_logger = self._loggers.get(key)
        if file_logger is None:
            raise UsageError(f"Log destination '{key}' is not initialized")

        try:
            file_logger.info(message)
            self._handlers[key].flush()
        except Exception as e:
            logger.warning(f"Failed to write to {key}: {e}")

    def close(self, destination: Union[str, Path]) -> None:
        key = str(destination)
        handler = self._handlers.pop(key, None)
        file_logger = self._loggers.pop(key, None)
        if handler is None or file_logger is None:
            return
        file_logger.removeHandler(handler)
        handler.close()

    def close_all(self) -> None:
        """Close every destination."""
        for key in list(self._loggers):
            self.close(key)

    def __enter__(self) -> "MultiDestinationLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close_all()
        return False


__all__ = ["MultiDestinationLogger"]
