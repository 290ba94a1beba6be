"""Output sink used by steps to report progress to the operator."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable


@runtime_checkable
class Ui(Protocol):
    def say(self, message: str) -> None: ...

    def message(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingUi:
    """Ui that writes every message to a logger."""

    def __init__(self, name: str = "stepwright.ui") -> None:
        self._logger = logging.getLogger(name)

    def say(self, message: str) -> None:
        self._logger.info("==> %s", message)

    def message(self, message: str) -> None:
        self._logger.info("    %s", message)

    def error(self, message: str) -> None:
        self._logger.error("%s", message)
