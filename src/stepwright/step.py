"""Step ABC — one sequenced build action with a compensating cleanup."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from . import state as keys
from .errors import StepError

if TYPE_CHECKING:
    from .cancel import CancelToken
    from .state import StateBag

logger = logging.getLogger(__name__)


class StepAction(Enum):
    CONTINUE = "continue"
    HALT = "halt"


class Step(ABC):
    """Base class for all build steps.

    execute() reports failure by writing the error marker and returning
    HALT; it does not raise. cleanup() runs once for every executed step,
    in reverse order, and must tolerate partial or repeated runs.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        """Perform the action, mutating the state bag."""

    def cleanup(self, state: StateBag) -> None:  # noqa: B027
        """Undo whatever execute() created (default: nothing)."""

    def fail(self, state: StateBag, message: str, cause: BaseException | None = None) -> StepAction:
        """Record a failure marker, report it, and halt."""
        error = StepError(self.name, message)
        error.__cause__ = cause
        state.put(keys.ERROR, error)
        ui, ok = state.get_ok(keys.UI)
        if ok:
            ui.error(message)
        logger.debug("Step %s failed: %s", self.name, message)
        return StepAction.HALT

    def halt_cancelled(self, state: StateBag) -> StepAction:
        """Stop the run because a blocking call observed cancellation."""
        logger.info("Step %s interrupted by cancellation", self.name)
        state.put(keys.CANCELLED, True)
        return StepAction.HALT

    def __repr__(self) -> str:
        return f"<{self.name}>"
