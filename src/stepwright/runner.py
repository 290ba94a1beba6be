"""Runner — executes steps in order, then cleans up in reverse."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from enum import Enum

from . import state as keys
from .cancel import CancelToken
from .errors import CancelledError, StateError, StepError
from .state import StateBag
from .step import Step, StepAction

logger = logging.getLogger(__name__)


class DebugLocation(Enum):
    AFTER_RUN = "after_run"
    BEFORE_CLEANUP = "before_cleanup"


PauseFn = Callable[[DebugLocation, str, StateBag], None]


class Runner:
    """Sequential step runner with cooperative cancellation.

    A runner drives exactly one run. cancel() may be called from any thread
    at any time; it is observed between steps and handed to each step's
    execute() so blocking calls can abort early.
    """

    def __init__(
        self,
        steps: Iterable[Step],
        *,
        cancel: CancelToken | None = None,
        pause: PauseFn | None = None,
    ) -> None:
        self.steps: tuple[Step, ...] = tuple(steps)
        self.token = cancel or CancelToken()
        self._pause = pause
        self._lock = threading.Lock()
        self._started = False
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def cancel(self) -> None:
        """Request cancellation; a no-op once the run has finished."""
        if self._done:
            logger.debug("Cancel requested after run finished; ignoring")
            return
        logger.info("Cancelling the step runner...")
        self.token.cancel()

    def run(self, state: StateBag) -> StateBag:
        """Run all steps against the state bag.

        Returns the state bag; raises the recorded failure marker after
        cleanup has finished.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("runner has already been used")
            self._started = True

        executed: list[Step] = []
        try:
            for step in self.steps:
                if self.token.cancelled:
                    logger.info("Run cancelled before %s", step.name)
                    state.put(keys.CANCELLED, True)
                    break

                executed.append(step)
                logger.debug("Executing step %s", step.name)
                action = self._execute(step, state)
                self._debug_pause(DebugLocation.AFTER_RUN, step, state)

                if action is StepAction.HALT:
                    logger.debug("Step %s halted the run", step.name)
                    state.put(keys.HALTED, True)
                    break
        finally:
            self._cleanup(executed, state)
            self._done = True

        error, failed = state.get_ok(keys.ERROR)
        if failed:
            raise error
        return state

    def _execute(self, step: Step, state: StateBag) -> StepAction:
        try:
            return step.execute(state, self.token)
        except StateError:
            raise
        except CancelledError:
            return step.halt_cancelled(state)
        except Exception as exc:
            logger.exception("Step %s raised unexpectedly", step.name)
            if keys.ERROR not in state:
                error = StepError(step.name, f"unexpected error: {exc}")
                error.__cause__ = exc
                state.put(keys.ERROR, error)
            return StepAction.HALT

    def _cleanup(self, executed: list[Step], state: StateBag) -> None:
        for step in reversed(executed):
            self._debug_pause(DebugLocation.BEFORE_CLEANUP, step, state)
            logger.debug("Cleaning up step %s", step.name)
            try:
                step.cleanup(state)
            except Exception:
                logger.exception("Cleanup of %s failed", step.name)

    def _debug_pause(self, location: DebugLocation, step: Step, state: StateBag) -> None:
        if self._pause is not None:
            self._pause(location, step.name, state)
