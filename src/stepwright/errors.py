"""Exception hierarchy for stepwright."""

from __future__ import annotations


class StepwrightError(Exception):
    """Base class for all stepwright errors."""


# -- Internal state errors --


class StateError(StepwrightError):
    """A state bag read broke the key/type protocol; always a defect."""


class MissingKeyError(StateError, KeyError):
    """The requested key was never written."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"state key '{self.key}' is not set"


class StateTypeError(StateError, TypeError):
    """The stored value does not have the expected type."""

    def __init__(self, key: str, expected: type, actual: object) -> None:
        super().__init__(key, expected, actual)
        self.key = key
        self.expected = expected
        self.actual = actual

    def __str__(self) -> str:
        return (
            f"state key '{self.key}' holds {type(self.actual).__name__}, "
            f"expected {self.expected.__name__}"
        )


class ArtifactError(StateError):
    """A result marker was present but malformed."""


# -- Build failures --


class BuildError(StepwrightError):
    """The build failed; this is what callers see."""


class StepError(BuildError):
    """A single step reported a failure."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.message = message

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


class CancelledError(StepwrightError):
    """A blocking call observed the cancellation signal."""


# -- Construction errors --


class WorkflowError(StepwrightError, ValueError):
    """Invalid parameters for assembling a workflow."""


class ConfigError(StepwrightError, ValueError):
    """Invalid builder configuration."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


# -- Collaborators --


class ClientError(StepwrightError):
    """A compute API or communicator call failed."""
