"""Exceptions and warnings raised by the execution engine."""


class WorkoutEngineError(Exception):
    """Base class for engine errors."""


class InvalidWorkout(WorkoutEngineError, ValueError):
    """The workout cannot be started, e.g. it has no exercises."""


class InvalidTransition(WorkoutEngineError, RuntimeError):
    """A mutator was called in a phase where it is not defined."""

    def __init__(self, action: str, phase: str | None) -> None:
        self.action = action
        self.phase = phase
        super().__init__(f"Cannot {action} while in phase '{phase}'")


class CorruptSnapshot(WorkoutEngineError, ValueError):
    """A stored snapshot failed validation.

    Only raised inside the load boundary; callers of
    :meth:`~workout_engine.controller.WorkoutController.recover` never see it.
    """


class PersistenceWriteFailure(UserWarning):
    """Warning emitted when a snapshot could not be written."""
