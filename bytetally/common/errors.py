"""Exceptions raised by bytetally."""


class TrackerError(Exception):
    """Base class for usage tracker errors."""


class SchedulerShutdownError(TrackerError):
    """The scheduler no longer accepts tasks."""

    def __init__(self, message: str = "Scheduler has been shut down") -> None:
        self.message = message
        super().__init__(message)
