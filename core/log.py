"""Leveled console logging and progress handles."""

from rich.console import Console
from rich.progress import Progress, TaskID

# Quietest first.
LOG_LEVELS = ("silent", "error", "warn", "info", "silly")

_STYLES = {
    "error": "red",
    "warn": "yellow",
    "silly": "dim",
}


class Logger:
    """Prints messages whose level is at or above the configured loudness.

    ``silent`` prints nothing; ``silly`` prints everything.
    """

    def __init__(self, level: str = "info", console: Console | None = None):
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {level!r}; expected one of {', '.join(LOG_LEVELS)}")
        self.level = level
        self.console = console or Console(stderr=True)

    @classmethod
    def silent(cls) -> "Logger":
        return cls("silent")

    def enabled(self, level: str) -> bool:
        if level == "silent":
            return False
        return LOG_LEVELS.index(level) <= LOG_LEVELS.index(self.level)

    def log(self, message: str, level: str = "info") -> None:
        if self.enabled(level):
            self.console.print(message, style=_STYLES.get(level))

    def error(self, message: str) -> None:
        self.log(message, "error")

    def warn(self, message: str) -> None:
        self.log(message, "warn")

    def info(self, message: str) -> None:
        self.log(message, "info")

    def silly(self, message: str) -> None:
        self.log(message, "silly")


class NullProgress:
    """Progress handle that ignores updates."""

    def __init__(self, label: str = "", total: int = 0):
        self.label = label
        self.total = total
        self.completed = 0

    def increment(self) -> None:
        self.completed += 1


class RichProgress:
    """Progress handle backed by one task of a running ``rich`` progress display."""

    def __init__(self, progress: Progress, label: str, total: int):
        self.progress = progress
        self.task: TaskID = progress.add_task(label, total=total)

    def increment(self) -> None:
        self.progress.advance(self.task)


def null_progress(label: str, total: int) -> NullProgress:
    return NullProgress(label, total)


def rich_progress_factory(progress: Progress):
    """Build handles on ``progress`` with the ``(label, total)`` signature."""

    def factory(label: str, total: int) -> RichProgress:
        return RichProgress(progress, label, total)

    return factory
