"""
Progress event bus and observer utilities.

Filter invocations emit progress events through this module, while host
environments (GUI/CLI) subscribe with their own renderers. Progress is a
fraction in [0, 1] that never decreases during one invocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence
import sys
import time


@dataclass(frozen=True)
class ProgressEvent:
    """Immutable progress payload."""

    fraction: float
    message: str
    stage: Optional[str] = None
    channel: str = "stage"  # "stage" | "iteration" | custom
    timestamp: float = field(default_factory=time.time)

    @property
    def percent(self) -> int:
        return int(round(100 * self.fraction))


class ProgressObserver(Protocol):
    """Observer protocol for progress events."""

    def on_progress(self, event: ProgressEvent) -> None:
        ...


class ProgressBus:
    """
    Simple observer-style event bus for progress propagation.
    """

    def __init__(self) -> None:
        self._observers: list[Callable[[ProgressEvent], None] | ProgressObserver] = []

    def subscribe(self, observer: Callable[[ProgressEvent], None] | ProgressObserver) -> "ProgressBus":
        self._observers.append(observer)
        return self

    def unsubscribe(self, observer: Callable[[ProgressEvent], None] | ProgressObserver) -> "ProgressBus":
        try:
            self._observers.remove(observer)
        except ValueError:
            pass
        return self

    def emit(self, event: ProgressEvent) -> None:
        for observer in tuple(self._observers):
            if hasattr(observer, "on_progress"):
                observer.on_progress(event)  # type: ignore[attr-defined]
            else:
                observer(event)  # type: ignore[misc]


class StageProgressMapper:
    """
    Map per-stage local fractions [0..1] into invocation-global [0..1].
    """

    def __init__(self, stages: Sequence[str]) -> None:
        stage_list = list(stages)
        self._count = max(len(stage_list), 1)
        self._index = {name: idx for idx, name in enumerate(stage_list)}

    def map(self, stage: Optional[str], local_fraction: float) -> float:
        local = max(0.0, min(1.0, float(local_fraction)))
        if not stage or stage not in self._index:
            return local
        idx = self._index[stage]
        return min(1.0, (idx + local) / self._count)


class ProgressReporter:
    """
    Per-invocation front end of a ProgressBus.

    Clamps to [0, 1], maps stage-local progress through a StageProgressMapper
    and holds the last value so the emitted sequence is non-decreasing. With
    no bus attached every report is a no-op.
    """

    def __init__(self, bus: Optional[ProgressBus] = None, stages: Sequence[str] = ()) -> None:
        self._bus = bus
        self._mapper = StageProgressMapper(stages)
        self._last = 0.0

    @property
    def fraction(self) -> float:
        return self._last

    def report(self, fraction: float, message: str, stage: Optional[str] = None, channel: str = "stage") -> None:
        value = max(self._last, self._mapper.map(stage, fraction))
        self._last = value
        if self._bus is not None:
            self._bus.emit(ProgressEvent(fraction=value, message=message, stage=stage, channel=channel))

    def stage_callback(self, stage: str, channel: str = "stage") -> Callable[[float, str], None]:
        def callback(fraction: float, message: str) -> None:
            self.report(fraction, message, stage=stage, channel=channel)

        return callback


class CancelToken:
    """
    Cooperative cancellation flag shared between host and runner.
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def __call__(self) -> bool:
        return self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class CancelFlagObserver:
    """
    Raises InterruptedError when cancellation flag is active.
    """

    def __init__(self, is_cancelled: Callable[[], bool], message: str = "Operation cancelled by user.") -> None:
        self._is_cancelled = is_cancelled
        self._message = message

    def on_progress(self, _event: ProgressEvent) -> None:
        if self._is_cancelled():
            raise InterruptedError(self._message)


class TerminalProgressObserver:
    """
    Text renderer for CLI usage.
    """

    def __init__(self, bar_width: int = 30, stream=None) -> None:
        self.bar_width = bar_width
        self.stream = stream or sys.stdout

    def on_progress(self, event: ProgressEvent) -> None:
        stage = event.stage or "task"
        filled = int(self.bar_width * event.fraction)
        bar = "#" * filled + "." * (self.bar_width - filled)
        self.stream.write(f"\r  [{stage:<10}] [{bar}] {event.percent:3d}%  {event.message:<48}")
        if event.fraction >= 1.0:
            self.stream.write("\n")
        self.stream.flush()


__all__ = [
    "ProgressEvent",
    "ProgressObserver",
    "ProgressBus",
    "StageProgressMapper",
    "ProgressReporter",
    "CancelToken",
    "CancelFlagObserver",
    "TerminalProgressObserver",
]
