from collections import deque
from dataclasses import dataclass

from focuswatch.model.models import LogEntry

__all__ = ["DEFAULT_CAPACITY", "ResultLog", "Statistics", "StatisticsSnapshot"]

DEFAULT_CAPACITY = 100


class ResultLog:
    """監視結果のリングバッファ (古いものから破棄)."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            msg = "capacity must be positive"
            raise ValueError(msg)
        self.capacity = capacity
        self._entries: deque[LogEntry] = deque(maxlen=capacity)

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def clear(self) -> None:
        """Drop all entries. Statistics are reset separately."""
        self._entries.clear()

    def snapshot(self) -> tuple[LogEntry, ...]:
        """Oldest-first immutable copy for presentation layers."""
        return tuple(self._entries)

    def latest(self) -> LogEntry | None:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class StatisticsSnapshot:
    total_checks: int
    focused_checks: int
    distracted_checks: int

    @property
    def focus_rate(self) -> float:
        if self.total_checks == 0:
            return 0.0
        return self.focused_checks / self.total_checks


class Statistics:
    """Running counters; ``total == focused + distracted`` always holds."""

    def __init__(self) -> None:
        self.focused_checks = 0
        self.distracted_checks = 0

    @property
    def total_checks(self) -> int:
        return self.focused_checks + self.distracted_checks

    def record(self, *, is_focused: bool) -> None:
        if is_focused:
            self.focused_checks += 1
        else:
            self.distracted_checks += 1

    def reset(self) -> None:
        self.focused_checks = 0
        self.distracted_checks = 0

    def snapshot(self) -> StatisticsSnapshot:
        return StatisticsSnapshot(
            total_checks=self.total_checks,
            focused_checks=self.focused_checks,
            distracted_checks=self.distracted_checks,
        )
