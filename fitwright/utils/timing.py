# fitwright/utils/timing.py
from __future__ import annotations

import functools
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar, ParamSpec

from fitwright.utils.logger import get_logger

P = ParamSpec("P")
T = TypeVar("T")


# ---------------- Monotonic time helpers ----------------

def now_ms() -> int:
    """Monotonic time in milliseconds."""
    return time.monotonic_ns() // 1_000_000


def sleep_ms(ms: int) -> None:
    """Sleep for `ms` milliseconds (blocking)."""
    if ms <= 0:
        return
    time.sleep(ms / 1000.0)


# ---------------- Stopwatch ----------------

@dataclass
class Stopwatch:
    """Simple stopwatch usable as a context manager.

    `clock` returns milliseconds; tests pass a fake one to control elapsed time.
    """
    clock: Callable[[], int] = field(default=now_ms)
    start_ms: Optional[int] = None

    def start(self) -> "Stopwatch":
        self.start_ms = self.clock()
        return self

    def elapsed_ms(self) -> int:
        if self.start_ms is None:
            return 0
        return max(0, self.clock() - self.start_ms)

    def elapsed_seconds(self) -> float:
        return self.elapsed_ms() / 1000.0

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


# ---------------- Deadline ----------------

@dataclass
class Deadline:
    """Absolute point in time (ms) computed from a timeout."""
    timeout_ms: int
    clock: Callable[[], int] = field(default=now_ms)
    expires_at: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.expires_at = self.clock() + max(0, self.timeout_ms)

    def remaining_ms(self) -> int:
        return max(0, self.expires_at - self.clock())

    def expired(self) -> bool:
        return self.clock() >= self.expires_at


# ---------------- measure decorator ----------------

def measure(label: str = "", level: str = "DEBUG") -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator to log the execution time of a function.
    Example:
        @measure("open")
        def open(...): ...
    """
    level = level.upper()

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            log = get_logger(func.__module__)
            log_fn = getattr(log, level.lower(), log.info)
            with Stopwatch() as sw:
                try:
                    return func(*args, **kwargs)
                finally:
                    ms = sw.elapsed_ms()
                    human = f"{ms} ms" if ms < 1000 else f"{ms/1000:.3f} s"
                    log_fn(f"{label or func.__name__} took {human}")
        return wrapper
    return decorator
