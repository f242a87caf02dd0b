from __future__ import annotations

from collections.abc import Callable

from .mocks import ANY, FakeDynamoDBClient


def fixed_clock(start: float, *, step: float = 0.0) -> Callable[[], float]:
    """A clock returning ``start`` and advancing by ``step`` on every call."""
    state = {"now": float(start)}

    def clock() -> float:
        now = state["now"]
        state["now"] = now + step
        return now

    return clock


def no_sleep(_: float) -> None:
    return None


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "RecordingSleep",
    "fixed_clock",
    "no_sleep",
]
