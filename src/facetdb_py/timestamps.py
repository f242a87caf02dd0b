from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from .model import Schema

type Clock = Callable[[], float]


def now_seconds(clock: Clock = time.time) -> int:
    return int(clock())


def apply_timestamps(item: Mapping[str, Any], schema: Schema, *, clock: Clock = time.time) -> dict[str, Any]:
    out = dict(item)
    ts = schema.timestamps
    if ts is None:
        return out

    now = now_seconds(clock)
    if ts.created_at and ts.created_at not in out:
        out[ts.created_at] = now
    if ts.updated_at:
        out[ts.updated_at] = now
    return out


def apply_update_timestamp(
    set_ops: Mapping[str, Any], schema: Schema, *, clock: Clock = time.time
) -> dict[str, Any]:
    out = dict(set_ops)
    ts = schema.timestamps
    if ts is None or not ts.updated_at:
        return out
    out[ts.updated_at] = now_seconds(clock)
    return out


def ttl_from_now(seconds: float, *, clock: Clock = time.time) -> int:
    return int(clock() + seconds)


def is_ttl_expired(ttl: int, *, clock: Clock = time.time) -> bool:
    return now_seconds(clock) > ttl


def seconds_until_ttl(ttl: int, *, clock: Clock = time.time) -> float:
    return ttl - clock()
