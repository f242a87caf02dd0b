"""A scripted stand-in for the boto3 DynamoDB client.

Tests queue the calls they expect, in order, with a partial request to match
and a canned response or error. Any call that is not next in the queue fails
the test immediately.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple

from botocore.exceptions import ClientError

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]

OPERATIONS = frozenset(
    {
        "get_item",
        "put_item",
        "update_item",
        "delete_item",
        "query",
        "scan",
        "batch_get_item",
        "batch_write_item",
        "transact_write_items",
        "transact_get_items",
    }
)


class _Wildcard:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _Wildcard()


def _mismatch(expected: Any, actual: Any, path: str) -> str | None:
    # Dicts match on the expected keys only; lists must match element for element.
    if expected is ANY:
        return None

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return f"{path}: expected dict, got {type(actual).__name__}"
        for key, want in expected.items():
            if key not in actual:
                return f"{path}: missing key {key!r}"
            if (problem := _mismatch(want, actual[key], f"{path}.{key}")) is not None:
                return problem
        return None

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return f"{path}: expected list, got {type(actual).__name__}"
        if len(expected) != len(actual):
            return f"{path}: expected {len(expected)} items, got {len(actual)}"
        for i, want in enumerate(expected):
            if (problem := _mismatch(want, actual[i], f"{path}[{i}]")) is not None:
                return problem
        return None

    if expected != actual:
        return f"{path}: expected {expected!r}, got {actual!r}"
    return None


@dataclass(frozen=True)
class Expectation:
    method: str
    check: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None

    def verify(self, request: Mapping[str, Any]) -> None:
        if self.check is None:
            return
        if callable(self.check):
            self.check(request)
            return
        problem = _mismatch(dict(self.check), dict(request), self.method)
        if problem is not None:
            raise AssertionError(problem)


class RecordedCall(NamedTuple):
    method: str
    request: dict[str, Any]


class FakeDynamoDBClient:
    def __init__(self) -> None:
        self._queue: list[Expectation] = []
        self.calls: list[RecordedCall] = []

    def expect(
        self,
        method: str,
        expected: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        if method not in OPERATIONS:
            raise ValueError(f"unknown dynamodb operation: {method}")
        self._queue.append(Expectation(method=method, check=expected, response=response, error=error))

    def expect_client_error(
        self,
        method: str,
        code: str,
        message: str = "",
        *,
        expected: RequestCheck | None = None,
        cancellation_codes: Sequence[str] = (),
    ) -> None:
        """Queue a botocore ``ClientError`` the way DynamoDB reports it."""
        response: dict[str, Any] = {"Error": {"Code": code, "Message": message}}
        if cancellation_codes:
            response["CancellationReasons"] = [{"Code": c} for c in cancellation_codes]
        self.expect(method, expected, error=ClientError(response, method))

    def assert_no_pending(self) -> None:
        if self._queue:
            raise AssertionError(f"pending expected calls: {self._queue!r}")

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [call.request for call in self.calls if call.method == method]

    def _dispatch(self, method: str, request: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append(RecordedCall(method, dict(request)))
        if not self._queue:
            raise AssertionError(f"unexpected call: {method}")

        expectation = self._queue.pop(0)
        if expectation.method != method:
            raise AssertionError(f"expected {expectation.method}, got {method}")
        expectation.verify(request)

        if expectation.error is not None:
            raise expectation.error
        return dict(expectation.response or {})

    def __getattr__(self, name: str) -> Callable[..., Mapping[str, Any]]:
        if name not in OPERATIONS:
            raise AttributeError(name)

        def operation(**kwargs: Any) -> Mapping[str, Any]:
            return self._dispatch(name, kwargs)

        return operation
