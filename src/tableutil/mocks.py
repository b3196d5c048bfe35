from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, NamedTuple


class _Marker:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:  # pragma: no cover
        return self._name


ANY: Any = _Marker("ANY")
"""Matches any value."""

ABSENT: Any = _Marker("ABSENT")
"""Matches only when the key is not in the request."""

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]

OPERATIONS = frozenset(
    {
        "put_item",
        "get_item",
        "update_item",
        "delete_item",
        "query",
        "scan",
        "transact_write_items",
    }
)


def _mismatch(expected: Any, actual: Any, path: str) -> str | None:
    """Describe the first difference between `expected` and `actual`, if any."""
    if expected is ANY:
        return None

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return f"{path}: expected dict, got {type(actual).__name__}"
        for key, want in expected.items():
            present = key in actual
            if want is ABSENT:
                if present:
                    return f"{path}: unexpected key {key!r}"
                continue
            if not present:
                return f"{path}: missing key {key!r}"
            problem = _mismatch(want, actual[key], f"{path}.{key}")
            if problem:
                return problem
        return None

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return f"{path}: expected list, got {type(actual).__name__}"
        if len(expected) != len(actual):
            return f"{path}: expected {len(expected)} items, got {len(actual)}"
        for i, pair in enumerate(zip(expected, actual, strict=True)):
            problem = _mismatch(*pair, f"{path}[{i}]")
            if problem:
                return problem
        return None

    if expected != actual:
        return f"{path}: expected {expected!r}, got {actual!r}"
    return None


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    expected: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None

    def check(self, request: Mapping[str, Any]) -> None:
        if self.expected is None:
            return
        if callable(self.expected):
            self.expected(request)
            return
        problem = _mismatch(self.expected, request, self.method)
        if problem:
            raise AssertionError(problem)


class RecordedCall(NamedTuple):
    method: str
    request: dict[str, Any]


class FakeDynamoDBClient:
    """Scripted stand-in for the subset of the boto3 DynamoDB client used here.

    Calls must arrive in the order they were scripted with `expect()`. Each one
    is checked against a partial request (with `ANY`/`ABSENT` markers) or a
    callable, then answers with `response` or raises `error`. Every call,
    matched or not, is appended to `calls`.
    """

    def __init__(self) -> None:
        self._script: deque[ExpectedCall] = deque()
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
            raise ValueError(f"unsupported operation: {method}")
        self._script.append(ExpectedCall(method, expected, response, error))

    def assert_no_pending(self) -> None:
        if self._script:
            raise AssertionError(f"pending expected calls: {list(self._script)!r}")

    def __getattr__(self, name: str) -> Callable[..., Mapping[str, Any]]:
        if name not in OPERATIONS:
            raise AttributeError(name)

        def operation(**request: Any) -> Mapping[str, Any]:
            return self._dispatch(name, request)

        operation.__name__ = name
        return operation

    def _dispatch(self, method: str, request: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append(RecordedCall(method, dict(request)))
        if not self._script:
            raise AssertionError(f"unexpected call: {method}")

        call = self._script.popleft()
        if call.method != method:
            raise AssertionError(f"expected {call.method}, got {method}")
        call.check(request)

        if call.error is not None:
            raise call.error
        return dict(call.response or {})
