from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

type Fetch = Callable[[dict[str, Any]], Mapping[str, Any]]


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    next_cursor: str | None


def _single_entry(av: Any) -> tuple[str, Any]:
    if not isinstance(av, dict) or len(av) != 1:
        raise ValueError("attribute value must be a single-key map")
    ((kind, value),) = av.items()
    return str(kind), value


def _av_to_json(av: Any) -> dict[str, Any]:
    kind, value = _single_entry(av)
    if kind == "B":
        return {"B": base64.b64encode(bytes(value)).decode("ascii")}
    if kind == "BS":
        return {"BS": [base64.b64encode(bytes(v)).decode("ascii") for v in value]}
    if kind == "L":
        return {"L": [_av_to_json(v) for v in value]}
    if kind == "M":
        return {"M": {str(k): _av_to_json(v) for k, v in sorted(value.items())}}
    if kind in {"S", "N", "BOOL", "NULL", "SS", "NS"}:
        return {kind: value}
    raise ValueError(f"unsupported attribute value type: {kind}")


def _av_from_json(enc: Any) -> dict[str, Any]:
    kind, value = _single_entry(enc)
    if kind == "B":
        return {"B": base64.b64decode(value)}
    if kind == "BS":
        return {"BS": [base64.b64decode(v) for v in value]}
    if kind == "L":
        return {"L": [_av_from_json(v) for v in value]}
    if kind == "M":
        return {"M": {str(k): _av_from_json(v) for k, v in value.items()}}
    if kind in {"S", "N", "BOOL", "NULL", "SS", "NS"}:
        return {kind: value}
    raise ValueError(f"unsupported attribute value type: {kind}")


def encode_cursor(last_key: Mapping[str, Any]) -> str:
    payload = {str(k): _av_to_json(v) for k, v in sorted(last_key.items())}
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> dict[str, Any]:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    if not isinstance(parsed, dict) or not parsed:
        raise ValueError("cursor must decode to a non-empty object")
    return {str(k): _av_from_json(v) for k, v in parsed.items()}


class PaginationDriver:
    """Follows `LastEvaluatedKey` continuation tokens for scan and query calls.

    `fetch` issues one low-level request and returns the raw response; errors
    it raises propagate unchanged.
    """

    def __init__(self, fetch: Fetch, *, operation: str) -> None:
        self._fetch = fetch
        self._operation = operation

    def fetch_once(
        self, request: Mapping[str, Any], start_key: Mapping[str, Any] | None = None
    ) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
        req = dict(request)
        if start_key:
            req["ExclusiveStartKey"] = dict(start_key)
        else:
            req.pop("ExclusiveStartKey", None)

        resp = self._fetch(req)
        items = list(resp.get("Items") or [])
        last_key = resp.get("LastEvaluatedKey") or None
        logger.debug(
            "%s returned %d items (more=%s)", self._operation, len(items), last_key is not None
        )
        return items, last_key

    def collect(self, request: Mapping[str, Any]) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        start_key: dict[str, Any] | None = request.get("ExclusiveStartKey")
        pages = 0

        while True:
            items, start_key = self.fetch_once(request, start_key)
            out.extend(items)
            pages += 1
            if start_key is None:
                break

        logger.debug("%s collected %d items over %d pages", self._operation, len(out), pages)
        return out

    def fetch_page(
        self,
        request: Mapping[str, Any],
        *,
        skip_request: Mapping[str, Any],
        page_size: int,
        page_index: int,
    ) -> list[dict[str, Any]]:
        """Return page `page_index` (0-based) of `page_size` items.

        Earlier pages are skipped with `skip_request`, which should project only
        the key attributes. An index past the last page yields `[]`.
        """
        start_key: dict[str, Any] | None = None

        for _ in range(page_index):
            _, start_key = self.fetch_once(dict(skip_request, Limit=page_size), start_key)
            if start_key is None:
                break

        if page_index > 0 and start_key is None:
            logger.debug("%s page %d is out of range", self._operation, page_index)
            return []

        items, _ = self.fetch_once(dict(request, Limit=page_size), start_key)
        return items
