from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

ENDPOINT_ENV = "DYNAMODB_ENDPOINT"
REGION_ENV = "AWS_REGION"


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


def log_aws_call(metric: AwsCallMetric) -> None:
    logger.debug(
        "%s.%s took %.3fs (ok=%s)", metric.service, metric.operation, metric.seconds, metric.ok
    )


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def resolve_endpoint_url(environ: Mapping[str, str] = os.environ) -> str | None:
    return (environ.get(ENDPOINT_ENV) or "").strip() or None


def resolve_region(environ: Mapping[str, str] = os.environ) -> str | None:
    return (environ.get(REGION_ENV) or environ.get("AWS_DEFAULT_REGION") or "").strip() or None


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=ok,
                    )
                )

        return wrapped


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _InstrumentedClient(client, service, on_call)


_dynamodb_clients: dict[tuple[Any, ...], Any] = {}


def get_dynamodb_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    """Return a DynamoDB client shared per process.

    Clients are cached per (region, endpoint, config, session, metrics), so a
    call with a different `config` or `metrics` sink gets its own client.
    Region and endpoint default to `AWS_REGION` and `DYNAMODB_ENDPOINT`.
    """
    region = region or resolve_region()
    endpoint_url = endpoint_url or resolve_endpoint_url()

    key = (region, endpoint_url, config, session, metrics)
    existing = _dynamodb_clients.get(key)
    if existing is not None:
        return existing

    if config is None and is_lambda_environment():
        config = create_boto3_config()

    sess = session or boto3.session.Session(region_name=region)
    client = cast(Any, sess).client("dynamodb", region_name=region, endpoint_url=endpoint_url, config=config)
    if metrics is not None:
        client = instrument_boto3_client(client, service="dynamodb", on_call=metrics)

    logger.debug("created dynamodb client (region=%s, endpoint=%s)", region, endpoint_url)
    _dynamodb_clients[key] = client
    return client


def _reset_clients_for_tests() -> None:
    _dynamodb_clients.clear()
