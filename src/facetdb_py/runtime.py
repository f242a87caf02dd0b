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


@dataclass(frozen=True)
class AwsCallMetric:
    operation: str
    seconds: float
    ok: bool
    service: str = "dynamodb"


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def create_boto3_config(
    *,
    connect_timeout: float | None = None,
    read_timeout: float | None = None,
    max_attempts: int = 3,
    environ: Mapping[str, str] = os.environ,
) -> Config:
    """Client config with short timeouts inside Lambda and botocore's defaults elsewhere."""
    lambda_env = is_lambda_environment(environ)
    if connect_timeout is None:
        connect_timeout = 1.0 if lambda_env else 60.0
    if read_timeout is None:
        read_timeout = 3.0 if lambda_env else 60.0
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
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=ok,
                        service=self._service,
                    )
                )

        return wrapped


def instrument_boto3_client(
    client: Any,
    *,
    on_call: Callable[[AwsCallMetric], None],
    service: str = "dynamodb",
) -> Any:
    return _InstrumentedClient(client, service, on_call)


_clients: dict[tuple[str | None, str | None], Any] = {}


def get_dynamodb_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
    environ: Mapping[str, str] = os.environ,
) -> Any:
    """Return a cached low-level DynamoDB client.

    ``endpoint_url`` falls back to ``$DYNAMODB_ENDPOINT`` so the same code can
    target DynamoDB Local.
    """
    endpoint = endpoint_url or environ.get(ENDPOINT_ENV) or None
    key = (region, endpoint)
    existing = _clients.get(key)
    if existing is not None:
        return existing

    sess = session or boto3.session.Session(region_name=region)
    client = cast(Any, sess).client(
        "dynamodb",
        region_name=region,
        endpoint_url=endpoint,
        config=config or create_boto3_config(environ=environ),
    )
    if metrics is not None:
        client = instrument_boto3_client(client, on_call=metrics)

    logger.debug("created dynamodb client region=%s endpoint=%s", region, endpoint)
    _clients[key] = client
    return client


def reset_client_cache() -> None:
    _clients.clear()
