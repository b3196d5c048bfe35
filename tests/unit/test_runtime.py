from __future__ import annotations

import logging

import pytest

from tableutil.mocks import FakeDynamoDBClient
from tableutil.runtime import (
    AwsCallMetric,
    _reset_clients_for_tests,
    create_boto3_config,
    get_dynamodb_client,
    instrument_boto3_client,
    is_lambda_environment,
    log_aws_call,
    resolve_endpoint_url,
    resolve_region,
)


def test_is_lambda_environment() -> None:
    assert is_lambda_environment({}) is False
    assert is_lambda_environment({"AWS_LAMBDA_FUNCTION_NAME": "fn"}) is True
    assert is_lambda_environment({"AWS_EXECUTION_ENV": "AWS_Lambda_python3.12"}) is True


def test_resolve_endpoint_and_region() -> None:
    assert resolve_endpoint_url({}) is None
    assert resolve_endpoint_url({"DYNAMODB_ENDPOINT": " http://localhost:8000 "}) == "http://localhost:8000"
    assert resolve_region({"AWS_DEFAULT_REGION": "eu-west-1"}) == "eu-west-1"
    assert resolve_region({"AWS_REGION": "us-east-1", "AWS_DEFAULT_REGION": "eu-west-1"}) == "us-east-1"


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(connect_timeout=2.0, read_timeout=4.0, max_attempts=5)
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries["max_attempts"] == 5


def test_instrument_boto3_client_records_calls() -> None:
    metrics: list[AwsCallMetric] = []

    client = FakeDynamoDBClient()
    client.expect("put_item", response={})
    client.expect("get_item", error=RuntimeError("boom"))
    wrapped = instrument_boto3_client(client, service="dynamodb", on_call=metrics.append)

    wrapped.put_item(TableName="t", Item={})
    with pytest.raises(RuntimeError, match="boom"):
        wrapped.get_item(TableName="t", Key={})

    assert [(m.operation, m.ok) for m in metrics] == [("put_item", True), ("get_item", False)]
    assert wrapped.calls is client.calls


def test_log_aws_call_emits_debug_record(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="tableutil.runtime"):
        log_aws_call(AwsCallMetric(service="dynamodb", operation="query", seconds=0.25, ok=True))
    assert "dynamodb.query took 0.250s (ok=True)" in caplog.text


def test_get_dynamodb_client_caches_per_region_and_endpoint() -> None:
    _reset_clients_for_tests()

    class FakeSession:
        def __init__(self) -> None:
            self.calls: list[dict[str, object]] = []

        def client(self, service_name: str, **kwargs: object) -> object:
            assert service_name == "dynamodb"
            self.calls.append(kwargs)
            return object()

    sess = FakeSession()
    c1 = get_dynamodb_client(region="us-east-1", endpoint_url="http://localhost:8000", session=sess)
    c2 = get_dynamodb_client(region="us-east-1", endpoint_url="http://localhost:8000", session=sess)
    c3 = get_dynamodb_client(region="eu-west-1", endpoint_url="http://localhost:8000", session=sess)

    assert c1 is c2
    assert c1 is not c3
    assert len(sess.calls) == 2
    assert sess.calls[0]["endpoint_url"] == "http://localhost:8000"
    _reset_clients_for_tests()


def test_get_dynamodb_client_does_not_share_across_options() -> None:
    _reset_clients_for_tests()

    created: list[FakeDynamoDBClient] = []

    class FakeSession:
        def client(self, service_name: str, **kwargs: object) -> FakeDynamoDBClient:
            created.append(FakeDynamoDBClient())
            return created[-1]

    sess = FakeSession()
    metrics: list[AwsCallMetric] = []

    plain = get_dynamodb_client(region="us-east-1", session=sess)
    measured = get_dynamodb_client(region="us-east-1", session=sess, metrics=metrics.append)
    tuned = get_dynamodb_client(region="us-east-1", session=sess, config=create_boto3_config(max_attempts=1))

    assert len(created) == 3
    assert plain is created[0]
    assert tuned is created[2]
    assert get_dynamodb_client(region="us-east-1", session=sess, metrics=metrics.append) is measured

    created[1].expect("scan")
    measured.scan(TableName="t")
    assert [m.operation for m in metrics] == ["scan"]
    _reset_clients_for_tests()
