from unittest.mock import MagicMock, patch

import pytest

from ecs_dockerhub_cache.deployment_env import resolve_environment


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
    monkeypatch.delenv("CDK_DEFAULT_REGION", raising=False)


@patch("ecs_dockerhub_cache.deployment_env.boto3")
def test_prefers_cdk_environment_variables(mock_boto3, monkeypatch):
    monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "123456789012")
    monkeypatch.setenv("CDK_DEFAULT_REGION", "eu-north-1")

    env = resolve_environment()

    assert env.account == "123456789012"
    assert env.region == "eu-north-1"
    mock_boto3.client.assert_not_called()
    mock_boto3.session.Session.assert_not_called()


@patch("ecs_dockerhub_cache.deployment_env.boto3")
def test_falls_back_to_boto3(mock_boto3):
    mock_boto3.session.Session.return_value.region_name = "us-west-2"
    sts_client = MagicMock()
    sts_client.get_caller_identity.return_value = {"Account": "210987654321"}
    mock_boto3.client.return_value = sts_client

    env = resolve_environment()

    assert env.account == "210987654321"
    assert env.region == "us-west-2"
    mock_boto3.client.assert_called_once_with("sts", region_name="us-west-2")


@patch("ecs_dockerhub_cache.deployment_env.boto3")
def test_missing_region_raises(mock_boto3, monkeypatch):
    monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "123456789012")
    mock_boto3.session.Session.return_value.region_name = None

    with pytest.raises(ValueError, match="region"):
        resolve_environment()
