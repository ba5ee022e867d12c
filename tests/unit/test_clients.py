"""Unit tests for boto3 session / context construction."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, NoCredentialsError
from moto import mock_aws

from pinnothera.aws.clients import (
    LOCALSTACK_ENDPOINT,
    build_context,
    build_session,
    lookup_account_id,
    resolve_endpoint,
)
from pinnothera.config.models import AwsSettings
from pinnothera.environment import EnvironmentTag
from pinnothera.errors import ServiceError


class TestResolveEndpoint:
    def test_explicit_endpoint_wins(self):
        settings = AwsSettings(endpoint_url="http://localhost:4566")
        assert (
            resolve_endpoint(settings, EnvironmentTag.LOCAL) == "http://localhost:4566"
        )

    def test_local_defaults_to_localstack(self):
        endpoint = resolve_endpoint(AwsSettings(), EnvironmentTag.LOCAL)
        assert endpoint == LOCALSTACK_ENDPOINT

    def test_other_environments_use_aws(self):
        assert resolve_endpoint(AwsSettings(), EnvironmentTag.PROD) is None


class TestBuildSession:
    def test_static_keys(self):
        settings = AwsSettings(
            region="eu-west-1", access_key_id="AKIDEXAMPLE", secret_access_key="s3cr3t"
        )
        session = build_session(settings)
        creds = session.get_credentials()
        assert creds.access_key == "AKIDEXAMPLE"
        assert creds.secret_key == "s3cr3t"
        assert session.region_name == "eu-west-1"

    def test_assumes_role(self, aws_credentials):
        with mock_aws():
            session = build_session(
                AwsSettings(
                    region="us-east-1",
                    role_arn="arn:aws:iam::123456789012:role/provisioner",
                )
            )
            creds = session.get_credentials()
            assert creds.token
            assert creds.access_key != "testing"

    def test_assume_role_failure_is_service_error(self):
        sts = MagicMock()
        sts.assume_role.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "no"}}, "AssumeRole"
        )
        with patch("boto3.Session.client", return_value=sts):
            with pytest.raises(ServiceError, match="Could not assume role"):
                build_session(
                    AwsSettings(
                        region="us-east-1",
                        role_arn="arn:aws:iam::123456789012:role/provisioner",
                    )
                )

    def test_assume_role_uses_given_endpoint(self):
        sts = MagicMock()
        sts.assume_role.return_value = {
            "Credentials": {
                "AccessKeyId": "ASIAEXAMPLE",
                "SecretAccessKey": "s3cr3t",
                "SessionToken": "token",
            }
        }
        with patch("boto3.Session.client", return_value=sts) as client:
            build_session(
                AwsSettings(
                    region="us-east-1",
                    endpoint_url="http://ignored:4566",
                    role_arn="arn:aws:iam::123456789012:role/provisioner",
                ),
                LOCALSTACK_ENDPOINT,
            )
        client.assert_called_once_with("sts", endpoint_url=LOCALSTACK_ENDPOINT)


class TestLookupAccountId:
    def test_failure_returns_none(self):
        session = MagicMock()
        session.client.return_value.get_caller_identity.side_effect = (
            NoCredentialsError()
        )
        assert lookup_account_id(session, None) is None


class TestBuildContext:
    def test_builds_clients_and_resolves_account(self, aws_credentials):
        with mock_aws():
            ctx = build_context(AwsSettings(region="us-east-1"), EnvironmentTag.PROD)
            assert ctx.region == "us-east-1"
            assert ctx.account_id == "123456789012"
            assert ctx.environment == EnvironmentTag.PROD
            assert ctx.sns.meta.service_model.service_name == "sns"
            assert ctx.sqs.meta.service_model.service_name == "sqs"

    def test_explicit_account_skips_lookup(self, aws_credentials):
        with patch("pinnothera.aws.clients.lookup_account_id") as lookup:
            ctx = build_context(
                AwsSettings(region="us-east-1", account_id="210987654321"),
                EnvironmentTag.DEV,
            )
        lookup.assert_not_called()
        assert ctx.account_id == "210987654321"

    def test_local_points_clients_at_localstack(self, aws_credentials):
        with patch("pinnothera.aws.clients.lookup_account_id", return_value=None):
            ctx = build_context(AwsSettings(region="us-east-1"), EnvironmentTag.LOCAL)
        assert ctx.sqs.meta.endpoint_url == LOCALSTACK_ENDPOINT

    def test_local_assumes_role_at_localstack(self):
        settings = AwsSettings(
            region="us-east-1",
            account_id="123456789012",
            role_arn="arn:aws:iam::123456789012:role/provisioner",
        )
        with patch("pinnothera.aws.clients.build_session") as build:
            build_context(settings, EnvironmentTag.LOCAL)
        build.assert_called_once_with(settings, LOCALSTACK_ENDPOINT)
