"""boto3 session and client construction for the SNS/SQS reconciler."""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from pinnothera.config.models import AwsSettings
from pinnothera.environment import EnvironmentTag, is_local
from pinnothera.errors import ServiceError
from pinnothera.provisioning.context import ProvisioningContext

logger = structlog.get_logger()

LOCALSTACK_ENDPOINT = "http://aws.localstack"
ROLE_SESSION_NAME = "pinnothera"


def build_session(
    settings: AwsSettings, endpoint_url: str | None = None
) -> boto3.Session:
    """Create a boto3 session from explicit keys or an assumed role.

    With neither, boto3 falls back to its default credential chain. The role
    is assumed through STS at *endpoint_url*, else at the configured endpoint.
    """
    kwargs: dict[str, Any] = {}
    if settings.region is not None:
        kwargs["region_name"] = settings.region
    if settings.access_key_id is not None and settings.secret_access_key is not None:
        kwargs["aws_access_key_id"] = settings.access_key_id
        kwargs["aws_secret_access_key"] = (
            settings.secret_access_key.get_secret_value()
        )
    session = boto3.Session(**kwargs)

    if settings.role_arn is None:
        return session

    sts = session.client("sts", endpoint_url=endpoint_url or settings.endpoint_url)
    try:
        resp = sts.assume_role(
            RoleArn=settings.role_arn, RoleSessionName=ROLE_SESSION_NAME
        )
    except (ClientError, BotoCoreError) as exc:
        msg = f"Could not assume role {settings.role_arn}: {exc}"
        raise ServiceError(
            msg, operation="assume_role", resource=settings.role_arn, cause=exc
        ) from exc

    creds = resp["Credentials"]
    logger.info("aws.role_assumed", role_arn=settings.role_arn)
    return boto3.Session(
        aws_access_key_id=creds["AccessKeyId"],
        aws_secret_access_key=creds["SecretAccessKey"],
        aws_session_token=creds["SessionToken"],
        region_name=session.region_name,
    )


def resolve_endpoint(settings: AwsSettings, environment: EnvironmentTag) -> str | None:
    """An explicit endpoint wins; local clusters default to LocalStack."""
    if settings.endpoint_url is not None:
        return settings.endpoint_url
    if is_local(environment):
        return LOCALSTACK_ENDPOINT
    return None


def lookup_account_id(session: boto3.Session, endpoint_url: str | None) -> str | None:
    """Ask STS which account the session's credentials belong to."""
    try:
        sts = session.client("sts", endpoint_url=endpoint_url)
        account_id = sts.get_caller_identity().get("Account")
    except (ClientError, BotoCoreError) as exc:
        logger.warning("aws.account_lookup_failed", error=str(exc))
        return None
    return account_id


def build_context(
    settings: AwsSettings,
    environment: EnvironmentTag,
    executor: Executor | None = None,
) -> ProvisioningContext:
    """Build the SNS/SQS clients and everything the provisioners share."""
    endpoint_url = resolve_endpoint(settings, environment)
    session = build_session(settings, endpoint_url)

    try:
        sns = session.client("sns", endpoint_url=endpoint_url)
        sqs = session.client("sqs", endpoint_url=endpoint_url)
    except BotoCoreError as exc:
        msg = f"Could not create SNS/SQS clients: {exc}"
        raise ServiceError(msg, operation="create_clients", cause=exc) from exc

    region = settings.region or session.region_name
    account_id = settings.account_id or lookup_account_id(session, endpoint_url)

    logger.info(
        "aws.clients_ready",
        environment=str(environment),
        region=region,
        account_id=account_id,
        endpoint_url=endpoint_url,
    )
    return ProvisioningContext(
        sns=sns,
        sqs=sqs,
        environment=environment,
        region=region,
        account_id=account_id,
        partition=settings.partition,
        executor=executor,
    )
