"""Ensure SQS queues exist with an SNS delivery policy."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import structlog

from pinnothera.environment import EnvironmentTag, is_local, is_unknown
from pinnothera.errors import ContractViolation, PolicyUnresolvable, ServiceError
from pinnothera.naming import physical_name, queue_arn, topic_arn_pattern
from pinnothera.provisioning.context import ProvisioningContext

logger = structlog.get_logger()

# Error codes SQS uses for "a queue with this name already exists" (the
# query and JSON protocols disagree on the spelling).
QUEUE_EXISTS_CODES = frozenset(
    {
        "QueueAlreadyExists",
        "QueueNameExists",
        "AWS.SimpleQueueService.QueueNameExists",
    }
)


@dataclass(frozen=True)
class QueueRecord:
    logical: str
    name: str
    url: str
    arn: str


def build_queue_policy(
    name: str,
    region: str,
    account_id: str,
    environment: EnvironmentTag,
    partition: str = "aws",
) -> dict[str, Any]:
    """Build the access policy for queue *name* (a physical name).

    SNS may deliver into the queue from any topic in the same account whose
    name carries this environment's suffix; the account root keeps full
    access.
    """
    arn = queue_arn(partition, region, account_id, name)
    return {
        "Version": "2012-10-17",
        "Id": f"{arn}/SQSDefaultPolicy",
        "Statement": [
            {
                "Sid": "AllowSNSDelivery",
                "Effect": "Allow",
                "Principal": {"Service": "sns.amazonaws.com"},
                "Action": "sqs:SendMessage",
                "Resource": arn,
                "Condition": {
                    "ArnLike": {
                        "aws:SourceArn": topic_arn_pattern(
                            partition, region, account_id, environment
                        )
                    }
                },
            },
            {
                "Sid": "AllowAccountRoot",
                "Effect": "Allow",
                "Principal": {"AWS": f"arn:{partition}:iam::{account_id}:root"},
                "Action": "sqs:*",
                "Resource": arn,
            },
        ],
    }


class QueueProvisioner:
    """Creates SQS queues, adopting any that already exist under the same name."""

    def __init__(self, context: ProvisioningContext) -> None:
        self._ctx = context

    def _attributes(
        self, name: str, region: str | None, account_id: str | None
    ) -> dict[str, str]:
        env = self._ctx.environment
        if region and account_id:
            policy = build_queue_policy(
                name, region, account_id, env, self._ctx.partition
            )
            return {"Policy": json.dumps(policy)}

        if is_local(env) or is_unknown(env):
            logger.info("queue.policy_skipped", queue=name, environment=str(env))
            return {}

        missing = [
            label
            for label, value in (("region", region), ("account_id", account_id))
            if not value
        ]
        msg = (
            f"Queue '{name}' needs an SNS delivery policy in environment "
            f"'{env}' but {' and '.join(missing)} is unknown"
        )
        raise PolicyUnresolvable(msg, operation="build_queue_policy", resource=name)

    async def _create_or_adopt(self, name: str, attributes: dict[str, str]) -> str:
        request: dict[str, Any] = {"QueueName": name}
        if attributes:
            request["Attributes"] = attributes

        try:
            resp = await self._ctx.call(
                self._ctx.sqs.create_queue,
                operation="create_queue",
                resource=name,
                **request,
            )
        except ServiceError as exc:
            if exc.code not in QUEUE_EXISTS_CODES:
                raise
            logger.info("queue.exists_adopting", queue=name, error_code=exc.code)
            resp = await self._ctx.call(
                self._ctx.sqs.get_queue_url,
                operation="get_queue_url",
                resource=name,
                QueueName=name,
            )
            url = resp.get("QueueUrl")
            if not url:
                msg = f"get_queue_url for '{name}' succeeded but returned no QueueUrl"
                raise ContractViolation(
                    msg, operation="get_queue_url", resource=name, field="QueueUrl"
                ) from exc
            logger.info("queue.adopted", queue=name, url=url)
            return url

        url = resp.get("QueueUrl")
        if not url:
            msg = f"create_queue for '{name}' succeeded but returned no QueueUrl"
            raise ContractViolation(
                msg, operation="create_queue", resource=name, field="QueueUrl"
            )
        return url

    async def ensure_queue(
        self,
        logical: str,
        region: str | None = None,
        account_id: str | None = None,
    ) -> QueueRecord:
        """Ensure the queue for *logical* exists and return its URL and ARN.

        *region* and *account_id* default to the context's values.
        """
        region = region or self._ctx.region
        account_id = account_id or self._ctx.account_id
        name = physical_name(logical, self._ctx.environment)

        attributes = self._attributes(name, region, account_id)
        url = await self._create_or_adopt(name, attributes)

        resp = await self._ctx.call(
            self._ctx.sqs.get_queue_attributes,
            operation="get_queue_attributes",
            resource=name,
            QueueUrl=url,
            AttributeNames=["QueueArn"],
        )
        arn = resp.get("Attributes", {}).get("QueueArn")
        if not arn:
            msg = f"Queue '{name}' has URL {url} but no QueueArn attribute"
            raise ContractViolation(
                msg, operation="get_queue_attributes", resource=name, field="QueueArn"
            )

        logger.info("queue.ensured", queue=logical, name=name, url=url, arn=arn)
        return QueueRecord(logical=logical, name=name, url=url, arn=arn)
