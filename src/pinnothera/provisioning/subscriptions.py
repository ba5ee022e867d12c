"""Ensure SNS topics deliver into SQS queues."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from pinnothera.errors import ContractViolation
from pinnothera.provisioning.context import ProvisioningContext
from pinnothera.provisioning.topics import TopicProvisioner

logger = structlog.get_logger()

SQS_PROTOCOL = "sqs"


@dataclass(frozen=True)
class SubscriptionRecord:
    topic_arn: str
    queue_arn: str
    arn: str


class SubscriptionProvisioner:
    """Subscribes queues to topics, creating the topic first if needed.

    ``Subscribe`` with an identical (topic, protocol, endpoint) returns the
    existing subscription, and SQS endpoints need no confirmation, so the
    ARN comes back straight away.
    """

    def __init__(
        self,
        context: ProvisioningContext,
        topics: TopicProvisioner | None = None,
    ) -> None:
        self._ctx = context
        self._topics = topics or TopicProvisioner(context)

    async def ensure_subscription(
        self, queue_arn: str, logical_topic: str
    ) -> SubscriptionRecord:
        topic = await self._topics.ensure_topic(logical_topic)

        logger.debug(
            "subscription.ensuring",
            topic=topic.name,
            topic_arn=topic.arn,
            queue_arn=queue_arn,
        )
        resp = await self._ctx.call(
            self._ctx.sns.subscribe,
            operation="subscribe",
            resource=topic.name,
            TopicArn=topic.arn,
            Protocol=SQS_PROTOCOL,
            Endpoint=queue_arn,
            ReturnSubscriptionArn=True,
        )
        arn = resp.get("SubscriptionArn")
        if not arn:
            msg = (
                f"subscribe of topic '{topic.name}' to queue '{queue_arn}' "
                "succeeded but returned no SubscriptionArn"
            )
            raise ContractViolation(
                msg, operation="subscribe", resource=topic.name, field="SubscriptionArn"
            )

        logger.info(
            "subscription.ensured",
            topic=topic.name,
            queue_arn=queue_arn,
            arn=arn,
        )
        return SubscriptionRecord(topic_arn=topic.arn, queue_arn=queue_arn, arn=arn)
