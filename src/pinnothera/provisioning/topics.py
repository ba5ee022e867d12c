"""Ensure SNS topics exist."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from pinnothera.errors import ContractViolation
from pinnothera.naming import physical_name
from pinnothera.provisioning.context import ProvisioningContext

logger = structlog.get_logger()


@dataclass(frozen=True)
class TopicRecord:
    logical: str
    name: str
    arn: str


class TopicProvisioner:
    """Creates SNS topics by name.

    ``CreateTopic`` is idempotent on the exact name: calling it for an
    existing topic returns that topic's ARN.
    """

    def __init__(self, context: ProvisioningContext) -> None:
        self._ctx = context

    async def ensure_topic(self, logical: str) -> TopicRecord:
        name = physical_name(logical, self._ctx.environment)
        if name != logical:
            logger.debug("topic.suffixed", topic=logical, name=name)

        resp = await self._ctx.call(
            self._ctx.sns.create_topic,
            operation="create_topic",
            resource=name,
            Name=name,
        )
        arn = resp.get("TopicArn")
        if not arn:
            msg = f"create_topic for '{name}' succeeded but returned no TopicArn"
            raise ContractViolation(
                msg, operation="create_topic", resource=name, field="TopicArn"
            )

        logger.info("topic.ensured", topic=logical, name=name, arn=arn)
        return TopicRecord(logical=logical, name=name, arn=arn)
