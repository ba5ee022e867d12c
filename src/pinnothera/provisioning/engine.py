"""Apply a whole topology concurrently.

Every queue group runs as its own task. Within a group the queue is ensured
before any of its subscriptions start; everything else (groups, and the
topics of one group) runs with no ordering between them. Each leaf
operation is captured as a ``LeafOutcome``, so one failure never cancels or
corrupts its siblings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from pinnothera.config.models import UNSUBSCRIBED, ProvisioningConfig, QueueSpec
from pinnothera.errors import ConfigError, ProvisioningError
from pinnothera.provisioning.context import ProvisioningContext
from pinnothera.provisioning.queues import QueueProvisioner
from pinnothera.provisioning.subscriptions import SubscriptionProvisioner
from pinnothera.provisioning.topics import TopicProvisioner

logger = structlog.get_logger()

# Largest value a POSIX process can report as its exit status.
MAX_EXIT_CODE = 255


class LeafKind(StrEnum):
    TOPIC = "topic"
    QUEUE = "queue"
    SUBSCRIPTION = "subscription"


class LeafStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class LeafOutcome:
    """Result of one unit of provisioning work."""

    kind: LeafKind
    queue: str | None
    resource: str
    status: LeafStatus
    record: Any = None
    error: BaseException | None = None

    @property
    def failed(self) -> bool:
        return self.status == LeafStatus.FAILED


@dataclass
class AggregateOutcome:
    """All leaf outcomes of one ``apply`` plus the externally reported result."""

    outcomes: list[LeafOutcome] = field(default_factory=list)
    force_success: bool = False

    @property
    def failures(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == LeafStatus.SKIPPED)

    @property
    def succeeded(self) -> bool:
        """Reported success: no failures, or success was forced."""
        return self.force_success or self.failures == 0

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return 0
        return min(self.failures, MAX_EXIT_CODE)


class ReconciliationEngine:
    """Drives the topic, queue and subscription provisioners over a config."""

    def __init__(
        self,
        context: ProvisioningContext,
        *,
        force_success: bool = False,
    ) -> None:
        self._ctx = context
        self._force_success = force_success
        self._topics = TopicProvisioner(context)
        self._queues = QueueProvisioner(context)
        self._subscriptions = SubscriptionProvisioner(context, self._topics)

    async def apply(self, config: ProvisioningConfig) -> AggregateOutcome:
        if not isinstance(config, ProvisioningConfig):
            msg = (
                "apply() expects a ProvisioningConfig, "
                f"got {type(config).__name__}"
            )
            raise ConfigError(msg, operation="apply")

        logger.info(
            "reconcile.started",
            environment=str(self._ctx.environment),
            groups=len(config),
        )
        groups = await asyncio.gather(
            *(self._apply_group(queue, spec) for queue, spec in config.items())
        )
        result = AggregateOutcome(
            outcomes=[o for group in groups for o in group],
            force_success=self._force_success,
        )

        log = logger.info if result.failures == 0 else logger.error
        log(
            "reconcile.completed",
            leaves=len(result.outcomes),
            failures=result.failures,
            skipped=result.skipped,
            force_success=self._force_success,
            exit_code=result.exit_code,
        )
        return result

    async def _apply_group(self, queue: str, spec: QueueSpec) -> list[LeafOutcome]:
        if queue == UNSUBSCRIBED:
            return list(
                await asyncio.gather(
                    *(
                        self._leaf(
                            LeafKind.TOPIC,
                            None,
                            topic,
                            self._topics.ensure_topic(topic),
                        )
                        for topic in spec.topics
                    )
                )
            )

        queue_outcome = await self._leaf(
            LeafKind.QUEUE, queue, queue, self._queues.ensure_queue(queue)
        )
        if queue_outcome.failed:
            skipped = [
                LeafOutcome(
                    kind=LeafKind.SUBSCRIPTION,
                    queue=queue,
                    resource=topic,
                    status=LeafStatus.SKIPPED,
                )
                for topic in spec.topics
            ]
            if skipped:
                logger.warning(
                    "reconcile.subscriptions_skipped",
                    queue=queue,
                    topics=list(spec.topics),
                )
            return [queue_outcome, *skipped]

        queue_arn = queue_outcome.record.arn
        subscriptions = await asyncio.gather(
            *(
                self._leaf(
                    LeafKind.SUBSCRIPTION,
                    queue,
                    topic,
                    self._subscriptions.ensure_subscription(queue_arn, topic),
                )
                for topic in spec.topics
            )
        )
        return [queue_outcome, *subscriptions]

    async def _leaf(
        self,
        kind: LeafKind,
        queue: str | None,
        resource: str,
        work: Awaitable[Any],
    ) -> LeafOutcome:
        """Await one leaf operation and capture its result as data."""
        try:
            record = await work
        except ProvisioningError as exc:
            logger.error(
                "reconcile.leaf_failed",
                kind=str(kind),
                queue=queue,
                **{**exc.log_context(), "resource": exc.resource or resource},
            )
            return LeafOutcome(kind, queue, resource, LeafStatus.FAILED, error=exc)
        except Exception as exc:
            logger.exception(
                "reconcile.leaf_crashed",
                kind=str(kind),
                queue=queue,
                resource=resource,
            )
            return LeafOutcome(kind, queue, resource, LeafStatus.FAILED, error=exc)
        return LeafOutcome(kind, queue, resource, LeafStatus.SUCCEEDED, record=record)
