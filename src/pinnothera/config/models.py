"""Pydantic configuration models for SNS/SQS topologies."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    SecretStr,
    model_validator,
)

UNSUBSCRIBED = "unsubscribed"

LogicalName = Annotated[str, Field(pattern=r"^[A-Za-z0-9_-]+$")]


class QueueSpec(BaseModel):
    """Topics that must be subscribed to one queue."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    topics: tuple[LogicalName, ...]


class ProvisioningConfig(RootModel[dict[LogicalName, QueueSpec]]):
    """Mapping of queue logical name to the topics it subscribes to.

    The reserved key ``"unsubscribed"`` lists topics that are created without
    any queue or subscription.
    """

    model_config = ConfigDict(frozen=True)

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, queue: str) -> QueueSpec:
        return self.root[queue]

    def items(self) -> list[tuple[str, QueueSpec]]:
        return list(self.root.items())

    @property
    def queues(self) -> list[str]:
        """Queue logical names, excluding the ``unsubscribed`` sentinel."""
        return [q for q in self.root if q != UNSUBSCRIBED]


class AwsSettings(BaseModel):
    """How to reach SNS/SQS and which account/region to build policies for."""

    region: str | None = None
    endpoint_url: str | None = None
    account_id: str | None = Field(default=None, pattern=r"^\d{12}$")
    partition: str = "aws"
    role_arn: str | None = None
    access_key_id: str | None = None
    secret_access_key: SecretStr | None = None

    @model_validator(mode="after")
    def check_static_credentials(self) -> Self:
        """Static credentials must be given as a pair."""
        if (self.access_key_id is None) != (self.secret_access_key is None):
            msg = "access_key_id and secret_access_key must be supplied together"
            raise ValueError(msg)
        return self


class ClusterSettings(BaseModel):
    """Where to find the topology ConfigMap in a Kubernetes cluster."""

    namespace: str | None = None
    configmap_name: str = "sns-sqs-config"
    kube_context: str | None = None
    env_annotation: str = "app-env"
