"""Shared state handed to every provisioner for one reconciliation pass."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from pinnothera.environment import EnvironmentTag
from pinnothera.errors import ServiceError


@dataclass(frozen=True)
class ProvisioningContext:
    """Clients and account facts shared read-only by all concurrent leaves.

    ``sns`` and ``sqs`` are boto3 clients (thread-safe); ``region`` and
    ``account_id`` may be unknown, in which case queue policies cannot be built.
    """

    sns: Any
    sqs: Any
    environment: EnvironmentTag
    region: str | None = None
    account_id: str | None = None
    partition: str = "aws"
    executor: Executor | None = None

    async def call(
        self,
        fn: Callable[..., dict[str, Any]],
        *,
        operation: str,
        resource: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Run a blocking boto3 call off the event loop.

        botocore failures are re-raised as ``ServiceError`` carrying the AWS
        error code (when there is one).
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, lambda: fn(**kwargs))
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            msg = f"{operation} failed for '{resource}': {exc}"
            raise ServiceError(
                msg, operation=operation, resource=resource, code=code, cause=exc
            ) from exc
        except BotoCoreError as exc:
            msg = f"{operation} failed for '{resource}': {exc}"
            raise ServiceError(
                msg, operation=operation, resource=resource, cause=exc
            ) from exc
