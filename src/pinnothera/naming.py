"""SNS topic and SQS queue naming conventions."""

from __future__ import annotations

from pinnothera.environment import EnvironmentTag, is_unknown, suffix


def physical_name(logical: str, tag: EnvironmentTag) -> str:
    """Build the name sent to AWS: ``<logical>-<suffix>``.

    Names are left untouched when the environment is unknown.
    """
    if is_unknown(tag):
        return logical
    return f"{logical}-{suffix(tag)}"


def queue_arn(partition: str, region: str, account_id: str, name: str) -> str:
    """Build the ARN of an SQS queue from its physical name."""
    return f"arn:{partition}:sqs:{region}:{account_id}:{name}"


def topic_arn_pattern(
    partition: str, region: str, account_id: str, tag: EnvironmentTag
) -> str:
    """Build an ARN pattern matching every topic named for *tag*.

    e.g. ``arn:aws:sns:us-east-1:123456789012:*-prod``
    """
    return f"arn:{partition}:sns:{region}:{account_id}:{physical_name('*', tag)}"
