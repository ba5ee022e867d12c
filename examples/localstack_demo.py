#!/usr/bin/env python3
"""Runnable demo: reconcile a small topology against LocalStack.

Prerequisites:
    docker run --rm -p 4566:4566 localstack/localstack
    python examples/localstack_demo.py
"""

from __future__ import annotations

import asyncio
import sys
from concurrent.futures import ThreadPoolExecutor

from rich.console import Console

from pinnothera.aws.clients import build_context
from pinnothera.config.loader import config_from_yaml
from pinnothera.config.models import AwsSettings
from pinnothera.environment import resolve
from pinnothera.errors import ServiceError
from pinnothera.observability.logs import configure_logging
from pinnothera.provisioning.engine import ReconciliationEngine

console = Console()

TOPOLOGY = """
billing:
  topics: [invoice-created, invoice-paid]
orders:
  topics: [order-placed]
unsubscribed:
  topics: [audit]
"""


def main() -> None:
    configure_logging("console", "warning")

    # 1. Parse the topology and pick the environment
    topology = config_from_yaml(TOPOLOGY, source="demo")
    env = resolve("local")
    console.print(f"[bold]Topology parsed[/bold] groups={len(topology)} env={env}")

    # 2. Build clients against LocalStack
    settings = AwsSettings(
        region="us-east-1",
        endpoint_url="http://localhost:4566",
        access_key_id="test",
        secret_access_key="test",
    )

    with ThreadPoolExecutor(max_workers=8) as pool:
        try:
            context = build_context(settings, env, pool)
        except ServiceError as exc:
            console.print("[red]LocalStack not reachable:[/red]", exc)
            sys.exit(1)

        # 3. Apply twice; the second pass adopts everything the first created
        engine = ReconciliationEngine(context)
        for attempt in (1, 2):
            outcome = asyncio.run(engine.apply(topology))
            console.print(
                f"[cyan]pass {attempt}[/cyan]  leaves={len(outcome.outcomes)} "
                f"failures={outcome.failures} exit_code={outcome.exit_code}"
            )

    for o in outcome.outcomes:
        arn = o.record.arn if o.record is not None else "-"
        console.print(f"  {o.kind:<12} {o.resource:<16} {arn}")


if __name__ == "__main__":
    main()
