"""Typer CLI for pinnothera."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from pinnothera.aws.clients import build_context
from pinnothera.config.cluster import config_from_cluster
from pinnothera.config.loader import (
    config_from_json,
    config_from_yaml,
    load_config_file,
)
from pinnothera.config.models import (
    UNSUBSCRIBED,
    AwsSettings,
    ClusterSettings,
    ProvisioningConfig,
)
from pinnothera.environment import EnvironmentTag, resolve
from pinnothera.errors import ConfigError, ServiceError
from pinnothera.naming import physical_name
from pinnothera.observability.logs import LogFormat, configure_logging
from pinnothera.provisioning.engine import (
    AggregateOutcome,
    LeafStatus,
    ReconciliationEngine,
)

logger = structlog.get_logger()
console = Console()
app = typer.Typer(
    name="pinnothera", help="A dead simple Kubernetes-native SNS/SQS configurator"
)

_STATUS_STYLE = {
    LeafStatus.SUCCEEDED: "green",
    LeafStatus.FAILED: "red",
    LeafStatus.SKIPPED: "yellow",
}


def _load_topology(
    *,
    env_name: str | None,
    json_data: str | None,
    yaml_data: str | None,
    json_file: Path | None,
    yaml_file: Path | None,
    cluster: ClusterSettings,
) -> tuple[EnvironmentTag, ProvisioningConfig]:
    """Resolve the topology from the first source given, else the cluster."""
    if json_file is not None:
        return resolve(env_name), load_config_file(json_file, "json")
    if yaml_file is not None:
        return resolve(env_name), load_config_file(yaml_file, "yaml")
    if json_data is not None:
        return resolve(env_name), config_from_json(json_data, source="--json-data")
    if yaml_data is not None:
        return resolve(env_name), config_from_yaml(yaml_data, source="--yaml-data")
    return config_from_cluster(cluster, env_name)


def _config_error(exc: Exception) -> typer.Exit:
    """Report an unusable configuration and return the exit to raise."""
    console.print(f"[red]Configuration error:[/red] {exc}")
    return typer.Exit(1)


def _print_outcome(outcome: AggregateOutcome) -> None:
    table = Table(title="Reconciliation")
    table.add_column("Kind", style="cyan")
    table.add_column("Queue")
    table.add_column("Resource")
    table.add_column("Status")
    table.add_column("Detail")

    for o in outcome.outcomes:
        style = _STATUS_STYLE[o.status]
        if o.error is not None:
            detail = str(o.error)
        elif o.record is not None:
            detail = o.record.arn
        else:
            detail = ""
        table.add_row(
            str(o.kind),
            o.queue or "-",
            o.resource,
            f"[{style}]{o.status}[/{style}]",
            detail,
        )

    console.print(table)
    if outcome.failures and outcome.force_success:
        console.print(
            f"[yellow]{outcome.failures} failure(s) ignored (--force-success)[/yellow]"
        )
    elif outcome.failures:
        console.print(f"[red]{outcome.failures} failure(s)[/red]")
    else:
        console.print("[green]Topology applied[/green]")


@app.command()
def apply(
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Namespace holding the topology ConfigMap"
    ),
    configmap_name: str = typer.Option(
        "sns-sqs-config", "--configmap", "-m", help="Name of the topology ConfigMap"
    ),
    kube_context: str | None = typer.Option(
        None, "--kube-context", "-c", help="kubectl context of the target cluster"
    ),
    env_name: str | None = typer.Option(
        None, "--env-name", "-e", help="Environment name (e.g. 'dev', 'production')"
    ),
    aws_region: str | None = typer.Option(None, "--aws-region", help="AWS region"),
    aws_endpoint: str | None = typer.Option(
        None, "--aws-endpoint", help="SNS/SQS endpoint URL override"
    ),
    aws_role_arn: str | None = typer.Option(
        None, "--aws-role-arn", help="IAM role to assume"
    ),
    aws_access_key_id: str | None = typer.Option(
        None, "--aws-access-key-id", help="AWS access key id"
    ),
    aws_secret_access_key: str | None = typer.Option(
        None, "--aws-secret-access-key", help="AWS secret access key"
    ),
    aws_account_id: str | None = typer.Option(
        None, "--aws-account-id", help="Account id used in queue policies"
    ),
    json_data: str | None = typer.Option(
        None, "--json-data", help="Topology as a JSON string"
    ),
    yaml_data: str | None = typer.Option(
        None, "--yaml-data", help="Topology as a YAML string"
    ),
    json_file: Path | None = typer.Option(
        None, "--json-file", help="Path to a JSON topology file"
    ),
    yaml_file: Path | None = typer.Option(
        None, "--yaml-file", help="Path to a YAML topology file"
    ),
    force_success: bool = typer.Option(
        False, "--force-success", help="Exit 0 even when some resources failed"
    ),
    max_workers: int = typer.Option(
        16, "--max-workers", min=1, help="Concurrent AWS calls"
    ),
    log_format: str = typer.Option("console", "--log-format", help="console | json"),
    log_level: str = typer.Option("info", "--log-level", help="Log level"),
) -> None:
    """Create or adopt every queue, topic and subscription in the topology."""
    fmt: LogFormat = "json" if log_format == "json" else "console"
    configure_logging(fmt, log_level)

    try:
        aws = AwsSettings(
            region=aws_region,
            endpoint_url=aws_endpoint,
            account_id=aws_account_id,
            role_arn=aws_role_arn,
            access_key_id=aws_access_key_id,
            secret_access_key=aws_secret_access_key,
        )
        env, topology = _load_topology(
            env_name=env_name,
            json_data=json_data,
            yaml_data=yaml_data,
            json_file=json_file,
            yaml_file=yaml_file,
            cluster=ClusterSettings(
                namespace=namespace,
                configmap_name=configmap_name,
                kube_context=kube_context,
            ),
        )
    except (ConfigError, ValueError) as exc:
        raise _config_error(exc) from exc

    logger.info(
        "pinnothera.topology_loaded", environment=str(env), groups=len(topology)
    )

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        try:
            context = build_context(aws, env, pool)
        except ServiceError as exc:
            console.print(f"[red]AWS error:[/red] {exc}")
            raise typer.Exit(1) from exc

        engine = ReconciliationEngine(context, force_success=force_success)
        outcome = asyncio.run(engine.apply(topology))

    _print_outcome(outcome)
    raise typer.Exit(outcome.exit_code)


@app.command()
def plan(
    namespace: str | None = typer.Option(None, "--namespace", "-n"),
    configmap_name: str = typer.Option("sns-sqs-config", "--configmap", "-m"),
    kube_context: str | None = typer.Option(None, "--kube-context", "-c"),
    env_name: str | None = typer.Option(None, "--env-name", "-e"),
    json_data: str | None = typer.Option(None, "--json-data"),
    yaml_data: str | None = typer.Option(None, "--yaml-data"),
    json_file: Path | None = typer.Option(None, "--json-file"),
    yaml_file: Path | None = typer.Option(None, "--yaml-file"),
) -> None:
    """Show the physical names a topology resolves to, without calling AWS."""
    try:
        env, topology = _load_topology(
            env_name=env_name,
            json_data=json_data,
            yaml_data=yaml_data,
            json_file=json_file,
            yaml_file=yaml_file,
            cluster=ClusterSettings(
                namespace=namespace,
                configmap_name=configmap_name,
                kube_context=kube_context,
            ),
        )
    except (ConfigError, ValueError) as exc:
        raise _config_error(exc) from exc

    table = Table(title=f"Topology (environment: {env})")
    table.add_column("Queue", style="cyan")
    table.add_column("Topics")

    for queue, spec in topology.items():
        label = (
            "[dim](unsubscribed)[/dim]"
            if queue == UNSUBSCRIBED
            else physical_name(queue, env)
        )
        topics = ", ".join(physical_name(t, env) for t in spec.topics)
        table.add_row(label, topics or "[dim](none)[/dim]")

    console.print(table)
