"""Fetch the topology ConfigMap from a Kubernetes cluster.

The ConfigMap (``sns-sqs-config`` by default) holds the topology under a
``json`` or ``yaml`` data key, and optionally names its deployment
environment in the ``app-env`` annotation::

    metadata:
      name: sns-sqs-config
      annotations:
        app-env: prod
    data:
      yaml: |
        billing:
          topics: [invoice-created, invoice-paid]

A missing ConfigMap, or one without recognised data, yields an empty config
for an unknown environment so the run becomes a no-op.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from pinnothera.config.loader import config_from_json, config_from_yaml
from pinnothera.config.models import ClusterSettings, ProvisioningConfig
from pinnothera.environment import EnvironmentTag, resolve
from pinnothera.errors import ConfigError

logger = structlog.get_logger()

_SERVICE_ACCOUNT_NAMESPACE = Path(
    "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
)


def _core_api(settings: ClusterSettings) -> Any:
    from kubernetes import client, config
    from kubernetes.config.config_exception import ConfigException

    try:
        if settings.kube_context is not None:
            config.load_kube_config(context=settings.kube_context)
        else:
            try:
                config.load_incluster_config()
            except ConfigException:
                config.load_kube_config()
    except ConfigException as exc:
        msg = f"No usable Kubernetes configuration: {exc}"
        raise ConfigError(
            msg, operation="load_kube_config", resource=settings.kube_context
        ) from exc
    return client.CoreV1Api()


def _current_namespace(settings: ClusterSettings) -> str:
    if settings.namespace is not None:
        return settings.namespace

    from kubernetes import config
    from kubernetes.config.config_exception import ConfigException

    try:
        contexts, active = config.list_kube_config_contexts()
    except ConfigException:
        # In-cluster: the service account's namespace is mounted on disk
        if _SERVICE_ACCOUNT_NAMESPACE.exists():
            return _SERVICE_ACCOUNT_NAMESPACE.read_text().strip()
        return "default"

    if settings.kube_context is not None:
        active = next(
            (c for c in contexts if c.get("name") == settings.kube_context), {}
        )
    return (active.get("context") or {}).get("namespace") or "default"


def _empty() -> tuple[EnvironmentTag, ProvisioningConfig]:
    return EnvironmentTag.UNKNOWN, ProvisioningConfig({})


def config_from_configmap(
    configmap: Any,
    settings: ClusterSettings,
    env_override: str | None = None,
) -> tuple[EnvironmentTag, ProvisioningConfig]:
    """Extract the environment and topology from a V1ConfigMap object."""
    annotations: dict[str, str] = configmap.metadata.annotations or {}
    raw_env = env_override or annotations.get(settings.env_annotation)
    env = resolve(raw_env)

    data: dict[str, str] | None = configmap.data
    source = f"configmap/{settings.configmap_name}"
    if not data:
        logger.warning("cluster.configmap_no_data", configmap=settings.configmap_name)
        return _empty()

    if "json" in data:
        return env, config_from_json(data["json"], source=f"{source}[json]")
    if "yaml" in data:
        return env, config_from_yaml(data["yaml"], source=f"{source}[yaml]")

    logger.warning(
        "cluster.configmap_no_recognised_keys",
        configmap=settings.configmap_name,
        keys=sorted(data),
    )
    return _empty()


def config_from_cluster(
    settings: ClusterSettings,
    env_override: str | None = None,
) -> tuple[EnvironmentTag, ProvisioningConfig]:
    """Read the topology ConfigMap from the configured cluster namespace."""
    from kubernetes.client.exceptions import ApiException
    from urllib3.exceptions import HTTPError

    api = _core_api(settings)
    namespace = _current_namespace(settings)

    try:
        configmap = api.read_namespaced_config_map(settings.configmap_name, namespace)
    except HTTPError as exc:
        msg = (
            f"Could not reach the Kubernetes API for ConfigMap "
            f"{namespace}/{settings.configmap_name}: {exc}"
        )
        raise ConfigError(
            msg, operation="read_configmap", resource=settings.configmap_name
        ) from exc
    except ApiException as exc:
        if exc.status == 404:
            logger.warning(
                "cluster.configmap_missing",
                configmap=settings.configmap_name,
                namespace=namespace,
            )
            return _empty()
        msg = (
            f"Failed to read ConfigMap {namespace}/{settings.configmap_name}: "
            f"{exc.reason}"
        )
        raise ConfigError(
            msg, operation="read_configmap", resource=settings.configmap_name
        ) from exc

    logger.info(
        "cluster.configmap_loaded",
        configmap=settings.configmap_name,
        namespace=namespace,
    )
    return config_from_configmap(configmap, settings, env_override)
