"""Unit tests for reading the topology ConfigMap."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import MaxRetryError

from pinnothera.config.cluster import (
    _current_namespace,
    config_from_cluster,
    config_from_configmap,
)
from pinnothera.config.models import ClusterSettings
from pinnothera.environment import EnvironmentTag
from pinnothera.errors import ConfigError


def _configmap(data=None, annotations=None):
    return SimpleNamespace(
        metadata=SimpleNamespace(annotations=annotations),
        data=data,
    )


class TestConfigFromConfigMap:
    def test_environment_from_annotation(self):
        cm = _configmap(
            data={"json": '{"billing": {"topics": ["invoice-paid"]}}'},
            annotations={"app-env": "production"},
        )
        env, config = config_from_configmap(cm, ClusterSettings())
        assert env == EnvironmentTag.PROD
        assert config.queues == ["billing"]

    def test_override_beats_annotation(self):
        cm = _configmap(
            data={"yaml": "billing:\n  topics: [invoice-paid]\n"},
            annotations={"app-env": "production"},
        )
        env, _ = config_from_configmap(cm, ClusterSettings(), env_override="qa")
        assert env == EnvironmentTag.QA

    def test_no_annotation_is_unknown(self):
        cm = _configmap(data={"yaml": "billing:\n  topics: []\n"})
        env, config = config_from_configmap(cm, ClusterSettings())
        assert env == EnvironmentTag.UNKNOWN
        assert config.queues == ["billing"]

    def test_json_preferred_over_yaml(self):
        cm = _configmap(
            data={
                "json": '{"from-json": {"topics": []}}',
                "yaml": "from-yaml:\n  topics: []\n",
            }
        )
        _, config = config_from_configmap(cm, ClusterSettings())
        assert config.queues == ["from-json"]

    def test_no_data_is_empty_noop(self):
        env, config = config_from_configmap(
            _configmap(annotations={"app-env": "prod"}), ClusterSettings()
        )
        assert env == EnvironmentTag.UNKNOWN
        assert len(config) == 0

    def test_unrecognised_keys_is_empty_noop(self):
        cm = _configmap(data={"yaml-template": "x"}, annotations={"app-env": "prod"})
        env, config = config_from_configmap(cm, ClusterSettings())
        assert env == EnvironmentTag.UNKNOWN
        assert len(config) == 0

    def test_invalid_payload_raises(self):
        cm = _configmap(data={"json": "{not json"})
        with pytest.raises(ConfigError, match="configmap/sns-sqs-config"):
            config_from_configmap(cm, ClusterSettings())


class TestConfigFromCluster:
    def _patched(self, api):
        return (
            patch("pinnothera.config.cluster._core_api", return_value=api),
            patch("pinnothera.config.cluster._current_namespace", return_value="ns"),
        )

    def test_reads_named_configmap(self):
        api = MagicMock()
        api.read_namespaced_config_map.return_value = _configmap(
            data={"json": '{"orders": {"topics": ["order-placed"]}}'},
            annotations={"app-env": "dev"},
        )
        core, ns = self._patched(api)
        with core, ns:
            env, config = config_from_cluster(ClusterSettings(configmap_name="topo"))

        api.read_namespaced_config_map.assert_called_once_with("topo", "ns")
        assert env == EnvironmentTag.DEV
        assert config.queues == ["orders"]

    def test_missing_configmap_is_empty_noop(self):
        api = MagicMock()
        api.read_namespaced_config_map.side_effect = ApiException(status=404)
        core, ns = self._patched(api)
        with core, ns:
            env, config = config_from_cluster(ClusterSettings())
        assert env == EnvironmentTag.UNKNOWN
        assert len(config) == 0

    def test_other_api_errors_raise(self):
        api = MagicMock()
        api.read_namespaced_config_map.side_effect = ApiException(
            status=403, reason="Forbidden"
        )
        core, ns = self._patched(api)
        with core, ns, pytest.raises(ConfigError, match="Forbidden"):
            config_from_cluster(ClusterSettings())

    def test_unreachable_api_server_raises_config_error(self):
        api = MagicMock()
        api.read_namespaced_config_map.side_effect = MaxRetryError(
            None, "/api/v1/namespaces/ns/configmaps/sns-sqs-config"
        )
        core, ns = self._patched(api)
        with core, ns, pytest.raises(ConfigError, match="Could not reach"):
            config_from_cluster(ClusterSettings())


TWO_CONTEXTS = [
    {"name": "a", "context": {"cluster": "c1", "namespace": "ns-a"}},
    {"name": "b", "context": {"cluster": "c2", "namespace": "ns-b"}},
    {"name": "bare", "context": {"cluster": "c3"}},
]


class TestCurrentNamespace:
    def _kubeconfig(self):
        return patch(
            "kubernetes.config.list_kube_config_contexts",
            return_value=(TWO_CONTEXTS, TWO_CONTEXTS[0]),
        )

    def test_explicit_namespace_used(self):
        assert _current_namespace(ClusterSettings(namespace="billing")) == "billing"

    def test_active_context_namespace(self):
        with self._kubeconfig():
            assert _current_namespace(ClusterSettings()) == "ns-a"

    def test_selected_context_namespace(self):
        with self._kubeconfig():
            assert _current_namespace(ClusterSettings(kube_context="b")) == "ns-b"

    def test_selected_context_without_namespace_is_default(self):
        with self._kubeconfig():
            assert _current_namespace(ClusterSettings(kube_context="bare")) == "default"
