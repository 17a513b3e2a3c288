"""
Unit tests for the controller configuration.

Tests cover:
- Metrics naming and pod naming
- Loading from the ConfigMap: error cases and owner resolution
"""

import uuid

import pytest
from kubernetes import client

from batch_job_controller.modules.config import (
    CONFIG_FILE_NAME,
    POD_TEMPLATE_NAME,
    Config,
    ConfigError,
    Metrics,
    load_config,
)
from batch_job_controller.modules.kube import CONFIG_MAP, POD, ObjectKind

from conftest import NAMESPACE, make_pod, make_unstructured

CM_NAME = "node-report-config"
HOSTNAME = "controller-abc"

CONFIG_YAML = """
name: node-report
jobServiceAccount: job-sa
jobNodeSelector:
  role: worker
cronExpression: "0 * * * *"
reportDirectory: /var/www
reportHistory: 5
podPoolSize: 10
runOnStartup: true
metrics:
  prefix: node_report
  gauges:
    checks:
      help: number of checks
      labels: [node, check]
custom:
  threshold: 3
callbackServiceName: node-report
callbackServicePort: 8090
"""


def config_map(data):
    return client.V1ConfigMap(metadata=client.V1ObjectMeta(name=CM_NAME, namespace=NAMESPACE), data=data)


class TestNaming:

    def test_metric_name(self):
        assert Metrics(prefix="my_metric").name_for("name") == "my_metric_name"

    def test_pod_name(self):
        name, node_name, execution_id = (str(uuid.uuid4()) for _ in range(3))
        cfg = Config(name=name)

        assert cfg.pod_name(f"{node_name}.{uuid.uuid4()}", execution_id) == f"{name}-job-{node_name}-{execution_id}"

    def test_pod_name_is_pure(self):
        cfg = Config(name="controller")

        first = cfg.pod_name("worker-1.cluster.local", "abc")
        cfg.pod_name("other.node", "xyz")

        assert first == cfg.pod_name("worker-1.cluster.local", "abc") == "controller-job-worker-1-abc"

    def test_pod_name_without_domain(self):
        assert Config(name="c").pod_name("worker-1", "abc") == "c-job-worker-1-abc"


class TestLoadConfig:

    def test_configmap_lookup_error(self, reader):
        with pytest.raises(ConfigError, match="error getting configmap"):
            load_config(NAMESPACE, reader, CM_NAME)

    def test_missing_config_file(self, reader):
        reader.register(CONFIG_MAP, NAMESPACE, CM_NAME, config_map({}))

        with pytest.raises(ConfigError, match="could not find config file"):
            load_config(NAMESPACE, reader, CM_NAME)

    @pytest.mark.parametrize("document", ["foo", "name: [unclosed", "name: {a: b}"])
    def test_unreadable_config_file(self, reader, document):
        reader.register(CONFIG_MAP, NAMESPACE, CM_NAME, config_map({CONFIG_FILE_NAME: document}))

        with pytest.raises(ConfigError, match="could not read config file"):
            load_config(NAMESPACE, reader, CM_NAME)

    def test_missing_pod_template(self, reader):
        reader.register(CONFIG_MAP, NAMESPACE, CM_NAME, config_map({CONFIG_FILE_NAME: "name: foo"}))

        with pytest.raises(ConfigError, match="could not find pod template"):
            load_config(NAMESPACE, reader, CM_NAME)

    def test_missing_name(self, reader):
        reader.register(
            CONFIG_MAP, NAMESPACE, CM_NAME,
            config_map({CONFIG_FILE_NAME: "podPoolSize: 1", POD_TEMPLATE_NAME: "kind: Pod"}),
        )

        with pytest.raises(ConfigError, match="must define a name"):
            load_config(NAMESPACE, reader, CM_NAME)

    def test_full_config(self, reader):
        reader.register(
            CONFIG_MAP, NAMESPACE, CM_NAME,
            config_map({CONFIG_FILE_NAME: CONFIG_YAML, POD_TEMPLATE_NAME: "kind: Pod"}),
        )

        cfg = load_config(NAMESPACE, reader, CM_NAME)

        assert cfg.name == "node-report"
        assert cfg.namespace == NAMESPACE
        assert cfg.job_pod_template == "kind: Pod"
        assert cfg.job_service_account == "job-sa"
        assert cfg.job_node_selector == {"role": "worker"}
        assert cfg.report_directory == "/var/www"
        assert cfg.report_history == 5
        assert cfg.pod_pool_size == 10
        assert cfg.run_on_startup is True
        assert cfg.metrics.prefix == "node_report"
        assert cfg.metrics.gauges["checks"].labels == ["node", "check"]
        assert cfg.custom == {"threshold": 3}
        assert cfg.callback_service_port == 8090
        assert cfg.owner is None

    def test_namespace_in_config_file_is_ignored(self, reader):
        reader.register(
            CONFIG_MAP, NAMESPACE, CM_NAME,
            config_map({CONFIG_FILE_NAME: "name: foo\nnamespace: other", POD_TEMPLATE_NAME: "kind: Pod"}),
        )

        assert load_config(NAMESPACE, reader, CM_NAME).namespace == NAMESPACE

    def test_config_without_owner(self, reader):
        reader.register(
            CONFIG_MAP, NAMESPACE, CM_NAME,
            config_map({CONFIG_FILE_NAME: "name: foo", POD_TEMPLATE_NAME: "kind: Pod"}),
        )

        cfg = load_config(NAMESPACE, reader, CM_NAME, hostname=HOSTNAME)

        assert cfg.job_pod_template == "kind: Pod"
        assert cfg.owner is None
        assert reader.calls[-1] == (POD, NAMESPACE, HOSTNAME)

    def test_config_with_owner(self, reader):
        reader.register(
            CONFIG_MAP, NAMESPACE, CM_NAME,
            config_map({CONFIG_FILE_NAME: "name: foo", POD_TEMPLATE_NAME: "kind: Pod"}),
        )
        reader.register(POD, NAMESPACE, HOSTNAME, make_pod(HOSTNAME, owners=[("apps/v1", "ReplicaSet", "rs-1")]))
        reader.register(
            ObjectKind("apps/v1", "ReplicaSet"), NAMESPACE, "rs-1",
            make_unstructured("apps/v1", "ReplicaSet", "rs-1", owners=[("apps/v1", "Deployment", "deployment-1")]),
        )
        reader.register(
            ObjectKind("apps/v1", "Deployment"), NAMESPACE, "deployment-1",
            make_unstructured("apps/v1", "Deployment", "deployment-1"),
        )

        cfg = load_config(NAMESPACE, reader, CM_NAME, hostname=HOSTNAME)

        assert cfg.owner is not None
        assert cfg.owner.kind.kind == "Deployment"
        assert cfg.owner.name == "deployment-1"

    def test_serialization_excludes_runtime_fields(self):
        cfg = Config(name="foo", namespace=NAMESPACE, job_pod_template="kind: Pod")

        data = cfg.model_dump(by_alias=True)

        assert data["name"] == "foo"
        assert "namespace" not in data
        assert "jobPodTemplate" not in data
        assert "owner" not in data
