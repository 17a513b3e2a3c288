"""
Controller configuration.

The configuration lives in a ConfigMap next to the controller: `config.yaml`
holds the settings below (camelCase keys), `pod-template.yaml` the job pod
template.
"""

import logging
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from batch_job_controller.modules.kube import CONFIG_MAP, ObjectLookupError, ObjectReader, OwnerResolver, ResolvedOwner

CONFIG_FILE_NAME = "config.yaml"
POD_TEMPLATE_NAME = "pod-template.yaml"

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the controller configuration cannot be loaded."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Metric(_CamelModel):
    """Gauge definition."""

    help: str = ""
    labels: List[str] = Field(default_factory=list)


class Metrics(_CamelModel):
    """Metrics configuration."""

    prefix: str = ""
    gauges: Dict[str, Metric] = Field(default_factory=dict)

    def name_for(self, name: str) -> str:
        """Full metric name for a gauge."""
        return f"{self.prefix}_{name}"


class Config(_CamelModel):
    """Controller configuration."""

    name: str = ""
    job_service_account: str = ""
    job_node_selector: Dict[str, str] = Field(default_factory=dict)
    run_on_unscheduled_nodes: bool = False
    cron_expression: str = ""
    report_directory: str = ""
    report_history: int = 0
    pod_pool_size: int = 0
    run_on_startup: bool = False
    metrics: Metrics = Field(default_factory=Metrics)
    custom: Dict[str, Any] = Field(default_factory=dict)
    callback_service_name: str = ""
    callback_service_port: int = 0

    # Attached after loading, never read from config.yaml
    namespace: str = Field(default="", exclude=True)
    job_pod_template: str = Field(default="", exclude=True)
    owner: Optional[ResolvedOwner] = Field(default=None, exclude=True)

    def pod_name(self, node_name: str, execution_id: str) -> str:
        """
        Name of the job pod for an execution on a node.

        Only the first label of a dotted node name is used, so
        "worker-1.cluster.local" becomes "worker-1".
        """
        node = node_name.split(".")[0]
        return f"{self.name}-job-{node}-{execution_id}"


def _parse(document: str, config_map_name: str) -> Config:
    try:
        data = yaml.safe_load(document)
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        return Config.model_validate(
            {k: v for k, v in data.items() if k not in ("namespace", "jobPodTemplate", "owner")}
        )
    except (yaml.YAMLError, ValueError, ValidationError) as e:
        raise ConfigError(
            f"could not read config file {CONFIG_FILE_NAME!r} in configmap {config_map_name!r}: {e}"
        ) from e


def load_config(
    namespace: str,
    reader: ObjectReader,
    config_map_name: str,
    hostname: Optional[str] = None,
    resolver: Optional[OwnerResolver] = None,
) -> Config:
    """
    Load the controller configuration from its ConfigMap.

    Args:
        namespace: Namespace the controller runs in
        reader: Object reader used for the ConfigMap and owner lookups
        config_map_name: Name of the ConfigMap
        hostname: Name of the controller's own pod, used to find its owner
        resolver: Owner resolver (default: one built on reader)

    Returns:
        Config with namespace, pod template and owner attached

    Raises:
        ConfigError: If the ConfigMap is missing or incomplete
    """
    try:
        cm = reader.get(CONFIG_MAP, namespace, config_map_name)
    except ObjectLookupError as e:
        raise ConfigError(f"error getting configmap {config_map_name!r}: {e}") from e

    data = (cm.get("data") if isinstance(cm, dict) else cm.data) or {}

    if CONFIG_FILE_NAME not in data:
        raise ConfigError(
            f"could not find config file {CONFIG_FILE_NAME!r} in configmap {config_map_name!r}"
        )
    cfg = _parse(data[CONFIG_FILE_NAME], config_map_name)

    if POD_TEMPLATE_NAME not in data:
        raise ConfigError(
            f"could not find pod template {POD_TEMPLATE_NAME!r} in configmap {config_map_name!r}"
        )
    cfg.job_pod_template = data[POD_TEMPLATE_NAME]
    cfg.namespace = namespace

    if not cfg.name:
        raise ConfigError(f"config file {CONFIG_FILE_NAME!r} must define a name")
    if not cfg.namespace:
        raise ConfigError("namespace must not be empty")

    if hostname:
        resolver = resolver or OwnerResolver(reader)
        logger.info(f"Looking for owner of current pod {hostname}")
        cfg.owner = resolver.resolve(namespace, hostname)
        if cfg.owner:
            logger.info(f"Found owner {cfg.owner.kind.kind} {cfg.owner.name} for pods")

    return cfg
