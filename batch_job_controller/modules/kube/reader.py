"""
Kubernetes object lookup.

A single fetch capability parameterized by an ObjectKind descriptor. Core kinds
the controller works with directly (Pod, ConfigMap) come back as typed client
models; every other kind is fetched through the dynamic client and comes back
as a plain attribute map (the unstructured representation).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import DynamicApiError, ResourceNotFoundError
from urllib3.exceptions import HTTPError


@dataclass(frozen=True)
class ObjectKind:
    """Type descriptor for a Kubernetes object."""

    api_version: str
    kind: str

    def __str__(self) -> str:
        return f"{self.api_version}/{self.kind}" if self.api_version else self.kind


POD = ObjectKind("v1", "Pod")
CONFIG_MAP = ObjectKind("v1", "ConfigMap")

# Anything the client raises for an unreachable or refusing API server.
CLIENT_ERRORS = (ApiException, DynamicApiError, ResourceNotFoundError, HTTPError, OSError)


class ObjectLookupError(Exception):
    """Raised when an object cannot be fetched from the API server."""

    def __init__(self, kind: ObjectKind, namespace: str, name: str, reason: Any = None):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.reason = reason
        super().__init__(f"could not get {kind.kind} {namespace}/{name}: {reason}")


class ObjectReader(Protocol):
    """Read-only object fetch keyed by (namespace, name)."""

    def get(self, kind: ObjectKind, namespace: str, name: str) -> Any:
        """Return a typed model for core kinds, a dict for everything else."""
        ...


def load_kube_config() -> client.ApiClient:
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.ApiClient()


class KubernetesObjectReader:
    """ObjectReader backed by the official Kubernetes client."""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.api_client = api_client or client.ApiClient()
        self.core_v1 = client.CoreV1Api(self.api_client)
        self._dynamic: Optional[DynamicClient] = None
        self._typed = {
            POD: self.core_v1.read_namespaced_pod,
            CONFIG_MAP: self.core_v1.read_namespaced_config_map,
        }

    @property
    def dynamic(self) -> DynamicClient:
        # Discovery runs on construction, so build on first unstructured lookup.
        if self._dynamic is None:
            self._dynamic = DynamicClient(self.api_client)
        return self._dynamic

    def get(self, kind: ObjectKind, namespace: str, name: str) -> Any:
        read = self._typed.get(kind)
        try:
            if read is not None:
                return read(name=name, namespace=namespace)
            resource = self.dynamic.resources.get(api_version=kind.api_version, kind=kind.kind)
            return resource.get(name=name, namespace=namespace).to_dict()
        except CLIENT_ERRORS as e:
            raise ObjectLookupError(kind, namespace, name, getattr(e, "reason", None) or e) from e


def _camel(key: str) -> str:
    head, *tail = key.split("_")
    return head + "".join(part.title() for part in tail)


def object_meta(obj: Any) -> Dict[str, Any]:
    """
    Return the metadata of a typed or unstructured object as a camelCase dict.

    Args:
        obj: Typed client model (e.g. V1Pod) or unstructured dict

    Returns:
        Metadata dict, empty if the object carries none
    """
    if isinstance(obj, dict):
        return obj.get("metadata") or {}
    metadata = getattr(obj, "metadata", None)
    if metadata is None:
        return {}
    return {_camel(k): v for k, v in metadata.to_dict().items()}


def object_name(obj: Any) -> Optional[str]:
    return object_meta(obj).get("name")


def owner_references(obj: Any) -> List[Tuple[ObjectKind, str]]:
    """Owner references of an object as (kind descriptor, name) pairs, in order."""
    refs = []
    for ref in object_meta(obj).get("ownerReferences") or []:
        if not isinstance(ref, dict):
            ref = ref.to_dict()
        api_version = ref.get("apiVersion", ref.get("api_version")) or ""
        refs.append((ObjectKind(api_version, ref.get("kind") or ""), ref.get("name") or ""))
    return refs
