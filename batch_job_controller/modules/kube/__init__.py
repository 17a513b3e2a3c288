"""
Kube Module - Black Box Interface

Purpose: Read Kubernetes objects, record events, walk ownership chains
Interface: ObjectReader.get(), EventRecorder.event()/eventf(), OwnerResolver.resolve()
Hidden: Typed vs dynamic API clients, event construction, cycle guards

Replaceable with any object source (fakes in tests, cached informers).
"""

from .events import EVENT_TYPE_NORMAL, EVENT_TYPE_WARNING, EventRecorder, KubernetesEventRecorder
from .owner import OwnerResolver, ResolvedOwner
from .reader import (
    CONFIG_MAP,
    POD,
    KubernetesObjectReader,
    ObjectKind,
    ObjectLookupError,
    ObjectReader,
    load_kube_config,
    object_meta,
    object_name,
    owner_references,
)

__all__ = [
    "CONFIG_MAP",
    "EVENT_TYPE_NORMAL",
    "EVENT_TYPE_WARNING",
    "EventRecorder",
    "KubernetesEventRecorder",
    "KubernetesObjectReader",
    "ObjectKind",
    "ObjectLookupError",
    "ObjectReader",
    "OwnerResolver",
    "POD",
    "ResolvedOwner",
    "load_kube_config",
    "object_meta",
    "object_name",
    "owner_references",
]
