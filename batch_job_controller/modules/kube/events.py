"""
Kubernetes event recording.

Events are best effort: a failure to create one is logged and reported to the
caller through the return value, never raised.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from kubernetes import client

from .reader import CLIENT_ERRORS, object_meta

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"


class EventRecorder(Protocol):
    """Records events against Kubernetes objects."""

    def event(self, obj: Any, event_type: str, reason: str, message: str) -> bool:
        ...

    def eventf(self, obj: Any, event_type: str, reason: str, message_fmt: str, *args: str) -> bool:
        ...


def format_message(message_fmt: str, *args: str) -> str:
    """
    Substitute args into a printf style message.

    A mismatch between placeholders and arguments keeps the message and
    appends the arguments instead of dropping them.
    """
    try:
        return message_fmt % tuple(args)
    except (TypeError, ValueError):
        return " ".join([message_fmt, *args])


class KubernetesEventRecorder:
    """EventRecorder creating core/v1 events through the API server."""

    def __init__(
        self,
        core_v1: client.CoreV1Api,
        component: str,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize event recorder.

        Args:
            core_v1: CoreV1Api client
            component: Event source component, usually the controller name
            logger: Logger to use instead of the module logger
        """
        self.core_v1 = core_v1
        self.component = component
        self.log = logger or logging.getLogger(__name__)

    def event(self, obj: Any, event_type: str, reason: str, message: str) -> bool:
        meta = object_meta(obj)
        namespace = meta.get("namespace") or "default"
        name = meta.get("name")
        now = datetime.now(timezone.utc)

        body = client.CoreV1Event(
            metadata=client.V1ObjectMeta(generate_name=f"{name}.", namespace=namespace),
            involved_object=client.V1ObjectReference(
                api_version=_attr(obj, "api_version", "apiVersion") or "v1",
                kind=_attr(obj, "kind", "kind") or "Pod",
                name=name,
                namespace=namespace,
                uid=meta.get("uid"),
                resource_version=meta.get("resourceVersion"),
            ),
            reason=reason,
            message=message,
            type=event_type,
            source=client.V1EventSource(component=self.component),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )

        try:
            self.core_v1.create_namespaced_event(namespace=namespace, body=body)
        except CLIENT_ERRORS as e:
            self.log.error(
                f"Failed to record event {reason} for {namespace}/{name}: {getattr(e, 'reason', None) or e}"
            )
            return False
        return True

    def eventf(self, obj: Any, event_type: str, reason: str, message_fmt: str, *args: str) -> bool:
        return self.event(obj, event_type, reason, format_message(message_fmt, *args))


def _attr(obj: Any, attr: str, key: str) -> Optional[str]:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, attr, None)
