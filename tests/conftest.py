"""
Shared pytest fixtures for Batch Job Controller tests.

This module provides common fixtures including:
- FakeObjectReader: dict-backed Kubernetes object lookup
- FakeEventRecorder: records emitted events
- Redis mock with in-memory hash storage
- Callback app and TestClient wiring
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from kubernetes import client

from batch_job_controller.modules.callback import create_callback_app
from batch_job_controller.modules.config import Config, Metrics
from batch_job_controller.modules.kube import POD, ObjectKind, ObjectLookupError
from batch_job_controller.modules.registry import InMemoryExecutionRegistry
from batch_job_controller.modules.storage import ReportStore

NAMESPACE = "batch-jobs"
CONTROLLER_NAME = "node-report"


# =============================================================================
# Kubernetes Fakes
# =============================================================================

class FakeObjectReader:
    """
    ObjectReader serving registered objects.

    Unregistered objects raise ObjectLookupError like a 404 from the API server.

    Usage:
        reader.register(POD, "ns", "pod-1", pod)
        reader.get(POD, "ns", "pod-1")
    """

    def __init__(self):
        self.objects: Dict[Tuple[ObjectKind, str, str], Any] = {}
        self.calls: List[Tuple[ObjectKind, str, str]] = []

    def register(self, kind: ObjectKind, namespace: str, name: str, obj: Any) -> "FakeObjectReader":
        self.objects[(kind, namespace, name)] = obj
        return self

    def get(self, kind: ObjectKind, namespace: str, name: str) -> Any:
        self.calls.append((kind, namespace, name))
        try:
            return self.objects[(kind, namespace, name)]
        except KeyError:
            raise ObjectLookupError(kind, namespace, name, "Not Found") from None


@dataclass
class RecordedEvent:
    method: str
    obj: Any
    event_type: str
    reason: str
    message: str
    args: Tuple[str, ...] = field(default_factory=tuple)


class FakeEventRecorder:
    """EventRecorder keeping every event in memory."""

    def __init__(self):
        self.events: List[RecordedEvent] = []

    def event(self, obj, event_type, reason, message):
        self.events.append(RecordedEvent("event", obj, event_type, reason, message))
        return True

    def eventf(self, obj, event_type, reason, message_fmt, *args):
        self.events.append(RecordedEvent("eventf", obj, event_type, reason, message_fmt, args))
        return True


def make_pod(name: str, namespace: str = NAMESPACE, owners: List[Tuple[str, str, str]] = ()) -> client.V1Pod:
    """Typed pod with (apiVersion, kind, name) owner references."""
    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            uid=str(uuid.uuid4()),
            owner_references=[
                client.V1OwnerReference(api_version=a, kind=k, name=n, uid=str(uuid.uuid4()))
                for a, k, n in owners
            ]
            or None,
        ),
    )


def make_unstructured(api_version: str, kind: str, name: str, owners: List[Tuple[str, str, str]] = ()) -> dict:
    metadata: Dict[str, Any] = {"name": name, "namespace": NAMESPACE}
    if owners:
        metadata["ownerReferences"] = [
            {"apiVersion": a, "kind": k, "name": n} for a, k, n in owners
        ]
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata}


@pytest.fixture
def reader():
    return FakeObjectReader()


@pytest.fixture
def recorder():
    return FakeEventRecorder()


# =============================================================================
# Callback App
# =============================================================================

@pytest.fixture
def node():
    return f"{uuid.uuid4()}.cluster.local"


@pytest.fixture
def execution_id():
    return str(uuid.uuid4())


@pytest.fixture
def report_dir(tmp_path):
    path = tmp_path / "reports"
    path.mkdir()
    return path


@pytest.fixture
def config(report_dir):
    return Config(
        name=CONTROLLER_NAME,
        namespace=NAMESPACE,
        report_directory=str(report_dir),
        metrics=Metrics(prefix="foo"),
    )


@pytest.fixture
def registry():
    return InMemoryExecutionRegistry()


@pytest.fixture
def app(config, reader, recorder, registry, report_dir):
    return create_callback_app(config, reader, recorder, registry=registry, store=ReportStore(str(report_dir)))


@pytest.fixture
def test_client(app):
    return TestClient(app)


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================

def redis_glob(pattern: str) -> re.Pattern:
    """Compile a Redis MATCH pattern, honoring backslash escapes."""
    parts, i = [], 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            i += 1
            parts.append(re.escape(pattern[i]))
        elif c == "*":
            parts.append(".*")
        elif c == "?":
            parts.append(".")
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts) + r"\Z", re.S)


@pytest.fixture
def mock_redis_with_data():
    """
    Redis mock with in-memory hash storage.

    This allows testing code that reads back what it writes.
    """
    storage: Dict[str, Dict[str, str]] = {}
    expirations: Dict[str, int] = {}

    redis = AsyncMock()

    async def mock_hset(key, field=None, value=None, mapping=None):
        h = storage.setdefault(key, {})
        if field is not None:
            h[field] = str(value)
        for k, v in (mapping or {}).items():
            h[k] = str(v)
        return len(mapping or {}) + (field is not None)

    async def mock_hget(key, field):
        return storage.get(key, {}).get(field)

    async def mock_hgetall(key):
        return dict(storage.get(key, {}))

    async def mock_hincrby(key, field, amount=1):
        h = storage.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    async def mock_exists(*keys):
        return sum(1 for k in keys if k in storage)

    async def mock_delete(*keys):
        count = 0
        for key in keys:
            if key in storage:
                del storage[key]
                count += 1
        return count

    async def mock_expire(key, seconds):
        expirations[key] = seconds
        return key in storage

    async def mock_scan_iter(match="*", count=None):
        regex = redis_glob(match)
        for key in [k for k in storage if regex.match(k)]:
            yield key

    async def mock_eval(script, numkeys, key, length, last_seen, kind):
        """Runs the registry's report_received script against the hash storage."""
        if key not in storage:
            return 0
        await mock_hincrby(key, "bytes_received", int(length))
        await mock_hincrby(key, "callbacks", 1)
        await mock_hset(key, "last_seen", last_seen)
        if kind:
            await mock_hset(key, "last_kind", kind)
        return 1

    redis.hset = mock_hset
    redis.hget = mock_hget
    redis.hgetall = mock_hgetall
    redis.hincrby = mock_hincrby
    redis.exists = mock_exists
    redis.delete = mock_delete
    redis.expire = mock_expire
    redis.scan_iter = mock_scan_iter
    redis.eval = mock_eval
    redis._storage = storage  # Expose for test assertions
    redis._expirations = expirations

    return redis


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
