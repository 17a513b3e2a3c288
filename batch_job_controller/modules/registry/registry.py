"""
Execution registry.

Executions are added when a job is admitted for a node and removed by whoever
owns the job lifecycle. The callback server only asks has() and reports
arrivals; it never changes membership.
"""

import logging
import re
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Dict, List, NamedTuple, Optional, Protocol

logger = logging.getLogger("batch_job_controller.registry")

# Counts an arrival only while the hash exists, so an expired key is never
# recreated without its TTL and authorized flag.
REPORT_RECEIVED_SCRIPT = """
if redis.call("EXISTS", KEYS[1]) == 0 then
    return 0
end
redis.call("HINCRBY", KEYS[1], "bytes_received", ARGV[1])
redis.call("HINCRBY", KEYS[1], "callbacks", 1)
redis.call("HSET", KEYS[1], "last_seen", ARGV[2])
if ARGV[3] ~= "" then
    redis.call("HSET", KEYS[1], "last_kind", ARGV[3])
end
return 1
"""

_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")


def escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so value matches only itself."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class ExecutionKey(NamedTuple):
    """Identity of one in-flight callback session."""

    node: str
    execution_id: str


@dataclass
class ExecutionRecord:
    """Membership and arrival bookkeeping for one execution key."""

    node: str
    execution_id: str
    authorized: bool = True
    bytes_received: int = 0
    callbacks: int = 0
    last_seen: Optional[datetime] = None
    last_kind: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_seen"] = self.last_seen.isoformat() if self.last_seen else None
        return data


class ExecutionRegistry(Protocol):
    """Protocol for execution registries."""

    async def add(self, node: str, execution_id: str) -> None:
        ...

    async def remove(self, node: str, execution_id: str) -> bool:
        ...

    async def remove_execution(self, execution_id: str) -> int:
        ...

    async def has(self, node: str, execution_id: str) -> bool:
        ...

    async def get(self, node: str, execution_id: str) -> Optional[ExecutionRecord]:
        ...

    async def report_received(
        self,
        execution_id: str,
        node: str,
        length: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class InMemoryExecutionRegistry:
    """
    Process local registry.

    All access goes through one lock; critical sections never await, so the
    registry is safe from both the event loop and threadpool workers.
    """

    def __init__(self):
        self._records: Dict[ExecutionKey, ExecutionRecord] = {}
        self._lock = threading.Lock()

    async def add(self, node: str, execution_id: str) -> None:
        key = ExecutionKey(node, execution_id)
        with self._lock:
            if key not in self._records:
                self._records[key] = ExecutionRecord(node=node, execution_id=execution_id)
        logger.debug(f"Execution {execution_id} on node {node} admitted")

    async def remove(self, node: str, execution_id: str) -> bool:
        with self._lock:
            return self._records.pop(ExecutionKey(node, execution_id), None) is not None

    async def remove_execution(self, execution_id: str) -> int:
        """Remove every node of an execution. Returns the number removed."""
        with self._lock:
            keys = [k for k in self._records if k.execution_id == execution_id]
            for key in keys:
                del self._records[key]
        return len(keys)

    async def has(self, node: str, execution_id: str) -> bool:
        with self._lock:
            record = self._records.get(ExecutionKey(node, execution_id))
            return record is not None and record.authorized

    async def get(self, node: str, execution_id: str) -> Optional[ExecutionRecord]:
        with self._lock:
            record = self._records.get(ExecutionKey(node, execution_id))
            return ExecutionRecord(**asdict(record)) if record else None

    async def keys(self) -> List[ExecutionKey]:
        with self._lock:
            return list(self._records)

    async def report_received(
        self,
        execution_id: str,
        node: str,
        length: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record the arrival of one callback.

        Untracked keys are ignored; arrivals never create membership.
        """
        with self._lock:
            record = self._records.get(ExecutionKey(node, execution_id))
            if record is None:
                return
            record.bytes_received += length
            record.callbacks += 1
            record.last_seen = datetime.now(UTC)
            if metadata:
                record.last_kind = metadata.get("kind", record.last_kind)


class RedisExecutionRegistry:
    """
    Registry shared between controller replicas through Redis.

    One hash per key: execution:{execution_id}:node:{node}
    """

    def __init__(self, redis_client, ttl: int = 0):
        """
        Initialize Redis registry.

        Args:
            redis_client: Async Redis client (decode_responses=True)
            ttl: Retention window in seconds, 0 keeps keys until removed
        """
        self.redis = redis_client
        self.ttl = ttl

    def _key(self, node: str, execution_id: str) -> str:
        return f"execution:{execution_id}:node:{node}"

    async def add(self, node: str, execution_id: str) -> None:
        key = self._key(node, execution_id)
        await self.redis.hset(
            key,
            mapping={
                "node": node,
                "execution_id": execution_id,
                "authorized": "1",
                "bytes_received": 0,
                "callbacks": 0,
            },
        )
        if self.ttl > 0:
            await self.redis.expire(key, self.ttl)
        logger.debug(f"Execution {execution_id} on node {node} admitted")

    async def remove(self, node: str, execution_id: str) -> bool:
        return await self.redis.delete(self._key(node, execution_id)) > 0

    async def remove_execution(self, execution_id: str) -> int:
        pattern = f"execution:{escape_glob(execution_id)}:node:*"
        keys = [key async for key in self.redis.scan_iter(match=pattern)]
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    async def has(self, node: str, execution_id: str) -> bool:
        """
        Check membership.

        Performance:
        - Called once per callback, single HGET
        """
        return await self.redis.hget(self._key(node, execution_id), "authorized") in ("1", b"1")

    async def get(self, node: str, execution_id: str) -> Optional[ExecutionRecord]:
        data = await self.redis.hgetall(self._key(node, execution_id))
        if not data:
            return None
        data = {
            (k.decode() if isinstance(k, bytes) else k): (v.decode() if isinstance(v, bytes) else v)
            for k, v in data.items()
        }
        return ExecutionRecord(
            node=data.get("node", node),
            execution_id=data.get("execution_id", execution_id),
            authorized=data.get("authorized") == "1",
            bytes_received=int(data.get("bytes_received", 0)),
            callbacks=int(data.get("callbacks", 0)),
            last_seen=datetime.fromisoformat(data["last_seen"]) if data.get("last_seen") else None,
            last_kind=data.get("last_kind"),
        )

    async def report_received(
        self,
        execution_id: str,
        node: str,
        length: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        kind = (metadata or {}).get("kind") or ""
        await self.redis.eval(
            REPORT_RECEIVED_SCRIPT,
            1,
            self._key(node, execution_id),
            length,
            datetime.now(UTC).isoformat(),
            kind,
        )


class AlwaysAdmitRegistry:
    """Registry used when admission is disabled: everything is admitted, nothing is recorded."""

    async def add(self, node: str, execution_id: str) -> None:
        return None

    async def remove(self, node: str, execution_id: str) -> bool:
        return False

    async def remove_execution(self, execution_id: str) -> int:
        return 0

    async def has(self, node: str, execution_id: str) -> bool:
        return True

    async def get(self, node: str, execution_id: str) -> Optional[ExecutionRecord]:
        return None

    async def report_received(
        self,
        execution_id: str,
        node: str,
        length: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        return None


def resolve_registry(registry: Optional[ExecutionRegistry]) -> ExecutionRegistry:
    """Map an absent registry to the always-admit implementation."""
    return AlwaysAdmitRegistry() if registry is None else registry
