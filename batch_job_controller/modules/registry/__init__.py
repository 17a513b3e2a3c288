"""
Registry Module - Black Box Interface

Purpose: Track which (node, execution) pairs may currently call back
Interface: add(), remove(), remove_execution(), has(), get(), report_received()
Hidden: Storage backend, locking, arrival bookkeeping

Replaceable with any backend (in-memory, Redis, or none at all via AlwaysAdmitRegistry).
"""

from .registry import (
    AlwaysAdmitRegistry,
    ExecutionKey,
    ExecutionRecord,
    ExecutionRegistry,
    InMemoryExecutionRegistry,
    RedisExecutionRegistry,
    resolve_registry,
)

__all__ = [
    "AlwaysAdmitRegistry",
    "ExecutionKey",
    "ExecutionRecord",
    "ExecutionRegistry",
    "InMemoryExecutionRegistry",
    "RedisExecutionRegistry",
    "resolve_registry",
]
