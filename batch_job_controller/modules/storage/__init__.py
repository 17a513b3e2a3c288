"""
Storage Module - Black Box Interface

Purpose: Persist callback payloads below the report directory
Interface: ReportStore.write(), ReportStore.path_for()
Hidden: Directory creation, atomic replace, path containment

Can be replaced with any sink accepting (relative path, bytes).
"""

from .store import ReportStore, StorageError

__all__ = ["ReportStore", "StorageError"]
