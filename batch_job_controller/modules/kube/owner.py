"""
Owner resolution.

Walks single-parent ownership links from a starting object up to the top-level
controller. Only the first owner reference of each object is followed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Set, Tuple

from .reader import POD, ObjectKind, ObjectLookupError, ObjectReader, owner_references

DEFAULT_MAX_HOPS = 32


@dataclass
class ResolvedOwner:
    """Root of an ownership chain."""

    kind: ObjectKind
    name: str
    obj: Any
    chain: List[Tuple[str, str]] = field(default_factory=list)


class OwnerResolver:
    def __init__(
        self,
        reader: ObjectReader,
        max_hops: int = DEFAULT_MAX_HOPS,
        logger: Optional[logging.Logger] = None,
    ):
        self.reader = reader
        self.max_hops = max_hops
        self.log = logger or logging.getLogger(__name__)

    def resolve(self, namespace: str, name: str, kind: ObjectKind = POD) -> Optional[ResolvedOwner]:
        """
        Find the root owner of an object.

        Args:
            namespace: Namespace of the starting object
            name: Name of the starting object
            kind: Kind of the starting object (default: Pod)

        Returns:
            ResolvedOwner for the first object without owner references,
            None if any lookup fails or the chain does not terminate
        """
        chain: List[Tuple[str, str]] = []
        visited: Set[Tuple[ObjectKind, str]] = set()

        for _ in range(self.max_hops):
            if (kind, name) in visited:
                self.log.warning(f"Ownership cycle at {kind.kind} {namespace}/{name}")
                return None
            visited.add((kind, name))
            chain.append((kind.kind, name))

            try:
                obj = self.reader.get(kind, namespace, name)
            except ObjectLookupError as e:
                self.log.debug(f"Error finding owner: {e}")
                return None

            refs = owner_references(obj)
            if not refs:
                return ResolvedOwner(kind=kind, name=name, obj=obj, chain=chain)
            kind, name = refs[0]

        self.log.warning(
            f"Gave up resolving owner of {chain[0][0]} {namespace}/{chain[0][1]} after {self.max_hops} hops"
        )
        return None
