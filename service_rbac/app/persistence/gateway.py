"""
Persistence gateway contract.

The RBAC engine never talks to storage directly. It consumes a gateway that
offers create/find/update/delete over named collections, filtered by
conjunctive equality predicates. No ``IN``, range or ``OR`` filters are
assumed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

Record = Dict[str, Any]


@dataclass(frozen=True)
class Where:
    """Equality predicate on a single record field."""
    field: str
    value: Any


@dataclass(frozen=True)
class SortBy:
    field: str
    direction: str = "asc"

    def __post_init__(self):
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Invalid sort direction: {self.direction}")

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


class PersistenceGateway(ABC):
    """Record store over named collections."""

    async def start(self):
        """Acquire resources. No-op by default."""

    async def stop(self):
        """Release resources. No-op by default."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def create(self, collection: str, record: Record) -> Record:
        """Insert a record and return it with its assigned id."""

    @abstractmethod
    async def find_one(self, collection: str, where: Sequence[Where]) -> Optional[Record]:
        """Return the first record matching every predicate, or None."""

    @abstractmethod
    async def find_many(
        self,
        collection: str,
        where: Optional[Sequence[Where]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[SortBy] = None,
    ) -> List[Record]:
        """Return all matching records, optionally sorted and paginated."""

    @abstractmethod
    async def update(self, collection: str, where: Sequence[Where], update: Record) -> Optional[Record]:
        """Apply a partial update to the first match; None when nothing matched."""

    @abstractmethod
    async def delete(self, collection: str, where: Sequence[Where]) -> None:
        """Delete every matching record. Deleting nothing is not an error."""
