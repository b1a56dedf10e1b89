"""
In-process gateway used for local runs and tests.
"""

import copy
import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from shared.logging import get_logger
from .gateway import PersistenceGateway, Record, SortBy, Where


def _matches(record: Record, where: Optional[Sequence[Where]]) -> bool:
    return all(record.get(clause.field) == clause.value for clause in where or ())


class InMemoryGateway(PersistenceGateway):
    """Dictionary-backed gateway. Records are copied in and out."""

    def __init__(self):
        self.logger = get_logger("rbac.persistence.memory")
        self.collections: Dict[str, List[Record]] = defaultdict(list)

    async def create(self, collection: str, record: Record) -> Record:
        stored = copy.deepcopy(record)
        if not stored.get("id"):
            stored["id"] = str(uuid.uuid4())
        self.collections[collection].append(stored)
        return copy.deepcopy(stored)

    async def find_one(self, collection: str, where: Sequence[Where]) -> Optional[Record]:
        for record in self.collections[collection]:
            if _matches(record, where):
                return copy.deepcopy(record)
        return None

    async def find_many(
        self,
        collection: str,
        where: Optional[Sequence[Where]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[SortBy] = None,
    ) -> List[Record]:
        records = [r for r in self.collections[collection] if _matches(r, where)]

        if sort_by:
            present = [r for r in records if r.get(sort_by.field) is not None]
            missing = [r for r in records if r.get(sort_by.field) is None]
            present.sort(key=lambda r: r[sort_by.field], reverse=sort_by.descending)
            records = present + missing

        start = offset or 0
        end = start + limit if limit is not None else None
        return [copy.deepcopy(r) for r in records[start:end]]

    async def update(self, collection: str, where: Sequence[Where], update: Record) -> Optional[Record]:
        for record in self.collections[collection]:
            if _matches(record, where):
                record.update(copy.deepcopy(update))
                return copy.deepcopy(record)
        return None

    async def delete(self, collection: str, where: Sequence[Where]) -> None:
        kept = [r for r in self.collections[collection] if not _matches(r, where)]
        removed = len(self.collections[collection]) - len(kept)
        self.collections[collection] = kept
        if removed:
            self.logger.debug("Records deleted", collection=collection, count=removed)
