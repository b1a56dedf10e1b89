"""
PostgreSQL persistence gateway for the RBAC service.

All collections share one table; each record is stored as a JSONB document
keyed by ``(collection, id)``. Equality filters become JSONB containment.
"""

import json
import uuid
from datetime import datetime
from typing import Any, List, Optional, Sequence

import asyncpg

from shared.logging import get_logger
from shared.errors import GatewayError
from .gateway import PersistenceGateway, Record, SortBy, Where


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


def _filter_document(where: Optional[Sequence[Where]]) -> Record:
    # Encoded to JSONB by the connection codec
    return {clause.field: clause.value for clause in where or ()}


class PostgreSQLGateway(PersistenceGateway):
    """asyncpg-backed gateway."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10, command_timeout: float = 30):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("rbac.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
                init=self._init_connection
            )

            await self._create_tables()

            self.logger.info("PostgreSQL gateway started")

        except (OSError, asyncpg.PostgresError) as e:
            self.logger.error("Failed to start PostgreSQL gateway", error=str(e))
            raise GatewayError("Failed to start PostgreSQL gateway", {"error": str(e)})

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL gateway stopped")

    @staticmethod
    async def _init_connection(conn):
        await conn.set_type_codec(
            "jsonb",
            encoder=_dumps,
            decoder=json.loads,
            schema="pg_catalog"
        )

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS rbac_records (
                    collection VARCHAR(64) NOT NULL,
                    id VARCHAR(255) NOT NULL,
                    data JSONB NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (collection, id)
                );
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_rbac_records_data ON rbac_records USING GIN (data jsonb_path_ops);
            """)

    async def create(self, collection: str, record: Record) -> Record:
        data = dict(record)
        if not data.get("id"):
            data["id"] = str(uuid.uuid4())

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO rbac_records (collection, id, data)
                VALUES ($1, $2, $3::jsonb)
                RETURNING data
            """, collection, data["id"], data)

        return row["data"]

    async def find_one(self, collection: str, where: Sequence[Where]) -> Optional[Record]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT data FROM rbac_records
                WHERE collection = $1 AND data @> $2::jsonb
                ORDER BY created_at ASC
                LIMIT 1
            """, collection, _filter_document(where))

        return row["data"] if row else None

    async def find_many(
        self,
        collection: str,
        where: Optional[Sequence[Where]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[SortBy] = None,
    ) -> List[Record]:
        query = "SELECT data FROM rbac_records WHERE collection = $1 AND data @> $2::jsonb"
        args: List[Any] = [collection, _filter_document(where)]

        if sort_by:
            args.append(sort_by.field)
            direction = "DESC" if sort_by.descending else "ASC"
            query += f" ORDER BY data -> ${len(args)}::text {direction} NULLS LAST, created_at ASC"
        else:
            query += " ORDER BY created_at ASC"

        if limit is not None:
            args.append(limit)
            query += f" LIMIT ${len(args)}"

        if offset:
            args.append(offset)
            query += f" OFFSET ${len(args)}"

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *args)

        return [row["data"] for row in rows]

    async def update(self, collection: str, where: Sequence[Where], update: Record) -> Optional[Record]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                UPDATE rbac_records
                SET data = data || $3::jsonb, updated_at = NOW()
                WHERE collection = $1 AND id = (
                    SELECT id FROM rbac_records
                    WHERE collection = $1 AND data @> $2::jsonb
                    ORDER BY created_at ASC
                    LIMIT 1
                )
                RETURNING data
            """, collection, _filter_document(where), dict(update))

        return row["data"] if row else None

    async def delete(self, collection: str, where: Sequence[Where]) -> None:
        async with self.pool.acquire() as conn:
            result = await conn.execute("""
                DELETE FROM rbac_records
                WHERE collection = $1 AND data @> $2::jsonb
            """, collection, _filter_document(where))

        self.logger.debug("Records deleted", collection=collection, result=result)

    async def health_check(self) -> bool:
        """Check database health."""
        if not self.pool:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError):
            return False
