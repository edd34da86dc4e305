# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup SQLite Source - Document collections stored in one SQLite table.

Each document is a row (collection, id, JSON payload, timestamps).
Writes are upserts, so replaying a snapshot is idempotent.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence, Tuple

import aiosqlite
import structlog

from docbackup.exceptions import CollectionOperationFailure
from docbackup.models import DocumentRecord, SourceTimestamps

logger = structlog.get_logger()

_UPSERT = """
    INSERT INTO documents (collection, id, data, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT (collection, id)
    DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
"""


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteDataSource:
    """DataSource backed by an SQLite database file."""

    def __init__(
        self,
        db_path: Path | str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db_path = Path(db_path)
        self._clock = clock or (lambda: datetime.now(UTC))

    async def init(self) -> None:
        """
        Create the documents table if it doesn't exist. This is idempotent.
        """
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT,
                    updated_at TEXT,
                    PRIMARY KEY (collection, id)
                )
            """)
            await db.commit()

        logger.info("sqlite_source_initialized", db_path=str(self.db_path))

    async def list_documents(self, collection: str) -> List[DocumentRecord]:
        try:
            records: List[DocumentRecord] = []
            async with aiosqlite.connect(self.db_path) as db:
                async with db.execute(
                    """
                    SELECT id, data, created_at, updated_at
                    FROM documents
                    WHERE collection = ?
                    ORDER BY rowid
                    """,
                    (collection,),
                ) as cursor:
                    async for row in cursor:
                        records.append(
                            DocumentRecord(
                                id=row[0],
                                data=json.loads(row[1]),
                                source_timestamps=SourceTimestamps(
                                    created_at=_parse_ts(row[2]),
                                    updated_at=_parse_ts(row[3]),
                                ),
                            )
                        )
            return records
        except (aiosqlite.Error, ValueError) as e:
            raise CollectionOperationFailure(
                collection,
                f"Failed to list documents: {e}",
                details={"db_path": str(self.db_path)},
            ) from e

    async def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        now = self._clock().isoformat()
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    _UPSERT,
                    (collection, doc_id, json.dumps(data, sort_keys=True), now, now),
                )
                await db.commit()
        except (aiosqlite.Error, TypeError, ValueError) as e:
            raise CollectionOperationFailure(
                collection,
                f"Failed to write document {doc_id}: {e}",
                details={"document_id": doc_id, "db_path": str(self.db_path)},
            ) from e

    async def put_documents(
        self,
        collection: str,
        documents: Sequence[Tuple[str, Dict[str, Any]]],
    ) -> None:
        """
        Upsert a batch of (doc_id, data) pairs in one transaction.

        Either the whole batch is committed or none of it is.
        """
        if not documents:
            return
        now = self._clock().isoformat()
        try:
            rows = [
                (collection, doc_id, json.dumps(data, sort_keys=True), now, now)
                for doc_id, data in documents
            ]
            async with aiosqlite.connect(self.db_path) as db:
                await db.executemany(_UPSERT, rows)
                await db.commit()
        except (aiosqlite.Error, TypeError, ValueError) as e:
            raise CollectionOperationFailure(
                collection,
                f"Failed to write {len(documents)} documents: {e}",
                details={"batch_size": len(documents), "db_path": str(self.db_path)},
            ) from e

    async def count(self, collection: str) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT COUNT(*) FROM documents WHERE collection = ?",
                (collection,),
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0
