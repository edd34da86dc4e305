# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Memory Source - In-process document store.

Useful for embedding and tests. Documents keep insertion order within
a collection; writes replace the whole document.
"""

import copy
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Iterable, List

from docbackup.models import DocumentRecord, SourceTimestamps


class MemoryDataSource:
    """Dict-backed DataSource."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._collections: Dict[str, Dict[str, DocumentRecord]] = {}

    def seed(self, collection: str, documents: Iterable[DocumentRecord]) -> None:
        """Insert documents as-is, keeping their timestamps."""
        target = self._collections.setdefault(collection, {})
        for doc in documents:
            target[doc.id] = doc

    async def list_documents(self, collection: str) -> List[DocumentRecord]:
        return list(self._collections.get(collection, {}).values())

    async def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        now = self._clock()
        target = self._collections.setdefault(collection, {})
        existing = target.get(doc_id)
        created_at = existing.source_timestamps.created_at if existing else now
        target[doc_id] = DocumentRecord(
            id=doc_id,
            data=copy.deepcopy(data),
            source_timestamps=SourceTimestamps(created_at=created_at, updated_at=now),
        )

    async def delete_document(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)

    def dump(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Plain copy of every collection's payloads, keyed by document id."""
        return {
            name: {doc_id: copy.deepcopy(doc.data) for doc_id, doc in docs.items()}
            for name, docs in self._collections.items()
        }
