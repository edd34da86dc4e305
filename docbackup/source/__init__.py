# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Data Source Layer - Where documents are read from and restored to.
"""

from datetime import UTC, datetime
from typing import Any, Dict, Protocol, Sequence, Tuple, runtime_checkable

from docbackup.models import DocumentRecord


class DataSource(Protocol):
    """Protocol for a multi-collection document store."""

    async def list_documents(self, collection: str) -> Sequence[DocumentRecord]:
        """
        List every document in a collection.

        Args:
            collection: Collection name

        Returns:
            All documents currently stored in the collection
        """
        ...

    async def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """
        Write a document, fully replacing any existing document with the same id.

        Args:
            collection: Collection name
            doc_id: Document id
            data: Opaque document payload
        """
        ...


@runtime_checkable
class SupportsBatchWrite(Protocol):
    """A DataSource that can upsert many documents of one collection at once."""

    async def put_documents(
        self,
        collection: str,
        documents: Sequence[Tuple[str, Dict[str, Any]]],
    ) -> None:
        ...


def changed_since(document: DocumentRecord, since: datetime) -> bool:
    """
    Default change-detection predicate for incremental backups.

    A document changed if its updated_at (or, lacking that, created_at)
    is at or after the baseline. Documents without timestamps are always
    included, since nothing proves they are unchanged.
    """
    stamps = document.source_timestamps
    reference = stamps.updated_at or stamps.created_at
    if reference is None:
        return True
    # Naive timestamps from a source are taken to be UTC
    if reference.tzinfo is None and since.tzinfo is not None:
        reference = reference.replace(tzinfo=UTC)
    return reference >= since


from docbackup.source.memory import MemoryDataSource  # noqa: E402
from docbackup.source.sqlite import SqliteDataSource  # noqa: E402

__all__ = [
    "DataSource",
    "SupportsBatchWrite",
    "changed_since",
    "MemoryDataSource",
    "SqliteDataSource",
]
