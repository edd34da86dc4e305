# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for docbackup tests.

Provides a seeded in-memory data source, an in-memory backup store,
a controllable clock, and ready engine state.
"""

import asyncio
import tempfile
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Any, Dict, Generator, List

import pytest
import pytest_asyncio

from docbackup.models import DocumentRecord, SourceTimestamps
from docbackup.source import MemoryDataSource
from docbackup.vault import MemoryBackupStore

SEEDED_AT = datetime(2025, 12, 1, 12, 0, tzinfo=UTC)
START = datetime(2026, 1, 1, 0, 0, tzinfo=UTC)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class BlockingSource:
    """
    Wraps a data source so list_documents blocks until released.

    `entered` is set as soon as a read is waiting.
    """

    def __init__(self, inner: MemoryDataSource) -> None:
        self.inner = inner
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_documents(self, collection: str) -> List[DocumentRecord]:
        self.entered.set()
        await self.release.wait()
        return await self.inner.list_documents(collection)

    async def put_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        await self.inner.put_document(collection, doc_id, data)


def make_doc(doc_id: str, stamp: datetime = SEEDED_AT, **data: Any) -> DocumentRecord:
    return DocumentRecord(
        id=doc_id,
        data=data,
        source_timestamps=SourceTimestamps(created_at=stamp, updated_at=stamp),
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source(clock: FakeClock) -> MemoryDataSource:
    """Memory source seeded with products (3 docs) and categories (2 docs)."""
    src = MemoryDataSource(clock=clock)
    src.seed(
        "products",
        [
            make_doc("p1", name="Keyboard", price=49),
            make_doc("p2", name="Mouse", price=19),
            make_doc("p3", name="Monitor", price=229),
        ],
    )
    src.seed(
        "categories",
        [
            make_doc("c1", name="Peripherals"),
            make_doc("c2", name="Displays"),
        ],
    )
    return src


@pytest.fixture
def store() -> MemoryBackupStore:
    return MemoryBackupStore()


@pytest.fixture
def test_config(temp_dir: Path):
    """Create a test configuration."""
    from docbackup.builder import create_config

    return create_config(
        ["products", "categories"],
        backup_path=temp_dir / "backups",
        auto_cleanup=False,
        environment="test",
    )


@pytest_asyncio.fixture
async def engine(test_config, source, store, clock):
    """Create initialized engine state for testing."""
    from docbackup.core import initialize_engine, shutdown_engine

    state = await initialize_engine(test_config, source, store=store, clock=clock)
    yield state
    await shutdown_engine(state)
