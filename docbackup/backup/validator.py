# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Integrity Validator - Structural checks on a snapshot.

Pure and deterministic: no I/O, and issues are reported in check order
so the same snapshot always yields the same ValidationResult.
"""

from typing import List

from docbackup.config import BackupKind
from docbackup.models import Snapshot, ValidationResult


class IntegrityValidator:
    """Validates snapshots before they are restored."""

    def validate(self, snapshot: Snapshot) -> ValidationResult:
        issues: List[str] = []
        metadata = snapshot.metadata

        # (a) identity
        if not metadata.id:
            issues.append("metadata.id is missing")
        if metadata.created_at is None:
            issues.append("metadata.created_at is missing")

        # (b) counts agree with contents
        for key, col in snapshot.collections.items():
            if col.failure is None and col.document_count != len(col.documents):
                issues.append(
                    f"collection {key!r}: document_count {col.document_count} "
                    f"!= {len(col.documents)} documents"
                )
            elif col.failure is not None and (col.document_count != 0 or col.documents):
                issues.append(f"collection {key!r}: degraded collection holds documents")

        # (c) collection names unique and consistent with their keys
        seen = set()
        for key, col in snapshot.collections.items():
            if col.name != key:
                issues.append(f"collection key {key!r} does not match name {col.name!r}")
            if col.name in seen:
                issues.append(f"duplicate collection name {col.name!r}")
            seen.add(col.name)

        # (d) baseline present iff incremental
        kind = metadata.kind
        has_baseline = metadata.based_on_id is not None or metadata.since is not None
        full_baseline = metadata.based_on_id is not None and metadata.since is not None
        if kind == BackupKind.INCREMENTAL and not full_baseline:
            issues.append("incremental snapshot is missing based_on_id or since")
        elif kind == BackupKind.FULL and has_baseline:
            issues.append("full snapshot must not carry based_on_id or since")

        # (e) known kind
        if not isinstance(kind, BackupKind):
            issues.append(f"unknown snapshot kind {kind!r}")

        return ValidationResult(valid=not issues, issues=tuple(issues))
