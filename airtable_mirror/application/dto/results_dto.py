"""
Resultados resumidos de las corridas (sync, borrado, restauración).

Se mantienen pequeños y deterministas para logging y para el CLI.
"""
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class TableSyncResult:
    table_name: str
    fetched: int = 0
    written: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    error: str | None = None


@dataclass
class SyncRunResult:
    tables: List[TableSyncResult] = field(default_factory=list)

    @property
    def written(self) -> int:
        return sum(t.written for t in self.tables)

    @property
    def failed(self) -> int:
        return sum(t.failed for t in self.tables)


@dataclass
class BatchFailure:
    """Lote de borrado que no se aplico y por que."""

    record_ids: List[str]
    reason: str


@dataclass
class RemovalResult:
    table_name: str
    candidates: int = 0
    removed: int = 0
    skipped: int = 0
    unreconciled: int = 0
    reconciled: int = 0
    remote_calls: int = 0
    dry_run: bool = False
    removed_ids: List[str] = field(default_factory=list)
    failed_batches: List[BatchFailure] = field(default_factory=list)


@dataclass
class RestoreResult:
    requested: int = 0
    found: int = 0
    restored: int = 0
    skipped: int = 0
    dry_run: bool = False
    # id original -> id nuevo asignado por Airtable
    restored_ids: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
