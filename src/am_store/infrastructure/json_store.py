"""JsonFileTradeStore: the single JSON document at a store path.

Every operation is a critical section under an advisory fcntl.flock on
`<store>.lock`: shared for reads, exclusive for read-modify-write cycles.
The sections are synchronous (no await inside), so one process never
interleaves two cycles of its own either.

The document holds exportable signing secrets. The directory is created
0700, the lock file 0600, and the document is written to a 0600 temp file
in the same directory, fsynced, and os.replace'd into place.
"""

import fcntl
import logging
import os
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from enum import Enum
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from src.am_common.enums import RecordKind
from src.am_common.errors import NotFoundError, StoreConsistencyError
from src.am_store.domain.models import TradeRecord
from src.am_store.domain.repository import RecordFilter, RecordUpdate, SweepReport
from src.am_store.infrastructure.serialization import (
    StoreDocument,
    from_document,
    secret_of,
    to_document,
)
from src.am_trading.domain.expiry import apply_expiry

logger = logging.getLogger(__name__)

_FILE_MODE = 0o600
_DIR_MODE = 0o700


class JsonFileTradeStore:
    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self._lock_path = self._path.with_name(self._path.name + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # File plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self, exclusive: bool) -> Iterator[None]:
        self._path.parent.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
        fd = os.open(self._lock_path, os.O_RDWR | os.O_CREAT, _FILE_MODE)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _read(self) -> StoreDocument:
        if not self._path.exists():
            return StoreDocument()
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return StoreDocument()
        try:
            return StoreDocument.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise StoreConsistencyError(
                f"store document {self._path} is unreadable ({exc.error_count()} errors)"
            ) from exc

    def _write(self, document: StoreDocument) -> None:
        payload = document.dump_json()
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            os.fchmod(fd, _FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        os.chmod(self._path, _FILE_MODE)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, kind: RecordKind, record_id: str) -> TradeRecord | None:
        with self._locked(exclusive=False):
            document = self._read().collection(kind).get(record_id)
        return from_document(kind, document) if document is not None else None

    async def get_secret(self, kind: RecordKind, record_id: str) -> str | None:
        with self._locked(exclusive=False):
            document = self._read().collection(kind).get(record_id)
        return secret_of(kind, document) if document is not None else None

    async def list(
        self,
        kind: RecordKind,
        predicate: RecordFilter | None = None,
    ) -> list[TradeRecord]:
        with self._locked(exclusive=False):
            documents = list(self._read().collection(kind).values())
        records = [from_document(kind, d) for d in documents]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return sorted(records, key=lambda r: (r.created_at, r.id))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def insert(
        self,
        kind: RecordKind,
        record: TradeRecord,
        secret: str | None = None,
    ) -> None:
        with self._locked(exclusive=True):
            document = self._read()
            collection = document.collection(kind)
            if record.id in collection:
                raise StoreConsistencyError(f"{kind.value} id collision: {record.id}")
            collection[record.id] = to_document(kind, record, secret)
            self._write(document)
        logger.debug("Store insert %s %s", kind.value, record.id)

    async def update(
        self,
        kind: RecordKind,
        record: TradeRecord,
        expected_status: Enum | None = None,
    ) -> None:
        await self.update_many([RecordUpdate(kind, record, expected_status)])

    async def update_many(self, updates: Sequence[RecordUpdate]) -> None:
        with self._locked(exclusive=True):
            document = self._read()
            versions = [_replace(document, item) for item in updates]
            self._write(document)
        for item, version in zip(updates, versions):
            item.record.version = version
            logger.debug(
                "Store update %s %s -> %s",
                item.kind.value,
                item.record.id,
                item.record.status.value,
            )

    async def sweep_expired(self, now: int) -> SweepReport:
        counts: dict[str, int] = {}
        with self._locked(exclusive=True):
            document = self._read()
            for kind in RecordKind:
                collection = document.collection(kind)
                changed = 0
                for record_id, stored in list(collection.items()):
                    record = from_document(kind, stored)
                    if apply_expiry(kind, record, now):
                        record.version += 1
                        collection[record_id] = to_document(kind, record, secret_of(kind, stored))
                        changed += 1
                counts[kind.collection] = changed
            if any(counts.values()):
                self._write(document)
        report = SweepReport(**counts)
        if report.total:
            logger.info("Expiry sweep transitioned %d records: %s", report.total, counts)
        return report


def _replace(document: StoreDocument, item: RecordUpdate) -> int:
    collection = document.collection(item.kind)
    stored = collection.get(item.record.id)
    if stored is None:
        raise NotFoundError(item.kind.value, item.record.id)
    if item.expected_status is not None and stored.status != item.expected_status:
        raise StoreConsistencyError(
            f"{item.kind.value} {item.record.id} changed concurrently: "
            f"expected {item.expected_status.value}, found {stored.status.value}"
        )
    if stored.version != item.record.version:
        raise StoreConsistencyError(
            f"{item.kind.value} {item.record.id} changed concurrently: "
            f"read version {item.record.version}, stored version {stored.version}"
        )
    written = replace(item.record, version=stored.version + 1)
    collection[item.record.id] = to_document(item.kind, written, secret_of(item.kind, stored))
    return written.version
