"""
Persistence Gateway

The storage contract the wizard's caller relies on:

    save(record) -> RecordId        atomic: all rows or nothing
    list()       -> [RecordSummary] newest first
    get(id)      -> Record | None   None means "not found"

Stored shape:
    clients       one row per Record
    transformers  one row per transformer, client_id -> clients.id
    oltc_info     one row per transformer with an OLTC,
                  transformer_id -> transformers.id

Field names cross the storage boundary in lower-case underscore form,
which is also the attribute naming of the model.

This module holds the row mapping, the in-memory gateway used by tests
and demos, and the shared error type. Remote backends live in
tsr.backends.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from tsr.model import (
    CLIENT_FIELDS,
    OLTC_FIELDS,
    TRANSFORMER_FIELDS,
    ClientInfo,
    OLTCInfo,
    Record,
    TransformerRecord,
    WithOLTC,
    WithoutOLTC,
)
from tsr.serialization import date_from_str, date_to_str

logger = logging.getLogger(__name__)

RecordId = str
Row = Dict[str, Any]


class SaveError(Exception):
    """Raised when a Record could not be stored. Nothing is left behind."""
    pass


@dataclass(frozen=True)
class RecordSummary:
    """One line of the records list."""

    id: RecordId
    client_name: str
    tr_number: str
    date_of_test: Optional[date]
    no_of_transformers: int
    created_at: Optional[str] = None


class PersistenceGateway(Protocol):
    def save(self, record: Record) -> RecordId:
        raise NotImplementedError

    def list(self) -> List[RecordSummary]:
        raise NotImplementedError

    def get(self, record_id: RecordId) -> Optional[Record]:
        raise NotImplementedError


# =========================================================================
# ROW MAPPING
# =========================================================================

def client_to_row(c: ClientInfo) -> Row:
    row = {name: getattr(c, name) for name in CLIENT_FIELDS}
    row["date_of_test"] = date_to_str(c.date_of_test)
    return row


def client_from_row(row: Row) -> ClientInfo:
    values = {name: row[name] for name in CLIENT_FIELDS if name in row}
    values["date_of_test"] = date_from_str(row.get("date_of_test"))
    return ClientInfo(**values)


def transformer_to_row(t: TransformerRecord, client_id: Any) -> Row:
    row: Row = {"client_id": client_id, "has_oltc": t.has_oltc}
    row.update({name: getattr(t, name) for name in TRANSFORMER_FIELDS})
    return row


def oltc_to_row(o: OLTCInfo, transformer_row_id: Any) -> Row:
    row: Row = {"transformer_id": transformer_row_id}
    row.update({name: getattr(o, name) for name in OLTC_FIELDS})
    return row


def oltc_from_row(row: Row) -> OLTCInfo:
    return OLTCInfo(**{name: row.get(name) or "" for name in OLTC_FIELDS})


def transformer_from_row(row: Row, oltc_row: Optional[Row]) -> TransformerRecord:
    values = {name: row.get(name) or "" for name in TRANSFORMER_FIELDS}
    if row.get("has_oltc") and oltc_row is not None:
        values["oltc"] = WithOLTC(oltc_from_row(oltc_row))
    else:
        values["oltc"] = WithoutOLTC()
    return TransformerRecord(**values)


def summary_from_row(row: Row) -> RecordSummary:
    return RecordSummary(
        id=str(row["id"]),
        client_name=row.get("client_name", ""),
        tr_number=row.get("tr_number", ""),
        date_of_test=date_from_str(row.get("date_of_test")),
        no_of_transformers=row.get("no_of_transformers", 0),
        created_at=row.get("created_at"),
    )


# =========================================================================
# IN-MEMORY GATEWAY
# =========================================================================

class InMemoryGateway:
    """
    Process-local gateway with the same table layout as the remote store.

    All rows for a Record are built before any table is touched, so a
    failure while building leaves the tables exactly as they were.
    """

    def __init__(self):
        self.clients: Dict[RecordId, Row] = {}
        self.transformers: Dict[int, Row] = {}
        self.oltc_info: Dict[int, Row] = {}
        self._ids = itertools.count(1)

    def _next_id(self) -> int:
        return next(self._ids)

    def _build_rows(self, record: Record):
        client_id = str(self._next_id())
        client_row = client_to_row(record.client_info)
        client_row["id"] = client_id
        client_row["created_at"] = datetime.now(timezone.utc).isoformat()

        transformer_rows, oltc_rows = [], []
        for t in record.transformers:
            t_row = transformer_to_row(t, client_id)
            t_row["id"] = self._next_id()
            transformer_rows.append(t_row)
            if t.oltc_info is not None:
                o_row = oltc_to_row(t.oltc_info, t_row["id"])
                o_row["id"] = self._next_id()
                oltc_rows.append(o_row)
        return client_row, transformer_rows, oltc_rows

    def save(self, record: Record) -> RecordId:
        try:
            client_row, transformer_rows, oltc_rows = self._build_rows(record)
        except Exception as e:
            logger.warning("In-memory save failed: %s", e)
            raise SaveError(f"Could not save record: {e}") from e

        self.clients[client_row["id"]] = client_row
        self.transformers.update({row["id"]: row for row in transformer_rows})
        self.oltc_info.update({row["id"]: row for row in oltc_rows})
        logger.info("Saved record %s with %d transformers", client_row["id"], len(transformer_rows))
        return client_row["id"]

    def list(self) -> List[RecordSummary]:
        rows = sorted(self.clients.values(), key=lambda r: int(r["id"]), reverse=True)
        return [summary_from_row(row) for row in rows]

    def get(self, record_id: RecordId) -> Optional[Record]:
        client_row = self.clients.get(str(record_id))
        if client_row is None:
            return None
        oltc_by_transformer = {row["transformer_id"]: row for row in self.oltc_info.values()}
        transformer_rows = sorted(
            (row for row in self.transformers.values() if row["client_id"] == client_row["id"]),
            key=lambda r: r["id"],
        )
        return Record(
            client_info=client_from_row(client_row),
            transformers=tuple(
                transformer_from_row(row, oltc_by_transformer.get(row["id"]))
                for row in transformer_rows
            ),
        )
