"""
Supabase-backed persistence gateway.

Writes one client row, then one row per transformer, then one OLTC row
per transformer that carries an OLTC. The REST API offers no
multi-table transaction, so a failure part way through is undone by
deleting every row this save already inserted, before SaveError is
raised. Callers therefore see all-or-nothing.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from tsr.config import ConfigError, Settings
from tsr.model import Record
from tsr.persistence import (
    RecordId,
    RecordSummary,
    Row,
    SaveError,
    client_from_row,
    client_to_row,
    oltc_to_row,
    summary_from_row,
    transformer_from_row,
    transformer_to_row,
)

logger = logging.getLogger(__name__)

# PostgreSQL "invalid_text_representation": the id is not a valid key value
INVALID_TEXT_REPRESENTATION = "22P02"


class SupabaseGateway:
    def __init__(self, client: Client, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or Settings()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseGateway":
        if not settings.supabase_url or not settings.supabase_key:
            raise ConfigError("TSR_SUPABASE_URL and TSR_SUPABASE_KEY must both be set")
        return cls(create_client(settings.supabase_url, settings.supabase_key), settings)

    def _insert(self, table: str, row: Row) -> Row:
        response = self.client.table(table).insert(row).execute()
        if not response.data:
            raise SaveError(f"Insert into {table} returned no row")
        return response.data[0]

    def _delete(self, table: str, ids: List[Any]) -> None:
        if ids:
            self.client.table(table).delete().in_("id", ids).execute()

    def _rollback(self, client_id: Any, transformer_ids: List[Any], oltc_ids: List[Any]) -> None:
        s = self.settings
        try:
            self._delete(s.oltc_table, oltc_ids)
            self._delete(s.transformers_table, transformer_ids)
            if client_id is not None:
                self._delete(s.clients_table, [client_id])
        except Exception:
            logger.exception(
                "Rollback incomplete: client %s, %d transformer rows, %d OLTC rows may remain",
                client_id, len(transformer_ids), len(oltc_ids),
            )

    def save(self, record: Record) -> RecordId:
        s = self.settings
        client_id = None
        transformer_ids: List[Any] = []
        oltc_ids: List[Any] = []
        try:
            client_id = self._insert(s.clients_table, client_to_row(record.client_info))["id"]
            for t in record.transformers:
                t_row = self._insert(s.transformers_table, transformer_to_row(t, client_id))
                transformer_ids.append(t_row["id"])
                if t.oltc_info is not None:
                    o_row = self._insert(s.oltc_table, oltc_to_row(t.oltc_info, t_row["id"]))
                    oltc_ids.append(o_row["id"])
        except Exception as e:
            logger.warning("Saving record to Supabase failed, rolling back: %s", e)
            self._rollback(client_id, transformer_ids, oltc_ids)
            if isinstance(e, SaveError):
                raise
            raise SaveError(f"Could not save record: {e}") from e

        logger.info("Saved record %s with %d transformers", client_id, len(transformer_ids))
        return str(client_id)

    def list(self) -> List[RecordSummary]:
        response = (
            self.client.table(self.settings.clients_table)
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
        return [summary_from_row(row) for row in response.data or []]

    def get(self, record_id: RecordId) -> Optional[Record]:
        s = self.settings
        try:
            clients = self.client.table(s.clients_table).select("*").eq("id", record_id).execute()
        except APIError as e:
            if e.code == INVALID_TEXT_REPRESENTATION:
                logger.debug("Malformed record id %r: %s", record_id, e.message)
                return None
            raise
        if not clients.data:
            return None
        client_row = clients.data[0]

        transformers = (
            self.client.table(s.transformers_table)
            .select("*")
            .eq("client_id", client_row["id"])
            .order("id")
            .execute()
        ).data or []

        oltc_by_transformer = {}
        with_oltc = [row["id"] for row in transformers if row.get("has_oltc")]
        if with_oltc:
            oltc_rows = (
                self.client.table(s.oltc_table).select("*").in_("transformer_id", with_oltc).execute()
            ).data or []
            oltc_by_transformer = {row["transformer_id"]: row for row in oltc_rows}

        return Record(
            client_info=client_from_row(client_row),
            transformers=tuple(
                transformer_from_row(row, oltc_by_transformer.get(row["id"]))
                for row in transformers
            ),
        )
