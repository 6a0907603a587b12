"""
Tests for the Supabase gateway against an in-process fake of the
supabase client's table/query interface.
"""

import itertools
from dataclasses import replace
from datetime import date

import pytest
from postgrest.exceptions import APIError
from tsr.backends import supabase_gateway
from tsr.backends.supabase_gateway import SupabaseGateway
from tsr.config import ConfigError, Settings
from tsr.derivation import generate_transformer_sequence
from tsr.model import ClientInfo, Record
from tsr.persistence import SaveError


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.ordering = None
        self.error = None

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def select(self, columns="*"):
        self.op = "select"
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        # Key columns are bigint, like the real tables
        if column == "id" and not str(value).isdigit():
            self.error = APIError({
                "code": "22P02",
                "message": f"invalid input syntax for type bigint: \"{value}\"",
                "hint": None,
                "details": None,
            })
        self.filters.append(lambda r: str(r.get(column)) == str(value))
        return self

    def in_(self, column, values):
        wanted = {str(v) for v in values}
        self.filters.append(lambda r: str(r.get(column)) in wanted)
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        if self.error is not None:
            raise self.error
        if self.table in self.db.broken_tables:
            raise APIError({"code": "PGRST301", "message": "JWT expired", "hint": None, "details": None})
        rows = self.db.tables[self.table]
        if self.op == "insert":
            return FakeResponse([self.db.insert(self.table, self.payload)])
        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse([])
        selected = [dict(r) for r in rows if self._matches(r)]
        if self.ordering:
            column, desc = self.ordering
            selected.sort(key=lambda r: r[column], reverse=desc)
        return FakeResponse(selected)


class FakeSupabase:
    def __init__(self, fail_on_table=None):
        self.tables = {"clients": [], "transformers": [], "oltc_info": []}
        self.fail_on_table = fail_on_table
        self.broken_tables = set()
        self._ids = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def insert(self, table, row):
        if table == self.fail_on_table:
            raise RuntimeError(f"insert into {table} violates a constraint")
        stored = dict(row, id=next(self._ids))
        if table == "clients":
            stored["created_at"] = f"2024-05-01T10:00:{stored['id']:02d}+00:00"
        self.tables[table].append(stored)
        return dict(stored)


def build_sample_record(name: str = "Riverside Textiles") -> Record:
    info = ClientInfo(
        client_name=name,
        client_address="12 Mill Road",
        pincode="641001",
        tr_number="TR-2041",
        date_of_test=date(2024, 5, 1),
        no_of_transformers=3,
        no_of_transformers_with_oltc=2,
        no_of_transformers_without_oltc=1,
    )
    transformers = list(generate_transformer_sequence(3, 2, date(2024, 5, 1)))
    transformers[2] = replace(transformers[2], capacity="250 kVA")
    return Record(client_info=info, transformers=tuple(transformers))


class TestSave:
    def test_save_writes_all_tables(self):
        fake = FakeSupabase()
        gateway = SupabaseGateway(fake)
        record_id = gateway.save(build_sample_record())
        assert record_id == "1"
        assert len(fake.tables["clients"]) == 1
        assert len(fake.tables["transformers"]) == 3
        assert len(fake.tables["oltc_info"]) == 2
        assert all(row["client_id"] == 1 for row in fake.tables["transformers"])
        transformer_ids = {row["id"] for row in fake.tables["transformers"] if row["has_oltc"]}
        assert {row["transformer_id"] for row in fake.tables["oltc_info"]} == transformer_ids

    def test_failure_rolls_back(self):
        fake = FakeSupabase(fail_on_table="oltc_info")
        gateway = SupabaseGateway(fake)
        with pytest.raises(SaveError):
            gateway.save(build_sample_record())
        assert fake.tables == {"clients": [], "transformers": [], "oltc_info": []}

    def test_failure_on_first_insert(self):
        fake = FakeSupabase(fail_on_table="clients")
        with pytest.raises(SaveError):
            SupabaseGateway(fake).save(build_sample_record())
        assert fake.tables["clients"] == []

    def test_custom_table_names(self):
        fake = FakeSupabase()
        fake.tables = {"c": [], "t": [], "o": []}
        settings = Settings(clients_table="c", transformers_table="t", oltc_table="o")
        SupabaseGateway(fake, settings).save(build_sample_record())
        assert len(fake.tables["t"]) == 3


class TestRead:
    def test_get_round_trip(self):
        gateway = SupabaseGateway(FakeSupabase())
        record = build_sample_record()
        record_id = gateway.save(record)
        assert gateway.get(record_id) == record

    def test_get_unknown_is_none(self):
        assert SupabaseGateway(FakeSupabase()).get("99") is None

    def test_get_malformed_id_is_none(self):
        gateway = SupabaseGateway(FakeSupabase())
        gateway.save(build_sample_record())
        assert gateway.get("not-a-number") is None

    def test_get_other_api_errors_propagate(self):
        fake = FakeSupabase()
        fake.broken_tables.add("clients")
        with pytest.raises(APIError):
            SupabaseGateway(fake).get("1")

    def test_list_newest_first(self):
        gateway = SupabaseGateway(FakeSupabase())
        first = gateway.save(build_sample_record("First"))
        second = gateway.save(build_sample_record("Second"))
        summaries = gateway.list()
        assert [s.id for s in summaries] == [second, first]
        assert summaries[1].client_name == "First"
        assert summaries[1].no_of_transformers == 3


class TestFromSettings:
    def test_missing_credentials(self):
        with pytest.raises(ConfigError):
            SupabaseGateway.from_settings(Settings(supabase_url="https://example.supabase.co"))

    def test_creates_client(self, monkeypatch):
        calls = []

        def fake_create_client(url, key):
            calls.append((url, key))
            return FakeSupabase()

        monkeypatch.setattr(supabase_gateway, "create_client", fake_create_client)
        settings = Settings(supabase_url="https://example.supabase.co", supabase_key="anon")
        gateway = SupabaseGateway.from_settings(settings)
        assert calls == [("https://example.supabase.co", "anon")]
        assert gateway.settings is settings
