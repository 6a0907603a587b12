"""
Tests for serialization and deserialization of Record objects.

These tests ensure lossless JSON/YAML round-trip using the explicit
serialization functions in `tsr.serialization`, and that the exported
document uses the mixed-case field names of the servicing forms.
"""

import json
from dataclasses import replace
from datetime import date, datetime

import pytest
from tsr.derivation import generate_transformer_sequence
from tsr.model import ClientInfo, Record, WithoutOLTC
from tsr.serialization import (
    SerializationError,
    record_from_dict,
    record_from_json,
    record_from_yaml,
    record_to_dict,
    record_to_json,
    record_to_yaml,
)


def build_sample_record() -> Record:
    info = ClientInfo(
        client_name="Riverside Textiles",
        client_address="12 Mill Road",
        pincode="641001",
        tr_number="TR-2041",
        date_of_test=date(2024, 5, 1),
        no_of_transformers=3,
        no_of_transformers_with_oltc=2,
        no_of_transformers_without_oltc=1,
    )
    transformers = list(generate_transformer_sequence(3, 2, date(2024, 5, 1)))
    transformers[0] = replace(transformers[0], transformer_make="Kirloskar", capacity="500 kVA")
    return Record(client_info=info, transformers=tuple(transformers))


def test_json_roundtrip():
    record = build_sample_record()
    restored = record_from_json(record_to_json(record))
    assert restored == record


def test_yaml_roundtrip():
    record = build_sample_record()
    restored = record_from_yaml(record_to_yaml(record))
    assert restored == record


def test_dict_uses_form_field_names():
    d = record_to_dict(build_sample_record())
    assert d["clientInfo"]["clientName"] == "Riverside Textiles"
    assert d["clientInfo"]["noOfTransformersWithOLTC"] == 2
    assert d["clientInfo"]["dateOfTest"] == "2024-05-01"
    first = d["transformers"][0]
    assert first["transformerId"] == "Transformer 1"
    assert first["hasOLTC"] is True
    assert first["oltcInfo"]["oltcVoltageHV"] == "11000"
    assert first["voltageHV"] == "11000"
    assert first["bdvSampleNo1"] == "STOOD 40 kV PER MINUTE"


def test_oltc_absent_when_not_fitted():
    d = record_to_dict(build_sample_record())
    assert d["transformers"][2]["hasOLTC"] is False
    assert "oltcInfo" not in d["transformers"][2]


def test_json_is_two_space_indented():
    text = record_to_json(build_sample_record())
    assert text.startswith('{\n  "clientInfo": {\n    "clientName"')


def test_accepts_timestamp_dates():
    d = record_to_dict(build_sample_record())
    d["clientInfo"]["dateOfTest"] = "2024-05-01T00:00:00.000Z"
    assert record_from_dict(d).client_info.date_of_test == date(2024, 5, 1)


def test_datetime_round_trip():
    record = build_sample_record()
    d = record_to_dict(record)
    assert d["clientInfo"]["dateOfTest"] == "2024-05-01"
    d["clientInfo"]["dateOfTest"] = datetime(2024, 5, 1, 10, 30)
    assert record_from_dict(d) == record


def test_has_oltc_false_ignores_stray_payload():
    d = record_to_dict(build_sample_record())
    d["transformers"][0]["hasOLTC"] = False
    restored = record_from_dict(d)
    assert restored.transformers[0].oltc == WithoutOLTC()


def test_missing_client_section():
    with pytest.raises(SerializationError):
        record_from_dict({"transformers": []})


def test_invalid_json():
    with pytest.raises(SerializationError):
        record_from_json("{not json")


def test_malformed_date():
    d = record_to_dict(build_sample_record())
    d["clientInfo"]["dateOfTest"] = "May first"
    with pytest.raises(SerializationError):
        record_from_json(json.dumps(d))
