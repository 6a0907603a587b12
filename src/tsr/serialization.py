"""
Serialization helpers for Record objects.

Provides lossless JSON/YAML round-trip via intermediate dict representation.
Exported documents use the mixed-case field names of the servicing
forms (clientName, noOfTransformersWithOLTC, hasOLTC, oltcInfo, ...),
with the OLTC sub-record kept nested.

This module intentionally keeps serialization structure stable and explicit.
"""
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Dict

import yaml

from tsr.model import (
    ClientInfo,
    OLTCInfo,
    Record,
    TransformerRecord,
    WithOLTC,
    WithoutOLTC,
)


class SerializationError(Exception):
    """Raised when a document cannot be turned back into a Record."""
    pass


CLIENT_KEYS = {
    "client_name": "clientName",
    "client_address": "clientAddress",
    "pincode": "pincode",
    "tr_number": "trNumber",
    "date_of_test": "dateOfTest",
    "no_of_transformers": "noOfTransformers",
    "no_of_transformers_with_oltc": "noOfTransformersWithOLTC",
    "no_of_transformers_without_oltc": "noOfTransformersWithoutOLTC",
}

OLTC_KEYS = {
    "oltc_make": "oltcMake",
    "oltc_type": "oltcType",
    "oltc_serial_number": "oltcSerialNumber",
    "oltc_year_of_manufacture": "oltcYearOfManufacture",
    "oltc_voltage_hv": "oltcVoltageHV",
    "oltc_rated_current": "oltcRatedCurrent",
    "oltc_oil_temperature": "oltcOilTemperature",
    "oltc_electrode_gap": "oltcElectrodeGap",
}

TRANSFORMER_KEYS = {
    "transformer_id": "transformerId",
    "transformer_make": "transformerMake",
    "capacity": "capacity",
    "serial_number": "serialNumber",
    "year_of_manufacture": "yearOfManufacture",
    "voltage_hv": "voltageHV",
    "voltage_lv": "voltageLV",
    "current_hv": "currentHV",
    "current_lv": "currentLV",
    "impedance_voltage": "impedanceVoltage",
    "oil_temperature": "oilTemperature",
    "electrode_gap": "electrodeGap",
    "bdv_sample_no1": "bdvSampleNo1",
    "bdv_sample_no2": "bdvSampleNo2",
    "breakdown_voltage": "breakdownVoltage",
    "acidity_value": "acidityValue",
    "permissible_limit": "permissibleLimit",
}


def date_to_str(d: date | None) -> str | None:
    if d is None:
        return None
    return d.isoformat()


def date_from_str(s: Any) -> date | None:
    if s is None or s == "":
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    # Accept full timestamps ("2024-05-01T00:00:00.000Z") as well as plain dates
    return date.fromisoformat(str(s)[:10])


def client_info_to_dict(c: ClientInfo) -> Dict[str, Any]:
    d = {key: getattr(c, attr) for attr, key in CLIENT_KEYS.items()}
    d["dateOfTest"] = date_to_str(c.date_of_test)
    return d


def client_info_from_dict(d: Dict[str, Any]) -> ClientInfo:
    values = {attr: d[key] for attr, key in CLIENT_KEYS.items() if key in d}
    values["date_of_test"] = date_from_str(d.get("dateOfTest"))
    return ClientInfo(**values)


def oltc_info_to_dict(o: OLTCInfo) -> Dict[str, Any]:
    return {key: getattr(o, attr) for attr, key in OLTC_KEYS.items()}


def oltc_info_from_dict(d: Dict[str, Any]) -> OLTCInfo:
    return OLTCInfo(**{attr: d.get(key, "") for attr, key in OLTC_KEYS.items()})


def transformer_to_dict(t: TransformerRecord) -> Dict[str, Any]:
    d: Dict[str, Any] = {"transformerId": t.transformer_id, "hasOLTC": t.has_oltc}
    for attr, key in TRANSFORMER_KEYS.items():
        d[key] = getattr(t, attr)
    if t.oltc_info is not None:
        d["oltcInfo"] = oltc_info_to_dict(t.oltc_info)
    return d


def transformer_from_dict(d: Dict[str, Any]) -> TransformerRecord:
    values = {attr: d.get(key, "") for attr, key in TRANSFORMER_KEYS.items()}
    if d.get("hasOLTC"):
        values["oltc"] = WithOLTC(oltc_info_from_dict(d.get("oltcInfo") or {}))
    else:
        values["oltc"] = WithoutOLTC()
    return TransformerRecord(**values)


def record_to_dict(r: Record) -> Dict[str, Any]:
    return {
        "clientInfo": client_info_to_dict(r.client_info),
        "transformers": [transformer_to_dict(t) for t in r.transformers],
    }


def record_from_dict(d: Dict[str, Any]) -> Record:
    if not isinstance(d, dict) or "clientInfo" not in d:
        raise SerializationError("Document has no clientInfo section")
    try:
        return Record(
            client_info=client_info_from_dict(d["clientInfo"]),
            transformers=tuple(transformer_from_dict(t) for t in d.get("transformers", [])),
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise SerializationError(f"Malformed record document: {e}") from e


def record_to_json(r: Record) -> str:
    return json.dumps(record_to_dict(r), indent=2)


def record_from_json(s: str | bytes) -> Record:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Invalid JSON: {e}") from e
    return record_from_dict(d)


def record_to_yaml(r: Record) -> str:
    return yaml.safe_dump(record_to_dict(r), sort_keys=False)


def record_from_yaml(s: str | bytes) -> Record:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise SerializationError(f"Invalid YAML: {e}") from e
    return record_from_dict(d)
