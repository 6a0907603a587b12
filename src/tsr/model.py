"""
Core Record Model Objects

Defines the data structures of a transformer servicing record.

These are pure data classes representing:
    - ClientInfo (one per session)
    - OLTCInfo (on-load tap changer sub-record)
    - TransformerRecord (one per unit)
    - Record (root aggregate)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about storage, spreadsheets or stages
        - Are immutable (frozen); edits produce new values
        - Are fully serializable
        - Represent data, not behavior
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple, Union


class Stage(Enum):
    """The three linear wizard stages, in order."""
    CLIENT_DETAILS = 0
    TRANSFORMER_DATA = 1
    CONFIRMATION = 2


@dataclass(frozen=True)
class ClientInfo:
    """
    Client-level details for one servicing session.

    Properties:
        client_name, client_address, pincode, tr_number:
            Free-text fields, all required before leaving the first stage
        date_of_test:
            Date the tests were carried out
        no_of_transformers:
            Total number of transformers tested
        no_of_transformers_with_oltc:
            How many of them carry an OLTC (always <= total)
        no_of_transformers_without_oltc:
            Derived: total - with_oltc. Never edited directly.

    INVARIANT:
        with_oltc + without_oltc == total, 0 <= with_oltc <= total
        (enforced by the derivation layer, checked by validation)
    """

    client_name: str = ""
    client_address: str = ""
    pincode: str = ""
    tr_number: str = ""
    date_of_test: Optional[date] = None
    no_of_transformers: int = 1
    no_of_transformers_with_oltc: int = 0
    no_of_transformers_without_oltc: int = 1

    def __post_init__(self):
        # A datetime is a date subclass; keep only the calendar day
        if isinstance(self.date_of_test, datetime):
            object.__setattr__(self, "date_of_test", self.date_of_test.date())

    @property
    def counts(self) -> Tuple[int, int]:
        """(total, with_oltc) pair used to decide whether to regenerate."""
        return (self.no_of_transformers, self.no_of_transformers_with_oltc)


@dataclass(frozen=True)
class OLTCInfo:
    """
    Nameplate and test data of an on-load tap changer.

    Owned exclusively by one TransformerRecord.
    """

    oltc_make: str = ""
    oltc_type: str = ""
    oltc_serial_number: str = ""
    oltc_year_of_manufacture: str = ""
    oltc_voltage_hv: str = ""
    oltc_rated_current: str = ""
    oltc_oil_temperature: str = ""
    oltc_electrode_gap: str = ""


@dataclass(frozen=True)
class WithOLTC:
    """The transformer carries an OLTC described by `info`."""
    info: OLTCInfo


@dataclass(frozen=True)
class WithoutOLTC:
    """The transformer has no OLTC."""
    pass


OLTCSlot = Union[WithOLTC, WithoutOLTC]


@dataclass(frozen=True)
class TransformerRecord:
    """
    Test data for a single transformer.

    Properties:
        transformer_id:
            Derived from ordinal position: "Transformer 1", "Transformer 2", ...
        oltc:
            Tagged variant, WithOLTC(info) or WithoutOLTC().
            `has_oltc` and `oltc_info` are read from it, so a flag
            without a payload (or the reverse) cannot exist.

    All measurement fields are kept as strings; empty strings are
    accepted all the way to the terminal stage.
    """

    transformer_id: str
    transformer_make: str = ""
    capacity: str = ""
    serial_number: str = ""
    year_of_manufacture: str = ""
    voltage_hv: str = ""
    voltage_lv: str = ""
    current_hv: str = ""
    current_lv: str = ""
    impedance_voltage: str = ""
    oil_temperature: str = ""
    electrode_gap: str = ""
    bdv_sample_no1: str = ""
    bdv_sample_no2: str = ""
    breakdown_voltage: str = ""
    acidity_value: str = ""
    permissible_limit: str = ""
    oltc: OLTCSlot = field(default_factory=WithoutOLTC)

    @property
    def has_oltc(self) -> bool:
        return isinstance(self.oltc, WithOLTC)

    @property
    def oltc_info(self) -> Optional[OLTCInfo]:
        if isinstance(self.oltc, WithOLTC):
            return self.oltc.info
        return None


@dataclass(frozen=True)
class Record:
    """
    The finalized aggregate: one ClientInfo plus its ordered transformers.

    This is THE unit of persistence and export.
    """

    client_info: ClientInfo
    transformers: Tuple[TransformerRecord, ...] = ()


# Field name tuples, in declaration order. Used by validation, storage
# mapping and export so every layer walks the same columns.
CLIENT_TEXT_FIELDS = ("client_name", "client_address", "pincode", "tr_number")
CLIENT_COUNT_FIELDS = (
    "no_of_transformers",
    "no_of_transformers_with_oltc",
    "no_of_transformers_without_oltc",
)
CLIENT_FIELDS = tuple(f.name for f in fields(ClientInfo))
OLTC_FIELDS = tuple(f.name for f in fields(OLTCInfo))
TRANSFORMER_FIELDS = tuple(f.name for f in fields(TransformerRecord) if f.name != "oltc")
