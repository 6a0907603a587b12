"""
Derivation Engine

Dependent fields and default sub-records.

Pure functions that keep the counts, the transformer sequence and the
OLTC sub-records consistent so callers never do the arithmetic.

Nothing here touches wizard stages or storage.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import replace
from datetime import date
from typing import List, Optional, Tuple

from tsr.model import ClientInfo, OLTCInfo, TransformerRecord, WithOLTC, WithoutOLTC
from tsr.validation import Violation, ViolationKind

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


def parse_count(raw: object) -> int:
    """
    Coerce a raw count input to an int.

    Integers pass through and finite floats are truncated. Strings
    yield their leading base-10 integer ("3.5" -> 3, "12abc" -> 12).
    Anything else (empty string, garbage, None, inf, nan) becomes 0.
    """
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if math.isfinite(raw) else 0
    if isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        return int(match.group(1)) if match else 0
    return 0


def derive_transformer_counts(total: int, with_oltc_raw: int) -> Tuple[int, int]:
    """
    Clamp the with-OLTC count into [0, total] and derive without-OLTC.

    Never fails: out-of-range values are clamped, negatives become zero.

    Returns:
        (with_oltc, without_oltc)
    """
    total = max(total, 0)
    with_oltc = min(max(with_oltc_raw, 0), total)
    return with_oltc, total - with_oltc


def default_client_info(today: Optional[date] = None) -> ClientInfo:
    today = today or date.today()
    return ClientInfo(date_of_test=today)


def default_oltc_info(today: Optional[date] = None) -> OLTCInfo:
    """Fixed starting configuration for a newly attached OLTC."""
    today = today or date.today()
    return OLTCInfo(
        oltc_make="OLG",
        oltc_year_of_manufacture=str(today.year),
        oltc_voltage_hv="11000",
        oltc_oil_temperature="32",
        oltc_electrode_gap="2.5",
    )


def default_transformer(position: int, has_oltc: bool = False,
                        today: Optional[date] = None) -> TransformerRecord:
    """
    Build the default record for the transformer at `position` (0-based).

    The identifier is derived from the position: "Transformer {position + 1}".
    """
    today = today or date.today()
    return TransformerRecord(
        transformer_id=f"Transformer {position + 1}",
        year_of_manufacture=str(today.year),
        voltage_hv="11000",
        voltage_lv="433",
        oil_temperature="32",
        electrode_gap="2.5",
        bdv_sample_no1="STOOD 40 kV PER MINUTE",
        bdv_sample_no2="STOOD 40 kV PER MINUTE",
        breakdown_voltage="BROKE AT 60 kV",
        permissible_limit="0.30",
        oltc=WithOLTC(default_oltc_info(today)) if has_oltc else WithoutOLTC(),
    )


def generate_transformer_sequence(total: int, with_oltc: int,
                                  today: Optional[date] = None) -> Tuple[TransformerRecord, ...]:
    """
    Produce a fresh sequence of `total` default transformers.

    Positions 0..with_oltc-1 carry a default OLTC, the rest carry none.

    IMPORTANT:
        This REPLACES any existing sequence. Prior per-transformer
        edits are not merged in.
    """
    today = today or date.today()
    with_oltc, _ = derive_transformer_counts(total, with_oltc)
    return tuple(
        default_transformer(i, has_oltc=i < with_oltc, today=today)
        for i in range(max(total, 0))
    )


def set_has_oltc(record: TransformerRecord, flag: bool, position: int, locked_count: int,
                 today: Optional[date] = None) -> Tuple[TransformerRecord, List[Violation]]:
    """
    Attach or detach the OLTC sub-record of one transformer.

    Args:
        record: The transformer to change
        flag: True to attach, False to detach
        position: 0-based position of `record` in its sequence
        locked_count: Number of leading positions that must keep their OLTC

    Returns:
        (new_record, violations). When the change is rejected the
        original record is returned unchanged with a LOCKED violation.
    """
    if not flag and position < locked_count:
        logger.debug("Refusing to detach OLTC from locked %s", record.transformer_id)
        return record, [Violation(
            f"transformers[{position}].has_oltc",
            ViolationKind.LOCKED,
            f"{record.transformer_id} is one of the first {locked_count} transformers with OLTC",
        )]

    if flag:
        if record.has_oltc:
            return record, []
        return replace(record, oltc=WithOLTC(default_oltc_info(today))), []

    return replace(record, oltc=WithoutOLTC()), []
