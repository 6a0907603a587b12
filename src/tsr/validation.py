"""
Record Validation

Structural and cross-field checks.

Validators never raise. They return a list of Violation objects so the
wizard can decide whether a transition is blocked and the caller can
decide how to surface the problems.

An empty list means "valid".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Sequence

from tsr.model import (
    CLIENT_TEXT_FIELDS,
    OLTC_FIELDS,
    TRANSFORMER_FIELDS,
    ClientInfo,
    OLTCInfo,
    TransformerRecord,
    WithOLTC,
    WithoutOLTC,
)


class ViolationKind(Enum):
    """Taxonomy of everything that can block an edit or a transition."""
    REQUIRED = "required"
    OUT_OF_RANGE = "out_of_range"
    INCONSISTENT_COUNTS = "inconsistent_counts"
    MISSING_FIELD = "missing_field"
    INVALID_TYPE = "invalid_type"
    SEQUENCE_LENGTH = "sequence_length"
    LOCKED = "locked"
    READ_ONLY = "read_only"
    UNKNOWN_FIELD = "unknown_field"
    WRONG_STAGE = "wrong_stage"
    TERMINAL_STAGE = "terminal_stage"
    NO_SUCH_TRANSFORMER = "no_such_transformer"


@dataclass(frozen=True)
class Violation:
    """
    A single field-level or cross-field problem.

    Properties:
        field: Dotted path of the offending field, e.g. "client_name"
               or "transformers[2].oltc_info"
        kind: ViolationKind
        message: Human-readable explanation
    """

    field: str
    kind: ViolationKind
    message: str


def validate_client_info(info: ClientInfo) -> List[Violation]:
    """
    Check the client details before leaving the first stage.

    Checks for:
    - Non-empty free-text fields (whitespace counts as empty)
    - A test date
    - At least one transformer
    - with_oltc within [0, total]
    - with_oltc + without_oltc == total
    """
    violations: List[Violation] = []

    for name in CLIENT_TEXT_FIELDS:
        value = getattr(info, name)
        if not isinstance(value, str) or not value.strip():
            violations.append(Violation(name, ViolationKind.REQUIRED, f"{name} is required"))

    if not isinstance(info.date_of_test, date):
        violations.append(Violation("date_of_test", ViolationKind.REQUIRED, "date_of_test is required"))

    total = info.no_of_transformers
    with_oltc = info.no_of_transformers_with_oltc
    without_oltc = info.no_of_transformers_without_oltc

    if total < 1:
        violations.append(Violation(
            "no_of_transformers", ViolationKind.OUT_OF_RANGE,
            f"at least one transformer is required, got {total}",
        ))

    if with_oltc < 0 or with_oltc > max(total, 0):
        violations.append(Violation(
            "no_of_transformers_with_oltc", ViolationKind.OUT_OF_RANGE,
            f"transformers with OLTC must be between 0 and {total}, got {with_oltc}",
        ))

    if with_oltc + without_oltc != total:
        violations.append(Violation(
            "no_of_transformers_without_oltc", ViolationKind.INCONSISTENT_COUNTS,
            f"{with_oltc} with OLTC + {without_oltc} without OLTC != {total} total",
        ))

    return violations


def _validate_oltc_info(info: object, prefix: str) -> List[Violation]:
    if not isinstance(info, OLTCInfo):
        return [Violation(prefix, ViolationKind.INVALID_TYPE, "OLTC payload is not an OLTCInfo")]
    violations = []
    for name in OLTC_FIELDS:
        if not isinstance(getattr(info, name, None), str):
            violations.append(Violation(
                f"{prefix}.{name}", ViolationKind.MISSING_FIELD, f"{name} must be a string",
            ))
    return violations


def validate_transformer_record(record: TransformerRecord, prefix: str = "") -> List[Violation]:
    """
    Structural completeness of one transformer.

    Every field must be present as a string. Empty strings are accepted:
    this check is about shape, not content.
    """
    violations: List[Violation] = []
    base = f"{prefix}." if prefix else ""

    for name in TRANSFORMER_FIELDS:
        if not isinstance(getattr(record, name, None), str):
            violations.append(Violation(
                f"{base}{name}", ViolationKind.MISSING_FIELD, f"{name} must be a string",
            ))

    if isinstance(record.transformer_id, str) and not record.transformer_id.strip():
        violations.append(Violation(
            f"{base}transformer_id", ViolationKind.REQUIRED, "transformer_id is required",
        ))

    if isinstance(record.oltc, WithOLTC):
        violations.extend(_validate_oltc_info(record.oltc.info, f"{base}oltc_info"))
    elif not isinstance(record.oltc, WithoutOLTC):
        violations.append(Violation(
            f"{base}oltc", ViolationKind.INVALID_TYPE, "oltc must be WithOLTC or WithoutOLTC",
        ))

    return violations


def validate_transformer_sequence(
    info: ClientInfo, transformers: Sequence[TransformerRecord]
) -> List[Violation]:
    """
    Check the transformer sequence against the client counts.

    - Exactly `no_of_transformers` entries
    - The first `no_of_transformers_with_oltc` entries carry an OLTC
    - Every entry is structurally complete
    """
    violations: List[Violation] = []

    if len(transformers) != info.no_of_transformers:
        violations.append(Violation(
            "transformers", ViolationKind.SEQUENCE_LENGTH,
            f"expected {info.no_of_transformers} transformers, got {len(transformers)}",
        ))

    for index, record in enumerate(transformers):
        prefix = f"transformers[{index}]"
        if index < info.no_of_transformers_with_oltc and not record.has_oltc:
            violations.append(Violation(
                f"{prefix}.has_oltc", ViolationKind.LOCKED,
                f"{record.transformer_id} is counted as having an OLTC",
            ))
        violations.extend(validate_transformer_record(record, prefix))

    return violations
