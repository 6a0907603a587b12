"""
Tests for record validation.

Validators must report problems as Violation lists and never raise.
"""

from dataclasses import replace
from datetime import date

from tsr.derivation import generate_transformer_sequence
from tsr.model import ClientInfo, OLTCInfo, TransformerRecord, WithOLTC, WithoutOLTC
from tsr.validation import (
    ViolationKind,
    validate_client_info,
    validate_transformer_record,
    validate_transformer_sequence,
)

TODAY = date(2024, 5, 1)


def build_client(**overrides) -> ClientInfo:
    values = dict(
        client_name="Riverside Textiles",
        client_address="12 Mill Road",
        pincode="641001",
        tr_number="TR-2041",
        date_of_test=TODAY,
        no_of_transformers=3,
        no_of_transformers_with_oltc=2,
        no_of_transformers_without_oltc=1,
    )
    values.update(overrides)
    return ClientInfo(**values)


def kinds(violations):
    return {(v.field, v.kind) for v in violations}


class TestValidateClientInfo:
    def test_valid(self):
        assert validate_client_info(build_client()) == []

    def test_empty_name_is_required(self):
        violations = validate_client_info(build_client(client_name=""))
        assert kinds(violations) == {("client_name", ViolationKind.REQUIRED)}

    def test_whitespace_counts_as_empty(self):
        violations = validate_client_info(build_client(tr_number="   "))
        assert ("tr_number", ViolationKind.REQUIRED) in kinds(violations)

    def test_all_text_fields_reported(self):
        """Defaults leave every free-text field empty."""
        violations = validate_client_info(ClientInfo(date_of_test=TODAY))
        assert {v.field for v in violations} == {"client_name", "client_address", "pincode", "tr_number"}

    def test_missing_date(self):
        violations = validate_client_info(build_client(date_of_test=None))
        assert ("date_of_test", ViolationKind.REQUIRED) in kinds(violations)

    def test_zero_transformers(self):
        violations = validate_client_info(build_client(
            no_of_transformers=0, no_of_transformers_with_oltc=0, no_of_transformers_without_oltc=0,
        ))
        assert kinds(violations) == {("no_of_transformers", ViolationKind.OUT_OF_RANGE)}

    def test_with_oltc_above_total(self):
        violations = validate_client_info(build_client(
            no_of_transformers_with_oltc=4, no_of_transformers_without_oltc=-1,
        ))
        assert ("no_of_transformers_with_oltc", ViolationKind.OUT_OF_RANGE) in kinds(violations)

    def test_inconsistent_counts(self):
        violations = validate_client_info(build_client(no_of_transformers_without_oltc=3))
        assert kinds(violations) == {("no_of_transformers_without_oltc", ViolationKind.INCONSISTENT_COUNTS)}


class TestValidateTransformerRecord:
    def test_empty_strings_are_accepted(self):
        """Only the shape is checked, not the content."""
        assert validate_transformer_record(TransformerRecord(transformer_id="Transformer 1")) == []

    def test_non_string_field(self):
        record = TransformerRecord(transformer_id="Transformer 1", capacity=None)
        violations = validate_transformer_record(record)
        assert kinds(violations) == {("capacity", ViolationKind.MISSING_FIELD)}

    def test_blank_identifier(self):
        violations = validate_transformer_record(TransformerRecord(transformer_id=""))
        assert ("transformer_id", ViolationKind.REQUIRED) in kinds(violations)

    def test_bad_oltc_payload(self):
        record = TransformerRecord(transformer_id="Transformer 1", oltc=WithOLTC(info="OLG"))
        violations = validate_transformer_record(record, "transformers[0]")
        assert kinds(violations) == {("transformers[0].oltc_info", ViolationKind.INVALID_TYPE)}

    def test_bad_oltc_slot(self):
        record = TransformerRecord(transformer_id="Transformer 1", oltc=None)
        violations = validate_transformer_record(record)
        assert ("oltc", ViolationKind.INVALID_TYPE) in kinds(violations)

    def test_oltc_field_missing(self):
        record = TransformerRecord(
            transformer_id="Transformer 1", oltc=WithOLTC(OLTCInfo(oltc_type=None)),
        )
        violations = validate_transformer_record(record)
        assert kinds(violations) == {("oltc_info.oltc_type", ViolationKind.MISSING_FIELD)}


class TestValidateTransformerSequence:
    def test_generated_sequence_is_valid(self):
        info = build_client()
        assert validate_transformer_sequence(info, generate_transformer_sequence(3, 2, TODAY)) == []

    def test_wrong_length(self):
        violations = validate_transformer_sequence(build_client(), generate_transformer_sequence(2, 2, TODAY))
        assert ("transformers", ViolationKind.SEQUENCE_LENGTH) in kinds(violations)

    def test_locked_position_without_oltc(self):
        sequence = list(generate_transformer_sequence(3, 2, TODAY))
        sequence[1] = replace(sequence[1], oltc=WithoutOLTC())
        violations = validate_transformer_sequence(build_client(), sequence)
        assert kinds(violations) == {("transformers[1].has_oltc", ViolationKind.LOCKED)}

    def test_extra_oltc_is_allowed(self):
        """Positions after the first N may carry an OLTC too."""
        sequence = generate_transformer_sequence(3, 3, TODAY)
        assert validate_transformer_sequence(build_client(), sequence) == []
