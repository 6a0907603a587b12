"""
Wizard State Machine

The three-stage data-entry flow:

    CLIENT_DETAILS -> TRANSFORMER_DATA -> CONFIRMATION

State is held in one frozen WizardState. Every event is a pure function
    (state, arguments) -> TransitionResult(state, violations)
so tests can assert on each step, including the destructive
regeneration of the transformer sequence when the counts change.

The Wizard class at the bottom is a thin mutable holder for
event-driven callers. It never saves or exports anything itself:
it only produces a finalized Record at CONFIRMATION.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from tsr.derivation import (
    default_client_info,
    default_transformer,
    derive_transformer_counts,
    generate_transformer_sequence,
    parse_count,
    set_has_oltc,
)
from tsr.model import (
    CLIENT_FIELDS,
    CLIENT_TEXT_FIELDS,
    OLTC_FIELDS,
    TRANSFORMER_FIELDS,
    ClientInfo,
    Record,
    Stage,
    TransformerRecord,
    WithOLTC,
)
from tsr.validation import (
    Violation,
    ViolationKind,
    validate_client_info,
    validate_transformer_sequence,
)

logger = logging.getLogger(__name__)

STAGE_COUNT = len(Stage)


class WizardError(Exception):
    """Raised when the wizard is asked for something its stage cannot give."""
    pass


@dataclass(frozen=True)
class WizardState:
    """
    Everything the wizard knows about the session in progress.

    Properties:
        stage: Current Stage
        client_info: ClientInfo being edited
        transformers: Ordered transformer sequence
        generated_counts: (total, with_oltc) the sequence was last generated
                          from; a mismatch means it must be regenerated
    """

    stage: Stage
    client_info: ClientInfo
    transformers: Tuple[TransformerRecord, ...]
    generated_counts: Tuple[int, int] = (1, 0)

    @property
    def progress(self) -> float:
        return progress(self)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of applying one event: the new state plus any violations."""

    state: WizardState
    violations: List[Violation] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.violations


def initial_state(today: Optional[date] = None) -> WizardState:
    """Fresh session: default client details and one default transformer."""
    today = today or date.today()
    info = default_client_info(today)
    return WizardState(
        stage=Stage.CLIENT_DETAILS,
        client_info=info,
        transformers=(default_transformer(0, today=today),),
        generated_counts=info.counts,
    )


def progress(state: WizardState) -> float:
    """Percentage complete, derived from the stage alone."""
    return (state.stage.value + 1) / STAGE_COUNT * 100


def _wrong_stage(state: WizardState, expected: Stage, what: str) -> TransitionResult:
    return TransitionResult(state, [Violation(
        "stage", ViolationKind.WRONG_STAGE,
        f"{what} is only allowed at {expected.name}, current stage is {state.stage.name}",
    )])


# =========================================================================
# SEQUENCE REGENERATION
# =========================================================================

def regenerate_transformers(state: WizardState, today: Optional[date] = None) -> WizardState:
    """
    Replace the transformer sequence with defaults for the current counts.

    Any per-transformer edits are discarded. This is the literal
    behavior of the servicing workflow and is kept on purpose.
    """
    total, with_oltc = state.client_info.counts
    transformers = generate_transformer_sequence(total, with_oltc, today)
    if state.transformers != generate_transformer_sequence(*state.generated_counts, today):
        logger.info(
            "Counts changed to %d (%d with OLTC): discarding edits on %d transformers",
            total, with_oltc, len(state.transformers),
        )
    return replace(state, transformers=transformers, generated_counts=(total, with_oltc))


def _needs_regeneration(state: WizardState) -> bool:
    return state.client_info.counts != state.generated_counts and state.client_info.no_of_transformers >= 1


# =========================================================================
# FIELD EDITS
# =========================================================================

def update_client_info(state: WizardState, today: Optional[date] = None, **changes) -> TransitionResult:
    """
    Apply edits to the client details.

    Counts are parsed and re-derived synchronously: the with-OLTC count is
    clamped to the total and the without-OLTC count recomputed. When the
    counts differ from those the sequence was generated from, the
    sequence is regenerated in the same step.
    """
    if state.stage is not Stage.CLIENT_DETAILS:
        return _wrong_stage(state, Stage.CLIENT_DETAILS, "Editing client details")

    violations: List[Violation] = []
    for name in changes:
        if name == "no_of_transformers_without_oltc":
            violations.append(Violation(name, ViolationKind.READ_ONLY, f"{name} is derived"))
        elif name not in CLIENT_FIELDS:
            violations.append(Violation(name, ViolationKind.UNKNOWN_FIELD, f"unknown client field {name}"))
        elif name in CLIENT_TEXT_FIELDS and not isinstance(changes[name], str):
            violations.append(Violation(name, ViolationKind.INVALID_TYPE, f"{name} must be a string"))

    date_of_test = changes.get("date_of_test", state.client_info.date_of_test)
    if isinstance(date_of_test, datetime):
        date_of_test = date_of_test.date()
    elif isinstance(date_of_test, str):
        try:
            date_of_test = date.fromisoformat(date_of_test)
        except ValueError:
            violations.append(Violation(
                "date_of_test", ViolationKind.INVALID_TYPE, f"not an ISO date: {date_of_test!r}",
            ))
    elif not isinstance(date_of_test, date):
        violations.append(Violation("date_of_test", ViolationKind.INVALID_TYPE, "date_of_test must be a date"))

    if violations:
        logger.warning("Rejected client edit: %s", [v.message for v in violations])
        return TransitionResult(state, violations)

    current = state.client_info
    total = max(parse_count(changes.get("no_of_transformers", current.no_of_transformers)), 0)
    with_raw = parse_count(changes.get("no_of_transformers_with_oltc", current.no_of_transformers_with_oltc))
    with_oltc, without_oltc = derive_transformer_counts(total, with_raw)

    text_changes = {k: v for k, v in changes.items() if k in CLIENT_TEXT_FIELDS}
    info = replace(
        current,
        date_of_test=date_of_test,
        no_of_transformers=total,
        no_of_transformers_with_oltc=with_oltc,
        no_of_transformers_without_oltc=without_oltc,
        **text_changes,
    )
    logger.debug("Client details updated: %s", sorted(changes))

    new_state = replace(state, client_info=info)
    if _needs_regeneration(new_state):
        new_state = regenerate_transformers(new_state, today)
    return TransitionResult(new_state)


def _check_transformer_edit(state: WizardState, index: int, what: str) -> Optional[TransitionResult]:
    if state.stage is not Stage.TRANSFORMER_DATA:
        return _wrong_stage(state, Stage.TRANSFORMER_DATA, what)
    if not 0 <= index < len(state.transformers):
        return TransitionResult(state, [Violation(
            f"transformers[{index}]", ViolationKind.NO_SUCH_TRANSFORMER,
            f"no transformer at position {index}",
        )])
    return None


def _with_transformer(state: WizardState, index: int, record: TransformerRecord) -> WizardState:
    transformers = list(state.transformers)
    transformers[index] = record
    return replace(state, transformers=tuple(transformers))


def _field_violations(changes: Dict[str, object], allowed: Tuple[str, ...], prefix: str) -> List[Violation]:
    violations = []
    for name, value in changes.items():
        if name in ("transformer_id", "has_oltc"):
            violations.append(Violation(f"{prefix}.{name}", ViolationKind.READ_ONLY, f"{name} cannot be edited here"))
        elif name not in allowed:
            violations.append(Violation(f"{prefix}.{name}", ViolationKind.UNKNOWN_FIELD, f"unknown field {name}"))
        elif not isinstance(value, str):
            violations.append(Violation(f"{prefix}.{name}", ViolationKind.INVALID_TYPE, f"{name} must be a string"))
    return violations


def update_transformer(state: WizardState, index: int, **changes) -> TransitionResult:
    """Edit the measurement fields of the transformer at `index`."""
    rejected = _check_transformer_edit(state, index, "Editing transformer data")
    if rejected:
        return rejected

    violations = _field_violations(changes, TRANSFORMER_FIELDS, f"transformers[{index}]")
    if violations:
        return TransitionResult(state, violations)

    record = replace(state.transformers[index], **changes)
    logger.debug("%s updated: %s", record.transformer_id, sorted(changes))
    return TransitionResult(_with_transformer(state, index, record))


def update_oltc(state: WizardState, index: int, **changes) -> TransitionResult:
    """Edit the OLTC sub-record of the transformer at `index`."""
    rejected = _check_transformer_edit(state, index, "Editing OLTC data")
    if rejected:
        return rejected

    record = state.transformers[index]
    prefix = f"transformers[{index}].oltc_info"
    if not isinstance(record.oltc, WithOLTC):
        return TransitionResult(state, [Violation(
            prefix, ViolationKind.MISSING_FIELD, f"{record.transformer_id} has no OLTC",
        )])

    violations = _field_violations(changes, OLTC_FIELDS, prefix)
    if violations:
        return TransitionResult(state, violations)

    record = replace(record, oltc=WithOLTC(replace(record.oltc.info, **changes)))
    return TransitionResult(_with_transformer(state, index, record))


def set_transformer_oltc(state: WizardState, index: int, flag: bool,
                         today: Optional[date] = None) -> TransitionResult:
    """Toggle the OLTC of one transformer; the first N stay locked on."""
    rejected = _check_transformer_edit(state, index, "Toggling OLTC")
    if rejected:
        return rejected

    record, violations = set_has_oltc(
        state.transformers[index], flag, index,
        state.client_info.no_of_transformers_with_oltc, today,
    )
    if violations:
        return TransitionResult(state, violations)
    return TransitionResult(_with_transformer(state, index, record))


# =========================================================================
# STAGE TRANSITIONS
# =========================================================================

def next_stage(state: WizardState, today: Optional[date] = None) -> TransitionResult:
    """
    Advance one stage.

    - CLIENT_DETAILS: client details must validate; the sequence is
      regenerated first if the counts changed since it was generated.
    - TRANSFORMER_DATA: the sequence must be structurally complete.
      Empty field values are accepted.
    - CONFIRMATION: terminal, nothing to advance to.
    """
    if state.stage is Stage.CONFIRMATION:
        return TransitionResult(state, [Violation(
            "stage", ViolationKind.TERMINAL_STAGE, "CONFIRMATION is the last stage",
        )])

    if state.stage is Stage.CLIENT_DETAILS:
        violations = validate_client_info(state.client_info)
        if violations:
            logger.warning("Cannot leave CLIENT_DETAILS: %d violation(s)", len(violations))
            return TransitionResult(state, violations)
        if _needs_regeneration(state):
            state = regenerate_transformers(state, today)
        target = Stage.TRANSFORMER_DATA
    else:
        violations = validate_transformer_sequence(state.client_info, state.transformers)
        if violations:
            logger.warning("Cannot leave TRANSFORMER_DATA: %d violation(s)", len(violations))
            return TransitionResult(state, violations)
        target = Stage.CONFIRMATION

    logger.info("Stage %s -> %s", state.stage.name, target.name)
    return TransitionResult(replace(state, stage=target))


def previous_stage(state: WizardState) -> TransitionResult:
    """Go back one stage. Unconditional; all data is kept."""
    if state.stage is Stage.CLIENT_DETAILS:
        return TransitionResult(state)
    target = Stage(state.stage.value - 1)
    logger.info("Stage %s -> %s", state.stage.name, target.name)
    return TransitionResult(replace(state, stage=target))


def reset(state: WizardState, today: Optional[date] = None) -> TransitionResult:
    """Discard everything and start a new session."""
    logger.info("Resetting wizard from %s", state.stage.name)
    return TransitionResult(initial_state(today))


def finalized_record(state: WizardState) -> Record:
    """
    The Record ready for saving and export.

    Raises:
        WizardError: if the wizard has not reached CONFIRMATION
    """
    if state.stage is not Stage.CONFIRMATION:
        raise WizardError(f"Record is not final at stage {state.stage.name}")
    return Record(client_info=state.client_info, transformers=state.transformers)


class Wizard:
    """
    Mutable session wrapper around the pure transition functions.

    Each method applies one event, keeps the new state and returns the
    violations (an empty list when the event was accepted).

    Example:
        wizard = Wizard()
        wizard.edit_client(client_name="ACME", no_of_transformers=3)
        violations = wizard.next()
    """

    def __init__(self, today: Optional[date] = None):
        self.today = today
        self.state = initial_state(today)

    def _apply(self, result: TransitionResult) -> List[Violation]:
        self.state = result.state
        return result.violations

    @property
    def stage(self) -> Stage:
        return self.state.stage

    @property
    def progress(self) -> float:
        return progress(self.state)

    @property
    def record(self) -> Record:
        return finalized_record(self.state)

    def edit_client(self, **changes) -> List[Violation]:
        return self._apply(update_client_info(self.state, today=self.today, **changes))

    def edit_transformer(self, index: int, **changes) -> List[Violation]:
        return self._apply(update_transformer(self.state, index, **changes))

    def edit_oltc(self, index: int, **changes) -> List[Violation]:
        return self._apply(update_oltc(self.state, index, **changes))

    def toggle_oltc(self, index: int, flag: bool) -> List[Violation]:
        return self._apply(set_transformer_oltc(self.state, index, flag, self.today))

    def next(self) -> List[Violation]:
        return self._apply(next_stage(self.state, self.today))

    def back(self) -> List[Violation]:
        return self._apply(previous_stage(self.state))

    def reset(self) -> List[Violation]:
        return self._apply(reset(self.state, self.today))
