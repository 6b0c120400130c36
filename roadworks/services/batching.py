"""Split a layer/check selection into side-correct inspection entries.

Everything here is validation and planning; the only side effect is the
single ``writer.write(entries)`` call made by :func:`submit_inspection`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from django.db import models

from roadworks.choices import InspectionStatus, Side

from .intervals import is_finite_number, normalize_range
from .records import InspectionRecord
from .selection import CheckStatusIndex, LayerSelector, SelectionState
from .workflows import WorkflowLayer, WorkflowTemplate

logger = logging.getLogger(__name__)

SUBMIT_FAILED_MESSAGE = "Submission failed"


class SubmissionErrorReason(models.TextChoices):
    RANGE_INVALID = "RangeInvalid", "Start and end chainage must be numbers"
    LAYER_MISSING = "LayerMissing", "Select at least one layer"
    CHECK_MISSING = "CheckMissing", "Select at least one check"
    TYPE_MISSING = "TypeMissing", "Select at least one inspection type"
    APPOINTMENT_MISSING = "AppointmentMissing", "An appointment date is required"
    SUBMISSION_NUMBER_INVALID = "SubmissionNumberInvalid", "Submission number must be numeric"
    SUBMIT_REJECTED = "SubmitRejected", SUBMIT_FAILED_MESSAGE


class SubmissionError(Exception):
    """A classified, user-facing reason a submission did not go through."""

    def __init__(self, reason: SubmissionErrorReason, message: Optional[str] = None, details: Sequence[str] = ()):
        self.reason = SubmissionErrorReason(reason)
        self.message = message or self.reason.label
        self.details = tuple(details)
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"reason": self.reason.value, "message": self.message, "details": list(self.details)}


@dataclass(frozen=True)
class SubmissionRequest:
    road_id: int
    phase_id: int
    side: Side
    start_pk: object
    end_pk: object
    layers: Tuple[str, ...] = ()
    checks: Tuple[str, ...] = ()
    types: Tuple[str, ...] = ()
    remark: str = ""
    appointment_date: Optional[str] = None
    submission_number: object = None


@dataclass(frozen=True)
class InspectionBatch:
    side: Side
    layers: Tuple[str, ...]
    checks: Tuple[str, ...]


@dataclass(frozen=True)
class InspectionEntryDraft:
    """One atomic (layer, check, side, range) entry ready for the writer."""

    road_id: int
    phase_id: int
    side: Side
    start_pk: float
    end_pk: float
    layer_name: str
    check_name: str
    types: Tuple[str, ...]
    remark: Optional[str] = None
    appointment_date: Optional[str] = None
    status: InspectionStatus = InspectionStatus.SCHEDULED
    submission_number: Optional[int] = None

    def as_payload(self) -> dict:
        payload = {
            "roadId": self.road_id,
            "phaseId": self.phase_id,
            "side": str(self.side),
            "startPk": self.start_pk,
            "endPk": self.end_pk,
            "layerName": self.layer_name,
            "checkName": self.check_name,
            "types": list(self.types),
            "status": str(self.status),
        }
        if self.remark:
            payload["remark"] = self.remark
        if self.appointment_date:
            payload["appointmentDate"] = self.appointment_date
        if self.submission_number is not None:
            payload["submissionNumber"] = self.submission_number
        return payload


@dataclass(frozen=True)
class WriteResult:
    ok: bool
    message: Optional[str] = None
    details: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SubmissionOutcome:
    ok: bool
    entries: Tuple[InspectionEntryDraft, ...] = ()
    error: Optional[SubmissionError] = None


@dataclass(frozen=True)
class ValidatedSubmission:
    start_pk: float
    end_pk: float
    types: Tuple[str, ...]
    submission_number: Optional[int]


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(value for value in values if value))


def _parse_submission_number(value):
    text = "" if value is None else str(value).strip()
    if not text:
        return None
    if not is_finite_number(text):
        raise SubmissionError(SubmissionErrorReason.SUBMISSION_NUMBER_INVALID)
    number = float(text)
    if number < 0 or not number.is_integer():
        raise SubmissionError(SubmissionErrorReason.SUBMISSION_NUMBER_INVALID)
    return int(number)


def validate_submission(request: SubmissionRequest, allowed_types: Sequence[str]) -> ValidatedSubmission:
    """Fail fast on the first incomplete part of ``request``."""

    if not (is_finite_number(request.start_pk) and is_finite_number(request.end_pk)):
        raise SubmissionError(SubmissionErrorReason.RANGE_INVALID)
    if not request.layers:
        raise SubmissionError(SubmissionErrorReason.LAYER_MISSING)
    if not request.checks:
        raise SubmissionError(SubmissionErrorReason.CHECK_MISSING)
    allowed = set(allowed_types)
    types = _unique(kind for kind in request.types if kind in allowed)
    if not types:
        raise SubmissionError(SubmissionErrorReason.TYPE_MISSING)
    if not (request.appointment_date and str(request.appointment_date).strip()):
        raise SubmissionError(SubmissionErrorReason.APPOINTMENT_MISSING)
    submission_number = _parse_submission_number(request.submission_number)
    start, end = normalize_range(request.start_pk, request.end_pk)
    return ValidatedSubmission(start_pk=start, end_pk=end, types=types, submission_number=submission_number)


def should_split(layer: WorkflowLayer, query_side, index: CheckStatusIndex) -> bool:
    """Only a BOTH request on a layer committed on exactly one side splits."""

    if Side.coerce(query_side) != Side.BOTH:
        return False
    left, right = index.booked_sides(layer)
    return left != right


def resolve_split_target_side(layer: WorkflowLayer, index: CheckStatusIndex) -> Optional[Side]:
    """The side of ``layer`` that still needs inspecting, if exactly one does."""

    left, right = index.booked_sides(layer)
    if left and not right:
        return Side.RIGHT
    if right and not left:
        return Side.LEFT
    return None


def build_batches(
    template: WorkflowTemplate,
    layers: Sequence[str],
    checks: Sequence[str],
    target_side,
    query_side,
    index: CheckStatusIndex,
) -> List[InspectionBatch]:
    target_side = Side.coerce(target_side)
    buckets: Dict[Side, Tuple[List[str], List[str]]] = {side: ([], []) for side in (Side.LEFT, Side.RIGHT, Side.BOTH)}
    bucket_by_layer: Dict[str, Side] = {}
    selected: List[WorkflowLayer] = []

    for name in layers:
        meta = template.resolve_layer(name)
        bucket = Side.BOTH
        if meta is not None:
            if should_split(meta, query_side, index):
                bucket = resolve_split_target_side(meta, index) or Side.BOTH
            bucket_by_layer[meta.id] = bucket
            selected.append(meta)
            name = meta.name
        buckets[bucket][0].append(name)

    has_missing_meta = False
    for check in checks:
        owners = [layer for layer in template.check_owners(check) if layer.id in bucket_by_layer]
        if not owners:
            owners = [layer for layer in selected if layer.find_check(check) is not None][:1]
        if owners:
            targets = list(dict.fromkeys(bucket_by_layer[layer.id] for layer in owners))
            check_name = template.canonical_check_name(check, owners[0])
        elif template.check_owners(check):
            targets = [target_side]
            check_name = template.canonical_check_name(check)
        else:
            has_missing_meta = True
            continue
        for side in targets:
            buckets[side][1].append(check_name)

    if has_missing_meta:
        logger.warning("Check metadata missing for phase workflow '%s'; submitting a single batch", template.id)
        return [InspectionBatch(side=target_side, layers=_unique(layers), checks=_unique(checks))]

    batches = []
    for bucket, side in ((Side.LEFT, Side.LEFT), (Side.RIGHT, Side.RIGHT), (Side.BOTH, target_side)):
        bucket_layers, bucket_checks = buckets[bucket]
        if bucket_layers:
            batches.append(InspectionBatch(side=side, layers=_unique(bucket_layers), checks=_unique(bucket_checks)))
    return batches


def expand_entries(
    batches: Sequence[InspectionBatch],
    *,
    road_id: int,
    phase_id: int,
    start_pk: float,
    end_pk: float,
    types: Sequence[str],
    remark: Optional[str] = None,
    appointment_date: Optional[str] = None,
    submission_number: Optional[int] = None,
) -> List[InspectionEntryDraft]:
    start, end = normalize_range(start_pk, end_pk)
    remark_text = (remark or "").strip() or None
    entries = []
    for batch in batches:
        for layer_name in _unique(batch.layers):
            for check_name in _unique(batch.checks):
                entries.append(
                    InspectionEntryDraft(
                        road_id=road_id,
                        phase_id=phase_id,
                        side=batch.side,
                        start_pk=start,
                        end_pk=end,
                        layer_name=layer_name,
                        check_name=check_name,
                        types=_unique(types),
                        remark=remark_text,
                        appointment_date=appointment_date or None,
                        status=InspectionStatus.SCHEDULED,
                        submission_number=submission_number,
                    )
                )
    return entries


def plan_submission(
    request: SubmissionRequest,
    template: WorkflowTemplate,
    snapshots: Iterable[InspectionRecord],
    *,
    enforced_side: Optional[Side] = None,
    phase_name: Optional[str] = None,
    layers: Optional[Sequence[WorkflowLayer]] = None,
    allowed_types: Optional[Sequence[str]] = None,
) -> List[InspectionEntryDraft]:
    """Validate ``request`` and turn it into atomic entries.

    Raises :class:`SubmissionError` when the request is incomplete.
    """

    if allowed_types is None:
        selector = LayerSelector(template, layers)
        allowed_types = selector.active_types(SelectionState(layers=request.layers, checks=request.checks))
    validated = validate_submission(request, allowed_types)
    query_side = Side.coerce(request.side)
    target_side = Side.coerce(enforced_side) if enforced_side is not None else query_side

    index = CheckStatusIndex.build(
        snapshots, request.phase_id, phase_name, validated.start_pk, validated.end_pk, template
    )
    batches = build_batches(template, request.layers, request.checks, target_side, query_side, index)
    entries = expand_entries(
        batches,
        road_id=request.road_id,
        phase_id=request.phase_id,
        start_pk=validated.start_pk,
        end_pk=validated.end_pk,
        types=validated.types,
        remark=request.remark,
        appointment_date=request.appointment_date,
        submission_number=validated.submission_number,
    )
    if not entries:
        raise SubmissionError(SubmissionErrorReason.LAYER_MISSING)
    return entries


def rejection_message(result: WriteResult) -> str:
    message = result.message or SUBMIT_FAILED_MESSAGE
    if result.details:
        return f"{message}: {' / '.join(result.details)}"
    return message


def submit_inspection(request: SubmissionRequest, template: WorkflowTemplate, snapshots, writer, **options) -> SubmissionOutcome:
    """Plan ``request`` and hand the entries to ``writer`` in one call.

    Never raises for validation or rejection; the outcome carries the
    classified error instead. Nothing is retried.
    """

    try:
        entries = plan_submission(request, template, snapshots, **options)
    except SubmissionError as exc:
        logger.info("Submission for phase %s rejected locally: %s", request.phase_id, exc.reason.value)
        return SubmissionOutcome(ok=False, error=exc)

    result = writer.write(entries)
    if not result.ok:
        logger.warning(
            "Writer rejected %s entries for phase %s: %s", len(entries), request.phase_id, result.message
        )
        error = SubmissionError(SubmissionErrorReason.SUBMIT_REJECTED, rejection_message(result), result.details)
        return SubmissionOutcome(ok=False, entries=tuple(entries), error=error)
    logger.info("Submitted %s inspection entries for phase %s", len(entries), request.phase_id)
    return SubmissionOutcome(ok=True, entries=tuple(entries))
