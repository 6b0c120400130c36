"""Read and write adapters between the ORM and the inspection engine."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction

from . import models
from .choices import InspectionStatus, Measure, Side
from .services.batching import InspectionEntryDraft, WriteResult
from .services.progress import percent_complete
from .services.propagation import propagate_snapshots
from .services.records import (
    InspectionRecord,
    IntervalRecord,
    PhaseDefinitionRecord,
    PhaseRecord,
    RoadPhaseSummary,
    RoadSectionRecord,
)
from .services.intervals import normalize_range
from .services.segments import build_linear_view, completed_total, design_quantity
from .services.selection import missing_dependencies, missing_prior_checks
from .services.snapshots import inspection_slices, latest_snapshots
from .services.workflows import (
    WorkflowLayer,
    WorkflowRegistry,
    WorkflowTemplate,
    template_for_definition,
    workflow_layers_for_interval,
)

logger = logging.getLogger(__name__)


class WorkflowValidationError(Exception):
    """A batch breaks its workflow's membership or dependency rules."""

    def __init__(self, message: str, details: Sequence[str] = ()):
        super().__init__(message)
        self.message = message
        self.details = list(details)


# ---------------------------------------------------------------------------
# ORM -> engine records
# ---------------------------------------------------------------------------


def road_record(road: models.RoadSection) -> RoadSectionRecord:
    return RoadSectionRecord(
        id=road.id,
        slug=road.slug,
        length=float(road.length_m or 0),
        start_pk=float(road.start_pk or 0),
        end_pk=float(road.end_pk or 0),
        name=road.name,
    )


def definition_record(definition: models.PhaseDefinition) -> PhaseDefinitionRecord:
    return PhaseDefinitionRecord(
        id=definition.id,
        name=definition.name,
        measure=Measure(definition.measure),
        default_layers=tuple(definition.default_layers or ()),
        default_checks=tuple(definition.default_checks or ()),
        workflow_key=definition.workflow_key or "",
    )


def interval_record(interval: models.PhaseInterval) -> IntervalRecord:
    return IntervalRecord(
        start_pk=interval.start_pk,
        end_pk=interval.end_pk,
        side=Side.coerce(interval.side),
        spec=interval.spec,
        bill_quantity=interval.bill_quantity,
        layers=tuple(interval.layers or ()),
    )


def phase_record(phase: models.Phase) -> PhaseRecord:
    return PhaseRecord(
        id=phase.id,
        name=phase.name,
        measure=Measure(phase.measure),
        definition_id=phase.definition_id,
        intervals=tuple(interval_record(interval) for interval in phase.intervals.all()),
        resolved_layers=tuple(phase.layers or ()),
        resolved_checks=tuple(phase.checks or ()),
        point_has_sides=bool(phase.point_has_sides),
        workflow_key=phase.definition.workflow_key or "",
        updated_at=phase.updated_at.timestamp() if phase.updated_at else 0.0,
    )


def entry_record(entry: models.InspectionEntry) -> InspectionRecord:
    return InspectionRecord(
        phase_id=entry.phase_id,
        phase_name=entry.phase.name,
        start_pk=entry.start_pk,
        end_pk=entry.end_pk,
        side=Side.coerce(entry.side),
        status=InspectionStatus.coerce(entry.status),
        updated_at=entry.updated_at.timestamp() if entry.updated_at else 0.0,
        layer_name=entry.layer_name or None,
        check_name=entry.check_name or None,
    )


def load_phase_records(road: models.RoadSection) -> List[PhaseRecord]:
    phases = road.phases.select_related("definition").prefetch_related("intervals").order_by("id")
    return [phase_record(phase) for phase in phases]


def load_inspection_records(
    road: models.RoadSection,
    phase_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[InspectionRecord]:
    """Most recent inspection entries of ``road``, newest first."""

    limit = limit or getattr(settings, "ROADWORKS_INSPECTION_FETCH_LIMIT", 500)
    queryset = models.InspectionEntry.objects.filter(road=road).select_related("phase")
    if phase_id is not None:
        queryset = queryset.filter(phase_id=phase_id)
    return [entry_record(entry) for entry in queryset.order_by("-updated_at", "-id")[:limit]]


def interval_for_range(phase: PhaseRecord, start, end) -> Optional[IntervalRecord]:
    """The first design interval of ``phase`` that contains ``[start, end]``."""

    lo, hi = normalize_range(start, end)
    for interval in phase.intervals:
        interval_start, interval_end = normalize_range(interval.start_pk, interval.end_pk)
        if interval_start <= lo and hi <= interval_end:
            return interval
    return None


def available_layers(template: WorkflowTemplate, phase: PhaseRecord, start, end) -> List[WorkflowLayer]:
    interval = interval_for_range(phase, start, end)
    names = interval.layers if interval is not None and interval.layers else phase.resolved_layers
    return workflow_layers_for_interval(template, names)


def template_for_phase(registry: WorkflowRegistry, phase: PhaseRecord) -> WorkflowTemplate:
    template = registry.for_phase(phase)
    if template is not None:
        return template
    definition = models.PhaseDefinition.objects.get(pk=phase.definition_id)
    logger.warning("No workflow template for phase '%s'; using definition defaults", phase.name)
    return template_for_definition(definition_record(definition))


# ---------------------------------------------------------------------------
# Road state: everything a view needs for one computation pass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoadState:
    road: RoadSectionRecord
    phases: Tuple[PhaseRecord, ...]
    records: Tuple[InspectionRecord, ...]
    snapshots: Dict[str, InspectionRecord]
    slices: tuple

    def phase(self, phase_id: int) -> Optional[PhaseRecord]:
        return next((phase for phase in self.phases if phase.id == phase_id), None)


def load_road_state(road: models.RoadSection, registry: WorkflowRegistry) -> RoadState:
    phases = load_phase_records(road)
    records = propagate_snapshots(load_inspection_records(road), phases, registry)
    snapshots = latest_snapshots(records)
    slices = inspection_slices(snapshots.values(), phases, registry)
    return RoadState(
        road=road_record(road),
        phases=tuple(phases),
        records=tuple(records),
        snapshots=snapshots,
        slices=tuple(slices),
    )


def point_complete(template: WorkflowTemplate, phase: PhaseRecord, point: IntervalRecord, snapshots) -> bool:
    """Whether every check offered at ``point`` is approved for its side."""

    progress = percent_complete(
        template,
        phase.id,
        phase.name,
        point.side,
        point.start_pk,
        point.end_pk,
        snapshots,
        allowed_layers=point.layers or None,
    )
    return progress.total_checks > 0 and progress.completed_checks == progress.total_checks


def phase_summaries(road: models.RoadSection, registry: WorkflowRegistry) -> List[RoadPhaseSummary]:
    """Design and completed totals per phase of ``road``."""

    state = load_road_state(road, registry)
    summaries = []
    for phase in state.phases:
        design = design_quantity(phase.measure, phase.intervals)
        inspections = tuple(
            snapshot
            for snapshot in state.snapshots.values()
            if snapshot.phase_id == phase.id and snapshot.status == InspectionStatus.APPROVED
        )
        if phase.measure == Measure.LINEAR:
            view = build_linear_view(phase, state.road.length, inspections=state.slices)
            completed = completed_total(view.left.segments) + completed_total(view.right.segments)
        else:
            template = template_for_phase(registry, phase)
            completed = float(
                sum(1 for point in phase.intervals if point_complete(template, phase, point, state.snapshots))
            )
        summaries.append(
            RoadPhaseSummary(
                road_name=state.road.name or state.road.slug,
                phase_name=phase.name,
                measure=phase.measure,
                design_length=design,
                completed_length=completed,
                intervals=phase.intervals,
                inspections=inspections,
                definition_id=phase.definition_id,
                updated_at=phase.updated_at,
            )
        )
    return summaries


# ---------------------------------------------------------------------------
# Engine entries -> ORM
# ---------------------------------------------------------------------------


class DatabaseInspectionWriter:
    """Validate a batch against its workflow and store it in one transaction."""

    def __init__(self, registry: WorkflowRegistry):
        self.registry = registry

    def _validate_group(self, phase: models.Phase, side: Side, start: float, end: float, entries) -> None:
        record = phase_record(phase)
        template = template_for_phase(self.registry, record)
        layers = list(dict.fromkeys(entry.layer_name for entry in entries))
        checks = list(dict.fromkeys(entry.check_name for entry in entries))

        invalid_layers = [name for name in layers if template.resolve_layer(name) is None]
        if invalid_layers:
            raise WorkflowValidationError("Layer is not part of the workflow template", invalid_layers)
        invalid_checks = [name for name in checks if not template.check_owners(name)]
        if invalid_checks:
            raise WorkflowValidationError("Check is not part of the workflow template", invalid_checks)

        snapshots = [
            entry_record(item)
            for item in models.InspectionEntry.objects.filter(
                phase=phase, start_pk__lte=end, end_pk__gte=start
            ).select_related("phase")
        ]
        available = [layer.id for layer in available_layers(template, record, start, end)]
        missing = missing_dependencies(
            template, layers, side, start, end, snapshots, phase.id, available_layers=available
        )
        if missing:
            raise WorkflowValidationError("Missing prerequisite inspections", missing)
        prior = missing_prior_checks(template, layers, checks, side, start, end, snapshots, phase.id)
        if prior:
            raise WorkflowValidationError("Missing prerequisite checks", prior)

    def validate(self, entries: Sequence[InspectionEntryDraft]) -> Dict[int, models.Phase]:
        if any(getattr(entry, "derived", False) for entry in entries):
            raise ValueError("Derived snapshots cannot be written back.")
        phases = models.Phase.objects.select_related("definition").prefetch_related("intervals").in_bulk(
            {entry.phase_id for entry in entries}
        )
        missing_phases = sorted({str(entry.phase_id) for entry in entries if entry.phase_id not in phases})
        if missing_phases:
            raise WorkflowValidationError("Unknown phase", missing_phases)

        groups = defaultdict(list)
        for entry in entries:
            groups[(entry.phase_id, Side.coerce(entry.side), entry.start_pk, entry.end_pk)].append(entry)
        for (phase_id, side, start, end), grouped in groups.items():
            self._validate_group(phases[phase_id], side, start, end, grouped)
        return phases

    def write(self, entries: Sequence[InspectionEntryDraft]) -> WriteResult:
        entries = list(entries)
        if not entries:
            return WriteResult(ok=False, message="No inspection entries to save")
        try:
            with transaction.atomic():
                phases = self.validate(entries)
                created = models.InspectionEntry.objects.bulk_create(
                    [
                        models.InspectionEntry(
                            road_id=entry.road_id,
                            phase=phases[entry.phase_id],
                            side=str(entry.side),
                            start_pk=entry.start_pk,
                            end_pk=entry.end_pk,
                            layer_name=entry.layer_name,
                            check_name=entry.check_name,
                            types=list(entry.types),
                            remark=entry.remark,
                            appointment_date=entry.appointment_date,
                            submission_number=entry.submission_number,
                            status=str(entry.status),
                        )
                        for entry in entries
                    ]
                )
        except WorkflowValidationError as exc:
            logger.warning("Rejected inspection batch: %s", exc.message)
            return WriteResult(ok=False, message=exc.message, details=tuple(exc.details))
        except IntegrityError:
            logger.exception("Database refused inspection batch of %s entries", len(entries))
            return WriteResult(ok=False, message="Inspection entries could not be stored")
        logger.info("Stored %s inspection entries", len(created))
        return WriteResult(ok=True)
