"""Completion figures: per check, per side, and across road sections."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from roadworks.choices import InspectionStatus, Measure, Side

from .intervals import build_status_key, normalize_label, normalize_range
from .records import InspectionRecord, RoadPhaseSummary, Segment
from .segments import completed_total, design_total
from .snapshots import latest_snapshots
from .workflows import WorkflowTemplate

# Phases whose progress is reported per interval spec (e.g. ditch profile).
SPEC_SPLIT_PHASES = frozenset(
    normalize_label(name) for name in ("Side ditch", "边沟", "Walkway culvert", "过道涵", "Curb", "路缘石")
)


@dataclass(frozen=True)
class ProgressResult:
    percent: float
    completed_checks: int
    total_checks: int

    def as_dict(self) -> dict:
        return {
            "percent": self.percent,
            "completedChecks": self.completed_checks,
            "totalChecks": self.total_checks,
        }


def candidate_sides(side) -> Tuple[Side, ...]:
    side = Side.coerce(side)
    if side == Side.BOTH:
        return (Side.BOTH, Side.LEFT, Side.RIGHT)
    return (side, Side.BOTH)


def percent_complete(
    template: Optional[WorkflowTemplate],
    phase_id,
    phase_name: Optional[str],
    side,
    start,
    end,
    snapshots: Mapping[str, InspectionRecord],
    allowed_layers: Optional[Sequence[str]] = None,
) -> ProgressResult:
    """Share of workflow checks with APPROVED evidence on the requested side.

    ``snapshots`` is the keyed mapping from :func:`latest_snapshots`.
    """

    if template is None or not template.layers:
        return ProgressResult(0, 0, 0)
    snapshots = latest_snapshots(template.canonical_record(snapshot) for snapshot in snapshots.values())
    allowed = {normalize_label(name) for name in allowed_layers or () if normalize_label(name)}
    layers = [
        layer
        for layer in template.sorted_layers()
        if not allowed or any(normalize_label(label) in allowed for label in (layer.id,) + layer.labels)
    ]
    total = sum(len(layer.checks) for layer in layers)
    if not total:
        return ProgressResult(0, 0, 0)

    range_start, range_end = normalize_range(start, end)
    completed = 0
    for layer in layers:
        for check in layer.checks:
            for candidate in candidate_sides(side):
                parts = dict(
                    side=candidate,
                    phase_id=phase_id,
                    phase_name=phase_name,
                    layer_name=layer.name,
                    check_name=check.name,
                    start_pk=range_start,
                    end_pk=range_end,
                )
                snapshot = snapshots.get(
                    build_status_key(layer_id=layer.id, check_id=check.id, **parts)
                ) or snapshots.get(build_status_key(**parts))
                if snapshot is not None and InspectionStatus.coerce(snapshot.status) == InspectionStatus.APPROVED:
                    completed += 1
                    break
    return ProgressResult(completed / total * 100, completed, total)


def combined_percent(left: Iterable[Segment], right: Iterable[Segment]) -> int:
    """Approved length over design length across both sides, rounded."""

    left = list(left)
    right = list(right)
    total = design_total(left) + design_total(right)
    if total <= 0:
        return 0
    return round((completed_total(left) + completed_total(right)) / total * 100)


# ---------------------------------------------------------------------------
# Aggregation across road sections
# ---------------------------------------------------------------------------


@dataclass
class AggregatedPhaseProgress:
    id: str
    name: str
    measure: Measure
    spec: Optional[str] = None
    definition_id: Optional[int] = None
    total_design_length: float = 0.0
    total_completed_length: float = 0.0
    completed_percent: int = 0
    latest_updated_at: float = 0.0
    road_names: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "measure": str(self.measure),
            "spec": self.spec,
            "phaseDefinitionId": self.definition_id,
            "totalDesignLength": self.total_design_length,
            "totalCompletedLength": self.total_completed_length,
            "completedPercent": self.completed_percent,
            "latestUpdatedAt": self.latest_updated_at,
            "roadNames": list(self.road_names),
        }


def _spec_key(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _unit_length(measure: Measure, start: float, end: float) -> float:
    if measure == Measure.POINT:
        return 1.0
    delta = end - start
    return 1.0 if delta == 0 else max(delta, 0.0)


def _scaled(source: Dict[Optional[str], float], target: float) -> Dict[Optional[str], float]:
    total = sum(source.values())
    if target <= 0 or total <= 0:
        return dict(source)
    factor = target / total
    return {spec: value * factor for spec, value in source.items()}


def _spec_entries(summary: RoadPhaseSummary, split_by_spec: bool) -> List[Tuple[Optional[str], float, float]]:
    """Split one phase's design/completed totals by interval spec."""

    default = [(None, summary.design_length, summary.completed_length)]
    if not split_by_spec or normalize_label(summary.phase_name) not in SPEC_SPLIT_PHASES:
        return default

    segments = []
    for interval in summary.intervals:
        start, end = normalize_range(interval.start_pk, interval.end_pk)
        for side in Side.coerce(interval.side).physical_sides:
            segments.append((start, end, side, _spec_key(interval.spec)))
    if not segments:
        return default

    design: Dict[Optional[str], float] = defaultdict(float)
    for start, end, _, spec in segments:
        design[spec] += _unit_length(summary.measure, start, end)
    design = _scaled(design, summary.design_length)

    completed: Dict[Optional[str], float] = defaultdict(float)
    for inspection in summary.inspections:
        lo, hi = normalize_range(inspection.start_pk, inspection.end_pk)
        sides = Side.coerce(inspection.side).physical_sides
        for start, end, side, spec in segments:
            if side not in sides:
                continue
            if summary.measure == Measure.POINT:
                if lo <= start <= hi:
                    completed[spec] += 1
                continue
            overlap = min(hi, end) - max(lo, start)
            if overlap > 0:
                completed[spec] += overlap
            elif abs(overlap) < 1e-6:
                completed[spec] += 1
    completed = _scaled(completed, summary.completed_length)

    if not completed and summary.completed_length > 0:
        design_sum = sum(design.values())
        completed = {
            spec: (value / design_sum if design_sum > 0 else 1 / len(design)) * summary.completed_length
            for spec, value in design.items()
        }

    specs = list(dict.fromkeys(list(design) + list(completed)))
    return [(spec, design.get(spec, 0.0), completed.get(spec, 0.0)) for spec in specs]


def aggregate_phase_progress(
    road_summaries: Iterable[RoadPhaseSummary],
    split_by_spec: bool = True,
) -> List[AggregatedPhaseProgress]:
    """Group phases across road sections by (name, measure, spec).

    Completed totals are capped at the design total and the result is
    ordered by most recent update, then name and spec.
    """

    grouped: Dict[str, AggregatedPhaseProgress] = {}
    for summary in road_summaries:
        for spec, design_length, completed_length in _spec_entries(summary, split_by_spec):
            spec_key = (spec or "") if split_by_spec else ""
            key = f"{summary.phase_name}::{summary.measure}::{spec_key}"
            item = grouped.get(key)
            if item is None:
                item = grouped[key] = AggregatedPhaseProgress(
                    id=key,
                    name=summary.phase_name,
                    measure=summary.measure,
                    spec=spec if split_by_spec else None,
                    definition_id=summary.definition_id,
                    latest_updated_at=summary.updated_at or 0.0,
                )
            item.total_design_length += design_length
            item.total_completed_length += completed_length
            item.latest_updated_at = max(item.latest_updated_at, summary.updated_at or 0.0)
            if summary.road_name not in item.road_names:
                item.road_names.append(summary.road_name)

    results = []
    for item in grouped.values():
        design = max(0.0, item.total_design_length)
        completed = max(0.0, item.total_completed_length)
        capped = completed if design <= 0 else min(design, completed)
        item.completed_percent = 0 if design <= 0 else min(100, round(capped / design * 100))
        item.total_design_length = round(design, 2)
        item.total_completed_length = round(capped, 2)
        results.append(item)
    results.sort(key=lambda item: (-item.latest_updated_at, item.name, item.spec or ""))
    return results
