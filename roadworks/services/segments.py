"""Turn phase design intervals into renderable per-side or per-point views."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from roadworks.choices import Measure, SegmentStatus, Side

from .intervals import is_finite_number, normalize_range, to_finite
from .records import InspectionSlice, IntervalRecord, PhaseRecord, Segment
from .status_merge import overlay

DEFAULT_SIDE_LABELS = {"left": "LEFT", "right": "RIGHT"}


@dataclass(frozen=True)
class LinearSide:
    label: str
    segments: Tuple[Segment, ...]
    design_total: float

    def as_dict(self) -> dict:
        return {
            "label": self.label,
            "segments": [segment.as_dict() for segment in self.segments],
            "designTotal": self.design_total,
        }


@dataclass(frozen=True)
class LinearView:
    left: LinearSide
    right: LinearSide
    total: float

    def as_dict(self) -> dict:
        return {"left": self.left.as_dict(), "right": self.right.as_dict(), "total": self.total}


@dataclass(frozen=True)
class PointView:
    min: float
    max: float
    points: Tuple[IntervalRecord, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "min": self.min,
            "max": self.max,
            "points": [
                {
                    "startPk": point.start_pk,
                    "endPk": point.end_pk,
                    "side": str(point.side),
                    "spec": point.spec,
                    "billQuantity": point.bill_quantity,
                    "layers": list(point.layers),
                }
                for point in self.points
            ],
        }


def normalize_interval(interval: IntervalRecord) -> IntervalRecord:
    start, end = normalize_range(interval.start_pk, interval.end_pk)
    spec = interval.spec.strip() if isinstance(interval.spec, str) and interval.spec.strip() else None
    bill = float(interval.bill_quantity) if is_finite_number(interval.bill_quantity) else None
    return IntervalRecord(
        start_pk=start,
        end_pk=end,
        side=Side.coerce(interval.side),
        spec=spec,
        bill_quantity=bill,
        layers=tuple(name for name in interval.layers if name),
    )


def fill_non_design_gaps(segments: Iterable[Segment], start: float, end: float) -> List[Segment]:
    """Sort ``segments`` and pad every uncovered part of ``[start, end)``."""

    result: List[Segment] = []
    cursor = start
    for segment in sorted(segments, key=lambda item: item.start):
        if segment.start > cursor:
            result.append(Segment(start=cursor, end=segment.start, status=SegmentStatus.NON_DESIGN))
        result.append(segment)
        cursor = max(cursor, segment.end)
    if cursor < end:
        result.append(Segment(start=cursor, end=end, status=SegmentStatus.NON_DESIGN))
    return result


def design_total(segments: Iterable[Segment]) -> float:
    return sum(segment.length for segment in segments if segment.is_design)


def completed_total(segments: Iterable[Segment]) -> float:
    return sum(segment.length for segment in segments if segment.status == SegmentStatus.APPROVED)


def design_quantity(measure: Measure, intervals: Sequence[IntervalRecord]) -> float:
    """Designed amount: point count, or metres with BOTH counted per side.

    A zero-length linear interval still counts as one unit.
    """

    if measure == Measure.POINT:
        return float(len(intervals))
    quantity = 0.0
    for interval in intervals:
        start, end = normalize_range(interval.start_pk, interval.end_pk)
        base = (end - start) or 1.0
        quantity += base * (2 if Side.coerce(interval.side) == Side.BOTH else 1)
    return quantity


def _slices_for(side: Side, slices: Iterable[InspectionSlice]) -> List[InspectionSlice]:
    return [item for item in slices if Side.coerce(item.side) in (side, Side.BOTH)]


def build_linear_view(
    phase: PhaseRecord,
    road_length,
    side_labels: Optional[Mapping[str, str]] = None,
    inspections: Sequence[InspectionSlice] = (),
) -> LinearView:
    labels = dict(DEFAULT_SIDE_LABELS, **(side_labels or {}))
    intervals = [normalize_interval(interval) for interval in phase.intervals]

    left: List[Segment] = []
    right: List[Segment] = []
    for interval in intervals:
        segment = Segment(
            start=interval.start_pk,
            end=interval.end_pk,
            status=SegmentStatus.PENDING,
            spec=interval.spec,
            bill_quantity=interval.bill_quantity,
            point_has_sides=bool(phase.point_has_sides),
        )
        if interval.side in (Side.LEFT, Side.BOTH):
            left.append(segment)
        if interval.side in (Side.RIGHT, Side.BOTH):
            right.append(segment)

    length = to_finite(road_length)
    endpoints = [value for interval in intervals for value in (interval.start_pk, interval.end_pk)]
    total = max([length, 0.0, *endpoints])
    total = max(total, 1.0)

    phase_slices = [item for item in inspections if item.phase_id == phase.id]
    left_segments = overlay(fill_non_design_gaps(left, 0.0, total), _slices_for(Side.LEFT, phase_slices))
    right_segments = overlay(fill_non_design_gaps(right, 0.0, total), _slices_for(Side.RIGHT, phase_slices))
    return LinearView(
        left=LinearSide(labels["left"], tuple(left_segments), design_total(left_segments)),
        right=LinearSide(labels["right"], tuple(right_segments), design_total(right_segments)),
        total=total,
    )


def build_point_view(phase: PhaseRecord, fallback_start=None, fallback_end=None) -> PointView:
    points = tuple(normalize_interval(interval) for interval in phase.intervals)
    boundaries = [value for point in points for value in (point.start_pk, point.end_pk)]
    if not boundaries:
        boundaries = [value for value in (fallback_start, fallback_end) if is_finite_number(value)]
        boundaries = [float(value) for value in boundaries]
    raw_min = min(boundaries) if boundaries else fallback_start
    raw_max = max(boundaries) if boundaries else fallback_end
    safe_min = float(raw_min) if is_finite_number(raw_min) else 0.0
    safe_max = float(raw_max) if is_finite_number(raw_max) else safe_min + 1
    return PointView(min=safe_min, max=safe_max, points=points)

