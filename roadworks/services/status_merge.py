"""Overlay inspection slices onto design segments."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, TypeVar

from roadworks.choices import SegmentStatus

from .intervals import normalize_range
from .records import InspectionSlice, Segment

CONTIGUITY_TOLERANCE = 1e-6

T = TypeVar("T")


def better(candidate, current) -> bool:
    """Return True when ``candidate`` should replace ``current``.

    Higher status priority wins; equal priority goes to the most recent
    ``updated_at``, with ties won by the candidate (the later-processed item).
    Every status reduction in the engine goes through this comparator.
    """

    if current is None:
        return True
    if candidate.priority != current.priority:
        return candidate.priority > current.priority
    return (candidate.updated_at or 0) >= (current.updated_at or 0)


def pick_best(items: Iterable[T]) -> Optional[T]:
    best = None
    for item in items:
        if better(item, best):
            best = item
    return best


def _same_attributes(left: Segment, right: Segment) -> bool:
    return (
        left.status == right.status
        and (left.spec or None) == (right.spec or None)
        and left.bill_quantity == right.bill_quantity
    )


def merge_adjacent_segments(segments: Sequence[Segment]) -> List[Segment]:
    merged: List[Segment] = []
    for segment in segments:
        last = merged[-1] if merged else None
        if (
            last is not None
            and _same_attributes(last, segment)
            and abs(last.end - segment.start) < CONTIGUITY_TOLERANCE
        ):
            merged[-1] = Segment(
                start=last.start,
                end=segment.end,
                status=last.status,
                spec=last.spec,
                bill_quantity=last.bill_quantity,
                point_has_sides=last.point_has_sides,
            )
        else:
            merged.append(segment)
    return merged


def _owning_segment(segments: Sequence[Segment], start: float, end: float) -> Optional[Segment]:
    for segment in segments:
        if start >= segment.start and end <= segment.end:
            return segment
    return None


def overlay(design_segments: Sequence[Segment], slices: Sequence[InspectionSlice]) -> List[Segment]:
    """Apply inspection slices to ``design_segments``.

    Sub-ranges outside every design segment are dropped and ``nonDesign``
    segments are never upgraded. Slice ranges are reordered before use.
    """

    ordered_slices = []
    for item in slices:
        lo, hi = normalize_range(item.start_pk, item.end_pk)
        ordered_slices.append((lo, hi, item))

    breakpoints = set()
    for segment in design_segments:
        breakpoints.add(segment.start)
        breakpoints.add(segment.end)
    for lo, hi, _ in ordered_slices:
        breakpoints.add(lo)
        breakpoints.add(hi)
    points = sorted(breakpoints)

    result: List[Segment] = []
    for start, end in zip(points, points[1:]):
        if end <= start:
            continue
        design = _owning_segment(design_segments, start, end)
        if design is None:
            continue
        status = design.status
        if status != SegmentStatus.NON_DESIGN:
            best = pick_best(item for lo, hi, item in ordered_slices if max(start, lo) < min(end, hi))
            if best is not None:
                status = SegmentStatus.from_inspection(best.status)
        result.append(
            Segment(
                start=start,
                end=end,
                status=status,
                spec=design.spec,
                bill_quantity=design.bill_quantity,
                point_has_sides=design.point_has_sides,
            )
        )
    return merge_adjacent_segments(result)
