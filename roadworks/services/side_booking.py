"""Work out which carriageway sides of a range are already committed."""

from __future__ import annotations

from typing import Iterable, Optional

from roadworks.choices import InspectionStatus, Measure, Side

from .intervals import normalize_range, ranges_overlap
from .records import InspectionRecord, PhaseRecord, SideBooking


def matches_side(snapshot_side, query_side) -> bool:
    """A ``BOTH`` query needs a ``BOTH`` snapshot; a single side also accepts ``BOTH``."""

    snapshot_side = Side.coerce(snapshot_side)
    query_side = Side.coerce(query_side)
    if query_side == Side.BOTH:
        return snapshot_side == Side.BOTH
    return snapshot_side in (query_side, Side.BOTH)


def enforced_side_for(phase: PhaseRecord, side) -> Optional[Side]:
    """Side forced by a point phase whose points carry an explicit side."""

    if phase.measure == Measure.POINT and phase.point_has_sides:
        return Side.coerce(side)
    return None


def resolve_side_booking(
    snapshots: Iterable[InspectionRecord],
    phase_id,
    start,
    end,
    enforced_side: Optional[Side] = None,
) -> SideBooking:
    range_start, range_end = normalize_range(start, end)
    left = right = both_snapshot = False
    for snapshot in snapshots:
        if snapshot.phase_id != phase_id:
            continue
        if not InspectionStatus.coerce(snapshot.status).is_committed:
            continue
        if not ranges_overlap(snapshot.start_pk, snapshot.end_pk, range_start, range_end):
            continue
        if matches_side(snapshot.side, Side.BOTH):
            both_snapshot = True
        if matches_side(snapshot.side, Side.LEFT):
            left = True
        if matches_side(snapshot.side, Side.RIGHT):
            right = True

    both = both_snapshot or (left and right)
    locked_side = None
    if enforced_side is not None:
        locked_side = Side.coerce(enforced_side)
    elif not both:
        if left and not right:
            locked_side = Side.RIGHT
        elif right and not left:
            locked_side = Side.LEFT
    return SideBooking(left=left, right=right, both=both, locked_side=locked_side)
