"""Plain data records consumed and produced by the inspection engine.

The engine never touches ORM instances: :mod:`roadworks.repositories` converts
database rows into these frozen dataclasses, and every derived value (segments,
bookings, entries) is built from them on each call.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from roadworks.choices import InspectionStatus, Measure, SegmentStatus, Side


@dataclass(frozen=True)
class RoadSectionRecord:
    id: int
    slug: str
    length: float = 0.0
    start_pk: float = 0.0
    end_pk: float = 0.0
    name: str = ""


@dataclass(frozen=True)
class PhaseDefinitionRecord:
    id: int
    name: str
    measure: Measure = Measure.LINEAR
    default_layers: Tuple[str, ...] = ()
    default_checks: Tuple[str, ...] = ()
    workflow_key: str = ""


@dataclass(frozen=True)
class IntervalRecord:
    start_pk: float
    end_pk: float
    side: Side = Side.BOTH
    spec: Optional[str] = None
    bill_quantity: Optional[float] = None
    layers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PhaseRecord:
    id: int
    name: str
    measure: Measure = Measure.LINEAR
    definition_id: Optional[int] = None
    intervals: Tuple[IntervalRecord, ...] = ()
    resolved_layers: Tuple[str, ...] = ()
    resolved_checks: Tuple[str, ...] = ()
    point_has_sides: bool = False
    workflow_key: str = ""
    updated_at: float = 0.0


@dataclass(frozen=True)
class InspectionRecord:
    """Latest known state of one (phase, layer, check, side, range) tuple.

    ``derived`` marks snapshots synthesised by cross-phase propagation; those
    take part in merges and progress but are never written back.
    """

    phase_id: int
    start_pk: float
    end_pk: float
    side: Side = Side.BOTH
    status: InspectionStatus = InspectionStatus.PENDING
    updated_at: float = 0.0
    phase_name: Optional[str] = None
    layer_id: Optional[str] = None
    layer_name: Optional[str] = None
    check_id: Optional[str] = None
    check_name: Optional[str] = None
    derived: bool = False

    @property
    def priority(self) -> int:
        return InspectionStatus.coerce(self.status).priority

    def with_changes(self, **changes) -> "InspectionRecord":
        return replace(self, **changes)


# A snapshot is a record that survived latest-wins reduction.
InspectionSnapshot = InspectionRecord


@dataclass(frozen=True)
class InspectionSlice:
    phase_id: int
    side: Side
    start_pk: float
    end_pk: float
    status: InspectionStatus
    updated_at: float = 0.0

    @property
    def priority(self) -> int:
        return InspectionStatus.coerce(self.status).priority


@dataclass(frozen=True)
class Segment:
    start: float
    end: float
    status: SegmentStatus = SegmentStatus.PENDING
    spec: Optional[str] = None
    bill_quantity: Optional[float] = None
    point_has_sides: bool = False

    @property
    def length(self) -> float:
        return max(0.0, self.end - self.start)

    @property
    def is_design(self) -> bool:
        return self.status != SegmentStatus.NON_DESIGN

    def as_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "status": str(self.status),
            "spec": self.spec,
            "billQuantity": self.bill_quantity,
            "pointHasSides": self.point_has_sides,
        }


@dataclass(frozen=True)
class SideBooking:
    left: bool = False
    right: bool = False
    both: bool = False
    locked_side: Optional[Side] = None

    def as_dict(self) -> dict:
        return {
            "left": self.left,
            "right": self.right,
            "both": self.both,
            "lockedSide": str(self.locked_side) if self.locked_side else None,
        }


@dataclass(frozen=True)
class RoadPhaseSummary:
    """Per-phase totals used when aggregating progress across road sections."""

    road_name: str
    phase_name: str
    measure: Measure
    design_length: float
    completed_length: float
    intervals: Tuple[IntervalRecord, ...] = ()
    inspections: Tuple[InspectionRecord, ...] = field(default_factory=tuple)
    definition_id: Optional[int] = None
    updated_at: float = 0.0
