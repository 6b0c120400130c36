"""Enumerations shared by the inspection engine and the ORM models."""

from __future__ import annotations

from django.db import models


class Side(models.TextChoices):
    LEFT = "LEFT", "Left"
    RIGHT = "RIGHT", "Right"
    BOTH = "BOTH", "Both"

    @classmethod
    def coerce(cls, value) -> "Side":
        """Return the matching side, treating unknown values as ``BOTH``."""

        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.BOTH

    @property
    def physical_sides(self) -> tuple["Side", ...]:
        if self is Side.BOTH:
            return (Side.LEFT, Side.RIGHT)
        return (self,)

    @property
    def opposite(self) -> "Side | None":
        if self is Side.LEFT:
            return Side.RIGHT
        if self is Side.RIGHT:
            return Side.LEFT
        return None


class Measure(models.TextChoices):
    LINEAR = "LINEAR", "Linear"
    POINT = "POINT", "Point"


_STATUS_PRIORITY = {
    "PENDING": 1,
    "SCHEDULED": 2,
    "SUBMITTED": 3,
    "IN_PROGRESS": 4,
    "APPROVED": 5,
}


class InspectionStatus(models.TextChoices):
    """Inspection lifecycle; the priority order drives every merge decision."""

    PENDING = "PENDING", "Pending"
    SCHEDULED = "SCHEDULED", "Scheduled"
    SUBMITTED = "SUBMITTED", "Submitted"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    APPROVED = "APPROVED", "Approved"

    @classmethod
    def coerce(cls, value) -> "InspectionStatus":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.PENDING

    @property
    def priority(self) -> int:
        return _STATUS_PRIORITY[self.value]

    @property
    def is_committed(self) -> bool:
        """Scheduled or later: the side/check is booked."""

        return self.priority >= _STATUS_PRIORITY["SCHEDULED"]

    def can_advance_to(self, target: "InspectionStatus") -> bool:
        return InspectionStatus(target).priority > self.priority


class SegmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SCHEDULED = "scheduled", "Scheduled"
    SUBMITTED = "submitted", "Submitted"
    IN_PROGRESS = "inProgress", "In progress"
    APPROVED = "approved", "Approved"
    NON_DESIGN = "nonDesign", "Not in design"

    @classmethod
    def from_inspection(cls, status: InspectionStatus) -> "SegmentStatus":
        return _SEGMENT_BY_INSPECTION[InspectionStatus.coerce(status)]


_SEGMENT_BY_INSPECTION = {
    InspectionStatus.PENDING: SegmentStatus.PENDING,
    InspectionStatus.SCHEDULED: SegmentStatus.SCHEDULED,
    InspectionStatus.SUBMITTED: SegmentStatus.SUBMITTED,
    InspectionStatus.IN_PROGRESS: SegmentStatus.IN_PROGRESS,
    InspectionStatus.APPROVED: SegmentStatus.APPROVED,
}
