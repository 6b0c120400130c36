"""Storage for road sections, phases and inspection entries.

The inspection engine in :mod:`roadworks.services` never sees these models;
:mod:`roadworks.repositories` converts them to plain records first.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models

from .choices import InspectionStatus, Measure, Side


def _ordered(start, end):
    if start is not None and end is not None and start > end:
        return end, start
    return start, end


class RoadSection(models.Model):
    """A road under construction; bounds every phase and inspection range."""

    slug = models.SlugField(max_length=80, unique=True)
    name = models.CharField(max_length=150)
    length_m = models.FloatField(default=0, help_text="Design length in metres.")
    start_pk = models.FloatField(default=0, help_text="Start chainage in metres.")
    end_pk = models.FloatField(default=0, help_text="End chainage in metres.")

    class Meta:
        ordering = ["slug"]
        verbose_name = "Road section"
        verbose_name_plural = "Road sections"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name or self.slug

    def save(self, *args, **kwargs):
        self.start_pk, self.end_pk = _ordered(self.start_pk, self.end_pk)
        super().save(*args, **kwargs)


class PhaseDefinition(models.Model):
    """Reusable phase type (e.g. culvert) that backs one phase per road."""

    name = models.CharField(max_length=120, unique=True)
    measure = models.CharField(max_length=10, choices=Measure.choices, default=Measure.LINEAR)
    default_layers = models.JSONField(default=list, blank=True)
    default_checks = models.JSONField(default=list, blank=True)
    workflow_key = models.CharField(
        max_length=60,
        blank=True,
        help_text="Workflow template id; leave blank to match the template by phase name.",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


class Phase(models.Model):
    road = models.ForeignKey(RoadSection, on_delete=models.CASCADE, related_name="phases")
    definition = models.ForeignKey(PhaseDefinition, on_delete=models.PROTECT, related_name="phases")
    name = models.CharField(max_length=120)
    measure = models.CharField(max_length=10, choices=Measure.choices, default=Measure.LINEAR)
    point_has_sides = models.BooleanField(
        default=False,
        help_text="Each point carries its own side instead of being side-neutral.",
    )
    layers = models.JSONField(default=list, blank=True)
    checks = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["road", "id"]
        constraints = [
            models.UniqueConstraint(fields=["road", "definition"], name="unique_phase_per_road"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.road} - {self.name}"

    def clean(self):
        super().clean()
        if self.measure != Measure.POINT and self.point_has_sides:
            raise ValidationError({"point_has_sides": "Only point phases can carry explicit sides."})


class PhaseInterval(models.Model):
    phase = models.ForeignKey(Phase, on_delete=models.CASCADE, related_name="intervals")
    start_pk = models.FloatField()
    end_pk = models.FloatField()
    side = models.CharField(max_length=5, choices=Side.choices, default=Side.BOTH)
    spec = models.CharField(max_length=120, blank=True, null=True)
    bill_quantity = models.FloatField(blank=True, null=True)
    layers = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["phase", "start_pk", "end_pk"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.phase} [{self.start_pk}-{self.end_pk}] {self.side}"

    def save(self, *args, **kwargs):
        self.start_pk, self.end_pk = _ordered(self.start_pk, self.end_pk)
        super().save(*args, **kwargs)


class InspectionEntry(models.Model):
    """One atomic (layer, check, side, range) inspection request."""

    road = models.ForeignKey(RoadSection, on_delete=models.CASCADE, related_name="inspection_entries")
    phase = models.ForeignKey(Phase, on_delete=models.CASCADE, related_name="inspection_entries")
    side = models.CharField(max_length=5, choices=Side.choices, default=Side.BOTH)
    start_pk = models.FloatField()
    end_pk = models.FloatField()
    layer_name = models.CharField(max_length=120)
    check_name = models.CharField(max_length=120)
    types = models.JSONField(default=list, blank=True)
    remark = models.TextField(blank=True, null=True)
    appointment_date = models.DateField(blank=True, null=True)
    submission_number = models.PositiveIntegerField(blank=True, null=True)
    status = models.CharField(max_length=12, choices=InspectionStatus.choices, default=InspectionStatus.SCHEDULED)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at", "-id"]
        indexes = [
            models.Index(fields=["phase", "start_pk", "end_pk"], name="roadworks_i_phase_i_5f0c1d_idx"),
            models.Index(fields=["road", "-updated_at"], name="roadworks_i_road_id_8a2b7e_idx"),
        ]
        verbose_name_plural = "Inspection entries"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.phase} {self.layer_name}/{self.check_name} {self.side} [{self.start_pk}-{self.end_pk}]"

    def save(self, *args, **kwargs):
        self.start_pk, self.end_pk = _ordered(self.start_pk, self.end_pk)
        super().save(*args, **kwargs)

    def advance_status(self, target) -> None:
        """Move the entry forward in its lifecycle; statuses never go back."""

        current = InspectionStatus.coerce(self.status)
        target = InspectionStatus(target)
        if not current.can_advance_to(target):
            raise ValidationError(
                {"status": f"Cannot move an inspection from {current.label} to {target.label}."}
            )
        self.status = target
        self.save(update_fields=["status", "updated_at"])
