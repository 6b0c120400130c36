from __future__ import annotations

import datetime

import pytest
from django.core.exceptions import ValidationError

from roadworks import models, repositories
from roadworks.apps import get_registry
from roadworks.choices import InspectionStatus, Measure, Side
from roadworks.services.batching import InspectionEntryDraft

pytestmark = pytest.mark.django_db


def draft(road, phase, layer_name, check_name, side=Side.BOTH, start=100, end=120) -> InspectionEntryDraft:
    return InspectionEntryDraft(
        road_id=road.id,
        phase_id=phase.id,
        side=side,
        start_pk=start,
        end_pk=end,
        layer_name=layer_name,
        check_name=check_name,
        types=("site",),
        appointment_date="2026-03-02",
    )


def test_ranges_are_stored_in_order(road, culvert, create_entry):
    section = models.RoadSection.objects.create(slug="rn-9", name="RN9", start_pk=800, end_pk=200)
    entry = create_entry(culvert, "Excavation", "Staking and excavation", start_pk=120, end_pk=100)

    section.refresh_from_db()
    entry.refresh_from_db()
    assert (section.start_pk, section.end_pk) == (200, 800)
    assert (entry.start_pk, entry.end_pk) == (100, 120)


def test_point_sides_only_on_point_phases(road):
    definition = models.PhaseDefinition.objects.create(name="Curb")
    phase = models.Phase(road=road, definition=definition, name="Curb", point_has_sides=True)
    with pytest.raises(ValidationError):
        phase.clean()


def test_status_only_moves_forward(culvert, create_entry):
    entry = create_entry(culvert, "Excavation", "Staking and excavation")

    entry.advance_status(InspectionStatus.IN_PROGRESS)
    entry.refresh_from_db()
    assert entry.status == InspectionStatus.IN_PROGRESS

    with pytest.raises(ValidationError):
        entry.advance_status(InspectionStatus.SUBMITTED)
    entry.refresh_from_db()
    assert entry.status == InspectionStatus.IN_PROGRESS


def test_inspection_records_newest_first(road, culvert, create_entry):
    for layer in ("Excavation", "Cushion", "Base slab"):
        create_entry(culvert, layer, "Concrete pour inspection")

    records = repositories.load_inspection_records(road, limit=2)

    assert [item.layer_name for item in records] == ["Base slab", "Cushion"]
    assert all(item.layer_id is None for item in records)
    assert records[0].phase_name == "Culvert"


def test_phase_records_carry_intervals(road, culvert):
    (phase,) = repositories.load_phase_records(road)

    assert phase.measure == Measure.POINT
    assert phase.intervals[0].side == Side.BOTH
    assert (phase.intervals[0].start_pk, phase.intervals[0].end_pk) == (100, 120)


def test_template_falls_back_to_definition_defaults(road, create_phase):
    phase = create_phase("Guard rail", intervals=[{"start_pk": 0, "end_pk": 50, "side": Side.LEFT}])
    definition = phase.definition
    definition.default_layers = ["Posts"]
    definition.default_checks = ["Alignment inspection"]
    definition.save()

    (record,) = repositories.load_phase_records(road)
    template = repositories.template_for_phase(get_registry(), record)

    assert [layer.name for layer in template.layers] == ["Posts"]
    assert template.check_owners("Alignment inspection")


def test_phase_summaries(road, earthwork, culvert, create_entry):
    create_entry(
        earthwork, "Fill layer 4", "Compaction inspection", side=Side.LEFT, start_pk=0, end_pk=400,
        status=InspectionStatus.APPROVED,
    )
    create_entry(culvert, "Excavation", "Staking and excavation", status=InspectionStatus.APPROVED)

    summaries = {item.phase_name: item for item in repositories.phase_summaries(road, get_registry())}

    assert summaries["Earthwork"].design_length == 800
    assert summaries["Earthwork"].completed_length == 400
    assert summaries["Culvert"].design_length == 1
    assert summaries["Culvert"].completed_length == 0
    assert summaries["Culvert"].road_name == "RN7 Lot 2"


def test_point_counts_once_all_checks_are_approved(road, create_phase, create_entry):
    removal = create_phase(
        "Old culvert removal", Measure.POINT, intervals=[{"start_pk": 300, "end_pk": 300, "side": Side.BOTH}]
    )
    for side in (Side.LEFT, Side.RIGHT):
        create_entry(
            removal, "Existing culvert", "Dimension and clearance inspection", side=side, start_pk=300, end_pk=300,
            status=InspectionStatus.APPROVED,
        )

    (summary,) = repositories.phase_summaries(road, get_registry())

    assert (summary.design_length, summary.completed_length) == (1, 1)


class TestDatabaseInspectionWriter:
    @pytest.fixture
    def writer(self):
        return repositories.DatabaseInspectionWriter(get_registry())

    def test_stores_entries(self, writer, road, culvert):
        result = writer.write([draft(road, culvert, "Excavation", "Staking and excavation")])

        assert result.ok
        stored = models.InspectionEntry.objects.get()
        assert stored.types == ["site"]
        assert stored.appointment_date == datetime.date(2026, 3, 2)

    def test_empty_batch(self, writer):
        result = writer.write([])
        assert not result.ok
        assert result.message == "No inspection entries to save"

    def test_rejects_layers_outside_the_template(self, writer, road, culvert):
        result = writer.write([draft(road, culvert, "Deck", "Staking and excavation")])

        assert not result.ok
        assert result.message == "Layer is not part of the workflow template"
        assert result.details == ("Deck",)

    def test_rejects_unknown_checks(self, writer, road, culvert):
        result = writer.write([draft(road, culvert, "Excavation", "Paint inspection")])

        assert result.message == "Check is not part of the workflow template"
        assert result.details == ("Paint inspection",)

    def test_rejects_unknown_phase(self, writer, road, culvert):
        entry = draft(road, culvert, "Excavation", "Staking and excavation")
        result = writer.write([InspectionEntryDraft(**{**entry.__dict__, "phase_id": culvert.id + 50})])

        assert result.message == "Unknown phase"

    def test_rejects_skipped_checks(self, writer, road, culvert, create_entry):
        create_entry(culvert, "Excavation", "Staking and excavation")
        create_entry(culvert, "Cushion", "Concrete pour inspection")

        result = writer.write([draft(road, culvert, "Base slab", "Formwork inspection")])

        assert result.message == "Missing prerequisite checks"
        assert models.InspectionEntry.objects.count() == 2

    def test_batch_is_all_or_nothing(self, writer, road, culvert):
        result = writer.write(
            [
                draft(road, culvert, "Excavation", "Staking and excavation"),
                draft(road, culvert, "Cushion", "Concrete pour inspection", side=Side.LEFT, start=200, end=220),
            ]
        )

        assert not result.ok
        assert result.details == ("Excavation",)
        assert not models.InspectionEntry.objects.exists()

    def test_database_refusals_become_results(self, writer, road, culvert):
        entry = draft(road, culvert, "Excavation", "Staking and excavation")
        result = writer.write([InspectionEntryDraft(**{**entry.__dict__, "submission_number": -3})])

        assert not result.ok
        assert result.message == "Inspection entries could not be stored"
        assert not models.InspectionEntry.objects.exists()
