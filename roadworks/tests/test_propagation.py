from __future__ import annotations

from roadworks.choices import InspectionStatus, SegmentStatus, Side
from roadworks.services.propagation import persistable, propagate_snapshots
from roadworks.services.segments import build_linear_view
from roadworks.services.snapshots import inspection_slices, latest_snapshots
from roadworks.tests.fixtures import EARTHWORK_PHASE_ID, SUBBASE_PHASE_ID, record


def subbase_record(status=InspectionStatus.SCHEDULED, side=Side.LEFT):
    return record(
        SUBBASE_PHASE_ID,
        "Subbase",
        "Compaction inspection",
        side=side,
        start=0,
        end=400,
        status=status,
        phase_name="Subbase",
    )


def test_committed_subbase_approves_the_top_earthwork_layer(registry, earthwork_phase, subbase_phase):
    source = subbase_record()
    records = propagate_snapshots([source], [earthwork_phase, subbase_phase], registry)

    assert records[0] is source
    derived = records[1]
    assert derived.derived
    assert derived.phase_id == EARTHWORK_PHASE_ID
    assert derived.layer_name == "Fill layer 4"
    assert derived.layer_id is None and derived.check_id is None
    assert derived.status == InspectionStatus.APPROVED
    assert (derived.side, derived.start_pk, derived.end_pk) == (Side.LEFT, 0, 400)


def test_pending_subbase_and_missing_phases_do_not_propagate(registry, earthwork_phase, subbase_phase):
    pending = subbase_record(InspectionStatus.PENDING)
    assert propagate_snapshots([pending], [earthwork_phase, subbase_phase], registry) == [pending]
    committed = subbase_record()
    assert propagate_snapshots([committed], [subbase_phase], registry) == [committed]


def test_derived_snapshots_colour_earthwork_but_are_never_persisted(registry, earthwork_phase, subbase_phase):
    phases = [earthwork_phase, subbase_phase]
    records = propagate_snapshots([subbase_record()], phases, registry)
    snapshots = latest_snapshots(records)
    view = build_linear_view(earthwork_phase, 1000, inspections=inspection_slices(snapshots.values(), phases, registry))

    assert view.left.segments[0].status == SegmentStatus.APPROVED
    assert view.right.segments[0].status == SegmentStatus.PENDING
    assert [item.phase_id for item in persistable(snapshots.values())] == [SUBBASE_PHASE_ID]


def test_derived_records_are_not_propagated_again(registry, earthwork_phase, subbase_phase):
    derived = subbase_record().with_changes(derived=True)
    assert propagate_snapshots([derived], [earthwork_phase, subbase_phase], registry) == [derived]


def test_only_top_earthwork_layers_feed_slices(registry, earthwork_phase):
    lower = record(
        EARTHWORK_PHASE_ID,
        "Fill layer 2",
        "Compaction inspection",
        start=0,
        end=400,
        status=InspectionStatus.APPROVED,
        phase_name="Earthwork",
    )
    top = lower.with_changes(layer_name="第四层填土", status=InspectionStatus.SUBMITTED, side=Side.RIGHT)
    slices = inspection_slices([lower, top], [earthwork_phase], registry)

    assert [(item.side, item.status) for item in slices] == [(Side.RIGHT, InspectionStatus.SUBMITTED)]


def test_latest_snapshots_keep_the_best_record_per_key():
    older = record(1, "Wall", "Rebar inspection", status=InspectionStatus.APPROVED, updated_at=1)
    newer = older.with_changes(status=InspectionStatus.SCHEDULED, updated_at=9)
    reversed_range = older.with_changes(start_pk=120, end_pk=100, status="submitted", updated_at=3)
    snapshots = latest_snapshots([older, newer, reversed_range])

    assert len(snapshots) == 1
    (snapshot,) = snapshots.values()
    assert snapshot.status == InspectionStatus.APPROVED
