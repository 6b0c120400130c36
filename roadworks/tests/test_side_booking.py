from __future__ import annotations

import itertools

from roadworks.choices import InspectionStatus, Measure, Side
from roadworks.services.records import PhaseRecord
from roadworks.services.side_booking import enforced_side_for, matches_side, resolve_side_booking
from roadworks.tests.fixtures import CULVERT_PHASE_ID, record


def booking(*snapshots, enforced=None, start=100, end=120):
    return resolve_side_booking(snapshots, CULVERT_PHASE_ID, start, end, enforced_side=enforced)


def test_left_booking_locks_the_right_side():
    result = booking(record(CULVERT_PHASE_ID, "Excavation", "Staking and excavation", side=Side.LEFT))
    assert result.left and not result.right
    assert result.both is False
    assert result.locked_side == Side.RIGHT


def test_booking_is_symmetric():
    left = record(CULVERT_PHASE_ID, "Excavation", "Staking and excavation", side=Side.LEFT)
    right = record(CULVERT_PHASE_ID, "Excavation", "Staking and excavation", side=Side.RIGHT)
    for order in itertools.permutations([left, right]):
        result = booking(*order)
        assert result.both is True
        assert result.locked_side is None


def test_pending_other_phase_and_distant_records_are_ignored():
    result = booking(
        record(CULVERT_PHASE_ID, "Excavation", "Staking and excavation", status=InspectionStatus.PENDING),
        record(CULVERT_PHASE_ID + 1, "Excavation", "Staking and excavation"),
        record(CULVERT_PHASE_ID, "Excavation", "Staking and excavation", start=300, end=320),
    )
    assert (result.left, result.right, result.both, result.locked_side) == (False, False, False, None)


def test_both_record_books_each_side():
    result = booking(record(CULVERT_PHASE_ID, "Excavation", "Staking and excavation", start=125, end=95))
    assert result.left and result.right and result.both
    assert result.locked_side is None


def test_enforced_side_always_locks():
    result = booking(enforced=Side.LEFT)
    assert result.locked_side == Side.LEFT
    assert not result.both


def test_enforced_side_only_for_sided_point_phases():
    sided = PhaseRecord(id=1, name="Culvert", measure=Measure.POINT, point_has_sides=True)
    plain = PhaseRecord(id=2, name="Culvert", measure=Measure.POINT)
    linear = PhaseRecord(id=3, name="Earthwork", measure=Measure.LINEAR, point_has_sides=True)
    assert enforced_side_for(sided, "right") == Side.RIGHT
    assert enforced_side_for(plain, Side.RIGHT) is None
    assert enforced_side_for(linear, Side.RIGHT) is None


def test_matches_side():
    assert matches_side(Side.BOTH, Side.LEFT)
    assert matches_side(Side.LEFT, Side.LEFT)
    assert not matches_side(Side.LEFT, Side.BOTH)
    assert not matches_side(Side.RIGHT, Side.LEFT)
