"""End-to-end checks of the inspection API against the database."""

from __future__ import annotations

import datetime

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from roadworks import models
from roadworks.choices import InspectionStatus, Measure, Side
from roadworks.services import workflow_catalog

pytestmark = pytest.mark.django_db


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


def submission(**overrides) -> dict:
    payload = {
        "side": "BOTH",
        "startPk": 100,
        "endPk": 120,
        "layers": ["Excavation"],
        "checks": ["Staking and excavation"],
        "types": ["site"],
        "remark": "",
        "appointmentDate": "2026-03-02",
        "submissionNumber": "12",
    }
    payload.update(overrides)
    return payload


def submit(api_client, road, phase, **overrides):
    url = reverse("phase_inspections", args=[road.slug, phase.id])
    return api_client.post(url, submission(**overrides), format="json")


class WorkflowListTests(APITestCase):
    def test_lists_catalog_templates(self):
        response = self.client.get(reverse("workflow_list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [item["id"] for item in response.json()["workflows"]]
        self.assertEqual(ids, [template.id for template in workflow_catalog.TEMPLATES])


def test_linear_phase_view(api_client, road, earthwork, create_entry):
    create_entry(
        earthwork,
        "Fill layer 4",
        "Compaction inspection",
        side=Side.LEFT,
        start_pk=0,
        end_pk=400,
        status=InspectionStatus.APPROVED,
    )
    response = api_client.get(reverse("road_phase_views", args=[road.slug]))

    assert response.status_code == status.HTTP_200_OK
    (phase,) = response.json()["phases"]
    assert phase["workflow"] == "earthwork"
    assert phase["designQuantity"] == 800
    assert phase["percent"] == 50
    left = phase["linear"]["left"]
    assert left["label"] == "Left"
    assert [(item["start"], item["end"], item["status"]) for item in left["segments"]] == [
        (0, 400, "approved"),
        (400, 1000, "nonDesign"),
    ]
    assert phase["linear"]["right"]["segments"][0]["status"] == "pending"


def test_subbase_commitment_completes_earthwork(api_client, road, earthwork, create_phase, create_entry):
    subbase = create_phase("Subbase", intervals=[{"start_pk": 0, "end_pk": 400, "side": Side.BOTH}])
    create_entry(subbase, "Subbase", "Compaction inspection", start_pk=0, end_pk=400)

    response = api_client.get(reverse("road_phase_views", args=[road.slug]))
    phases = {item["name"]: item for item in response.json()["phases"]}

    assert phases["Earthwork"]["percent"] == 100
    assert phases["Subbase"]["percent"] == 0
    assert models.InspectionEntry.objects.filter(phase=earthwork).count() == 0


def test_point_phase_view(api_client, road, culvert, create_entry):
    create_entry(culvert, "Excavation", "Staking and excavation", status=InspectionStatus.APPROVED)
    response = api_client.get(reverse("road_phase_views", args=[road.slug]))

    (phase,) = response.json()["phases"]
    assert phase["measure"] == Measure.POINT
    assert phase["point"]["min"] == 100
    assert phase["point"]["max"] == 120
    assert phase["point"]["points"][0]["percent"] == round(100 / 21)


def test_booking_locks_the_open_side(api_client, road, culvert, create_entry):
    create_entry(culvert, "Excavation", "Staking and excavation", side=Side.LEFT)
    url = reverse("phase_booking", args=[road.slug, culvert.id])
    response = api_client.get(url, {"start": 120, "end": 100, "side": "LEFT"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["sideBooking"] == {"left": True, "right": False, "both": False, "lockedSide": "RIGHT"}
    assert body["enforcedSide"] is None
    excavation = next(layer for layer in body["layers"] if layer["id"] == "excavation")
    assert excavation["locked"] is True
    assert excavation["checks"][0]["sides"] == {"LEFT": "SCHEDULED"}


def test_booking_reports_enforced_side_and_stage_window(api_client, road, create_phase):
    phase = create_phase(
        "Culvert",
        Measure.POINT,
        intervals=[{"start_pk": 300, "end_pk": 300, "side": Side.RIGHT}],
        point_has_sides=True,
    )
    url = reverse("phase_booking", args=[road.slug, phase.id])
    response = api_client.get(url + "?start=300&end=300&layer=Wall")

    body = response.json()
    assert body["enforcedSide"] == "RIGHT"
    assert body["sideBooking"]["lockedSide"] == "RIGHT"
    assert body["stageWindow"] == [4, 5]
    disabled = {layer["id"]: layer["disabled"] for layer in body["layers"]}
    assert disabled["cap"] is False
    assert disabled["cushion"] is True


def test_booking_requires_a_range(api_client, road, culvert):
    url = reverse("phase_booking", args=[road.slug, culvert.id])
    assert api_client.get(url).status_code == status.HTTP_400_BAD_REQUEST


def test_submission_creates_entries(api_client, road, culvert):
    response = submit(api_client, road, culvert)

    assert response.status_code == status.HTTP_201_CREATED
    (entry,) = response.json()["entries"]
    assert entry["side"] == "BOTH"
    assert entry["submissionNumber"] == 12
    stored = models.InspectionEntry.objects.get()
    assert stored.status == InspectionStatus.SCHEDULED
    assert stored.appointment_date == datetime.date(2026, 3, 2)
    assert (stored.layer_name, stored.check_name) == ("Excavation", "Staking and excavation")


def test_submission_splits_to_the_uncommitted_side(api_client, road, culvert, create_entry):
    for layer, check in (("Excavation", "Staking and excavation"), ("Cushion", "Concrete pour inspection")):
        create_entry(culvert, layer, check, status=InspectionStatus.APPROVED)
    for check in ("Rebar inspection", "Formwork inspection", "Concrete pour inspection"):
        create_entry(culvert, "Base slab", check, status=InspectionStatus.APPROVED)
        create_entry(culvert, "Cutoff wall", check, status=InspectionStatus.APPROVED)
        create_entry(culvert, "Wall", check, side=Side.LEFT)

    response = submit(api_client, road, culvert, layers=["Wall"], checks=["Rebar inspection"])

    assert response.status_code == status.HTTP_201_CREATED
    assert [entry["side"] for entry in response.json()["entries"]] == ["RIGHT"]


def test_missing_prerequisites_are_rejected(api_client, road, culvert, create_entry):
    create_entry(culvert, "Excavation", "Staking and excavation")

    response = submit(
        api_client, road, culvert, layers=["Base slab", "Cutoff wall"], checks=["Rebar inspection"]
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {
        "reason": "SubmitRejected",
        "message": "Missing prerequisite inspections: Left: Cushion / Right: Cushion",
        "details": ["Left: Cushion", "Right: Cushion"],
    }
    assert models.InspectionEntry.objects.count() == 1


@pytest.mark.parametrize(
    "overrides,reason",
    [
        ({"startPk": ""}, "RangeInvalid"),
        ({"layers": []}, "LayerMissing"),
        ({"checks": []}, "CheckMissing"),
        ({"types": ["lab"]}, "TypeMissing"),
        ({"appointmentDate": None}, "AppointmentMissing"),
        ({"submissionNumber": "n/a"}, "SubmissionNumberInvalid"),
        ({"submissionNumber": "-3"}, "SubmissionNumberInvalid"),
        ({"submissionNumber": "1.5"}, "SubmissionNumberInvalid"),
    ],
)
def test_incomplete_submissions_are_classified(api_client, road, culvert, overrides, reason):
    response = submit(api_client, road, culvert, **overrides)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["reason"] == reason
    assert not models.InspectionEntry.objects.exists()


def test_unknown_road_or_phase(api_client, road, culvert):
    assert api_client.get(reverse("road_phase_views", args=["nowhere"])).status_code == status.HTTP_404_NOT_FOUND
    url = reverse("phase_booking", args=[road.slug, culvert.id + 100])
    assert api_client.get(url, {"start": 0, "end": 1}).status_code == status.HTTP_404_NOT_FOUND


def test_read_only_resources(api_client, road, culvert, create_entry):
    create_entry(culvert, "Excavation", "Staking and excavation")

    road_response = api_client.get(reverse("roadsection-detail", args=[road.slug]))
    assert road_response.json()["name"] == "RN7 Lot 2"
    (phase,) = road_response.json()["phases"]
    assert phase["definition_name"] == "Culvert"
    assert phase["intervals"][0]["start_pk"] == 100

    entries = api_client.get(reverse("inspectionentry-list"), {"phase": culvert.id}).json()
    assert [item["layer_name"] for item in entries] == ["Excavation"]
