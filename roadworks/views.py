"""REST API views for the road works inspection engine."""

from __future__ import annotations

from typing import Optional

from django.conf import settings
from django.http import Http404
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from . import models, repositories, serializers
from .apps import get_registry
from .choices import Measure, Side
from .services.batching import SubmissionRequest, submit_inspection
from .services.progress import combined_percent, percent_complete
from .services.records import PhaseRecord
from .services.segments import build_linear_view, build_point_view, design_quantity
from .services.selection import CheckStatusIndex, LayerSelector, SelectionState, is_layer_locked
from .services.side_booking import enforced_side_for, resolve_side_booking


class RoadSectionViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = models.RoadSection.objects.prefetch_related("phases__definition", "phases__intervals")
    serializer_class = serializers.RoadSectionSerializer
    lookup_field = "slug"


class InspectionEntryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = models.InspectionEntry.objects.select_related("phase", "road")
    serializer_class = serializers.InspectionEntrySerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        phase_id = self.request.query_params.get("phase")
        if phase_id:
            queryset = queryset.filter(phase_id=phase_id)
        return queryset


def side_labels() -> dict:
    configured = getattr(settings, "ROADWORKS_SIDE_LABELS", {}) or {}
    return {key.lower(): value for key, value in configured.items()}


def _phase_or_404(state: repositories.RoadState, phase_id: int) -> PhaseRecord:
    phase = state.phase(phase_id)
    if phase is None:
        raise Http404("No phase matches the given query.")
    return phase


def _enforced_side(phase: PhaseRecord, start, end) -> Optional[Side]:
    interval = repositories.interval_for_range(phase, start, end)
    if interval is None:
        return None
    return enforced_side_for(phase, interval.side)


def _status_value(value) -> Optional[str]:
    return str(value) if value is not None else None


@api_view(["GET"])
def workflow_list(request: Request) -> Response:
    """Return every registered workflow template."""

    return Response({"workflows": [template.as_dict() for template in get_registry()]})


@api_view(["GET"])
def road_phase_views(request: Request, slug: str) -> Response:
    """Return the linear or point view of every phase of a road."""

    road = get_object_or_404(models.RoadSection, slug=slug)
    registry = get_registry()
    state = repositories.load_road_state(road, registry)

    phases = []
    for phase in state.phases:
        template = repositories.template_for_phase(registry, phase)
        payload = {
            "id": phase.id,
            "name": phase.name,
            "measure": str(phase.measure),
            "workflow": template.id,
            "designQuantity": design_quantity(phase.measure, phase.intervals),
        }
        if phase.measure == Measure.LINEAR:
            view = build_linear_view(phase, state.road.length, side_labels(), state.slices)
            payload["linear"] = view.as_dict()
            payload["percent"] = combined_percent(view.left.segments, view.right.segments)
        else:
            view = build_point_view(phase, state.road.start_pk, state.road.end_pk)
            points = []
            for point in view.points:
                progress = percent_complete(
                    template,
                    phase.id,
                    phase.name,
                    point.side,
                    point.start_pk,
                    point.end_pk,
                    state.snapshots,
                    allowed_layers=point.layers or None,
                )
                points.append(
                    {
                        "startPk": point.start_pk,
                        "endPk": point.end_pk,
                        "side": str(point.side),
                        "spec": point.spec,
                        "percent": round(progress.percent),
                    }
                )
            payload["point"] = {"min": view.min, "max": view.max, "points": points}
        phases.append(payload)
    return Response({"road": state.road.slug, "length": state.road.length, "phases": phases})


@api_view(["GET"])
def phase_booking(request: Request, slug: str, phase_id: int) -> Response:
    """Return side booking, layer locks and progress for one range of a phase."""

    road = get_object_or_404(models.RoadSection, slug=slug)
    query = serializers.BookingQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    start = query.validated_data["start"]
    end = query.validated_data["end"]
    side = Side.coerce(query.validated_data["side"])

    registry = get_registry()
    state = repositories.load_road_state(road, registry)
    phase = _phase_or_404(state, phase_id)
    template = repositories.template_for_phase(registry, phase)
    layers = repositories.available_layers(template, phase, start, end)
    snapshots = [snapshot for snapshot in state.snapshots.values() if snapshot.phase_id == phase.id]

    enforced = _enforced_side(phase, start, end)
    booking = resolve_side_booking(snapshots, phase.id, start, end, enforced_side=enforced)
    index = CheckStatusIndex.build(snapshots, phase.id, phase.name, start, end, template)
    selector = LayerSelector(template, layers)
    selection = SelectionState(layers=tuple(request.query_params.getlist("layer")))

    layer_states = []
    for layer in layers:
        layer_states.append(
            {
                "id": layer.id,
                "name": layer.name,
                "stage": layer.stage,
                "locked": is_layer_locked(layer, side, index),
                "disabled": selector.is_layer_disabled(selection, layer.name),
                "checks": [
                    {
                        "name": check.name,
                        "status": _status_value(index.status_for(layer, check, side)),
                        "sides": {
                            str(key): str(value) for key, value in index.side_statuses(layer, check).items()
                        },
                    }
                    for check in layer.checks
                ],
            }
        )

    progress = percent_complete(
        template,
        phase.id,
        phase.name,
        side,
        start,
        end,
        state.snapshots,
        allowed_layers=[layer.id for layer in layers],
    )
    return Response(
        {
            "phaseId": phase.id,
            "workflow": template.id,
            "sideBooking": booking.as_dict(),
            "enforcedSide": str(enforced) if enforced else None,
            "stageWindow": list(selector.stage_window(selection)),
            "layers": layer_states,
            "progress": progress.as_dict(),
        }
    )


@api_view(["POST"])
def submit_phase_inspections(request: Request, slug: str, phase_id: int) -> Response:
    """Split a layer/check selection into inspection entries and store them."""

    road = get_object_or_404(models.RoadSection, slug=slug)
    serializer = serializers.InspectionSubmissionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    registry = get_registry()
    state = repositories.load_road_state(road, registry)
    phase = _phase_or_404(state, phase_id)
    template = repositories.template_for_phase(registry, phase)

    appointment = data["appointmentDate"]
    submission = SubmissionRequest(
        road_id=road.id,
        phase_id=phase.id,
        side=Side.coerce(data["side"]),
        start_pk=data["startPk"],
        end_pk=data["endPk"],
        layers=tuple(data["layers"]),
        checks=tuple(data["checks"]),
        types=tuple(data["types"]),
        remark=data["remark"],
        appointment_date=appointment.isoformat() if appointment else None,
        submission_number=data["submissionNumber"],
    )
    options = {"phase_name": phase.name}
    try:
        start, end = float(submission.start_pk), float(submission.end_pk)
    except (TypeError, ValueError):
        start = end = None
    if start is not None:
        options["enforced_side"] = _enforced_side(phase, start, end)
        options["layers"] = repositories.available_layers(template, phase, start, end)

    snapshots = [snapshot for snapshot in state.snapshots.values() if snapshot.phase_id == phase.id]
    writer = repositories.DatabaseInspectionWriter(registry)
    outcome = submit_inspection(submission, template, snapshots, writer, **options)
    if not outcome.ok:
        return Response(outcome.error.as_dict(), status=status.HTTP_400_BAD_REQUEST)
    return Response(
        {"entries": [entry.as_payload() for entry in outcome.entries]},
        status=status.HTTP_201_CREATED,
    )
