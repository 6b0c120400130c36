"""Reduce raw inspection records to snapshots and renderable slices."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from roadworks.choices import InspectionStatus, Measure, Side

from .intervals import build_status_key, normalize_label, normalize_range
from .records import InspectionRecord, InspectionSlice, PhaseRecord
from .status_merge import better
from .workflows import WorkflowRegistry


def snapshot_key(record: InspectionRecord) -> str:
    return build_status_key(
        side=Side.coerce(record.side),
        phase_id=record.phase_id,
        phase_name=record.phase_name,
        layer_id=record.layer_id,
        layer_name=record.layer_name,
        check_id=record.check_id,
        check_name=record.check_name,
        start_pk=record.start_pk,
        end_pk=record.end_pk,
    )


def normalize_record(record: InspectionRecord) -> InspectionRecord:
    start, end = normalize_range(record.start_pk, record.end_pk)
    return record.with_changes(
        start_pk=start,
        end_pk=end,
        side=Side.coerce(record.side),
        status=InspectionStatus.coerce(record.status),
    )


def latest_snapshots(records: Iterable[InspectionRecord]) -> Dict[str, InspectionRecord]:
    """Keep the best record per (phase, layer, check, range, side) key."""

    snapshots: Dict[str, InspectionRecord] = {}
    for record in records:
        record = normalize_record(record)
        key = snapshot_key(record)
        if better(record, snapshots.get(key)):
            snapshots[key] = record
    return snapshots


def top_layer_labels(phases: Iterable[PhaseRecord], registry: WorkflowRegistry) -> Dict[int, Set[str]]:
    """Top-stage layer labels for each linear phase with a multi-layer workflow."""

    labels: Dict[int, Set[str]] = {}
    for phase in phases:
        if phase.measure != Measure.LINEAR:
            continue
        template = registry.for_phase(phase)
        if template is None or len(template.layers) <= 1:
            continue
        names = {
            normalize_label(label)
            for layer in template.top_layers()
            for label in (layer.id,) + layer.labels
        }
        names.discard("")
        if names:
            labels[phase.id] = names
    return labels


def _layer_label(snapshot: InspectionRecord) -> Optional[str]:
    label = normalize_label(snapshot.layer_name or snapshot.layer_id)
    return label or None


def inspection_slices(
    snapshots: Iterable[InspectionRecord],
    phases: Iterable[PhaseRecord],
    registry: WorkflowRegistry,
) -> List[InspectionSlice]:
    """Best slice per (phase, side, range).

    A multi-layer linear phase is only complete where its last layer is, so
    only top-layer snapshots feed its slices.
    """

    restricted = top_layer_labels(phases, registry)
    slices: Dict[Tuple, InspectionSlice] = {}
    for snapshot in snapshots:
        top = restricted.get(snapshot.phase_id)
        if top is not None and _layer_label(snapshot) not in top:
            continue
        start, end = normalize_range(snapshot.start_pk, snapshot.end_pk)
        side = Side.coerce(snapshot.side)
        candidate = InspectionSlice(
            phase_id=snapshot.phase_id,
            side=side,
            start_pk=start,
            end_pk=end,
            status=InspectionStatus.coerce(snapshot.status),
            updated_at=snapshot.updated_at,
        )
        key = (snapshot.phase_id, side, start, end)
        if better(candidate, slices.get(key)):
            slices[key] = candidate
    return list(slices.values())


def snapshots_for_phase(snapshots: Mapping[str, InspectionRecord], phase_id) -> List[InspectionRecord]:
    return [snapshot for snapshot in snapshots.values() if snapshot.phase_id == phase_id]
