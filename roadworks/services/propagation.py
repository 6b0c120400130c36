"""Derived snapshots implied by work on another phase."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from roadworks.choices import InspectionStatus

from .records import InspectionRecord, PhaseRecord
from .workflows import PropagationRule, WorkflowRegistry

logger = logging.getLogger(__name__)


def phases_by_workflow(phases: Iterable[PhaseRecord], registry: WorkflowRegistry) -> Dict[str, PhaseRecord]:
    """First phase bound to each workflow id."""

    mapping: Dict[str, PhaseRecord] = {}
    for phase in phases:
        template = registry.for_phase(phase)
        if template is not None and template.id not in mapping:
            mapping[template.id] = phase
    return mapping


def _derive(record: InspectionRecord, target: PhaseRecord, layer_name: Optional[str]) -> InspectionRecord:
    return record.with_changes(
        phase_id=target.id,
        phase_name=target.name,
        status=InspectionStatus.APPROVED,
        layer_id=None,
        layer_name=layer_name or record.layer_name or record.layer_id,
        check_id=None,
        check_name=record.check_name or record.check_id,
        derived=True,
    )


def propagate_snapshots(
    records: Iterable[InspectionRecord],
    phases: Iterable[PhaseRecord],
    registry: WorkflowRegistry,
    rules: Optional[Iterable[PropagationRule]] = None,
) -> List[InspectionRecord]:
    """Return ``records`` plus one derived APPROVED record per committed source record.

    For every rule whose source and target workflows both have a phase on the
    road, each source record at SCHEDULED or later yields an APPROVED record
    on the target phase's top layer at the same range and side.
    """

    records = list(records)
    phase_map = phases_by_workflow(phases, registry)
    derived: List[InspectionRecord] = []
    for rule in registry.propagation_rules if rules is None else rules:
        source = phase_map.get(rule.source_workflow)
        target = phase_map.get(rule.target_workflow)
        if source is None or target is None:
            continue
        template = registry.get(rule.target_workflow)
        top = template.top_layer if template is not None else None
        for record in records:
            if record.phase_id != source.id or record.derived:
                continue
            if not InspectionStatus.coerce(record.status).is_committed:
                continue
            derived.append(_derive(record, target, top.name if top else None))
    if derived:
        logger.debug("Propagated %s derived snapshot(s)", len(derived))
    return records + derived


def persistable(snapshots: Iterable[InspectionRecord]) -> List[InspectionRecord]:
    """Drop derived snapshots; only real records may be written back."""

    return [snapshot for snapshot in snapshots if not snapshot.derived]
