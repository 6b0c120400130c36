"""Layer and check selection rules for one inspection request.

``SelectionState`` is an immutable value: every operation on
:class:`LayerSelector` returns a new state, so callers can keep history or
compare states freely.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from roadworks.choices import InspectionStatus, Side

from .intervals import build_status_key, normalize_label, normalize_range, status_key_candidates
from .records import InspectionRecord
from .status_merge import better
from .workflows import WorkflowCheck, WorkflowLayer, WorkflowTemplate

COVERAGE_TOLERANCE = 1e-6


def _contains(values: Iterable[str], name: str) -> bool:
    target = normalize_label(name)
    return any(normalize_label(value) == target for value in values)


def _without(values: Iterable[str], names: Iterable[str]) -> Tuple[str, ...]:
    drop = {normalize_label(name) for name in names}
    return tuple(value for value in values if normalize_label(value) not in drop)


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    result = []
    for value in values:
        key = normalize_label(value)
        if key and key not in seen:
            seen.add(key)
            result.append(value)
    return tuple(result)


@dataclass(frozen=True)
class SelectionState:
    layers: Tuple[str, ...] = ()
    checks: Tuple[str, ...] = ()
    excluded_checks: Tuple[str, ...] = ()

    def has_layer(self, name: str) -> bool:
        return _contains(self.layers, name)

    def has_check(self, name: str) -> bool:
        return _contains(self.checks, name)


class LayerSelector:
    """Apply stage, dependency and lock-step rules to a selection.

    ``layers`` narrows the template to the layers offered for one interval;
    it defaults to every layer of the template.
    """

    def __init__(self, template: WorkflowTemplate, layers: Optional[Sequence[WorkflowLayer]] = None):
        self.template = template
        self.layers: List[WorkflowLayer] = list(layers) if layers is not None else template.sorted_layers()
        self._available = {layer.id for layer in self.layers}

    def resolve_layer(self, value) -> Optional[WorkflowLayer]:
        layer = self.template.resolve_layer(value)
        if layer is None or layer.id not in self._available:
            return None
        return layer

    def selected_layers(self, state: SelectionState) -> List[WorkflowLayer]:
        resolved = []
        for name in state.layers:
            layer = self.resolve_layer(name)
            if layer is not None and layer not in resolved:
                resolved.append(layer)
        return resolved

    @staticmethod
    def is_compatible(first: WorkflowLayer, second: WorkflowLayer) -> bool:
        if first.id == second.id:
            return True
        locked = second.id in first.lock_step_with or first.id in second.lock_step_with
        parallel = second.id in first.parallel_with or first.id in second.parallel_with
        return locked or parallel

    def stage_window(self, state: SelectionState) -> Tuple[int, ...]:
        selected = self.selected_layers(state)
        if not selected:
            return ()
        min_stage = min(layer.stage for layer in selected)
        return (min_stage, min_stage + 1)

    def is_layer_disabled(self, state: SelectionState, name) -> bool:
        """Whether ``name`` cannot be toggled given the current selection.

        Compatibility alone decides: a layer is disabled when it is neither
        the same layer nor lock-step or parallel with any selected layer.
        :meth:`stage_window` is only reported for display.
        """

        candidate = self.resolve_layer(name)
        selected = self.selected_layers(state)
        if candidate is None or not selected:
            return False
        return not any(self.is_compatible(candidate, layer) for layer in selected)

    def lock_step_group(self, layer: WorkflowLayer) -> List[WorkflowLayer]:
        group = [layer]
        for partner_id in layer.lock_step_with:
            partner = self.resolve_layer(partner_id)
            if partner is not None and partner not in group:
                group.append(partner)
        return group

    def toggle_layer(self, state: SelectionState, name) -> SelectionState:
        candidate = self.resolve_layer(name)
        if candidate is None or self.is_layer_disabled(state, candidate):
            return state
        group = self.lock_step_group(candidate)
        group_labels = [label for layer in group for label in (layer.id,) + layer.labels]
        remaining = _without(state.layers, group_labels)
        if any(state.has_layer(label) for label in (candidate.id,) + candidate.labels):
            layers = remaining
        else:
            layers = remaining + tuple(layer.name for layer in group)
        return self.reconcile_checks(replace(state, layers=layers))

    def allowed_checks(self, state: SelectionState) -> Tuple[str, ...]:
        return _unique(check.name for layer in self.selected_layers(state) for check in layer.checks)

    def toggle_check(self, state: SelectionState, name: str) -> SelectionState:
        if state.has_check(name):
            return replace(
                state,
                checks=_without(state.checks, [name]),
                excluded_checks=_unique(state.excluded_checks + (name,)),
            )
        allowed = self.allowed_checks(state)
        if not _contains(allowed, name):
            return state
        canonical = next(check for check in allowed if normalize_label(check) == normalize_label(name))
        return replace(
            state,
            checks=state.checks + (canonical,),
            excluded_checks=_without(state.excluded_checks, [name]),
        )

    def reconcile_checks(self, state: SelectionState) -> SelectionState:
        """Selected checks become the allowed checks minus explicit exclusions."""

        checks = _without(self.allowed_checks(state), state.excluded_checks)
        return replace(state, checks=checks)

    def find_check(self, state: SelectionState, name: str) -> Optional[WorkflowCheck]:
        for layer in self.selected_layers(state):
            check = layer.find_check(name)
            if check is not None:
                return check
        return None

    def active_types(self, state: SelectionState) -> Tuple[str, ...]:
        base = tuple(self.template.types)
        declared = set()
        for name in state.checks:
            check = self.find_check(state, name)
            if check is not None:
                declared.update(check.types)
        scoped = tuple(kind for kind in base if kind in declared)
        return scoped or base


# ---------------------------------------------------------------------------
# Per-check status for one exact range
# ---------------------------------------------------------------------------


class CheckStatusIndex:
    """Best known status per (layer, check, side) for one phase and range."""

    def __init__(
        self,
        phase_id,
        phase_name: Optional[str],
        start: float,
        end: float,
        template: Optional[WorkflowTemplate] = None,
    ):
        self.phase_id = phase_id
        self.phase_name = phase_name
        self.template = template
        self.start, self.end = normalize_range(start, end)
        self._by_key: Dict[str, InspectionRecord] = {}
        self._by_side: Dict[str, Dict[Side, InspectionRecord]] = {}

    @classmethod
    def build(
        cls,
        snapshots: Iterable[InspectionRecord],
        phase_id,
        phase_name: Optional[str],
        start,
        end,
        template: Optional[WorkflowTemplate] = None,
    ) -> "CheckStatusIndex":
        index = cls(phase_id, phase_name, start, end, template)
        for snapshot in snapshots:
            index.add(snapshot)
        return index

    def _parts(self, snapshot: InspectionRecord) -> dict:
        return dict(
            phase_id=snapshot.phase_id,
            phase_name=snapshot.phase_name or self.phase_name,
            layer_id=snapshot.layer_id,
            layer_name=snapshot.layer_name or snapshot.layer_id,
            check_id=snapshot.check_id,
            check_name=snapshot.check_name or snapshot.check_id,
            start_pk=self.start,
            end_pk=self.end,
        )

    def add(self, snapshot: InspectionRecord) -> None:
        if snapshot.phase_id != self.phase_id:
            return
        if normalize_range(snapshot.start_pk, snapshot.end_pk) != (self.start, self.end):
            return
        if self.template is not None:
            snapshot = self.template.canonical_record(snapshot)
        parts = self._parts(snapshot)
        side = Side.coerce(snapshot.side)
        side_key = build_status_key(side=side, **parts)
        if better(snapshot, self._by_key.get(side_key)):
            self._by_key[side_key] = snapshot
        base = status_key_candidates(**parts)[0]
        by_side = self._by_side.setdefault(base, {})
        for physical in side.physical_sides:
            if better(snapshot, by_side.get(physical)):
                by_side[physical] = snapshot

    def _layer_parts(self, layer: WorkflowLayer, check: WorkflowCheck) -> dict:
        return dict(
            phase_id=self.phase_id,
            phase_name=self.phase_name,
            layer_id=layer.id,
            layer_name=layer.name,
            check_id=check.id,
            check_name=check.name,
            start_pk=self.start,
            end_pk=self.end,
        )

    def side_statuses(self, layer: WorkflowLayer, check: WorkflowCheck) -> Dict[Side, InspectionStatus]:
        for key in status_key_candidates(**self._layer_parts(layer, check)):
            entry = self._by_side.get(key)
            if entry:
                return {side: InspectionStatus.coerce(snapshot.status) for side, snapshot in entry.items()}
        return {}

    def status_for(self, layer: WorkflowLayer, check: WorkflowCheck, side) -> Optional[InspectionStatus]:
        side = Side.coerce(side)
        for key in status_key_candidates(side=side, **self._layer_parts(layer, check)):
            snapshot = self._by_key.get(key)
            if snapshot is not None:
                return InspectionStatus.coerce(snapshot.status)
        if side == Side.BOTH:
            return None
        return self.side_statuses(layer, check).get(side)

    def booked_sides(self, layer: WorkflowLayer) -> Tuple[bool, bool]:
        """Whether any check of ``layer`` is committed on the left / right side."""

        left = right = False
        for check in layer.checks:
            statuses = self.side_statuses(layer, check)
            left = left or (Side.LEFT in statuses and statuses[Side.LEFT].is_committed)
            right = right or (Side.RIGHT in statuses and statuses[Side.RIGHT].is_committed)
        return left, right


def is_layer_locked(layer: WorkflowLayer, side, index: CheckStatusIndex) -> bool:
    """A layer is read-only once every check is committed for ``side``."""

    if not layer.checks:
        return False
    for check in layer.checks:
        status = index.status_for(layer, check, side)
        if status is None or not status.is_committed:
            return False
    return True


# ---------------------------------------------------------------------------
# Dependency coverage
# ---------------------------------------------------------------------------


def _covers(ranges: List[Tuple[float, float]], start: float, end: float) -> bool:
    cursor = start
    for lo, hi in sorted(ranges):
        if hi < cursor - COVERAGE_TOLERANCE:
            continue
        if lo > cursor + COVERAGE_TOLERANCE:
            return False
        cursor = max(cursor, hi)
        if cursor >= end - COVERAGE_TOLERANCE:
            return True
    return bool(ranges) and cursor >= end - COVERAGE_TOLERANCE


def layer_coverage(
    template: WorkflowTemplate,
    snapshots: Iterable[InspectionRecord],
    phase_id,
    start: float,
    end: float,
) -> Dict[Tuple[str, Side], List[Tuple[float, float]]]:
    """Committed ranges per (layer id, physical side), clipped to ``[start, end]``."""

    coverage: Dict[Tuple[str, Side], List[Tuple[float, float]]] = {}
    for snapshot in snapshots:
        if snapshot.phase_id != phase_id:
            continue
        if not InspectionStatus.coerce(snapshot.status).is_committed:
            continue
        layer = template.resolve_layer(snapshot.layer_name or snapshot.layer_id)
        if layer is None:
            continue
        lo, hi = normalize_range(snapshot.start_pk, snapshot.end_pk)
        if hi < start or lo > end:
            continue
        clipped = (max(lo, start), min(hi, end))
        for side in Side.coerce(snapshot.side).physical_sides:
            coverage.setdefault((layer.id, side), []).append(clipped)
    return coverage


def _effective_dependencies(
    template: WorkflowTemplate,
    layer: WorkflowLayer,
    available: Optional[set],
    visited: Optional[set] = None,
) -> List[str]:
    """Dependency ids, skipping over layers the interval does not offer."""

    visited = set(visited or ())
    if layer.id in visited:
        return []
    visited.add(layer.id)
    resolved: List[str] = []
    for dependency_id in layer.dependencies:
        if not available or dependency_id in available:
            resolved.append(dependency_id)
            continue
        dependency = template.layer(dependency_id)
        if dependency is not None:
            resolved.extend(_effective_dependencies(template, dependency, available, visited))
    return list(dict.fromkeys(resolved))


def missing_dependencies(
    template: WorkflowTemplate,
    selected_layers: Iterable,
    side,
    start,
    end,
    snapshots: Iterable[InspectionRecord],
    phase_id,
    available_layers: Optional[Iterable] = None,
) -> List[str]:
    """Dependency layers with no committed coverage of the range.

    Layers selected in the same request satisfy each other. A ``BOTH``
    request needs coverage on each side and reports them separately.
    """

    range_start, range_end = normalize_range(start, end)
    side = Side.coerce(side)
    selected = [template.resolve_layer(value) for value in selected_layers]
    selected_ids = {layer.id for layer in selected if layer is not None}
    available = None
    if available_layers:
        available = {layer.id for layer in map(template.resolve_layer, available_layers) if layer is not None}
    coverage = layer_coverage(template, snapshots, phase_id, range_start, range_end)

    missing: List[str] = []
    for layer in selected:
        if layer is None:
            continue
        for dependency_id in _effective_dependencies(template, layer, available):
            if dependency_id in selected_ids:
                continue
            name = template.layer(dependency_id).name
            for physical in side.physical_sides:
                if _covers(coverage.get((dependency_id, physical), []), range_start, range_end):
                    continue
                label = f"{physical.label}: {name}" if side == Side.BOTH else name
                if label not in missing:
                    missing.append(label)
    return missing


def missing_prior_checks(
    template: WorkflowTemplate,
    selected_layers: Iterable,
    selected_checks: Sequence[str],
    side,
    start,
    end,
    snapshots: Iterable[InspectionRecord],
    phase_id,
) -> List[str]:
    """Earlier checks of a layer that are neither selected nor already committed.

    Checks inside a layer run in declaration order; any committed record of
    the layer over the range counts as completing its checks on that side.
    """

    range_start, range_end = normalize_range(start, end)
    sides = Side.coerce(side).physical_sides
    selected_ids = {layer.id for layer in map(template.resolve_layer, selected_layers) if layer is not None}
    coverage = layer_coverage(template, snapshots, phase_id, range_start, range_end)

    missing: List[str] = []
    for name in selected_checks:
        owners = template.check_owners(name)
        if not owners:
            continue
        owner = next((layer for layer in owners if layer.id in selected_ids), owners[0])
        completed = all(coverage.get((owner.id, physical)) for physical in sides)
        for check in owner.checks:
            if any(normalize_label(label) == normalize_label(name) for label in check.labels):
                break
            if completed or _contains(selected_checks, check.name):
                continue
            if check.name not in missing:
                missing.append(check.name)
    return missing
