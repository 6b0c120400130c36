"""Workflow templates: layers, checks and the rules linking them.

Templates are static configuration. They are validated once when the
registry is built (at app start-up) and a broken template is fatal there,
never a request-time error.
"""

from __future__ import annotations

import importlib
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from django.core.exceptions import ImproperlyConfigured

from roadworks.choices import Measure

from .intervals import normalize_label
from .records import PhaseDefinitionRecord

logger = logging.getLogger(__name__)

DEFAULT_INSPECTION_TYPES: Tuple[str, ...] = ("site", "survey", "lab", "other")

_LAYER_TOKEN_SPLIT = re.compile(r"[\\/,，;]")


@dataclass(frozen=True)
class WorkflowCheck:
    id: str
    name: str
    types: Tuple[str, ...] = DEFAULT_INSPECTION_TYPES
    notes: str = ""
    aliases: Tuple[str, ...] = ()

    @property
    def labels(self) -> Tuple[str, ...]:
        return (self.name,) + tuple(self.aliases)


@dataclass(frozen=True)
class WorkflowLayer:
    id: str
    name: str
    stage: int
    dependencies: Tuple[str, ...] = ()
    lock_step_with: Tuple[str, ...] = ()
    parallel_with: Tuple[str, ...] = ()
    checks: Tuple[WorkflowCheck, ...] = ()
    description: str = ""
    aliases: Tuple[str, ...] = ()

    @property
    def labels(self) -> Tuple[str, ...]:
        return (self.name,) + tuple(self.aliases)

    def owns_check(self, name: str) -> bool:
        target = normalize_label(name)
        return any(normalize_label(label) == target for check in self.checks for label in check.labels)

    def find_check(self, name: str) -> Optional[WorkflowCheck]:
        target = normalize_label(name)
        for check in self.checks:
            if normalize_label(check.id) == target:
                return check
            if any(normalize_label(label) == target for label in check.labels):
                return check
        return None


@dataclass(frozen=True)
class WorkflowTemplate:
    id: str
    phase_name: str
    measure: Measure
    layers: Tuple[WorkflowLayer, ...]
    default_types: Tuple[str, ...] = DEFAULT_INSPECTION_TYPES
    side_rule: str = ""
    description: str = ""
    aliases: Tuple[str, ...] = ()
    _layers_by_id: Dict[str, WorkflowLayer] = field(init=False, repr=False, compare=False)
    _layers_by_label: Dict[str, WorkflowLayer] = field(init=False, repr=False, compare=False)
    _owners_by_check: Dict[str, Tuple[WorkflowLayer, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_id: Dict[str, WorkflowLayer] = {}
        by_label: Dict[str, WorkflowLayer] = {}
        owners: Dict[str, List[WorkflowLayer]] = {}
        for layer in self.layers:
            by_id.setdefault(layer.id, layer)
            for label in layer.labels:
                by_label.setdefault(normalize_label(label), layer)
            for check in layer.checks:
                for label in check.labels:
                    bucket = owners.setdefault(normalize_label(label), [])
                    if layer not in bucket:
                        bucket.append(layer)
        object.__setattr__(self, "_layers_by_id", by_id)
        object.__setattr__(self, "_layers_by_label", by_label)
        object.__setattr__(self, "_owners_by_check", {key: tuple(value) for key, value in owners.items()})

    @property
    def types(self) -> Tuple[str, ...]:
        return self.default_types or DEFAULT_INSPECTION_TYPES

    def layer(self, layer_id: str) -> Optional[WorkflowLayer]:
        return self._layers_by_id.get(layer_id)

    def resolve_layer(self, value) -> Optional[WorkflowLayer]:
        """Find a layer by id, name or alias (case/whitespace insensitive)."""

        if value is None:
            return None
        if isinstance(value, WorkflowLayer):
            return value
        text = str(value).strip()
        return self._layers_by_id.get(text) or self._layers_by_label.get(normalize_label(text))

    def check_owners(self, check_name: str) -> Tuple[WorkflowLayer, ...]:
        return self._owners_by_check.get(normalize_label(check_name), ())

    def canonical_check_name(self, check_name: str, layer: Optional[WorkflowLayer] = None) -> str:
        owners = (layer,) if layer is not None else self.check_owners(check_name)
        for owner in owners:
            check = owner.find_check(check_name)
            if check is not None:
                return check.name
        return check_name

    def canonical_record(self, record):
        """``record`` with alias or id labels replaced by the template's own names."""

        layer = self.resolve_layer(record.layer_name or record.layer_id)
        if layer is None:
            return record
        check_label = record.check_name or record.check_id
        check_name = self.canonical_check_name(check_label, layer) if check_label else record.check_name
        if (record.layer_name, record.check_name) == (layer.name, check_name):
            return record
        return record.with_changes(layer_name=layer.name, check_name=check_name)

    def sorted_layers(self) -> List[WorkflowLayer]:
        return sorted(self.layers, key=lambda layer: (layer.stage, layer.name))

    def top_layers(self) -> List[WorkflowLayer]:
        if not self.layers:
            return []
        max_stage = max(layer.stage for layer in self.layers)
        return [layer for layer in self.layers if layer.stage == max_stage]

    @property
    def top_layer(self) -> Optional[WorkflowLayer]:
        top = self.top_layers()
        return top[0] if top else None

    def check_names(self) -> List[str]:
        return [check.name for layer in self.sorted_layers() for check in layer.checks]

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "phaseName": self.phase_name,
            "measure": str(self.measure),
            "sideRule": self.side_rule or None,
            "description": self.description or None,
            "defaultTypes": list(self.types),
            "layers": [
                {
                    "id": layer.id,
                    "name": layer.name,
                    "stage": layer.stage,
                    "dependencies": list(layer.dependencies),
                    "lockStepWith": list(layer.lock_step_with),
                    "parallelWith": list(layer.parallel_with),
                    "description": layer.description or None,
                    "checks": [
                        {"id": check.id, "name": check.name, "types": list(check.types), "notes": check.notes or None}
                        for check in layer.checks
                    ],
                }
                for layer in self.sorted_layers()
            ],
        }


@dataclass(frozen=True)
class PropagationRule:
    """Commitment on ``source_workflow`` approves the top layer of ``target_workflow``."""

    source_workflow: str
    target_workflow: str


def simple_layer(
    layer_id: str,
    name: str,
    stage: int,
    checks: Sequence[str],
    dependencies: Sequence[str] = (),
    types: Sequence[str] = DEFAULT_INSPECTION_TYPES,
) -> WorkflowLayer:
    return WorkflowLayer(
        id=layer_id,
        name=name,
        stage=stage,
        dependencies=tuple(dependencies),
        checks=tuple(
            WorkflowCheck(id=f"{layer_id}-check-{idx}", name=check, types=tuple(types))
            for idx, check in enumerate(checks, start=1)
        ),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def template_errors(template: WorkflowTemplate) -> List[str]:
    """Return human readable configuration problems for ``template``."""

    errors: List[str] = []
    prefix = f"Workflow '{template.id}'"
    if template.measure not in (Measure.LINEAR, Measure.POINT):
        errors.append(f"{prefix}: unknown measure {template.measure!r}.")
    if not template.layers:
        errors.append(f"{prefix}: defines no layers.")

    seen: Dict[str, WorkflowLayer] = {}
    for layer in template.layers:
        if layer.id in seen:
            errors.append(f"{prefix}: duplicate layer id '{layer.id}'.")
        seen[layer.id] = layer
        if isinstance(layer.stage, bool) or not isinstance(layer.stage, int) or layer.stage < 1:
            errors.append(f"{prefix}: layer '{layer.id}' has invalid stage {layer.stage!r}.")
        if not layer.checks:
            errors.append(f"{prefix}: layer '{layer.id}' defines no checks.")

    for layer in template.layers:
        links = (
            ("dependencies", layer.dependencies),
            ("lock_step_with", layer.lock_step_with),
            ("parallel_with", layer.parallel_with),
        )
        for relation, targets in links:
            for target_id in targets:
                if target_id == layer.id:
                    errors.append(f"{prefix}: layer '{layer.id}' lists itself in {relation}.")
                    continue
                target = seen.get(target_id)
                if target is None:
                    errors.append(f"{prefix}: layer '{layer.id}' {relation} references unknown layer '{target_id}'.")
                    continue
                if relation == "dependencies" and isinstance(target.stage, int) and isinstance(layer.stage, int):
                    if target.stage >= layer.stage:
                        errors.append(
                            f"{prefix}: layer '{layer.id}' (stage {layer.stage}) depends on "
                            f"'{target_id}' at stage {target.stage}."
                        )
    return errors


def validate_template(template: WorkflowTemplate) -> WorkflowTemplate:
    errors = template_errors(template)
    if errors:
        raise ImproperlyConfigured(" ".join(errors))
    return template


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class WorkflowRegistry:
    """Immutable catalogue of workflow templates.

    Built once and handed to every engine call; lookups go by template id,
    by phase-definition binding, or by normalised phase name.
    """

    def __init__(
        self,
        templates: Iterable[WorkflowTemplate],
        bindings: Optional[Mapping[int, str]] = None,
        propagation_rules: Iterable[PropagationRule] = (),
    ):
        problems: List[str] = []
        by_id: Dict[str, WorkflowTemplate] = {}
        by_name: Dict[str, WorkflowTemplate] = {}
        for template in templates:
            problems.extend(template_errors(template))
            if template.id in by_id:
                problems.append(f"Duplicate workflow id '{template.id}'.")
            by_id[template.id] = template
            for label in (template.phase_name,) + tuple(template.aliases):
                by_name.setdefault(normalize_label(label), template)

        binding_map = {int(key): value for key, value in (bindings or {}).items()}
        for definition_id, template_id in binding_map.items():
            if template_id not in by_id:
                problems.append(f"Definition {definition_id} is bound to unknown workflow '{template_id}'.")

        rules = tuple(propagation_rules)
        for rule in rules:
            for template_id in (rule.source_workflow, rule.target_workflow):
                if template_id not in by_id:
                    problems.append(f"Propagation rule references unknown workflow '{template_id}'.")

        if problems:
            raise ImproperlyConfigured("Invalid workflow catalog: " + " ".join(problems))

        self._by_id = by_id
        self._by_name = by_name
        self._bindings = binding_map
        self._rules = rules

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, template_id) -> bool:
        return template_id in self._by_id

    @property
    def propagation_rules(self) -> Tuple[PropagationRule, ...]:
        return self._rules

    def get(self, template_id: str) -> Optional[WorkflowTemplate]:
        return self._by_id.get(template_id)

    def for_phase_name(self, name: Optional[str]) -> Optional[WorkflowTemplate]:
        return self._by_name.get(normalize_label(name))

    def resolve(
        self,
        *,
        workflow_key: Optional[str] = None,
        definition_id: Optional[int] = None,
        phase_name: Optional[str] = None,
    ) -> Optional[WorkflowTemplate]:
        if workflow_key and workflow_key in self._by_id:
            return self._by_id[workflow_key]
        if definition_id is not None and definition_id in self._bindings:
            return self._by_id[self._bindings[definition_id]]
        return self.for_phase_name(phase_name)

    def for_phase(self, phase) -> Optional[WorkflowTemplate]:
        return self.resolve(
            workflow_key=getattr(phase, "workflow_key", None),
            definition_id=getattr(phase, "definition_id", None),
            phase_name=getattr(phase, "name", None),
        )


def load_registry(dotted_path: str) -> WorkflowRegistry:
    """Import a catalog module and build its registry.

    The module must expose ``TEMPLATES`` and may expose ``PROPAGATION_RULES``
    and ``DEFINITION_BINDINGS``.
    """

    try:
        module = importlib.import_module(dotted_path)
    except ImportError as exc:
        raise ImproperlyConfigured(f"Cannot import workflow catalog '{dotted_path}': {exc}") from exc
    templates = getattr(module, "TEMPLATES", None)
    if templates is None:
        raise ImproperlyConfigured(f"Workflow catalog '{dotted_path}' does not define TEMPLATES.")
    registry = WorkflowRegistry(
        templates,
        bindings=getattr(module, "DEFINITION_BINDINGS", None),
        propagation_rules=getattr(module, "PROPAGATION_RULES", ()),
    )
    logger.info("Loaded %s workflow template(s) from %s", len(registry), dotted_path)
    return registry


# ---------------------------------------------------------------------------
# Helpers for phases without a catalogued workflow
# ---------------------------------------------------------------------------


def template_for_definition(definition: PhaseDefinitionRecord) -> WorkflowTemplate:
    """Sequential fallback workflow built from a definition's default names."""

    checks = list(definition.default_checks)
    layer_names = list(definition.default_layers) or ["Layer"]
    layers = []
    for idx, name in enumerate(layer_names, start=1):
        layer_checks = checks or [f"{name} inspection"]
        layers.append(
            WorkflowLayer(
                id=f"{definition.id}-layer-{idx}",
                name=name,
                stage=idx,
                dependencies=(f"{definition.id}-layer-{idx - 1}",) if idx > 1 else (),
                checks=tuple(
                    WorkflowCheck(id=f"{definition.id}-check-{idx}-{check_idx}", name=check_name)
                    for check_idx, check_name in enumerate(layer_checks, start=1)
                ),
            )
        )
    return validate_template(
        WorkflowTemplate(
            id=f"phase-{definition.id}",
            phase_name=definition.name,
            measure=definition.measure,
            layers=tuple(layers),
        )
    )


def layer_tokens(value: str) -> List[str]:
    return [normalize_label(token) for token in _LAYER_TOKEN_SPLIT.split(value or "") if token.strip()]


def workflow_layers_for_interval(template: WorkflowTemplate, interval_layers: Sequence[str]) -> List[WorkflowLayer]:
    """Narrow a template to the layers an interval declares.

    Interval layer names may bundle several layers (``"wall / wing"``) and
    may use any alias; when nothing matches the whole template applies.
    """

    layers = template.sorted_layers()
    wanted = {token for name in interval_layers for token in layer_tokens(name)}
    if not wanted:
        return layers
    matched = [
        layer
        for layer in layers
        if any(token in wanted for label in layer.labels for token in layer_tokens(label))
    ]
    return matched or layers
