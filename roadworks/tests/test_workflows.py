from __future__ import annotations

import sys
import types

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase

from roadworks.choices import Measure
from roadworks.services import workflow_catalog
from roadworks.services.records import PhaseDefinitionRecord, PhaseRecord
from roadworks.services.workflows import (
    PropagationRule,
    WorkflowCheck,
    WorkflowLayer,
    WorkflowRegistry,
    WorkflowTemplate,
    load_registry,
    simple_layer,
    template_errors,
    template_for_definition,
    workflow_layers_for_interval,
)


def _template(*layers, template_id="broken") -> WorkflowTemplate:
    return WorkflowTemplate(id=template_id, phase_name="Broken", measure=Measure.LINEAR, layers=tuple(layers))


class RegistryValidationTests(SimpleTestCase):
    def test_catalog_loads(self):
        registry = load_registry("roadworks.services.workflow_catalog")
        self.assertEqual(len(registry), len(workflow_catalog.TEMPLATES))
        self.assertIn("culvert", registry)
        self.assertEqual(registry.propagation_rules, (PropagationRule("subbase", "earthwork"),))

    def test_dependency_on_same_or_later_stage_is_rejected(self):
        template = _template(
            simple_layer("a", "A", 2, ["Check"]),
            simple_layer("b", "B", 2, ["Check"], ["a"]),
        )
        errors = template_errors(template)
        self.assertEqual(len(errors), 1)
        self.assertIn("depends on 'a' at stage 2", errors[0])
        with self.assertRaises(ImproperlyConfigured):
            WorkflowRegistry([template])

    def test_unknown_links_and_empty_layers_are_reported(self):
        template = _template(
            WorkflowLayer(id="a", name="A", stage=1, lock_step_with=("ghost",)),
            WorkflowLayer(id="a", name="A again", stage=0, checks=(WorkflowCheck(id="c", name="C"),)),
        )
        errors = " ".join(template_errors(template))
        self.assertIn("defines no checks", errors)
        self.assertIn("duplicate layer id 'a'", errors)
        self.assertIn("invalid stage 0", errors)
        self.assertIn("unknown layer 'ghost'", errors)

    def test_duplicate_templates_bindings_and_rules(self):
        culvert = workflow_catalog.CULVERT
        with self.assertRaisesMessage(ImproperlyConfigured, "Duplicate workflow id 'culvert'"):
            WorkflowRegistry([culvert, culvert])
        with self.assertRaisesMessage(ImproperlyConfigured, "unknown workflow 'bridge'"):
            WorkflowRegistry([culvert], bindings={3: "bridge"})
        with self.assertRaisesMessage(ImproperlyConfigured, "Propagation rule references unknown workflow"):
            WorkflowRegistry([culvert], propagation_rules=[PropagationRule("subbase", "culvert")])

    def test_missing_catalog_module(self):
        with self.assertRaises(ImproperlyConfigured):
            load_registry("roadworks.services.no_such_catalog")

    def test_catalog_without_templates(self):
        module = types.ModuleType("empty_catalog")
        sys.modules["empty_catalog"] = module
        try:
            with self.assertRaisesMessage(ImproperlyConfigured, "does not define TEMPLATES"):
                load_registry("empty_catalog")
        finally:
            del sys.modules["empty_catalog"]


def test_resolution_order(registry):
    bound = WorkflowRegistry(workflow_catalog.TEMPLATES, bindings={"7": "curb"})
    assert bound.resolve(definition_id=7, phase_name="Culvert").id == "curb"
    assert bound.resolve(workflow_key="earthwork", definition_id=7).id == "earthwork"
    assert registry.resolve(phase_name="  土方 ").id == "earthwork"
    assert registry.for_phase(PhaseRecord(id=1, name="Side Ditch")).id == "side-ditch"
    assert registry.for_phase(PhaseRecord(id=1, name="Bridge")) is None


def test_layer_and_check_lookup(culvert_template):
    assert culvert_template.resolve_layer("底板").id == "base-slab"
    assert culvert_template.resolve_layer(" wing WALL ").id == "wing"
    assert culvert_template.resolve_layer("cap").id == "cap"
    assert culvert_template.resolve_layer("Bridge deck") is None
    owners = [layer.id for layer in culvert_template.check_owners("钢筋验收")]
    assert owners == ["base-slab", "cutoff", "wall", "wing", "roof", "cap"]
    assert [layer.id for layer in culvert_template.top_layers()] == ["finishing-plaster"]


def test_template_as_dict(culvert_template):
    payload = culvert_template.as_dict()
    assert payload["id"] == "culvert"
    assert payload["measure"] == "POINT"
    assert [layer["stage"] for layer in payload["layers"]] == sorted(layer["stage"] for layer in payload["layers"])
    wall = next(layer for layer in payload["layers"] if layer["id"] == "wall")
    assert wall["lockStepWith"] == ["wing", "roof", "cap"]


def test_fallback_template_from_definition():
    definition = PhaseDefinitionRecord(
        id=4,
        name="Retaining wall",
        measure=Measure.POINT,
        default_layers=("Footing", "Stem"),
        default_checks=("Rebar inspection",),
    )
    template = template_for_definition(definition)
    assert template.id == "phase-4"
    assert [(layer.name, layer.stage, layer.dependencies) for layer in template.sorted_layers()] == [
        ("Footing", 1, ()),
        ("Stem", 2, ("4-layer-1",)),
    ]

    bare = template_for_definition(PhaseDefinitionRecord(id=5, name="Misc"))
    assert bare.check_names() == ["Layer inspection"]


@pytest.mark.parametrize(
    "declared,expected",
    [
        ([], None),
        (["Wall / Wing wall"], ["wall", "wing"]),
        (["墙身，八字墙"], ["wall", "wing"]),
        (["Bridge deck"], None),
    ],
)
def test_interval_layers(culvert_template, declared, expected):
    layers = [layer.id for layer in workflow_layers_for_interval(culvert_template, declared)]
    if expected is None:
        expected = [layer.id for layer in culvert_template.sorted_layers()]
    assert layers == expected
