from __future__ import annotations

from typing import Callable, Sequence

import pytest

from roadworks import models
from roadworks.choices import InspectionStatus, Measure, Side
from roadworks.services import workflow_catalog
from roadworks.services.records import InspectionRecord, IntervalRecord, PhaseRecord
from roadworks.services.workflows import (
    PropagationRule,
    WorkflowCheck,
    WorkflowLayer,
    WorkflowRegistry,
    WorkflowTemplate,
    simple_layer,
)

CULVERT_PHASE_ID = 10
EARTHWORK_PHASE_ID = 20
SUBBASE_PHASE_ID = 30


def record(
    phase_id: int,
    layer_name: str,
    check_name: str,
    side=Side.BOTH,
    start=100.0,
    end=120.0,
    status=InspectionStatus.SCHEDULED,
    updated_at: float = 1.0,
    phase_name: str = "Culvert",
) -> InspectionRecord:
    return InspectionRecord(
        phase_id=phase_id,
        phase_name=phase_name,
        start_pk=start,
        end_pk=end,
        side=side,
        status=status,
        updated_at=updated_at,
        layer_name=layer_name,
        check_name=check_name,
    )


def mutual_wall_template() -> WorkflowTemplate:
    """Wall locks step with the roof only; the wing wall is merely parallel."""

    checks = ("Rebar inspection", "Formwork inspection")
    base = simple_layer("base", "Base slab", 3, checks)
    return WorkflowTemplate(
        id="mutual-wall",
        phase_name="Mutual wall",
        measure=Measure.POINT,
        layers=(
            base,
            WorkflowLayer(
                id="wall",
                name="Wall",
                stage=4,
                dependencies=("base",),
                lock_step_with=("roof",),
                parallel_with=("wing",),
                checks=(WorkflowCheck(id="wall-rebar", name="Rebar inspection"),),
            ),
            WorkflowLayer(
                id="wing",
                name="Wing wall",
                stage=4,
                dependencies=("base",),
                parallel_with=("wall",),
                checks=(WorkflowCheck(id="wing-rebar", name="Rebar inspection"),),
            ),
            WorkflowLayer(
                id="roof",
                name="Roof slab",
                stage=4,
                dependencies=("base",),
                lock_step_with=("wall",),
                checks=(WorkflowCheck(id="roof-rebar", name="Rebar inspection"),),
            ),
        ),
    )


@pytest.fixture
def registry() -> WorkflowRegistry:
    return WorkflowRegistry(
        workflow_catalog.TEMPLATES,
        propagation_rules=[PropagationRule("subbase", "earthwork")],
    )


@pytest.fixture
def culvert_template(registry: WorkflowRegistry) -> WorkflowTemplate:
    return registry.get("culvert")


@pytest.fixture
def earthwork_phase() -> PhaseRecord:
    return PhaseRecord(
        id=EARTHWORK_PHASE_ID,
        name="Earthwork",
        measure=Measure.LINEAR,
        intervals=(IntervalRecord(start_pk=0, end_pk=400, side=Side.BOTH),),
    )


@pytest.fixture
def subbase_phase() -> PhaseRecord:
    return PhaseRecord(
        id=SUBBASE_PHASE_ID,
        name="Subbase",
        measure=Measure.LINEAR,
        intervals=(IntervalRecord(start_pk=0, end_pk=400, side=Side.BOTH),),
    )


@pytest.fixture
def culvert_phase() -> PhaseRecord:
    return PhaseRecord(
        id=CULVERT_PHASE_ID,
        name="Culvert",
        measure=Measure.POINT,
        intervals=(IntervalRecord(start_pk=100, end_pk=120, side=Side.BOTH),),
    )


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def road(db) -> models.RoadSection:
    return models.RoadSection.objects.create(
        slug="rn-7", name="RN7 Lot 2", length_m=1000, start_pk=0, end_pk=1000
    )


@pytest.fixture
def create_phase(road: models.RoadSection) -> Callable[..., models.Phase]:
    def _create_phase(
        name: str,
        measure: str = Measure.LINEAR,
        intervals: Sequence[dict] = (),
        point_has_sides: bool = False,
    ) -> models.Phase:
        definition, _ = models.PhaseDefinition.objects.get_or_create(name=name, defaults={"measure": measure})
        phase = models.Phase.objects.create(
            road=road,
            definition=definition,
            name=name,
            measure=measure,
            point_has_sides=point_has_sides,
        )
        for interval in intervals:
            models.PhaseInterval.objects.create(phase=phase, **interval)
        return phase

    return _create_phase


@pytest.fixture
def culvert(create_phase) -> models.Phase:
    return create_phase(
        "Culvert",
        Measure.POINT,
        intervals=[{"start_pk": 100, "end_pk": 120, "side": Side.BOTH}],
    )


@pytest.fixture
def earthwork(create_phase) -> models.Phase:
    return create_phase("Earthwork", intervals=[{"start_pk": 0, "end_pk": 400, "side": Side.BOTH}])


@pytest.fixture
def create_entry(road: models.RoadSection) -> Callable[..., models.InspectionEntry]:
    def _create_entry(phase: models.Phase, layer_name: str, check_name: str, **kwargs) -> models.InspectionEntry:
        values = {"side": Side.BOTH, "start_pk": 100, "end_pk": 120, "status": InspectionStatus.SCHEDULED}
        values.update(kwargs)
        return models.InspectionEntry.objects.create(
            road=road, phase=phase, layer_name=layer_name, check_name=check_name, **values
        )

    return _create_entry
