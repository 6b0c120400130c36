"""Default workflow catalog.

Loaded through ``settings.ROADWORKS_WORKFLOW_CATALOG``. Names carry the
site's original Chinese labels as aliases so records written under either
locale resolve to the same layer or check.
"""

from roadworks.choices import Measure

from .workflows import (
    DEFAULT_INSPECTION_TYPES,
    PropagationRule,
    WorkflowCheck,
    WorkflowLayer,
    WorkflowTemplate,
    simple_layer,
)

SITE = "site"
SURVEY = "survey"
LAB = "lab"


def _cast_in_place_checks(prefix: str):
    return (
        WorkflowCheck(id=f"{prefix}-rebar", name="Rebar inspection", types=(SITE, SURVEY), aliases=("钢筋验收",)),
        WorkflowCheck(id=f"{prefix}-form", name="Formwork inspection", types=(SITE,), aliases=("模板安装验收",)),
        WorkflowCheck(id=f"{prefix}-pour", name="Concrete pour inspection", types=(SITE, LAB), aliases=("混凝土浇筑验收",)),
    )


def _stage_four(layer_id: str, name: str, alias: str, partners, description: str = "") -> WorkflowLayer:
    return WorkflowLayer(
        id=layer_id,
        name=name,
        stage=4,
        dependencies=("base-slab", "cutoff"),
        lock_step_with=tuple(partners),
        parallel_with=tuple(partners),
        checks=_cast_in_place_checks(layer_id),
        description=description,
        aliases=(alias,),
    )


CULVERT = WorkflowTemplate(
    id="culvert",
    phase_name="Culvert",
    measure=Measure.POINT,
    aliases=("涵洞",),
    description=(
        "Excavation, cushion, base slab/cutoff wall, then wall/wing/roof/cap. "
        "Each stage depends on the previous one so no inspection skips ahead."
    ),
    side_rule="Sides may be inspected separately or together, respecting dependencies and lock-step groups.",
    layers=(
        WorkflowLayer(
            id="excavation",
            name="Excavation",
            stage=1,
            aliases=("基坑",),
            checks=(
                WorkflowCheck(
                    id="staking",
                    name="Staking and excavation",
                    types=(SITE, SURVEY),
                    notes="Blocks the cushion and every later inspection until done.",
                    aliases=("放样与开挖",),
                ),
            ),
        ),
        WorkflowLayer(
            id="cushion",
            name="Cushion",
            stage=2,
            dependencies=("excavation",),
            aliases=("垫层",),
            checks=(
                WorkflowCheck(
                    id="lean-pour",
                    name="Concrete pour inspection",
                    types=(SITE, LAB),
                    notes="Required before base slab or cutoff wall requests.",
                    aliases=("混凝土浇筑验收",),
                ),
            ),
        ),
        WorkflowLayer(
            id="base-slab",
            name="Base slab",
            stage=3,
            dependencies=("cushion",),
            lock_step_with=("cutoff",),
            parallel_with=("cutoff",),
            checks=_cast_in_place_checks("base"),
            aliases=("底板",),
        ),
        WorkflowLayer(
            id="cutoff",
            name="Cutoff wall",
            stage=3,
            dependencies=("cushion",),
            lock_step_with=("base-slab",),
            parallel_with=("base-slab",),
            checks=_cast_in_place_checks("cutoff"),
            aliases=("截水墙",),
        ),
        _stage_four("wall", "Wall", "墙身", ("wing", "roof", "cap")),
        _stage_four("wing", "Wing wall", "八字墙", ("wall", "roof", "cap")),
        _stage_four(
            "roof", "Roof slab", "顶板", ("cap", "wall", "wing"), "Roof slab and cap stone are inspected as a group."
        ),
        _stage_four("cap", "Cap stone", "帽石", ("roof", "wall", "wing"), "Follows the roof slab schedule."),
        WorkflowLayer(
            id="finishing-plaster",
            name="Plastering",
            stage=5,
            dependencies=("wall", "wing", "roof", "cap"),
            aliases=("埋墙粉刷",),
            description="Final inspection once every structural layer is complete.",
            checks=(
                WorkflowCheck(
                    id="finishing-plaster-check",
                    name="Plaster inspection",
                    types=(SITE, LAB),
                    aliases=("埋墙粉刷验收",),
                ),
            ),
        ),
    ),
)


def _fill_layer(number: int) -> WorkflowLayer:
    labels = {1: "第一层填土", 2: "第二层填土", 3: "第三层填土", 4: "第四层填土"}
    layer = simple_layer(
        f"fill-{number}",
        f"Fill layer {number}",
        number,
        ["Compaction inspection"],
        [f"fill-{number - 1}"] if number > 1 else [],
    )
    return WorkflowLayer(
        id=layer.id,
        name=layer.name,
        stage=layer.stage,
        dependencies=layer.dependencies,
        checks=tuple(
            WorkflowCheck(id=check.id, name=check.name, types=check.types, aliases=("压实度验收",))
            for check in layer.checks
        ),
        aliases=(labels[number],),
    )


EARTHWORK = WorkflowTemplate(
    id="earthwork",
    phase_name="Earthwork",
    measure=Measure.LINEAR,
    aliases=("土方",),
    description="Fill layers are accepted one by one; compaction must pass before the next layer.",
    layers=tuple(_fill_layer(number) for number in range(1, 5)),
)


def _pavement_layer(layer_id: str, name: str, alias: str) -> WorkflowLayer:
    return WorkflowLayer(
        id=layer_id,
        name=name,
        stage=1,
        aliases=(alias,),
        checks=(
            WorkflowCheck(id=f"{layer_id}-compaction", name="Compaction inspection", aliases=("压实度验收",)),
            WorkflowCheck(id=f"{layer_id}-elevation", name="Elevation inspection", aliases=("标高验收",)),
            WorkflowCheck(id=f"{layer_id}-cbr", name="CBR"),
            WorkflowCheck(id=f"{layer_id}-deflection", name="Deflection inspection", aliases=("弯沉验收",)),
        ),
    )


SUBBASE = WorkflowTemplate(
    id="subbase",
    phase_name="Subbase",
    measure=Measure.LINEAR,
    aliases=("垫层",),
    description="Subbase acceptance: compaction, elevation, deflection and CBR.",
    layers=(_pavement_layer("subbase", "Subbase", "路基垫层"),),
)

BASE_COURSE = WorkflowTemplate(
    id="base-course",
    phase_name="Base course",
    measure=Measure.LINEAR,
    aliases=("底基层",),
    description="Base course acceptance: compaction, elevation, deflection and CBR.",
    layers=(_pavement_layer("base-course", "Base course", "底基层"),),
)

_PRECAST_CHECKS = ["Rebar tying inspection", "Formwork inspection", "Concrete pour inspection"]

WALKWAY_CULVERT = WorkflowTemplate(
    id="walkway-culvert",
    phase_name="Walkway culvert",
    measure=Measure.POINT,
    aliases=("过道涵",),
    description="Simplified culvert: excavation, base slab, wall, roof in order.",
    layers=(
        simple_layer("excavation", "Excavation", 1, ["Staking and excavation"]),
        simple_layer("base-slab", "Base slab", 2, _PRECAST_CHECKS, ["excavation"]),
        simple_layer("wall", "Wall", 3, _PRECAST_CHECKS, ["base-slab"]),
        simple_layer("roof", "Roof slab", 4, _PRECAST_CHECKS, ["wall"]),
    ),
)

SIDE_DITCH = WorkflowTemplate(
    id="side-ditch",
    phase_name="Side ditch",
    measure=Measure.LINEAR,
    aliases=("边沟",),
    description="Ditch installation follows excavation; left and right may proceed independently.",
    layers=(
        simple_layer("excavation", "Excavation", 1, ["Staking and excavation"]),
        simple_layer("ditch", "Ditch", 2, ["Installation inspection"], ["excavation"]),
    ),
)

PIPE_CULVERT = WorkflowTemplate(
    id="pipe-culvert",
    phase_name="Pipe culvert",
    measure=Measure.LINEAR,
    aliases=("圆管涵",),
    description="Pipe installation follows excavation.",
    layers=(
        simple_layer("excavation", "Excavation", 1, ["Staking and excavation"]),
        simple_layer("pipe", "Pipe", 2, ["Installation inspection"], ["excavation"]),
    ),
)

CURB = WorkflowTemplate(
    id="curb",
    phase_name="Curb",
    measure=Measure.LINEAR,
    aliases=("路缘石",),
    layers=(simple_layer("curb", "Curb", 1, ["Installation inspection"]),),
)

SLAB_COVER = WorkflowTemplate(
    id="slab-cover",
    phase_name="Slab cover",
    measure=Measure.LINEAR,
    aliases=("盖板",),
    layers=(simple_layer("cover", "Cover slab", 1, ["Installation inspection"]),),
)

OLD_CULVERT_REMOVAL = WorkflowTemplate(
    id="old-culvert-removal",
    phase_name="Old culvert removal",
    measure=Measure.POINT,
    aliases=("旧涵挖除",),
    layers=(simple_layer("removal", "Existing culvert", 1, ["Dimension and clearance inspection"]),),
)

OLD_DITCH_REMOVAL = WorkflowTemplate(
    id="old-ditch-removal",
    phase_name="Old ditch removal",
    measure=Measure.LINEAR,
    aliases=("旧边沟挖除",),
    layers=(simple_layer("removal", "Existing ditch", 1, ["Chainage and clearance inspection"]),),
)

TEMPLATES = [
    CULVERT,
    EARTHWORK,
    SUBBASE,
    BASE_COURSE,
    WALKWAY_CULVERT,
    SIDE_DITCH,
    PIPE_CULVERT,
    CURB,
    SLAB_COVER,
    OLD_CULVERT_REMOVAL,
    OLD_DITCH_REMOVAL,
]

# A committed subbase implies the final earthwork fill layer is satisfied.
PROPAGATION_RULES = [PropagationRule(source_workflow="subbase", target_workflow="earthwork")]

# Phase definitions are matched by name; pin ids here when names diverge.
DEFINITION_BINDINGS = {}

__all__ = ["DEFAULT_INSPECTION_TYPES", "PROPAGATION_RULES", "DEFINITION_BINDINGS", "TEMPLATES"]
