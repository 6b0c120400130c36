from . import workflow_catalog
from .batching import (
    InspectionEntryDraft,
    SubmissionError,
    SubmissionErrorReason,
    SubmissionOutcome,
    SubmissionRequest,
    WriteResult,
    plan_submission,
    submit_inspection,
)
from .progress import aggregate_phase_progress, combined_percent, percent_complete
from .propagation import persistable, propagate_snapshots
from .segments import build_linear_view, build_point_view, design_quantity
from .selection import CheckStatusIndex, LayerSelector, SelectionState, is_layer_locked, missing_dependencies
from .side_booking import enforced_side_for, resolve_side_booking
from .snapshots import inspection_slices, latest_snapshots
from .status_merge import better, merge_adjacent_segments, overlay
from .workflows import WorkflowRegistry, load_registry, template_for_definition, workflow_layers_for_interval

__all__ = [
    "workflow_catalog",
    "InspectionEntryDraft",
    "SubmissionError",
    "SubmissionErrorReason",
    "SubmissionOutcome",
    "SubmissionRequest",
    "WriteResult",
    "plan_submission",
    "submit_inspection",
    "aggregate_phase_progress",
    "combined_percent",
    "percent_complete",
    "persistable",
    "propagate_snapshots",
    "build_linear_view",
    "build_point_view",
    "design_quantity",
    "CheckStatusIndex",
    "LayerSelector",
    "SelectionState",
    "is_layer_locked",
    "missing_dependencies",
    "enforced_side_for",
    "resolve_side_booking",
    "inspection_slices",
    "latest_snapshots",
    "better",
    "merge_adjacent_segments",
    "overlay",
    "WorkflowRegistry",
    "load_registry",
    "template_for_definition",
    "workflow_layers_for_interval",
]
