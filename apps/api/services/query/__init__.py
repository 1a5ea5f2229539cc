"""Composable read pipelines over the document store."""

from services.query.executor import (
    PipelineConfigError,
    column_names,
    model_for_collection,
    run_pipeline,
    to_document,
)
from services.query.stages import (
    Contains,
    Eq,
    FieldRef,
    Flatten,
    In,
    Lookup,
    Match,
    NotNull,
    Paginate,
    Pipeline,
    Predicate,
    Reshape,
    Size,
    Sort,
    TextSearch,
    owner_lookup,
    resolve_path,
)

__all__ = [
    "Contains",
    "Eq",
    "FieldRef",
    "Flatten",
    "In",
    "Lookup",
    "Match",
    "NotNull",
    "Paginate",
    "Pipeline",
    "PipelineConfigError",
    "Predicate",
    "Reshape",
    "Size",
    "Sort",
    "TextSearch",
    "column_names",
    "model_for_collection",
    "owner_lookup",
    "resolve_path",
    "run_pipeline",
    "to_document",
]
