"""Classification of every verb an aggregation builder answers to."""

from enum import Enum
from typing import Dict


class OperationKind(Enum):
    PASS_THROUGH = "pass_through"
    BINDING = "binding"
    PIPELINE_STAGE = "pipeline_stage"
    MATERIALIZING = "materializing"
    COUNTING = "counting"
    COMBINATOR = "combinator"


PIPELINE_STAGE_VERBS = (
    "add_cursor_flag",
    "add_fields",
    "allow_disk_use",
    "append",
    "collation",
    "count",
    "facet",
    "graph_lookup",
    "group",
    "hint",
    "limit",
    "lookup",
    "match",
    "near",
    "option",
    "project",
    "read",
    "read_concern",
    "redact",
    "replace_root",
    "sample",
    "search",
    "session",
    "skip",
    "sort",
    "sort_by_count",
    "unwind",
)

VERBS: Dict[str, OperationKind] = {
    **{verb: OperationKind.PIPELINE_STAGE for verb in PIPELINE_STAGE_VERBS},
    "cursor": OperationKind.PASS_THROUGH,
    "explain": OperationKind.PASS_THROUGH,
    "pipeline": OperationKind.PASS_THROUGH,
    "model": OperationKind.BINDING,
    "exec": OperationKind.MATERIALIZING,
    "count_documents": OperationKind.COUNTING,
    "then": OperationKind.COMBINATOR,
    "catch": OperationKind.COMBINATOR,
    "finally_": OperationKind.COMBINATOR,
}

# Stage that produces the count document during replay.
COUNT_STAGE = "count"


def classify(verb: str) -> OperationKind:
    """Return the kind of ``verb``.

    Raises:
        KeyError: if the verb is not part of the builder's vocabulary.
    """
    return VERBS[verb]
