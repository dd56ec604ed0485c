"""
Rails DSL vocabulary and call classification.

The vocabularies are plain data: adding a method to one of the sets below is
all it takes for the resolver to handle it. The sets are pairwise disjoint and
no member ends in ``_path`` or ``_url``, so every call maps to at most one
kind.
"""

import enum
from typing import Dict, FrozenSet, Optional

from rubis.ast import nodes


class DslKind(enum.Enum):
    ASSOCIATION = "association"
    CALLBACK = "callback"
    VALIDATION = "validation"
    ROUTE_HELPER = "route-helper"
    CONTROLLER_ROUTE = "controller-route"
    NONE = "none"


ASSOCIATIONS: FrozenSet[str] = frozenset(
    {
        "belongs_to",
        "has_many",
        "has_one",
        "has_and_belongs_to_many",
    }
)

MODEL_CALLBACKS: FrozenSet[str] = frozenset(
    {
        "after_commit",
        "after_create",
        "after_create_commit",
        "after_destroy",
        "after_destroy_commit",
        "after_find",
        "after_initialize",
        "after_rollback",
        "after_save",
        "after_save_commit",
        "after_touch",
        "after_update",
        "after_update_commit",
        "after_validation",
        "around_create",
        "around_destroy",
        "around_save",
        "around_update",
        "before_create",
        "before_destroy",
        "before_save",
        "before_update",
        "before_validation",
    }
)

CONTROLLER_CALLBACKS: FrozenSet[str] = frozenset(
    {
        "after_action",
        "append_after_action",
        "append_around_action",
        "append_before_action",
        "around_action",
        "before_action",
        "prepend_after_action",
        "prepend_around_action",
        "prepend_before_action",
        "skip_after_action",
        "skip_around_action",
        "skip_before_action",
    }
)

JOB_CALLBACKS: FrozenSet[str] = frozenset(
    {
        "after_enqueue",
        "after_perform",
        "around_enqueue",
        "around_perform",
        "before_enqueue",
        "before_perform",
    }
)

CALLBACKS: FrozenSet[str] = MODEL_CALLBACKS | CONTROLLER_CALLBACKS | JOB_CALLBACKS

VALIDATIONS: FrozenSet[str] = frozenset(
    {
        "validate",
        "validates",
        "validates!",
        "validates_each",
        "validates_with",
        "validates_absence_of",
        "validates_acceptance_of",
        "validates_associated",
        "validates_comparison_of",
        "validates_confirmation_of",
        "validates_exclusion_of",
        "validates_format_of",
        "validates_inclusion_of",
        "validates_length_of",
        "validates_numericality_of",
        "validates_presence_of",
        "validates_size_of",
        "validates_uniqueness_of",
    }
)

CONTROLLER_ROUTES: FrozenSet[str] = frozenset(
    {
        "get",
        "post",
        "put",
        "patch",
        "delete",
        "match",
        "root",
    }
)

ROUTE_HELPER_SUFFIXES = ("_path", "_url")

# Method names whose arguments never denote a resolvable symbol
SYMBOL_OPAQUE_CALLS: FrozenSet[str] = frozenset({"validates_with"})

VOCABULARY: Dict[str, DslKind] = {
    **{name: DslKind.ASSOCIATION for name in ASSOCIATIONS},
    **{name: DslKind.CALLBACK for name in CALLBACKS},
    **{name: DslKind.VALIDATION for name in VALIDATIONS},
    **{name: DslKind.CONTROLLER_ROUTE for name in CONTROLLER_ROUTES},
}


def self_receiver(node: nodes.CallNode) -> bool:
    """True for calls on the implicit receiver or an explicit ``self``."""
    return node.receiver is None or isinstance(node.receiver, nodes.SelfNode)


def classify_name(name: Optional[str]) -> DslKind:
    if not name:
        return DslKind.NONE
    if name.endswith(ROUTE_HELPER_SUFFIXES):
        return DslKind.ROUTE_HELPER
    return VOCABULARY.get(name, DslKind.NONE)


def classify(node: Optional[nodes.CallNode]) -> DslKind:
    """Classify a call. Calls with an explicit, non-self receiver are never DSL."""
    if node is None or not self_receiver(node):
        return DslKind.NONE
    return classify_name(node.message)
