"""LSP feature implementations for Rails DSL calls."""

from rubis.features.definition import (
    Definition,
    ResponseBuilder,
    get_definition_locations,
)
from rubis.features.dsl import DslKind, classify

__all__ = [
    "Definition",
    "DslKind",
    "ResponseBuilder",
    "classify",
    "get_definition_locations",
]
