"""
Shared test fixtures and utilities for Rubis tests.
"""

from typing import List, Optional
from unittest.mock import Mock

import pytest
from lsprotocol.types import Location, Position, Range

from rubis.ast import nodes
from rubis.ast.parser import parse_source
from rubis.config import Settings
from rubis.features.definition import get_definition_locations
from rubis.index import MethodEntry, MethodIndex
from rubis.runner_client import RunnerClient

MODEL_URI = "file:///app/app/models/user.rb"


def position_of(source: str, marker: str, occurrence: int = 0, offset: int = 1) -> Position:
    """
    Return the position ``offset`` characters into the n-th ``marker``.

    The default offset lands inside the marker, e.g. on the first letter of a
    symbol's name rather than on its colon.
    """
    start = -1
    for _ in range(occurrence + 1):
        start = source.index(marker, start + 1)
    index = start + offset
    line = source.count("\n", 0, index)
    line_start = source.rfind("\n", 0, index) + 1
    return Position(line=line, character=index - line_start)


def method_entry(name: str, owner: str, line: int, uri: str = MODEL_URI) -> MethodEntry:
    return MethodEntry(
        name=name,
        owner=owner,
        uri=uri,
        range=Range(
            start=Position(line=line, character=2),
            end=Position(line=line + 1, character=5),
        ),
    )


# =============================================================================
# Collaborator Mocks
# =============================================================================


@pytest.fixture
def mock_index():
    """A method index that knows nothing unless told otherwise."""
    index = Mock(spec=MethodIndex)
    index.resolve_method.return_value = None
    return index


@pytest.fixture
def mock_client():
    """A Rails runner client whose lookups all miss unless told otherwise."""
    client = Mock(spec=RunnerClient)
    client.association_target.return_value = None
    client.route_location.return_value = None
    client.controller_action_target.return_value = None
    return client


# =============================================================================
# Ruby Source Test Harness
# =============================================================================


class DefinitionHarness:
    """
    Test harness for Rails DSL go-to-definition.

    Parses real Ruby source and resolves the definition at a marker, with the
    method index and the Rails runner replaced by mocks.
    """

    def __init__(self, index: Mock, client: Mock):
        self.index = index
        self.client = client
        self.settings = Settings()
        self.source = ""
        self.uri = MODEL_URI
        self.program: Optional[nodes.ProgramNode] = None

    def setup(self, source: str, uri: str = MODEL_URI) -> "DefinitionHarness":
        self.source = source
        self.uri = uri
        self.program = parse_source(source)
        return self

    def definitions_at(
        self, marker: str, occurrence: int = 0, offset: int = 1
    ) -> List[Location]:
        assert self.program is not None, "call setup() first"
        position = position_of(self.source, marker, occurrence, offset)
        return get_definition_locations(
            self.program,
            self.uri,
            position,
            self.index,
            self.client,
            self.settings,
        )

    def assert_no_definition(self, marker: str, occurrence: int = 0, offset: int = 1) -> None:
        result = self.definitions_at(marker, occurrence, offset)
        assert result == [], f"Expected no definitions, got {result}"


@pytest.fixture
def harness(mock_index, mock_client):
    """Create a DefinitionHarness instance."""
    return DefinitionHarness(mock_index, mock_client)


@pytest.fixture
def parse():
    """Parse Ruby source into a program node."""
    return parse_source


def find_nodes(root: nodes.Node, cls, predicate=lambda node: True) -> List[nodes.Node]:
    """Collect the nodes of a class below ``root`` in document order."""
    found = []
    stack = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, cls) and predicate(node):
            found.append(node)
        stack.extend(reversed(node.compact_child_nodes()))
    return found


@pytest.fixture
def helpers():
    """Expose the module-level helpers to tests."""

    class Helpers:
        position_of = staticmethod(position_of)
        method_entry = staticmethod(method_entry)
        find_nodes = staticmethod(find_nodes)

    return Helpers
