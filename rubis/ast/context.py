"""
Locating the node under the cursor and its lexical context.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from rubis.ast import nodes

# `Rails.application.routes.draw do ... end`
ROUTES_DRAW_METHOD = "draw"


@dataclass(frozen=True)
class NodeContext:
    """
    Lexical context of the focused node.

    Attributes:
        nesting: Enclosing class and module names, outermost first, each as
            written in the source (``class Admin::User`` contributes
            ``"Admin::User"``).
        call_node: The nearest call whose arguments contain the focused node.
        reference_statements: Statement list the route scope walk starts
            from: the body of the outermost ``routes.draw`` block enclosing
            the focused node, or the program's top-level statements when
            there is none (route files loaded with ``draw(:name)``).
    """

    nesting: List[str] = field(default_factory=list)
    call_node: Optional[nodes.CallNode] = None
    reference_statements: Optional[nodes.StatementsNode] = None

    @property
    def fully_qualified_name(self) -> str:
        return "::".join(self.nesting)


def _narrowest_covering(root: nodes.Node, line: int, character: int) -> Optional[nodes.Node]:
    if not root.covers(line, character):
        return None
    current = root
    while True:
        child = next(
            (c for c in current.compact_child_nodes() if c.covers(line, character)),
            None,
        )
        if child is None:
            return current
        current = child


def _enclosing_call(target: nodes.Node) -> Optional[nodes.CallNode]:
    previous = target
    for ancestor in target.ancestors():
        if isinstance(ancestor, nodes.CallNode) and ancestor.arguments is previous:
            return ancestor
        previous = ancestor
    return None


def _reference_statements(
    program: nodes.ProgramNode, target: nodes.Node
) -> Optional[nodes.StatementsNode]:
    for ancestor in reversed(list(target.ancestors())):
        if (
            isinstance(ancestor, nodes.BlockNode)
            and isinstance(ancestor.parent, nodes.CallNode)
            and ancestor.parent.name == ROUTES_DRAW_METHOD
        ):
            return ancestor.body
    return program.statements


def build_node_context(program: nodes.ProgramNode, target: nodes.Node) -> NodeContext:
    """Build the :class:`NodeContext` of a node inside ``program``."""
    nesting = [
        ancestor.constant_path.lstrip(":")
        for ancestor in reversed(list(target.ancestors()))
        if isinstance(ancestor, (nodes.ClassNode, nodes.ModuleNode))
        and ancestor.constant_path
    ]
    return NodeContext(
        nesting=nesting,
        call_node=_enclosing_call(target),
        reference_statements=_reference_statements(program, target),
    )


def locate(
    program: nodes.ProgramNode, line: int, character: int
) -> Tuple[Optional[nodes.Node], NodeContext]:
    """
    Find the narrowest node covering an LSP position.

    Returns:
        The focused node (or None when the position is outside the program)
        and its context.
    """
    target = _narrowest_covering(program, line, character)
    if target is None:
        return None, NodeContext(reference_statements=program.statements)
    return target, build_node_context(program, target)
