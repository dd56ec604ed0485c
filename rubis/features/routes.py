"""
Controller route resolution helpers.

A route such as ``get "/ping", to: "health#check"`` names its controller
relative to the ``namespace`` and ``scope`` blocks around it. These helpers
find the route statement holding a literal and rebuild the fully qualified
controller path from the blocks that actually enclose it.
"""

from typing import List, Optional, Tuple

from rubis.ast import nodes

SCOPE_OPTION_KEYS = ("module", "namespace")


def split_controller_action(content: str) -> Optional[Tuple[str, str]]:
    """
    Split ``"controller#action"`` on its first ``#``.

    Returns None when there is no ``#`` or either side is empty.
    """
    controller, separator, action = content.partition("#")
    if not separator or not controller or not action:
        return None
    return controller, action


def find_parent_call_node(
    statements: Optional[nodes.StatementsNode], target: nodes.Node
) -> Optional[nodes.CallNode]:
    """Return the call statement of ``statements`` that contains ``target``."""
    if statements is None:
        return None
    for child in statements.body:
        if isinstance(child, nodes.CallNode) and child.contains(target):
            return child
    return None


def _extract_scope(call_node: nodes.CallNode, segments: List[str]) -> None:
    if call_node.arguments is None:
        return
    keyword_hash = next(
        (
            argument
            for argument in call_node.arguments.arguments
            if isinstance(argument, nodes.KeywordHashNode)
        ),
        None,
    )
    if keyword_hash is None:
        return
    for element in keyword_hash.elements:
        if not isinstance(element, nodes.AssocNode):
            continue
        if not isinstance(element.key, nodes.SymbolNode):
            continue
        if element.key.unescaped not in SCOPE_OPTION_KEYS:
            continue
        if not isinstance(element.value, nodes.StringNode):
            continue
        segments.append(element.value.unescaped)


def _extract_namespace(call_node: nodes.CallNode, segments: List[str]) -> None:
    if call_node.arguments is None or not call_node.arguments.arguments:
        return
    first_argument = call_node.arguments.arguments[0]
    if isinstance(first_argument, nodes.StringNode):
        segments.append(first_argument.unescaped)


def _extract_scope_or_namespace(node: nodes.Node, segments: List[str]) -> None:
    if not isinstance(node, nodes.CallNode):
        return
    if node.name == "scope":
        _extract_scope(node, segments)
    elif node.name == "namespace":
        _extract_namespace(node, segments)


def collect_scopes(boundary: nodes.Node, target: nodes.Node) -> List[str]:
    """
    Collect the ``namespace``/``scope`` segments enclosing ``target``.

    Walks depth-first in document order from ``boundary``, only entering
    subtrees that contain the target and stopping at the target itself, so
    sibling blocks never contribute. Segments are returned outermost first.
    """
    segments: List[str] = []
    stack: List[nodes.Node] = [boundary]
    while stack:
        node = stack.pop()
        if node is target or not node.contains(target):
            continue
        _extract_scope_or_namespace(node, segments)
        for child in reversed(node.compact_child_nodes()):
            stack.append(child)
    return segments


def controller_path(segments: List[str], controller: str) -> str:
    return "/".join(segments + [controller])
