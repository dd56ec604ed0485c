from rubis.ast.context import NodeContext, build_node_context, locate
from rubis.ast.nodes import NODE_CLASSES, Node
from rubis.ast.parser import parse_source
from rubis.ast.visitor import Dispatcher

__all__ = [
    "NODE_CLASSES",
    "Dispatcher",
    "Node",
    "NodeContext",
    "build_node_context",
    "locate",
    "parse_source",
]
