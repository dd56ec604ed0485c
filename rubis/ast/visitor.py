"""
Event dispatch over Ruby syntax trees.

Listeners register for node events such as ``on_call_node_enter`` and the
dispatcher calls them while walking the tree. Several listeners can share one
traversal, each only receiving the events it asked for.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Type

from rubis.ast import nodes

logger = logging.getLogger("rubis")


def _event_stem(cls: Type[nodes.Node]) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower()


_EVENT_STEMS: Dict[Type[nodes.Node], str] = {
    cls: _event_stem(cls) for cls in nodes.NODE_CLASSES
}


def event_names(node: nodes.Node) -> tuple:
    """Return the ``(enter, leave)`` event names for a node."""
    stem = _EVENT_STEMS.get(type(node)) or _event_stem(type(node))
    return f"on_{stem}_enter", f"on_{stem}_leave"


class Dispatcher:
    """
    Dispatches node events to registered listeners.

    ``dispatch`` walks a whole subtree depth-first in document order using an
    explicit stack; ``dispatch_once`` only fires the events of a single node,
    which is what positional requests such as go-to-definition need.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Any]] = {}

    def register(self, listener: Any, *events: str) -> None:
        for event in events:
            if not callable(getattr(listener, event, None)):
                raise ValueError(
                    f"{type(listener).__name__} does not implement {event}"
                )
            self._listeners.setdefault(event, []).append(listener)

    def _emit(self, event: str, node: nodes.Node) -> None:
        for listener in self._listeners.get(event, []):
            getattr(listener, event)(node)

    def dispatch_once(self, node: Optional[nodes.Node]) -> None:
        if node is None:
            return
        enter, leave = event_names(node)
        self._emit(enter, node)
        self._emit(leave, node)

    def dispatch(self, root: Optional[nodes.Node]) -> None:
        if root is None:
            return
        # (node, leaving) pairs
        stack: List[tuple] = [(root, False)]
        while stack:
            node, leaving = stack.pop()
            enter, leave = event_names(node)
            if leaving:
                self._emit(leave, node)
                continue
            self._emit(enter, node)
            stack.append((node, True))
            for child in reversed(node.compact_child_nodes()):
                stack.append((child, False))
