from dataclasses import dataclass, field
from typing import Iterator, List, Optional


@dataclass(eq=False)
class Node:
    """
    Base class for Ruby syntax nodes.

    Positions are 0-based lines and UTF-16 columns, matching LSP. Nodes
    compare by identity: two literals with the same text at different places
    are different nodes.
    """

    kind: str = ""
    start_line: int = 0
    start_column: int = 0
    end_line: int = 0
    end_column: int = 0
    parent: Optional["Node"] = field(default=None, repr=False)

    def child_nodes(self) -> List[Optional["Node"]]:
        return []

    def compact_child_nodes(self) -> List["Node"]:
        return [child for child in self.child_nodes() if child is not None]

    def ancestors(self) -> Iterator["Node"]:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def contains(self, other: "Node") -> bool:
        """Reflexive-transitive containment, walked through parent links."""
        current: Optional[Node] = other
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False

    def covers(self, line: int, character: int) -> bool:
        if (line, character) < (self.start_line, self.start_column):
            return False
        return (line, character) < (self.end_line, self.end_column)


@dataclass(eq=False)
class StatementsNode(Node):
    body: List[Node] = field(default_factory=list)

    def child_nodes(self):
        return list(self.body)


@dataclass(eq=False)
class ProgramNode(Node):
    statements: Optional[StatementsNode] = None

    def child_nodes(self):
        return [self.statements]


@dataclass(eq=False)
class ClassNode(Node):
    constant_path: str = ""
    superclass: Optional[str] = None
    body: Optional[StatementsNode] = None

    def child_nodes(self):
        return [self.body]


@dataclass(eq=False)
class ModuleNode(Node):
    constant_path: str = ""
    body: Optional[StatementsNode] = None

    def child_nodes(self):
        return [self.body]


@dataclass(eq=False)
class DefNode(Node):
    name: str = ""
    receiver: Optional[Node] = None
    parameters: Optional[Node] = None
    body: Optional[StatementsNode] = None

    def child_nodes(self):
        return [self.receiver, self.parameters, self.body]


@dataclass(eq=False)
class ArgumentsNode(Node):
    arguments: List[Node] = field(default_factory=list)

    def child_nodes(self):
        return list(self.arguments)


@dataclass(eq=False)
class BlockNode(Node):
    parameters: Optional[Node] = None
    body: Optional[StatementsNode] = None

    def child_nodes(self):
        return [self.parameters, self.body]


@dataclass(eq=False)
class CallNode(Node):
    receiver: Optional[Node] = None
    name: Optional[str] = None
    arguments: Optional[ArgumentsNode] = None
    block: Optional[BlockNode] = None

    @property
    def message(self) -> Optional[str]:
        return self.name

    def child_nodes(self):
        return [self.receiver, self.arguments, self.block]


@dataclass(eq=False)
class AssocNode(Node):
    key: Optional[Node] = None
    value: Optional[Node] = None

    def child_nodes(self):
        return [self.key, self.value]


@dataclass(eq=False)
class KeywordHashNode(Node):
    """Braceless keyword options trailing an argument list."""

    elements: List[Node] = field(default_factory=list)

    def child_nodes(self):
        return list(self.elements)


@dataclass(eq=False)
class HashNode(Node):
    elements: List[Node] = field(default_factory=list)

    def child_nodes(self):
        return list(self.elements)


@dataclass(eq=False)
class SymbolNode(Node):
    # None for interpolated symbols
    value: Optional[str] = None

    @property
    def unescaped(self) -> str:
        return self.value or ""


@dataclass(eq=False)
class StringNode(Node):
    content: str = ""

    @property
    def unescaped(self) -> str:
        return self.content


@dataclass(eq=False)
class InterpolatedStringNode(Node):
    parts: List[Node] = field(default_factory=list)

    def child_nodes(self):
        return list(self.parts)


@dataclass(eq=False)
class ConstantNode(Node):
    name: str = ""


@dataclass(eq=False)
class SelfNode(Node):
    pass


@dataclass(eq=False)
class GenericNode(Node):
    """Any construct the resolver has no dedicated accessors for."""

    children: List[Node] = field(default_factory=list)

    def child_nodes(self):
        return list(self.children)


NODE_CLASSES = (
    ProgramNode,
    StatementsNode,
    ClassNode,
    ModuleNode,
    DefNode,
    ArgumentsNode,
    BlockNode,
    CallNode,
    AssocNode,
    KeywordHashNode,
    HashNode,
    SymbolNode,
    StringNode,
    InterpolatedStringNode,
    ConstantNode,
    SelfNode,
    GenericNode,
)
