"""
Ruby source parsing.

Source text is parsed with tree-sitter and the concrete syntax tree is
converted into the node classes of :mod:`rubis.ast.nodes`, which carry parent
links, LSP positions and identity equality.
"""

import logging
from typing import Dict, List, Optional, Tuple

import tree_sitter as ts
import tree_sitter_ruby

from rubis.ast import nodes

logger = logging.getLogger("rubis")

_parser: Optional[ts.Parser] = None

# Identifiers under these parents are names being bound, not method calls
_BINDING_PARENTS = frozenset(
    {
        "method_parameters",
        "block_parameters",
        "lambda_parameters",
        "optional_parameter",
        "keyword_parameter",
        "splat_parameter",
        "hash_splat_parameter",
        "block_parameter",
        "destructured_parameter",
        "left_assignment_list",
        "destructured_left_assignment",
        "exception_variable",
        "alias",
        "undef",
        "for",
    }
)

_BINDING_FIELDS = frozenset({"left", "name", "pattern"})

_STATEMENT_CONTAINERS = frozenset({"body_statement", "block_body"})

_DOUBLE_QUOTED_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "s": " ",
    "r": "\r",
    "e": "\x1b",
    "0": "\0",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}


def _get_parser() -> ts.Parser:
    global _parser
    if _parser is None:
        parser = ts.Parser()
        parser.language = ts.Language(tree_sitter_ruby.language())
        _parser = parser
    return _parser


def parse_source(source: str) -> nodes.ProgramNode:
    """
    Parse Ruby source into a :class:`~rubis.ast.nodes.ProgramNode`.

    Syntax errors do not raise: tree-sitter recovers and the erroneous
    regions become generic nodes, so partially typed code still yields a
    usable tree.
    """
    data = source.encode("utf-8")
    tree = _get_parser().parse(data)
    if tree.root_node.has_error:
        logger.debug("Parsed Ruby source with syntax errors")
    program = _TreeConverter(data).convert_program(tree.root_node)
    return program


def _unescape_double_quoted(sequence: str) -> str:
    body = sequence[1:]
    if not body:
        return sequence
    if body[0] == "u":
        digits = body[1:].strip("{}")
        try:
            return "".join(chr(int(part, 16)) for part in digits.split())
        except ValueError:
            return sequence
    if body[0] == "x":
        try:
            return chr(int(body[1:], 16))
        except ValueError:
            return sequence
    return _DOUBLE_QUOTED_ESCAPES.get(body, body)


class _TreeConverter:
    """
    Converts a tree-sitter tree into :mod:`rubis.ast.nodes`.

    The walk is post-order with an explicit stack: every child is converted
    before its parent, and builders look converted children up by tree-sitter
    node id. Deeply nested sources therefore never hit the recursion limit.
    """

    def __init__(self, data: bytes):
        self.data = data
        self.lines = data.split(b"\n")
        self._converted: Dict[int, Optional[nodes.Node]] = {}

    # === Positions ===

    def _column(self, row: int, byte_column: int) -> int:
        if row >= len(self.lines):
            return byte_column
        prefix = self.lines[row][:byte_column]
        if prefix.isascii():
            return byte_column
        text = prefix.decode("utf-8", errors="replace")
        return len(text.encode("utf-16-le")) // 2

    def _position(self, ts_node: ts.Node) -> Tuple[int, int, int, int]:
        start_row, start_col = ts_node.start_point
        end_row, end_col = ts_node.end_point
        return (
            start_row,
            self._column(start_row, start_col),
            end_row,
            self._column(end_row, end_col),
        )

    def _text(self, ts_node: Optional[ts.Node]) -> str:
        if ts_node is None:
            return ""
        return self.data[ts_node.start_byte : ts_node.end_byte].decode(
            "utf-8", errors="replace"
        )

    def _make(self, cls, ts_node: ts.Node, **kwargs) -> nodes.Node:
        start_line, start_column, end_line, end_column = self._position(ts_node)
        node = cls(
            kind=ts_node.type,
            start_line=start_line,
            start_column=start_column,
            end_line=end_line,
            end_column=end_column,
            **kwargs,
        )
        for child in node.compact_child_nodes():
            child.parent = node
        return node

    def _span(self, cls, first: nodes.Node, last: nodes.Node, kind: str, **kwargs):
        node = cls(
            kind=kind,
            start_line=first.start_line,
            start_column=first.start_column,
            end_line=last.end_line,
            end_column=last.end_column,
            **kwargs,
        )
        for child in node.compact_child_nodes():
            child.parent = node
        return node

    # === Traversal ===

    def convert_program(self, ts_node: ts.Node) -> nodes.ProgramNode:
        self._convert_descendants(ts_node)
        statements = self._make(
            nodes.StatementsNode, ts_node, body=self._named_children(ts_node)
        )
        return self._make(nodes.ProgramNode, ts_node, statements=statements)

    def _push_children(self, stack: List[tuple], ts_node: ts.Node) -> None:
        binding_parent = ts_node.type in _BINDING_PARENTS
        children = ts_node.children
        for index in range(len(children) - 1, -1, -1):
            child = children[index]
            if not child.is_named:
                continue
            field_name = ts_node.field_name_for_child(index)
            expression = not binding_parent and field_name not in _BINDING_FIELDS
            stack.append((child, expression, False))

    def _convert_descendants(self, root: ts.Node) -> None:
        # (tree-sitter node, expression position, children converted)
        stack: List[tuple] = []
        self._push_children(stack, root)
        while stack:
            ts_node, expression, children_done = stack.pop()
            if ts_node.type == "comment" or ts_node.is_missing:
                self._converted[ts_node.id] = None
                continue
            if children_done:
                self._converted[ts_node.id] = self._build(ts_node, expression)
                continue
            stack.append((ts_node, expression, True))
            self._push_children(stack, ts_node)

    def _build(self, ts_node: ts.Node, expression: bool) -> nodes.Node:
        converter = getattr(self, f"_convert_{ts_node.type}", None)
        if converter is not None:
            return converter(ts_node)
        if ts_node.type == "identifier":
            if expression:
                return self._make(nodes.CallNode, ts_node, name=self._text(ts_node))
            return self._make(nodes.GenericNode, ts_node)
        return self._make(
            nodes.GenericNode, ts_node, children=self._named_children(ts_node)
        )

    def _node(self, ts_node: Optional[ts.Node]) -> Optional[nodes.Node]:
        """The converted node for an already visited tree-sitter node."""
        if ts_node is None:
            return None
        return self._converted.get(ts_node.id)

    def _named_children(self, ts_node: ts.Node) -> List[nodes.Node]:
        converted = []
        for child in ts_node.named_children:
            node = self._node(child)
            if node is not None:
                converted.append(node)
        return converted

    # === Statements and scopes ===

    def _statements(
        self, ts_node: ts.Node, skip: Tuple[str, ...] = ()
    ) -> Optional[nodes.StatementsNode]:
        """Build the statement list of a class, module, method or block body."""
        for child in ts_node.named_children:
            if child.type in _STATEMENT_CONTAINERS:
                return self._make(
                    nodes.StatementsNode, child, body=self._named_children(child)
                )
        # Older grammars put the statements directly under the owner
        body = [
            node
            for child in ts_node.named_children
            if child.type not in skip
            for node in [self._node(child)]
            if node is not None
        ]
        if not body:
            return None
        return self._span(nodes.StatementsNode, body[0], body[-1], "statements", body=body)

    def _convert_class(self, ts_node: ts.Node) -> nodes.Node:
        superclass = ts_node.child_by_field_name("superclass")
        superclass_name = None
        if superclass is not None and superclass.named_children:
            superclass_name = self._text(superclass.named_children[0])
        return self._make(
            nodes.ClassNode,
            ts_node,
            constant_path=self._text(ts_node.child_by_field_name("name")),
            superclass=superclass_name,
            body=self._statements(ts_node, skip=("constant", "scope_resolution", "superclass")),
        )

    def _convert_module(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(
            nodes.ModuleNode,
            ts_node,
            constant_path=self._text(ts_node.child_by_field_name("name")),
            body=self._statements(ts_node, skip=("constant", "scope_resolution")),
        )

    def _convert_method(self, ts_node: ts.Node) -> nodes.Node:
        body = self._statements(
            ts_node,
            skip=("identifier", "constant", "setter", "operator", "method_parameters", "self"),
        )
        return self._make(
            nodes.DefNode,
            ts_node,
            name=self._text(ts_node.child_by_field_name("name")),
            receiver=self._node(ts_node.child_by_field_name("object")),
            parameters=self._node(ts_node.child_by_field_name("parameters")),
            body=body,
        )

    _convert_singleton_method = _convert_method

    def _convert_do_block(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(
            nodes.BlockNode,
            ts_node,
            parameters=self._node(ts_node.child_by_field_name("parameters")),
            body=self._statements(ts_node, skip=("block_parameters",)),
        )

    _convert_block = _convert_do_block

    # === Calls ===

    def _convert_call(self, ts_node: ts.Node) -> nodes.Node:
        method = ts_node.child_by_field_name("method")
        arguments = self._node(ts_node.child_by_field_name("arguments"))
        return self._make(
            nodes.CallNode,
            ts_node,
            receiver=self._node(ts_node.child_by_field_name("receiver")),
            name=self._text(method) if method is not None else None,
            arguments=arguments if isinstance(arguments, nodes.ArgumentsNode) else None,
            block=self._node(ts_node.child_by_field_name("block")),
        )

    def _convert_argument_list(self, ts_node: ts.Node) -> nodes.ArgumentsNode:
        arguments: List[nodes.Node] = []
        pending: List[nodes.Node] = []

        def flush() -> None:
            if pending:
                arguments.append(
                    self._span(
                        nodes.KeywordHashNode,
                        pending[0],
                        pending[-1],
                        "keyword_hash",
                        elements=list(pending),
                    )
                )
                pending.clear()

        for child in ts_node.named_children:
            node = self._node(child)
            if node is None:
                continue
            if child.type in ("pair", "hash_splat_argument"):
                pending.append(node)
                continue
            flush()
            arguments.append(node)
        flush()
        return self._make(nodes.ArgumentsNode, ts_node, arguments=arguments)

    def _convert_pair(self, ts_node: ts.Node) -> nodes.Node:
        key = ts_node.child_by_field_name("key")
        rocket = any(child.type == "=>" for child in ts_node.children)
        if key is None:
            key_node = None
        elif rocket:
            key_node = self._node(key)
        else:
            # `name: value` and `"name": value` both denote a symbol key
            key_node = self._make(
                nodes.SymbolNode, key, value=self._text(key).rstrip(":").strip("\"'")
            )
        return self._make(
            nodes.AssocNode,
            ts_node,
            key=key_node,
            value=self._node(ts_node.child_by_field_name("value")),
        )

    def _convert_hash(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(nodes.HashNode, ts_node, elements=self._named_children(ts_node))

    # === Literals ===

    def _convert_simple_symbol(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(nodes.SymbolNode, ts_node, value=self._text(ts_node)[1:])

    def _convert_hash_key_symbol(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(nodes.SymbolNode, ts_node, value=self._text(ts_node))

    def _convert_bare_symbol(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(nodes.SymbolNode, ts_node, value=self._text(ts_node))

    def _convert_delimited_symbol(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(nodes.SymbolNode, ts_node, value=self._string_content(ts_node))

    def _convert_string(self, ts_node: ts.Node) -> nodes.Node:
        if any(child.type == "interpolation" for child in ts_node.named_children):
            return self._make(
                nodes.InterpolatedStringNode,
                ts_node,
                parts=self._named_children(ts_node),
            )
        return self._make(
            nodes.StringNode, ts_node, content=self._string_content(ts_node) or ""
        )

    def _string_content(self, ts_node: ts.Node) -> Optional[str]:
        text = self._text(ts_node)
        single_quoted = text.startswith("'") or text.startswith("%q")
        parts = []
        for child in ts_node.named_children:
            if child.type == "interpolation":
                return None
            raw = self._text(child)
            if child.type == "escape_sequence":
                if single_quoted:
                    parts.append(raw[1:] if raw in ("\\\\", "\\'") else raw)
                else:
                    parts.append(_unescape_double_quoted(raw))
            elif single_quoted:
                parts.append(raw.replace("\\\\", "\\").replace("\\'", "'"))
            else:
                parts.append(raw)
        return "".join(parts)

    def _convert_constant(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(nodes.ConstantNode, ts_node, name=self._text(ts_node))

    _convert_scope_resolution = _convert_constant

    def _convert_self(self, ts_node: ts.Node) -> nodes.Node:
        return self._make(nodes.SelfNode, ts_node)
