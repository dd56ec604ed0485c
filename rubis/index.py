"""
Workspace index of Ruby method definitions.

The index records every ``def`` (and ``attr_*`` generated accessor) under the
fully qualified name of its owner, together with superclass and mixin
declarations so that lookups follow the ancestor chain the way Ruby's method
resolution does.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from lsprotocol.types import Range
from pygls import uris

from rubis.ast import nodes
from rubis.ast.parser import parse_source
from rubis.ast.visitor import Dispatcher
from rubis.utils import range_from_node

logger = logging.getLogger("rubis")

TOP_LEVEL_OWNER = "Object"

SkipPredicate = Callable[[str], bool]

_READER_CALLS = ("attr_reader", "attr_accessor")
_WRITER_CALLS = ("attr_writer", "attr_accessor")
_MIXIN_CALLS = ("include", "prepend")


@dataclass
class MethodEntry:
    """A method definition: where it lives and which namespace owns it."""

    name: str
    owner: str
    uri: str
    range: Range


@dataclass
class NamespaceEntry:
    """
    One declaration (or reopening) of a class or module.

    Attributes:
        name: Fully qualified name.
        uri: Declaring document.
        lexical_scopes: Fully qualified names of the enclosing namespaces,
            innermost last, used to resolve the constants below.
        superclass: Superclass reference as written, for classes.
        includes: ``include`` references as written, in declaration order.
        prepends: ``prepend`` references as written, in declaration order.
    """

    name: str
    uri: str
    lexical_scopes: List[str] = field(default_factory=list)
    superclass: Optional[str] = None
    includes: List[str] = field(default_factory=list)
    prepends: List[str] = field(default_factory=list)


def _singleton_name(owner: str) -> str:
    return f"{owner}::<Class:{owner.split('::')[-1]}>"


class _IndexVisitor:
    """Collects index entries for one document through dispatcher events."""

    EVENTS = (
        "on_class_node_enter",
        "on_class_node_leave",
        "on_module_node_enter",
        "on_module_node_leave",
        "on_generic_node_enter",
        "on_generic_node_leave",
        "on_def_node_enter",
        "on_call_node_enter",
    )

    def __init__(self, uri: str, dispatcher: Dispatcher):
        self.uri = uri
        self.methods: List[MethodEntry] = []
        self.namespaces: List[NamespaceEntry] = []
        # (fully qualified name, namespace entry or None for singleton scopes)
        self._stack: List[tuple] = []
        dispatcher.register(self, *self.EVENTS)

    @property
    def _owner(self) -> str:
        return self._stack[-1][0] if self._stack else TOP_LEVEL_OWNER

    @property
    def _current_namespace(self) -> Optional[NamespaceEntry]:
        return self._stack[-1][1] if self._stack else None

    def _qualify(self, constant_path: str) -> str:
        if constant_path.startswith("::"):
            return constant_path[2:]
        if not self._stack:
            return constant_path
        return f"{self._stack[-1][0]}::{constant_path}"

    def _enter_namespace(self, name: str, superclass: Optional[str] = None) -> None:
        entry = NamespaceEntry(
            name=name,
            uri=self.uri,
            lexical_scopes=[scope for scope, _ in self._stack],
            superclass=superclass,
        )
        self.namespaces.append(entry)
        self._stack.append((name, entry))

    def on_class_node_enter(self, node: nodes.ClassNode) -> None:
        self._enter_namespace(self._qualify(node.constant_path), node.superclass)

    def on_class_node_leave(self, node: nodes.ClassNode) -> None:
        self._stack.pop()

    def on_module_node_enter(self, node: nodes.ModuleNode) -> None:
        self._enter_namespace(self._qualify(node.constant_path))

    def on_module_node_leave(self, node: nodes.ModuleNode) -> None:
        self._stack.pop()

    def on_generic_node_enter(self, node: nodes.GenericNode) -> None:
        if node.kind == "singleton_class":
            self._stack.append((_singleton_name(self._owner), None))

    def on_generic_node_leave(self, node: nodes.GenericNode) -> None:
        if node.kind == "singleton_class":
            self._stack.pop()

    def on_def_node_enter(self, node: nodes.DefNode) -> None:
        if not node.name:
            return
        owner = self._owner
        if isinstance(node.receiver, nodes.SelfNode):
            owner = _singleton_name(owner)
        self.methods.append(
            MethodEntry(name=node.name, owner=owner, uri=self.uri, range=range_from_node(node))
        )

    def on_call_node_enter(self, node: nodes.CallNode) -> None:
        if node.receiver is not None or node.arguments is None:
            return
        if node.name in _MIXIN_CALLS:
            namespace = self._current_namespace
            if namespace is None:
                return
            targets = namespace.includes if node.name == "include" else namespace.prepends
            for argument in node.arguments.arguments:
                if isinstance(argument, nodes.ConstantNode):
                    targets.append(argument.name)
            return
        if node.name in _READER_CALLS or node.name in _WRITER_CALLS:
            for argument in node.arguments.arguments:
                if not isinstance(argument, (nodes.SymbolNode, nodes.StringNode)):
                    continue
                name = argument.unescaped
                if not name:
                    continue
                if node.name in _READER_CALLS:
                    self._add_accessor(name, argument)
                if node.name in _WRITER_CALLS:
                    self._add_accessor(f"{name}=", argument)

    def _add_accessor(self, name: str, node: nodes.Node) -> None:
        self.methods.append(
            MethodEntry(name=name, owner=self._owner, uri=self.uri, range=range_from_node(node))
        )


class MethodIndex:
    """
    Index of method definitions across the workspace.

    Documents are indexed independently; re-indexing a document replaces
    everything previously recorded for it. The index is shared between the
    request handlers and the background indexing thread, so all access goes
    through a lock.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._methods: Dict[str, Dict[str, List[MethodEntry]]] = {}
        self._namespaces: Dict[str, List[NamespaceEntry]] = {}
        self._owners_by_uri: Dict[str, Set[str]] = {}
        self._namespaces_by_uri: Dict[str, Set[str]] = {}

    # === Indexing ===

    def index_tree(
        self, uri: str, program: nodes.ProgramNode, skip: Optional[SkipPredicate] = None
    ) -> bool:
        """
        Replace everything recorded for ``uri`` with the entries of ``program``.

        ``skip`` is asked under the index lock right before the replacement;
        when it returns True the previous entries stay.

        Returns:
            True if the entries were replaced.
        """
        dispatcher = Dispatcher()
        visitor = _IndexVisitor(uri, dispatcher)
        dispatcher.dispatch(program)

        with self._lock:
            if skip is not None and skip(uri):
                logger.debug("Kept the open document's entries for %s", uri)
                return False
            self.remove(uri)
            for method in visitor.methods:
                self._methods.setdefault(method.owner, {}).setdefault(
                    method.name, []
                ).append(method)
                self._owners_by_uri.setdefault(uri, set()).add(method.owner)
            for namespace in visitor.namespaces:
                self._namespaces.setdefault(namespace.name, []).append(namespace)
                self._namespaces_by_uri.setdefault(uri, set()).add(namespace.name)

        logger.debug(
            "Indexed %d methods and %d namespaces in %s",
            len(visitor.methods),
            len(visitor.namespaces),
            uri,
        )
        return True

    def index_source(
        self, uri: str, source: str, skip: Optional[SkipPredicate] = None
    ) -> bool:
        return self.index_tree(uri, parse_source(source), skip)

    def index_file(
        self,
        path: str,
        uri: Optional[str] = None,
        skip: Optional[SkipPredicate] = None,
    ) -> bool:
        """
        Index a Ruby file from disk.

        Args:
            path: Filesystem path of the file.
            uri: URI to record the entries under, derived from ``path`` if
                omitted.
            skip: See :meth:`index_tree`.

        Returns:
            False if the file could not be read or was skipped.
        """
        try:
            source = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s for indexing: %s", path, e)
            return False
        uri = uri or uris.from_fs_path(path)
        if not uri:
            return False
        return self.index_source(uri, source, skip)

    def index_workspace(
        self,
        root: str,
        exclude: Iterable[str] = (),
        skip: Optional[SkipPredicate] = None,
    ) -> int:
        """
        Index every ``.rb`` file below ``root``.

        Documents for which ``skip`` answers True (those open in the editor)
        keep their entries. Returns the number of files indexed.
        """
        excluded = set(exclude)
        count = 0
        for directory, subdirectories, files in os.walk(root):
            subdirectories[:] = sorted(d for d in subdirectories if d not in excluded)
            for filename in sorted(files):
                if not filename.endswith(".rb"):
                    continue
                if self.index_file(os.path.join(directory, filename), skip=skip):
                    count += 1
        logger.info("Indexed %d Ruby files under %s", count, root)
        return count

    def remove(self, uri: str) -> None:
        with self._lock:
            for owner in self._owners_by_uri.pop(uri, set()):
                methods = self._methods.get(owner, {})
                for name in list(methods):
                    kept = [entry for entry in methods[name] if entry.uri != uri]
                    if kept:
                        methods[name] = kept
                    else:
                        del methods[name]
                if not methods:
                    self._methods.pop(owner, None)
            for name in self._namespaces_by_uri.pop(uri, set()):
                kept_namespaces = [
                    entry for entry in self._namespaces.get(name, []) if entry.uri != uri
                ]
                if kept_namespaces:
                    self._namespaces[name] = kept_namespaces
                else:
                    self._namespaces.pop(name, None)

    # === Lookup ===

    def _resolve_constant(self, reference: str, lexical_scopes: List[str]) -> str:
        if reference.startswith("::"):
            return reference[2:]
        for scope in reversed(lexical_scopes):
            candidate = f"{scope}::{reference}"
            if candidate in self._namespaces:
                return candidate
        return reference

    def linearized_ancestors_of(self, name: str) -> List[str]:
        """
        Return ``name`` and its ancestors in method resolution order.

        Prepended modules come before the namespace itself, included modules
        after it, then the superclass chain. Unknown constants still appear,
        they just contribute no ancestors of their own.
        """
        with self._lock:
            ancestors: List[str] = []
            self._linearize(name, ancestors, set())
            return ancestors

    def _linearize(self, name: str, ancestors: List[str], seen: Set[str]) -> None:
        if name in seen:
            return
        seen.add(name)
        entries = self._namespaces.get(name, [])

        for entry in entries:
            for reference in reversed(entry.prepends):
                scopes = entry.lexical_scopes + [entry.name]
                self._linearize(self._resolve_constant(reference, scopes), ancestors, seen)

        ancestors.append(name)

        for entry in entries:
            for reference in reversed(entry.includes):
                scopes = entry.lexical_scopes + [entry.name]
                self._linearize(self._resolve_constant(reference, scopes), ancestors, seen)

        superclass = next(
            (
                self._resolve_constant(entry.superclass, entry.lexical_scopes)
                for entry in entries
                if entry.superclass
            ),
            None,
        )
        if superclass is not None:
            self._linearize(superclass, ancestors, seen)

    def resolve_method(self, name: str, owner: str) -> Optional[List[MethodEntry]]:
        """
        Find the definitions of ``name`` visible from instances of ``owner``.

        Returns:
            The entries of the first ancestor defining the method, or None.
        """
        with self._lock:
            for ancestor in self.linearized_ancestors_of(owner):
                entries = self._methods.get(ancestor, {}).get(name)
                if entries:
                    return list(entries)
        return None

    def __contains__(self, owner: str) -> bool:
        with self._lock:
            return owner in self._namespaces or owner in self._methods
