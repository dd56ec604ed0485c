"""
Definition finding for Rails DSL calls.

Go-to-definition on the argument of a Rails DSL call jumps to what the
argument names:

- callbacks (``before_action :authenticate``) and ``if:``/``unless:`` options
  jump to the method in the enclosing class or its ancestors;
- validations (``validate :check_email``) jump to the validating method;
- associations (``has_many :posts``) jump to the associated model, as reported
  by the Rails runner;
- route helpers (``users_path``) jump to the route declaration;
- ``"controller#action"`` strings in route files jump to the controller
  action, prefixed with the ``namespace``/``scope`` blocks around the route.

Nothing here raises for code that does not look like a resolvable DSL use; it
just produces no locations.
"""

import logging
from typing import Callable, Dict, List, Optional, Union

from lsprotocol import types

from rubis.ast import nodes
from rubis.ast.context import NodeContext, locate
from rubis.ast.visitor import Dispatcher
from rubis.config import Settings
from rubis.features import routes
from rubis.features.dsl import SYMBOL_OPAQUE_CALLS, DslKind, classify
from rubis.index import MethodIndex
from rubis.runner_client import RunnerClient
from rubis.utils import location_from_s, path_from_uri

logger = logging.getLogger("rubis")

Literal = Union[nodes.SymbolNode, nodes.StringNode]


class ResponseBuilder:
    """Append-only, ordered collection of definition locations."""

    def __init__(self):
        self._items: List[types.Location] = []

    def append(self, location: types.Location) -> None:
        self._items.append(location)

    def __len__(self) -> int:
        return len(self._items)

    def response(self) -> List[types.Location]:
        return list(self._items)


def _literal_value(node: nodes.Node) -> Optional[str]:
    if isinstance(node, nodes.SymbolNode):
        return node.value
    if isinstance(node, nodes.StringNode):
        return node.content
    return None


def find_focus_argument(
    arguments: List[nodes.Node], node: nodes.Node
) -> Optional[nodes.Node]:
    """Return the direct argument that is ``node`` itself, if any."""
    return next((argument for argument in arguments if argument is node), None)


class Definition:
    """
    Listener resolving Rails DSL definitions for the focused node.

    Registers for call, symbol and string events on the dispatcher; every
    location found is appended to the response builder.
    """

    EVENTS = ("on_call_node_enter", "on_symbol_node_enter", "on_string_node_enter")

    def __init__(
        self,
        client: RunnerClient,
        response_builder: ResponseBuilder,
        node_context: NodeContext,
        index: MethodIndex,
        uri: str,
        dispatcher: Dispatcher,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.response_builder = response_builder
        self.node_context = node_context
        self.nesting = node_context.nesting
        self.index = index
        self.uri = uri
        self.settings = settings or Settings()
        self._handlers: Dict[DslKind, Callable[[Literal, nodes.CallNode, List[nodes.Node]], None]] = {
            DslKind.ASSOCIATION: self._handle_association,
            DslKind.CALLBACK: self._handle_callback,
            DslKind.VALIDATION: self._handle_validation,
            DslKind.CONTROLLER_ROUTE: self._handle_controller_action,
        }

        dispatcher.register(self, *self.EVENTS)

    # === Events ===

    def on_symbol_node_enter(self, node: nodes.SymbolNode) -> None:
        self._handle_possible_dsl(node)

    def on_string_node_enter(self, node: nodes.StringNode) -> None:
        self._handle_possible_dsl(node)

    def on_call_node_enter(self, node: nodes.CallNode) -> None:
        if classify(node) is DslKind.ROUTE_HELPER:
            self._handle_route(node)

    # === Classification ===

    def _handle_possible_dsl(self, node: Literal) -> None:
        """
        Classify the call whose arguments hold ``node`` and run its handler.

        Callbacks and validations additionally get the ``if:``/``unless:``
        check, so a symbol in either position resolves.
        """
        call_node = self.node_context.call_node
        if call_node is None or call_node.arguments is None:
            return
        arguments = call_node.arguments.arguments
        if not arguments:
            return

        kind = classify(call_node)
        handler = self._handlers.get(kind)
        if handler is None:
            return
        logger.debug("Resolving %s argument of %s", kind.value, call_node.message)
        handler(node, call_node, arguments)

        if kind in (DslKind.CALLBACK, DslKind.VALIDATION):
            self._handle_if_unless_conditional(node, call_node, arguments)

    # === Handlers ===

    def _handle_callback(
        self, node: Literal, call_node: nodes.CallNode, arguments: List[nodes.Node]
    ) -> None:
        """Resolve a symbol or string callback argument as a method."""
        focus_argument = find_focus_argument(arguments, node)
        if focus_argument is None:
            return
        name = _literal_value(focus_argument)
        if not name:
            return
        self._collect_definitions(name)

    def _handle_validation(
        self, node: Literal, call_node: nodes.CallNode, arguments: List[nodes.Node]
    ) -> None:
        """Resolve a symbol validation argument as a method."""
        if call_node.message in SYMBOL_OPAQUE_CALLS:
            return
        focus_argument = find_focus_argument(arguments, node)
        if not isinstance(focus_argument, nodes.SymbolNode):
            return
        if not focus_argument.value:
            return
        self._collect_definitions(focus_argument.value)

    def _handle_if_unless_conditional(
        self, node: Literal, call_node: nodes.CallNode, arguments: List[nodes.Node]
    ) -> None:
        """Resolve ``node`` as a method when it is an ``if:``/``unless:`` value."""
        if not isinstance(node, nodes.SymbolNode):
            return
        keyword_arguments = next(
            (argument for argument in arguments if isinstance(argument, nodes.KeywordHashNode)),
            None,
        )
        if keyword_arguments is None:
            return

        element = next(
            (
                element
                for element in keyword_arguments.elements
                if isinstance(element, nodes.AssocNode)
                and isinstance(element.key, nodes.SymbolNode)
                and element.key.value in ("if", "unless")
                and element.value is node
            ),
            None,
        )
        if element is None or not node.value:
            return
        self._collect_definitions(node.value)

    def _handle_association(
        self, node: Literal, call_node: nodes.CallNode, arguments: List[nodes.Node]
    ) -> None:
        """
        Ask the runner where the associated model lives.

        Only the association name itself (the first positional symbol)
        triggers a lookup; option values never do.
        """
        first_argument = arguments[0]
        if first_argument is not node or not isinstance(first_argument, nodes.SymbolNode):
            return
        association_name = first_argument.unescaped
        if not association_name or not self.nesting:
            return

        result = self.client.association_target(
            model_name=self.node_context.fully_qualified_name,
            association_name=association_name,
        )
        if not result:
            logger.debug("No association target for %s", association_name)
            return
        self._append_location_string(result.get("location"))

    def _handle_controller_action(
        self, node: Literal, call_node: nodes.CallNode, arguments: List[nodes.Node]
    ) -> None:
        """
        Resolve a ``"controller#action"`` string in a route file.

        The controller is prefixed with the ``namespace``/``scope`` segments
        of the blocks enclosing the route before the runner is asked.
        """
        if not self.settings.is_route_file(path_from_uri(self.uri)):
            return
        if not isinstance(node, nodes.StringNode):
            return

        parts = routes.split_controller_action(node.content)
        if parts is None:
            return
        controller, action = parts

        parent_call_node = routes.find_parent_call_node(
            self.node_context.reference_statements, node
        )
        if parent_call_node is None:
            logger.debug("No route statement contains %r", node.content)
            return
        scopes = routes.collect_scopes(parent_call_node, node)

        results = self.client.controller_action_target(
            controller=routes.controller_path(scopes, controller),
            action=action,
        )
        if not results:
            return
        for result in results:
            self._append_location_string(result.get("location"))

    def _handle_route(self, node: nodes.CallNode) -> None:
        """Ask the runner where a route helper is declared."""
        if not node.message:
            return
        result = self.client.route_location(node.message)
        if not result:
            return
        self._append_location_string(result.get("location"))

    # === Collection ===

    def _append_location_string(self, location: Optional[str]) -> None:
        """Append a runner ``path:line`` location, skipping malformed ones."""
        if not isinstance(location, str):
            logger.warning("Rails runner result without a location: %r", location)
            return
        try:
            self.response_builder.append(location_from_s(location))
        except ValueError as e:
            logger.warning("Skipping malformed location from Rails runner: %s", e)

    def _collect_definitions(self, name: str) -> None:
        """Append every definition of ``name`` visible from the enclosing class."""
        if not self.nesting:
            return
        methods = self.index.resolve_method(name, self.node_context.fully_qualified_name)
        if not methods:
            logger.debug(
                "No definition of %s in %s", name, self.node_context.fully_qualified_name
            )
            return
        for target_method in methods:
            self.response_builder.append(
                types.Location(uri=target_method.uri, range=target_method.range)
            )


def get_definition_locations(
    program: nodes.ProgramNode,
    uri: str,
    position: types.Position,
    index: MethodIndex,
    client: RunnerClient,
    settings: Optional[Settings] = None,
) -> List[types.Location]:
    """
    Resolve the Rails DSL definitions for the node at a position.

    Args:
        program: The parsed document.
        uri: The document URI.
        position: The cursor position.
        index: Method index used for callbacks, validations and conditionals.
        client: Rails runner client used for associations and routes.
        settings: Server settings (route file pattern).

    Returns:
        The definition locations, in discovery order. Empty when the node is
        not a resolvable DSL use.
    """
    target, node_context = locate(program, position.line, position.character)
    if target is None:
        return []

    dispatcher = Dispatcher()
    response_builder = ResponseBuilder()
    Definition(client, response_builder, node_context, index, uri, dispatcher, settings)
    dispatcher.dispatch_once(target)
    return response_builder.response()
