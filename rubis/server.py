"""
Rubis - Rails Language Server.

This module provides the main entry point for the LSP server, wiring document
parsing, workspace indexing and the Rails runner to go-to-definition.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from lsprotocol import types
from pygls.cli import start_server
from pygls.lsp.server import LanguageServer
from pygls.workspace import TextDocument

from rubis import __version__
from rubis.ast.nodes import ProgramNode
from rubis.ast.parser import parse_source
from rubis.config import Settings
from rubis.features.definition import get_definition_locations
from rubis.index import MethodIndex
from rubis.logger_setup import set_level, setup_logging
from rubis.runner_client import NullRunnerClient, RunnerClient
from rubis.utils import path_from_uri

logger = logging.getLogger("rubis")

# Debounce delay for re-parsing changed documents (in seconds)
PARSE_DEBOUNCE_DELAY = 0.3


class RailsLanguageServer(LanguageServer):
    """Language server for Rails applications."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.trees: Dict[str, ProgramNode] = {}
        self.index = MethodIndex()
        self.settings = Settings()
        self.runner_client: RunnerClient = NullRunnerClient()
        self.logger = setup_logging(self)
        self.logger.info("Rails Language Server starting...")
        # Debounce timers for parsing
        self._parse_tasks: Dict[str, asyncio.Task] = {}

    def configure(self, options: Optional[Dict[str, Any]]) -> None:
        """Apply the client's initialization options."""
        self.settings = Settings.from_initialization_options(options)
        set_level(self.settings.logging_level)
        self.logger.debug("Settings: %s", self.settings)

    def parse(self, doc: TextDocument) -> bool:
        """
        Parse a document, cache its tree and re-index its methods.

        On failure the last successfully parsed tree is kept so navigation
        keeps working while the user types.

        Returns:
            True if parsing succeeded, False otherwise.
        """
        try:
            tree = parse_source(doc.source)
        except Exception as e:
            self.logger.error("Unexpected error parsing %s: %s", doc.uri, e)
            return False
        self.trees[doc.uri] = tree
        self.index.index_tree(doc.uri, tree)
        self.logger.debug("Parsed document: %s", doc.uri)
        return True

    def schedule_parse(self, doc: TextDocument) -> None:
        """Parse a document after a short delay, cancelling earlier requests."""
        uri = doc.uri

        if uri in self._parse_tasks:
            self._parse_tasks[uri].cancel()

        async def run_parse_after_delay():
            try:
                await asyncio.sleep(PARSE_DEBOUNCE_DELAY)
                await asyncio.to_thread(self.parse, doc)
            except asyncio.CancelledError:
                # Superseded by a newer edit
                pass

        self._parse_tasks[uri] = asyncio.create_task(run_parse_after_delay())

    def get_tree(self, doc: TextDocument) -> Optional[ProgramNode]:
        """
        Get or parse the tree for a document.

        Returns:
            The parsed tree, or None if parsing failed.
        """
        if doc.uri not in self.trees:
            if not self.parse(doc):
                return None
        return self.trees.get(doc.uri)

    def is_open(self, uri: str) -> bool:
        return uri in self.trees

    def index_workspace(self, workspace_path: Optional[str]) -> int:
        """Index the workspace from disk, leaving open documents alone."""
        if not workspace_path:
            return 0
        return self.index.index_workspace(
            workspace_path, self.settings.index_exclude, skip=self.is_open
        )

    def close(self, uri: str) -> None:
        """
        Forget an open document.

        Its index entries go back to the saved file, so edits discarded on
        close do not linger. Documents that were never saved are dropped.
        """
        task = self._parse_tasks.pop(uri, None)
        if task is not None:
            task.cancel()
        self.trees.pop(uri, None)

        path = path_from_uri(uri)
        if path and os.path.isfile(path):
            self.index.index_file(path, uri=uri, skip=self.is_open)
        else:
            self.index.remove(uri)

    def start_runner(self, workspace_path: Optional[str]) -> None:
        self.runner_client = RunnerClient.create_client(self.settings, workspace_path)

    def stop_runner(self) -> None:
        self.runner_client.stop()
        self.runner_client = NullRunnerClient()


server = RailsLanguageServer("rubis", f"v{__version__}")


# -----------------------------------------------------------------------------
# Lifecycle Events
# -----------------------------------------------------------------------------


@server.feature(types.INITIALIZE)
def initialize(ls: RailsLanguageServer, params: types.InitializeParams) -> None:
    """Read settings from the client's initialization options."""
    ls.configure(params.initialization_options)


@server.feature(types.INITIALIZED)
async def initialized(ls: RailsLanguageServer, params: types.InitializedParams) -> None:
    """Index the workspace and boot the Rails runner in the background."""
    workspace_path = ls.workspace.root_path
    try:
        await asyncio.to_thread(ls.index_workspace, workspace_path)
    except Exception as e:
        ls.logger.error("Workspace indexing failed: %s", e)
    await asyncio.to_thread(ls.start_runner, workspace_path)


@server.feature(types.SHUTDOWN)
def shutdown(ls: RailsLanguageServer, params: None) -> None:
    """Stop the Rails runner."""
    ls.stop_runner()


# -----------------------------------------------------------------------------
# Document Lifecycle Events
# -----------------------------------------------------------------------------


@server.feature(types.TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: RailsLanguageServer, params: types.DidOpenTextDocumentParams) -> None:
    """Parse each document when it is opened."""
    ls.logger.debug("Document opened: %s", params.text_document.uri)
    doc = ls.workspace.get_text_document(params.text_document.uri)
    ls.parse(doc)


@server.feature(types.TEXT_DOCUMENT_DID_CHANGE)
def did_change(
    ls: RailsLanguageServer, params: types.DidChangeTextDocumentParams
) -> None:
    """Re-parse each document when it is changed (debounced)."""
    ls.logger.debug("Document changed: %s", params.text_document.uri)
    doc = ls.workspace.get_text_document(params.text_document.uri)
    ls.schedule_parse(doc)


@server.feature(types.TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: RailsLanguageServer, params: types.DidCloseTextDocumentParams) -> None:
    """Drop the cached tree and re-index the saved file."""
    ls.logger.debug("Document closed: %s", params.text_document.uri)
    ls.close(params.text_document.uri)


# -----------------------------------------------------------------------------
# Navigation Features
# -----------------------------------------------------------------------------


@server.feature(types.TEXT_DOCUMENT_DEFINITION)
def goto_definition(
    ls: RailsLanguageServer, params: types.DefinitionParams
) -> Optional[List[types.Location]]:
    """Jump to the definition of the Rails DSL argument at the cursor."""
    ls.logger.debug("Definition requested: %s", params.text_document.uri)
    doc = ls.workspace.get_text_document(params.text_document.uri)
    tree = ls.get_tree(doc)
    if tree is None:
        return None

    locations = get_definition_locations(
        tree,
        doc.uri,
        params.position,
        ls.index,
        ls.runner_client,
        ls.settings,
    )
    return locations or None


# -----------------------------------------------------------------------------
# Entry Point
# -----------------------------------------------------------------------------


def main() -> None:
    """Start the Rails language server."""
    start_server(server)
