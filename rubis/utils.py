"""Utility functions for the Rails language server."""

import logging
from typing import Optional

from lsprotocol.types import Location, Position, Range
from pygls import uris

from rubis.ast.nodes import Node

logger = logging.getLogger("rubis")


def range_from_node(node: Node) -> Range:
    """Create an LSP Range from a syntax node's position information."""
    return Range(
        start=Position(line=node.start_line, character=node.start_column),
        end=Position(line=node.end_line, character=node.end_column),
    )


def range_at_line(line: int) -> Range:
    """Create an empty LSP Range at the start of a 0-based line."""
    return Range(
        start=Position(line=line, character=0),
        end=Position(line=line, character=0),
    )


def location_from_s(location_string: str) -> Location:
    """
    Parse a ``path:line`` location string into an LSP Location.

    The line is 1-based and taken after the last colon, so paths with drive
    letters (``C:/app/models/user.rb:3``) keep their own colons.

    Raises:
        ValueError: If the string has no path or no integer line.
    """
    path, separator, line = location_string.rpartition(":")
    if not separator or not path:
        raise ValueError(f"Invalid location string: {location_string!r}")
    line_number = int(line)
    if line_number < 1:
        raise ValueError(f"Invalid line in location string: {location_string!r}")

    uri = uris.from_fs_path(path)
    if not uri:
        raise ValueError(f"Invalid path in location string: {location_string!r}")
    return Location(uri=uri, range=range_at_line(line_number - 1))


def path_from_uri(uri: str) -> Optional[str]:
    """Return the filesystem path of a URI, or None for non-file URIs."""
    try:
        return uris.to_fs_path(uri)
    except Exception:
        logger.debug("Could not convert URI to a path: %s", uri)
        return None
