# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""Builds a tree of files and directories from an indented listing.

Each line of the listing is either ``dir:<name>`` or
``file:<name>,<size>,<last_opened>``, indented by two spaces per level of
nesting, for example::

    dir:lib
      file:libgame.so,1048576,1700000000
      dir:arm64
    file:config.json,512,1700000100

The tree is constructed in an arena, parents are tracked as a stack of
indices into it, so items never need references to their parents.
"""
import dataclasses
import logging
import re
from typing import Any, Dict, List, Optional

from ptrchain.framework import constants

vollog = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


@dataclasses.dataclass
class FileItem:
    item_type: str
    name: str
    size: Optional[int] = None
    last_opened: Optional[int] = None
    children: Optional[List["FileItem"]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Returns the item (and its children) as JSON serializable data."""
        return {
            "item_type": self.item_type,
            "name": self.name,
            "size": self.size,
            "last_opened": self.last_opened,
            "children": (
                None
                if self.children is None
                else [child.to_dict() for child in self.children]
            ),
        }


def _parse_int64(text: str) -> Optional[int]:
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _parse_line(item_type: str, rest: str) -> Optional[FileItem]:
    if item_type == "dir":
        return FileItem("directory", rest)
    if item_type == "file":
        parts = rest.split(",")
        if len(parts) != 3:
            return None
        return FileItem(
            "file", parts[0], _parse_int64(parts[1]), _parse_int64(parts[2])
        )
    return None


def parse_directory_structure(raw_data: str) -> List[FileItem]:
    """Parses an indented listing into a list of top level items.

    Lines that are not understood are skipped.  An item is attached to the
    nearest directory above it that is less indented, items indented
    deeper than any open directory attach to the deepest one.
    """
    arena: List[FileItem] = []
    roots: List[int] = []
    parents: List[int] = []

    for line in raw_data.splitlines():
        indent = (len(line) - len(line.lstrip(" "))) // 2
        content = line.lstrip()
        if ":" not in content:
            continue
        item_type, rest = content.split(":", 1)
        item = _parse_line(item_type, rest)
        if item is None:
            vollog.log(constants.LOGLEVEL_VVVV, f"Skipping listing line: {line!r}")
            continue

        del parents[indent:]

        index = len(arena)
        arena.append(item)
        if parents:
            parent = arena[parents[-1]]
            if parent.children is None:
                parent.children = []
            parent.children.append(item)
        else:
            roots.append(index)

        if item.item_type == "directory":
            parents.append(index)

    return [arena[index] for index in roots]
