"""Accessibility tree nodes and search.

Provides a plain node model, an iterative first-match search and a parser
for the XML produced by ``uiautomator dump``.
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from loguru import logger

_BOUNDS_RE = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")

# Widget classes that accept text even when the dump does not flag them
_EDITABLE_CLASSES = (
    "android.widget.EditText",
    "android.widget.AutoCompleteTextView",
    "android.widget.MultiAutoCompleteTextView",
)


@dataclass
class AccessibilityNode:
    """One node of an accessibility tree."""

    text: str = ""
    class_name: str = ""
    resource_id: str = ""
    editable: bool = False
    focused: bool = False
    password: bool = False
    max_text_length: Optional[int] = None
    bounds: Tuple[int, int, int, int] = (0, 0, 0, 0)
    children: List["AccessibilityNode"] = field(default_factory=list)

    @property
    def center(self) -> Tuple[float, float]:
        left, top, right, bottom = self.bounds
        return (left + right) / 2, (top + bottom) / 2


def find_node(
    root: Optional[AccessibilityNode],
    predicate: Callable[[AccessibilityNode], bool],
) -> Optional[AccessibilityNode]:
    """Return the first node in pre-order that satisfies predicate.

    Uses an explicit stack so arbitrarily deep trees cannot exhaust the
    interpreter's recursion limit. Children are pushed in reverse so the
    visiting order matches a recursive depth-first search.

    Args:
        root: Tree root, or None for an empty tree
        predicate: Match condition

    Returns:
        The first matching node, or None
    """
    if root is None:
        return None

    stack = [root]
    while stack:
        node = stack.pop()
        if predicate(node):
            return node
        stack.extend(reversed(node.children))

    return None


def _parse_bounds(value: str) -> Tuple[int, int, int, int]:
    match = _BOUNDS_RE.fullmatch(value.strip())
    if match is None:
        return (0, 0, 0, 0)
    return tuple(int(v) for v in match.groups())


def _is_true(value: Optional[str]) -> bool:
    return (value or "").lower() == "true"


def _parse_max_length(value: Optional[str]) -> Optional[int]:
    if not value or not value.isdigit():
        return None
    max_length = int(value)
    return max_length if max_length > 0 else None


def _node_from_element(element: ET.Element) -> AccessibilityNode:
    class_name = element.get("class", "")
    return AccessibilityNode(
        text=element.get("text", ""),
        class_name=class_name,
        resource_id=element.get("resource-id", ""),
        editable=_is_true(element.get("editable")) or class_name in _EDITABLE_CLASSES,
        focused=_is_true(element.get("focused")),
        password=_is_true(element.get("password")),
        max_text_length=_parse_max_length(element.get("max-text-length")),
        bounds=_parse_bounds(element.get("bounds", "")),
    )


def parse_ui_dump(xml_text: str) -> Optional[AccessibilityNode]:
    """Parse a ``uiautomator dump`` document into a node tree.

    The ``<hierarchy>`` element becomes a synthetic root. Conversion is
    iterative for the same reason as find_node.

    Args:
        xml_text: Raw XML document

    Returns:
        The root node, or None if the document cannot be parsed
    """
    try:
        hierarchy = ET.fromstring(xml_text)
    except ET.ParseError as e:
        logger.warning(f"Failed to parse UI dump: {e}")
        return None

    root = AccessibilityNode(class_name=hierarchy.tag)
    pending = [(hierarchy, root)]
    while pending:
        element, node = pending.pop()
        for child_element in element:
            if child_element.tag != "node":
                continue
            child = _node_from_element(child_element)
            node.children.append(child)
            pending.append((child_element, child))

    return root
