"""
Typed, namespace-agnostic view over an ElementTree document.

GPX files come with (GPX 1.1), without, or with a foreign default
namespace, so tags are matched by local name only.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import Iterator, Optional


def local_name(tag: str) -> str:
    """Strip ``{namespace}`` from an ElementTree tag."""
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag


def parse_float(value: Optional[str]) -> Optional[float]:
    """Parse a finite float, None for missing or malformed text."""
    if value is None:
        return None
    try:
        number = float(value.strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


class XmlNode:
    """Wrapper around an Element with tag lookups by local name."""

    __slots__ = ("element",)

    def __init__(self, element: ET.Element):
        self.element = element

    @classmethod
    def from_string(cls, content: str | bytes) -> XmlNode:
        """
        Parse a document.

        Raises:
            ET.ParseError: If the content is not well-formed XML
        """
        return cls(ET.fromstring(content))

    @property
    def tag(self) -> str:
        return local_name(self.element.tag)

    def children(self, tag: str) -> Iterator[XmlNode]:
        for child in self.element:
            if local_name(child.tag) == tag:
                yield XmlNode(child)

    def descendants(self, tag: str) -> Iterator[XmlNode]:
        """All matching descendants in document order."""
        for element in self.element.iter():
            if element is not self.element and local_name(element.tag) == tag:
                yield XmlNode(element)

    def first(self, tag: str) -> Optional[XmlNode]:
        """First direct child with the given tag."""
        return next(self.children(tag), None)

    def first_descendant(self, tag: str) -> Optional[XmlNode]:
        return next(self.descendants(tag), None)

    def text(self, tag: Optional[str] = None) -> Optional[str]:
        """
        Stripped text of this node, or of its first child ``tag``.

        Empty text is reported as None.
        """
        node = self if tag is None else self.first(tag)
        if node is None or node.element.text is None:
            return None
        value = node.element.text.strip()
        return value or None

    def attr_float(self, name: str) -> Optional[float]:
        return parse_float(self.element.get(name))
