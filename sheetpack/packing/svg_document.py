"""
SVG Document Tree
=================
Small structured SVG builder used by the composer.

Elements of the SVG namespace are stored under their local tag name; any
other namespace keeps the `{uri}tag` form used by ElementTree. The tree is
serialized once, with the SVG namespace as the default namespace.
"""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

ET.register_namespace('', SVG_NS)
ET.register_namespace('xlink', XLINK_NS)

_SVG_PREFIX = "{" + SVG_NS + "}"
_NUMBER = re.compile(r'^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)')
_SVG_OPEN_TAG = re.compile(r'<svg\b[^>]*>', re.IGNORECASE | re.DOTALL)


def _local(tag: str) -> str:
    if tag.startswith(_SVG_PREFIX):
        return tag[len(_SVG_PREFIX):]
    return tag


def _qualified(tag: str) -> str:
    if tag.startswith("{"):
        return tag
    return _SVG_PREFIX + tag


@dataclass
class SvgNode:
    """One SVG element with its attributes and children."""
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    children: List['SvgNode'] = field(default_factory=list)
    text: Optional[str] = None
    tail: Optional[str] = None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(key, default)

    def set(self, key: str, value) -> 'SvgNode':
        self.attrs[key] = str(value)
        return self

    def append(self, child: 'SvgNode') -> 'SvgNode':
        self.children.append(child)
        return child

    def iter(self, tag: Optional[str] = None) -> Iterator['SvgNode']:
        """Depth-first walk including this node."""
        if tag is None or self.tag == tag:
            yield self
        for child in self.children:
            yield from child.iter(tag)

    def find_by_id(self, node_id: str) -> Optional['SvgNode']:
        for node in self.iter():
            if node.attrs.get('id') == node_id:
                return node
        return None

    @classmethod
    def from_element(cls, element: ET.Element) -> 'SvgNode':
        return cls(
            tag=_local(element.tag),
            attrs=dict(element.attrib),
            children=[cls.from_element(child) for child in element],
            text=element.text,
            tail=element.tail,
        )

    def to_element(self) -> ET.Element:
        element = ET.Element(_qualified(self.tag), dict(self.attrs))
        element.text = self.text
        element.tail = self.tail
        for child in self.children:
            element.append(child.to_element())
        return element

    def serialize(self) -> str:
        return ET.tostring(self.to_element(), encoding='unicode')


def parse_svg(svg_text: str) -> SvgNode:
    """
    Parse SVG markup into a node tree.

    Raises:
        ET.ParseError: malformed markup
    """
    return SvgNode.from_element(ET.fromstring(svg_text))


@dataclass(frozen=True)
class SvgBounds:
    x: float
    y: float
    width: float
    height: float


def parse_length(value: Optional[str]) -> Optional[float]:
    """Leading number of an SVG length ("210mm" -> 210.0)."""
    if not value:
        return None
    match = _NUMBER.match(value)
    if not match:
        return None
    return float(match.group(1))


def parse_viewbox(value: Optional[str]) -> Optional[SvgBounds]:
    if not value:
        return None
    parts = [p for p in re.split(r'[\s,]+', value.strip()) if p]
    if len(parts) != 4:
        return None
    try:
        x, y, w, h = (float(p) for p in parts)
    except ValueError:
        return None
    if w <= 0 or h <= 0:
        return None
    return SvgBounds(x, y, w, h)


def _attribute(open_tag: str, name: str) -> Optional[str]:
    match = re.search(r'(?:^|\s)' + name + r'\s*=\s*(["\'])(.*?)\1', open_tag, re.DOTALL)
    return match.group(2) if match else None


def parse_svg_bounds(svg_text: str) -> Optional[SvgBounds]:
    """
    Extent of an SVG fragment.

    The viewBox of the root <svg> wins; otherwise width/height with units
    stripped and a (0, 0) origin. Returns None when neither is usable.
    The opening tag is read directly so that fragments with broken content
    still report their extent.
    """
    if not svg_text:
        return None
    match = _SVG_OPEN_TAG.search(svg_text)
    if not match:
        return None
    open_tag = match.group(0)

    bounds = parse_viewbox(_attribute(open_tag, 'viewBox'))
    if bounds is not None:
        return bounds

    width = parse_length(_attribute(open_tag, 'width'))
    height = parse_length(_attribute(open_tag, 'height'))
    if width and height and width > 0 and height > 0:
        return SvgBounds(0.0, 0.0, width, height)

    logger.debug("SVG without usable viewBox or width/height")
    return None
