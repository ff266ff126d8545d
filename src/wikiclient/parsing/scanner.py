"""
Forward-scanning extraction of fields from the API's XML output.

Responses can run to tens of megabytes (full histories, page dumps) while
each record is a flat element carrying its fields as attributes. Instead of
building a tree, these helpers walk the text with substring searches and
return only the pieces asked for. Callers go through this narrow interface
(``scan_attribute``, ``scan_elements``, ``attributes``) so the scanning
strategy can be swapped without touching them.
"""

import re
from typing import Dict, Iterator, Mapping, Optional


# order matters: &amp; last so "&amp;lt;" decodes to "&lt;", not "<"
_DECODE_TABLE = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#039;", "'"),
    ("&amp;", "&"),
)

_ATTRIBUTE_RE = re.compile(r'([\w:\-]+)="([^"]*)"')

_TAG_BOUNDARY = " />\t\r\n"


def decode(value: str) -> str:
    """Reverse the entity encoding applied to attribute values and text."""
    if "&" not in value:
        return value
    for entity, char in _DECODE_TABLE:
        value = value.replace(entity, char)
    return value


def encode(value: str) -> str:
    """Entity-encode a string for use inside an attribute value."""
    value = value.replace("&", "&amp;")
    value = value.replace("<", "&lt;").replace(">", "&gt;")
    return value.replace('"', "&quot;").replace("'", "&#039;")


def scan_attribute(
    text: str, name: str, start: int = 0, end: Optional[int] = None
) -> Optional[str]:
    """
    Find the next ``name="value"`` at or after ``start``.

    Args:
        text: Raw response text
        name: Attribute name (matched as a whole word)
        start: Offset to start scanning from
        end: Optional offset to stop scanning at

    Returns:
        The decoded value, or None if the attribute does not occur
    """
    needle = f' {name}="'
    limit = len(text) if end is None else end
    i = text.find(needle, start, limit)
    if i < 0:
        return None
    value_start = i + len(needle)
    value_end = text.find('"', value_start)
    if value_end < 0:
        return None
    return decode(text[value_start:value_end])


def _opening_tag(element: str) -> str:
    close = element.find(">")
    return element if close < 0 else element[:close + 1]


def has_attribute(element: str, name: str) -> bool:
    """Whether the element's opening tag carries ``name``, e.g. flags like ``minor=""``."""
    return f' {name}="' in _opening_tag(element)


def attributes(element: str) -> Dict[str, str]:
    """All attributes of the element's opening tag, decoded."""
    return {k: decode(v) for k, v in _ATTRIBUTE_RE.findall(_opening_tag(element))}


def scan_elements(
    text: str, tag: str, start: int = 0, end: Optional[int] = None
) -> Iterator[str]:
    """
    Yield each ``<tag .../>`` or ``<tag ...>...</tag>`` element in order.

    Elements of the same name are assumed not to nest, which holds for
    every record type the API emits.

    Args:
        text: Raw response text
        tag: Element name
        start: Offset to start scanning from
        end: Optional offset; elements must start before it
    """
    opener = "<" + tag
    closer = f"</{tag}>"
    limit = len(text) if end is None else end
    pos = start
    while True:
        i = text.find(opener, pos, limit)
        if i < 0:
            return
        after = i + len(opener)
        # skip longer names sharing the prefix, e.g. <revisions> when scanning <rev>
        if after >= len(text) or text[after] not in _TAG_BOUNDARY:
            pos = after
            continue
        close = text.find(">", after)
        if close < 0:
            return
        if text[close - 1] == "/":
            stop = close + 1
        else:
            j = text.find(closer, close)
            if j < 0:
                return
            stop = j + len(closer)
        yield text[i:stop]
        pos = stop


def section(text: str, tag: str, start: int = 0) -> Optional[str]:
    """The first ``tag`` element in ``text``, or None."""
    return next(scan_elements(text, tag, start), None)


def element_text(element: str) -> str:
    """Decoded body text of an element, empty for self-closing elements."""
    close = element.find(">")
    if close < 0 or element[close - 1] == "/":
        return ""
    end = element.rfind("</")
    if end <= close:
        return ""
    return decode(element[close + 1:end])


def synthesize(tag: str, attrs: Mapping[str, str]) -> str:
    """Build a self-closing element from a mapping of attributes."""
    rendered = "".join(f' {k}="{encode(str(v))}"' for k, v in attrs.items())
    return f"<{tag}{rendered} />"
