"""
Response parsing: substring scanning and record construction.
"""

from .scanner import (
    attributes, decode, element_text, encode, has_attribute,
    scan_attribute, scan_elements, section, synthesize,
)
from .records import format_timestamp, parse_log_entry, parse_revision, parse_timestamp

__all__ = [
    "attributes",
    "decode",
    "element_text",
    "encode",
    "has_attribute",
    "scan_attribute",
    "scan_elements",
    "section",
    "synthesize",
    "format_timestamp",
    "parse_log_entry",
    "parse_revision",
    "parse_timestamp",
]
