"""
Core abstractions shared across the wiki client.
"""

from .models import (
    AssertionMode, ErrorKind, Event, Revision, LogEntry, Record, SiteInfo
)
from .connector import Connector, ConnectorRequest, ConnectorResponse
from .session import Session

__all__ = [
    "AssertionMode",
    "ErrorKind",
    "Event",
    "Revision",
    "LogEntry",
    "Record",
    "SiteInfo",
    "Connector",
    "ConnectorRequest",
    "ConnectorResponse",
    "Session",
]
