"""
Connectors package: transports that carry one API request at a time.
"""

from .http import HttpConnector
from .scripted_connector import ScriptedConnector

__all__ = [
    "HttpConnector",
    "ScriptedConnector",
]
