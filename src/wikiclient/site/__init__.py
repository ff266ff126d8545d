"""
Per-session site metadata.
"""

from .metadata import SiteMetadataCache, parse_siteinfo

__all__ = [
    "SiteMetadataCache",
    "parse_siteinfo",
]
