"""
Configuration package for the wiki client.
"""

from .config_loader import WikiConfig

__all__ = ["WikiConfig"]
