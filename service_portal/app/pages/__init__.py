"""
Server-rendered pages: initial data loaders and HTML shells.
"""

from .server_api import PageData, ServerApi

__all__ = ["PageData", "ServerApi"]
