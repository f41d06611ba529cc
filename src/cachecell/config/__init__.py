"""Configuration: settings, backend enums and the client factory.

Quick start::

    from cachecell.config import get_settings, create_cache_client

    client = create_cache_client(get_settings())
"""

from .components import ClientBackend, LogFormat
from .factory import create_cache_client, parse_server
from .settings import CacheCellSettings, clear_settings_cache, get_settings

__all__ = [
    "ClientBackend",
    "LogFormat",
    "CacheCellSettings",
    "get_settings",
    "clear_settings_cache",
    "create_cache_client",
    "parse_server",
]
