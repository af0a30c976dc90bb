"""
Vision Image Cache

Resolves image references to inline payloads for document generation,
with a per-run transient cache, a durable SQL cache, batch preloading and
proportional layout helpers.
"""

from .constants import APP_VERSION as __version__

__all__ = ["__version__"]
