"""
Client-side cache and query engine for the foojay disco JDK catalog.
"""

from discocache.services.disco_client import DiscoClient

__all__ = ["DiscoClient"]
