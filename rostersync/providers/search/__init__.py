"""Web-search provider implementations.

Brave (keyed, preferred) and DuckDuckGo (keyless fallback).  The web
search service tries them in that order.
"""

from rostersync.providers.search.brave_provider import BraveSearchProvider
from rostersync.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider

__all__ = ["BraveSearchProvider", "DuckDuckGoSearchProvider"]
