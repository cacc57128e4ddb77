"""WordPress client and the adapters built on it."""

from rostersync.providers.wordpress.client import WordPressClient, parse_tool_result
from rostersync.providers.wordpress.image_provider import WordPressImageProvider
from rostersync.providers.wordpress.publisher import WordPressPublisher

__all__ = ["WordPressClient", "WordPressImageProvider", "WordPressPublisher", "parse_tool_result"]
