"""Public interface definitions for all external collaborators.

Every external service in the sync pipeline is accessed exclusively through
the abstract base classes defined in this package.  Concrete adapters
implement these interfaces and are injected at runtime (adapter pattern),
so the orchestrator can be tested with mocks and providers can be swapped
without touching pipeline code.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    IUpstreamCatalogProvider   →  SpotifyCatalogProvider,
                                  SnapshotCatalogProvider
    IPublishedCatalogProvider  →  WordPressCatalogProvider
    IWebSearchProvider         →  BraveSearchProvider, DuckDuckGoSearchProvider
    ILLMProvider               →  AnthropicLLMProvider
    ISynthesisProvider         →  LLMResearchSynthesizer
    IContentGenerator          →  LLMContentGenerator
    IImageProvider             →  WordPressImageProvider
    IPublisher                 →  WordPressPublisher
    ICacheProvider             →  MemoryCacheProvider
"""

from rostersync.interfaces.cache_provider import ICacheProvider
from rostersync.interfaces.catalog_provider import IPublishedCatalogProvider, IUpstreamCatalogProvider
from rostersync.interfaces.content_generator import IContentGenerator
from rostersync.interfaces.image_provider import IImageProvider
from rostersync.interfaces.llm_provider import ILLMProvider
from rostersync.interfaces.publisher import IPublisher
from rostersync.interfaces.synthesis_provider import ISynthesisProvider
from rostersync.interfaces.web_search_provider import IWebSearchProvider, SearchResult

__all__ = [
    "ICacheProvider",
    "IContentGenerator",
    "IImageProvider",
    "ILLMProvider",
    "IPublishedCatalogProvider",
    "IPublisher",
    "ISynthesisProvider",
    "IUpstreamCatalogProvider",
    "IWebSearchProvider",
    "SearchResult",
]
