"""Dependency Injector based DI Container."""

from dependency_injector import containers, providers

from pagecite.core.config import get_config

# --- Factory Functions (defined before class to avoid NameError) ---


def _create_upstream(config):
    """Create upstream provider from the registry."""
    from pagecite.upstream import UpstreamFactory

    return UpstreamFactory.create(config)


def _create_rate_limiter(config):
    """Create the process-wide rate limiter."""
    from pagecite.core.rate_limiter import RateLimiter

    return RateLimiter.from_config(config)


def _create_content_filter(config):
    """Create content filter primed with the upstream instructions."""
    from pagecite.core.content_filter import ContentFilter
    from pagecite.upstream.prompts import SYSTEM_INSTRUCTIONS

    return ContentFilter(
        max_input_length=config.max_input_length,
        block_offtopic=config.block_offtopic,
        instructions=SYSTEM_INSTRUCTIONS,
    )


def _create_extractor():
    """Create citation extractor."""
    from pagecite.citations.extractor import CitationExtractor

    return CitationExtractor()


def _create_catalog(config):
    """Create corpus catalog seeded from configuration."""
    from pagecite.corpus.catalog import CorpusCatalog

    return CorpusCatalog(documents=config.documents, default_document=config.default_document)


def _create_indexer(config):
    """Create corpus indexer (OpenAI vector store)."""
    from pagecite.corpus.indexer import OpenAICorpusIndexer

    return OpenAICorpusIndexer(config)


def _create_corpus_service(indexer, catalog):
    """Create corpus ingestion service."""
    from pagecite.corpus.service import CorpusService

    return CorpusService(indexer=indexer, catalog=catalog)


def _create_coordinator(config, upstream, rate_limiter, content_filter, extractor, catalog):
    """Create a stream coordinator for one request."""
    from pagecite.streaming.coordinator import StreamCoordinator

    return StreamCoordinator(
        upstream=upstream,
        rate_limiter=rate_limiter,
        content_filter=content_filter,
        extractor=extractor,
        catalog=catalog,
        index_ref=config.upstream.vector_store_id,
        max_results=config.upstream.max_results,
        frame_buffer_size=config.stream.frame_buffer_size,
    )


class DIContainer(containers.DeclarativeContainer):
    """Main dependency injection container."""

    # Configuration provider
    config = providers.Singleton(get_config)

    # Upstream completion + retrieval stream
    upstream = providers.Singleton(
        _create_upstream,
        config=config.provided.upstream,
    )

    # Rate limiter (one shared table per process)
    rate_limiter = providers.Singleton(
        _create_rate_limiter,
        config=config.provided.rate_limit,
    )

    # Content filter
    content_filter = providers.Singleton(
        _create_content_filter,
        config=config.provided.filter,
    )

    # Citation extractor
    extractor = providers.Singleton(_create_extractor)

    # Corpus catalog
    catalog = providers.Singleton(
        _create_catalog,
        config=config.provided.corpus,
    )

    # Corpus indexer
    indexer = providers.Singleton(
        _create_indexer,
        config=config.provided.upstream,
    )

    # Corpus ingestion
    corpus_service = providers.Singleton(
        _create_corpus_service,
        indexer=indexer,
        catalog=catalog,
    )

    # Stream coordinator - new per request
    coordinator = providers.Factory(
        _create_coordinator,
        config=config,
        upstream=upstream,
        rate_limiter=rate_limiter,
        content_filter=content_filter,
        extractor=extractor,
        catalog=catalog,
    )


# Global container instance
container = DIContainer()
