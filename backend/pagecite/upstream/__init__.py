"""Upstream completion + retrieval providers and factory."""

# Import providers first to trigger registration via decorators
from pagecite.upstream import openai_provider
from pagecite.upstream.factory import UpstreamFactory

__all__ = ["UpstreamFactory", "openai_provider"]
