"""Upstream provider factory with decorator-based registration."""

from pagecite.core.config import UpstreamConfig
from pagecite.core.exceptions import ConfigurationError


class UpstreamFactory:
    """Decorator-based auto-registration factory.

    To add a new provider:
    1. Create upstream/new_provider.py
    2. Apply @UpstreamFactory.register("new_name") decorator
    3. Set UPSTREAM_PROVIDER=new_name in .env
    """

    _registry: dict[str, type] = {}

    @classmethod
    def register(cls, name: str):
        """Decorator to register a provider class."""

        def decorator(provider_cls: type) -> type:
            cls._registry[name] = provider_cls
            return provider_cls

        return decorator

    @classmethod
    def create(cls, config: UpstreamConfig):
        """Create a provider instance from configuration."""
        provider_cls = cls._registry.get(config.provider)
        if provider_cls is None:
            available = ", ".join(cls._registry.keys()) or "none registered"
            raise ConfigurationError(
                f"Unknown upstream provider: '{config.provider}'. Available: {available}"
            )
        return provider_cls(config)

    @classmethod
    def available_providers(cls) -> list[str]:
        """List all registered providers."""
        return list(cls._registry.keys())
