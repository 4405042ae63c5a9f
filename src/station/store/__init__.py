"""Store factory.

Provides get_store() / set_store() to swap implementations:
- HttpStore against the batching API (default)
- test doubles via set_store()
"""

from station.config import get_settings
from station.store.http_adapter import HttpStore
from station.store.port import StorePort

_current_store: StorePort | None = None


def get_store() -> StorePort:
    """Return the current store. Defaults to HttpStore at ``STATION_API_URL``."""
    global _current_store
    if _current_store is None:
        settings = get_settings()
        if settings.store_adapter != "http":
            raise ValueError(f"Unknown store adapter: {settings.store_adapter}")
        _current_store = HttpStore(settings.api_url, timeout=settings.request_timeout_seconds)
    return _current_store


def set_store(store: StorePort) -> None:
    """Override the active store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_store() -> None:
    """Reset to the default store."""
    global _current_store
    _current_store = None
