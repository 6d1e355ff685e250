"""Factory pattern for creating time-ordered store instances."""

import logging

from app.adapters.store.base import AbstractTimeOrderedStore
from app.adapters.store.in_memory import InMemoryTimeOrderedStore
from app.adapters.store.redis_store import RedisTimeOrderedStore
from app.core.config import Settings, settings as default_settings
from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_store(cfg: Settings | None = None) -> AbstractTimeOrderedStore:
    """Instantiate the store selected by ``RATE_LIMIT_BACKEND``.

    Args:
        cfg: Settings to read; defaults to the global settings.

    Returns:
        AbstractTimeOrderedStore: Configured store. Redis connections are
            opened lazily on the first batch.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = cfg or default_settings
    backend = cfg.rate_limit.backend.lower()

    if backend == "redis":
        store: AbstractTimeOrderedStore = RedisTimeOrderedStore.from_settings(cfg.redis)
    elif backend == "memory":
        store = InMemoryTimeOrderedStore()
    else:
        raise ValidationAppError(
            code="unknown_store_backend",
            message=f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memory",
        )

    logger.info(
        "store.created",
        extra={"store": store.name, "atomic": store.atomic},
    )
    return store
