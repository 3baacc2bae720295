"""
Store factory.

Builds the configured graph store backend.
"""

from typing import Any, Dict

from loguru import logger

from .memory import InMemoryGraphStore
from .store import GraphStore
from .surreal import SurrealGraphStore


BACKENDS = ("surreal", "memory")


def create_store(backend: str, surreal_config: Dict[str, Any]) -> GraphStore:
    """
    Create a graph store.

    Args:
        backend: ``surreal`` or ``memory``.
        surreal_config: Connection settings for the SurrealDB backend.
    """
    if backend == "memory":
        logger.info("Using in-memory graph store (dry run)")
        return InMemoryGraphStore()
    if backend == "surreal":
        store = SurrealGraphStore(surreal_config)
        # Fail fast on an unreachable store
        store.connect()
        return store
    raise ValueError(f"Unknown store backend: {backend}. Expected one of {BACKENDS}")
