"""
Process-wide collaborators for the HTTP layer.

Each getter builds its object once from the environment settings and is used
as a FastAPI dependency, so tests can swap any of them through
`app.dependency_overrides`.
"""
from __future__ import annotations

from datetime import datetime
from functools import lru_cache

from .evidence import EvidenceStore, build_evidence_store
from .lifecycle import TaskLifecycleManager
from .projection import BoardProjection
from .repositories import TaskRepository, build_repository
from .settings import Settings, get_settings


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def get_repository() -> TaskRepository:
    return build_repository(get_app_settings())


@lru_cache(maxsize=1)
def get_evidence_store() -> EvidenceStore:
    return build_evidence_store(get_app_settings())


@lru_cache(maxsize=1)
def get_lifecycle_manager() -> TaskLifecycleManager:
    return TaskLifecycleManager(
        get_repository(),
        get_evidence_store(),
        max_evidence_bytes=get_app_settings().max_evidence_bytes,
    )


@lru_cache(maxsize=1)
def get_board_projection() -> BoardProjection:
    return BoardProjection(get_repository())


def get_now() -> datetime:
    """Current local time used for deadline classification."""
    return datetime.now()
