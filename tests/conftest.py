from __future__ import annotations

import os
from datetime import datetime
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backends for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("EVIDENCE_BACKEND", "memory")

from teambalance import dependencies  # noqa: E402
from teambalance.lifecycle import TaskLifecycleManager  # noqa: E402
from teambalance.main import app  # noqa: E402
from teambalance.projection import BoardProjection  # noqa: E402

from .fakes import FlakyEvidenceStore, FlakyTaskRepository  # noqa: E402

# Wednesday morning; deadlines in tests are relative to this instant.
FIXED_NOW = datetime(2024, 1, 10, 9, 0, 0)

MAX_EVIDENCE_BYTES = 1024


@pytest.fixture()
def repository() -> FlakyTaskRepository:
    return FlakyTaskRepository()


@pytest.fixture()
def evidence_store() -> FlakyEvidenceStore:
    return FlakyEvidenceStore()


@pytest.fixture()
def manager(repository: FlakyTaskRepository, evidence_store: FlakyEvidenceStore) -> Iterator[TaskLifecycleManager]:
    lifecycle = TaskLifecycleManager(repository, evidence_store, max_evidence_bytes=MAX_EVIDENCE_BYTES)
    yield lifecycle
    lifecycle.close()


@pytest.fixture()
def projection(repository: FlakyTaskRepository) -> Iterator[BoardProjection]:
    board = BoardProjection(repository)
    yield board
    board.close()


@pytest.fixture()
def client(manager: TaskLifecycleManager, projection: BoardProjection) -> Iterator[TestClient]:
    """
    TestClient wired to fresh in-memory stores and a fixed clock, so every test
    starts from an empty board.
    """
    app.dependency_overrides[dependencies.get_lifecycle_manager] = lambda: manager
    app.dependency_overrides[dependencies.get_board_projection] = lambda: projection
    app.dependency_overrides[dependencies.get_now] = lambda: FIXED_NOW
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
