from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_MAX_EVIDENCE_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - EVIDENCE_BACKEND: 'memory' (default) or 'filesystem'
    - EVIDENCE_DIR: directory for uploaded evidence files. Default './data/evidence'
    - MAX_EVIDENCE_BYTES: largest accepted evidence upload in bytes. Default 10 MiB
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level name (default: INFO)
    - LOG_FILE: optional path of a log file written in addition to stderr
    """

    persistence_backend: str
    sqlite_db_path: str
    evidence_backend: str
    evidence_dir: str
    max_evidence_bytes: int
    cors_allow_origins: List[str]
    log_level: str
    log_file: Optional[str]


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    evidence_backend = _get_env("EVIDENCE_BACKEND", "memory").strip().lower()
    if evidence_backend not in {"memory", "filesystem"}:
        evidence_backend = "memory"

    log_file = os.getenv("LOG_FILE") or None

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/tasks.db").strip(),
        evidence_backend=evidence_backend,
        evidence_dir=_get_env("EVIDENCE_DIR", "./data/evidence").strip(),
        max_evidence_bytes=_parse_int(
            _get_env("MAX_EVIDENCE_BYTES", str(DEFAULT_MAX_EVIDENCE_BYTES)),
            DEFAULT_MAX_EVIDENCE_BYTES,
        ),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_file=log_file.strip() if log_file else None,
    )
