from __future__ import annotations

import hashlib
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Dict, Optional

from .errors import NotFoundError, StoreUnavailableError
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def content_reference(content: bytes, name: str) -> str:
    """
    Content-addressed reference for an evidence file: '<sha256>/<safe file name>'.
    Identical uploads under the same name map to the same reference.
    """
    digest = hashlib.sha256(content).hexdigest()
    safe_name = _UNSAFE_NAME_CHARS.sub("_", Path(name).name).strip("._") or "evidence"
    return f"{digest}/{safe_name}"


# PUBLIC_INTERFACE
class EvidenceStore(ABC):
    """Abstract blob store for uploaded evidence files. Link evidence never reaches it."""

    @abstractmethod
    def store(self, content: bytes, name: str, mime_type: str) -> str:
        """Persist file content and return a stable reference to retrieve it later."""

    @abstractmethod
    def open(self, reference: str) -> bytes:
        """Return the content behind a reference; NotFoundError if unknown."""


class InMemoryEvidenceStore(EvidenceStore):
    """
    Thread-safe in-memory evidence store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._blobs: Dict[str, bytes] = {}

    def store(self, content: bytes, name: str, mime_type: str) -> str:
        reference = content_reference(content, name)
        with self._lock:
            self._blobs[reference] = bytes(content)
        logger.info("Stored evidence %s (%s, %d bytes)", reference, mime_type, len(content))
        return reference

    def open(self, reference: str) -> bytes:
        with self._lock:
            content = self._blobs.get(reference)
        if content is None:
            raise NotFoundError(reference, what="Evidence")
        return content


class FileSystemEvidenceStore(EvidenceStore):
    """
    Evidence store writing each file to '<root>/<sha256>/<safe name>'.
    OS errors are raised as StoreUnavailableError.
    """

    def __init__(self, root: str) -> None:
        self._root = Path(root)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Evidence store unavailable: {e}") from e

    def _path_for(self, reference: str) -> Optional[Path]:
        parts = reference.split("/")
        if len(parts) != 2 or any(p in {"", ".", ".."} for p in parts):
            return None
        return self._root / parts[0] / parts[1]

    def store(self, content: bytes, name: str, mime_type: str) -> str:
        reference = content_reference(content, name)
        path = self._path_for(reference)
        assert path is not None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                tmp = path.with_suffix(path.suffix + ".part")
                tmp.write_bytes(content)
                tmp.replace(path)
        except OSError as e:
            logger.error("Failed to store evidence %s: %s", reference, e)
            raise StoreUnavailableError(f"Evidence store unavailable: {e}") from e
        logger.info("Stored evidence %s (%s, %d bytes)", reference, mime_type, len(content))
        return reference

    def open(self, reference: str) -> bytes:
        path = self._path_for(reference)
        if path is None or not path.is_file():
            raise NotFoundError(reference, what="Evidence")
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("Failed to read evidence %s: %s", reference, e)
            raise StoreUnavailableError(f"Evidence store unavailable: {e}") from e


# PUBLIC_INTERFACE
def build_evidence_store(settings: Optional[Settings] = None) -> EvidenceStore:
    """
    Factory to return the configured evidence store based on settings.
    - memory: InMemoryEvidenceStore
    - filesystem: FileSystemEvidenceStore rooted at EVIDENCE_DIR
    """
    settings = settings or get_settings()
    if settings.evidence_backend == "filesystem":
        logger.info("Using filesystem evidence store at %s", settings.evidence_dir)
        return FileSystemEvidenceStore(settings.evidence_dir)
    logger.info("Using in-memory evidence store")
    return InMemoryEvidenceStore()
