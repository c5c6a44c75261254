"""
Local registry for sharing containers created by imports.

Persists a JSON catalogue under the workspace directory. Name uniqueness is
checked with a case-insensitive lookup before insert; that check is not held
across the whole import, so two concurrent imports of the same repository can
both pick the base name.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import secrets
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..logger import get_logger
from ..settings import settings

log = get_logger(__name__)

_PBKDF2_ITERATIONS = 120_000


@dataclass
class UploadedFile:
    """Stored file belonging to a container."""

    storage_key: str
    original_name: str
    mime_type: str
    size_bytes: int
    relative_path: str
    content_url: str
    resource_type: str = "raw"


@dataclass
class Container:
    name: str
    password_hash: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    files: List[UploadedFile] = field(default_factory=list)
    read_only: bool = False
    max_views: int = 0
    current_views: int = 0
    source: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    last_accessed: float = field(default_factory=time.time)

    def summary(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "fileCount": len(self.files),
            "maxViews": self.max_views,
            "currentViews": self.current_views,
            "readOnly": self.read_only,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, object]) -> "Container":
        data = dict(payload)
        data["files"] = [UploadedFile(**item) for item in data.get("files", [])]  # type: ignore[arg-type]
        return cls(**data)  # type: ignore[arg-type]


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ITERATIONS
    )
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        _, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


class ContainerRegistry:
    """JSON-backed container store."""

    def __init__(self, registry_path: Optional[Path] = None) -> None:
        self.registry_path = registry_path or (
            settings.workspace_root / "containers.json"
        )
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        self._records: Dict[str, Container] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if self.registry_path.exists():
            try:
                data = json.loads(self.registry_path.read_text())
                for container_id, payload in data.items():
                    self._records[container_id] = Container.from_dict(payload)
                log.info("registry_loaded", count=len(self._records))
            except Exception:  # pragma: no cover - defensive for corrupt files
                log.warning("registry_load_failed", path=str(self.registry_path))

    def _persist(self) -> None:
        data = {cid: asdict(record) for cid, record in self._records.items()}
        self.registry_path.write_text(json.dumps(data, indent=2))
        log.debug("registry_persisted", count=len(self._records))

    def save(self, container: Container) -> None:
        with self._lock:
            self._records[container.id] = container
            self._persist()
        log.info("container_saved", id=container.id, name=container.name, files=len(container.files))

    def get(self, container_id: str) -> Optional[Container]:
        with self._lock:
            return self._records.get(container_id)

    def touch(self, container_id: str) -> Optional[Container]:
        """Stamp ``last_accessed`` on a container and persist it."""
        with self._lock:
            record = self._records.get(container_id)
            if record is None:
                return None
            record.last_accessed = time.time()
            self._persist()
            return record

    def find_by_name(self, name: str) -> Optional[Container]:
        wanted = name.casefold()
        with self._lock:
            for record in self._records.values():
                if record.name.casefold() == wanted:
                    return record
        return None

    def name_exists(self, name: str) -> bool:
        return self.find_by_name(name) is not None

    def list(self) -> Iterable[Container]:
        with self._lock:
            return list(self._records.values())

    def list_recent(self, limit: int = 50) -> List[Container]:
        return sorted(self.list(), key=lambda c: c.created_at, reverse=True)[:limit]
