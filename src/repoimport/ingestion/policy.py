"""
Admission rules applied to every archive member before it is uploaded.

All functions here are pure. ``evaluate`` runs the checks in a fixed order and
the first failing check decides the outcome.
"""
from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

MAX_SINGLE_FILE_BYTES = 10 * 1024 * 1024
MAX_FILE_COUNT = 500

BLOCKED_EXTENSIONS: FrozenSet[str] = frozenset(
    {
        ".exe",
        ".bat",
        ".cmd",
        ".sh",
        ".msi",
        ".dll",
        ".so",
        ".bin",
        ".com",
        ".scr",
        ".pif",
        ".vbs",
        ".wsf",
        ".ps1",
    }
)

_DRIVE_RE = re.compile(r"^[A-Za-z]:")

_MIME_TYPES: Dict[str, str] = {
    ".js": "text/javascript",
    ".jsx": "text/javascript",
    ".ts": "application/typescript",
    ".tsx": "application/typescript",
    ".json": "application/json",
    ".html": "text/html",
    ".css": "text/css",
    ".scss": "text/css",
    ".md": "text/markdown",
    ".txt": "text/plain",
    ".xml": "application/xml",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".toml": "text/plain",
    ".lock": "text/plain",
    ".py": "text/x-python",
    ".rb": "text/x-ruby",
    ".go": "text/x-go",
    ".rs": "text/x-rust",
    ".java": "text/x-java",
    ".c": "text/x-c",
    ".cpp": "text/x-c",
    ".h": "text/x-c",
    ".sh": "text/x-shellscript",
    ".env": "text/plain",
    ".gitignore": "text/plain",
}


class AdmissionReason(str, Enum):
    OK = "ok"
    PATH_TRAVERSAL = "path_traversal"
    BLOCKED_EXTENSION = "blocked_extension"
    TOO_LARGE = "too_large"
    COUNT_LIMIT_REACHED = "count_limit_reached"
    EMPTY = "empty"


@dataclass(frozen=True)
class AdmissionDecision:
    admit: bool
    reason: AdmissionReason
    normalized_path: Optional[str] = None


def _extension(path: str) -> str:
    # A bare dotfile such as ".gitignore" has no extension.
    return posixpath.splitext(posixpath.basename(path))[1].lower()


def sanitize_path(path: str) -> Optional[str]:
    """Normalize separators; return None for absolute or traversing paths."""
    normalized = path.replace("\\", "/")
    if normalized.startswith("/") or _DRIVE_RE.match(normalized):
        return None
    if any(segment == ".." for segment in normalized.split("/")):
        return None
    return normalized


def is_blocked_extension(path: str) -> bool:
    return _extension(path) in BLOCKED_EXTENSIONS


def guess_mime_type(path: str) -> str:
    name = posixpath.basename(path).lower()
    return _MIME_TYPES.get(_extension(name) or name, "application/octet-stream")


def evaluate(
    path: str,
    size_bytes: int,
    admitted_count: int,
    max_file_bytes: int = MAX_SINGLE_FILE_BYTES,
    max_file_count: int = MAX_FILE_COUNT,
) -> AdmissionDecision:
    """Decide whether a single archive member may be imported."""
    normalized = sanitize_path(path)
    if normalized is None:
        return AdmissionDecision(False, AdmissionReason.PATH_TRAVERSAL)
    if is_blocked_extension(normalized):
        return AdmissionDecision(False, AdmissionReason.BLOCKED_EXTENSION, normalized)
    if size_bytes > max_file_bytes:
        return AdmissionDecision(False, AdmissionReason.TOO_LARGE, normalized)
    if admitted_count >= max_file_count:
        return AdmissionDecision(False, AdmissionReason.COUNT_LIMIT_REACHED, normalized)
    if size_bytes == 0:
        return AdmissionDecision(False, AdmissionReason.EMPTY, normalized)
    return AdmissionDecision(True, AdmissionReason.OK, normalized)
