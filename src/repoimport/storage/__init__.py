"""
Persistence for imported content and the containers that own it.
"""

from .containers import Container, ContainerRegistry, UploadedFile
from .content_store import ContentStore, LocalContentStore, StoredObject

__all__ = [
    "Container",
    "ContainerRegistry",
    "ContentStore",
    "LocalContentStore",
    "StoredObject",
    "UploadedFile",
]
