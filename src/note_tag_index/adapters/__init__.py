"""ノートコーパス用のファイルシステムアダプタ群."""

from .base_adapter import BaseFileSystem
from .local_adapter import LocalFileSystem
from .memory_adapter import InMemoryFileSystem

__all__ = [
    "BaseFileSystem",
    "InMemoryFileSystem",
    "LocalFileSystem",
]
