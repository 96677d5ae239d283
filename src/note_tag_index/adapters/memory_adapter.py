"""In-memory file system adapter.

Holds a corpus as a uri -> text mapping. Used for editor buffers and tests.
"""

from __future__ import annotations

from collections.abc import Mapping

from note_tag_index.core.exceptions import FileReadError

from .base_adapter import BaseFileSystem


class InMemoryFileSystem(BaseFileSystem):
    """File system backed by a dict.

    Args:
        files: Initial uri -> content mapping
    """

    def __init__(self, files: Mapping[str, str] | None = None) -> None:
        self._files: dict[str, str] = dict(files or {})

    @property
    def files(self) -> dict[str, str]:
        """Copy of the current contents."""
        return dict(self._files)

    def list_files(self, root: str) -> list[str]:
        prefix = root.rstrip("/")
        return sorted(uri for uri in self._files if not prefix or uri == prefix or uri.startswith(prefix + "/"))

    def read_file(self, uri: str) -> str:
        try:
            return self._files[uri]
        except KeyError:
            raise FileReadError(uri, "no such file") from None

    def write_file(self, uri: str, content: str) -> None:
        self._files[uri] = content

    def delete_file(self, uri: str) -> None:
        self._files.pop(uri, None)
