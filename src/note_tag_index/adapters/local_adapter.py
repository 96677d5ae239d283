"""ローカルディスク上のノートを扱うアダプタ.

uri はファイルの絶対パス（POSIX 表記）です。書き込みは同じディレクトリの一時ファイルに
書いてから置き換えるため、ファイル単位で原子的に反映されます。
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable
from fnmatch import fnmatch
from pathlib import Path

from loguru import logger

from note_tag_index.core.exceptions import FileReadError

from .base_adapter import BaseFileSystem

DEFAULT_EXTENSIONS = (".md", ".txt")
DEFAULT_EXCLUDE = ("**/.git/**", "**/node_modules/**")


class LocalFileSystem(BaseFileSystem):
    """ローカルファイルシステムアダプタ.

    Args:
        extensions: 対象とする拡張子
        exclude: 除外する glob パターン（root からの相対 POSIX パスに対して照合）
        encoding: 読み書きのエンコーディング
    """

    def __init__(
        self,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        exclude: Iterable[str] = DEFAULT_EXCLUDE,
        encoding: str = "utf-8",
    ) -> None:
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.exclude = tuple(exclude)
        self.encoding = encoding

    def list_files(self, root: str) -> list[str]:
        """root 配下の対象ファイルを再帰的に列挙する.

        Raises:
            FileNotFoundError: root が存在しない場合
        """
        root_path = Path(root).resolve()
        if not root_path.is_dir():
            raise FileNotFoundError(f"Notes directory not found: {root_path}")

        uris: list[str] = []
        for path in root_path.rglob("*"):
            if not path.is_file() or path.suffix.lower() not in self.extensions:
                continue
            relative = path.relative_to(root_path).as_posix()
            if self._is_excluded(relative):
                logger.debug(f"Excluded by pattern: {relative}")
                continue
            uris.append(path.as_posix())
        return sorted(uris)

    def _is_excluded(self, relative: str) -> bool:
        # "**/x/**" をルート直下の "x/..." にも一致させる
        candidates = (relative, f"./{relative}", f"/{relative}")
        return any(fnmatch(candidate, pattern) for pattern in self.exclude for candidate in candidates)

    def read_file(self, uri: str) -> str:
        try:
            with open(uri, encoding=self.encoding, newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise FileReadError(uri, str(e)) from e

    def write_file(self, uri: str, content: str) -> None:
        path = Path(uri)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding=self.encoding, newline="") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
