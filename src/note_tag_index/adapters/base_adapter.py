"""ファイルシステム連携アダプタ（基底クラス）.

コア処理はストレージに直接触れず、このインターフェース経由でのみファイルを扱います。

- list_files(root): 対象ファイルの列挙
- read_file(uri): 内容の取得
- apply_edits(edits): 編集の適用（ファイル単位の成功/失敗を返す）
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from itertools import groupby

from loguru import logger

from note_tag_index.core.edits import TextEdit, apply_text_edits, order_edits
from note_tag_index.core.exceptions import (
    FileApplyResult,
    FileApplyStatus,
)


class BaseFileSystem(ABC):
    """ファイルシステムアダプタの基底クラス.

    サブクラスは list_files()/read_file()/write_file() を実装します。
    write_file() はファイル単位で原子的（書き込み途中の状態を残さない）であること。
    """

    @abstractmethod
    def list_files(self, root: str) -> list[str]:
        """root 配下の対象ファイルの uri を決定的な順序で返す."""
        ...

    @abstractmethod
    def read_file(self, uri: str) -> str:
        """ファイル内容を返す.

        Raises:
            FileReadError: 内容を取得できない場合
        """
        ...

    @abstractmethod
    def write_file(self, uri: str, content: str) -> None:
        """ファイル内容を置き換える（ロールバックでも使う）."""
        ...

    def apply_edits(self, edits: Sequence[TextEdit], stop_on_failure: bool = True) -> list[FileApplyResult]:
        """編集をファイル単位で順に適用する.

        ファイルごとに「読み込み → 全編集を適用 → 書き込み」を行うため、失敗したファイルは
        変更前の状態のまま残ります。stop_on_failure の場合、最初の失敗以降のファイルは
        NOT_ATTEMPTED として返します。アダプタが送出した例外はすべて FAILED として記録し、
        ループの外には送出しません。

        Args:
            edits: 適用する編集（複数ファイル可）
            stop_on_failure: 最初の失敗で以降のファイルを試行しない

        Returns:
            uri 昇順のファイル単位結果
        """
        results: list[FileApplyResult] = []
        failed = False
        for uri, file_edits in groupby(order_edits(edits), key=lambda e: e.uri):
            if failed and stop_on_failure:
                results.append(FileApplyResult(uri, FileApplyStatus.NOT_ATTEMPTED))
                continue
            try:
                original = self.read_file(uri)
                self.write_file(uri, apply_text_edits(original, list(file_edits)))
            except Exception as e:
                # 失敗はファイル単位の結果として呼び出し元に返す
                logger.warning(f"Failed to apply edits to {uri}: {type(e).__name__}: {e}")
                results.append(FileApplyResult(uri, FileApplyStatus.FAILED, str(e)))
                failed = True
            else:
                results.append(FileApplyResult(uri, FileApplyStatus.APPLIED))
        return results
