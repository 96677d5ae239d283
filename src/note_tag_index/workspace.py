"""タグワークスペース（オーケストレーター）.

1つのノートコーパスについて、TagIndex・QueryService・RenameEngine とファイルシステムを
所有し、init / rebuild / dispose のライフサイクルを提供します。

インデックスへの書き込み（フルビルド・ファイル単位の更新・rename の適用）は、
ワーカー1本の executor（順序付きキュー）にすべて投入して直列化します。
読み取り（QueryService）は呼び出し元のスレッドでそのまま実行でき、ビルド中も応答します。
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from types import TracebackType

from loguru import logger

from note_tag_index.adapters.base_adapter import BaseFileSystem
from note_tag_index.adapters.local_adapter import LocalFileSystem
from note_tag_index.config import IndexConfig
from note_tag_index.core.exceptions import FileReadError, PartialApplyFailureError
from note_tag_index.core.extractor import ExtractionPolicy, TagExtractor
from note_tag_index.core.index import (
    BuildReport,
    CancellationToken,
    ProgressCallback,
    SourceFile,
    TagIndex,
)
from note_tag_index.core.models import Position, Tag
from note_tag_index.core.query import QueryService
from note_tag_index.core.rename import RenameEngine, RenamePlan, RenameResult, restore_snapshot


class TagWorkspace:
    """コーパス単位で所有されるタグインデックス.

    Args:
        file_system: ファイルの列挙・読み書きを行うアダプタ
        root: file_system.list_files に渡すルート
        policy: 抽出ポリシー
    """

    def __init__(
        self,
        file_system: BaseFileSystem,
        root: str,
        policy: ExtractionPolicy | None = None,
    ) -> None:
        self.file_system = file_system
        self.root = root
        self.index = TagIndex(TagExtractor(policy))
        self.queries = QueryService(self.index)
        self.renamer = RenameEngine(self.index)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tag-index")
        self._disposed = False

    @classmethod
    def from_config(cls, config: IndexConfig) -> TagWorkspace:
        """設定からローカルディスク用のワークスペースを作成する."""
        file_system = LocalFileSystem(
            extensions=config.extensions,
            exclude=config.exclude,
            encoding=config.encoding,
        )
        return cls(file_system, Path(config.root).as_posix(), config.extraction_policy)

    def __enter__(self) -> TagWorkspace:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # ライフサイクル
    # ------------------------------------------------------------------
    def start(self, progress: ProgressCallback | None = None) -> BuildReport:
        """初回ビルドを実行し、完了まで待つ."""
        return self.rebuild(progress=progress).result()

    def rebuild(
        self,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> Future[BuildReport]:
        """フルビルドをキューに投入する.

        呼び出し元はすぐに戻り、結果は Future で受け取ります。
        cancel を指定すると、未走査のファイルを残してビルドを打ち切れます。
        """
        self._ensure_alive()
        return self._executor.submit(self._build, progress, cancel)

    def _build(self, progress: ProgressCallback | None, cancel: CancellationToken | None) -> BuildReport:
        uris = self.file_system.list_files(self.root)
        files = [SourceFile(uri=uri, read_content=partial(self.file_system.read_file, uri)) for uri in uris]
        return self.index.build_full(files, progress=progress, cancel=cancel)

    def dispose(self) -> None:
        """キューを停止し、インデックスを破棄する（複数回呼んでもよい）."""
        if self._disposed:
            return
        self._disposed = True
        self._executor.shutdown(wait=True, cancel_futures=True)
        self.index.clear()
        logger.debug(f"Disposed tag workspace for {self.root}")

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise RuntimeError("Tag workspace has been disposed")

    # ------------------------------------------------------------------
    # 増分更新
    # ------------------------------------------------------------------
    def refresh_file(self, uri: str) -> Future[list[Tag]]:
        """ファイルを読み直してインデックスを更新する（保存・作成イベント向け）."""
        self._ensure_alive()
        return self._executor.submit(lambda: self.index.update_for_file(uri, self.file_system.read_file(uri)))

    def update_content(self, uri: str, content: str) -> Future[list[Tag]]:
        """未保存バッファなど、与えた内容でインデックスを更新する."""
        self._ensure_alive()
        return self._executor.submit(self.index.update_for_file, uri, content)

    def forget_file(self, uri: str) -> Future[None]:
        """削除されたファイルをインデックスから取り除く."""
        self._ensure_alive()
        return self._executor.submit(self.index.remove_file, uri)

    # ------------------------------------------------------------------
    # rename / merge
    # ------------------------------------------------------------------
    def plan_rename(self, source_label: str, target_label: str, include_descendants: bool = False) -> RenamePlan:
        """rename 計画を算出する（ファイルには触れない）."""
        return self.renamer.compute_plan(source_label, target_label, include_descendants)

    def apply_plan(self, plan: RenamePlan, confirm_merge: bool = False) -> RenameResult:
        """計画を適用し、変更したファイルを再インデックスする.

        適用はキュー上で実行されるため、他の書き込みと混ざりません。
        部分適用で失敗した場合も、変更済みのファイルは再インデックスしてから例外を送出します。

        Raises:
            MergeConflictError: マージの確認がない場合
            PartialApplyFailureError: 途中で失敗した場合
        """
        self._ensure_alive()
        return self._executor.submit(self._apply, plan, confirm_merge).result()

    def _apply(self, plan: RenamePlan, confirm_merge: bool) -> RenameResult:
        try:
            result = self.renamer.apply(plan, self.file_system, confirm_merge=confirm_merge)
        except PartialApplyFailureError as e:
            self._reindex(e.applied_uris)
            raise
        self._reindex(result.changed_files)
        return result

    def restore(self, error: PartialApplyFailureError) -> list[str]:
        """部分適用されたファイルを適用前の内容に戻し、再インデックスする.

        書き戻しはキュー上で実行されるため、他の書き込みと混ざりません。

        Returns:
            復元したファイルの uri
        """
        self._ensure_alive()
        return self._executor.submit(self._restore, error).result()

    def _restore(self, error: PartialApplyFailureError) -> list[str]:
        restored = restore_snapshot(self.file_system, error)
        self._reindex(restored)
        return restored

    def _reindex(self, uris: list[str]) -> None:
        for uri in uris:
            try:
                content = self.file_system.read_file(uri)
            except (FileReadError, OSError) as e:
                logger.warning(f"Could not re-index {uri} after writing it: {e}")
                continue
            self.index.update_for_file(uri, content)

    def rename(
        self,
        source_label: str,
        target_label: str,
        include_descendants: bool = False,
        confirm_merge: bool = False,
    ) -> RenameResult:
        """計画と適用をまとめて行う."""
        plan = self.plan_rename(source_label, target_label, include_descendants)
        return self.apply_plan(plan, confirm_merge=confirm_merge)

    def rename_at(
        self,
        uri: str,
        position: Position,
        target_label: str,
        include_descendants: bool = False,
        confirm_merge: bool = False,
    ) -> RenameResult:
        """カーソル位置のタグを rename する.

        Raises:
            NoTagAtCursorError: position にタグが無い場合
        """
        hit = self.queries.require_tag_at_position(uri, position)
        return self.rename(hit.label, target_label, include_descendants, confirm_merge)
