"""タグの転置インデックス（label → Location[Tag] のリスト）.

- フルビルド（マップ全体を新規作成して一括で差し替え）
- ファイル単位の増分更新（そのファイルの寄与だけを丸ごと再導出して差し替え）
- 読み取り系クエリ（未知のラベルでも例外を出さない）

書き込みは内部ロックで直列化し、結果はスナップショットの参照差し替えで反映します。
読み取り側はロックを取らず、常に「更新前」か「更新後」のどちらかの状態だけを観測します。
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from loguru import logger

from .exceptions import FileReadError
from .extractor import TagExtractor
from .models import Location, Position, Tag, sort_key


@dataclass(frozen=True, slots=True)
class SourceFile:
    """ビルド対象ファイル（内容は遅延取得）."""

    uri: str
    read_content: Callable[[], str]


@dataclass(frozen=True, slots=True)
class BuildProgress:
    """フルビルドの進捗."""

    scanned: int
    total: int
    uri: str


@dataclass(slots=True)
class BuildReport:
    """フルビルドの結果サマリ."""

    scanned: int = 0
    total: int = 0
    failed: list[str] = field(default_factory=list)
    cancelled: bool = False
    label_count: int = 0
    elapsed_seconds: float = 0.0


class CancellationToken:
    """フルビルドの中断要求."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


ProgressCallback = Callable[[BuildProgress], None]


@dataclass(frozen=True, slots=True)
class _Snapshot:
    # 書き込み後は変更しない。差し替えは TagIndex._snapshot の参照代入のみ
    by_label: Mapping[str, tuple[Location[Tag], ...]]
    by_file: Mapping[str, tuple[Location[Tag], ...]]


_EMPTY = _Snapshot(by_label={}, by_file={})


def _snapshot_from_files(by_file: Mapping[str, list[Location[Tag]]]) -> _Snapshot:
    by_label: dict[str, list[Location[Tag]]] = {}
    for uri in sorted(by_file):
        for location in by_file[uri]:
            by_label.setdefault(location.data.label, []).append(location)
    return _Snapshot(
        by_label={label: tuple(sorted(locs, key=sort_key)) for label, locs in by_label.items()},
        by_file={uri: tuple(locs) for uri, locs in by_file.items()},
    )


class TagIndex:
    """ラベル → 出現位置のインデックス.

    モジュールレベルのシングルトンにはせず、コーパスごとにインスタンスを所有します。
    """

    def __init__(self, extractor: TagExtractor | None = None) -> None:
        self._extractor = extractor or TagExtractor()
        self._snapshot: _Snapshot = _EMPTY
        self._write_lock = threading.RLock()

    @property
    def extractor(self) -> TagExtractor:
        return self._extractor

    # ------------------------------------------------------------------
    # 書き込み
    # ------------------------------------------------------------------
    def build_full(
        self,
        files: Iterable[SourceFile],
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> BuildReport:
        """全ファイルを走査してインデックスを作り直す.

        読み込みに失敗したファイルはスキップしてログに残し、ビルドは継続します。
        中断された場合は、走査済みのファイルだけをファイル単位で差し替え、
        未走査のファイルは以前の状態のまま残します。

        Args:
            files: 対象ファイル
            progress: ファイルごとに呼ばれる進捗コールバック
            cancel: 中断トークン

        Returns:
            ビルド結果のサマリ
        """
        started = time.perf_counter()
        sources = list(files)
        report = BuildReport(total=len(sources))
        logger.info(f"Building tag index from {len(sources)} file(s)")

        with self._write_lock:
            scanned: dict[str, list[Location[Tag]]] = {}
            for source in sources:
                if cancel is not None and cancel.is_cancelled:
                    report.cancelled = True
                    break
                try:
                    content = source.read_content()
                except (FileReadError, OSError, UnicodeDecodeError) as e:
                    logger.warning(f"Skipping unreadable file {source.uri}: {e}")
                    report.failed.append(source.uri)
                else:
                    scanned[source.uri] = self._locations_for(source.uri, content)
                report.scanned += 1
                if progress is not None:
                    progress(BuildProgress(scanned=report.scanned, total=report.total, uri=source.uri))

            if report.cancelled:
                logger.warning(
                    f"Tag index build cancelled after {report.scanned}/{report.total} file(s); "
                    "keeping previous entries for unscanned files"
                )
                for uri, locations in scanned.items():
                    self._replace_file(uri, locations)
            else:
                self._snapshot = _snapshot_from_files(scanned)

        report.label_count = len(self._snapshot.by_label)
        report.elapsed_seconds = time.perf_counter() - started
        logger.info(
            f"Tag index ready: {report.label_count} label(s) from {report.scanned} file(s) "
            f"({len(report.failed)} failed) in {report.elapsed_seconds:.2f}s"
        )
        return report

    def update_for_file(self, uri: str, content: str) -> list[Tag]:
        """1ファイル分の寄与を再導出して差し替える.

        既存のこのファイルの出現位置は全ラベルから取り除かれ、content から抽出した
        結果だけが残ります（部分的なパッチは行わない）。

        Returns:
            新たに抽出されたタグ
        """
        locations = self._locations_for(uri, content)
        with self._write_lock:
            self._replace_file(uri, locations)
        logger.debug(f"Re-indexed {uri}: {len(locations)} tag occurrence(s)")
        return [location.data for location in locations]

    def remove_file(self, uri: str) -> None:
        """削除されたファイルの寄与を取り除く."""
        with self._write_lock:
            self._replace_file(uri, None)
        logger.debug(f"Removed {uri} from tag index")

    def clear(self) -> None:
        with self._write_lock:
            self._snapshot = _EMPTY

    def _locations_for(self, uri: str, content: str) -> list[Location[Tag]]:
        return [Location(uri=uri, range=tag.range, data=tag) for tag in self._extractor.extract(content, uri)]

    def _replace_file(self, uri: str, locations: list[Location[Tag]] | None) -> None:
        old = self._snapshot
        previous = old.by_file.get(uri, ())

        by_file = dict(old.by_file)
        if locations is None:
            by_file.pop(uri, None)
            locations = []
        else:
            by_file[uri] = tuple(locations)

        incoming: dict[str, list[Location[Tag]]] = {}
        for location in locations:
            incoming.setdefault(location.data.label, []).append(location)

        by_label = dict(old.by_label)
        for label in {location.data.label for location in previous} | set(incoming):
            kept = [loc for loc in old.by_label.get(label, ()) if loc.uri != uri]
            merged = sorted(kept + incoming.get(label, []), key=sort_key)
            if merged:
                by_label[label] = tuple(merged)
            else:
                by_label.pop(label, None)

        self._snapshot = _Snapshot(by_label=by_label, by_file=by_file)

    # ------------------------------------------------------------------
    # 読み取り
    # ------------------------------------------------------------------
    def get_locations_for_label(self, label: str) -> list[Location[Tag]]:
        """ラベル完全一致の出現位置（未知のラベルは空リスト）."""
        return list(self._snapshot.by_label.get(label, ()))

    def get_locations_for_label_in_file(self, label: str, uri: str) -> list[Location[Tag]]:
        return [location for location in self._snapshot.by_label.get(label, ()) if location.uri == uri]

    def get_all_labels(self) -> list[str]:
        return sorted(self._snapshot.by_label)

    def get_reference_count(self, label: str) -> int:
        return len(self._snapshot.by_label.get(label, ()))

    def get_file_count(self, label: str) -> int:
        return len({location.uri for location in self._snapshot.by_label.get(label, ())})

    def find_tag_at_position(self, uri: str, position: Position) -> tuple[str, Location[Tag]] | None:
        """uri 内で position を含むタグを返す（無ければ None）."""
        for location in self._snapshot.by_file.get(uri, ()):
            if location.range.contains(position):
                return location.data.label, location
        return None

    def get_locations_for_file(self, uri: str) -> list[Location[Tag]]:
        return list(self._snapshot.by_file.get(uri, ()))

    def get_labels_for_file(self, uri: str) -> list[str]:
        return sorted({location.data.label for location in self._snapshot.by_file.get(uri, ())})

    def get_files_with_all_labels(self, labels: Iterable[str]) -> list[str]:
        """指定した全ラベルを含むファイル（AND 条件）."""
        snapshot = self._snapshot
        wanted = list(labels)
        if not wanted:
            return []
        result: set[str] | None = None
        for label in wanted:
            uris = {location.uri for location in snapshot.by_label.get(label, ())}
            result = uris if result is None else result & uris
        return sorted(result or ())

    def has_label(self, label: str) -> bool:
        return label in self._snapshot.by_label

    def label_count(self) -> int:
        return len(self._snapshot.by_label)

    def indexed_files(self) -> list[str]:
        """走査済みのファイル（タグを持たないファイルも含む）."""
        return sorted(self._snapshot.by_file)
