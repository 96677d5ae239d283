"""Tag index exceptions.

カスタム例外クラスを定義します。

抽出時に文法へ合わない候補（ExtractionSkip）は例外にせず、黙って除外します。
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from .models import Position, Range


class TagIndexError(Exception):
    """このパッケージが送出する例外の基底クラス."""


class FileReadError(TagIndexError):
    """ファイル内容を取得できなかった.

    フルビルド中はファイル単位で捕捉・ログ出力され、ビルド全体は継続します。

    Attributes:
        uri: 読み込めなかったファイル
        reason: 失敗理由
    """

    def __init__(self, uri: str, reason: str) -> None:
        self.uri = uri
        self.reason = reason
        super().__init__(f"Failed to read {uri}: {reason}")


class InvalidLabelError(TagIndexError):
    """ラベルが不正（ファイルに触れる前に拒否する）.

    Attributes:
        label: 不正と判定されたラベル
        reason: 拒否理由
    """

    def __init__(self, label: str, reason: str) -> None:
        self.label = label
        self.reason = reason
        super().__init__(f"Invalid label '{label}': {reason}")


class NoTagAtCursorError(TagIndexError):
    """指定位置にタグが存在しない."""

    def __init__(self, uri: str, position: Position) -> None:
        self.uri = uri
        self.position = position
        super().__init__(
            f"No tag found at cursor position: {uri} (line={position.line}, character={position.character})"
        )


class MergeConflictError(TagIndexError):
    """rename 先のラベルが既に独立した出現を持つ（マージになる）.

    ハードエラーではなく、呼び出し側の明示的な確認を求めるための例外です。

    Attributes:
        merges: (統合される側のラベル, 統合先ラベル) の組
    """

    def __init__(self, merges: Sequence[tuple[str, str]]) -> None:
        self.merges = tuple(merges)
        pairs = ", ".join(f"#{old} -> #{new}" for old, new in self.merges)
        super().__init__(
            f"Rename would merge {len(self.merges)} label(s) into existing labels: {pairs}. "
            "Confirm the merge explicitly to continue."
        )


class StaleEditError(TagIndexError):
    """編集範囲のテキストが計画時の想定と一致しない（インデックスが古い）."""

    def __init__(self, uri: str, range: Range, expected: str, found: str) -> None:
        self.uri = uri
        self.range = range
        self.expected = expected
        self.found = found
        super().__init__(
            f"Stale edit in {uri} at line {range.start.line}, character {range.start.character}: "
            f"expected {expected!r}, found {found!r}"
        )


class FileApplyStatus(str, Enum):
    """トランザクション内の各ファイルの状態."""

    APPLIED = "applied"
    FAILED = "failed"
    NOT_ATTEMPTED = "not_attempted"


@dataclass(frozen=True, slots=True)
class FileApplyResult:
    """ファイル単位の適用結果."""

    uri: str
    status: FileApplyStatus
    error: str | None = None


class PartialApplyFailureError(TagIndexError):
    """複数ファイル編集の途中で失敗した.

    どのファイルが変更済みで、どのファイルが未変更かを必ず列挙します。
    snapshot には適用前の内容が入っているため、呼び出し側でロールバックできます
    （restore_snapshot を参照）。

    Attributes:
        results: 計画順のファイル単位結果
        snapshot: uri → 適用前の内容
    """

    def __init__(self, results: Sequence[FileApplyResult], snapshot: Mapping[str, str]) -> None:
        self.results = tuple(results)
        self.snapshot = dict(snapshot)
        lines = [f"  {r.status.value}: {r.uri}" + (f" ({r.error})" if r.error else "") for r in self.results]
        super().__init__(
            f"Rename partially applied: {len(self.applied_uris)} of {len(self.results)} file(s) changed.\n"
            + "\n".join(lines)
        )

    @property
    def applied_uris(self) -> list[str]:
        return [r.uri for r in self.results if r.status is FileApplyStatus.APPLIED]

    @property
    def failed_uris(self) -> list[str]:
        return [r.uri for r in self.results if r.status is FileApplyStatus.FAILED]

    @property
    def untouched_uris(self) -> list[str]:
        """変更されていないファイル（失敗・未試行）."""
        return [r.uri for r in self.results if r.status is not FileApplyStatus.APPLIED]
