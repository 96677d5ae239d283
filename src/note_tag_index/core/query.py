"""表示層向けの読み取り専用ファサード.

TagIndex と階層関数の上に、ツリー表示・ツールチップ等が必要とする問い合わせを提供します。
独自の状態は持たず、常に現在の TagIndex を反映します。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .exceptions import NoTagAtCursorError
from .hierarchy import children_of, descendants_of
from .index import TagIndex
from .models import Location, Position, Tag

SortOrder = Literal["frequency", "alphabetical"]


@dataclass(frozen=True, slots=True)
class LabelCount:
    """ラベルと出現数."""

    label: str
    reference_count: int
    file_count: int


@dataclass(frozen=True, slots=True)
class TagHit:
    """カーソル位置のタグ."""

    label: str
    location: Location[Tag]


class QueryService:
    """TagIndex の読み取り専用ビュー."""

    def __init__(self, index: TagIndex) -> None:
        self._index = index

    def tag_at_position(self, uri: str, position: Position) -> TagHit | None:
        found = self._index.find_tag_at_position(uri, position)
        if found is None:
            return None
        label, location = found
        return TagHit(label=label, location=location)

    def require_tag_at_position(self, uri: str, position: Position) -> TagHit:
        """tag_at_position と同じだが、見つからなければ例外にする.

        Raises:
            NoTagAtCursorError: position にタグが無い場合
        """
        hit = self.tag_at_position(uri, position)
        if hit is None:
            raise NoTagAtCursorError(uri, position)
        return hit

    def all_labels_with_counts(self, sort_order: SortOrder = "frequency") -> list[LabelCount]:
        """全ラベルを出現数付きで返す.

        frequency: 出現数の降順、同数ならラベル名の昇順
        alphabetical: ラベル名の昇順
        """
        counts = [
            LabelCount(
                label=label,
                reference_count=self._index.get_reference_count(label),
                file_count=self._index.get_file_count(label),
            )
            for label in self._index.get_all_labels()
        ]
        if sort_order == "frequency":
            counts.sort(key=lambda c: (-c.reference_count, c.label))
        elif sort_order == "alphabetical":
            counts.sort(key=lambda c: c.label)
        else:
            raise ValueError(f"Unknown sort order: {sort_order}")
        return counts

    def files_and_lines_for_label(self, label: str) -> dict[str, dict[int, list[Location[Tag]]]]:
        """ラベルの出現位置を uri → 行番号 の順にグループ化する.

        uri・行番号とも昇順で、同じ行の出現は文字位置順に並びます。
        """
        grouped: dict[str, dict[int, list[Location[Tag]]]] = {}
        for location in self._index.get_locations_for_label(label):
            lines = grouped.setdefault(location.uri, {})
            lines.setdefault(location.range.start.line, []).append(location)
        return grouped

    def children_with_counts(self, label: str) -> list[LabelCount]:
        """直下の子ラベルを出現数付きで返す（ラベル名の昇順）."""
        return [
            LabelCount(
                label=child,
                reference_count=self._index.get_reference_count(child),
                file_count=self._index.get_file_count(child),
            )
            for child in children_of(label, self._index.get_all_labels())
        ]

    def has_children(self, label: str) -> bool:
        return bool(children_of(label, self._index.get_all_labels()))

    def rollup_reference_count(self, label: str) -> int:
        """label 自身と全子孫の出現数の合計."""
        labels = [label, *descendants_of(label, self._index.get_all_labels())]
        return sum(self._index.get_reference_count(lbl) for lbl in labels)

    def labels_for_file(self, uri: str) -> list[str]:
        return self._index.get_labels_for_file(uri)

    def files_with_all_labels(self, labels: list[str]) -> list[str]:
        return self._index.get_files_with_all_labels(labels)
