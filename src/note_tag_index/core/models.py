"""タグ位置のデータモデル.

エディタ互換の 0 始まり座標（行・文字）で、タグの出現位置を表現します。

- Position / Range: 文書内の座標
- Tag: 抽出されたラベルとその範囲（抽出処理のみが生成する）
- Location: 任意のデータを (uri, range) に結び付ける汎用ラッパー
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True, order=True)
class Position:
    """文書内の位置（0 始まりの行・文字オフセット）."""

    line: int
    character: int

    def __post_init__(self) -> None:
        if self.line < 0 or self.character < 0:
            raise ValueError(f"Position must be non-negative: line={self.line}, character={self.character}")


@dataclass(frozen=True, slots=True)
class Range:
    """開始・終了位置の組（start <= end）."""

    start: Position
    end: Position

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} precedes start {self.start}")

    @classmethod
    def on_line(cls, line: int, start_character: int, end_character: int) -> Range:
        """1行内の範囲を作成する."""
        return cls(Position(line, start_character), Position(line, end_character))

    def contains(self, position: Position) -> bool:
        """位置が範囲内か判定する（終端も含む）.

        カーソルがタグ末尾の直後にある場合もヒットさせるため、終端は inclusive です。
        """
        return self.start <= position <= self.end


class TagSource(str, Enum):
    """タグの記述形式."""

    INLINE = "inline"  # 本文中の #label
    FRONTMATTER = "frontmatter"  # frontmatter の tags: エントリ


@dataclass(frozen=True, slots=True)
class Tag:
    """抽出されたタグ.

    Attributes:
        label: 正規化済みラベル（例: "project/frontend"、# は含まない）
        range: ソース上のスパン。inline はマーカー "#" を含み、frontmatter は値そのもの
        source: 記述形式（置換時に元の表記を保つために使う）
    """

    label: str
    range: Range
    source: TagSource = TagSource.INLINE

    def surface_text(self, label: str | None = None) -> str:
        """ソース上の表記を返す（label を差し替えた表記も作れる）."""
        value = self.label if label is None else label
        if self.source is TagSource.INLINE:
            return f"#{value}"
        return value


@dataclass(frozen=True, slots=True)
class Location(Generic[T]):
    """ファイル内のある範囲にデータを結び付ける."""

    uri: str
    range: Range
    data: T


def sort_key(location: Location) -> tuple[str, Position]:
    """uri → 開始位置の順に並べるためのキー."""
    return (location.uri, location.range.start)
