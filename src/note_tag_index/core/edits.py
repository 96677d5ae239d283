"""テキスト編集の適用.

(line, character) 座標の置換編集を文字列に適用する純粋関数です。
ファイルシステムアダプタ（ディスク / メモリ）が共通で使います。
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .exceptions import StaleEditError
from .models import Position, Range


@dataclass(frozen=True, slots=True)
class TextEdit:
    """1箇所の置換編集.

    Attributes:
        uri: 対象ファイル
        range: 置換する範囲
        new_text: 置換後のテキスト
        expected_text: 範囲内にあるはずのテキスト（None なら検証しない）
    """

    uri: str
    range: Range
    new_text: str
    expected_text: str | None = None


def _line_offsets(text: str) -> list[int]:
    offsets = [0]
    for index, ch in enumerate(text):
        if ch == "\n":
            offsets.append(index + 1)
    return offsets


def _offset_of(offsets: list[int], text: str, position: Position) -> int:
    if position.line >= len(offsets):
        raise ValueError(f"Line {position.line} is out of range ({len(offsets)} line(s))")
    line_start = offsets[position.line]
    line_end = offsets[position.line + 1] - 1 if position.line + 1 < len(offsets) else len(text)
    if line_start + position.character > line_end:
        raise ValueError(f"Character {position.character} is out of range on line {position.line}")
    return line_start + position.character


def order_edits(edits: Iterable[TextEdit]) -> list[TextEdit]:
    """同一ファイル内の編集を後方から前方の順（range.start 降順）に並べる.

    前から順に適用しても、未適用の編集のオフセットがずれない順序になります。
    ファイル間の順序は uri 昇順で固定します。
    """
    return sorted(edits, key=lambda e: (e.uri, -e.range.start.line, -e.range.start.character))


def apply_text_edits(text: str, edits: Sequence[TextEdit]) -> str:
    """1ファイル分の編集を適用したテキストを返す.

    Raises:
        StaleEditError: expected_text と実際のテキストが一致しない場合
        ValueError: 範囲がテキスト外を指す、または編集同士が重なる場合
    """
    result = text
    previous_start: Position | None = None
    for edit in sorted(edits, key=lambda e: e.range.start, reverse=True):
        if previous_start is not None and edit.range.end > previous_start:
            raise ValueError(f"Overlapping edits in {edit.uri} at {edit.range.start}")
        offsets = _line_offsets(result)
        start = _offset_of(offsets, result, edit.range.start)
        end = _offset_of(offsets, result, edit.range.end)
        current = result[start:end]
        if edit.expected_text is not None and current != edit.expected_text:
            raise StaleEditError(edit.uri, edit.range, edit.expected_text, current)
        result = result[:start] + edit.new_text + result[end:]
        previous_start = edit.range.start
    return result
