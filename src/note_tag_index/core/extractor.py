"""タグ抽出（文書テキスト → (label, range) のリスト）.

2種類の記述形式を認識します。

1. frontmatter: 先頭の "---" 行から次の "---" 行までのブロック内の `tags:` エントリ
   - インライン配列: `tags: [bug, feature]`
   - ブロック配列: `tags:` の後に `- bug` 形式の行が続く
   - 旧形式のスカラー: `tags: bug, feature`
2. inline: 行頭または空白の直後にある `#label`

設計方針:
    - 純粋・決定的（同じテキストからは必ず同じ結果）で I/O を行わない
    - 文法に合わない候補は黙って除外する（エラーにも診断にもしない）
    - frontmatter の値は PyYAML で解釈し、位置は行内の部分文字列として特定する
    - コード内のマーカー除外はポリシーで明示的に有効化した場合のみ行う
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import yaml

from .labels import MARKER, is_valid_label
from .models import Range, Tag, TagSource

FRONTMATTER_DELIMITER = "---"
BOM = "\ufeff"

# マーカーの直後から、空白・区切り記号の手前までを候補とする
_INLINE_CANDIDATE = re.compile(rf"(?<!\S){re.escape(MARKER)}([^\s.,;:!?()\[\]{{}}<>\"'`]+)")
_TAGS_KEY = re.compile(r"^tags\s*:")
_BLOCK_ITEM = re.compile(r"^\s*-\s")
_CODE_FENCE = re.compile(r"^\s*(`{3,}|~{3,})")
_CODE_SPAN = re.compile(r"`[^`\n]*`")


@dataclass(frozen=True, slots=True)
class ExtractionPolicy:
    """抽出ポリシー.

    Attributes:
        skip_code_spans: True の場合、フェンス付きコードブロックとインラインコード内の
            マーカーを無視する（既定は無効）
    """

    skip_code_spans: bool = False


@dataclass(frozen=True, slots=True)
class _Frontmatter:
    body_start: int  # 最初の本文行（開始デリミタの次の行）
    end: int  # 終了デリミタの行


class TagExtractor:
    """文書テキストからタグを抽出する."""

    def __init__(self, policy: ExtractionPolicy | None = None) -> None:
        self.policy = policy or ExtractionPolicy()

    def extract(self, text: str, uri: str = "") -> list[Tag]:
        """テキストからタグを抽出し、出現位置順に返す.

        Args:
            text: 文書全体のテキスト
            uri: 文書の識別子（抽出結果には影響しない）

        Returns:
            (line, character) 昇順のタグ一覧
        """
        _ = uri
        lines = [line.rstrip("\r") for line in text.split("\n")]
        frontmatter = _find_frontmatter(lines)
        if lines[0].startswith(BOM):
            # 文字位置を保ったまま行頭扱いにする
            lines[0] = " " + lines[0][1:]

        tags: list[Tag] = []
        body_start = 0
        if frontmatter is not None:
            tags.extend(_extract_frontmatter_tags(lines, frontmatter))
            body_start = frontmatter.end + 1

        tags.extend(self._extract_inline_tags(lines, body_start))
        tags.sort(key=lambda tag: tag.range.start)
        return tags

    def _extract_inline_tags(self, lines: list[str], start: int) -> list[Tag]:
        tags: list[Tag] = []
        fence: str | None = None
        for line_no in range(start, len(lines)):
            line = lines[line_no]

            if self.policy.skip_code_spans:
                fence_match = _CODE_FENCE.match(line)
                if fence_match:
                    marker = fence_match.group(1)
                    if fence is None:
                        fence = marker[0] * 3
                    elif marker.startswith(fence):
                        fence = None
                    continue
                if fence is not None:
                    continue

            masked = _code_span_ranges(line) if self.policy.skip_code_spans else []
            for match in _INLINE_CANDIDATE.finditer(line):
                label = match.group(1)
                if not is_valid_label(label):
                    continue
                start_char = match.start()
                if any(lo <= start_char < hi for lo, hi in masked):
                    continue
                tags.append(Tag(label, Range.on_line(line_no, start_char, match.end()), TagSource.INLINE))
        return tags


def extract_tags(text: str, uri: str = "", policy: ExtractionPolicy | None = None) -> list[Tag]:
    """TagExtractor(policy).extract(text, uri) のショートカット."""
    return TagExtractor(policy).extract(text, uri)


def _find_frontmatter(lines: list[str]) -> _Frontmatter | None:
    if not lines or lines[0].removeprefix(BOM) != FRONTMATTER_DELIMITER:
        return None
    for index in range(1, len(lines)):
        if lines[index] == FRONTMATTER_DELIMITER:
            return _Frontmatter(body_start=1, end=index)
    return None


def _frontmatter_values(block: str) -> list[str]:
    """frontmatter の tags 値を文字列のリストとして取り出す.

    YAML として解釈できないブロックはタグを持たないものとして扱う。
    """
    # BaseLoader: yes/true/null などもラベルとして文字列のまま受け取る
    try:
        parsed = yaml.load(block, Loader=yaml.BaseLoader)
    except yaml.YAMLError:
        return []
    if not isinstance(parsed, dict):
        return []

    raw = parsed.get("tags")
    if isinstance(raw, list):
        return [v.strip() for v in raw if isinstance(v, str) and v.strip()]
    if isinstance(raw, str):
        # 旧形式: tags: '[a, b]' や tags: a, b
        stripped = raw.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            stripped = stripped[1:-1]
        return [part.strip() for part in stripped.split(",") if part.strip()]
    return []


def _extract_frontmatter_tags(lines: list[str], frontmatter: _Frontmatter) -> list[Tag]:
    body = lines[frontmatter.body_start : frontmatter.end]
    values = _frontmatter_values("\n".join(body))
    if not values:
        return []

    key_line: int | None = None
    for offset, line in enumerate(body):
        if _TAGS_KEY.match(line):
            key_line = frontmatter.body_start + offset
            break
    if key_line is None:
        return []

    # tags: の行と、それに続くブロック配列行（インデント行 / "- " 行 / 空行）
    region = [key_line]
    for line_no in range(key_line + 1, frontmatter.end):
        line = lines[line_no]
        if line.strip() == "" or line[:1].isspace() or _BLOCK_ITEM.match(line):
            region.append(line_no)
        else:
            break

    tags: list[Tag] = []
    cursor_line_index = 0
    cursor_char = lines[key_line].index(":") + 1
    for value in values:
        found = _locate_value(lines, region, cursor_line_index, cursor_char, value)
        if found is None:
            continue
        region_index, start_char = found
        end_char = start_char + len(value)
        cursor_line_index, cursor_char = region_index, end_char
        if not is_valid_label(value):
            continue
        tags.append(
            Tag(value, Range.on_line(region[region_index], start_char, end_char), TagSource.FRONTMATTER)
        )
    return tags


def _locate_value(
    lines: list[str],
    region: list[int],
    line_index: int,
    char: int,
    value: str,
) -> tuple[int, int] | None:
    """region 内で (line_index, char) 以降に現れる value の位置を探す."""
    pattern = re.compile(rf"(?<![\w/-]){re.escape(value)}(?![\w/-])")
    for index in range(line_index, len(region)):
        line = lines[region[index]]
        match = pattern.search(line, char if index == line_index else 0)
        if match:
            return index, match.start()
    return None


def _code_span_ranges(line: str) -> list[tuple[int, int]]:
    return [(m.start(), m.end()) for m in _CODE_SPAN.finditer(line)]
