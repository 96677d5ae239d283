"""ラベル文法と正規化.

ラベルは "/" で区切られた1つ以上のセグメントで構成されます。

設計方針:
    - セグメントは英小文字で始まり、英小文字・数字・単独のハイフンのみを含む
    - ハイフンは連続させない／セグメントの先頭・末尾に置かない
    - 抽出時は大文字小文字を畳み込まない（文法に合わない候補は単に除外する）
    - ユーザー入力（rename の新しい名前など）だけを normalize_label で整形する
"""

from __future__ import annotations

import re

MARKER = "#"
SEPARATOR = "/"

SEGMENT_PATTERN = r"[a-z][a-z0-9]*(?:-[a-z0-9]+)*"
LABEL_PATTERN = rf"{SEGMENT_PATTERN}(?:/{SEGMENT_PATTERN})*"

_LABEL = re.compile(rf"^{LABEL_PATTERN}$")
_SEGMENT = re.compile(rf"^{SEGMENT_PATTERN}$")


def is_valid_label(label: str) -> bool:
    """ラベル文法に合致するか判定する.

    Examples:
        >>> is_valid_label("project/frontend")
        True
        >>> is_valid_label("1abc")
        False
        >>> is_valid_label("a--b")
        False
    """
    if not label:
        return False
    return _LABEL.match(label) is not None


def is_valid_segment(segment: str) -> bool:
    """単一セグメントが文法に合致するか判定する."""
    return bool(segment) and _SEGMENT.match(segment) is not None


def normalize_label(text: str) -> str:
    """ユーザー入力をラベル表記に整形する.

    前後の空白を除去し、先頭の "#" を外して小文字化します。
    文法チェックは行わないため、結果は is_valid_label で検証してください。

    Examples:
        >>> normalize_label("  #Project/Frontend ")
        'project/frontend'
    """
    s = text.strip()
    if s.startswith(MARKER):
        s = s[len(MARKER) :]
    return s.strip().lower()


def format_label_for_display(label: str) -> str:
    """表示用に "#" を付与する（既に付いていればそのまま）."""
    if label.startswith(MARKER):
        return label
    return f"{MARKER}{label}"
