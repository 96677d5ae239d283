"""ラベル階層の解決.

インデックスに依存しない純粋関数群です。階層関係は保存せず、ラベル文字列から導出します。
"""

from __future__ import annotations

from collections.abc import Iterable

from .labels import SEPARATOR


def split_path(label: str) -> list[str]:
    """ラベルをセグメントに分割する."""
    return label.split(SEPARATOR)


def parent_of(label: str) -> str | None:
    """直近の親ラベルを返す（ルートなら None）."""
    head, sep, _ = label.rpartition(SEPARATOR)
    return head if sep else None


def ancestors_of(label: str) -> list[str]:
    """祖先ラベルをルートから直近の親の順に返す（自身は含まない）.

    Examples:
        >>> ancestors_of("a/b/c")
        ['a', 'a/b']
    """
    segments = split_path(label)
    return [SEPARATOR.join(segments[:i]) for i in range(1, len(segments))]


def depth_of(label: str) -> int:
    """セグメント数を返す."""
    return len(split_path(label))


def is_descendant_of(label: str, ancestor: str) -> bool:
    """label が ancestor 自身、またはその子孫なら True.

    "project-x" は "project" の子孫ではない（区切り文字の直後でのみ一致させる）。
    """
    return label == ancestor or label.startswith(ancestor + SEPARATOR)


def children_of(label: str, all_labels: Iterable[str]) -> list[str]:
    """all_labels のうち、label のちょうど1段下のラベルをソートして返す."""
    child_depth = depth_of(label) + 1
    return sorted(
        {
            candidate
            for candidate in all_labels
            if candidate != label and is_descendant_of(candidate, label) and depth_of(candidate) == child_depth
        }
    )


def descendants_of(label: str, all_labels: Iterable[str]) -> list[str]:
    """all_labels のうち、label の（自身を除く）全子孫をソートして返す."""
    return sorted({candidate for candidate in all_labels if candidate != label and is_descendant_of(candidate, label)})


def replace_prefix(label: str, source: str, target: str) -> str:
    """label 先頭の source を target に置き換える（後続セグメントは保持）.

    Raises:
        ValueError: label が source の子孫でない場合

    Examples:
        >>> replace_prefix("project/frontend", "project", "work")
        'work/frontend'
    """
    if not is_descendant_of(label, source):
        raise ValueError(f"'{label}' is not '{source}' or one of its descendants")
    return target + label[len(source) :]
