"""ラベルの rename / merge.

複数ファイルにまたがるラベル置換を「計画」と「適用」の2段階で行います。

- 計画（compute_rename_plan）: 副作用なし。検証・影響ラベル・編集・マージ先をすべて算出する
- 適用（apply_rename_plan）: 計画の順序どおりに編集し、途中で失敗したらどのファイルが
  変更済みかを必ず列挙して報告する（黙って部分適用にしない）

計画はリクエストごとに作り直し、キャッシュしません。
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from .edits import TextEdit, order_edits
from .exceptions import (
    FileApplyResult,
    FileApplyStatus,
    InvalidLabelError,
    MergeConflictError,
    PartialApplyFailureError,
)
from .hierarchy import descendants_of, replace_prefix
from .labels import format_label_for_display, is_valid_label, normalize_label

if TYPE_CHECKING:
    from note_tag_index.adapters.base_adapter import BaseFileSystem

    from .index import TagIndex


@dataclass(frozen=True)
class RenamePlan:
    """未適用の rename 計画.

    Attributes:
        source_label: 変更元ラベル
        target_label: 変更先ラベル（正規化済み）
        include_descendants: 子孫ラベルも対象にするか
        label_mapping: 影響ラベル → 置換後ラベル
        edits: 適用順に並んだ編集（同一ファイル内は後方から前方）
        merge_targets: 既に独立した出現を持つ置換後ラベル（適用には明示的な確認が必要）
    """

    source_label: str
    target_label: str
    include_descendants: bool
    label_mapping: dict[str, str]
    edits: tuple[TextEdit, ...]
    merge_targets: frozenset[str] = field(default_factory=frozenset)

    @property
    def affected_labels(self) -> frozenset[str]:
        return frozenset(self.label_mapping)

    @property
    def occurrence_count(self) -> int:
        return len(self.edits)

    @property
    def files(self) -> list[str]:
        return sorted({edit.uri for edit in self.edits})

    @property
    def merges(self) -> list[tuple[str, str]]:
        """統合される (元ラベル, 既存ラベル) の組."""
        return sorted((old, new) for old, new in self.label_mapping.items() if new in self.merge_targets)

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.merge_targets)

    def describe(self) -> str:
        """ユーザー向けの概要（件数とマージ対象を明示する）."""
        source = format_label_for_display(self.source_label)
        target = format_label_for_display(self.target_label)
        text = (
            f"Rename {source} -> {target}: {self.occurrence_count} occurrence(s) "
            f"in {len(self.files)} file(s), {len(self.label_mapping)} label(s)"
        )
        for old, new in self.merges:
            text += (
                f"\n  merge: {format_label_for_display(old)} will be unified with existing "
                f"{format_label_for_display(new)}"
            )
        return text


@dataclass(frozen=True)
class RenameResult:
    """適用結果."""

    plan: RenamePlan
    results: tuple[FileApplyResult, ...]

    @property
    def occurrence_count(self) -> int:
        return self.plan.occurrence_count

    @property
    def changed_files(self) -> list[str]:
        return [r.uri for r in self.results if r.status is FileApplyStatus.APPLIED]


def compute_rename_plan(
    source_label: str,
    target_label: str,
    include_descendants: bool,
    known_labels: Iterable[str],
    index: TagIndex,
) -> RenamePlan:
    """rename 計画を算出する（ファイルには触れない）.

    Args:
        source_label: 変更元ラベル
        target_label: 変更先ラベル（"#" 付き・大文字を含む入力は正規化される）
        include_descendants: 子孫ラベル（source/...）も置換するか
        known_labels: 現在存在するラベル一覧
        index: 出現位置の取得元

    Returns:
        算出された計画

    Raises:
        InvalidLabelError: 変更先がラベル文法に合わない、変更元と同じ、または対象の出現が無い場合

    Examples:
        >>> plan = compute_rename_plan("project", "work", True, index.get_all_labels(), index)
        >>> plan.label_mapping["project/frontend"]
        'work/frontend'
    """
    target = normalize_label(target_label)
    if not target:
        raise InvalidLabelError(target_label, "tag name cannot be empty")
    if not is_valid_label(target):
        raise InvalidLabelError(
            target_label,
            "segments must start with a lowercase letter and contain only lowercase letters, "
            "digits and single inner hyphens, separated by '/'",
        )
    if target == source_label:
        raise InvalidLabelError(target_label, "new tag name is the same as the old tag name")

    labels = set(known_labels)
    affected = {source_label}
    if include_descendants:
        affected.update(descendants_of(source_label, labels))

    mapping = {label: replace_prefix(label, source_label, target) for label in sorted(affected)}

    merge_targets = frozenset(
        new
        for new in mapping.values()
        if new in labels and new not in affected and index.get_reference_count(new) > 0
    )

    edits: list[TextEdit] = []
    for old, new in mapping.items():
        for location in index.get_locations_for_label(old):
            tag = location.data
            edits.append(
                TextEdit(
                    uri=location.uri,
                    range=location.range,
                    new_text=tag.surface_text(new),
                    expected_text=tag.surface_text(),
                )
            )
    if not edits:
        raise InvalidLabelError(source_label, "no occurrences found")

    return RenamePlan(
        source_label=source_label,
        target_label=target,
        include_descendants=include_descendants,
        label_mapping=mapping,
        edits=tuple(order_edits(edits)),
        merge_targets=merge_targets,
    )


def apply_rename_plan(
    plan: RenamePlan,
    file_system: BaseFileSystem,
    confirm_merge: bool = False,
) -> RenameResult:
    """計画を1つの論理トランザクションとして適用する.

    全ファイルの元の内容を先に取得してから、計画の順序で書き込みます。
    途中で失敗した場合は以降のファイルを試行せず、ファイル単位の状態一覧と
    元の内容を持つ PartialApplyFailureError を送出します。

    Raises:
        MergeConflictError: マージを含む計画を confirm_merge なしで適用しようとした場合
        FileReadError: 書き込み前の内容取得に失敗した場合（どのファイルも変更されない）
        PartialApplyFailureError: 書き込みの途中で失敗した場合
    """
    if plan.requires_confirmation and not confirm_merge:
        raise MergeConflictError(plan.merges)

    logger.info(plan.describe())
    snapshot = {uri: file_system.read_file(uri) for uri in plan.files}

    results = file_system.apply_edits(plan.edits, stop_on_failure=True)
    if any(r.status is not FileApplyStatus.APPLIED for r in results):
        error = PartialApplyFailureError(results, snapshot)
        logger.warning(str(error))
        raise error

    logger.info(
        f"Renamed {format_label_for_display(plan.source_label)} -> "
        f"{format_label_for_display(plan.target_label)}: {plan.occurrence_count} occurrence(s) "
        f"in {len(results)} file(s)"
    )
    return RenameResult(plan=plan, results=tuple(results))


def restore_snapshot(file_system: BaseFileSystem, error: PartialApplyFailureError) -> list[str]:
    """部分適用されたファイルを適用前の内容に戻す.

    Returns:
        復元したファイルの uri
    """
    restored: list[str] = []
    for uri in error.applied_uris:
        file_system.write_file(uri, error.snapshot[uri])
        restored.append(uri)
    if restored:
        logger.info(f"Restored {len(restored)} file(s) from pre-rename snapshot")
    return restored


class RenameEngine:
    """TagIndex に結び付いた rename の入口."""

    def __init__(self, index: TagIndex) -> None:
        self._index = index

    def compute_plan(self, source_label: str, target_label: str, include_descendants: bool = False) -> RenamePlan:
        return compute_rename_plan(
            source_label,
            target_label,
            include_descendants,
            self._index.get_all_labels(),
            self._index,
        )

    def apply(self, plan: RenamePlan, file_system: BaseFileSystem, confirm_merge: bool = False) -> RenameResult:
        return apply_rename_plan(plan, file_system, confirm_merge=confirm_merge)
