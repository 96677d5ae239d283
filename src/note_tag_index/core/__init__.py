"""タグインデックスのコア処理群.

- 抽出（文書テキスト → ラベルと範囲）
- 階層解決（ラベル文字列の祖先・子・子孫）
- インデックス（ラベル → 出現位置、フル/増分ビルド）
- rename / merge（計画と適用）
- 問い合わせ・統計
"""

from .exceptions import (
    FileReadError,
    InvalidLabelError,
    MergeConflictError,
    NoTagAtCursorError,
    PartialApplyFailureError,
    StaleEditError,
    TagIndexError,
)
from .extractor import ExtractionPolicy, TagExtractor, extract_tags
from .index import BuildProgress, BuildReport, CancellationToken, SourceFile, TagIndex
from .labels import is_valid_label, normalize_label
from .models import Location, Position, Range, Tag, TagSource
from .query import LabelCount, QueryService, TagHit
from .rename import RenameEngine, RenamePlan, RenameResult, apply_rename_plan, compute_rename_plan

__all__ = [
    "BuildProgress",
    "BuildReport",
    "CancellationToken",
    "ExtractionPolicy",
    "FileReadError",
    "InvalidLabelError",
    "LabelCount",
    "Location",
    "MergeConflictError",
    "NoTagAtCursorError",
    "PartialApplyFailureError",
    "Position",
    "QueryService",
    "Range",
    "RenameEngine",
    "RenamePlan",
    "RenameResult",
    "SourceFile",
    "StaleEditError",
    "Tag",
    "TagExtractor",
    "TagHit",
    "TagIndex",
    "TagIndexError",
    "TagSource",
    "apply_rename_plan",
    "compute_rename_plan",
    "extract_tags",
    "is_valid_label",
    "normalize_label",
]
