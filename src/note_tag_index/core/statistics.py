"""タグ統計とレポート出力.

インデックスの内容を Polars DataFrame に変換し、集計・CSV 出力を行います。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import polars as pl

from .hierarchy import depth_of, parent_of
from .index import TagIndex

LABEL_COLUMNS = ["label", "parent", "depth", "reference_count", "file_count"]


@dataclass(frozen=True, slots=True)
class TagStatistics:
    """コーパス全体のタグ統計."""

    total_labels: int
    total_occurrences: int
    tagged_files: int
    untagged_files: int
    average_labels_per_file: float
    most_used: list[tuple[str, int]]


def labels_frame(index: TagIndex) -> pl.DataFrame:
    """ラベルごとの出現数を DataFrame にする（label 昇順）.

    Returns:
        label, parent, depth, reference_count, file_count 列を持つ DataFrame
    """
    labels = index.get_all_labels()
    return pl.DataFrame(
        {
            "label": labels,
            "parent": [parent_of(label) for label in labels],
            "depth": [depth_of(label) for label in labels],
            "reference_count": [index.get_reference_count(label) for label in labels],
            "file_count": [index.get_file_count(label) for label in labels],
        },
        schema={
            "label": pl.String,
            "parent": pl.String,
            "depth": pl.Int64,
            "reference_count": pl.Int64,
            "file_count": pl.Int64,
        },
    )


def occurrences_frame(index: TagIndex) -> pl.DataFrame:
    """全出現位置を1行1出現の DataFrame にする."""
    rows = [
        {
            "uri": location.uri,
            "label": location.data.label,
            "source": location.data.source.value,
            "line": location.range.start.line,
            "character": location.range.start.character,
        }
        for uri in index.indexed_files()
        for location in index.get_locations_for_file(uri)
    ]
    return pl.DataFrame(
        rows,
        schema={
            "uri": pl.String,
            "label": pl.String,
            "source": pl.String,
            "line": pl.Int64,
            "character": pl.Int64,
        },
    )


def gather_tag_statistics(index: TagIndex, top_n: int = 10) -> TagStatistics:
    """タグ統計を集計する.

    Args:
        index: 集計対象のインデックス
        top_n: most_used に含めるラベル数

    Returns:
        集計結果
    """
    occurrences = occurrences_frame(index)
    files = index.indexed_files()

    per_file = occurrences.group_by("uri").agg(pl.col("label").n_unique().alias("labels"))
    tagged_files = per_file.height
    average = float(per_file["labels"].mean()) if tagged_files > 0 else 0.0

    most_used = (
        labels_frame(index)
        .sort(["reference_count", "label"], descending=[True, False])
        .head(top_n)
        .select(["label", "reference_count"])
        .rows()
    )

    return TagStatistics(
        total_labels=index.label_count(),
        total_occurrences=occurrences.height,
        tagged_files=tagged_files,
        untagged_files=len(files) - tagged_files,
        average_labels_per_file=average,
        most_used=[(label, count) for label, count in most_used],
    )


def export_label_report(index: TagIndex, output_dir: Path | str) -> dict[str, Path | None]:
    """ラベル集計と出現位置の CSV を出力する.

    Args:
        index: 出力対象のインデックス
        output_dir: 出力ディレクトリ

    Returns:
        出力した CSV のパス（ラベルが無ければ None）
        - "labels": labels.csv
        - "occurrences": occurrences.csv
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    result_paths: dict[str, Path | None] = {}

    labels = labels_frame(index)
    labels_path = output_dir / "labels.csv"
    if len(labels) > 0:
        labels.write_csv(labels_path)
        result_paths["labels"] = labels_path
    else:
        result_paths["labels"] = None

    occurrences = occurrences_frame(index)
    occurrences_path = output_dir / "occurrences.csv"
    if len(occurrences) > 0:
        occurrences.write_csv(occurrences_path)
        result_paths["occurrences"] = occurrences_path
    else:
        result_paths["occurrences"] = None

    return result_paths
