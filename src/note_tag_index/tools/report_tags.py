"""ノートコーパスのタグを集計し、統計の表示と CSV レポートの出力を行う。"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path

from note_tag_index.config import IndexConfig, load_config
from note_tag_index.core.index import BuildProgress
from note_tag_index.core.labels import format_label_for_display
from note_tag_index.core.statistics import export_label_report, gather_tag_statistics
from note_tag_index.workspace import TagWorkspace


def _resolve_config(root: Path, config_path: Path | None) -> IndexConfig:
    if config_path is not None:
        return load_config(config_path, root_override=root)
    return IndexConfig(root=root.resolve())


def _print_progress(progress: BuildProgress) -> None:
    if progress.scanned == progress.total or progress.scanned % 100 == 0:
        print(f"  scanned {progress.scanned}/{progress.total}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report tag usage in a notes directory")
    parser.add_argument("root", type=Path, help="Notes directory")
    parser.add_argument("--out", type=Path, default=None, help="Directory for labels.csv / occurrences.csv")
    parser.add_argument(
        "--sort",
        choices=["frequency", "alphabetical"],
        default="frequency",
        help="Order of the printed label list",
    )
    parser.add_argument("--top", type=int, default=10, help="Number of most used labels in the summary")
    parser.add_argument("--config", type=Path, default=None, help="YAML config (index: section)")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    config = _resolve_config(args.root, args.config)

    with TagWorkspace.from_config(config) as workspace:
        report = workspace.start(progress=_print_progress)
        stats = gather_tag_statistics(workspace.index, top_n=args.top)

        print(f"Files: {report.scanned} scanned, {len(report.failed)} unreadable")
        print(f"Labels: {stats.total_labels} ({stats.total_occurrences} occurrences)")
        print(f"Tagged files: {stats.tagged_files} / untagged: {stats.untagged_files}")
        print(f"Average labels per tagged file: {stats.average_labels_per_file:.1f}")
        print("Most used:")
        for label, count in stats.most_used:
            print(f"  {format_label_for_display(label)} ({count})")

        print("All labels:")
        for entry in workspace.queries.all_labels_with_counts(args.sort):
            print(f"  {entry.label}\t{entry.reference_count}\t{entry.file_count} file(s)")

        if args.out is not None:
            paths = export_label_report(workspace.index, args.out)
            for name, path in paths.items():
                if path is not None:
                    print(f"Wrote {name}: {path}")


if __name__ == "__main__":
    main()
