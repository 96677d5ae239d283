"""ノートコーパス内のタグを rename / merge する。

マージ（変更先ラベルが既に存在する）場合は、--yes を付けない限り適用しない。
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from note_tag_index.config import IndexConfig, load_config
from note_tag_index.core.exceptions import (
    InvalidLabelError,
    MergeConflictError,
    PartialApplyFailureError,
)
from note_tag_index.core.labels import normalize_label
from note_tag_index.workspace import TagWorkspace


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rename or merge a tag across a notes directory")
    parser.add_argument("root", type=Path, help="Notes directory")
    parser.add_argument("source", help="Existing tag (with or without '#')")
    parser.add_argument("target", help="New tag name")
    parser.add_argument(
        "--include-descendants",
        action="store_true",
        help="Also rename source/... child tags, keeping their trailing segments",
    )
    parser.add_argument("--yes", action="store_true", help="Confirm merging into an existing tag")
    parser.add_argument("--dry-run", action="store_true", help="Only print the rename plan")
    parser.add_argument(
        "--keep-partial",
        action="store_true",
        help="Do not restore already changed files when the rename fails midway",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config (index: section)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.config is not None:
        config = load_config(args.config, root_override=args.root)
    else:
        config = IndexConfig(root=args.root.resolve())

    with TagWorkspace.from_config(config) as workspace:
        workspace.start()
        try:
            plan = workspace.plan_rename(normalize_label(args.source), args.target, args.include_descendants)
        except InvalidLabelError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

        print(plan.describe())
        for edit in plan.edits:
            print(f"  {edit.uri}:{edit.range.start.line + 1}:{edit.range.start.character + 1} -> {edit.new_text}")
        if args.dry_run:
            return 0

        try:
            result = workspace.apply_plan(plan, confirm_merge=args.yes)
        except MergeConflictError as e:
            print(f"{e}\nRe-run with --yes to merge.", file=sys.stderr)
            return 3
        except PartialApplyFailureError as e:
            print(str(e), file=sys.stderr)
            if not args.keep_partial:
                restored = workspace.restore(e)
                print(f"Restored {len(restored)} file(s) to their original content", file=sys.stderr)
            return 1

        print(f"Changed {result.occurrence_count} occurrence(s) in {len(result.changed_files)} file(s)")
        return 0


if __name__ == "__main__":
    sys.exit(main())
