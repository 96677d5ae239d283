"""Unit tests for rename planning and application."""

import pytest

from note_tag_index.adapters.memory_adapter import InMemoryFileSystem
from note_tag_index.core.exceptions import (
    FileApplyStatus,
    InvalidLabelError,
    MergeConflictError,
    PartialApplyFailureError,
)
from note_tag_index.core.index import SourceFile, TagIndex
from note_tag_index.core.rename import (
    RenameEngine,
    apply_rename_plan,
    compute_rename_plan,
    restore_snapshot,
)


class FailingFileSystem(InMemoryFileSystem):
    """指定した uri への書き込みだけ失敗するファイルシステム."""

    def __init__(self, files: dict[str, str], fail_on: str) -> None:
        super().__init__(files)
        self.fail_on = fail_on

    def write_file(self, uri: str, content: str) -> None:
        if uri == self.fail_on:
            raise OSError("disk full")
        super().write_file(uri, content)


def _index_for(fs: InMemoryFileSystem) -> TagIndex:
    index = TagIndex()
    index.build_full([SourceFile(uri, lambda uri=uri: fs.read_file(uri)) for uri in fs.list_files("")])
    return index


def _plan(index: TagIndex, source: str, target: str, include_descendants: bool = False):
    return compute_rename_plan(source, target, include_descendants, index.get_all_labels(), index)


class TestValidation:
    def test_invalid_target(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "#bug"}))

        with pytest.raises(InvalidLabelError, match="Invalid label '1abc'"):
            _plan(index, "bug", "1abc")

    def test_same_label(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "#bug"}))

        with pytest.raises(InvalidLabelError, match="same as the old"):
            _plan(index, "bug", "#bug")

    def test_empty_target(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "#bug"}))

        with pytest.raises(InvalidLabelError, match="cannot be empty"):
            _plan(index, "bug", "  ")

    def test_no_occurrences(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "#bug"}))

        with pytest.raises(InvalidLabelError, match="no occurrences"):
            _plan(index, "missing", "other")

    def test_target_is_normalized(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "#bug"}))

        plan = _plan(index, "bug", "#Defect")

        assert plan.target_label == "defect"
        assert plan.edits[0].new_text == "#defect"


class TestComputeRenamePlan:
    def test_hierarchical_rename(self) -> None:
        """include_descendants で子孫ラベルも一貫して置換されること."""
        fs = InMemoryFileSystem(
            {
                "a.md": "#project #project/frontend\n",
                "b.md": "---\ntags: [project/backend]\n---\n#projects\n",
            }
        )
        index = _index_for(fs)

        plan = _plan(index, "project", "work", include_descendants=True)

        assert plan.label_mapping == {
            "project": "work",
            "project/backend": "work/backend",
            "project/frontend": "work/frontend",
        }
        assert plan.affected_labels == {"project", "project/backend", "project/frontend"}
        assert sorted(e.new_text for e in plan.edits) == ["#work", "#work/frontend", "work/backend"]
        assert plan.merge_targets == frozenset()

    def test_without_descendants(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "#project #project/frontend"}))

        plan = _plan(index, "project", "work")

        assert plan.affected_labels == {"project"}
        assert [e.new_text for e in plan.edits] == ["#work"]

    def test_frontmatter_keeps_bare_value(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "---\ntags:\n  - bug\n---\n#bug\n"}))

        plan = _plan(index, "bug", "defect")

        assert [(e.range.start.line, e.new_text, e.expected_text) for e in plan.edits] == [
            (4, "#defect", "#bug"),
            (2, "defect", "bug"),
        ]

    def test_edits_ordered_last_to_first(self) -> None:
        index = _index_for(InMemoryFileSystem({"b.md": "#bug\n#bug #bug", "a.md": "#bug #bug"}))

        plan = _plan(index, "bug", "defect")

        assert [(e.uri, e.range.start.line, e.range.start.character) for e in plan.edits] == [
            ("a.md", 0, 5),
            ("a.md", 0, 0),
            ("b.md", 1, 5),
            ("b.md", 1, 0),
            ("b.md", 0, 0),
        ]
        assert plan.occurrence_count == 5
        assert plan.files == ["a.md", "b.md"]

    def test_merge_target_detected(self) -> None:
        """既存ラベルへの rename はマージ先として記録されること."""
        index = _index_for(InMemoryFileSystem({"a.md": "#bug", "b.md": "#defect #defect"}))

        plan = _plan(index, "bug", "defect")

        assert plan.merge_targets == {"defect"}
        assert plan.merges == [("bug", "defect")]
        assert plan.requires_confirmation is True
        assert "#bug will be unified with existing #defect" in plan.describe()

    def test_descendant_merge_target(self) -> None:
        index = _index_for(InMemoryFileSystem({"a.md": "#project/frontend #work/frontend"}))

        plan = _plan(index, "project", "work", include_descendants=True)

        assert plan.merge_targets == {"work/frontend"}

    def test_plan_does_not_touch_files(self) -> None:
        fs = InMemoryFileSystem({"a.md": "#bug"})
        index = _index_for(fs)

        _plan(index, "bug", "defect")

        assert fs.files == {"a.md": "#bug"}


class TestApplyRenamePlan:
    def test_apply_rewrites_files(self) -> None:
        fs = InMemoryFileSystem({"a.md": "---\ntags: [bug]\n---\nFix #bug and #bug.\n", "b.md": "#bug"})
        index = _index_for(fs)

        result = apply_rename_plan(_plan(index, "bug", "defect"), fs)

        assert fs.files == {
            "a.md": "---\ntags: [defect]\n---\nFix #defect and #defect.\n",
            "b.md": "#defect",
        }
        assert result.occurrence_count == 4
        assert result.changed_files == ["a.md", "b.md"]

    def test_merge_requires_confirmation(self) -> None:
        """確認なしのマージは、どのファイルも変更せずに拒否されること."""
        fs = InMemoryFileSystem({"a.md": "#bug", "b.md": "#defect"})
        index = _index_for(fs)
        plan = _plan(index, "bug", "defect")

        with pytest.raises(MergeConflictError, match="#bug -> #defect"):
            apply_rename_plan(plan, fs)

        assert fs.files == {"a.md": "#bug", "b.md": "#defect"}

    def test_confirmed_merge(self) -> None:
        fs = InMemoryFileSystem({"a.md": "#bug", "b.md": "#defect"})
        index = _index_for(fs)

        apply_rename_plan(_plan(index, "bug", "defect"), fs, confirm_merge=True)

        assert fs.files == {"a.md": "#defect", "b.md": "#defect"}

    def test_partial_failure_reports_each_file(self) -> None:
        """途中で失敗した場合、変更済み・失敗・未試行のファイルが正確に報告されること."""
        original = {"a.md": "#bug", "b.md": "#bug", "c.md": "#bug"}
        fs = FailingFileSystem(original, fail_on="b.md")
        index = _index_for(fs)

        with pytest.raises(PartialApplyFailureError) as exc_info:
            apply_rename_plan(_plan(index, "bug", "defect"), fs)

        error = exc_info.value
        assert [(r.uri, r.status) for r in error.results] == [
            ("a.md", FileApplyStatus.APPLIED),
            ("b.md", FileApplyStatus.FAILED),
            ("c.md", FileApplyStatus.NOT_ATTEMPTED),
        ]
        assert error.applied_uris == ["a.md"]
        assert error.untouched_uris == ["b.md", "c.md"]
        # 報告内容と実際のファイル状態が一致する
        assert fs.files == {"a.md": "#defect", "b.md": "#bug", "c.md": "#bug"}
        assert error.snapshot == original

    def test_restore_snapshot(self) -> None:
        original = {"a.md": "#bug", "b.md": "#bug"}
        fs = FailingFileSystem(original, fail_on="b.md")
        index = _index_for(fs)

        with pytest.raises(PartialApplyFailureError) as exc_info:
            apply_rename_plan(_plan(index, "bug", "defect"), fs)
        restored = restore_snapshot(fs, exc_info.value)

        assert restored == ["a.md"]
        assert fs.files == original

    def test_stale_index_fails_file(self) -> None:
        """計画後にファイルが変わった場合、そのファイルは書き込まれないこと."""
        fs = InMemoryFileSystem({"a.md": "#bug"})
        index = _index_for(fs)
        plan = _plan(index, "bug", "defect")
        fs.write_file("a.md", "xx#bug")

        with pytest.raises(PartialApplyFailureError, match="Stale edit"):
            apply_rename_plan(plan, fs)

        assert fs.files == {"a.md": "xx#bug"}


class TestRenameEngine:
    def test_round_trip_restores_text(self) -> None:
        """A→B→A の rename で元のテキストに戻ること."""
        original = {"a.md": "---\ntags: [bug, ui]\n---\nSee #bug, then #bug.\n", "b.md": "x #bug"}
        fs = InMemoryFileSystem(original)
        index = _index_for(fs)
        engine = RenameEngine(index)

        result = engine.apply(engine.compute_plan("bug", "regression"), fs)
        for uri in result.changed_files:
            index.update_for_file(uri, fs.read_file(uri))
        assert index.get_reference_count("regression") == 4

        result = engine.apply(engine.compute_plan("regression", "bug"), fs)
        for uri in result.changed_files:
            index.update_for_file(uri, fs.read_file(uri))

        assert fs.files == original
        assert index.get_reference_count("bug") == 4

    def test_round_trip_through_yaml_keyword_label(self) -> None:
        """YAML のキーワードと同名のラベルを経由しても frontmatter が元に戻ること."""
        original = {"a.md": "---\ntags: [bug]\n---\n#bug\n"}
        fs = InMemoryFileSystem(original)
        index = _index_for(fs)
        engine = RenameEngine(index)

        engine.apply(engine.compute_plan("bug", "true"), fs)
        index.update_for_file("a.md", fs.read_file("a.md"))
        assert fs.read_file("a.md") == "---\ntags: [true]\n---\n#true\n"
        assert index.get_reference_count("true") == 2

        plan = engine.compute_plan("true", "bug")
        assert plan.occurrence_count == 2
        engine.apply(plan, fs)

        assert fs.files == original

    def test_unexpected_write_error_becomes_partial_failure(self) -> None:
        class BrokenWriter(InMemoryFileSystem):
            def write_file(self, uri: str, content: str) -> None:
                if uri == "b.md":
                    raise RuntimeError("backend went away")
                super().write_file(uri, content)

        fs = BrokenWriter({"a.md": "#bug", "b.md": "#bug"})
        engine = RenameEngine(_index_for(fs))

        with pytest.raises(PartialApplyFailureError) as exc_info:
            engine.apply(engine.compute_plan("bug", "defect"), fs)

        assert exc_info.value.applied_uris == ["a.md"]
        assert exc_info.value.failed_uris == ["b.md"]
