"""Unit tests for tag extraction."""

from note_tag_index.core.extractor import ExtractionPolicy, TagExtractor, extract_tags
from note_tag_index.core.models import Range, Tag, TagSource


def _labels(text: str, policy: ExtractionPolicy | None = None) -> list[str]:
    return [tag.label for tag in extract_tags(text, policy=policy)]


class TestInlineTags:
    def test_range_includes_marker(self) -> None:
        """inline タグの範囲がマーカー '#' を含むこと."""
        tags = extract_tags("Fix #bug now")

        assert tags == [Tag("bug", Range.on_line(0, 4, 8), TagSource.INLINE)]

    def test_multiple_tags_on_line(self) -> None:
        tags = extract_tags("#a #b")

        assert [(t.label, t.range.start.character, t.range.end.character) for t in tags] == [
            ("a", 0, 2),
            ("b", 3, 5),
        ]

    def test_hierarchical_label(self) -> None:
        assert _labels("see #project/frontend here") == ["project/frontend"]

    def test_trailing_punctuation_is_boundary(self) -> None:
        tags = extract_tags("Done with #bug.")

        assert tags[0].label == "bug"
        assert tags[0].range == Range.on_line(0, 10, 14)

    def test_leading_digit_is_dropped(self) -> None:
        """'#1abc' は文法に合わないため抽出されないこと."""
        assert extract_tags("#1abc") == []
        assert extract_tags("issue #123") == []

    def test_invalid_candidates_are_dropped(self) -> None:
        assert _labels("#abc- #a--b #Foo #foo/ #bad_tag #ok") == ["ok"]

    def test_marker_must_follow_whitespace(self) -> None:
        """URL のフラグメントや単語途中の '#' を拾わないこと."""
        assert _labels("http://example.com/#anchor") == []
        assert _labels("C#sharp") == []

    def test_headings_are_not_tags(self) -> None:
        assert _labels("# Heading\n## Sub heading") == []

    def test_positions_across_lines(self) -> None:
        tags = extract_tags("first line\n  #todo\n")

        assert tags[0].range == Range.on_line(1, 2, 7)

    def test_crlf_line_endings(self) -> None:
        tags = extract_tags("#bug\r\nnext #two\r\n")

        assert [(t.label, t.range) for t in tags] == [
            ("bug", Range.on_line(0, 0, 4)),
            ("two", Range.on_line(1, 5, 9)),
        ]


class TestFrontmatterTags:
    def test_inline_list(self) -> None:
        text = "---\ntitle: Note\ntags: [bug, feature]\n---\nBody #bug\n"

        tags = extract_tags(text)

        assert [(t.label, t.range, t.source) for t in tags] == [
            ("bug", Range.on_line(2, 7, 10), TagSource.FRONTMATTER),
            ("feature", Range.on_line(2, 12, 19), TagSource.FRONTMATTER),
            ("bug", Range.on_line(4, 5, 9), TagSource.INLINE),
        ]

    def test_block_list(self) -> None:
        text = "---\ntags:\n  - project/frontend\n  - bad_tag\n  - todo\n---\n"

        tags = extract_tags(text)

        assert [(t.label, t.range) for t in tags] == [
            ("project/frontend", Range.on_line(2, 4, 20)),
            ("todo", Range.on_line(4, 4, 8)),
        ]

    def test_legacy_scalar_list(self) -> None:
        tags = extract_tags("---\ntags: bug, feature\n---\n")

        assert [(t.label, t.range) for t in tags] == [
            ("bug", Range.on_line(1, 6, 9)),
            ("feature", Range.on_line(1, 11, 18)),
        ]

    def test_quoted_values_cover_bare_value(self) -> None:
        tags = extract_tags('---\ntags: ["bug"]\n---\n')

        assert tags[0].range == Range.on_line(1, 8, 11)

    def test_duplicate_values_get_distinct_ranges(self) -> None:
        tags = extract_tags("---\ntags: [a, a]\n---\n")

        assert [t.range.start.character for t in tags] == [7, 10]

    def test_frontmatter_lines_are_not_scanned_inline(self) -> None:
        text = "---\nsummary: see #inside\ntags: [bug]\n---\n"

        assert _labels(text) == ["bug"]

    def test_invalid_yaml_contributes_no_tags(self) -> None:
        """YAML として不正な frontmatter はタグを持たず、本文は抽出されること."""
        text = "---\ntags: [bug\n: : :\n---\n#body\n"

        assert _labels(text) == ["body"]

    def test_unclosed_frontmatter_is_body(self) -> None:
        text = "---\ntags: [bug]\n#real\n"

        tags = extract_tags(text)

        assert [(t.label, t.range.start.line, t.source) for t in tags] == [("real", 2, TagSource.INLINE)]

    def test_frontmatter_without_tags(self) -> None:
        assert extract_tags("---\ntitle: x\n---\ntext\n") == []

    def test_yaml_keyword_labels_stay_labels(self) -> None:
        """yes/true/null など YAML のキーワードもラベルとして抽出されること."""
        tags = extract_tags("---\ntags: [yes, true, null, on, bug]\n---\n")

        assert [(t.label, t.range.start.character) for t in tags] == [
            ("yes", 7),
            ("true", 12),
            ("null", 18),
            ("on", 24),
            ("bug", 28),
        ]

    def test_yaml_keyword_block_list(self) -> None:
        tags = extract_tags("---\ntags:\n  - false\n  - off\n---\n")

        assert [(t.label, t.range) for t in tags] == [
            ("false", Range.on_line(2, 4, 9)),
            ("off", Range.on_line(3, 4, 7)),
        ]

    def test_leading_bom_before_frontmatter(self) -> None:
        tags = extract_tags("\ufeff---\ntags: [bug]\n---\n")

        assert [(t.label, t.range, t.source) for t in tags] == [
            ("bug", Range.on_line(1, 7, 10), TagSource.FRONTMATTER)
        ]

    def test_leading_bom_before_inline_tag(self) -> None:
        tags = extract_tags("\ufeff#bug here\n")

        assert [(t.label, t.range) for t in tags] == [("bug", Range.on_line(0, 1, 5))]


class TestCodeSpanPolicy:
    TEXT = "```\n#code\n```\nuse `git tag #release` here #ok\n"

    def test_default_policy_keeps_code(self) -> None:
        assert _labels(self.TEXT) == ["code", "release", "ok"]

    def test_skip_code_spans(self) -> None:
        assert _labels(self.TEXT, ExtractionPolicy(skip_code_spans=True)) == ["ok"]

    def test_tilde_fence(self) -> None:
        text = "~~~\n#code\n~~~\n#after\n"

        assert _labels(text, ExtractionPolicy(skip_code_spans=True)) == ["after"]


class TestDeterminism:
    def test_same_input_same_output(self) -> None:
        text = "---\ntags: [a, b/c]\n---\n#x #y/z\n#a"
        extractor = TagExtractor()

        assert extractor.extract(text) == extractor.extract(text)
        assert extractor.extract(text, "one.md") == extractor.extract(text, "two.md")

    def test_empty_text(self) -> None:
        assert extract_tags("") == []
