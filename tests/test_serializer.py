"""Tests for markdown rendering of content records."""

import math
import re
from datetime import datetime, timezone

import frontmatter
import pytest

from artefact_sync.core.artefacts.models import ArtefactKind
from artefact_sync.core.artefacts.serializer import (
    artefact_path,
    format_value,
    header_fields,
    is_managed_path,
    render_frontmatter,
    render_markdown,
    resolve_slug,
    serialize,
    slugify,
)
from artefact_sync.core.exceptions import SerializationError


class TestSlugify:
    """Test suite for slug derivation."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Summarize Text", "summarize-text"),
            ("  Summarize   Text -- Fast! ", "summarize-text-fast"),
            ("C++ / Rust: A Comparison", "c-rust-a-comparison"),
            ("Tabs\tand\nnewlines", "tabs-and-newlines"),
            ("---Leading and trailing---", "leading-and-trailing"),
            ("ÜBER Prompt", "ber-prompt"),
            ("2024 Review", "2024-review"),
        ],
    )
    def test_slugify(self, title: str, expected: str) -> None:
        """Test slugs for mixed case, punctuation and repeated whitespace."""
        assert slugify(title) == expected

    @pytest.mark.parametrize(
        "title",
        ["Hello,   World!!", " -- a -- b -- ", "MiXeD_CaSe & Symbols #1", "x"],
    )
    def test_slug_shape(self, title: str) -> None:
        """Test slugs only contain [a-z0-9-] without stray hyphens."""
        slug = slugify(title)
        assert re.fullmatch(r"[a-z0-9-]*", slug)
        assert not slug.startswith("-")
        assert not slug.endswith("-")
        assert "--" not in slug

    def test_stored_slug_wins(self, make_prompt) -> None:
        """Test that a stored slug is used instead of the title."""
        assert resolve_slug(make_prompt(slug="custom-name")) == "custom-name"

    @pytest.mark.parametrize("slug", ["../skills/x", "nested/name", "back\\slash", ".."])
    def test_stored_slug_must_be_a_file_name(self, make_prompt, slug: str) -> None:
        """Test a stored slug cannot move the file out of its kind folder."""
        with pytest.raises(SerializationError) as exc_info:
            resolve_slug(make_prompt(slug=slug))
        assert exc_info.value.record_id == "p-1"

    def test_blank_slug_falls_back_to_title(self, make_prompt) -> None:
        """Test that a whitespace slug is ignored."""
        assert resolve_slug(make_prompt(slug="  ")) == "summarize-text"

    def test_unsluggable_title_falls_back_to_id(self, make_prompt) -> None:
        """Test that a title without usable characters uses the record id."""
        assert resolve_slug(make_prompt(title="!!!", id="ABC-123")) == "abc-123"


class TestPaths:
    """Test suite for repository paths."""

    def test_root_paths(self, prompt, skill, workflow) -> None:
        assert artefact_path(prompt) == "prompts/summarize-text.md"
        assert artefact_path(skill) == "skills/code-review.md"
        assert artefact_path(workflow) == "workflows/release-checklist.md"

    def test_folder_prefix(self, prompt) -> None:
        """Test that the prefix is applied and stray slashes are dropped."""
        assert artefact_path(prompt, "library") == "library/prompts/summarize-text.md"
        assert artefact_path(prompt, "/library/") == "library/prompts/summarize-text.md"

    def test_is_managed_path(self) -> None:
        assert is_managed_path("prompts/a.md")
        assert is_managed_path("lib/workflows/b.md", "lib")
        assert not is_managed_path("README.md")
        assert not is_managed_path("prompts/a.md", "lib")
        assert not is_managed_path("promptsx/a.md")


class TestFormatValue:
    """Test suite for header value formatting."""

    def test_lists_are_quoted(self) -> None:
        assert format_value(["nlp", "a b"]) == '["nlp", "a b"]'
        assert format_value([]) == "[]"

    def test_list_items_are_escaped(self) -> None:
        assert format_value(['say "hi"']) == '["say \\"hi\\""]'

    def test_booleans(self) -> None:
        assert format_value(True) == "true"
        assert format_value(False) == "false"

    def test_numbers(self) -> None:
        assert format_value(0) == "0"
        assert format_value(4.0) == "4"
        assert format_value(4.5) == "4.5"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("writing", "writing"),
            ("Summarize Text", '"Summarize Text"'),
            ("Note: important", '"Note: important"'),
            ('The "best" prompt', '"The \\"best\\" prompt"'),
            ("", '""'),
            ("true", '"true"'),
            ("123", '"123"'),
            ("#tag", '"#tag"'),
            ("line\nbreak", '"line\\nbreak"'),
            ("2024-01-01", '"2024-01-01"'),
            ("0x1F", '"0x1F"'),
            ("0b101", '"0b101"'),
            (".inf", '".inf"'),
            (".NaN", '".NaN"'),
            ("*alias", '"*alias"'),
            ("Bell\x07", '"Bell\\a"'),
            ("p-1", "p-1"),
        ],
    )
    def test_strings(self, value: str, expected: str) -> None:
        """Test strings are quoted whenever YAML could misread them."""
        assert format_value(value) == expected

    def test_datetime(self) -> None:
        value = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_value(value) == '"2024-01-02T03:04:05+00:00"'


class TestRenderMarkdown:
    """Test suite for complete documents."""

    def test_prompt_layout(self, prompt) -> None:
        """Test the header, heading and fenced content of a prompt."""
        text = render_markdown(prompt)
        lines = text.split("\n")

        assert lines[0] == "---"
        assert "id: p-1" in lines
        assert 'title: "Summarize Text"' in lines
        assert 'tags: ["nlp"]' in lines
        assert "is_public: true" in lines
        assert "category: writing" in lines
        assert "rating_avg: 0" in lines
        assert "rating_count: 0" in lines
        assert "\n---\n\n# Summarize Text\n\nCondense any text\n\n" in text
        assert text.endswith("## Prompt Content\n\n```\nSummarize: {{input}}\n```\n")

    def test_header_field_order(self, prompt) -> None:
        keys = [key for key, _ in header_fields(prompt)]
        assert keys == [
            "id",
            "title",
            "description",
            "category",
            "tags",
            "is_public",
            "rating_avg",
            "rating_count",
            "created_at",
            "updated_at",
        ]

    def test_skill_defaults(self, make_skill) -> None:
        """Test skill category default and published flag."""
        text = render_markdown(make_skill(category=None, description=None))
        assert "category: general" in text
        assert 'description: ""' in text
        assert "published: false" in text
        assert text.endswith("## Skill Content\n\nReview the diff carefully.\n")

    def test_prompt_without_category(self, make_prompt) -> None:
        assert 'category: ""' in render_markdown(make_prompt(category=None))

    def test_workflow_definition(self, workflow) -> None:
        """Test the workflow document is pretty-printed in a json fence."""
        text = render_markdown(workflow)
        assert "## Workflow Definition\n\n```json\n{\n  \"steps\": [" in text
        assert text.endswith("\n```\n")
        assert "published: true" in text

    def test_workflow_keeps_unicode(self, make_workflow) -> None:
        text = render_markdown(make_workflow(json={"name": "Überprüfung"}))
        assert '"name": "Überprüfung"' in text

    def test_header_parses_as_yaml(self, make_prompt) -> None:
        """Test that tricky titles survive a round trip through a YAML reader."""
        record = make_prompt(
            title='Ask: "why?" #1',
            description="Colons: everywhere",
            tags=["a: b", 'quote "x"', "true"],
            rating_avg=4.5,
            rating_count=12,
        )
        post = frontmatter.loads(render_markdown(record))

        assert post["title"] == 'Ask: "why?" #1'
        assert post["description"] == "Colons: everywhere"
        assert post["tags"] == ["a: b", 'quote "x"', "true"]
        assert post["is_public"] is True
        assert post["rating_avg"] == 4.5
        assert post["rating_count"] == 12
        assert post.content.startswith('# Ask: "why?" #1')

    @pytest.mark.parametrize(
        "value",
        ["2024-01-01", "0x1F", "0b101", ".inf", "-.Inf", ".nan", "0o17", "1_000", "~", "Bell\x07"],
    )
    def test_scalar_lookalikes_stay_strings(self, make_skill, value: str) -> None:
        """Test values a YAML reader would turn into dates or numbers come back unchanged."""
        record = make_skill(title=value, category=value, tags=[value])
        post = frontmatter.loads(render_markdown(record))

        assert post["title"] == value
        assert post["category"] == value
        assert post["tags"] == [value]

    def test_render_frontmatter(self) -> None:
        assert render_frontmatter([("a", 1), ("b", "x y")]) == '---\na: 1\nb: "x y"\n---'

    def test_deterministic(self, prompt, skill, workflow) -> None:
        """Test rendering is byte-identical regardless of call order."""
        first = [render_markdown(r) for r in (prompt, skill, workflow)]
        second = [render_markdown(r) for r in (workflow, prompt, skill)]
        assert first == [second[1], second[2], second[0]]


class TestSerialize:
    """Test suite for serialize()."""

    def test_serialized_file(self, prompt) -> None:
        file = serialize(prompt, "lib")
        assert file.path == "lib/prompts/summarize-text.md"
        assert file.kind == ArtefactKind.PROMPT
        assert file.record_id == "p-1"
        assert file.content == render_markdown(prompt)

    def test_non_serializable_workflow(self, make_workflow) -> None:
        """Test a workflow document that JSON cannot represent is rejected."""
        record = make_workflow(json={"when": datetime(2024, 1, 1)})
        with pytest.raises(SerializationError) as exc_info:
            serialize(record)
        assert exc_info.value.record_id == "w-1"
        assert exc_info.value.status_code == 422

    def test_nan_in_workflow(self, make_workflow) -> None:
        with pytest.raises(SerializationError):
            serialize(make_workflow(json={"score": math.nan}))
