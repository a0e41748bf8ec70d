"""Tests for chapter/section detection over plain text."""
from __future__ import annotations

from uuid import uuid4

from docstruct.hierarchy import SectionTree, build_document_sections, detect_sections
from docstruct.hierarchy.detector import FALLBACK_TITLE
from docstruct.models.section_type import SectionType

DOC_ID = uuid4()


class TestScenarios:
    def test_chapter_content_and_section(self) -> None:
        text = "Chapter 1: Intro\nHello world.\n1. Background\nSome text here."
        chapter, content, section = build_document_sections(DOC_ID, text)

        assert chapter.section_type is SectionType.CHAPTER
        assert chapter.title == "Chapter 1: Intro"
        assert chapter.hierarchy_path == "1"
        assert chapter.hierarchy_level == 0
        assert chapter.content == ""
        assert chapter.parent_section_id is None

        assert content.section_type is SectionType.CONTENT
        assert content.title == FALLBACK_TITLE
        assert content.content == "Hello world."
        assert content.parent_section_id is None
        assert chapter.section_order < content.section_order < section.section_order

        assert section.section_type is SectionType.SECTION
        assert section.title == "1. Background"
        assert section.hierarchy_path == "1.1"
        assert section.hierarchy_level == 1
        assert section.parent_section_id == chapter.id
        assert section.content == "Some text here."
        assert section.word_count == 3

    def test_full_path_of_nested_section(self) -> None:
        text = "Chapter 1: Intro\nHello world.\n1. Background\nSome text here."
        sections = build_document_sections(DOC_ID, text)
        tree = SectionTree(sections)
        background = next(s for s in sections if s.title == "1. Background")
        assert tree.full_path(background.id) == "Chapter 1: Intro > 1. Background"

    def test_empty_text(self) -> None:
        result = detect_sections(DOC_ID, "")
        assert len(result) == 0
        assert not result.success

        (fallback,) = build_document_sections(DOC_ID, "")
        assert fallback.section_type is SectionType.CONTENT
        assert fallback.content == ""
        assert fallback.word_count == 0
        assert fallback.char_count == 0

    def test_text_without_markers_becomes_one_content_section(self) -> None:
        text = "alpha beta\ngamma"
        (section,) = build_document_sections(DOC_ID, text)
        assert section.section_type is SectionType.CONTENT
        assert section.content == text.strip()
        assert section.word_count == 3
        assert section.hierarchy_level == 0

    def test_unmarked_text_is_trimmed_per_line(self) -> None:
        (section,) = build_document_sections(DOC_ID, "alpha beta\n\n    gamma delta")
        assert section.content == "alpha beta\ngamma delta"
        assert section.word_count == 4


class TestMarkers:
    def test_sections_are_numbered_per_chapter(self) -> None:
        text = "Chapter 1: A\n1. X\n2. Y\nChapter 2: B\n1. Z"
        sections = detect_sections(DOC_ID, text).sections
        assert [s.hierarchy_path for s in sections] == ["1", "1.1", "1.2", "2", "2.1"]
        assert [s.section_order for s in sections] == [1, 2, 3, 4, 5]
        assert sections[4].parent_section_id == sections[3].id

    def test_chapter_markers_are_case_insensitive_and_accept_dash(self) -> None:
        (chapter,) = detect_sections(DOC_ID, "chapter 4 - Methods").sections
        assert chapter.section_type is SectionType.CHAPTER
        assert chapter.title == "Chapter 4: Methods"

    def test_multi_digit_chapter_number(self) -> None:
        (chapter,) = detect_sections(DOC_ID, "Chapter 12: Results").sections
        assert chapter.title == "Chapter 12: Results"

    def test_bare_chapter_number_without_title_is_content(self) -> None:
        (section,) = detect_sections(DOC_ID, "Chapter 12").sections
        assert section.section_type is SectionType.CONTENT
        assert section.content == "Chapter 12"

    def test_section_before_any_chapter_is_a_root(self) -> None:
        section, = detect_sections(DOC_ID, "1. Scope\nApplies everywhere.").sections
        assert section.section_type is SectionType.SECTION
        assert section.parent_section_id is None
        assert section.hierarchy_path == "1"
        assert section.hierarchy_level == 0
        assert section.content == "Applies everywhere."

    def test_blank_lines_and_indentation_are_ignored(self) -> None:
        text = "\n   Chapter 1: Intro   \n\n\n   first line  \n\n second line\n"
        chapter, content = detect_sections(DOC_ID, text).sections
        assert chapter.title == "Chapter 1: Intro"
        assert content.content == "first line\nsecond line"

    def test_every_section_is_emitted_once(self) -> None:
        text = "Chapter 1: A\n1. X\nbody\n2. Y\nmore body\nChapter 2: B"
        sections = detect_sections(DOC_ID, text).sections
        ids = [s.id for s in sections]
        assert len(ids) == len(set(ids)) == 4

    def test_chapter_content_goes_to_a_root_content_section(self) -> None:
        text = "Chapter 1: A\npreface\nChapter 2: B\nclosing"
        sections = detect_sections(DOC_ID, text).sections
        assert [s.section_type for s in sections] == [
            SectionType.CHAPTER,
            SectionType.CONTENT,
            SectionType.CHAPTER,
            SectionType.CONTENT,
        ]
        assert [s.content for s in sections if s.is_content()] == ["preface", "closing"]

    def test_detected_tree_is_consistent(self) -> None:
        text = "Chapter 1: A\nintro\n1. X\nbody\n2. Y\n3. Z"
        sections = detect_sections(DOC_ID, text).sections
        assert SectionTree(sections).validate(strict_nesting=False) == []

    def test_default_pages(self) -> None:
        (section,) = detect_sections(DOC_ID, "plain text").sections
        assert section.page_start == section.page_end == 1
        assert section.page_range() == "1"
