"""Section kinds and the nesting lattice between them."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional


class SectionType(str, Enum):
    """Closed set of structural and content section kinds."""

    CHAPTER = "CHAPTER"
    SUB_CHAPTER = "SUB_CHAPTER"
    SECTION = "SECTION"
    SUB_SECTION = "SUB_SECTION"
    HEADING = "HEADING"
    PARAGRAPH = "PARAGRAPH"
    CONTENT = "CONTENT"

    @property
    def code(self) -> str:
        return self.value

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def hierarchy_level(self) -> int:
        """Intrinsic ordinal of the kind, 1 for chapters down to 7 for content."""
        return _LEVELS[self]

    def is_structural(self) -> bool:
        return self in _STRUCTURAL

    def is_content(self) -> bool:
        return self in _CONTENT

    def can_have_children(self) -> bool:
        return self in _CONTAINERS

    def can_be_child_of(self, parent_type: Optional["SectionType"]) -> bool:
        """Return True if this kind may nest directly under ``parent_type``.

        A ``None`` parent means a root position, which only chapters occupy.
        """
        return self in _ALLOWED_CHILDREN.get(parent_type, frozenset())


_DESCRIPTIONS: Dict[SectionType, str] = {
    SectionType.CHAPTER: "Main chapter",
    SectionType.SUB_CHAPTER: "Sub-chapter",
    SectionType.SECTION: "Section",
    SectionType.SUB_SECTION: "Sub-section",
    SectionType.HEADING: "Heading",
    SectionType.PARAGRAPH: "Paragraph",
    SectionType.CONTENT: "Content",
}

_LEVELS: Dict[SectionType, int] = {
    section_type: level for level, section_type in enumerate(SectionType, start=1)
}

_STRUCTURAL: FrozenSet[SectionType] = frozenset(
    {
        SectionType.CHAPTER,
        SectionType.SUB_CHAPTER,
        SectionType.SECTION,
        SectionType.SUB_SECTION,
        SectionType.HEADING,
    }
)
_CONTENT: FrozenSet[SectionType] = frozenset({SectionType.PARAGRAPH, SectionType.CONTENT})
_CONTAINERS: FrozenSet[SectionType] = frozenset(
    {
        SectionType.CHAPTER,
        SectionType.SUB_CHAPTER,
        SectionType.SECTION,
        SectionType.SUB_SECTION,
    }
)

_ALLOWED_CHILDREN: Dict[Optional[SectionType], FrozenSet[SectionType]] = {
    None: frozenset({SectionType.CHAPTER}),
    SectionType.CHAPTER: frozenset(
        {
            SectionType.SUB_CHAPTER,
            SectionType.SECTION,
            SectionType.HEADING,
            SectionType.PARAGRAPH,
            SectionType.CONTENT,
        }
    ),
    SectionType.SUB_CHAPTER: frozenset(
        {
            SectionType.SECTION,
            SectionType.SUB_SECTION,
            SectionType.HEADING,
            SectionType.PARAGRAPH,
            SectionType.CONTENT,
        }
    ),
    SectionType.SECTION: frozenset(
        {
            SectionType.SUB_SECTION,
            SectionType.HEADING,
            SectionType.PARAGRAPH,
            SectionType.CONTENT,
        }
    ),
    SectionType.SUB_SECTION: frozenset(
        {SectionType.HEADING, SectionType.PARAGRAPH, SectionType.CONTENT}
    ),
    SectionType.HEADING: frozenset({SectionType.PARAGRAPH, SectionType.CONTENT}),
}
