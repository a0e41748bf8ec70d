"""Arena view over a document's sections.

Sections only store ``parent_section_id``; children are grouped on demand.
Every traversal is iterative and bounded by ``max_depth`` so a corrupted
parent chain surfaces as :class:`HierarchyError` instead of looping.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Protocol, Tuple

from docstruct.config import settings
from docstruct.exceptions import HierarchyError, SectionNotFound
from docstruct.models.section_type import SectionType

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " > "


class SectionNode(Protocol):
    """Attributes the tree needs; satisfied by SectionRecord and DocumentSection."""

    id: Hashable
    parent_section_id: Optional[Hashable]
    section_type: SectionType
    section_order: int
    hierarchy_level: int
    title: Optional[str]

    @property
    def display_label(self) -> str: ...


class SectionTree:
    """Parent/child queries over a flat collection of sections."""

    def __init__(self, sections: Iterable[SectionNode] = (), max_depth: Optional[int] = None) -> None:
        self.max_depth = max_depth or settings.max_hierarchy_depth
        self._nodes: Dict[Hashable, SectionNode] = {}
        self._position: Dict[Hashable, int] = {}
        self._children: Optional[Dict[Optional[Hashable], List[SectionNode]]] = None
        for section in sections:
            self._insert(section)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, section_id: Hashable) -> bool:
        return section_id in self._nodes

    def __iter__(self) -> Iterator[SectionNode]:
        return self.walk()

    def _insert(self, section: SectionNode) -> None:
        self._nodes[section.id] = section
        self._position.setdefault(section.id, len(self._position))
        self._children = None

    def _sort_key(self, section: SectionNode) -> Tuple[int, int]:
        return section.section_order, self._position[section.id]

    def _index(self) -> Dict[Optional[Hashable], List[SectionNode]]:
        if self._children is None:
            grouped: Dict[Optional[Hashable], List[SectionNode]] = defaultdict(list)
            for node in self._nodes.values():
                parent_id = node.parent_section_id
                # a parent outside the arena makes the node a local root
                grouped[parent_id if parent_id in self._nodes else None].append(node)
            for siblings in grouped.values():
                siblings.sort(key=self._sort_key)
            self._children = dict(grouped)
        return self._children

    def get(self, section_id: Hashable) -> SectionNode:
        try:
            return self._nodes[section_id]
        except KeyError:
            raise SectionNotFound(section_id) from None

    def parent(self, section_id: Hashable) -> Optional[SectionNode]:
        parent_id = self.get(section_id).parent_section_id
        if parent_id is None:
            return None
        return self._nodes.get(parent_id)

    def roots(self) -> List[SectionNode]:
        return list(self._index().get(None, []))

    def children(self, section_id: Hashable) -> List[SectionNode]:
        self.get(section_id)
        return list(self._index().get(section_id, []))

    def is_root(self, section_id: Hashable) -> bool:
        return self.parent(section_id) is None

    def is_leaf(self, section_id: Hashable) -> bool:
        return not self.children(section_id)

    def ancestors(self, section_id: Hashable) -> List[SectionNode]:
        """Ancestors from the root down to, but excluding, the section."""
        chain: List[SectionNode] = []
        seen = {section_id}
        current = self.parent(section_id)
        while current is not None:
            if current.id in seen or len(chain) >= self.max_depth:
                raise HierarchyError(f"Parent chain of section {section_id} does not reach a root")
            seen.add(current.id)
            chain.append(current)
            current = self.parent(current.id)
        chain.reverse()
        return chain

    def depth(self, section_id: Hashable) -> int:
        return len(self.ancestors(section_id))

    def full_path(self, section_id: Hashable) -> str:
        """Labels of the ancestors and the section itself, root first."""
        labels = [node.display_label for node in self.ancestors(section_id)]
        labels.append(self.get(section_id).display_label)
        return PATH_SEPARATOR.join(labels)

    def siblings(self, section_id: Hashable) -> List[SectionNode]:
        parent = self.parent(section_id)
        if parent is None:
            return []
        return [node for node in self.children(parent.id) if node.id != section_id]

    def descendants(self, section_id: Hashable) -> List[SectionNode]:
        """Pre-order traversal of the subtree, excluding the section."""
        index = self._index()
        found: List[SectionNode] = []
        stack: List[Tuple[SectionNode, int]] = [
            (child, 1) for child in reversed(index.get(self.get(section_id).id, []))
        ]
        while stack:
            node, level = stack.pop()
            if level > self.max_depth:
                raise HierarchyError(f"Subtree of section {section_id} exceeds depth {self.max_depth}")
            found.append(node)
            stack.extend((child, level + 1) for child in reversed(index.get(node.id, [])))
        return found

    def walk(self) -> Iterator[SectionNode]:
        """Pre-order traversal of the whole forest."""
        for root in self.roots():
            yield root
            yield from self.descendants(root.id)

    def add_child(self, parent_id: Hashable, child: SectionNode) -> SectionNode:
        """Attach ``child`` under ``parent_id``; sibling orders are left untouched."""
        parent = self.get(parent_id)
        if not SectionType(parent.section_type).can_have_children():
            raise HierarchyError(f"{parent.section_type} sections cannot have children")
        if child.id == parent_id or child.id in {node.id for node in self.ancestors(parent_id)}:
            raise HierarchyError(f"Attaching section {child.id} under {parent_id} would create a cycle")
        child.parent_section_id = parent.id
        self._insert(child)
        for node in (child, *self.descendants(child.id)):
            node.hierarchy_level = self.depth(node.id)
        return child

    def remove_child(self, parent_id: Hashable, child_id: Hashable) -> List[SectionNode]:
        """Detach and drop ``child_id`` together with its subtree."""
        child = self.get(child_id)
        if child.parent_section_id != parent_id:
            raise HierarchyError(f"Section {child_id} is not a child of {parent_id}")
        removed = [child, *self.descendants(child_id)]
        for node in removed:
            del self._nodes[node.id]
            del self._position[node.id]
        child.parent_section_id = None
        self._children = None
        return removed

    def validate(self, strict_nesting: Optional[bool] = None) -> List[str]:
        """Return a description of every structural invariant that does not hold."""
        strict = settings.strict_nesting if strict_nesting is None else strict_nesting
        problems: List[str] = []
        for parent_id, siblings in self._index().items():
            orders = [node.section_order for node in siblings]
            if len(orders) != len(set(orders)):
                problems.append(f"Duplicate section_order among children of {parent_id}")
            if parent_id is None:
                continue
            parent = self._nodes[parent_id]
            parent_type = SectionType(parent.section_type)
            if not parent_type.can_have_children():
                problems.append(f"{parent_type.value} section {parent_id} has children")
            if strict:
                for node in siblings:
                    if not SectionType(node.section_type).can_be_child_of(parent_type):
                        problems.append(f"{node.section_type} section {node.id} cannot nest under {parent_type.value}")
        for node in self._nodes.values():
            try:
                depth = self.depth(node.id)
            except HierarchyError as exc:
                problems.append(str(exc))
                continue
            if node.hierarchy_level != depth:
                problems.append(f"Section {node.id} has level {node.hierarchy_level} at depth {depth}")
            if strict and depth == 0 and not SectionType(node.section_type).can_be_child_of(None):
                problems.append(f"{node.section_type} section {node.id} cannot be a root")
        if problems:
            logger.debug("Section tree has %s invariant violations", len(problems))
        return problems
