"""Swimlane layout tree parsing and field path resolution.

An application's layout is a tree of sections, tab groups, tabs and
field placements. Each raw node is parsed once into a typed variant
below; resolution then walks the typed tree and records, for every
placed field, the breadcrumb of containers leading to it.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from .models import LayoutNode

SECTION_TYPE = "Core.Models.Layouts.SectionLayout, Core"
FIELD_TYPE = "Core.Models.Layouts.FieldLayout, Core"
TAB_GROUP_TYPE = "Core.Models.Layouts.TabLayout, Core"
TAB_TYPE = "Core.Models.Layouts.Tabs, Core"

LayoutPath = tuple[LayoutNode, ...]


@dataclass(frozen=True)
class SectionLayout:
    id: str
    name: str | None
    layout_type: str | None
    children: tuple["LayoutItem", ...] | None


@dataclass(frozen=True)
class TabGroupLayout:
    """Container of tabs. Contributes no breadcrumb node of its own."""

    tabs: tuple["LayoutItem", ...] | None


@dataclass(frozen=True)
class TabLayout:
    id: str
    name: str | None
    layout_type: str | None
    children: tuple["LayoutItem", ...] | None


@dataclass(frozen=True)
class FieldLayout:
    field_id: str | None
    layout_type: str | None


@dataclass(frozen=True)
class UnknownLayout:
    type_name: str | None


LayoutItem = SectionLayout | TabGroupLayout | TabLayout | FieldLayout | UnknownLayout


def _parse_children(raw: Any) -> tuple[LayoutItem, ...] | None:
    if not isinstance(raw, list):
        return None
    return tuple(parse_layout_item(child) for child in raw)


def parse_layout_item(raw: Mapping[str, Any]) -> LayoutItem:
    """Parse one raw layout node into its typed variant."""
    if not isinstance(raw, Mapping):
        return UnknownLayout(type_name=None)

    type_name = raw.get("$type")
    if type_name == SECTION_TYPE:
        return SectionLayout(
            id=raw.get("id"),
            name=raw.get("name"),
            layout_type=raw.get("layoutType"),
            children=_parse_children(raw.get("children")),
        )
    if type_name == TAB_TYPE:
        return TabLayout(
            id=raw.get("id"),
            name=raw.get("name"),
            layout_type=raw.get("layoutType"),
            children=_parse_children(raw.get("children")),
        )
    if type_name == TAB_GROUP_TYPE:
        return TabGroupLayout(tabs=_parse_children(raw.get("tabs")))
    if type_name == FIELD_TYPE:
        return FieldLayout(field_id=raw.get("fieldId"), layout_type=raw.get("layoutType"))
    return UnknownLayout(type_name=type_name)


def parse_layout(raw_layout: Iterable[Mapping[str, Any]] | None) -> tuple[LayoutItem, ...]:
    """Parse an application's top-level layout list."""
    return tuple(parse_layout_item(item) for item in raw_layout or ())


class LayoutResolver:
    """Computes the layout path of every field placed on a layout tree.

    Args:
        field_name: Resolves a field id to its display name (None if unknown)
    """

    def __init__(self, field_name: Callable[[str], str | None]):
        self._field_name = field_name

    def resolve(self, items: Iterable[LayoutItem]) -> dict[str, LayoutPath]:
        """Map each placed field id to its root-to-leaf path."""
        paths: dict[str, LayoutPath] = {}
        for item in items:
            self._visit(item, (), paths)
        return paths

    def _visit(self, item: LayoutItem, path: LayoutPath, paths: dict[str, LayoutPath]) -> None:
        # Paths are tuples: every branch extends its own copy
        if isinstance(item, (SectionLayout, TabLayout)):
            if item.children is None:
                return
            node = LayoutNode(id=item.id, name=item.name, layout_type=item.layout_type)
            branch = path + (node,)
            for child in item.children:
                self._visit(child, branch, paths)
        elif isinstance(item, TabGroupLayout):
            for tab in item.tabs or ():
                self._visit(tab, path, paths)
        elif isinstance(item, FieldLayout):
            if not item.field_id:
                return
            node = LayoutNode(
                id=item.field_id,
                name=self._field_name(item.field_id),
                layout_type=item.layout_type,
            )
            paths[item.field_id] = path + (node,)
        # UnknownLayout: newer schema node kinds are ignored
