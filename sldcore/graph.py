"""
Tag-keyed element map shared by validation, chain discovery and analysis.

All relationships in an SLD are tag references. The map below is the single
owner of element descriptors; every cross-reference is a lookup into it.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .models import Branch, Bus, ElementKind, PassiveElement

logger = logging.getLogger(__name__)


@dataclass
class ElementInfo:
    """Descriptor for any element with a tag."""
    tag: str
    type: str               # "Bus", "Cable", "Transformer", "Switch", ...
    kind: ElementKind
    from_element: Optional[str] = None
    to_element: Optional[str] = None

    def references(self, tag: str) -> bool:
        """True if either side points at `tag`."""
        return self.from_element == tag or self.to_element == tag

    def side_of(self, tag: str) -> Optional[str]:
        """Which side ("from"/"to") points at `tag`, if any."""
        if self.from_element == tag:
            return "from"
        if self.to_element == tag:
            return "to"
        return None

    def other_side(self, previous: str) -> Optional[str]:
        """The reference on the side opposite to the one pointing at `previous`."""
        if self.from_element == previous:
            return self.to_element
        return self.from_element


class ElementMap:
    """
    Map of tag -> ElementInfo plus the set of bus tags.

    Later registrations of a duplicate tag replace earlier ones.
    """

    def __init__(self):
        self._elements: dict[str, ElementInfo] = {}
        self.bus_tags: set[str] = set()

    @classmethod
    def build(
        cls,
        buses: Iterable[Bus],
        branches: Iterable[Branch],
        passive_elements: Iterable[PassiveElement],
    ) -> "ElementMap":
        """Register buses, then branches, then passive elements."""
        element_map = cls()
        for bus in buses or []:
            element_map.add(ElementInfo(tag=bus.tag, type="Bus", kind=ElementKind.BUS))
        for branch in branches or []:
            element_map.add(ElementInfo(
                tag=branch.tag,
                type=branch.category,
                kind=ElementKind.BRANCH,
                from_element=branch.from_element,
                to_element=branch.to_element,
            ))
        for element in passive_elements or []:
            element_map.add(ElementInfo(
                tag=element.tag,
                type=element.category,
                kind=ElementKind.NON_BRANCH,
                from_element=element.from_element,
                to_element=element.to_element,
            ))
        logger.debug("Registered %d elements (%d buses)", len(element_map), len(element_map.bus_tags))
        return element_map

    def add(self, info: ElementInfo):
        if info.tag in self._elements:
            logger.debug("Duplicate tag '%s' replaces earlier registration", info.tag)
        self._elements[info.tag] = info
        if info.kind == ElementKind.BUS:
            self.bus_tags.add(info.tag)

    def get(self, tag: Optional[str]) -> Optional[ElementInfo]:
        if not tag:
            return None
        return self._elements.get(tag)

    def is_bus(self, tag: Optional[str]) -> bool:
        return bool(tag) and tag in self.bus_tags

    def of_kind(self, kind: ElementKind) -> list[ElementInfo]:
        """Elements of one kind, in registration order."""
        return [e for e in self._elements.values() if e.kind == kind]

    def __contains__(self, tag: object) -> bool:
        return tag in self._elements

    def __iter__(self) -> Iterator[ElementInfo]:
        return iter(self._elements.values())

    def __len__(self) -> int:
        return len(self._elements)
