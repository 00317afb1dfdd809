"""
Raw OSM Entities
==================

Immutable input records delivered by an upstream OSM reader. Both kinds
carry an :class:`EntityKind` tag so a single driver can dispatch on it.

Example::

    from waynet.osm.entities import RawNode, RawWay

    entities = [
        RawNode(1, 4.900, 52.370),
        RawNode(2, 4.901, 52.370),
        RawWay(10, (1, 2), {"highway": "residential"}),
    ]
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class EntityKind(Enum):
    NODE = "node"
    WAY = "way"


@dataclass(frozen=True)
class RawNode:
    """An OSM node.

    Attributes:
        id: OSM node id.
        lon: Longitude (WGS84).
        lat: Latitude (WGS84).
    """

    id: int
    lon: float
    lat: float
    kind: EntityKind = field(default=EntityKind.NODE, init=False, repr=False)

    @property
    def position(self) -> Tuple[float, float]:
        return (self.lon, self.lat)


@dataclass(frozen=True)
class RawWay:
    """An OSM way.

    Attributes:
        id: OSM way id.
        node_ids: Ordered node references; a repeated id denotes a loop.
        tags: Tag map.
    """

    id: int
    node_ids: Tuple[int, ...]
    tags: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    kind: EntityKind = field(default=EntityKind.WAY, init=False, repr=False)

    def __post_init__(self):
        # accept any sequence of ids
        object.__setattr__(self, "node_ids", tuple(self.node_ids))

    @property
    def first_node_id(self) -> Optional[int]:
        return self.node_ids[0] if self.node_ids else None

    @property
    def last_node_id(self) -> Optional[int]:
        return self.node_ids[-1] if self.node_ids else None

    @property
    def last_index(self) -> int:
        return len(self.node_ids) - 1

    def find_first_loop(self, offset: int = 0) -> Optional[Tuple[int, int]]:
        """First pair of indices ``(i, j)``, ``offset <= i < j``, sharing a node.

        Pairs are ordered by ``i`` first, then ``j``.

        Returns:
            The index pair, or None when the remainder has no loop.
        """
        seen: Dict[int, int] = {}
        best: Optional[Tuple[int, int]] = None
        for j in range(offset, len(self.node_ids)):
            node_id = self.node_ids[j]
            i = seen.get(node_id)
            if i is not None:
                if best is None or i < best[0]:
                    best = (i, j)
            else:
                seen[node_id] = j
        return best

    def without_repeats(self) -> "RawWay":
        """This way with consecutive repeated node references collapsed.

        Returns:
            ``self`` when no node is repeated back to back, otherwise a
            new way sharing the id and tags.
        """
        collapsed = [
            node_id
            for index, node_id in enumerate(self.node_ids)
            if index == 0 or node_id != self.node_ids[index - 1]
        ]
        if len(collapsed) == len(self.node_ids):
            return self
        return RawWay(self.id, tuple(collapsed), self.tags)
