"""
Transport Network Graph
=========================

Arena-backed graph of nodes, undirected links and directed link
segments. Entities are addressed by dense integer ids (their index in
the arena); a separate map resolves OSM node ids to graph nodes. Links
that are broken are deactivated and replaced, never deleted, so ids held
elsewhere never dangle.

Example::

    from waynet.core.network import TransportNetwork

    net = TransportNetwork()
    a = net.add_node((4.90, 52.37), source_id=1)
    b = net.add_node((4.91, 52.37), source_id=2)
    link = net.add_link(a.id, b.id, [(4.90, 52.37), (4.91, 52.37)], [1, 2])
    G = net.to_networkx()
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

import networkx as nx
import numpy as np

from waynet.core.catalog import AttributeTemplate
from waynet.core.errors import InvariantViolation
from waynet.utils.geometry import (
    as_polyline,
    find_vertex_index,
    polyline_length,
    polylines_equal,
)

logger = logging.getLogger(__name__)


@dataclass
class GraphNode:
    """A network node.

    Attributes:
        id: Dense arena id.
        position: (lon, lat) in degrees.
        source_id: OSM node id, None for nodes with no OSM counterpart.
    """

    id: int
    position: Tuple[float, float]
    source_id: Optional[int] = None


@dataclass
class Link:
    """An undirected edge between two graph nodes.

    Attributes:
        id: Dense arena id.
        node_a: Id of the node at the start of the geometry.
        node_b: Id of the node at the end of the geometry.
        geometry: (N, 2) polyline from node A to node B.
        node_ids: OSM node id of each geometry vertex (None if unknown).
        length_m: Great-circle length of the geometry.
        source_way_id: OSM way the link was built from.
        name: Value of the way's ``name`` tag.
        way_type: Classification label of the source way.
        segment_ab: Id of the A to B link segment, if any.
        segment_ba: Id of the B to A link segment, if any.
        active: False once the link has been broken and replaced.
        parent_id: Link this one was split from.
    """

    id: int
    node_a: int
    node_b: int
    geometry: np.ndarray
    node_ids: List[Optional[int]]
    length_m: float
    source_way_id: Optional[int] = None
    name: Optional[str] = None
    way_type: str = ""
    segment_ab: Optional[int] = None
    segment_ba: Optional[int] = None
    active: bool = True
    parent_id: Optional[int] = None


@dataclass
class LinkSegment:
    """One traversable direction of a link.

    Attributes:
        id: Dense arena id.
        link_id: Parent link.
        direction_ab: True when travelling from node A to node B.
        modes: Internal mode ids allowed on the segment.
        speed_limit_kmh: Speed limit.
        lane_count: Number of lanes.
        template: Attribute template (capacity, density, mode speed caps).
        source_way_id: OSM way the segment was built from.
    """

    id: int
    link_id: int
    direction_ab: bool
    modes: FrozenSet[str]
    speed_limit_kmh: float
    lane_count: int
    template: AttributeTemplate
    source_way_id: Optional[int] = None

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": int(self.id),
            "link_id": int(self.link_id),
            "direction": "ab" if self.direction_ab else "ba",
            "mode_set": sorted(self.modes),
            "speed_limit_kmh": float(self.speed_limit_kmh),
            "lane_count": int(self.lane_count),
            "template_id": int(self.template.id),
            "source_way_id": self.source_way_id,
        }


class TransportNetwork:
    """Arena of nodes, links and link segments."""

    def __init__(self):
        self._nodes: List[GraphNode] = []
        self._links: List[Link] = []
        self._segments: List[LinkSegment] = []
        self._node_by_source: Dict[int, int] = {}
        self._links_by_pair: Dict[Tuple[int, int], List[int]] = {}
        self._links_at_node: Dict[int, Set[int]] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def nodes(self) -> List[GraphNode]:
        return list(self._nodes)

    def links(self) -> List[Link]:
        """Active links, broken links excluded."""
        return [link for link in self._links if link.active]

    def link_segments(self) -> List[LinkSegment]:
        """Segments of active links."""
        return [s for s in self._segments if self._links[s.link_id].active]

    def node(self, node_id: int) -> GraphNode:
        return self._nodes[node_id]

    def link(self, link_id: int) -> Link:
        return self._links[link_id]

    def segment(self, segment_id: int) -> LinkSegment:
        return self._segments[segment_id]

    def node_by_source(self, source_id: int) -> Optional[GraphNode]:
        index = self._node_by_source.get(source_id)
        return self._nodes[index] if index is not None else None

    def links_at(self, node_id: int) -> List[Link]:
        return [self._links[i] for i in sorted(self._links_at_node.get(node_id, ()))]

    def degree(self, node_id: int) -> int:
        return len(self._links_at_node.get(node_id, ()))

    def segments_of(self, link: Link) -> List[LinkSegment]:
        return [
            self._segments[s]
            for s in (link.segment_ab, link.segment_ba)
            if s is not None
        ]

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(
        self, position: Tuple[float, float], source_id: Optional[int] = None
    ) -> GraphNode:
        if source_id is not None and source_id in self._node_by_source:
            raise InvariantViolation(f"Node for OSM node {source_id} already exists")
        node = GraphNode(
            id=len(self._nodes),
            position=(float(position[0]), float(position[1])),
            source_id=source_id,
        )
        self._nodes.append(node)
        if source_id is not None:
            self._node_by_source[source_id] = node.id
        return node

    def add_link(
        self,
        node_a: int,
        node_b: int,
        geometry: Sequence[Tuple[float, float]],
        node_ids: Sequence[Optional[int]],
        source_way_id: Optional[int] = None,
        name: Optional[str] = None,
        way_type: str = "",
        parent_id: Optional[int] = None,
    ) -> Link:
        """Create a link between two distinct nodes.

        Raises:
            InvariantViolation: If both ends are the same node, the
                geometry has fewer than two vertices or does not match
                ``node_ids`` in length.
        """
        if node_a == node_b:
            raise InvariantViolation(f"Link endpoints must differ, got node {node_a} twice")
        polyline = as_polyline(geometry)
        if len(polyline) < 2:
            raise InvariantViolation("Link geometry needs at least two vertices")
        if len(node_ids) != len(polyline):
            raise InvariantViolation(
                f"{len(node_ids)} node ids for {len(polyline)} geometry vertices"
            )
        link = Link(
            id=len(self._links),
            node_a=node_a,
            node_b=node_b,
            geometry=polyline,
            node_ids=list(node_ids),
            length_m=polyline_length(polyline),
            source_way_id=source_way_id,
            name=name,
            way_type=way_type,
            parent_id=parent_id,
        )
        self._links.append(link)
        self._links_by_pair.setdefault(self._pair(node_a, node_b), []).append(link.id)
        self._links_at_node.setdefault(node_a, set()).add(link.id)
        self._links_at_node.setdefault(node_b, set()).add(link.id)
        return link

    def find_link(
        self, node_a: int, node_b: int, geometry: np.ndarray
    ) -> Optional[Link]:
        """Active link between two nodes with identical geometry.

        The geometry is compared in the orientation of the stored link.
        """
        for link_id in self._links_by_pair.get(self._pair(node_a, node_b), ()):
            link = self._links[link_id]
            if not link.active:
                continue
            candidate = geometry if link.node_a == node_a else geometry[::-1]
            if polylines_equal(link.geometry, candidate):
                return link
        return None

    def add_segment(
        self,
        link: Link,
        direction_ab: bool,
        modes: FrozenSet[str],
        speed_limit_kmh: float,
        lane_count: int,
        template: AttributeTemplate,
        source_way_id: Optional[int] = None,
    ) -> LinkSegment:
        """Attach a directed segment to a link.

        Raises:
            InvariantViolation: If the link already has a segment in that
                direction.
        """
        existing = link.segment_ab if direction_ab else link.segment_ba
        if existing is not None:
            raise InvariantViolation(
                f"Link {link.id} already has a {'ab' if direction_ab else 'ba'} segment"
            )
        segment = LinkSegment(
            id=len(self._segments),
            link_id=link.id,
            direction_ab=direction_ab,
            modes=frozenset(modes),
            speed_limit_kmh=float(speed_limit_kmh),
            lane_count=int(lane_count),
            template=template,
            source_way_id=source_way_id,
        )
        self._segments.append(segment)
        if direction_ab:
            link.segment_ab = segment.id
        else:
            link.segment_ba = segment.id
        return segment

    def remove_link(self, link: Link) -> None:
        """Deactivate a link; its segments leave the active set with it."""
        link.active = False
        pair = self._links_by_pair.get(self._pair(link.node_a, link.node_b), [])
        if link.id in pair:
            pair.remove(link.id)
        self._links_at_node.get(link.node_a, set()).discard(link.id)
        self._links_at_node.get(link.node_b, set()).discard(link.id)

    def break_link(self, link: Link, node: GraphNode) -> Tuple[Link, Link]:
        """Split a link at an interior vertex located at ``node``.

        The two replacement links reproduce the original geometry and
        carry copies of its segments. The original is deactivated.

        Args:
            link: Active link to split.
            node: Node positioned on an interior vertex of the link.

        Returns:
            (first, second) replacement links, in geometry order.

        Raises:
            InvariantViolation: If the link is inactive or the node is not
                an interior vertex of it.
        """
        if not link.active:
            raise InvariantViolation(f"Link {link.id} was already replaced")
        index = find_vertex_index(link.geometry, node.position, interior_only=True)
        if index is None:
            raise InvariantViolation(
                f"Node {node.id} is not an interior vertex of link {link.id}"
            )

        pieces = []
        for lo, hi, a, b in (
            (0, index + 1, link.node_a, node.id),
            (index, len(link.geometry), node.id, link.node_b),
        ):
            piece = self.add_link(
                a,
                b,
                link.geometry[lo:hi],
                link.node_ids[lo:hi],
                source_way_id=link.source_way_id,
                name=link.name,
                way_type=link.way_type,
                parent_id=link.id,
            )
            for segment in self.segments_of(link):
                self.add_segment(
                    piece,
                    segment.direction_ab,
                    segment.modes,
                    segment.speed_limit_kmh,
                    segment.lane_count,
                    segment.template,
                    segment.source_way_id,
                )
            pieces.append(piece)

        self.remove_link(link)
        logger.debug(
            "Broke link %d at node %d into %d and %d",
            link.id, node.id, pieces[0].id, pieces[1].id,
        )
        return pieces[0], pieces[1]

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_networkx(self) -> nx.MultiDiGraph:
        """Export active nodes and link segments to a networkx graph.

        Nodes carry ``x``/``y`` (lon/lat) and ``source_id``; one edge per
        active link segment carries ``link_id``, ``modes``, ``speed_kmh``,
        ``lanes``, ``length`` and ``way_id``.
        """
        G = nx.MultiDiGraph()
        for node in self._nodes:
            G.add_node(
                node.id, x=node.position[0], y=node.position[1], source_id=node.source_id
            )
        for segment in self.link_segments():
            link = self._links[segment.link_id]
            u, v = (link.node_a, link.node_b) if segment.direction_ab else (link.node_b, link.node_a)
            G.add_edge(
                u,
                v,
                key=segment.id,
                link_id=link.id,
                modes=sorted(segment.modes),
                speed_kmh=segment.speed_limit_kmh,
                lanes=segment.lane_count,
                length=link.length_m,
                way_id=segment.source_way_id,
                name=link.name,
            )
        return G

    @staticmethod
    def _pair(node_a: int, node_b: int) -> Tuple[int, int]:
        return (node_a, node_b) if node_a <= node_b else (node_b, node_a)
