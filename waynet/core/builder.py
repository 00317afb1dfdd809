"""
Graph Builder
===============

Turns an ordered range of a way's node references into network
primitives: resolves or creates the end nodes, extracts the geometry,
reuses or creates the link and attaches up to two directed link
segments.

Nodes strictly inside the range are registered as *interior nodes* of
the resulting link so the topology corrector can later break links
where such nodes are shared.

Example::

    builder = GraphBuilder(network, catalog, engine, raw_nodes, settings)
    link = builder.build_partial(way, way_type, template, 0, len(way.node_ids) - 1)
"""

import logging
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

import numpy as np
from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.base import BaseGeometry

from waynet.core.catalog import AttributeCatalog, AttributeTemplate
from waynet.core.errors import InvariantViolation, MissingNodeError
from waynet.core.network import GraphNode, Link, LinkSegment, TransportNetwork
from waynet.osm import tags as t
from waynet.osm.entities import RawNode, RawWay
from waynet.osm.rules import DirectionalAttributes, TagRuleEngine
from waynet.osm.settings import ConverterSettings
from waynet.osm.tags import WayType
from waynet.utils.diagnostics import ConversionReport
from waynet.utils.geometry import COORDINATE_TOLERANCE

logger = logging.getLogger(__name__)

MissingNodePolicy = Callable[[Optional[int], Set[int]], None]


def raise_on_missing(way_id: Optional[int], missing: Set[int]) -> None:
    raise MissingNodeError(way_id, missing)


def log_on_missing(way_id: Optional[int], missing: Set[int]) -> None:
    logger.debug(
        "Way %s: %d referenced nodes unavailable, salvaging geometry", way_id, len(missing)
    )


def index_range(
    start: int, end: int, loop_range: Optional[Tuple[int, int]] = None
) -> List[int]:
    """Node indices from ``start`` to ``end`` inclusive.

    When ``end < start`` the range wraps around the loop ``loop_range``
    (first and last index of a closed node sequence): it runs from
    ``start`` to the end of the loop and continues after its first index.
    """
    if end >= start:
        return list(range(start, end + 1))
    if loop_range is None:
        raise InvariantViolation(f"Wrapping range {start}->{end} outside a loop")
    loop_start, loop_end = loop_range
    if not (loop_start <= end < start <= loop_end):
        raise InvariantViolation(
            f"Wrapping range {start}->{end} outside loop {loop_start}..{loop_end}"
        )
    return list(range(start, loop_end + 1)) + list(range(loop_start + 1, end + 1))


def salvage_geometry(coords: np.ndarray, closed: bool = False) -> Optional[BaseGeometry]:
    """Best geometry that can be made from the available coordinates.

    Args:
        coords: (N, 2) available vertices, without a repeated closing
            vertex for rings.
        closed: Whether the vertices describe a closed ring.

    Returns:
        A Polygon when a closed ring of at least three vertices forms a
        valid area, else a LineString for two or more vertices, a Point
        for one, or None.
    """
    if closed and len(coords) >= 3:
        polygon = Polygon(coords)
        if polygon.is_valid and polygon.area > 0:
            return polygon
    if len(coords) >= 2:
        return LineString(coords)
    if len(coords) == 1:
        return Point(coords[0])
    return None


class GraphBuilder:
    """Build links and link segments from (partial) ways.

    Args:
        network: Network receiving nodes, links and segments.
        catalog: Attribute template catalog.
        engine: Tag rule engine resolving per-direction attributes.
        nodes: Raw nodes by OSM id; ids absent here are unavailable.
        settings: Converter settings.
        report: Run report to record counters on.
        on_missing: Policy invoked with missing interior node ids. Defaults
            to the one selected by ``settings.missing_node_policy``.
    """

    def __init__(
        self,
        network: TransportNetwork,
        catalog: AttributeCatalog,
        engine: TagRuleEngine,
        nodes: Mapping[int, RawNode],
        settings: ConverterSettings,
        report: Optional[ConversionReport] = None,
        on_missing: Optional[MissingNodePolicy] = None,
    ):
        self.network = network
        self.catalog = catalog
        self.engine = engine
        self.nodes = nodes
        self.settings = settings
        self.report = report if report is not None else ConversionReport()
        if on_missing is None:
            on_missing = (
                raise_on_missing if settings.missing_node_policy == "raise" else log_on_missing
            )
        self.on_missing = on_missing
        # OSM node id -> ids of links it is an interior vertex of
        self.interior_nodes: Dict[int, List[int]] = {}

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def is_available(self, node_id: int) -> bool:
        return node_id in self.nodes

    def is_active(self, node_id: int) -> bool:
        """Whether a node already takes part in the network."""
        return (
            self.network.node_by_source(node_id) is not None
            or node_id in self.interior_nodes
        )

    def get_or_create_node(self, node_id: int) -> Optional[GraphNode]:
        """Graph node for an OSM node, created on first use.

        Returns:
            The node, or None when the OSM node is unavailable.
        """
        node = self.network.node_by_source(node_id)
        if node is not None:
            return node
        raw = self.nodes.get(node_id)
        if raw is None:
            return None
        return self.network.add_node(raw.position, source_id=node_id)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def extract_coordinates(
        self,
        way: RawWay,
        start: int,
        end: int,
        loop_range: Optional[Tuple[int, int]] = None,
    ) -> Tuple[np.ndarray, List[int]]:
        """Coordinates and node ids of the available nodes in a range.

        Missing nodes are passed to the missing node policy, which may
        raise. Consecutive duplicate coordinates are dropped.
        """
        coords: List[Tuple[float, float]] = []
        ids: List[int] = []
        missing: Set[int] = set()
        for index in index_range(start, end, loop_range):
            node_id = way.node_ids[index]
            raw = self.nodes.get(node_id)
            if raw is None:
                missing.add(node_id)
                continue
            if coords and np.all(
                np.abs(np.subtract(coords[-1], raw.position)) <= COORDINATE_TOLERANCE
            ):
                continue
            coords.append(raw.position)
            ids.append(node_id)

        if missing:
            self.on_missing(way.id, missing)
            self.report.salvaged_geometries += 1
        polyline = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
        return polyline, ids

    def extract_geometry(
        self,
        way: RawWay,
        start: int,
        end: int,
        loop_range: Optional[Tuple[int, int]] = None,
    ) -> Optional[BaseGeometry]:
        """Shapely geometry of a node range, salvaged around missing nodes.

        A range whose first and last node are the same OSM node is
        treated as a ring and yields a Polygon when one can be formed.
        """
        return self._salvage(way, start, end, loop_range)[0]

    def _salvage(
        self,
        way: RawWay,
        start: int,
        end: int,
        loop_range: Optional[Tuple[int, int]],
    ) -> Tuple[Optional[BaseGeometry], List[int]]:
        coords, ids = self.extract_coordinates(way, start, end, loop_range)
        closed = start != end and way.node_ids[start] == way.node_ids[end]
        if closed and len(ids) > 1 and ids[0] == ids[-1]:
            coords = coords[:-1]
        return salvage_geometry(coords, closed=closed), ids

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def build_link(
        self,
        way: RawWay,
        start: int,
        end: int,
        way_type: Optional[WayType] = None,
        circular: bool = False,
        loop_range: Optional[Tuple[int, int]] = None,
    ) -> Optional[Link]:
        """Create (or reuse) the link for ``way.node_ids[start..end]``.

        Outside circular ways, unavailable end nodes are tolerated by
        truncating the range to the first and last available node.

        Args:
            way: Source way.
            start: Index of the first node.
            end: Index of the last node; smaller than ``start`` to wrap
                around ``loop_range``.
            way_type: Classification, stored on the link.
            circular: Whether the range is part of a circular way.
            loop_range: First and last index of the enclosing loop.

        Returns:
            The link, or None when no link can be formed from the
            available nodes.

        Raises:
            InvariantViolation: If an index is out of range.
            MissingNodeError: If the missing node policy rejects the way.
        """
        size = len(way.node_ids)
        if not (0 <= start < size and 0 <= end < size) or start == end:
            raise InvariantViolation(
                f"Way {way.id}: invalid node range {start}->{end} for {size} nodes"
            )

        if not circular and start < end:
            start, end = self._truncate(way, start, end)
            if start is None:
                logger.debug("Way %s: fewer than two available nodes, discarded", way.id)
                return None

        if way.node_ids[start] == way.node_ids[end]:
            logger.debug("Way %s: range %d->%d starts and ends at the same node", way.id, start, end)
            return None
        if not (self.is_available(way.node_ids[start]) and self.is_available(way.node_ids[end])):
            logger.debug("Way %s: end node unavailable, discarded", way.id)
            return None

        # may raise through the missing node policy, before any node is created
        geometry, ids = self._salvage(way, start, end, loop_range)
        if not isinstance(geometry, LineString):
            logger.debug("Way %s: degenerate geometry, discarded", way.id)
            return None
        coords = np.asarray(geometry.coords, dtype=np.float64)

        node_a = self.get_or_create_node(way.node_ids[start])
        node_b = self.get_or_create_node(way.node_ids[end])
        existing = self.network.find_link(node_a.id, node_b.id, coords)
        if existing is not None:
            return existing

        link = self.network.add_link(
            node_a.id,
            node_b.id,
            coords,
            ids,
            source_way_id=way.id,
            name=way.tags.get(t.NAME),
            way_type=way_type.label if way_type is not None else "",
        )
        self._register_interior(way, link, index_range(start, end, loop_range)[1:-1])
        return link

    def _truncate(self, way: RawWay, start: int, end: int) -> Tuple[Optional[int], Optional[int]]:
        available = [i for i in range(start, end + 1) if self.is_available(way.node_ids[i])]
        if len(available) < 2:
            return None, None
        if available[0] != start or available[-1] != end:
            logger.debug(
                "Way %s: truncated to available nodes %d->%d", way.id, available[0], available[-1]
            )
        return available[0], available[-1]

    def _register_interior(self, way: RawWay, link: Link, indices: Iterable[int]) -> None:
        for index in indices:
            node_id = way.node_ids[index]
            if not self.is_available(node_id):
                logger.debug("Way %s: interior node %s unavailable", way.id, node_id)
                continue
            registered = self.interior_nodes.setdefault(node_id, [])
            if link.id not in registered:
                registered.append(link.id)

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    def build_segments(
        self,
        link: Link,
        way: RawWay,
        template: AttributeTemplate,
        forward: Optional[DirectionalAttributes],
        backward: Optional[DirectionalAttributes],
        forward_ab: bool = True,
    ) -> List[LinkSegment]:
        """Attach a segment per direction with at least one mapped mode.

        Directions the link already has a segment for are left untouched.

        Args:
            link: Link to attach the segments to.
            way: Source way.
            template: Classification template of the way.
            forward: Resolved forward attributes, None to omit.
            backward: Resolved backward attributes, None to omit.
            forward_ab: Whether the way's forward direction runs from the
                link's node a to node b.

        Returns:
            The created segments.
        """
        segments: List[LinkSegment] = []
        for attrs, direction_ab in ((forward, forward_ab), (backward, not forward_ab)):
            if attrs is None or not attrs.is_open:
                continue
            if (link.segment_ab if direction_ab else link.segment_ba) is not None:
                continue
            modes = self._map_modes(attrs.allowed_modes)
            if not modes:
                continue
            final = self.catalog.get_or_create_derived(
                template,
                self._map_modes(attrs.added_modes),
                self._map_modes(attrs.removed_modes),
            )
            segment = self.network.add_segment(
                link,
                direction_ab,
                modes,
                attrs.speed_limit_kmh,
                attrs.lane_count,
                final,
                source_way_id=way.id,
            )
            segments.append(segment)
            self.report.segments_total += 1
            if attrs.speed_defaulted:
                self.report.missing_speed_limit += 1
            if attrs.lanes_defaulted:
                self.report.missing_lanes += 1
        return segments

    def _map_modes(self, osm_modes) -> FrozenSet[str]:
        mapping = self.settings.mode_mapping
        return frozenset(mapping[m] for m in osm_modes if m in mapping)

    def resolve_attributes(
        self, way: RawWay, way_type: WayType
    ) -> Tuple[DirectionalAttributes, DirectionalAttributes]:
        """Forward and backward attributes of a way."""
        lhd = self.settings.left_hand_drive
        return (
            self.engine.resolve_directional_attributes(way.tags, True, lhd, way_type, way.id),
            self.engine.resolve_directional_attributes(way.tags, False, lhd, way_type, way.id),
        )

    def build_partial(
        self,
        way: RawWay,
        way_type: WayType,
        template: AttributeTemplate,
        start: int,
        end: int,
        circular: bool = False,
        keep_forward: Optional[bool] = None,
        loop_range: Optional[Tuple[int, int]] = None,
    ) -> Optional[Link]:
        """Build the link and segments for a node range of a way.

        Args:
            way: Source way.
            way_type: Classification of the way.
            template: Classification template.
            start: First node index.
            end: Last node index (wraps when smaller than ``start``).
            circular: Whether the range belongs to a circular way.
            keep_forward: Force a single travel direction: True keeps only
                the forward segment, False only the backward one.
            loop_range: First and last index of the enclosing loop.

        Returns:
            The link, or None when nothing was built.
        """
        forward, backward = self.resolve_attributes(way, way_type)
        if keep_forward is True:
            backward = None
        elif keep_forward is False:
            forward = None
        if not (forward is not None and forward.is_open) and not (
            backward is not None and backward.is_open
        ):
            logger.debug("Way %s: no accessible direction, no link built", way.id)
            return None

        link = self.build_link(way, start, end, way_type, circular, loop_range)
        if link is None:
            return None
        forward_ab = link.node_ids[0] == self._first_available(way, start, end, loop_range)
        self.build_segments(link, way, template, forward, backward, forward_ab)
        return link

    def _first_available(
        self, way: RawWay, start: int, end: int, loop_range: Optional[Tuple[int, int]]
    ) -> Optional[int]:
        for index in index_range(start, end, loop_range):
            if self.is_available(way.node_ids[index]):
                return way.node_ids[index]
        return None
