"""
Circular Way Decomposition
============================

Ways whose node sequence revisits a node (roundabouts, loops) cannot be
turned into a single link since a link's two endpoints must differ. The
decomposer splits such a way into straight sections and perfect loops,
and splits each loop at the nodes where it connects to the rest of the
network ("anchors").

Loops that are a roundabout or tagged oneway are travelled in a single
direction: clockwise (forward) where traffic keeps left, anti-clockwise
(backward) elsewhere, unless a ``direction`` or ``oneway`` tag says
otherwise.

Example::

    decomposer = CircularWayDecomposer(builder, report)
    if decomposer.is_circular(way):
        links = decomposer.decompose(way, way_type, template)
"""

import logging
from typing import List, Optional, Tuple

from waynet.core.builder import GraphBuilder
from waynet.core.catalog import AttributeTemplate
from waynet.core.network import Link
from waynet.osm import tags as t
from waynet.osm.entities import RawWay
from waynet.osm.rules import circular_default_clockwise
from waynet.osm.tags import WayType
from waynet.utils.diagnostics import ConversionReport

logger = logging.getLogger(__name__)


class CircularWayDecomposer:
    """Split circular ways into partial links.

    Args:
        builder: Graph builder used for every produced section.
        report: Run report receiving dropped loop and skip counts.
    """

    def __init__(self, builder: GraphBuilder, report: Optional[ConversionReport] = None):
        self.builder = builder
        self.report = report if report is not None else builder.report

    @staticmethod
    def is_circular(way: RawWay) -> bool:
        """Whether a highway or railway way revisits one of its nodes."""
        if t.HIGHWAY not in way.tags and t.RAILWAY not in way.tags:
            return False
        return len(way.node_ids) > 2 and way.find_first_loop(0) is not None

    def travel_forward(self, way: RawWay) -> Optional[bool]:
        """Forced travel direction of loop sections.

        Returns:
            True to keep only the forward direction, False to keep only
            the backward one, None when both directions remain.
        """
        tags = way.tags
        if t.is_explicit_clockwise(tags):
            return True
        if t.is_explicit_anticlockwise(tags):
            return False
        if t.is_roundabout(tags):
            return circular_default_clockwise(self.builder.settings.left_hand_drive)
        if t.is_oneway(tags):
            return not t.is_reversed_oneway(tags)
        return None

    def decompose(
        self, way: RawWay, way_type: WayType, template: AttributeTemplate
    ) -> List[Link]:
        """Build all sections of a circular way.

        Args:
            way: Circular way.
            way_type: Classification of the way.
            template: Classification template.

        Returns:
            Links built for the way, in build order.
        """
        missing = [n for n in way.node_ids if not self.builder.is_available(n)]
        if missing:
            logger.debug(
                "Circular way %s references %d unavailable nodes, skipped", way.id, len(missing)
            )
            self.report.record_skip("circular_missing_nodes")
            return []
        return self.decompose_from(way, way_type, template, 0, [])

    def decompose_from(
        self,
        way: RawWay,
        way_type: WayType,
        template: AttributeTemplate,
        offset: int,
        built: List[Link],
    ) -> List[Link]:
        """Build the sections of ``way`` from index ``offset`` onwards.

        The section before the first loop is built as an ordinary partial
        link. The remainder after the loop is built before the loop itself
        so that its connections are available as anchors.

        Args:
            offset: Index to start searching for a loop from.
            built: Accumulator of links built so far.

        Returns:
            ``built``, extended with the new links.
        """
        last = way.last_index
        loop = way.find_first_loop(offset)
        if loop is None:
            if offset < last:
                self._build(way, way_type, template, offset, last, built)
            return built

        initial, final = loop
        if initial > offset:
            self._build(way, way_type, template, offset, initial, built)
        if final < last:
            self.decompose_from(way, way_type, template, final, built)
        self.decompose_loop(way, way_type, template, initial, final, built)
        return built

    def decompose_loop(
        self,
        way: RawWay,
        way_type: WayType,
        template: AttributeTemplate,
        initial: int,
        final: int,
        built: List[Link],
    ) -> List[Link]:
        """Split the perfect loop ``way.node_ids[initial..final]`` at its anchors.

        With two or more anchors, one link is built between each pair of
        consecutive anchors, wrapping around from the last to the first.
        With a single anchor the loop is split there and at the node
        opposite it. Without anchors the loop is dropped, unless the
        settings keep unanchored loops, in which case the loop's first node
        is used as anchor.

        Returns:
            ``built``, extended with the new links.
        """
        span = final - initial
        if span < 2:
            logger.debug("Way %s: degenerate loop %d->%d skipped", way.id, initial, final)
            return built

        anchors = [
            index
            for index in range(initial, final)
            if self.builder.is_active(way.node_ids[index])
        ]
        if not anchors:
            if self.builder.settings.discard_unanchored_loops:
                logger.warning(
                    "Way %s: loop %d->%d does not connect to the network, dropped",
                    way.id, initial, final,
                )
                self.report.dropped_loops += 1
                return built
            anchors = [initial]

        loop_range = (initial, final)
        if len(anchors) == 1:
            anchor = anchors[0]
            opposite = initial + ((anchor - initial) + span // 2) % span
            for start, end in ((anchor, opposite), (opposite, anchor)):
                self._build(way, way_type, template, start, end, built, loop_range)
            return built

        for start, end in self._consecutive(anchors):
            self._build(way, way_type, template, start, end, built, loop_range)
        return built

    @staticmethod
    def _consecutive(anchors: List[int]) -> List[Tuple[int, int]]:
        pairs = list(zip(anchors, anchors[1:]))
        pairs.append((anchors[-1], anchors[0]))
        return pairs

    def _build(
        self,
        way: RawWay,
        way_type: WayType,
        template: AttributeTemplate,
        start: int,
        end: int,
        built: List[Link],
        loop_range: Optional[Tuple[int, int]] = None,
    ) -> None:
        circular = loop_range is not None
        link = self.builder.build_partial(
            way,
            way_type,
            template,
            start,
            end,
            circular=circular,
            keep_forward=self.travel_forward(way) if circular else None,
            loop_range=loop_range,
        )
        if link is not None:
            built.append(link)
