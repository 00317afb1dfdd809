"""
Topology Correction
=====================

Post-pass that makes every node shared between links a proper link
endpoint. A node registered as an interior vertex of a link is broken out
of that link when it is also an endpoint of another link, or when it is
an interior vertex of two or more links.

Broken links are replaced by their pieces. Interior node registrations
keep referring to the link that existed at build time; a lineage map from
that original id to its active pieces redirects later breaks to the piece
that actually contains the node.

Example::

    corrector = TopologyCorrector(builder.interior_nodes, raw_nodes, report)
    corrector.correct(network)
"""

import logging
from typing import Dict, List, Mapping, Optional

from waynet.core.network import GraphNode, Link, TransportNetwork
from waynet.osm.entities import RawNode
from waynet.utils.diagnostics import ConversionReport
from waynet.utils.geometry import find_vertex_index

logger = logging.getLogger(__name__)

Lineage = Dict[int, List[int]]


class TopologyCorrector:
    """Break links at shared nodes.

    Args:
        interior_nodes: OSM node id to the ids of the links it was
            registered as an interior vertex of. Consumed by
            :meth:`correct`.
        nodes: Raw nodes by OSM id, used to materialize graph nodes for
            nodes shared only by link interiors.
        report: Run report receiving the break count.
    """

    def __init__(
        self,
        interior_nodes: Dict[int, List[int]],
        nodes: Mapping[int, RawNode],
        report: Optional[ConversionReport] = None,
    ):
        self.interior_nodes = interior_nodes
        self.nodes = nodes
        self.report = report if report is not None else ConversionReport()

    def correct(self, network: TransportNetwork) -> Lineage:
        """Run the correction once over the network.

        Every interior registration is cleared once processed, so calling
        this again is a no-op.

        Args:
            network: Network to correct in place.

        Returns:
            Lineage of every broken original link id to its active pieces.
        """
        lineage: Lineage = {}

        # endpoints that are also interior to other links
        for node_id in range(network.num_nodes):
            node = network.node(node_id)
            if node.source_id is None or network.degree(node_id) == 0:
                continue
            registered = self.interior_nodes.pop(node.source_id, None)
            if registered:
                self.break_links_at(network, node, registered, lineage)

        # nodes shared by several link interiors only
        for source_id in sorted(self.interior_nodes):
            registered = self.interior_nodes[source_id]
            if len(set(registered)) < 2:
                continue
            node = network.node_by_source(source_id)
            if node is None:
                raw = self.nodes.get(source_id)
                if raw is None:
                    logger.warning("Shared interior node %s unavailable, not broken", source_id)
                    continue
                node = network.add_node(raw.position, source_id=source_id)
            self.break_links_at(network, node, registered, lineage)
        self.interior_nodes.clear()

        return lineage

    def break_links_at(
        self,
        network: TransportNetwork,
        node: GraphNode,
        link_ids: List[int],
        lineage: Lineage,
    ) -> int:
        """Break each registered link at ``node``.

        Args:
            network: Network being corrected.
            node: Node to become an endpoint.
            link_ids: Links (as registered at build time) that have the
                node as an interior vertex.
            lineage: Original link id to active pieces, updated in place.

        Returns:
            Number of links broken.
        """
        broken = 0
        for link_id in dict.fromkeys(link_ids):
            target = self.resolve(network, link_id, node, lineage)
            if target is None:
                logger.warning(
                    "No piece of link %d contains node %d, break skipped", link_id, node.id
                )
                continue
            first, second = network.break_link(target, node)
            pieces = lineage.get(link_id, [link_id])
            lineage[link_id] = [p for p in pieces if p != target.id] + [first.id, second.id]
            broken += 1
        self.report.broken_links += broken
        return broken

    @staticmethod
    def resolve(
        network: TransportNetwork, link_id: int, node: GraphNode, lineage: Lineage
    ) -> Optional[Link]:
        """Active link descending from ``link_id`` with ``node`` in its interior."""
        candidates = lineage.get(link_id, [link_id])
        for candidate_id in candidates:
            link = network.link(candidate_id)
            if not link.active or node.id in (link.node_a, link.node_b):
                continue
            if find_vertex_index(link.geometry, node.position, interior_only=True) is not None:
                return link
        return None
