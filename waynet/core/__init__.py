"""
Core modules for network construction: the arena graph, attribute
templates, link building, topology correction and circular way handling.
"""

from waynet.core.errors import InvariantViolation, MissingNodeError, WaynetError
from waynet.core.network import GraphNode, Link, LinkSegment, TransportNetwork
from waynet.core.catalog import AttributeCatalog, AttributeTemplate
from waynet.core.builder import GraphBuilder
from waynet.core.topology import TopologyCorrector
from waynet.core.circular import CircularWayDecomposer
from waynet.core.pipeline import ConversionResult, NetworkConverter, convert

__all__ = [
    "WaynetError",
    "InvariantViolation",
    "MissingNodeError",
    "GraphNode",
    "Link",
    "LinkSegment",
    "TransportNetwork",
    "AttributeCatalog",
    "AttributeTemplate",
    "GraphBuilder",
    "TopologyCorrector",
    "CircularWayDecomposer",
    "ConversionResult",
    "NetworkConverter",
    "convert",
]
