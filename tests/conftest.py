"""
Shared fixtures for waynet tests.

Node coordinates are small offsets around (0, 0) so the geometry of each
test network is easy to picture: one unit is 0.001 degrees.
"""

from typing import Dict, Iterable, Tuple

import pytest

from waynet.core.builder import GraphBuilder
from waynet.core.catalog import AttributeCatalog
from waynet.core.network import TransportNetwork
from waynet.osm.entities import RawNode, RawWay
from waynet.osm.rules import TagRuleEngine
from waynet.osm.settings import ConverterSettings
from waynet.utils.diagnostics import ConversionReport

UNIT = 0.001


def make_nodes(layout: Dict[int, Tuple[float, float]]) -> Dict[int, RawNode]:
    """Raw nodes from ``{id: (x, y)}`` in grid units."""
    return {
        node_id: RawNode(node_id, x * UNIT, y * UNIT)
        for node_id, (x, y) in layout.items()
    }


def entities(
    layout: Dict[int, Tuple[float, float]], ways: Iterable[RawWay]
) -> list:
    """Nodes first, then ways, in the order an OSM file delivers them."""
    return list(make_nodes(layout).values()) + list(ways)


class BuilderRig:
    """A graph builder wired to its own network, catalog and report."""

    def __init__(self, layout, settings=None):
        self.settings = settings if settings is not None else ConverterSettings()
        self.report = ConversionReport()
        self.nodes = make_nodes(layout)
        self.network = TransportNetwork()
        self.catalog = AttributeCatalog(self.settings)
        self.engine = TagRuleEngine(self.settings, self.report)
        self.builder = GraphBuilder(
            self.network, self.catalog, self.engine, self.nodes, self.settings, self.report
        )


@pytest.fixture
def settings():
    return ConverterSettings()


@pytest.fixture
def engine(settings):
    return TagRuleEngine(settings)


@pytest.fixture
def catalog(settings):
    return AttributeCatalog(settings)


@pytest.fixture
def cross_layout():
    """Centre node 1 with arms to the west (10), east (11), north (20) and south (21)."""
    return {
        1: (0, 0),
        10: (-1, 0),
        11: (1, 0),
        20: (0, 1),
        21: (0, -1),
    }


@pytest.fixture
def roundabout_layout():
    """Four ring nodes around the origin plus an approach node 5 west of node 1."""
    return {
        1: (-1, 0),
        2: (0, 1),
        3: (1, 0),
        4: (0, -1),
        5: (-2, 0),
        6: (2, 0),
    }
