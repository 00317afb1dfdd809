"""
Tests for the arena-backed transport network.
"""

import numpy as np
import pytest

from waynet.core.catalog import AttributeCatalog
from waynet.core.errors import InvariantViolation
from waynet.core.network import TransportNetwork
from waynet.osm.settings import ConverterSettings


@pytest.fixture
def template():
    return AttributeCatalog(ConverterSettings()).get_or_create_template("highway:residential")


@pytest.fixture
def line_network(template):
    """Three collinear nodes joined by one link with an interior vertex."""
    net = TransportNetwork()
    a = net.add_node((0.0, 0.0), source_id=1)
    mid = net.add_node((0.001, 0.0), source_id=2)
    b = net.add_node((0.003, 0.0), source_id=3)
    link = net.add_link(
        a.id, b.id, [(0.0, 0.0), (0.001, 0.0), (0.002, 0.0), (0.003, 0.0)], [1, 2, 4, 3]
    )
    net.add_segment(link, True, frozenset({"car"}), 50.0, 1, template, source_way_id=9)
    net.add_segment(link, False, frozenset({"car"}), 30.0, 2, template, source_way_id=9)
    return net, link, mid


class TestConstruction:
    """Tests for node, link and segment creation."""

    def test_dense_ids(self):
        net = TransportNetwork()
        ids = [net.add_node((i * 0.001, 0.0), source_id=i).id for i in range(3)]
        assert ids == [0, 1, 2]
        assert net.node_by_source(2).id == 2
        assert net.node_by_source(99) is None

    def test_duplicate_source_node(self):
        net = TransportNetwork()
        net.add_node((0.0, 0.0), source_id=1)
        with pytest.raises(InvariantViolation):
            net.add_node((0.0, 0.0), source_id=1)

    def test_self_loop_rejected(self):
        net = TransportNetwork()
        a = net.add_node((0.0, 0.0), source_id=1)
        with pytest.raises(InvariantViolation):
            net.add_link(a.id, a.id, [(0.0, 0.0), (0.001, 0.0)], [1, 2])

    def test_short_geometry_rejected(self):
        net = TransportNetwork()
        a = net.add_node((0.0, 0.0), source_id=1)
        b = net.add_node((0.001, 0.0), source_id=2)
        with pytest.raises(InvariantViolation):
            net.add_link(a.id, b.id, [(0.0, 0.0)], [1])

    def test_link_length(self, line_network):
        _, link, _ = line_network
        # 0.003 degrees of longitude on the equator
        assert link.length_m == pytest.approx(333.585, rel=1e-4)

    def test_duplicate_segment_direction(self, line_network, template):
        net, link, _ = line_network
        with pytest.raises(InvariantViolation):
            net.add_segment(link, True, frozenset({"car"}), 50.0, 1, template)

    def test_find_link_in_either_orientation(self, line_network):
        net, link, _ = line_network
        reversed_geometry = link.geometry[::-1].copy()
        assert net.find_link(link.node_b, link.node_a, reversed_geometry) is link
        assert net.find_link(link.node_a, link.node_b, link.geometry[:2]) is None

    def test_degree(self, line_network):
        net, link, mid = line_network
        assert net.degree(link.node_a) == 1
        assert net.degree(mid.id) == 0


class TestBreakLink:
    """Tests for splitting a link at an interior node."""

    def test_geometry_preserved(self, line_network):
        net, link, mid = line_network
        original = link.geometry.copy()
        first, second = net.break_link(link, mid)

        joined = np.vstack([first.geometry, second.geometry[1:]])
        np.testing.assert_array_equal(joined, original)
        assert first.length_m + second.length_m == pytest.approx(link.length_m)

    def test_topology(self, line_network):
        net, link, mid = line_network
        first, second = net.break_link(link, mid)
        assert not link.active
        assert (first.node_a, first.node_b) == (link.node_a, mid.id)
        assert (second.node_a, second.node_b) == (mid.id, link.node_b)
        assert first.parent_id == link.id
        assert first.node_ids == [1, 2]
        assert second.node_ids == [2, 4, 3]
        assert [l.id for l in net.links()] == [first.id, second.id]
        assert net.degree(mid.id) == 2

    def test_segments_copied(self, line_network):
        net, link, mid = line_network
        first, second = net.break_link(link, mid)
        for piece in (first, second):
            forward, backward = net.segments_of(piece)
            assert forward.direction_ab and not backward.direction_ab
            assert forward.speed_limit_kmh == 50.0
            assert backward.lane_count == 2
            assert forward.source_way_id == 9
        assert len(net.link_segments()) == 4

    def test_endpoint_cannot_break(self, line_network):
        net, link, _ = line_network
        with pytest.raises(InvariantViolation):
            net.break_link(link, net.node(link.node_a))

    def test_inactive_link_cannot_break(self, line_network):
        net, link, mid = line_network
        net.break_link(link, mid)
        with pytest.raises(InvariantViolation):
            net.break_link(link, mid)


class TestExport:
    def test_to_networkx(self, line_network):
        net, link, _ = line_network
        G = net.to_networkx()
        assert G.number_of_nodes() == 3
        assert G.number_of_edges() == 2
        assert G.has_edge(link.node_a, link.node_b)
        assert G.has_edge(link.node_b, link.node_a)
        data = next(iter(G.get_edge_data(link.node_a, link.node_b).values()))
        assert data["speed_kmh"] == 50.0
        assert data["modes"] == ["car"]
        assert data["way_id"] == 9
        assert G.nodes[link.node_a]["source_id"] == 1

    def test_segment_to_dict(self, line_network):
        net, _, _ = line_network
        data = net.link_segments()[1].to_dict()
        assert data["direction"] == "ba"
        assert data["mode_set"] == ["car"]
