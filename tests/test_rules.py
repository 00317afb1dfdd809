"""
Tests for the tag rule engine: modes, lanes and speed limits per direction.
"""

import pytest

from waynet.osm.rules import (
    DirectionalAttributes,
    TagRuleEngine,
    driving_side,
    is_circular_direction_closed,
    parse_lane_count,
    parse_lane_speeds,
    parse_speed,
)
from waynet.osm.settings import ConverterSettings, TemplateOverride
from waynet.osm.tags import WayType

RESIDENTIAL = WayType("highway", "residential")
PRIMARY = WayType("highway", "primary")
MOTORWAY = WayType("highway", "motorway")
RAIL = WayType("railway", "rail")


def resolve(engine, tags, forward=True, lhd=False, way_type=RESIDENTIAL, way_id=None):
    return engine.resolve_directional_attributes(tags, forward, lhd, way_type, way_id)


class TestParsing:
    """Tests for the numeric tag value parsers."""

    def test_plain_kmh(self):
        assert parse_speed("50") == 50.0
        assert parse_speed("50 km/h") == 50.0

    def test_mph(self):
        assert parse_speed("30 mph") == pytest.approx(48.28, abs=0.01)

    def test_knots(self):
        assert parse_speed("10 knots") == pytest.approx(18.52)

    def test_non_numeric_speed(self):
        with pytest.raises(ValueError):
            parse_speed("signals")

    def test_lane_speeds_take_maximum(self):
        assert parse_lane_speeds("80|100|120") == 120.0

    def test_lane_count_truncates(self):
        assert parse_lane_count("2") == 2
        assert parse_lane_count("2.5") == 2

    def test_lane_count_rejects_text(self):
        with pytest.raises(ValueError):
            parse_lane_count("many")

    def test_non_finite_values_rejected(self):
        for value in ("inf", "1e400", "nan"):
            with pytest.raises(ValueError):
                parse_lane_count(value)
        with pytest.raises(ValueError):
            parse_speed("9" * 400)


class TestDrivingConventions:
    def test_driving_side(self):
        assert driving_side(True, False) == "right"
        assert driving_side(False, False) == "left"
        assert driving_side(True, True) == "left"
        assert driving_side(False, True) == "right"

    def test_roundabout_default_direction(self):
        tags = {"junction": "roundabout"}
        # traffic keeping right circulates anti-clockwise, i.e. backward
        assert is_circular_direction_closed(tags, True, False)
        assert not is_circular_direction_closed(tags, False, False)
        assert not is_circular_direction_closed(tags, True, True)
        assert is_circular_direction_closed(tags, False, True)

    def test_explicit_direction_wins(self):
        tags = {"junction": "roundabout", "direction": "clockwise"}
        assert not is_circular_direction_closed(tags, True, False)
        assert is_circular_direction_closed(tags, False, False)


class TestModes:
    """Tests for allowed mode resolution."""

    def test_defaults(self, engine):
        attrs = resolve(engine, {"highway": "residential"})
        assert {"motorcar", "bicycle", "foot", "bus"} <= attrs.allowed_modes
        assert attrs.added_modes == frozenset()
        assert attrs.removed_modes == frozenset()

    def test_motorway_excludes_slow_modes(self, engine):
        attrs = resolve(engine, {"highway": "motorway"}, way_type=MOTORWAY)
        assert "motorcar" in attrs.allowed_modes
        assert "foot" not in attrs.allowed_modes
        assert "bicycle" not in attrs.allowed_modes

    def test_country_mode_access(self):
        footway = WayType("highway", "footway")
        tags = {"highway": "footway"}
        assert "bicycle" not in resolve(TagRuleEngine(ConverterSettings()), tags, way_type=footway).allowed_modes
        attrs = resolve(TagRuleEngine(ConverterSettings(country_code="AU")), tags, way_type=footway)
        assert attrs.allowed_modes == frozenset({"foot", "bicycle"})
        # country defaults are the baseline, not an addition
        assert attrs.added_modes == frozenset()

    def test_unmapped_modes_are_dropped(self):
        engine = TagRuleEngine(ConverterSettings(mode_mapping={"motorcar": "car"}))
        attrs = resolve(engine, {"highway": "residential"})
        assert attrs.allowed_modes == frozenset({"motorcar"})

    def test_access_no_closes_everything(self, engine):
        attrs = resolve(engine, {"highway": "residential", "access": "no"})
        assert not attrs.is_open

    def test_access_no_with_mode_exception(self, engine):
        attrs = resolve(engine, {"highway": "residential", "access": "private", "bicycle": "yes"})
        assert attrs.allowed_modes == frozenset({"bicycle"})

    def test_access_restricted_to_mode(self, engine):
        attrs = resolve(engine, {"highway": "service", "access": "bus"}, way_type=WayType("highway", "service"))
        assert attrs.allowed_modes == frozenset({"bus"})

    def test_mode_tag_removes(self, engine):
        attrs = resolve(engine, {"highway": "primary", "bicycle": "no"}, way_type=PRIMARY)
        assert "bicycle" not in attrs.allowed_modes
        assert attrs.removed_modes == frozenset({"bicycle"})

    def test_category_tag(self, engine):
        attrs = resolve(engine, {"highway": "residential", "motor_vehicle": "no"})
        assert "motorcar" not in attrs.allowed_modes
        assert "hgv" not in attrs.allowed_modes
        assert "bicycle" in attrs.allowed_modes
        assert "foot" in attrs.allowed_modes

    def test_specific_mode_beats_category(self, engine):
        tags = {"highway": "residential", "motor_vehicle": "no", "bus": "designated"}
        attrs = resolve(engine, tags)
        assert "bus" in attrs.allowed_modes
        assert "motorcar" not in attrs.allowed_modes

    def test_added_mode(self, engine):
        attrs = resolve(engine, {"highway": "cycleway", "foot": "yes"}, way_type=WayType("highway", "cycleway"))
        assert attrs.allowed_modes == frozenset({"bicycle", "foot"})
        assert attrs.added_modes == frozenset({"foot"})

    def test_sidewalk_no(self, engine):
        attrs = resolve(engine, {"highway": "residential", "sidewalk": "no"})
        assert "foot" not in attrs.allowed_modes

    def test_way_mode_override(self):
        settings = ConverterSettings(way_mode_overrides={7: {"foot"}})
        engine = TagRuleEngine(settings)
        attrs = resolve(engine, {"highway": "primary"}, way_type=PRIMARY, way_id=7)
        assert attrs.allowed_modes == frozenset({"foot"})

    def test_resolution_is_idempotent(self, engine):
        tags = {"highway": "primary", "cycleway:right": "lane", "maxspeed": "50", "lanes": "4"}
        first = resolve(engine, tags, way_type=PRIMARY)
        second = resolve(engine, tags, way_type=PRIMARY)
        assert first == second
        assert isinstance(first, DirectionalAttributes)


class TestOneway:
    """Tests for oneway handling and contraflow exceptions."""

    def test_opposite_direction_closed_to_vehicles(self, engine):
        tags = {"highway": "residential", "oneway": "yes"}
        backward = resolve(engine, tags, forward=False)
        assert "motorcar" not in backward.allowed_modes
        assert "bicycle" not in backward.allowed_modes
        assert "foot" in backward.allowed_modes

    def test_reversed_oneway(self, engine):
        tags = {"highway": "residential", "oneway": "-1"}
        assert "motorcar" not in resolve(engine, tags, forward=True).allowed_modes
        assert "motorcar" in resolve(engine, tags, forward=False).allowed_modes

    def test_contraflow_cycleway(self, engine):
        tags = {"highway": "residential", "oneway": "yes", "cycleway": "opposite_lane"}
        backward = resolve(engine, tags, forward=False)
        assert "bicycle" in backward.allowed_modes
        assert "motorcar" not in backward.allowed_modes

    def test_oneway_mode_exception(self, engine):
        tags = {"highway": "residential", "oneway": "yes", "oneway:bicycle": "no"}
        assert "bicycle" in resolve(engine, tags, forward=False).allowed_modes

    def test_contraflow_bus_lane(self, engine):
        tags = {"highway": "primary", "oneway": "yes", "busway:left": "opposite_lane"}
        backward = resolve(engine, tags, forward=False, way_type=PRIMARY)
        assert backward.allowed_modes & {"bus"} == {"bus"}

    def test_positive_mode_tag_ignored_against_oneway(self, engine):
        tags = {"highway": "residential", "oneway": "yes", "motorcar": "yes"}
        assert "motorcar" not in resolve(engine, tags, forward=False).allowed_modes

    def test_directional_mode_tag(self, engine):
        tags = {"highway": "residential", "oneway": "yes", "bus:backward": "yes"}
        assert "bus" in resolve(engine, tags, forward=False).allowed_modes

    def test_lane_scheme_opens_direction(self, engine):
        tags = {"highway": "primary", "oneway": "yes", "lanes:bus:backward": "1"}
        assert "bus" in resolve(engine, tags, forward=False, way_type=PRIMARY).allowed_modes

    def test_roundabout_closes_one_direction(self, engine):
        tags = {"highway": "primary", "junction": "roundabout"}
        assert not resolve(engine, tags, forward=True, way_type=PRIMARY).is_open
        assert resolve(engine, tags, forward=False, way_type=PRIMARY).is_open
        assert resolve(engine, tags, forward=True, lhd=True, way_type=PRIMARY).is_open


class TestCycleways:
    """Tests for side-qualified cycleway tagging."""

    def test_right_lane_in_right_hand_traffic(self, engine):
        tags = {"highway": "primary", "cycleway:right": "lane"}
        forward = resolve(engine, tags, forward=True, way_type=PRIMARY)
        backward = resolve(engine, tags, forward=False, way_type=PRIMARY)
        assert "bicycle" in forward.allowed_modes
        assert "bicycle" not in backward.allowed_modes
        assert "motorcar" in backward.allowed_modes

    def test_right_lane_in_left_hand_traffic(self, engine):
        tags = {"highway": "primary", "cycleway:right": "lane"}
        forward = resolve(engine, tags, forward=True, lhd=True, way_type=PRIMARY)
        backward = resolve(engine, tags, forward=False, lhd=True, way_type=PRIMARY)
        assert "bicycle" not in forward.allowed_modes
        assert "bicycle" in backward.allowed_modes

    def test_both_sides(self, engine):
        tags = {"highway": "primary", "cycleway:both": "track"}
        for forward in (True, False):
            assert "bicycle" in resolve(engine, tags, forward=forward, way_type=PRIMARY).allowed_modes

    def test_explicit_bicycle_tag_keeps_other_side(self, engine):
        tags = {"highway": "primary", "cycleway:right": "lane", "bicycle": "yes"}
        assert "bicycle" in resolve(engine, tags, forward=False, way_type=PRIMARY).allowed_modes

    def test_cycleway_no(self, engine):
        tags = {"highway": "residential", "cycleway": "no", "bicycle": "no"}
        assert "bicycle" not in resolve(engine, tags).allowed_modes


class TestLanes:
    """Tests for lane count resolution."""

    def test_oneway_gets_all_lanes(self, engine):
        tags = {"highway": "residential", "oneway": "yes", "lanes": "2"}
        attrs = resolve(engine, tags)
        assert attrs.lane_count == 2
        assert not attrs.lanes_defaulted

    def test_even_total_is_split(self, engine):
        attrs = resolve(engine, {"highway": "primary", "lanes": "4"}, way_type=PRIMARY)
        assert attrs.lane_count == 2

    def test_odd_total_falls_back(self, engine):
        attrs = resolve(engine, {"highway": "primary", "lanes": "3"}, way_type=PRIMARY)
        assert attrs.lane_count == 1
        assert attrs.lanes_defaulted

    def test_missing_direction_derived_from_total(self, engine):
        tags = {"highway": "primary", "lanes": "3", "lanes:forward": "2"}
        assert resolve(engine, tags, forward=True, way_type=PRIMARY).lane_count == 2
        assert resolve(engine, tags, forward=False, way_type=PRIMARY).lane_count == 1

    def test_type_default(self, engine):
        attrs = resolve(engine, {"highway": "motorway"}, way_type=MOTORWAY)
        assert attrs.lane_count == 2
        assert attrs.lanes_defaulted

    def test_unparsable_counts_error(self, engine):
        attrs = resolve(engine, {"highway": "primary", "lanes": "lots"}, way_type=PRIMARY)
        assert attrs.lanes_defaulted
        assert engine.report.numeric_tag_errors == 1

    def test_infinite_lane_count_defaults(self, engine):
        tags = {"highway": "primary", "lanes": "inf", "lanes:forward": "1e400"}
        attrs = resolve(engine, tags, way_type=PRIMARY)
        assert attrs.lane_count == 1
        assert attrs.lanes_defaulted
        assert engine.report.numeric_tag_errors == 2

    def test_railway_tracks(self, engine):
        attrs = resolve(engine, {"railway": "rail", "tracks": "2"}, way_type=RAIL)
        assert attrs.lane_count == 2
        assert not attrs.lanes_defaulted

    def test_ferry_single_lane(self, engine):
        attrs = resolve(engine, {"route": "ferry"}, way_type=WayType("route", "ferry"))
        assert attrs.lane_count == 1


class TestSpeedLimits:
    """Tests for speed limit resolution."""

    def test_mph_scenario(self, engine):
        tags = {"highway": "residential", "maxspeed": "30 mph"}
        for forward in (True, False):
            attrs = resolve(engine, tags, forward=forward)
            assert attrs.speed_limit_kmh == pytest.approx(48.3, abs=0.05)
            assert not attrs.speed_defaulted

    def test_direction_specific_wins(self, engine):
        tags = {"highway": "primary", "maxspeed": "50", "maxspeed:backward": "30"}
        assert resolve(engine, tags, forward=True, way_type=PRIMARY).speed_limit_kmh == 50.0
        assert resolve(engine, tags, forward=False, way_type=PRIMARY).speed_limit_kmh == 30.0

    def test_lane_speeds(self, engine):
        tags = {"highway": "motorway", "maxspeed:lanes": "100|120"}
        assert resolve(engine, tags, way_type=MOTORWAY).speed_limit_kmh == 120.0

    def test_default_speed(self, engine):
        attrs = resolve(engine, {"highway": "residential"})
        assert attrs.speed_limit_kmh == 40.0
        assert attrs.speed_defaulted

    def test_non_urban_default(self):
        engine = TagRuleEngine(ConverterSettings(urban=False))
        assert resolve(engine, {"highway": "primary"}, way_type=PRIMARY).speed_limit_kmh == 100.0

    def test_override_speed(self):
        settings = ConverterSettings(overrides={"highway:primary": TemplateOverride(speed_kmh=70.0)})
        engine = TagRuleEngine(settings)
        assert resolve(engine, {"highway": "primary"}, way_type=PRIMARY).speed_limit_kmh == 70.0

    def test_unparsable_direction_speed_falls_through(self, engine):
        tags = {"highway": "residential", "maxspeed:forward": "none", "maxspeed": "70"}
        attrs = resolve(engine, tags, forward=True)
        assert attrs.speed_limit_kmh == 70.0
        assert not attrs.speed_defaulted
        assert engine.report.numeric_tag_errors == 1

    def test_country_default_speed(self):
        engine = TagRuleEngine(ConverterSettings(country_code="au"))
        assert resolve(engine, {"highway": "residential"}).speed_limit_kmh == 50.0
        # types the country does not list keep the global default
        service = WayType("highway", "service")
        assert resolve(engine, {"highway": "service"}, way_type=service).speed_limit_kmh == 20.0

    def test_country_non_urban_speed(self):
        engine = TagRuleEngine(ConverterSettings(country_code="AU", urban=False))
        assert resolve(engine, {"highway": "residential"}).speed_limit_kmh == 100.0

    def test_unparsable_speed(self, engine):
        attrs = resolve(engine, {"highway": "residential", "maxspeed": "none"})
        assert attrs.speed_defaulted
        assert attrs.speed_limit_kmh == 40.0
        # counted once per resolved direction
        assert engine.report.numeric_tag_errors == 1
