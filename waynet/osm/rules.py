"""
Tag Rule Engine
=================

Derives the per-direction attributes of a way (allowed modes, lane count,
speed limit) from its OSM tag map.

Mode access is resolved in layers, each later layer overriding earlier
ones for the modes it mentions:

    1. Way type defaults (or a per-way override from the settings)
    2. Blanket ``access=*``
    3. Mode category tags (``vehicle=*``, ``motor_vehicle=*``, ``psv=*``)
    4. Per-mode tags (``<mode>=*``, ``access:<mode>=*``)
    5. Side-qualified corridor schemes (``cycleway[:side]``,
       ``busway[:side]``, ``sidewalk``)
    6. Oneway closure of the opposite direction, re-opened by contraflow
       corridor tags
    7. Direction-qualified tags (``<mode>:forward=*``,
       ``oneway:<mode>=no``) and the two mode-lane tagging schemes
    8. Roundabout closure

Example::

    from waynet.osm.rules import TagRuleEngine
    from waynet.osm.settings import ConverterSettings
    from waynet.osm.tags import WayType

    engine = TagRuleEngine(ConverterSettings())
    attrs = engine.resolve_directional_attributes(
        {"highway": "residential", "oneway": "yes", "lanes": "2"},
        forward=True,
        left_hand_drive=False,
        way_type=WayType("highway", "residential"),
    )
    attrs.lane_count  # 2
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from waynet.osm import defaults
from waynet.osm import tags as t
from waynet.osm.settings import ConverterSettings
from waynet.osm.tags import WayType
from waynet.utils.diagnostics import ConversionReport

logger = logging.getLogger(__name__)

MPH_TO_KMH = 1.609344
KNOTS_TO_KMH = 1.852

_SPEED_PATTERN = re.compile(
    r"([0-9]*\.?[0-9]+)\s*(km/h|kmh|kph|mph|knots)?", re.IGNORECASE
)

# Modes covered by the lanes:<mode> and <mode>:lanes tagging schemes
LANE_SCHEME_MODES = (t.BUS, t.PSV, t.BICYCLE, t.HGV)

_SIDEWALK_NEGATIVE = frozenset({"no", "none"}) | t.NEGATIVE_ACCESS_VALUES

# Categories before specific modes, so a specific mode tag wins over its category
_MODE_TAG_ORDER = tuple(t.MODE_CATEGORIES) + tuple(
    mode for mode in t.ALL_MODES if mode not in t.MODE_CATEGORIES
)


def parse_speed(value: str) -> float:
    """Parse a ``maxspeed`` value into km/h.

    Accepts an optional unit suffix (km/h, kmh, kph, mph, knots); values
    without a unit are km/h.

    Args:
        value: Raw tag value, e.g. ``"50"``, ``"30 mph"``.

    Returns:
        Speed in km/h.

    Raises:
        ValueError: If the value contains no finite number.
    """
    match = _SPEED_PATTERN.search(value)
    if match is None:
        raise ValueError(f"No numeric speed in {value!r}")
    speed = float(match.group(1))
    if not math.isfinite(speed):
        raise ValueError(f"Speed {value!r} is not finite")
    unit = (match.group(2) or "km/h").lower()
    if unit == "mph":
        speed *= MPH_TO_KMH
    elif unit == "knots":
        speed *= KNOTS_TO_KMH
    return speed


def parse_lane_speeds(value: str) -> float:
    """Parse a pipe-separated ``maxspeed:lanes`` value to its maximum."""
    speeds = [parse_speed(token) for token in value.split("|") if token.strip()]
    if not speeds:
        raise ValueError(f"No lane speeds in {value!r}")
    return max(speeds)


def parse_lane_count(value: str) -> int:
    """Parse a lane count, truncating decimal values.

    Raises:
        ValueError: If the value is not a finite number.
    """
    value = value.strip()
    try:
        return int(value)
    except ValueError:
        pass
    count = float(value)
    if not math.isfinite(count):
        raise ValueError(f"Lane count {value!r} is not finite")
    logger.warning("Lane count %r is not an integer, truncating to %d", value, int(count))
    return int(count)


def circular_default_clockwise(left_hand_drive: bool) -> bool:
    """Circular ways run clockwise by default where traffic keeps left."""
    return left_hand_drive


def is_circular_direction_closed(
    tags: Dict[str, str], forward: bool, left_hand_drive: bool
) -> bool:
    """Whether a direction of a circular way is closed to all traffic.

    Clockwise equates to the forward direction of the way. An explicit
    ``direction=clockwise|anticlockwise`` tag beats the country default.
    """
    if t.is_explicit_clockwise(tags):
        clockwise = True
    elif t.is_explicit_anticlockwise(tags):
        clockwise = False
    else:
        clockwise = circular_default_clockwise(left_hand_drive)
    return clockwise != forward


def driving_side(forward: bool, left_hand_drive: bool) -> str:
    """Physical side of the carriageway used when travelling a direction."""
    return t.LEFT if forward == left_hand_drive else t.RIGHT


@dataclass(frozen=True)
class DirectionalAttributes:
    """Resolved attributes of one direction of a way.

    Attributes:
        forward: True for the direction of the node sequence.
        allowed_modes: OSM mode tokens that may use this direction.
        added_modes: Allowed modes not in the way type defaults.
        removed_modes: Way type default modes no longer allowed.
        lane_count: Number of lanes in this direction.
        speed_limit_kmh: Speed limit in this direction.
        lanes_defaulted: Lane count came from the way type default.
        speed_defaulted: Speed limit came from the way type default.
    """

    forward: bool
    allowed_modes: FrozenSet[str]
    added_modes: FrozenSet[str]
    removed_modes: FrozenSet[str]
    lane_count: int
    speed_limit_kmh: float
    lanes_defaulted: bool = False
    speed_defaulted: bool = False

    @property
    def is_open(self) -> bool:
        return bool(self.allowed_modes)


class _ModeLayers:
    """Per-mode allow/deny state where later decisions win."""

    def __init__(self, base: Iterable[str]):
        self.state: Dict[str, bool] = {mode: True for mode in base}

    def allow(self, modes: Iterable[str]) -> None:
        for mode in modes:
            self.state[mode] = True

    def deny(self, modes: Iterable[str]) -> None:
        for mode in modes:
            self.state[mode] = False

    def allowed(self) -> Set[str]:
        return {mode for mode, ok in self.state.items() if ok}


class TagRuleEngine:
    """Resolve allowed modes, lanes and speed limits per way direction.

    Mode sets are expressed in OSM mode tokens and restricted to the
    tokens activated through ``settings.mode_mapping``.

    Args:
        settings: Converter settings (mode mapping, speed overrides,
            per-way mode overrides, urban flag).
        report: Run report receiving numeric tagging error counts.
    """

    def __init__(
        self,
        settings: ConverterSettings,
        report: Optional[ConversionReport] = None,
    ):
        self.settings = settings
        self.report = report if report is not None else ConversionReport()

    def resolve_directional_attributes(
        self,
        tags: Dict[str, str],
        forward: bool,
        left_hand_drive: bool,
        way_type: WayType,
        way_id: Optional[int] = None,
    ) -> DirectionalAttributes:
        """Resolve everything needed to build one link segment.

        Args:
            tags: Tag map of the way.
            forward: True to explore the direction of the node sequence.
            left_hand_drive: Driving side convention of the country.
            way_type: Classification of the way.
            way_id: Way id, used for per-way overrides and log context.

        Returns:
            DirectionalAttributes for the explored direction.
        """
        base = self.default_modes(way_type)
        allowed = self.resolve_modes(tags, forward, left_hand_drive, way_type, way_id)
        lanes, lanes_defaulted = self.resolve_lanes(tags, forward, way_type, way_id)
        speed, speed_defaulted = self.resolve_speed_limit(tags, forward, way_type, way_id)
        return DirectionalAttributes(
            forward=forward,
            allowed_modes=frozenset(allowed),
            added_modes=frozenset(allowed - base),
            removed_modes=frozenset(base - allowed),
            lane_count=lanes,
            speed_limit_kmh=speed,
            lanes_defaulted=lanes_defaulted,
            speed_defaulted=speed_defaulted,
        )

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def default_modes(self, way_type: WayType) -> Set[str]:
        """Activated OSM modes the way type admits without any tags."""
        return self.settings.default_modes(way_type) & self.settings.supported_modes

    def resolve_modes(
        self,
        tags: Dict[str, str],
        forward: bool,
        left_hand_drive: bool,
        way_type: WayType,
        way_id: Optional[int] = None,
    ) -> Set[str]:
        """Allowed OSM mode tokens in the explored direction."""
        supported = self.settings.supported_modes
        base = self.default_modes(way_type)

        if t.is_roundabout(tags) and is_circular_direction_closed(
            tags, forward, left_hand_drive
        ):
            return set()

        override = self.settings.way_mode_overrides.get(way_id) if way_id is not None else None
        if override is not None:
            return self._expand(override) & supported

        oneway = t.is_oneway(tags)
        opposite = oneway and forward == t.is_reversed_oneway(tags)
        direction = t.direction_suffix(forward)

        layers = _ModeLayers(base)
        if t.ACCESS in tags:
            self._apply_access_tag(tags[t.ACCESS], base, layers)
        self._apply_mode_tags(tags, layers, opposite)
        self._apply_corridor_tags(tags, layers, forward, left_hand_drive, oneway, opposite)
        if opposite:
            layers.deny(t.MODE_CATEGORIES[t.VEHICLE] | set(t.RAIL_MODES))
            layers.allow(self._contraflow_modes(tags))
        self._apply_directional_tags(tags, layers, direction)
        if oneway and not opposite:
            layers.allow(self.lane_scheme_modes(tags, None))

        return layers.allowed() & supported

    def _apply_access_tag(self, value: str, base: Set[str], layers: _ModeLayers) -> None:
        access = t.normalize_value(value)
        supported = self.settings.supported_modes
        if access in t.POSITIVE_ACCESS_VALUES:
            layers.allow(base)
        elif access in t.ALL_MODES or access in t.MODE_CATEGORIES:
            layers.deny(supported)
            layers.allow(t.expand_mode(access))
        elif access in t.NEGATIVE_ACCESS_VALUES:
            layers.deny(supported)

    def _apply_mode_tags(
        self, tags: Dict[str, str], layers: _ModeLayers, opposite: bool
    ) -> None:
        for name in _MODE_TAG_ORDER:
            for key in (name, t.composite_key(t.ACCESS, name)):
                value = tags.get(key)
                if value is None:
                    continue
                if t.is_negative_access(value):
                    layers.deny(t.expand_mode(name))
                elif t.is_positive_access(value) and not opposite:
                    layers.allow(t.expand_mode(name))

    def _apply_corridor_tags(
        self,
        tags: Dict[str, str],
        layers: _ModeLayers,
        forward: bool,
        left_hand_drive: bool,
        oneway: bool,
        opposite: bool,
    ) -> None:
        pos = t.CYCLEWAY_POSITIVE_VALUES - t.CYCLEWAY_OPPOSITE_VALUES
        left_key = t.composite_key(t.CYCLEWAY, t.LEFT)
        right_key = t.composite_key(t.CYCLEWAY, t.RIGHT)
        both_key = t.composite_key(t.CYCLEWAY, t.BOTH)

        if t.value_in(tags, t.SIDEWALK, _SIDEWALK_NEGATIVE) or t.is_negative_access(
            tags.get(t.FOOTWAY)
        ):
            layers.deny({t.FOOT})
        elif t.SIDEWALK in tags or t.FOOTWAY in tags:
            layers.allow({t.FOOT})

        if t.value_in(tags, t.CYCLEWAY, t.CYCLEWAY_NEGATIVE_VALUES) or t.value_in(
            tags, both_key, t.CYCLEWAY_NEGATIVE_VALUES
        ):
            layers.deny({t.BICYCLE})
        if t.value_in(tags, both_key, pos):
            layers.allow({t.BICYCLE})

        if opposite:
            return

        if oneway:
            if any(t.value_in(tags, k, pos) for k in (t.CYCLEWAY, left_key, right_key)):
                layers.allow({t.BICYCLE})
            elif any(
                t.value_in(tags, k, t.CYCLEWAY_NEGATIVE_VALUES) for k in (left_key, right_key)
            ):
                layers.deny({t.BICYCLE})
            if self._busway_has(tags, (t.BUSWAY, t.BOTH, t.LEFT, t.RIGHT), t.LANE):
                layers.allow({t.BUS})
            return

        side = driving_side(forward, left_hand_drive)
        side_key = t.composite_key(t.CYCLEWAY, side)
        two_way_side_lane = any(
            tags.get(t.composite_key(k, "oneway"), "").strip().lower() == "no"
            for k in (left_key, right_key)
        )
        if (
            t.value_in(tags, t.CYCLEWAY, pos)
            or t.value_in(tags, side_key, pos)
            or two_way_side_lane
        ):
            layers.allow({t.BICYCLE})
        elif t.value_in(tags, side_key, t.CYCLEWAY_NEGATIVE_VALUES):
            layers.deny({t.BICYCLE})
        elif (
            (left_key in tags or right_key in tags)
            and t.CYCLEWAY not in tags
            and t.BICYCLE not in tags
        ):
            # side-qualified tagging on the other side only
            layers.deny({t.BICYCLE})

        if self._busway_has(tags, (t.BUSWAY, t.BOTH, side), t.LANE):
            layers.allow({t.BUS})

    def _contraflow_modes(self, tags: Dict[str, str]) -> Set[str]:
        modes: Set[str] = set()
        if any(
            t.value_in(tags, k, t.CYCLEWAY_OPPOSITE_VALUES)
            for k in (
                t.CYCLEWAY,
                t.composite_key(t.CYCLEWAY, t.LEFT),
                t.composite_key(t.CYCLEWAY, t.RIGHT),
            )
        ):
            modes.add(t.BICYCLE)
        if self._busway_has(tags, (t.BUSWAY, t.BOTH, t.LEFT, t.RIGHT), t.OPPOSITE_LANE):
            modes.add(t.BUS)
        return modes

    def _apply_directional_tags(
        self, tags: Dict[str, str], layers: _ModeLayers, direction: str
    ) -> None:
        for name in _MODE_TAG_ORDER:
            value = tags.get(t.composite_key(name, direction))
            if value is not None:
                if t.is_negative_access(value):
                    layers.deny(t.expand_mode(name))
                elif t.is_positive_access(value):
                    layers.allow(t.expand_mode(name))
            if tags.get(t.composite_key(t.ONEWAY, name), "").strip().lower() == "no":
                layers.allow(t.expand_mode(name))
        layers.allow(self.lane_scheme_modes(tags, direction))

    @staticmethod
    def _busway_has(tags: Dict[str, str], sides: Tuple[str, ...], value: str) -> bool:
        for side in sides:
            key = t.BUSWAY if side == t.BUSWAY else t.composite_key(t.BUSWAY, side)
            if tags.get(key, "").strip().lower() == value:
                return True
        return False

    @staticmethod
    def lane_scheme_modes(tags: Dict[str, str], direction: Optional[str]) -> Set[str]:
        """Modes with a dedicated lane under either lane tagging scheme.

        ``lanes:<mode>[:<direction>]=n`` counts when n is nonzero,
        ``<mode>:lanes[:<direction>]=a|b|...`` counts when any lane entry
        is a positive access value. Both schemes feed one set, so a mode
        tagged in both is reported once. ``psv`` maps to bus.
        """
        found: Set[str] = set()
        for mode in LANE_SCHEME_MODES:
            count_key = t.composite_key(t.LANES, mode)
            access_key = t.composite_key(mode, t.LANES)
            if direction is not None:
                count_key = t.composite_key(count_key, direction)
                access_key = t.composite_key(access_key, direction)

            count_value = tags.get(count_key)
            if count_value is not None and count_value.strip() not in ("", "0"):
                found.add(mode)
            access_value = tags.get(access_key)
            if access_value is not None and any(
                t.is_positive_access(token) for token in access_value.split("|")
            ):
                found.add(mode)

        if t.PSV in found:
            found.discard(t.PSV)
            found.add(t.BUS)
        return found

    @staticmethod
    def _expand(tokens: Iterable[str]) -> Set[str]:
        modes: Set[str] = set()
        for token in tokens:
            modes |= t.expand_mode(token)
        return modes

    # ------------------------------------------------------------------
    # Lanes
    # ------------------------------------------------------------------

    def resolve_lanes(
        self,
        tags: Dict[str, str],
        forward: bool,
        way_type: WayType,
        way_id: Optional[int] = None,
    ) -> Tuple[int, bool]:
        """Lane count in the explored direction.

        Returns:
            (lane_count, defaulted) where defaulted is True when the count
            came from the way type default.
        """
        if way_type.key == t.ROUTE:
            return 1, False
        if way_type.key == t.RAILWAY:
            tracks = self._lane_value(tags, t.TRACKS, way_id)
            if tracks is not None and tracks > 0:
                return tracks, False
            return 1, True

        total = self._lane_value(tags, t.LANES, way_id)
        lanes_fwd = self._lane_value(tags, t.composite_key(t.LANES, t.FORWARD), way_id)
        lanes_bwd = self._lane_value(tags, t.composite_key(t.LANES, t.BACKWARD), way_id)

        if total is not None:
            if lanes_fwd is None and lanes_bwd is not None and total > lanes_bwd:
                lanes_fwd = total - lanes_bwd
            if lanes_bwd is None and lanes_fwd is not None and total > lanes_fwd:
                lanes_bwd = total - lanes_fwd

        count = lanes_fwd if forward else lanes_bwd
        if count is None and total is not None:
            if t.is_oneway(tags):
                if forward != t.is_reversed_oneway(tags):
                    count = total
            elif total % 2 == 0:
                count = total // 2

        if count is None or count <= 0:
            return defaults.default_lanes(way_type), True
        return count, False

    def _lane_value(
        self, tags: Dict[str, str], key: str, way_id: Optional[int]
    ) -> Optional[int]:
        value = tags.get(key)
        if value is None:
            return None
        try:
            return parse_lane_count(value)
        except ValueError:
            self.report.numeric_tag_errors += 1
            logger.warning(
                "Way %s: unparsable %s=%r, using default", way_id, key, value
            )
            return None

    # ------------------------------------------------------------------
    # Speed limits
    # ------------------------------------------------------------------

    def resolve_speed_limit(
        self,
        tags: Dict[str, str],
        forward: bool,
        way_type: WayType,
        way_id: Optional[int] = None,
    ) -> Tuple[float, bool]:
        """Speed limit in km/h in the explored direction.

        Direction-specific tags take precedence over generic ones, and
        per-lane values resolve to their maximum.

        Returns:
            (speed_kmh, defaulted) where defaulted is True when the speed
            came from the way type default.
        """
        direction = t.direction_suffix(forward)
        candidates: List[Tuple[str, object]] = [
            (t.composite_key(t.MAXSPEED, direction), parse_speed),
            (t.composite_key(t.MAXSPEED, t.LANES, direction), parse_lane_speeds),
            (t.MAXSPEED, parse_speed),
            (t.composite_key(t.MAXSPEED, t.LANES), parse_lane_speeds),
        ]
        for key, parser in candidates:
            if key not in tags:
                continue
            try:
                return parser(tags[key]), False
            except ValueError:
                self.report.numeric_tag_errors += 1
                logger.warning(
                    "Way %s: unparsable %s=%r, skipped", way_id, key, tags[key]
                )
        return self.settings.default_speed(way_type), True
