"""
OSM Tag Vocabulary
====================

Keys, values and small predicates for the parts of the OpenStreetMap
tagging scheme the converter understands: way classification, mode
access, oneway and roundabout semantics, lanes, speed limits and the
side-qualified cycleway/busway corridor schemes.

Tag maps are plain ``Dict[str, str]`` as delivered by the reader.

Example::

    from waynet.osm.tags import way_type_of, is_oneway

    tags = {"highway": "residential", "oneway": "yes"}
    way_type_of(tags).label   # "highway:residential"
    is_oneway(tags)           # True
"""

import re
from typing import Dict, FrozenSet, Iterable, NamedTuple, Optional, Set

# Classification keys
HIGHWAY = "highway"
RAILWAY = "railway"
ROUTE = "route"
FERRY = "ferry"

AREA = "area"
NAME = "name"
ACCESS = "access"
ONEWAY = "oneway"
JUNCTION = "junction"
DIRECTION = "direction"
TRACKS = "tracks"

ROUNDABOUT = "roundabout"
CIRCULAR = "circular"
CLOCKWISE = "clockwise"
ANTICLOCKWISE = "anticlockwise"

FORWARD = "forward"
BACKWARD = "backward"
LEFT = "left"
RIGHT = "right"
BOTH = "both"

LANES = "lanes"
MAXSPEED = "maxspeed"

CYCLEWAY = "cycleway"
BUSWAY = "busway"
SIDEWALK = "sidewalk"
FOOTWAY = "footway"

# Lane values used by the cycleway and busway schemes
LANE = "lane"
OPPOSITE_LANE = "opposite_lane"
SHARED_LANE = "shared_lane"

ONEWAY_YES_VALUES = frozenset({"yes", "true", "1"})
ONEWAY_REVERSE_VALUES = frozenset({"-1", "reverse"})

POSITIVE_ACCESS_VALUES = frozenset(
    {
        "yes",
        "designated",
        "permissive",
        "destination",
        "delivery",
        "customers",
        "official",
        "permit",
    }
)
NEGATIVE_ACCESS_VALUES = frozenset(
    {"no", "private", "restricted", "use_sidepath", "dismount", "military"}
)

CYCLEWAY_POSITIVE_VALUES = frozenset(
    {
        LANE,
        SHARED_LANE,
        "share_busway",
        "shoulder",
        "track",
        "shared",
        "opposite",
        OPPOSITE_LANE,
        "opposite_track",
        "yes",
        "designated",
    }
)
CYCLEWAY_OPPOSITE_VALUES = frozenset({"opposite", OPPOSITE_LANE, "opposite_track"})
CYCLEWAY_NEGATIVE_VALUES = frozenset({"no", "none"}) | NEGATIVE_ACCESS_VALUES

# Road mode tokens
FOOT = "foot"
DOG = "dog"
HORSE = "horse"
BICYCLE = "bicycle"
CARRIAGE = "carriage"
TRAILER = "trailer"
CARAVAN = "caravan"
MOTORCYCLE = "motorcycle"
MOPED = "moped"
MOFA = "mofa"
MOTORCAR = "motorcar"
MOTORHOME = "motorhome"
TOURIST_BUS = "tourist_bus"
COACH = "coach"
AGRICULTURAL = "agricultural"
GOLF_CART = "golf_cart"
ATV = "atv"
GOODS = "goods"
HGV = "hgv"
HGV_ARTICULATED = "hgv_articulated"
BUS = "bus"
TAXI = "taxi"
SHARE_TAXI = "share_taxi"
MINIBUS = "minibus"

ROAD_MODES = (
    FOOT, DOG, HORSE, BICYCLE, CARRIAGE, TRAILER, CARAVAN, MOTORCYCLE,
    MOPED, MOFA, MOTORCAR, MOTORHOME, TOURIST_BUS, COACH, AGRICULTURAL,
    GOLF_CART, ATV, GOODS, HGV, HGV_ARTICULATED, BUS, TAXI, SHARE_TAXI,
    MINIBUS,
)

# Rail mode tokens
TRAIN = "train"
SUBWAY = "subway"
LIGHT_RAIL = "light_rail"
TRAM = "tram"
FUNICULAR = "funicular"
MONORAIL = "monorail"

RAIL_MODES = (TRAIN, SUBWAY, LIGHT_RAIL, TRAM, FUNICULAR, MONORAIL)

ALL_MODES = ROAD_MODES + RAIL_MODES + (FERRY,)

# Mode categories
VEHICLE = "vehicle"
MOTOR_VEHICLE = "motor_vehicle"
PSV = "psv"

_PSV_MODES = frozenset({BUS, TAXI, SHARE_TAXI, MINIBUS})
_MOTOR_VEHICLE_MODES = frozenset(
    {
        MOTORCYCLE, MOPED, MOFA, MOTORCAR, MOTORHOME, TOURIST_BUS, COACH,
        AGRICULTURAL, GOLF_CART, ATV, GOODS, HGV, HGV_ARTICULATED,
    }
) | _PSV_MODES

MODE_CATEGORIES: Dict[str, FrozenSet[str]] = {
    VEHICLE: _MOTOR_VEHICLE_MODES | {BICYCLE, CARRIAGE, TRAILER, CARAVAN},
    MOTOR_VEHICLE: _MOTOR_VEHICLE_MODES,
    PSV: _PSV_MODES,
    HGV: frozenset({HGV, HGV_ARTICULATED}),
}

# Railway classification value -> rail mode token
RAILWAY_MODES: Dict[str, str] = {
    "rail": TRAIN,
    "narrow_gauge": TRAIN,
    "light_rail": LIGHT_RAIL,
    "tram": TRAM,
    "subway": SUBWAY,
    "funicular": FUNICULAR,
    "monorail": MONORAIL,
}

_SPECIAL_CHARS = re.compile(r"[^\w\s]")


class WayType(NamedTuple):
    """Classification of a way as a ``(key, value)`` pair."""

    key: str
    value: str

    @property
    def label(self) -> str:
        return f"{self.key}:{self.value}"

    @classmethod
    def from_label(cls, label: str) -> "WayType":
        key, _, value = label.partition(":")
        if not value:
            raise ValueError(f"Way type label must be '<key>:<value>', got {label!r}")
        return cls(key, value)


def way_type_of(tags: Dict[str, str]) -> Optional[WayType]:
    """Determine the classification of a way from its tags.

    Highway takes precedence over railway; ferries are recognised through
    ``route=ferry``.

    Args:
        tags: Tag map of the way.

    Returns:
        The WayType, or None when the way carries no non-empty
        classification value.
    """
    for key in (HIGHWAY, RAILWAY):
        value = tags.get(key, "").strip()
        if value:
            return WayType(key, value)
    if tags.get(ROUTE, "").strip() == FERRY:
        return WayType(ROUTE, FERRY)
    return None


def normalize_value(value: Optional[str]) -> str:
    """Lower-case a tag value and strip special characters from it."""
    if value is None:
        return ""
    return _SPECIAL_CHARS.sub("", value).strip().lower()


def value_in(tags: Dict[str, str], key: str, values: Iterable[str]) -> bool:
    """Whether ``tags[key]`` is present and matches one of ``values``."""
    if key not in tags:
        return False
    return normalize_value(tags[key]) in values


def is_positive_access(value: Optional[str]) -> bool:
    return normalize_value(value) in POSITIVE_ACCESS_VALUES


def is_negative_access(value: Optional[str]) -> bool:
    return normalize_value(value) in NEGATIVE_ACCESS_VALUES


def expand_mode(token: str) -> Set[str]:
    """Expand a mode token or category into its member mode tokens."""
    members = MODE_CATEGORIES.get(token)
    if members is not None:
        return set(members)
    return {token}


def is_area(tags: Dict[str, str]) -> bool:
    """Ways explicitly tagged as an area are not part of the network."""
    return AREA in tags and tags[AREA].strip().lower() != "no"


def is_oneway(tags: Dict[str, str]) -> bool:
    value = tags.get(ONEWAY, "").strip().lower()
    return value in ONEWAY_YES_VALUES or value in ONEWAY_REVERSE_VALUES


def is_reversed_oneway(tags: Dict[str, str]) -> bool:
    return tags.get(ONEWAY, "").strip().lower() in ONEWAY_REVERSE_VALUES


def is_roundabout(tags: Dict[str, str]) -> bool:
    return tags.get(JUNCTION, "").strip().lower() in (ROUNDABOUT, CIRCULAR)


def is_explicit_clockwise(tags: Dict[str, str]) -> bool:
    return tags.get(DIRECTION, "").strip().lower() == CLOCKWISE


def is_explicit_anticlockwise(tags: Dict[str, str]) -> bool:
    return tags.get(DIRECTION, "").strip().lower() == ANTICLOCKWISE


def direction_suffix(forward: bool) -> str:
    return FORWARD if forward else BACKWARD


def composite_key(*parts: str) -> str:
    return ":".join(parts)
