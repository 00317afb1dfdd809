"""
Default Attribute Tables
==========================

Per-classification defaults used when tags are silent: which OSM modes a
way type admits, its capacity and max density per lane, its default speed
limit (urban and non-urban), the default number of lanes per direction,
and the physical top speed of each internal mode.

Country tables keyed by ISO-2 code replace the global speed and mode
access entries of the highway types they list.

Capacities are in pcu/h/lane, densities in pcu/km/lane and speeds in km/h.
"""

from typing import Dict, FrozenSet, Optional, Set, Tuple

from waynet.osm import tags as t
from waynet.osm.tags import WayType

DEFAULT_MAX_DENSITY_LANE = 180.0
DEFAULT_MINIMUM_CAPACITY_LANE = 600.0
RAILWAY_CAPACITY = 10000.0
WATERWAY_CAPACITY = 10000.0
RAILWAY_SPEED_KMH = 70.0
FERRY_SPEED_KMH = 25.0

_ROAD_VEHICLES = frozenset(t.MODE_CATEGORIES[t.VEHICLE] | {t.FOOT})
_MOTORWAY_MODES = frozenset(
    t.MODE_CATEGORIES[t.MOTOR_VEHICLE] - {t.MOPED, t.MOFA, t.ATV, t.GOLF_CART}
)

HIGHWAY_MODE_ACCESS: Dict[str, FrozenSet[str]] = {
    "motorway": _MOTORWAY_MODES,
    "motorway_link": _MOTORWAY_MODES,
    "trunk": _ROAD_VEHICLES,
    "trunk_link": _ROAD_VEHICLES,
    "primary": _ROAD_VEHICLES,
    "primary_link": _ROAD_VEHICLES,
    "secondary": _ROAD_VEHICLES,
    "secondary_link": _ROAD_VEHICLES,
    "tertiary": _ROAD_VEHICLES,
    "tertiary_link": _ROAD_VEHICLES,
    "unclassified": _ROAD_VEHICLES,
    "residential": _ROAD_VEHICLES,
    "living_street": _ROAD_VEHICLES,
    "road": _ROAD_VEHICLES,
    "service": _ROAD_VEHICLES,
    "track": _ROAD_VEHICLES,
    "busway": frozenset(t.MODE_CATEGORIES[t.PSV] | {t.FOOT}),
    "pedestrian": frozenset({t.FOOT, t.DOG}),
    "steps": frozenset({t.FOOT, t.DOG}),
    "path": frozenset({t.FOOT, t.DOG, t.HORSE, t.BICYCLE}),
    "bridleway": frozenset({t.HORSE}),
    "cycleway": frozenset({t.BICYCLE}),
    "footway": frozenset({t.FOOT}),
}

RAILWAY_MODE_ACCESS: Dict[str, FrozenSet[str]] = {
    "rail": frozenset({t.TRAIN}),
    "narrow_gauge": frozenset({t.TRAIN}),
    "light_rail": frozenset({t.LIGHT_RAIL, t.TRAM}),
    "tram": frozenset({t.TRAM, t.LIGHT_RAIL}),
    "subway": frozenset({t.SUBWAY}),
    "funicular": frozenset({t.FUNICULAR}),
    "monorail": frozenset({t.MONORAIL}),
}

FERRY_MODE_ACCESS: Dict[str, FrozenSet[str]] = {t.FERRY: frozenset({t.FERRY})}

HIGHWAY_CAPACITY: Dict[str, float] = {
    "motorway": 2000.0,
    "motorway_link": 1800.0,
    "trunk": 2000.0,
    "trunk_link": 1700.0,
    "primary": 1600.0,
    "primary_link": 1400.0,
    "secondary": 1200.0,
    "secondary_link": 1000.0,
    "tertiary": 1000.0,
    "tertiary_link": 800.0,
    "road": 0.0,
}

# (urban, non-urban)
HIGHWAY_SPEED_KMH: Dict[str, Tuple[float, float]] = {
    "motorway": (100.0, 120.0),
    "motorway_link": (100.0, 120.0),
    "trunk": (80.0, 100.0),
    "trunk_link": (80.0, 100.0),
    "primary": (60.0, 100.0),
    "primary_link": (60.0, 100.0),
    "secondary": (50.0, 80.0),
    "secondary_link": (50.0, 80.0),
    "tertiary": (50.0, 80.0),
    "tertiary_link": (50.0, 80.0),
    "unclassified": (50.0, 80.0),
    "residential": (40.0, 80.0),
    "living_street": (20.0, 20.0),
    "pedestrian": (20.0, 20.0),
    "track": (20.0, 40.0),
    "road": (20.0, 40.0),
    "service": (20.0, 40.0),
    "busway": (50.0, 80.0),
    "footway": (20.0, 20.0),
    "path": (20.0, 20.0),
    "cycleway": (20.0, 20.0),
    "steps": (10.0, 10.0),
    "bridleway": (20.0, 20.0),
}

# Country specific (urban, non-urban) highway speeds, replacing the global
# entries of the same highway value
COUNTRY_HIGHWAY_SPEED_KMH: Dict[str, Dict[str, Tuple[float, float]]] = {
    "AU": {
        "motorway": (100.0, 110.0),
        "motorway_link": (80.0, 100.0),
        "trunk": (80.0, 100.0),
        "primary": (60.0, 100.0),
        "secondary": (60.0, 100.0),
        "tertiary": (50.0, 100.0),
        "unclassified": (50.0, 100.0),
        "residential": (50.0, 100.0),
        "living_street": (10.0, 10.0),
    },
    "DE": {
        "motorway": (130.0, 130.0),
        "trunk": (100.0, 100.0),
        "residential": (50.0, 100.0),
        "living_street": (7.0, 7.0),
    },
    "GB": {
        "motorway": (112.65, 112.65),
        "trunk": (96.56, 112.65),
        "primary": (48.28, 96.56),
        "residential": (48.28, 96.56),
    },
    "NL": {
        "motorway": (100.0, 130.0),
        "residential": (50.0, 80.0),
        "living_street": (15.0, 15.0),
    },
}

# Country specific mode access, replacing the global entries of the same
# highway value
COUNTRY_HIGHWAY_MODE_ACCESS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "AU": {"footway": frozenset({t.FOOT, t.BICYCLE})},
    "NL": {"cycleway": frozenset({t.BICYCLE, t.MOPED})},
}

DEFAULT_LANES_PER_DIRECTION: Dict[str, int] = {
    "motorway": 2,
    "trunk": 2,
}

DEFAULT_MODE_MAPPING: Dict[str, str] = {
    t.FOOT: "pedestrian",
    t.BICYCLE: "bicycle",
    t.MOTORCYCLE: "motor_bike",
    t.MOTORCAR: "car",
    t.GOODS: "goods_vehicle",
    t.HGV: "heavy_goods_vehicle",
    t.HGV_ARTICULATED: "large_heavy_goods_vehicle",
    t.BUS: "bus",
    t.TRAIN: "train",
    t.TRAM: "tram",
    t.LIGHT_RAIL: "light_rail",
    t.SUBWAY: "subway",
    t.FERRY: "ferry",
}

MODE_MAX_SPEED_KMH: Dict[str, float] = {
    "pedestrian": 5.0,
    "bicycle": 25.0,
    "motor_bike": 130.0,
    "car": 130.0,
    "goods_vehicle": 100.0,
    "heavy_goods_vehicle": 100.0,
    "large_heavy_goods_vehicle": 90.0,
    "bus": 100.0,
    "train": 140.0,
    "tram": 70.0,
    "light_rail": 70.0,
    "subway": 100.0,
    "ferry": 40.0,
}
DEFAULT_MODE_MAX_SPEED_KMH = 130.0

# ISO-2 codes of countries that drive on the left
LEFT_HAND_DRIVE_COUNTRIES: FrozenSet[str] = frozenset(
    {
        "AG", "AI", "AU", "BB", "BD", "BM", "BN", "BS", "BT", "BW", "CY",
        "DM", "FJ", "FK", "GB", "GD", "GG", "GY", "HK", "ID", "IE", "IM",
        "IN", "JE", "JM", "JP", "KE", "KI", "KN", "KY", "LC", "LK", "LS",
        "MO", "MS", "MT", "MU", "MV", "MW", "MY", "MZ", "NA", "NP", "NR",
        "NZ", "PG", "PK", "SB", "SC", "SG", "SH", "SR", "SZ", "TC", "TH",
        "TL", "TO", "TT", "TV", "TZ", "UG", "VC", "VG", "VI", "WS", "ZA",
        "ZM", "ZW",
    }
)

SUPPORTED_WAY_TYPES: FrozenSet[str] = frozenset(
    [WayType(t.HIGHWAY, v).label for v in HIGHWAY_MODE_ACCESS]
    + [WayType(t.RAILWAY, v).label for v in RAILWAY_MODE_ACCESS]
    + [WayType(t.ROUTE, v).label for v in FERRY_MODE_ACCESS]
)

DEFAULT_ACTIVATED_WAY_TYPES: FrozenSet[str] = frozenset(
    WayType(t.HIGHWAY, v).label for v in HIGHWAY_MODE_ACCESS
)


def is_left_hand_drive(country_code: Optional[str]) -> bool:
    """Whether traffic keeps left in the given ISO-2 country."""
    if not country_code:
        return False
    return _country(country_code) in LEFT_HAND_DRIVE_COUNTRIES


def is_supported(way_type: WayType) -> bool:
    return way_type.label in SUPPORTED_WAY_TYPES


def _country(country_code: Optional[str]) -> str:
    return country_code.strip().upper() if country_code else ""


def default_modes(way_type: WayType, country_code: Optional[str] = None) -> Set[str]:
    """OSM mode tokens a way type admits when no access tags are present.

    Country specific access replaces the global entry when one exists.
    """
    if way_type.key == t.HIGHWAY:
        country = COUNTRY_HIGHWAY_MODE_ACCESS.get(_country(country_code), {})
        if way_type.value in country:
            return set(country[way_type.value])
        return set(HIGHWAY_MODE_ACCESS.get(way_type.value, ()))
    if way_type.key == t.RAILWAY:
        return set(RAILWAY_MODE_ACCESS.get(way_type.value, ()))
    if way_type.key == t.ROUTE:
        return set(FERRY_MODE_ACCESS.get(way_type.value, ()))
    return set()


def default_capacity(way_type: WayType) -> float:
    if way_type.key == t.RAILWAY:
        return RAILWAY_CAPACITY
    if way_type.key == t.ROUTE:
        return WATERWAY_CAPACITY
    return HIGHWAY_CAPACITY.get(way_type.value, DEFAULT_MINIMUM_CAPACITY_LANE)


def default_speed(
    way_type: WayType, urban: bool = True, country_code: Optional[str] = None
) -> float:
    if way_type.key == t.RAILWAY:
        return RAILWAY_SPEED_KMH
    if way_type.key == t.ROUTE:
        return FERRY_SPEED_KMH
    country = COUNTRY_HIGHWAY_SPEED_KMH.get(_country(country_code), {})
    urban_kmh, non_urban_kmh = country.get(
        way_type.value, HIGHWAY_SPEED_KMH.get(way_type.value, (50.0, 80.0))
    )
    return urban_kmh if urban else non_urban_kmh


def default_lanes(way_type: WayType) -> int:
    if way_type.key != t.HIGHWAY:
        return 1
    return DEFAULT_LANES_PER_DIRECTION.get(way_type.value, 1)


def mode_max_speed(mode_id: str) -> float:
    return MODE_MAX_SPEED_KMH.get(mode_id, DEFAULT_MODE_MAX_SPEED_KMH)
