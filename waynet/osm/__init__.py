"""
OpenStreetMap vocabulary for waynet.

Provides the tag vocabulary, per-classification default tables, the tag
rule engine, converter settings and the raw entity records consumed by
the converter.
"""

from waynet.osm.entities import EntityKind, RawNode, RawWay
from waynet.osm.rules import DirectionalAttributes, TagRuleEngine, parse_speed
from waynet.osm.settings import ConverterSettings, TemplateOverride
from waynet.osm.tags import WayType, way_type_of

__all__ = [
    "EntityKind",
    "RawNode",
    "RawWay",
    "DirectionalAttributes",
    "TagRuleEngine",
    "parse_speed",
    "ConverterSettings",
    "TemplateOverride",
    "WayType",
    "way_type_of",
]
