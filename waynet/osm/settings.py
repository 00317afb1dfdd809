"""
Converter Settings
====================

Options consumed by the converter. The core never reads configuration
files; callers construct :class:`ConverterSettings` directly.

Example::

    from waynet.osm.settings import ConverterSettings, TemplateOverride

    settings = ConverterSettings(
        country_code="GB",
        fallback_way_type="highway:unclassified",
        overrides={"highway:primary": TemplateOverride(capacity=1800.0)},
    )
    settings.validate()
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from waynet.osm import defaults
from waynet.osm.tags import WayType

MISSING_NODE_POLICIES = ("salvage", "raise")


@dataclass
class TemplateOverride:
    """User supplied replacement for the default attributes of a way type.

    Attributes:
        capacity: Capacity per lane (pcu/h). None keeps the default.
        max_density: Max density per lane (pcu/km). None keeps the default.
        speed_kmh: Default speed limit. None keeps the default.
    """

    capacity: Optional[float] = None
    max_density: Optional[float] = None
    speed_kmh: Optional[float] = None


@dataclass
class ConverterSettings:
    """Configuration for converting OSM ways into a transport network.

    Attributes:
        activated_way_types: ``"<key>:<value>"`` labels of way types to
            convert. Defaults to every supported highway type.
        mode_mapping: OSM mode token to internal mode id. Tokens absent
            from the mapping are not activated.
        overrides: Per way type attribute overrides.
        fallback_way_type: Way type used in place of an unsupported one
            sharing its key. None skips such ways.
        country_code: ISO-2 country code. Drives the driving side and selects
            country specific default speeds and mode access.
        urban: Whether urban (True) or non-urban default speeds apply.
        way_mode_overrides: Allowed OSM mode tokens for specific way ids,
            replacing the way type defaults.
        missing_node_policy: ``"salvage"`` to truncate geometry around
            nodes that are not available, ``"raise"`` to reject the way.
        discard_unanchored_loops: Drop circular sections that touch no
            other part of the network.
    """

    activated_way_types: Set[str] = field(
        default_factory=lambda: set(defaults.DEFAULT_ACTIVATED_WAY_TYPES)
    )
    mode_mapping: Dict[str, str] = field(
        default_factory=lambda: dict(defaults.DEFAULT_MODE_MAPPING)
    )
    overrides: Dict[str, TemplateOverride] = field(default_factory=dict)
    fallback_way_type: Optional[str] = None
    country_code: str = ""
    urban: bool = True
    way_mode_overrides: Dict[int, Set[str]] = field(default_factory=dict)
    missing_node_policy: str = "salvage"
    discard_unanchored_loops: bool = True

    @property
    def left_hand_drive(self) -> bool:
        return defaults.is_left_hand_drive(self.country_code)

    @property
    def supported_modes(self) -> Set[str]:
        """OSM mode tokens that are mapped onto an internal mode."""
        return set(self.mode_mapping)

    def activate(self, *labels: str) -> None:
        self.activated_way_types.update(labels)

    def deactivate(self, *labels: str) -> None:
        self.activated_way_types.difference_update(labels)

    def activate_railways(self) -> None:
        self.activate(*(WayType("railway", v).label for v in defaults.RAILWAY_MODE_ACCESS))

    def is_activated(self, way_type: WayType) -> bool:
        return way_type.label in self.activated_way_types

    def fallback_for(self, way_type: WayType) -> Optional[WayType]:
        """Way type to substitute for an unsupported one, if configured."""
        if self.fallback_way_type is None:
            return None
        fallback = WayType.from_label(self.fallback_way_type)
        if fallback.key != way_type.key:
            return None
        return fallback

    def default_speed(self, way_type: WayType) -> float:
        override = self.overrides.get(way_type.label)
        if override is not None and override.speed_kmh is not None:
            return override.speed_kmh
        return defaults.default_speed(way_type, self.urban, self.country_code)

    def default_modes(self, way_type: WayType) -> Set[str]:
        """OSM mode tokens a way type admits in the configured country."""
        return defaults.default_modes(way_type, self.country_code)

    def validate(self) -> None:
        """Check the settings for internal consistency.

        Raises:
            ValueError: If the fallback or an override names an
                unsupported way type, or the missing node policy is unknown.
        """
        if self.fallback_way_type is not None:
            fallback = WayType.from_label(self.fallback_way_type)
            if not defaults.is_supported(fallback):
                raise ValueError(
                    f"Fallback way type {self.fallback_way_type!r} is not supported"
                )
        for label in self.overrides:
            if not defaults.is_supported(WayType.from_label(label)):
                raise ValueError(f"Override for unsupported way type {label!r}")
        if self.missing_node_policy not in MISSING_NODE_POLICIES:
            raise ValueError(
                f"Unknown missing node policy {self.missing_node_policy!r}, "
                f"expected one of {MISSING_NODE_POLICIES}"
            )
