"""
Attribute Catalog
===================

Registry of reusable link segment attribute templates. One template is
created lazily per way classification encountered; derived templates for
ways whose tags add or remove modes relative to their classification are
cached by ``(base, added, removed)`` so equal deviations share a single
template.

Example::

    from waynet.core.catalog import AttributeCatalog
    from waynet.osm.settings import ConverterSettings

    catalog = AttributeCatalog(ConverterSettings())
    primary = catalog.get_or_create_template("highway:primary")
    no_bikes = catalog.get_or_create_derived(primary, frozenset(), frozenset({"bicycle"}))
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from waynet.osm import defaults
from waynet.osm.settings import ConverterSettings
from waynet.osm.tags import WayType

logger = logging.getLogger(__name__)

MODIFIED_SUFFIX = "_modified"

DerivedKey = Tuple[int, FrozenSet[str], FrozenSet[str]]


@dataclass(eq=False)
class AttributeTemplate:
    """Capacity, density and per-mode speed cap shared by link segments.

    Attributes:
        id: Dense catalog id.
        key: Classification label (``"highway:primary"``) or, for derived
            templates, the base label with a ``_modified`` suffix.
        capacity_per_lane: Capacity in pcu/h/lane.
        max_density_per_lane: Max density in pcu/km/lane.
        mode_speed_caps: Internal mode id to maximum speed (km/h).
        base: Template this one was derived from, None for classification
            templates.
        way_type: Classification whose defaults the template carries.
    """

    id: int
    key: str
    capacity_per_lane: float
    max_density_per_lane: float
    mode_speed_caps: Dict[str, float] = field(default_factory=dict)
    base: Optional["AttributeTemplate"] = None
    way_type: Optional[WayType] = None

    @property
    def modes(self) -> FrozenSet[str]:
        return frozenset(self.mode_speed_caps)

    @property
    def is_derived(self) -> bool:
        return self.base is not None

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": int(self.id),
            "key": self.key,
            "capacity_per_lane": float(self.capacity_per_lane),
            "max_density_per_lane": float(self.max_density_per_lane),
            "mode_speed_caps": {m: float(s) for m, s in sorted(self.mode_speed_caps.items())},
            "base": self.base.id if self.base is not None else None,
        }


class AttributeCatalog:
    """Lazily populated cache of attribute templates.

    Templates are keyed by classification label. Labels that resolve to
    the same template (an unsupported type replaced by the configured
    fallback) are registered as aliases of one shared template.

    Args:
        settings: Supplies mode mapping, overrides, fallback type and the
            urban flag for default speeds.
    """

    def __init__(self, settings: ConverterSettings):
        self.settings = settings
        self._templates: List[AttributeTemplate] = []
        self._by_key: Dict[str, AttributeTemplate] = {}
        self._derived: Dict[DerivedKey, AttributeTemplate] = {}

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self):
        return iter(self._templates)

    @property
    def templates(self) -> List[AttributeTemplate]:
        return list(self._templates)

    def get(self, key: str) -> Optional[AttributeTemplate]:
        return self._by_key.get(key)

    def resolve_way_type(self, way_type: WayType) -> Optional[WayType]:
        """Way type whose defaults apply, honouring the fallback.

        Returns:
            ``way_type`` itself when supported, the configured fallback
            when not, or None when the type cannot be converted.
        """
        if defaults.is_supported(way_type):
            return way_type
        return self.settings.fallback_for(way_type)

    def get_or_create_template(
        self, way_type: Union[WayType, str]
    ) -> Optional[AttributeTemplate]:
        """Template for a classification, created on first use.

        Args:
            way_type: Classification, or its ``"<key>:<value>"`` label.

        Returns:
            The shared template, or None when the classification is not
            supported and no fallback is configured.
        """
        if isinstance(way_type, str):
            way_type = WayType.from_label(way_type)
        key = way_type.label
        template = self._by_key.get(key)
        if template is not None:
            return template

        effective = self.resolve_way_type(way_type)
        if effective is None:
            return None

        if effective != way_type:
            template = self.get_or_create_template(effective)
            logger.debug("Way type %s mapped onto %s", key, effective.label)
        else:
            template = self._create(way_type)
        self._by_key[key] = template
        return template

    def get_or_create_derived(
        self,
        base: AttributeTemplate,
        added: Iterable[str],
        removed: Iterable[str],
    ) -> AttributeTemplate:
        """Template equal to ``base`` with modes added and removed.

        Repeated requests with an equal ``(base, added, removed)`` key
        return the same template object.

        Args:
            base: Classification template to derive from.
            added: Internal mode ids to add.
            removed: Internal mode ids to remove.

        Returns:
            ``base`` when nothing changes or all modes would be removed,
            otherwise the shared derived template.
        """
        added = frozenset(added) - base.modes
        removed = frozenset(removed) & base.modes
        if not added and not removed:
            return base
        if len(base.modes) + len(added) - len(removed) <= 0:
            return base

        derived_key = (base.id, added, removed)
        template = self._derived.get(derived_key)
        if template is not None:
            return template

        caps = {m: s for m, s in base.mode_speed_caps.items() if m not in removed}
        way_speed = self._type_speed(base)
        for mode in added:
            caps[mode] = min(defaults.mode_max_speed(mode), way_speed)

        template = self._register(
            key=base.key + MODIFIED_SUFFIX,
            capacity=base.capacity_per_lane,
            max_density=base.max_density_per_lane,
            caps=caps,
            base=base,
        )
        self._derived[derived_key] = template
        return template

    def _create(self, way_type: WayType) -> AttributeTemplate:
        capacity = defaults.default_capacity(way_type)
        max_density = defaults.DEFAULT_MAX_DENSITY_LANE
        override = self.settings.overrides.get(way_type.label)
        if override is not None:
            if override.capacity is not None:
                capacity = override.capacity
            if override.max_density is not None:
                max_density = override.max_density

        way_speed = self.settings.default_speed(way_type)
        caps: Dict[str, float] = {}
        for osm_mode in self.settings.default_modes(way_type):
            mode_id = self.settings.mode_mapping.get(osm_mode)
            if mode_id is not None:
                caps[mode_id] = min(defaults.mode_max_speed(mode_id), way_speed)

        return self._register(way_type.label, capacity, max_density, caps, way_type=way_type)

    def _register(
        self,
        key: str,
        capacity: float,
        max_density: float,
        caps: Dict[str, float],
        base: Optional[AttributeTemplate] = None,
        way_type: Optional[WayType] = None,
    ) -> AttributeTemplate:
        template = AttributeTemplate(
            id=len(self._templates),
            key=key,
            capacity_per_lane=capacity,
            max_density_per_lane=max_density,
            mode_speed_caps=caps,
            base=base,
            way_type=way_type if base is None else base.way_type,
        )
        self._templates.append(template)
        if base is None:
            self._by_key[key] = template
        logger.debug("Created attribute template %d (%s)", template.id, key)
        return template

    def _type_speed(self, template: AttributeTemplate) -> float:
        return self.settings.default_speed(template.way_type)
