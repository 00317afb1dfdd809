"""
Conversion Pipeline
=====================

Single driver that consumes raw OSM entities and produces a corrected
transport network.

Processing order:

1. Nodes are stored as they arrive; no graph node is created eagerly.
2. Regular ways are converted as they arrive, so their nodes must have
   been delivered first (the order of OSM files).
3. Circular ways are deferred and decomposed by ascending way id once
   all regular ways are in, so their anchors are known.
4. One topology correction pass runs over the result.

Example::

    from waynet.core.pipeline import convert
    from waynet.osm.entities import RawNode, RawWay

    result = convert([
        RawNode(1, 4.900, 52.370),
        RawNode(2, 4.901, 52.370),
        RawWay(10, (1, 2), {"highway": "residential"}),
    ])
    print(result.network.links())
    print(result.report.summary())
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from waynet.core.builder import GraphBuilder
from waynet.core.catalog import AttributeCatalog, AttributeTemplate
from waynet.core.circular import CircularWayDecomposer
from waynet.core.errors import MissingNodeError
from waynet.core.network import TransportNetwork
from waynet.core.topology import Lineage, TopologyCorrector
from waynet.osm import tags as t
from waynet.osm.entities import EntityKind, RawNode, RawWay
from waynet.osm.rules import TagRuleEngine
from waynet.osm.settings import ConverterSettings
from waynet.osm.tags import WayType
from waynet.utils.diagnostics import ConversionReport

logger = logging.getLogger(__name__)

Entity = Union[RawNode, RawWay]


@dataclass
class ConversionResult:
    """Output of one conversion run.

    Attributes:
        network: The corrected transport network.
        report: Counters collected during the run.
        catalog: Attribute templates referenced by the network's segments.
        lineage: Original link id to the pieces it was broken into.
    """

    network: TransportNetwork
    report: ConversionReport
    catalog: AttributeCatalog
    lineage: Lineage


class NetworkConverter:
    """Build a :class:`TransportNetwork` from a stream of raw entities.

    Args:
        settings: Converter settings. Defaults to ``ConverterSettings()``.

    Raises:
        ValueError: If the settings are inconsistent.
    """

    def __init__(self, settings: Optional[ConverterSettings] = None):
        self.settings = settings if settings is not None else ConverterSettings()
        self.settings.validate()

        self.report = ConversionReport()
        self.network = TransportNetwork()
        self.catalog = AttributeCatalog(self.settings)
        self.engine = TagRuleEngine(self.settings, self.report)
        self.nodes: Dict[int, RawNode] = {}
        self.builder = GraphBuilder(
            self.network, self.catalog, self.engine, self.nodes, self.settings, self.report
        )
        self.decomposer = CircularWayDecomposer(self.builder, self.report)

        self._circular: List[Tuple[RawWay, WayType, AttributeTemplate]] = []
        self._accepting = True
        self._finished = False
        self._lineage: Lineage = {}

    def accept(self, entity: Entity) -> None:
        """Consume one raw entity."""
        if entity.kind is EntityKind.NODE:
            self.nodes[entity.id] = entity
        elif entity.kind is EntityKind.WAY:
            self.accept_way(entity)
        else:
            raise TypeError(f"Unsupported entity kind {entity.kind!r}")

    def stop_accepting(self) -> None:
        """Ignore ways delivered from now on."""
        if self._accepting:
            logger.info("Stopped accepting ways")
        self._accepting = False

    def accept_way(self, way: RawWay) -> None:
        if not self._accepting:
            return

        classified = self.classify(way)
        if classified is None:
            return
        way_type, template = classified
        self.report.record_way_type(way_type.label)

        collapsed = way.without_repeats()
        if collapsed is not way:
            logger.debug("Way %s: repeated consecutive node references collapsed", way.id)
            way = collapsed

        if self.decomposer.is_circular(way):
            self._circular.append((way, way_type, template))
            return

        if len(way.node_ids) < 2:
            logger.debug("Way %s has fewer than two nodes, discarded", way.id)
            self.report.record_skip("too_few_nodes")
            return
        try:
            link = self.builder.build_partial(way, way_type, template, 0, way.last_index)
        except MissingNodeError as exc:
            logger.info("%s, way skipped", exc)
            self.report.record_skip("missing_nodes")
            return
        if link is None:
            self.report.record_skip("no_link")

    def classify(self, way: RawWay) -> Optional[Tuple[WayType, AttributeTemplate]]:
        """Way type and attribute template of a way, or None to skip it.

        An unsupported way type is converted as the configured fallback
        type. Skipped ways are counted on the report by reason; untagged
        ways are logged at DEBUG level, the others at INFO.
        """
        way_type = t.way_type_of(way.tags)
        if way_type is None:
            logger.debug("Way %s has no classification key, skipped", way.id)
            self.report.record_skip("untagged")
            return None
        if t.is_area(way.tags):
            logger.info("Way %s is an area, skipped", way.id)
            self.report.record_skip("area")
            return None

        effective = self.catalog.resolve_way_type(way_type)
        if effective is None:
            logger.info(
                "Way %s of unsupported type %s and no fallback configured, skipped",
                way.id, way_type.label,
            )
            self.report.record_skip("unsupported")
            return None
        if not self.settings.is_activated(effective):
            logger.info("Way %s of type %s not activated, skipped", way.id, effective.label)
            self.report.record_skip("deactivated")
            return None

        return effective, self.catalog.get_or_create_template(way_type)

    def finish(self) -> ConversionResult:
        """Decompose deferred circular ways and correct the topology.

        Returns:
            The conversion result. Calling this again returns the same
            network without further processing.
        """
        if self._finished:
            return ConversionResult(self.network, self.report, self.catalog, self._lineage)
        self._finished = True

        for way, way_type, template in sorted(self._circular, key=lambda c: c[0].id):
            try:
                self.decomposer.decompose(way, way_type, template)
            except MissingNodeError as exc:
                logger.info("%s, circular way skipped", exc)
                self.report.record_skip("missing_nodes")
        self._circular.clear()

        corrector = TopologyCorrector(self.builder.interior_nodes, self.nodes, self.report)
        self._lineage = corrector.correct(self.network)

        self.report.log_summary(logger)
        return ConversionResult(self.network, self.report, self.catalog, self._lineage)


def convert(
    entities: Iterable[Entity], settings: Optional[ConverterSettings] = None
) -> ConversionResult:
    """Convert a complete entity stream in one call.

    Args:
        entities: Raw nodes and ways, nodes before the ways using them.
        settings: Converter settings.

    Returns:
        ConversionResult with the corrected network and run report.

    Raises:
        InvariantViolation: If a way triggers an internal invariant.
    """
    converter = NetworkConverter(settings)
    for entity in entities:
        converter.accept(entity)
    return converter.finish()
