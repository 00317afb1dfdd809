"""
Waynet: OpenStreetMap to Transport Network Conversion
=======================================================

Waynet turns raw OpenStreetMap nodes and ways into a routable,
multi-modal transport network of nodes, links and directed link
segments.

Key capabilities:
    - Tag rule engine resolving allowed modes, lanes and speed limits per direction
    - Shared capacity/density/speed attribute templates per way classification
    - Partial-way link building with geometry salvage around missing nodes
    - Topology correction breaking links at shared interior nodes
    - Roundabout and loop decomposition with driving-side conventions

Quick start::

    from waynet import ConverterSettings, RawNode, RawWay, convert

    settings = ConverterSettings(country_code="NL")
    result = convert(entities, settings)
    print(len(result.network.links()), "links")
    G = result.network.to_networkx()
    print(result.report.summary())
"""

__version__ = "0.1.0"
__author__ = "Waynet Authors"

from waynet.core.network import TransportNetwork
from waynet.core.pipeline import ConversionResult, NetworkConverter, convert
from waynet.osm.entities import RawNode, RawWay
from waynet.osm.settings import ConverterSettings, TemplateOverride
from waynet.utils.diagnostics import ConversionReport

__all__ = [
    "ConversionReport",
    "ConversionResult",
    "ConverterSettings",
    "NetworkConverter",
    "RawNode",
    "RawWay",
    "TemplateOverride",
    "TransportNetwork",
    "convert",
]
