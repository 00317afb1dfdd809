"""
Conversion Diagnostics
========================

Counters collected while a network is converted. A single
:class:`ConversionReport` is created per run and handed to every
component that records something, then returned with the result.

Example::

    report = ConversionReport()
    report.record_skip("area")
    report.log_summary(logging.getLogger("waynet"))
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class ConversionReport:
    """Run statistics for one conversion.

    Attributes:
        segments_total: Number of link segments created.
        missing_speed_limit: Segments whose speed limit fell back to the
            classification default.
        missing_lanes: Segments whose lane count fell back to the
            classification default.
        numeric_tag_errors: Unparsable speed or lane values encountered.
        way_type_counts: Processed ways per ``"<key>:<value>"`` type.
        skipped_ways: Ways that produced nothing, keyed by reason.
        broken_links: Number of link breaks performed.
        dropped_loops: Circular sections discarded for lack of anchors.
        salvaged_geometries: Geometries shortened because of missing nodes.
    """

    segments_total: int = 0
    missing_speed_limit: int = 0
    missing_lanes: int = 0
    numeric_tag_errors: int = 0
    way_type_counts: Counter = field(default_factory=Counter)
    skipped_ways: Counter = field(default_factory=Counter)
    broken_links: int = 0
    dropped_loops: int = 0
    salvaged_geometries: int = 0

    def record_skip(self, reason: str) -> None:
        self.skipped_ways[reason] += 1

    def record_way_type(self, way_type: str) -> None:
        self.way_type_counts[way_type] += 1

    @property
    def missing_speed_limit_pct(self) -> float:
        if self.segments_total == 0:
            return 0.0
        return 100.0 * self.missing_speed_limit / self.segments_total

    @property
    def missing_lanes_pct(self) -> float:
        if self.segments_total == 0:
            return 0.0
        return 100.0 * self.missing_lanes / self.segments_total

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped_ways.values())

    def summary(self) -> Dict[str, object]:
        """Serialize the counters to a JSON-compatible dictionary."""
        return {
            "segments_total": int(self.segments_total),
            "missing_speed_limit_pct": round(self.missing_speed_limit_pct, 2),
            "missing_lanes_pct": round(self.missing_lanes_pct, 2),
            "numeric_tag_errors": int(self.numeric_tag_errors),
            "way_type_counts": dict(self.way_type_counts),
            "skipped_ways": dict(self.skipped_ways),
            "broken_links": int(self.broken_links),
            "dropped_loops": int(self.dropped_loops),
            "salvaged_geometries": int(self.salvaged_geometries),
        }

    def log_summary(self, logger: logging.Logger) -> None:
        """Write the end-of-run statistics to ``logger`` at INFO level."""
        logger.info(
            "Converted %d link segments: %.1f%% without speed limit, "
            "%.1f%% without lane count",
            self.segments_total,
            self.missing_speed_limit_pct,
            self.missing_lanes_pct,
        )
        for way_type, count in sorted(self.way_type_counts.items()):
            logger.info("  %s: %d ways", way_type, count)
        if self.skipped_ways:
            logger.info(
                "Skipped %d ways: %s", self.total_skipped, dict(self.skipped_ways)
            )
        if self.broken_links:
            logger.info("Broke %d links at shared nodes", self.broken_links)
