"""
Exceptions raised by waynet.
"""

from typing import Iterable, Optional


class WaynetError(Exception):
    """Base class for waynet errors."""


class InvariantViolation(WaynetError):
    """A programming invariant was violated, e.g. a node index out of range.

    This is the only error that escapes the processing of a single way.
    """


class MissingNodeError(WaynetError):
    """Nodes referenced by a way are not available.

    Args:
        way_id: Id of the way referencing the nodes.
        node_ids: Ids of the missing nodes.
    """

    def __init__(self, way_id: Optional[int], node_ids: Iterable[int]):
        self.way_id = way_id
        self.node_ids = sorted(node_ids)
        super().__init__(
            f"Way {way_id} references unavailable nodes {self.node_ids}"
        )
