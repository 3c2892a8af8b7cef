"""
ID mapping tracker for a single sync run.

Records which destination entity was created for each source entity, so
children can be bound to their newly created parents and the run can be
reported (or cleaned up by hand) afterwards.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

ENTITY_TYPES = ('book', 'chapter', 'page')


class IdMappingTracker:
    """Tracks mappings between source and destination entity IDs."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize ID mapping tracker.

        Args:
            logger: Optional logger instance (defaults to module logger)
        """
        self.logger = logger or logging.getLogger(__name__)

        # (entity type, source id) -> destination info, in creation order
        self._source_to_destination: Dict[Tuple[str, int], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def add_mapping(
        self,
        entity_type: str,
        source_id: int,
        destination_id: int,
        destination_slug: str = ''
    ) -> None:
        """
        Store mapping for a source entity to its destination copy.

        Args:
            entity_type: 'book', 'chapter' or 'page'
            source_id: Entity ID on the source instance
            destination_id: Entity ID assigned by the destination instance
            destination_slug: Slug assigned by the destination instance
        """
        if entity_type not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity type '{entity_type}'")

        with self._lock:
            self._source_to_destination[(entity_type, source_id)] = {
                'destination_id': destination_id,
                'destination_slug': destination_slug
            }

        self.logger.debug(
            f"Mapping added: {entity_type}:{source_id} -> {entity_type}:{destination_id}"
        )

    def get_destination_id(self, entity_type: str, source_id: int) -> Optional[int]:
        """
        Get destination ID for a source entity.

        Returns:
            Destination ID or None if the entity has not been created
        """
        mapping = self._source_to_destination.get((entity_type, source_id))
        return mapping['destination_id'] if mapping else None

    def destination_ids(self, entity_type: str) -> List[int]:
        """Destination IDs created for one entity type, in creation order."""
        return [
            info['destination_id']
            for (mapped_type, _), info in self._source_to_destination.items()
            if mapped_type == entity_type
        ]

    def get_all_mappings(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Get complete mapping structure.

        Returns:
            Dict keyed by entity type, each a list of
            {'source_id', 'destination_id', 'destination_slug'} entries
        """
        mappings: Dict[str, List[Dict[str, Any]]] = {entity_type: [] for entity_type in ENTITY_TYPES}
        for (entity_type, source_id), info in self._source_to_destination.items():
            mappings[entity_type].append({'source_id': source_id, **info})
        return mappings

    def get_statistics(self) -> Dict[str, int]:
        """Count of mapped entities per type."""
        stats = {entity_type: 0 for entity_type in ENTITY_TYPES}
        for entity_type, _ in self._source_to_destination:
            stats[entity_type] += 1
        return stats
