"""Decision aggregation module."""
from catalog_taxonomy.services.aggregation.tallies import NULL_MARKER, Aggregator

__all__ = ["Aggregator", "NULL_MARKER"]
