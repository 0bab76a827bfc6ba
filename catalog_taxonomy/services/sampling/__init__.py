"""Stable sampling module."""
from catalog_taxonomy.services.sampling.stable import sample_group, stable_sample_key

__all__ = ["sample_group", "stable_sample_key"]
