"""Text normalization module."""
from catalog_taxonomy.services.normalization.text import build_item_text, normalize_text

__all__ = ["normalize_text", "build_item_text"]
