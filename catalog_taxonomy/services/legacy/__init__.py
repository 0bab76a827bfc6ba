"""Legacy category fallback module."""
from catalog_taxonomy.services.legacy.fallback import LegacyBucketFallback

__all__ = ["LegacyBucketFallback"]
