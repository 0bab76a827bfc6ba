"""Business logic services for taxonomy reconciliation.

Available Services:
    - normalization: Text normalization for matching
    - matching: Word/phrase matchers and match conditions
    - classification: Rule tables, category detectors, subcategory rules
    - legacy: Fallback for legacy category buckets
    - decision: Decision policy and the shared item resolver
    - sampling: Stable per-group sampling
    - aggregation: Decision tallies
    - reporting: Report documents and sinks
    - migration: Batched application of decisions
    - audit: Audit run orchestration
"""
