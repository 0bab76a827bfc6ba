"""Category and subcategory classification module."""
from catalog_taxonomy.services.classification.detectors import (
    CategoryResolver,
    Detector,
    DetectorRule,
)
from catalog_taxonomy.services.classification.rules import (
    KeywordLists,
    RuleTableIssue,
    RuleTables,
    load_detector_table,
    load_keyword_lists,
    load_legacy_table,
    load_rule_tables,
    load_subcategory_table,
    validate_rule_tables,
)
from catalog_taxonomy.services.classification.subcategories import (
    SubcategoryResolver,
    SubcategoryRule,
)

__all__ = [
    "CategoryResolver",
    "Detector",
    "DetectorRule",
    "KeywordLists",
    "RuleTableIssue",
    "RuleTables",
    "SubcategoryResolver",
    "SubcategoryRule",
    "load_detector_table",
    "load_keyword_lists",
    "load_legacy_table",
    "load_rule_tables",
    "load_subcategory_table",
    "validate_rule_tables",
]
