"""Rule tables: loading and validation.

Detector chains, subcategory tables and legacy buckets are configuration
data shipped as JSON next to the taxonomy snapshot. Each table is parsed
with pydantic and then validated against the taxonomy tree, so that a
typo in a rule key is caught before any item is classified.

A pattern written as ``@name`` expands to the named list of
``keyword_lists.json``, so that a keyword set shared by several rules
(e.g. the home aroma terms) is maintained in one place.

Example:
    taxonomy = load_taxonomy()
    tables = load_rule_tables(taxonomy)
    tables.detectors.detectors[0].name  # "gift_card"
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from rapidfuzz import fuzz, process

from catalog_taxonomy.errors import RuleTableError
from catalog_taxonomy.models import NewBucket
from catalog_taxonomy.services.normalization import normalize_text
from catalog_taxonomy.taxonomy import TaxonomyTree

logger = structlog.get_logger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent.parent / "data"
DEFAULT_DETECTORS_PATH = DATA_DIR / "category_detectors.json"
DEFAULT_SUBCATEGORY_RULES_PATH = DATA_DIR / "subcategory_rules.json"
DEFAULT_LEGACY_BUCKETS_PATH = DATA_DIR / "legacy_buckets.json"
DEFAULT_KEYWORD_LISTS_PATH = DATA_DIR / "keyword_lists.json"

KEYWORD_LIST_PREFIX = "@"

# Confidence band of the generic rule closing every subcategory table
FALLBACK_MIN_CONFIDENCE = 0.6
FALLBACK_MAX_CONFIDENCE = 0.78

# Fixed confidence band of legacy buckets (forced buckets sit below it)
LEGACY_MIN_CONFIDENCE = 0.6
LEGACY_MAX_CONFIDENCE = 0.7

SUGGESTION_SCORE_CUTOFF = 75


def _check_patterns(patterns: List[str]) -> List[str]:
    for pattern in patterns:
        if not normalize_text(pattern):
            raise ValueError(f"Pattern is empty after normalization: {pattern!r}")
    return patterns


class MatchCondition(BaseModel):
    """Keyword condition as written in rule tables."""

    any: List[str] = Field(default_factory=list)
    all: List[List[str]] = Field(default_factory=list)
    unless: List[str] = Field(default_factory=list)

    @field_validator("any", "unless")
    @classmethod
    def validate_patterns(cls, v: List[str]) -> List[str]:
        return _check_patterns(v)

    @field_validator("all")
    @classmethod
    def validate_groups(cls, v: List[List[str]]) -> List[List[str]]:
        for group in v:
            if not group:
                raise ValueError("'all' groups cannot be empty")
            _check_patterns(group)
        return v

    @model_validator(mode="after")
    def require_positive_patterns(self):
        if not self.any and not self.all:
            raise ValueError("Rule needs 'any' patterns or 'all' groups")
        return self


class KeywordLists(BaseModel):
    """Named pattern lists referenced from rule tables as ``@name``."""

    version: str = "1"
    lists: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("lists")
    @classmethod
    def validate_lists(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for name, patterns in v.items():
            if not patterns:
                raise ValueError(f"Keyword list {name!r} is empty")
            _check_patterns(patterns)
        return v


class DetectorRuleConfig(MatchCondition):
    """One ordered rule of a category detector."""

    category: str
    subcategory: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)
    reasons: List[str] = Field(..., min_length=1)
    new_bucket: Optional[NewBucket] = None


class DetectorConfig(BaseModel):
    """A named detector: optional exclusions plus ordered rules."""

    name: str = Field(..., min_length=1)
    exclude: List[MatchCondition] = Field(default_factory=list)
    rules: List[DetectorRuleConfig] = Field(..., min_length=1)


class DetectorTable(BaseModel):
    """Ordered detector chain. Order is priority."""

    version: str = "1"
    detectors: List[DetectorConfig] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_unique_names(self):
        names = [d.name for d in self.detectors]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate detector names: {duplicates}")
        return self


class SubcategoryRuleConfig(MatchCondition):
    """One ordered rule of a per-category subcategory table."""

    key: str
    confidence: float = Field(..., ge=0, le=1)
    reasons: List[str] = Field(..., min_length=1)


class SubcategoryTable(BaseModel):
    """Subcategory rule tables keyed by category.

    Categories listed in ``bespoke`` are resolved by code instead of a table.
    """

    version: str = "1"
    bespoke: List[str] = Field(default_factory=list)
    tables: Dict[str, List[SubcategoryRuleConfig]] = Field(default_factory=dict)


class LegacyTarget(BaseModel):
    category: str
    subcategory: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)


class LegacySubcategoryOverride(LegacyTarget):
    """Target used when the legacy subcategory is one of ``subcategories``."""

    subcategories: List[str] = Field(..., min_length=1)


class LegacyBucketConfig(BaseModel):
    """A deprecated top-level category and where it migrates to.

    Attributes:
        name: Bucket name, used in the ``legacy:<name>`` reason
        aliases: Legacy category values (compared after normalization)
        target: Default target
        by_subcategory: Targets chosen by legacy subcategory
        defer_to_detector: Detector consulted before the fixed target. Through
            TaxonomyResolver the legacy fallback only runs once the whole
            detector chain found nothing, so the deferral changes results
            only when LegacyBucketFallback is called on its own.
        forced: Migrate even though the target is a guess (low confidence)
        reason: Reason override (default ``legacy:<name>``)
    """

    name: str = Field(..., min_length=1)
    aliases: List[str] = Field(..., min_length=1)
    target: LegacyTarget
    by_subcategory: List[LegacySubcategoryOverride] = Field(default_factory=list)
    defer_to_detector: Optional[str] = None
    forced: bool = False
    reason: Optional[str] = None

    @property
    def reason_tag(self) -> str:
        return self.reason or f"legacy:{self.name}"


class LegacyTable(BaseModel):
    version: str = "1"
    buckets: List[LegacyBucketConfig] = Field(default_factory=list)


@dataclass(frozen=True)
class RuleTableIssue:
    """A validation problem in a rule table."""
    table: str
    location: str
    message: str
    hint: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.table}:{self.location}: {self.message}"
        if self.hint:
            text += f" (did you mean {self.hint!r}?)"
        return text


@dataclass(frozen=True)
class RuleTables:
    """Validated rule tables for one run."""
    detectors: DetectorTable
    subcategories: SubcategoryTable
    legacy: LegacyTable
    keyword_lists: KeywordLists = field(default_factory=KeywordLists)


def _closest(value: str, choices: Sequence[str]) -> Optional[str]:
    if not choices:
        return None
    match = process.extractOne(
        value, choices, scorer=fuzz.WRatio, score_cutoff=SUGGESTION_SCORE_CUTOFF
    )
    return match[0] if match else None


class _Validator:
    """Collects issues while walking the tables."""

    def __init__(self, taxonomy: TaxonomyTree):
        self.taxonomy = taxonomy
        self.issues: List[RuleTableIssue] = []

    def add(self, table: str, location: str, message: str, hint: Optional[str] = None) -> None:
        self.issues.append(RuleTableIssue(table, location, message, hint))

    def check_category(self, table: str, location: str, category: str) -> bool:
        if self.taxonomy.is_canonical(category):
            return True
        self.add(
            table, location, f"unknown category {category!r}",
            _closest(category, self.taxonomy.categories),
        )
        return False

    def check_subcategory(self, table: str, location: str, category: str, key: str) -> None:
        if self.taxonomy.is_valid_subcategory(category, key):
            return
        message = f"subcategory {key!r} is not allowed in {category!r}"
        owner = self.taxonomy.category_of(key)
        if owner is not None:
            message += f", it belongs to {owner!r}"
        self.add(
            table, location, message,
            _closest(key, sorted(self.taxonomy.allowed_subcategories(category))),
        )


def validate_rule_tables(
    taxonomy: TaxonomyTree,
    detectors: DetectorTable,
    subcategories: SubcategoryTable,
    legacy: LegacyTable,
) -> List[RuleTableIssue]:
    """Validate rule tables against the taxonomy.

    Args:
        taxonomy: Canonical tree the rules must point into
        detectors: Category detector chain
        subcategories: Per-category subcategory tables
        legacy: Legacy bucket table

    Returns:
        List of issues (empty when every table is valid)
    """
    v = _Validator(taxonomy)

    for detector in detectors.detectors:
        for i, rule in enumerate(detector.rules):
            location = f"{detector.name}[{i}]"
            if not v.check_category("detectors", location, rule.category):
                continue
            if rule.subcategory is not None:
                v.check_subcategory("detectors", location, rule.category, rule.subcategory)
            if rule.new_bucket is not None:
                if rule.subcategory is not None:
                    v.add("detectors", location, "new_bucket rules cannot also set a subcategory")
                if taxonomy.is_valid_subcategory(rule.category, rule.new_bucket.key):
                    v.add(
                        "detectors", location,
                        f"new bucket {rule.new_bucket.key!r} already exists in {rule.category!r}",
                    )

    for category in subcategories.bespoke:
        v.check_category("subcategories", f"bespoke:{category}", category)
        if category in subcategories.tables:
            v.add("subcategories", category, "category has both a bespoke resolver and a table")

    for category, rules in subcategories.tables.items():
        if not v.check_category("subcategories", category, category):
            continue
        if not rules:
            v.add("subcategories", category, "table is empty")
            continue
        for i, rule in enumerate(rules):
            v.check_subcategory("subcategories", f"{category}[{i}]", category, rule.key)
        fallback = rules[-1]
        if not FALLBACK_MIN_CONFIDENCE <= fallback.confidence <= FALLBACK_MAX_CONFIDENCE:
            v.add(
                "subcategories", f"{category}[{len(rules) - 1}]",
                f"last rule must be a generic fallback with confidence in "
                f"[{FALLBACK_MIN_CONFIDENCE}, {FALLBACK_MAX_CONFIDENCE}], got {fallback.confidence}",
            )

    detector_names = [d.name for d in detectors.detectors]
    seen_aliases: Dict[str, str] = {}
    for bucket in legacy.buckets:
        for alias in bucket.aliases:
            normalized = normalize_text(alias)
            if taxonomy.is_canonical(normalized.replace(" ", "_")):
                v.add("legacy", bucket.name, f"alias {alias!r} shadows a canonical category")
            owner = seen_aliases.setdefault(normalized, bucket.name)
            if owner != bucket.name:
                v.add("legacy", bucket.name, f"alias {alias!r} already used by bucket {owner!r}")

        targets = [("target", bucket.target)] + [
            (f"by_subcategory[{i}]", t) for i, t in enumerate(bucket.by_subcategory)
        ]
        for location, target in targets:
            where = f"{bucket.name}.{location}"
            if not v.check_category("legacy", where, target.category):
                continue
            if target.subcategory is not None:
                v.check_subcategory("legacy", where, target.category, target.subcategory)
            if bucket.forced:
                if target.confidence >= LEGACY_MIN_CONFIDENCE:
                    v.add(
                        "legacy", where,
                        f"forced bucket confidence must stay below {LEGACY_MIN_CONFIDENCE}",
                    )
            elif not LEGACY_MIN_CONFIDENCE <= target.confidence <= LEGACY_MAX_CONFIDENCE:
                v.add(
                    "legacy", where,
                    f"confidence must be in [{LEGACY_MIN_CONFIDENCE}, {LEGACY_MAX_CONFIDENCE}]",
                )

        if bucket.defer_to_detector and bucket.defer_to_detector not in detector_names:
            v.add(
                "legacy", bucket.name, f"unknown detector {bucket.defer_to_detector!r}",
                _closest(bucket.defer_to_detector, detector_names),
            )

    return v.issues


def _expand_references(node, lists: Dict[str, List[str]], table: str, location: str, issues: list):
    """Replace ``@name`` items of every list with the patterns of that keyword list."""
    if isinstance(node, dict):
        return {
            key: _expand_references(value, lists, table, f"{location}.{key}" if location else key, issues)
            for key, value in node.items()
        }
    if not isinstance(node, list):
        return node
    expanded = []
    for i, item in enumerate(node):
        if isinstance(item, str) and item.startswith(KEYWORD_LIST_PREFIX):
            name = item[len(KEYWORD_LIST_PREFIX):]
            if name in lists:
                expanded.extend(lists[name])
            else:
                issues.append(RuleTableIssue(
                    table, f"{location}.{i}", f"unknown keyword list {name!r}",
                    _closest(name, sorted(lists)),
                ))
        else:
            expanded.append(_expand_references(item, lists, table, f"{location}.{i}", issues))
    return expanded


def _read_table(model, path: Path, table: str, keyword_lists: Optional[KeywordLists] = None):
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise RuleTableError(f"Rule table {table} unreadable: {path}: {e}") from e
    if keyword_lists is not None:
        issues: List[RuleTableIssue] = []
        data = _expand_references(data, keyword_lists.lists, table, "", issues)
        if issues:
            raise RuleTableError(f"Rule table {table} references unknown keyword lists: {path}", issues=issues)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RuleTableError(
            f"Rule table {table} is invalid: {path}",
            issues=[
                RuleTableIssue(table, ".".join(str(p) for p in err["loc"]), err["msg"])
                for err in e.errors()
            ],
        ) from e


def load_keyword_lists(path: Optional[Union[str, Path]] = None) -> KeywordLists:
    return _read_table(KeywordLists, Path(path) if path else DEFAULT_KEYWORD_LISTS_PATH, "keyword_lists")


def load_detector_table(
    path: Optional[Union[str, Path]] = None,
    keyword_lists: Optional[KeywordLists] = None,
) -> DetectorTable:
    return _read_table(
        DetectorTable, Path(path) if path else DEFAULT_DETECTORS_PATH, "detectors",
        keyword_lists or load_keyword_lists(),
    )


def load_subcategory_table(
    path: Optional[Union[str, Path]] = None,
    keyword_lists: Optional[KeywordLists] = None,
) -> SubcategoryTable:
    return _read_table(
        SubcategoryTable, Path(path) if path else DEFAULT_SUBCATEGORY_RULES_PATH, "subcategories",
        keyword_lists or load_keyword_lists(),
    )


def load_legacy_table(path: Optional[Union[str, Path]] = None) -> LegacyTable:
    return _read_table(LegacyTable, Path(path) if path else DEFAULT_LEGACY_BUCKETS_PATH, "legacy")


def load_rule_tables(
    taxonomy: TaxonomyTree,
    detectors_path: Optional[Union[str, Path]] = None,
    subcategories_path: Optional[Union[str, Path]] = None,
    legacy_path: Optional[Union[str, Path]] = None,
    keyword_lists_path: Optional[Union[str, Path]] = None,
) -> RuleTables:
    """Load all rule tables and validate them against the taxonomy.

    Raises:
        RuleTableError: If any table is unreadable or invalid
    """
    keyword_lists = load_keyword_lists(keyword_lists_path)
    tables = RuleTables(
        detectors=load_detector_table(detectors_path, keyword_lists),
        subcategories=load_subcategory_table(subcategories_path, keyword_lists),
        legacy=load_legacy_table(legacy_path),
        keyword_lists=keyword_lists,
    )
    issues = validate_rule_tables(taxonomy, tables.detectors, tables.subcategories, tables.legacy)
    if issues:
        for issue in issues:
            logger.error("rule_table_issue", issue=str(issue))
        raise RuleTableError(f"{len(issues)} rule table issue(s)", issues=issues)

    logger.info(
        "rule_tables_loaded",
        detectors=len(tables.detectors.detectors),
        subcategory_tables=len(tables.subcategories.tables),
        bespoke=len(tables.subcategories.bespoke),
        legacy_buckets=len(tables.legacy.buckets),
        keyword_lists=len(keyword_lists.lists),
    )
    return tables
