"""Migration (apply path) module."""
from catalog_taxonomy.services.migration.executor import (
    ApplyResult,
    FailedWrite,
    MigrationExecutor,
    make_rule_version,
)

__all__ = ["ApplyResult", "FailedWrite", "MigrationExecutor", "make_rule_version"]
