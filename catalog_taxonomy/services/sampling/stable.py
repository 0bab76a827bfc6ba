"""Reproducible per-group sampling.

Rows are ordered by ``md5(f"{item_id}:{seed}")`` and the first N are kept,
so the same seed always selects the same items regardless of read order.
"""
import hashlib
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")


def stable_sample_key(item_id: str, seed: str) -> str:
    """Hex digest ordering key of an item for a seed."""
    return hashlib.md5(f"{item_id}:{seed}".encode("utf-8")).hexdigest()


def sample_group(
    rows: Iterable[T],
    seed: str,
    size: int,
    key: Callable[[T], str] = lambda row: row.item_id,
) -> List[T]:
    """Take ``size`` rows ordered ascending by their stable sample key.

    Args:
        rows: Rows of one group
        seed: Run seed
        size: Rows to keep (0 or less keeps none)
        key: Extracts the item id of a row
    """
    if size <= 0:
        return []
    ordered = sorted(rows, key=lambda row: (stable_sample_key(str(key(row)), seed), str(key(row))))
    return ordered[:size]
