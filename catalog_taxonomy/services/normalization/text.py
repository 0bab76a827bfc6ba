"""Text normalization shared by matchers and rule tables.

Example:
    normalize_text("Camiseta Básica T-Shirt")
    # "camiseta basica t shirt"
"""
import re
import unicodedata
from typing import Optional


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_text(value: Optional[str]) -> str:
    """Lowercase, strip diacritics and collapse non-alphanumerics to one space.

    Total and idempotent: ``normalize_text(normalize_text(s)) == normalize_text(s)``.
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value).lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub(" ", stripped).strip()


def build_item_text(title: Optional[str], description: Optional[str] = None) -> str:
    """Normalized text of title and description combined."""
    return normalize_text(" ".join(part for part in (title, description) if part))
