# ping_backend/utils/tags.py
from typing import Iterable, List


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Trimmed, lowercased, distinct, order preserved"""
    seen = []
    for tag in tags or []:
        value = (tag or "").strip().lower()
        if value and value not in seen:
            seen.append(value)
    return seen
