"""
Matchcore — Common-interest extraction strategies

``MutualMatchDetector`` depends only on the ``InterestExtractor`` protocol,
so the keyword scanner below can be swapped for a proper text classifier
without touching the detector.
"""

from __future__ import annotations

import re
from typing import Iterable, Protocol

from matchcore.models.interest import Interest

INTEREST_KEYWORDS: tuple[str, ...] = (
    "reading", "books", "travel", "cooking", "music", "sports", "movies",
    "photography", "art", "technology", "fitness", "yoga", "meditation",
    "gardening", "dancing", "singing", "writing", "painting", "hiking",
    "swimming", "cycling", "cricket", "football", "badminton", "chess",
)


class InterestExtractor(Protocol):
    def extract(self, interest: Interest) -> set[str]:
        ...


class KeywordInterestExtractor:
    """Scan the interest message for a fixed hobby vocabulary.

    Keywords are matched on word boundaries, case-insensitively.  Any
    ``common_interests`` already attached to the interest are included.
    """

    def __init__(self, keywords: Iterable[str] = INTEREST_KEYWORDS) -> None:
        self._keywords = tuple(k.lower() for k in keywords)
        self._patterns = {
            k: re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in self._keywords
        }

    def extract(self, interest: Interest) -> set[str]:
        found = {k for k, pattern in self._patterns.items() if pattern.search(interest.message or "")}
        found.update(str(i).strip().lower() for i in (interest.common_interests or []) if str(i).strip())
        return found
