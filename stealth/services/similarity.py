"""Name similarity scorers used by the entity resolver.

A scorer compares two raw organization names and returns a value in
[0, 1]. Scorers must be symmetric and score a name against itself as 1.0.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

# Legal-form words carry no identity; "Pty Ltd" and "Limited" name the same company
LEGAL_SUFFIXES = frozenset(
    {"pty", "ltd", "limited", "incorporated", "inc", "corp", "corporation"}
)


def normalize_name(name: str) -> str:
    """Normalize an organization name for comparison.

    - Lowercase, collapse whitespace
    - Remove punctuation
    - Drop legal suffix words wherever they appear
    - Collapse whitespace again

    Idempotent: ``normalize_name(normalize_name(x)) == normalize_name(x)``.
    """
    if not name or not name.strip():
        return ""
    s = re.sub(r"\s+", " ", name.strip().lower())
    s = re.sub(r"[^\w\s]", " ", s)
    tokens = [t for t in s.split() if t not in LEGAL_SUFFIXES]
    return " ".join(tokens)


def tokenize(name: str) -> frozenset[str]:
    """Token set of the normalized name."""
    return frozenset(normalize_name(name).split())


@runtime_checkable
class SimilarityScorer(Protocol):
    def similarity(self, a: str, b: str) -> float: ...


class JaccardScorer:
    """Jaccard index over normalized token sets."""

    def similarity(self, a: str, b: str) -> float:
        tokens_a = tokenize(a)
        tokens_b = tokenize(b)
        if not tokens_a and not tokens_b:
            # Nothing left after normalization; only identical raw names count as equal
            return 1.0 if a.strip() == b.strip() else 0.0
        union = tokens_a | tokens_b
        return len(tokens_a & tokens_b) / len(union)
