"""Tests for name normalization and the Jaccard scorer."""

from __future__ import annotations

import pytest

from stealth.services.similarity import (
    JaccardScorer,
    SimilarityScorer,
    normalize_name,
    tokenize,
)

NAMES = [
    "Southern Oil Refining Pty Ltd",
    "Southern Oil Refining Limited",
    "  BioEnergy   Holdings, Pty. Ltd. ",
    "Jet Zero Australia Pty Ltd",
    "Parkes Renewable Fuels Joint Venture",
    "Pty Ltd",
    "",
    "A&B Corp.",
]


class TestNormalizeName:
    def test_lowercases_and_strips_legal_suffixes(self) -> None:
        assert normalize_name("Southern Oil Refining Pty Ltd") == "southern oil refining"
        assert normalize_name("Southern Oil Refining Limited") == "southern oil refining"

    def test_strips_punctuation_and_collapses_whitespace(self) -> None:
        assert normalize_name("  BioEnergy   Holdings, Pty. Ltd. ") == "bioenergy holdings"

    def test_suffix_words_removed_wherever_they_appear(self) -> None:
        assert normalize_name("Corp Fuels Inc") == "fuels"

    def test_only_suffixes_normalizes_to_empty(self) -> None:
        assert normalize_name("Pty Ltd") == ""
        assert normalize_name("   ") == ""

    @pytest.mark.parametrize("name", NAMES)
    def test_idempotent(self, name: str) -> None:
        once = normalize_name(name)
        assert normalize_name(once) == once

    def test_tokenize_returns_normalized_token_set(self) -> None:
        assert tokenize("Jet Zero Australia Pty Ltd") == frozenset({"jet", "zero", "australia"})


class TestJaccardScorer:
    def test_is_a_similarity_scorer(self) -> None:
        assert isinstance(JaccardScorer(), SimilarityScorer)

    @pytest.mark.parametrize("name", [n for n in NAMES if n.strip()])
    def test_self_similarity_is_one(self, name: str) -> None:
        assert JaccardScorer().similarity(name, name) == 1.0

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("Southern Oil Refining Pty Ltd", "Southern Oil Pty Ltd"),
            ("Jet Zero Australia", "Parkes Renewable Fuels Joint Venture"),
            ("Pty Ltd", "Limited"),
        ],
    )
    def test_symmetric_and_bounded(self, a: str, b: str) -> None:
        scorer = JaccardScorer()
        ab = scorer.similarity(a, b)
        assert ab == scorer.similarity(b, a)
        assert 0.0 <= ab <= 1.0

    def test_legal_suffix_variants_score_one(self) -> None:
        score = JaccardScorer().similarity(
            "Southern Oil Refining Pty Ltd", "Southern Oil Refining Limited"
        )
        assert score == 1.0

    def test_partial_overlap(self) -> None:
        # {southern, oil, refining} vs {southern, oil}
        score = JaccardScorer().similarity("Southern Oil Refining", "Southern Oil")
        assert score == pytest.approx(2 / 3)

    def test_unrelated_names_score_zero(self) -> None:
        assert JaccardScorer().similarity("Totally Unrelated Biofuels Co", "Jet Zero") == 0.0

    def test_empty_normalized_names_equal_only_when_raw_identical(self) -> None:
        scorer = JaccardScorer()
        assert scorer.similarity("Pty Ltd", "Pty Ltd") == 1.0
        assert scorer.similarity("Pty Ltd", "Limited") == 0.0
