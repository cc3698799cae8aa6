"""Tests for edit distance, similarity scoring and catalog resolution."""

import pytest

from product_assistant.catalog import Catalog, ProductIdentifier, record_to_product
from product_assistant.similarity import (
    ProductResolver,
    is_similar,
    levenshtein_distance,
    similarity_score,
)


def _catalog(*names):
    return Catalog(products=tuple(record_to_product({"ProductName": name}) for name in names))


class TestLevenshtein:

    @pytest.mark.parametrize("text", ["", "6205", "NU 205 ECP"])
    def test_identity_is_zero(self, text):
        assert levenshtein_distance(text, text) == 0

    @pytest.mark.parametrize("a,b", [("6205", "6206"), ("kitten", "sitting"), ("", "abc"), ("nu205", "6205")])
    def test_symmetric_and_bounded(self, a, b):
        distance = levenshtein_distance(a, b)
        assert distance == levenshtein_distance(b, a)
        assert distance <= max(len(a), len(b))

    def test_known_distances(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("6205", "6206") == 1


class TestSimilarityScore:

    def test_identical_after_normalization(self):
        assert similarity_score("6205-2RS1", "6205 2rs1") == 1.0

    def test_empty_scores_zero(self):
        assert similarity_score("", "6205") == 0.0
        assert similarity_score("6205", "") == 0.0

    def test_containment_scores_point_eight(self):
        assert similarity_score("6205-2RS1", "6205") == 0.8

    def test_edit_distance_ratio(self):
        assert similarity_score("6205", "6206") == pytest.approx(0.75)

    def test_formatting_only_query_matches_nothing(self):
        assert similarity_score("6205", "-") == 0.0
        assert not is_similar("6205", " - ")

    def test_is_similar_tolerates_two_edits(self):
        assert is_similar("6205", "6207")
        assert is_similar("NU 205", "nu205")
        assert not is_similar("6205", "7312")


class TestProductResolver:

    def test_resolve_prefers_exact_match(self):
        catalog = _catalog("6205-2RS1", "6205")
        assert ProductResolver().resolve(ProductIdentifier("6205"), catalog).name == "6205"

    def test_resolve_ignores_formatting(self):
        catalog = _catalog("6206", "6205-2RS1")
        assert ProductResolver().resolve(ProductIdentifier("6205 2rs1"), catalog).name == "6205-2RS1"

    def test_resolve_does_not_jump_to_neighbour(self):
        catalog = _catalog("6206", "6207")
        assert ProductResolver().resolve(ProductIdentifier("6205"), catalog) is None

    def test_find_similar_ranks_and_limits(self):
        catalog = _catalog("7312", "6206", "6205-2RS1", "6207", "62051", "6205-Z", "6205-2Z")
        similar = ProductResolver().find_similar(ProductIdentifier("6205"), catalog)
        assert len(similar) == 5
        assert similar[0] == ProductIdentifier("6205-2RS1")
        assert ProductIdentifier("7312") not in similar

    def test_find_similar_keeps_catalog_order_on_ties(self):
        catalog = _catalog("6207", "6206")
        similar = ProductResolver().find_similar(ProductIdentifier("6205"), catalog)
        assert [str(item) for item in similar] == ["6207", "6206"]

    def test_find_similar_on_empty_catalog(self):
        assert ProductResolver().find_similar(ProductIdentifier("6205"), Catalog()) == []

    def test_lookup_is_loose(self):
        catalog = _catalog("6206")
        assert ProductResolver().lookup(ProductIdentifier("6205"), catalog).name == "6206"

    def test_lookup_prefers_exact(self):
        catalog = _catalog("6206", "6205")
        assert ProductResolver().lookup(ProductIdentifier("6205"), catalog).name == "6205"
