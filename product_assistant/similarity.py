"""Identifier similarity scoring and catalog resolution.

Two thresholds coexist:
``is_similar`` (containment or edit distance <= 2) backs direct lookup-by-name,
while ``similarity_score`` > 0.7 ranks "did you mean" suggestions.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from .catalog import Catalog, Product, ProductIdentifier
from .utils import normalize_identifier

logger = logging.getLogger("product_assistant.similarity")

SUGGESTION_THRESHOLD = 0.7
RESOLVE_THRESHOLD = 0.8
MAX_LOOKUP_DISTANCE = 2
DEFAULT_SUGGESTION_LIMIT = 5


def levenshtein_distance(first: str, second: str) -> int:
    """Classic edit distance with unit insert, delete and substitute costs."""
    return Levenshtein.distance(first, second)


def similarity_score(first: str, second: str) -> float:
    """Score two identifiers in [0, 1] after removing case, spaces and hyphens.

    Identical normalized strings score 1.0, containment in either direction 0.8,
    anything else ``1 - distance / longest``.
    """
    if not first or not second:
        return 0.0
    left = normalize_identifier(first)
    right = normalize_identifier(second)
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    if left in right or right in left:
        return 0.8
    longest = max(len(left), len(right))
    return 1.0 - levenshtein_distance(left, right) / longest


def is_similar(first: str, second: str) -> bool:
    """Loose match used for direct lookup-by-name."""
    if not first or not second:
        return False
    left = normalize_identifier(first)
    right = normalize_identifier(second)
    if not left or not right:
        return left == right
    if left in right or right in left:
        return True
    return levenshtein_distance(left, right) <= MAX_LOOKUP_DISTANCE


class ProductResolver:
    """Resolve user-supplied designations against a loaded Catalog."""

    def resolve(self, query: ProductIdentifier, catalog: Catalog) -> Optional[Product]:
        """Purpose: Map an extracted identifier onto a single catalog product.
        Inputs/Outputs: Inputs are the identifier and catalog; output is a Product or None.
        Side Effects / State: None.
        Dependencies: Uses Catalog.find_exact and similarity_score.
        Failure Modes: Returns None when nothing matches exactly or after
            formatting normalization/containment.
        If Removed: The orchestrator cannot tell ProductNotFound from Success.
        Testing Notes: "6205 2RS1" resolves to "6205-2RS1"; "6205" never resolves
            to "6206" (that one is only suggested).
        """
        # Exact case-insensitive hit wins immediately.
        exact = catalog.find_exact(query)
        if exact is not None:
            return exact

        best: Optional[Product] = None
        best_score = 0.0
        for product in catalog:
            score = similarity_score(product.name, query.value)
            if score >= RESOLVE_THRESHOLD and score > best_score:
                best, best_score = product, score
        if best is not None:
            logger.debug("resolved query=%s product=%s score=%.2f", query, best.name, best_score)
        return best

    def lookup(self, name: ProductIdentifier, catalog: Catalog) -> Optional[Product]:
        """Direct lookup-by-name: an exact match, else the first loose match."""
        exact = catalog.find_exact(name)
        if exact is not None:
            return exact
        for product in catalog:
            if is_similar(product.name, name.value):
                return product
        return None

    def find_similar(
        self,
        query: ProductIdentifier,
        catalog: Catalog,
        limit: int = DEFAULT_SUGGESTION_LIMIT,
    ) -> List[ProductIdentifier]:
        """Rank products scoring above 0.7, best first, catalog order on ties."""
        scored: List[Tuple[float, Product]] = []
        for product in catalog:
            score = similarity_score(product.name, query.value)
            if score > SUGGESTION_THRESHOLD:
                scored.append((score, product))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [product.identifier for _, product in scored[: max(limit, 0)]]

