"""Category name resolution: exact case-insensitive match first, fuzzy suggestions second."""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import List, Sequence, Tuple, Union

from .utils import fold_case, normalize_text
from .wordpress_client import Category

DEFAULT_LIMIT = 5
DEFAULT_THRESHOLD = 0.5


@dataclass(frozen=True)
class ExactMatch:
    category: Category


@dataclass(frozen=True)
class Suggestions:
    """Ranked near matches; empty when nothing is close enough."""
    categories: Tuple[Category, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return bool(self.categories)

    @property
    def names(self) -> List[str]:
        return [category.name for category in self.categories]


ResolutionResult = Union[ExactMatch, Suggestions]


def resolve(
    categories: Sequence[Category],
    query_name: str,
    limit: int = DEFAULT_LIMIT,
    threshold: float = DEFAULT_THRESHOLD,
) -> ResolutionResult:
    """Purpose: Resolve a user-supplied category name against the catalog.
    Inputs/Outputs: Inputs are the catalog, the query and the suggestion cap/floor;
        output is ExactMatch or Suggestions (never both, never an error).
    Side Effects / State: None; pure function.
    Dependencies: fold_case for exact comparison, similarity_score for ranking.
    Failure Modes: Blank query returns empty Suggestions.
    If Removed: Read and write actions cannot address categories by name.
    Testing Notes: "shoes" must be ExactMatch("Shoes"); "Shoe" must suggest "Shoes"
        first; "zzz" must give empty Suggestions.
    """
    # Exact phase: first case-insensitive equal name in catalog order wins.
    wanted = fold_case(query_name)
    if not wanted:
        return Suggestions()
    for category in categories:
        if fold_case(category.name) == wanted:
            return ExactMatch(category)

    # Fuzzy phase: score everything, keep what clears the floor.
    query_norm = normalize_text(query_name)
    scored: List[Tuple[float, int, Category]] = []
    for position, category in enumerate(categories):
        score = similarity_score(query_norm, normalize_text(category.name))
        if score >= threshold:
            scored.append((score, position, category))

    scored.sort(key=lambda entry: (-entry[0], entry[1]))
    return Suggestions(tuple(category for _, _, category in scored[: max(limit, 0)]))


def similarity_score(query: str, candidate: str) -> float:
    """Purpose: Score how close a normalized query is to a normalized category name.
    Inputs/Outputs: Inputs are two normalize_text outputs; output is in [0, 1].
    Side Effects / State: None.
    Dependencies: difflib.SequenceMatcher ratio plus containment and token overlap boosts.
    Failure Modes: Returns 0.0 when either side is empty.
    If Removed: Suggestions fall back to nothing and users get "not found" for typos.
    Testing Notes: Containment ("shoe" in "shoes") must outrank a shared prefix
        ("shoe" vs "shirts").
    """
    if not query or not candidate:
        return 0.0
    if query == candidate:
        return 1.0

    score = SequenceMatcher(None, query, candidate).ratio()

    # Substring containment in either direction, weighted by coverage.
    if query in candidate:
        score = max(score, 0.75 + 0.2 * len(query) / len(candidate))
    elif candidate in query:
        score = max(score, 0.6 + 0.2 * len(candidate) / len(query))

    # Word overlap catches reordered or partially typed multi-word names.
    query_words = {word for word in query.split() if len(word) > 2}
    candidate_words = {word for word in candidate.split() if len(word) > 2}
    if query_words and candidate_words:
        shared = 0.0
        for word in query_words:
            if word in candidate_words:
                shared += 1
            elif any(word in other or other in word for other in candidate_words):
                shared += 0.7
        score = max(score, 0.9 * shared / max(len(query_words), len(candidate_words)))

    return min(score, 1.0)
