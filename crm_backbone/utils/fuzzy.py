"""Fuzzy string matching for resolving human-friendly names to HubSpot ids.

The scoring is deliberately simple: exact, case-insensitive, substring, then
edit distance. The weights and thresholds below are relied on by callers
(e.g. the search tool's 0.7 confidence line) and must stay as they are.

Note that the substring rules are asymmetric: a query contained in the
candidate scores in [0.6, 0.9], a candidate contained in the query only in
[0.5, 0.8]. ``fuzzy_score(a, b)`` and ``fuzzy_score(b, a)`` therefore differ
unless the strings are equal ignoring case.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, TypeVar

T = TypeVar("T")

EXACT = "exact"
CASE_INSENSITIVE = "case-insensitive"
SUBSTRING = "substring"
APPROXIMATE = "approximate"

# results at or below this score are dropped
MIN_SCORE = 0.3
# below this the caller should ask rather than proceed
CONFIDENT_SCORE = 0.7
MAX_ALTERNATIVES = 5


@dataclass
class FuzzyMatch(Generic[T]):
    """A candidate with its similarity score (0-1, higher is better)."""

    item: T
    score: float
    match_type: str


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert/delete/substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j], current[j - 1], previous[j - 1]))
        previous = current
    return previous[-1]


def fuzzy_score(query: str, candidate: str) -> tuple[float, str]:
    """Score how well ``query`` matches ``candidate``.

    Returns ``(score, match_type)``; 1.0 is an exact match.
    """
    if query == candidate:
        return 1.0, EXACT

    q_lower = query.lower()
    c_lower = candidate.lower()

    if q_lower == c_lower:
        return 0.95, CASE_INSENSITIVE

    if q_lower in c_lower:
        # reward queries that cover more of the candidate
        coverage = len(q_lower) / len(c_lower)
        return 0.6 + coverage * 0.3, SUBSTRING

    if c_lower in q_lower:
        coverage = len(c_lower) / len(q_lower)
        return 0.5 + coverage * 0.3, SUBSTRING

    max_len = max(len(q_lower), len(c_lower))
    if max_len == 0:
        return 1.0, EXACT

    similarity = 1 - levenshtein(q_lower, c_lower) / max_len
    # capped below the substring range
    return max(0.0, similarity * 0.6), APPROXIMATE


def fuzzy_match(
    query: str,
    candidates: Iterable[T],
    get_text: Callable[[T], str],
) -> list[FuzzyMatch[T]]:
    """Rank ``candidates`` against ``query``, best first.

    Candidates scoring at or below MIN_SCORE are dropped. Ties keep their
    input order.
    """
    matches = []
    for item in candidates:
        score, match_type = fuzzy_score(query, get_text(item))
        if score > MIN_SCORE:
            matches.append(FuzzyMatch(item=item, score=score, match_type=match_type))
    return sorted(matches, key=lambda m: m.score, reverse=True)


def needs_alternatives(matches: list[FuzzyMatch]) -> bool:
    """Low-confidence winner with other candidates to offer."""
    return len(matches) > 1 and matches[0].score < CONFIDENT_SCORE


def top_alternatives(
    matches: list[FuzzyMatch[T]],
    get_label: Callable[[T], str],
    get_id: Callable[[T], str],
    limit: int = MAX_ALTERNATIVES,
) -> list[dict]:
    """the best few matches as ``{label, id, score}`` dicts."""
    return [
        {"label": get_label(m.item), "id": get_id(m.item), "score": m.score}
        for m in matches[:limit]
    ]
