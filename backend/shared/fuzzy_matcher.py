# SIMILARITY SCORING FOR "DID YOU MEAN" TASK SUGGESTIONS
#
# Used only to enrich warnings about unmapped phrases. Nothing here may turn a
# suggestion into a line item; the guarded mapper decides what is billed.

from typing import List, Sequence, Set, Tuple
from difflib import SequenceMatcher

from shared.normalize.text import normalize_query, tokenize


def _trigrams(text: str) -> Set[str]:
    padded = f" {text} "
    return {padded[i:i + 3] for i in range(len(padded) - 2)}


def _jaccard(a: Set[str], b: Set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def combined_similarity(query: str, candidate: str) -> float:
    """
    Similarity between a spoken phrase and a task name, 0..1.

    Half of the score is the character sequence ratio (misheard endings such
    as "målar väga"), 30% shared trigrams and 20% shared words.
    """
    a = normalize_query(query)
    b = normalize_query(candidate)
    if not a or not b:
        return 0.0
    words = _jaccard(set(tokenize(a)), set(tokenize(b)))
    return (
        SequenceMatcher(None, a, b).ratio() * 0.5
        + _jaccard(_trigrams(a), _trigrams(b)) * 0.3
        + words * 0.2
    )


def find_best_matches(
    query: str,
    candidates: Sequence[str],
    top_k: int = 3,
    min_score: float = 0.4,
) -> List[Tuple[str, float]]:
    """
    Rank *candidates* (task names) by similarity to *query*.

    Returns (name, score) tuples, best first, at most *top_k*, all scoring at
    least *min_score*.
    """
    if top_k <= 0 or not normalize_query(query):
        return []
    scored = ((name, combined_similarity(query, name)) for name in candidates)
    matches = [(name, score) for name, score in scored if score >= min_score]
    matches.sort(key=lambda pair: pair[1], reverse=True)
    return matches[:top_k]
