# limsrag/retrieval/ranker.py

"""
Top-K Selection
===============

Orders scored records by relevance and keeps the best K.
Equal scores keep corpus order so results are reproducible.

File: limsrag/retrieval/ranker.py
"""

from typing import List, Sequence

from .scorer import ScoredRecord


def _check_k(k: int) -> None:
    if isinstance(k, bool) or not isinstance(k, int) or k < 1:
        raise ValueError(f"k must be a positive integer, got {k!r}")


def select_top_records(
    scored: Sequence[ScoredRecord],
    k: int = 2
) -> List[ScoredRecord]:
    """
    Select top K scored records.

    Args:
        scored: Scored records in corpus order
        k: Number of records to keep

    Returns:
        At most k records, score descending, ties in input order

    Raises:
        ValueError: If k is not a positive integer
    """
    _check_k(k)

    # sorted() is stable, so ties stay in corpus order
    ranked = sorted(
        (s for s in scored if s.score > 0),
        key=lambda s: s.score,
        reverse=True
    )

    return ranked[:k]


def rank(scored: Sequence[ScoredRecord], k: int = 2) -> List[str]:
    """
    Rank scored records and keep only their text.

    Args:
        scored: Scored records in corpus order
        k: Number of texts to return

    Returns:
        Record texts, best first, length <= k
    """
    return [s.record.text for s in select_top_records(scored, k)]
