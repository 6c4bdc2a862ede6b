# limsrag/retrieval/scorer.py

"""
Relevance Scoring for Records
=============================

Lightweight lexical scoring - no embeddings required.
Counts distinct query words that appear anywhere in a record.

File: limsrag/retrieval/scorer.py
"""

from dataclasses import dataclass
from typing import List, Protocol, Sequence

from .corpus import Record


@dataclass(frozen=True)
class ScoredRecord:
    """Record paired with its relevance score (always > 0)"""
    record: Record
    score: int

    @property
    def record_id(self) -> str:
        return self.record.id


class Scorer(Protocol):
    """Anything that can score a query against records (keyword, vector, ...)"""

    def score(self, query: str, records: Sequence[Record]) -> List[ScoredRecord]:
        ...


def tokenize_query(query: str) -> List[str]:
    """
    Split a query into distinct lower-case tokens.

    Args:
        query: Raw query text

    Returns:
        Tokens in first-seen order, repeated words kept once
    """
    tokens = []
    seen = set()

    for token in query.lower().split():
        if token not in seen:
            seen.add(token)
            tokens.append(token)

    return tokens


def score_record(text: str, tokens: Sequence[str]) -> int:
    """
    Score record relevance using substring containment.

    The record is not tokenized, so "ph" also matches inside "phase".

    Args:
        text: Record text
        tokens: Distinct lower-case query tokens

    Returns:
        Number of tokens found in the text
    """
    haystack = text.lower()
    return sum(1 for token in tokens if token in haystack)


class KeywordScorer:
    """Default scorer: keyword overlap by substring match"""

    name = "keyword"

    def score(self, query: str, records: Sequence[Record]) -> List[ScoredRecord]:
        """
        Score every record against the query.

        Returns:
            One entry per record with a positive score, in input order
        """
        tokens = tokenize_query(query)
        if not tokens:
            return []

        scored = []
        for record in records:
            score = score_record(record.text, tokens)
            if score > 0:
                scored.append(ScoredRecord(record=record, score=score))

        return scored
