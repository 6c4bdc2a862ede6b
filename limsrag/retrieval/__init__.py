# limsrag/retrieval/__init__.py
"""Corpus, scoring, ranking and assembly"""

from .corpus import (
    Record,
    CorpusStore,
    CorpusLoadError,
    DEFAULT_RECORDS,
    default_corpus,
    load_corpus,
    get_corpus
)
from .scorer import ScoredRecord, Scorer, KeywordScorer, tokenize_query, score_record
from .ranker import rank, select_top_records
from .assembler import NO_INFO_MESSAGE, compose_answer, assemble_prompt, get_assembly_stats

__all__ = [
    "Record",
    "CorpusStore",
    "CorpusLoadError",
    "DEFAULT_RECORDS",
    "default_corpus",
    "load_corpus",
    "get_corpus",
    "ScoredRecord",
    "Scorer",
    "KeywordScorer",
    "tokenize_query",
    "score_record",
    "rank",
    "select_top_records",
    "NO_INFO_MESSAGE",
    "compose_answer",
    "assemble_prompt",
    "get_assembly_stats"
]
