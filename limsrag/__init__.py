# limsrag/__init__.py
"""
LIMS RAG Assistant
==================

Keyword retrieval over a small lab knowledge base, followed by
answer generation (echo stand-in or remote model).
"""

from limsrag.core import RAGPipeline, answer, get_pipeline
from limsrag.retrieval import CorpusStore, Record

__version__ = "0.1.0"

__all__ = ["RAGPipeline", "answer", "get_pipeline", "CorpusStore", "Record", "__version__"]
