# limsrag/core/__init__.py
"""Generation and orchestration"""

from .generator import (
    Generator,
    EchoGenerator,
    GeneratorError,
    GeneratorUnavailableError,
    GenerationError,
    get_generator
)
from .pipeline import RAGPipeline, RAGResult, get_pipeline, answer

__all__ = [
    "Generator",
    "EchoGenerator",
    "GeneratorError",
    "GeneratorUnavailableError",
    "GenerationError",
    "get_generator",
    "RAGPipeline",
    "RAGResult",
    "get_pipeline",
    "answer"
]
