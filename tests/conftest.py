import pytest

from limsrag.core import generator as generator_module
from limsrag.core import pipeline as pipeline_module
from limsrag.core.generator import EchoGenerator
from limsrag.core.pipeline import RAGPipeline
from limsrag.retrieval import corpus as corpus_module
from limsrag.retrieval import CorpusStore, default_corpus


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    # Each test builds its own corpus/generator/pipeline
    monkeypatch.setattr(corpus_module, "_corpus", None)
    monkeypatch.setattr(generator_module, "_generator", None)
    monkeypatch.setattr(pipeline_module, "_pipeline", None)


@pytest.fixture
def corpus():
    return default_corpus()


@pytest.fixture
def pipeline(corpus):
    return RAGPipeline(corpus=corpus, generator=EchoGenerator(delay=0), generation_timeout=5)


@pytest.fixture
def small_corpus():
    return CorpusStore([("sop1", "Calibrate pH meter daily using buffer solutions.")])
