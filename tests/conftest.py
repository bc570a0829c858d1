"""
Shared fixtures for KSA Copilot tests.

FakeEmbedder gives deterministic bag-of-words vectors, so identical texts
have similarity 1.0 and texts sharing no words have similarity 0.0.
"""

import hashlib
import re
from typing import List, Optional

import pytest

from ksa_copilot.rag.chunker import estimate_tokens
from ksa_copilot.rag.embedder import EmbeddingProvider
from ksa_copilot.rag.models import Chunk, EmbeddedChunk, KBSource
from ksa_copilot.rag.retriever import KBRetriever
from ksa_copilot.rag.store import InMemoryVectorStore

FAKE_DIMENSIONS = 64


class FakeEmbedder(EmbeddingProvider):
    """Hashes each word into a bucket; no network."""

    def __init__(self, dimensions: int = FAKE_DIMENSIONS):
        self.dimensions = dimensions
        self.calls: List[str] = []

    def embed(self, text: str, timeout: Optional[float] = None) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        self.calls.append(text)
        vector = [0.0] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dimensions
            vector[bucket] += 1.0
        return vector


def make_source(pack_id: str = "nitaqat", version: str = "v2025.10", reg_code: str = "HRSD-NITAQAT", **kwargs) -> KBSource:
    return KBSource(
        pack_id=pack_id,
        version=version,
        title=kwargs.pop("title", f"{reg_code} regulation"),
        reg_code=reg_code,
        url=kwargs.pop("url", f"https://example.gov.sa/{reg_code.lower()}"),
        **kwargs,
    )


def make_staged(embedder: EmbeddingProvider, text: str, section: str = "General", article: Optional[str] = None) -> EmbeddedChunk:
    chunk = Chunk(text=text, token_count=estimate_tokens(text), section=section, article=article)
    return EmbeddedChunk(chunk=chunk, embedding=embedder.embed(text))


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def memory_store():
    return InMemoryVectorStore(dimensions=FAKE_DIMENSIONS)


@pytest.fixture
def retriever(fake_embedder, memory_store):
    return KBRetriever(fake_embedder, memory_store, keyword_weight=0.3)
