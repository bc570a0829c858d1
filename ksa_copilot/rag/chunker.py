"""
KB Chunker
==========

Splits markdown regulation documents into chunks for embedding.

Rules:
- One section per markdown heading; text before the first heading is "Introduction"
- Target size: 700 tokens, overlap: 80 tokens
- Heading kept at the top of every section (anti-orphan)
- Article number extracted from the heading ("Article 12", "§12", "Section 12.b", "12.")
- Stable chunking (same input = same chunks)
- Token estimate is ceil(chars / 4), not a real tokenizer
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import List, Optional

from .models import Chunk, ChunkStats

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r'^(#{1,6})\s+(.+)$')
SENTENCE_PATTERN = re.compile(r'(?<=[.!?])\s+')

# First match wins
ARTICLE_PATTERNS = (
    re.compile(r'article\s+(\d+(?:\.\w+)?)', re.IGNORECASE),
    re.compile(r'§\s*(\d+(?:\.\w+)?)'),
    re.compile(r'section\s+(\d+(?:\.\w+)?)', re.IGNORECASE),
    re.compile(r'^(\d+(?:\.\w+)?)\.'),
)

INTRODUCTION_HEADING = "Introduction"
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token count: 4 characters per token, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def extract_article_number(heading: str) -> Optional[str]:
    """
    Extract an article/clause identifier from a heading.

    "Article 12.b" -> "12.b", "§9" -> "9", "Introduction" -> None
    """
    for pattern in ARTICLE_PATTERNS:
        match = pattern.search(heading)
        if match:
            return match.group(1)
    return None


@dataclass
class ChunkConfig:
    """Chunking configuration."""
    target_tokens: int = 700
    overlap_tokens: int = 80


@dataclass
class _Section:
    heading: str
    body: str
    article: Optional[str] = None

    @property
    def full_text(self) -> str:
        return f"{self.heading}\n\n{self.body}"


class RegulationChunker:
    """
    Splits markdown regulation text into heading-aware, overlapping chunks.

    Sections that fit the target become a single chunk. Longer sections are
    packed greedily sentence by sentence; each new chunk opens with the
    trailing sentences of the previous one (up to the overlap budget, always
    at least the last sentence) unless that would push it past the target.
    """

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()
        if self.config.target_tokens <= 0:
            raise ValueError("target_tokens must be positive")
        if self.config.overlap_tokens < 0:
            raise ValueError("overlap_tokens cannot be negative")

    def chunk(self, document: str) -> List[Chunk]:
        """
        Split a markdown document into chunks.

        Args:
            document: Markdown text

        Returns:
            List of Chunk in document order (empty for a blank document)
        """
        if not document or not document.strip():
            return []

        chunks = []
        for section in self._parse_sections(document):
            for text in self._split_with_overlap(section.full_text):
                chunks.append(Chunk(
                    text=text,
                    token_count=estimate_tokens(text),
                    section=section.heading,
                    article=section.article,
                ))

        logger.debug(f"Chunked document into {len(chunks)} chunks")
        return chunks

    def _parse_sections(self, markdown: str) -> List[_Section]:
        """Group lines under their heading. Sections with an empty body are dropped."""
        sections: List[_Section] = []
        current: Optional[_Section] = None

        for line in markdown.split("\n"):
            match = HEADING_PATTERN.match(line)
            if match:
                if current is not None and current.body.strip():
                    sections.append(current)
                heading = match.group(2).strip()
                current = _Section(heading=heading, body="", article=extract_article_number(heading))
            elif current is not None:
                current.body += line + "\n"
            elif not sections and line.strip():
                current = _Section(heading=INTRODUCTION_HEADING, body=line + "\n")

        if current is not None and current.body.strip():
            sections.append(current)

        return sections

    def _split_with_overlap(self, text: str) -> List[str]:
        target = self.config.target_tokens

        if estimate_tokens(text) <= target:
            return [text.strip()]

        sentences = [s.strip() for s in SENTENCE_PATTERN.split(text) if s.strip()]

        chunks: List[str] = []
        current: List[str] = []

        for sentence in sentences:
            if current and estimate_tokens(_join(current + [sentence])) > target:
                chunks.append(_join(current))

                overlap = self._overlap_tail(current)
                while overlap and estimate_tokens(_join(overlap + [sentence])) > target:
                    overlap.pop(0)
                current = overlap + [sentence]
            else:
                current.append(sentence)

        if current:
            chunks.append(_join(current))

        return chunks

    def _overlap_tail(self, sentences: List[str]) -> List[str]:
        """Trailing sentences within the overlap budget, oldest trimmed first."""
        tail = list(sentences)
        while len(tail) > 1 and estimate_tokens(_join(tail)) > self.config.overlap_tokens:
            tail.pop(0)
        return tail


def _join(sentences: List[str]) -> str:
    return " ".join(sentences)


def chunk_markdown(document: str, target_tokens: int = 700, overlap_tokens: int = 80) -> List[Chunk]:
    """Chunk a markdown document with the given size settings."""
    chunker = RegulationChunker(ChunkConfig(target_tokens=target_tokens, overlap_tokens=overlap_tokens))
    return chunker.chunk(document)


def chunk_stats(chunks: List[Chunk]) -> ChunkStats:
    """Token statistics for a list of chunks."""
    if not chunks:
        return ChunkStats()

    counts = [c.token_count for c in chunks]
    return ChunkStats(
        total_chunks=len(chunks),
        avg_tokens=int(sum(counts) / len(counts) + 0.5),
        min_tokens=min(counts),
        max_tokens=max(counts),
        chunks_with_articles=sum(1 for c in chunks if c.article),
    )
