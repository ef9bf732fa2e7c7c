"""Relevance scoring: lexical TF-IDF approximation blended with embedding similarity."""

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .config import ScoringConfig, RecencyBucket
from .embeddings import EmbeddingProvider, cosine_similarity
from .models import HOUR_MS, now_ms


_NON_WORD = re.compile(r"\W+")


@dataclass
class ScoreBreakdown:
    """Components of one candidate's score."""
    semantic: float = 0.0
    lexical: float = 0.0
    boost: float = 0.0
    total: float = 0.0
    used_semantic: bool = False


def recency_boost(timestamp: int, buckets: Sequence[RecencyBucket], now: Optional[int] = None) -> float:
    """Additive bonus for young items, decaying in discrete age buckets."""
    if now is None:
        now = now_ms()
    age_hours = (now - timestamp) / HOUR_MS
    for bucket in buckets:
        if age_hours < bucket.max_age_hours:
            return bucket.boost
    return 0.0


def admission_threshold(semantic_mode: bool, config: ScoringConfig) -> float:
    """
    Minimum score for a candidate to be kept.

    Pure lexical scores live on a compressed scale, so they are admitted at a
    lower bar than hybrid scores.
    """
    return config.min_semantic_score if semantic_mode else config.min_lexical_score


class ScoringEngine:
    """Computes [0, 1] relevance of candidate text against a query."""

    def __init__(self,
                 config: Optional[ScoringConfig] = None,
                 provider: Optional[EmbeddingProvider] = None):
        self.config = config or ScoringConfig()
        self.provider = provider

    def tokenize(self, text: str) -> List[str]:
        return [
            token for token in _NON_WORD.split(text.lower())
            if len(token) >= self.config.min_token_length
        ]

    def lexical_score(self, query: str, keywords: Sequence[str], text: str) -> float:
        """
        TF-IDF-like keyword score without a corpus.

        Keyword length stands in for inverse document frequency: longer
        keywords are assumed rarer.
        """
        text_lower = text.lower()
        tokens = self.tokenize(text_lower)
        if not tokens:
            return 0.0

        cfg = self.config
        score = 0.0

        query_lower = query.lower()
        if query_lower and query_lower in text_lower:
            score += cfg.exact_match_bonus

        matched = 0
        for keyword in keywords:
            count = sum(1 for token in tokens if keyword in token)
            if count:
                matched += 1
                tf = count / len(tokens)
                idf = math.log(cfg.idf_numerator / (1 + len(keyword)))
                score += tf * idf * cfg.tf_weight

        if keywords:
            score += (matched / len(keywords)) * cfg.coverage_weight

        return score

    async def semantic_score(self, query_embedding: np.ndarray, text: str) -> Optional[float]:
        """Remapped, weighted cosine similarity, or None if text has no embedding."""
        if self.provider is None:
            return None
        text_embedding = await self.provider.embed(text)
        if text_embedding is None:
            return None
        similarity = (cosine_similarity(query_embedding, text_embedding) + 1) / 2
        return similarity * self.config.semantic_weight

    async def score(self,
                    query: str,
                    query_embedding: Optional[np.ndarray],
                    keywords: Sequence[str],
                    text: str,
                    static_boost: float = 0.0,
                    recency: float = 0.0) -> ScoreBreakdown:
        """Score one candidate text. Never raises for embedding problems."""
        if not text or not text.strip():
            return ScoreBreakdown()

        breakdown = ScoreBreakdown(boost=static_boost + recency)

        if query_embedding is not None:
            semantic = await self.semantic_score(query_embedding, text)
            if semantic is not None:
                breakdown.semantic = semantic
                breakdown.used_semantic = True

        lexical = self.lexical_score(query, keywords, text)
        if breakdown.used_semantic:
            lexical *= self.config.hybrid_lexical_weight
        breakdown.lexical = lexical

        total = breakdown.semantic + breakdown.lexical + breakdown.boost
        breakdown.total = min(1.0, max(0.0, total))
        return breakdown
