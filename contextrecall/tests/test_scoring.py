"""Tests for relevance scoring."""

import math
import random

import numpy as np
import pytest

from contextrecall.engine.config import EngineConfig, ScoringConfig
from contextrecall.engine.embeddings import EmbeddingProvider
from contextrecall.engine.models import HOUR_MS, now_ms
from contextrecall.engine.scoring import ScoringEngine, recency_boost, admission_threshold

from conftest import FakeBackend, bag_of_words


FILLER = ["lorem", "ipsum", "dolor", "amet", "consectetur", "adipiscing", "elit", "sed"]
KEYWORDS = ["hiking", "boots", "flight", "report"]


def random_text(rng: random.Random, length: int) -> str:
    return " ".join(rng.choice(FILLER + KEYWORDS) for _ in range(length))


class TestLexicalScore:
    """Test the corpus-free TF-IDF approximation."""

    def test_single_keyword_formula(self):
        scorer = ScoringEngine()
        score = scorer.lexical_score("zzz", ["boots"], "hiking boots sale")
        expected = (1 / 3) * math.log(1000 / 6) * 0.1 + 0.3
        assert score == pytest.approx(expected)

    def test_exact_query_bonus(self):
        scorer = ScoringEngine()
        with_phrase = scorer.lexical_score("hiking boots", [], "new hiking boots")
        without = scorer.lexical_score("boots hiking", [], "new hiking boots")
        assert with_phrase == pytest.approx(0.5)
        assert without == 0.0

    def test_keyword_matches_inside_tokens(self):
        """'depart' matches the token 'departs'."""
        scorer = ScoringEngine()
        assert scorer.lexical_score("zzz", ["depart"], "flight departs at noon") > 0.3

    def test_no_tokens_scores_zero(self):
        scorer = ScoringEngine()
        assert scorer.lexical_score("a", ["a"], "a b c") == 0.0

    def test_underscore_keeps_token_whole(self):
        scorer = ScoringEngine()
        assert scorer.tokenize("favorite_color blue") == ["favorite_color", "blue"]


class TestScoreBounds:
    """Scores stay in [0, 1] for arbitrary inputs."""

    @pytest.mark.asyncio
    async def test_fuzz_lexical(self):
        rng = random.Random(1234)
        scorer = ScoringEngine()
        for _ in range(500):
            text = random_text(rng, rng.randint(0, 30))
            keywords = rng.sample(KEYWORDS, rng.randint(0, len(KEYWORDS)))
            result = await scorer.score(
                query=random_text(rng, rng.randint(0, 3)),
                query_embedding=None,
                keywords=keywords,
                text=text,
                static_boost=rng.uniform(0, 1.5),
                recency=rng.choice([0.0, 0.05, 0.1, 0.15, 0.2]),
            )
            assert 0.0 <= result.total <= 1.0

    @pytest.mark.asyncio
    async def test_fuzz_hybrid(self):
        rng = random.Random(99)
        scorer = ScoringEngine(provider=EmbeddingProvider(FakeBackend()))
        for _ in range(200):
            query = random_text(rng, rng.randint(1, 4))
            query_embedding = np.asarray(bag_of_words(query), dtype=np.float32)
            result = await scorer.score(
                query=query,
                query_embedding=query_embedding,
                keywords=query.split(),
                text=random_text(rng, rng.randint(0, 20)),
                static_boost=rng.uniform(0, 1),
            )
            assert 0.0 <= result.total <= 1.0

    @pytest.mark.asyncio
    async def test_blank_text_scores_zero(self):
        result = await ScoringEngine().score("query", None, ["query"], "   ", static_boost=0.8)
        assert result.total == 0.0


class TestMonotonicity:
    """Adding a keyword match never lowers a score."""

    @pytest.mark.asyncio
    async def test_replacing_filler_with_keyword(self):
        rng = random.Random(7)
        scorer = ScoringEngine()
        for _ in range(300):
            tokens = [rng.choice(FILLER) for _ in range(rng.randint(1, 20))]
            keywords = rng.sample(KEYWORDS, rng.randint(1, len(KEYWORDS)))
            boost = rng.uniform(0, 0.5)

            before = await scorer.score("zzz", None, keywords, " ".join(tokens), boost)
            tokens[rng.randrange(len(tokens))] = rng.choice(keywords)
            after = await scorer.score("zzz", None, keywords, " ".join(tokens), boost)

            assert after.total >= before.total


class TestHybridScore:
    """Semantic blending."""

    @pytest.mark.asyncio
    async def test_identical_text_uses_semantic(self):
        scorer = ScoringEngine(provider=EmbeddingProvider(FakeBackend()))
        text = "hiking trails near boulder"
        query_embedding = np.asarray(bag_of_words(text), dtype=np.float32)

        result = await scorer.score(text, query_embedding, ["hiking", "trails", "boulder"], text)

        assert result.used_semantic
        assert result.semantic == pytest.approx(0.8)
        assert result.total == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_lexical_weighted_down_in_hybrid(self):
        scorer = ScoringEngine(provider=EmbeddingProvider(FakeBackend()))
        text = "hiking boots sale"
        lexical = scorer.lexical_score("zzz", ["boots"], text)
        query_embedding = np.asarray(bag_of_words("boots"), dtype=np.float32)

        result = await scorer.score("zzz", query_embedding, ["boots"], text)

        assert result.lexical == pytest.approx(lexical * 0.2)

    @pytest.mark.asyncio
    async def test_text_embedding_failure_falls_back_to_lexical(self):
        text = "hiking boots sale"
        scorer = ScoringEngine(provider=EmbeddingProvider(FakeBackend(fail_texts={text})))
        query_embedding = np.asarray(bag_of_words("boots"), dtype=np.float32)

        result = await scorer.score("zzz", query_embedding, ["boots"], text)

        assert not result.used_semantic
        assert result.semantic == 0.0
        assert result.lexical == pytest.approx(scorer.lexical_score("zzz", ["boots"], text))


class TestRecency:
    """Recency buckets."""

    def test_bucket_edges(self):
        buckets = EngineConfig().lexical.recency
        now = now_ms()
        assert recency_boost(now - 10 * 60_000, buckets, now) == 0.20
        assert recency_boost(now - 2 * HOUR_MS, buckets, now) == 0.15
        assert recency_boost(now - 5 * HOUR_MS, buckets, now) == 0.10
        assert recency_boost(now - 48 * HOUR_MS, buckets, now) == 0.05
        assert recency_boost(now - 200 * HOUR_MS, buckets, now) == 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("semantic", [False, True])
    async def test_thirty_minutes_beats_eight_days(self, semantic):
        """Same clipboard text, 30 minutes old vs 8 days old."""
        config = EngineConfig()
        buckets = config.profile(semantic).recency
        scorer = ScoringEngine()
        now = now_ms()
        text = "meeting notes for the quarterly report"

        fresh = await scorer.score(
            "zzz", None, ["report"], text,
            recency=recency_boost(now - 30 * 60_000, buckets, now),
        )
        stale = await scorer.score(
            "zzz", None, ["report"], text,
            recency=recency_boost(now - 8 * 24 * HOUR_MS, buckets, now),
        )
        assert fresh.total - stale.total >= 0.10

    def test_admission_thresholds(self):
        config = ScoringConfig()
        assert admission_threshold(True, config) == 0.3
        assert admission_threshold(False, config) == 0.1
