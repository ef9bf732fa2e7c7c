"""Tests for query keyword extraction."""

from contextrecall.engine.keywords import extract_keywords, STOP_WORDS


class TestExtractKeywords:
    """Test normalization, stop-word removal and ordering."""

    def test_weather_example(self):
        """Stop words go, content words stay in query order."""
        assert extract_keywords("What is the weather today?") == ["weather", "today"]

    def test_favorite_color(self):
        assert extract_keywords("what is my favorite color") == ["favorite", "color"]

    def test_punctuation_becomes_separator(self):
        assert extract_keywords("flight-number, gate!") == ["flight", "number", "gate"]

    def test_short_tokens_dropped(self):
        """Tokens of two characters or fewer carry no signal."""
        assert extract_keywords("go to ny on a jet") == ["jet"]

    def test_duplicates_keep_first_occurrence(self):
        assert extract_keywords("Boots boots BOOTS hiking boots") == ["boots", "hiking"]

    def test_empty_and_stopword_only(self):
        assert extract_keywords("") == []
        assert extract_keywords("what is it that you do") == []

    def test_keywords_are_lowercase_and_not_stop_words(self):
        keywords = extract_keywords("Where Did I Save The Quarterly REPORT draft")
        assert keywords == ["save", "quarterly", "report", "draft"]
        assert not set(keywords) & STOP_WORDS
