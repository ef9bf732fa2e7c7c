"""Keyword extraction for recall queries."""

import re
from typing import List, FrozenSet


# Articles, pronouns, auxiliaries, prepositions and conjunctions that carry no
# retrieval signal on their own.
STOP_WORDS: FrozenSet[str] = frozenset({
    # articles / determiners
    "a", "an", "the", "this", "that", "these", "those", "each", "every",
    "all", "any", "some", "such", "no", "few", "more", "most", "other",
    "own", "same", "both", "either", "neither", "another", "much", "many",
    # auxiliaries / modals
    "am", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "having", "do", "does", "did", "doing", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "ought", "used", "get", "got",
    # pronouns
    "i", "me", "my", "mine", "myself", "we", "us", "our", "ours",
    "ourselves", "you", "your", "yours", "yourself", "yourselves", "he",
    "him", "his", "himself", "she", "her", "hers", "herself", "it", "its",
    "itself", "they", "them", "their", "theirs", "themselves",
    # interrogatives / relatives
    "what", "which", "who", "whom", "whose", "when", "where", "why", "how",
    # prepositions
    "to", "of", "in", "for", "on", "with", "at", "by", "from", "up", "down",
    "about", "into", "onto", "over", "under", "above", "below", "beneath",
    "after", "before", "between", "through", "during", "without", "within",
    "against", "among", "around", "off", "out",
    # conjunctions / adverbs
    "and", "but", "or", "nor", "so", "yet", "if", "then", "else", "than",
    "because", "while", "until", "though", "although", "not", "only",
    "too", "very", "just", "also", "now", "here", "there", "again",
    "once", "ever", "still", "even", "really", "please",
})

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def extract_keywords(query: str) -> List[str]:
    """
    Normalize a query into distinct content keywords.

    Lowercases, strips punctuation, drops short tokens and stop words, and
    keeps the first occurrence of each token in order.

    >>> extract_keywords("What is the weather today?")
    ['weather', 'today']
    """
    normalized = _NON_ALNUM.sub(" ", query.lower())
    seen = set()
    keywords = []
    for token in _WHITESPACE.split(normalized):
        if len(token) <= 2 or token in STOP_WORDS or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
    return keywords
