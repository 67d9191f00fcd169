#!/usr/bin/env python3
"""
Relevance Scoring Module for the Bhagavatam Q&A engine

Each corpus entry gets a composite lexical score built from:
1. Keyword matching (literal query substring, keyword tags, themes)
2. Set similarity between query words and question words
3. Curated search-index importance
4. A static popularity prior

The weights and per-signal points below are a product-tuned heuristic.
Changing or normalizing them changes which answers users get.
"""

import re
import logging
from typing import Dict, Iterable, Mapping, Set

from corpus_loader import CorpusEntry, SearchIndexEntry
from text_normalizer import normalize

logger = logging.getLogger('BhagavatamQA-Scorer')

WEIGHTS = {
    'keyword': 0.35,
    'semantic': 0.40,
    'index_boost': 0.15,
    'popularity_boost': 0.10,
}

# Keyword sub-score points
QUERY_IN_QUESTION_POINTS = 100
KEYWORD_TAG_POINTS = 15
KEYWORD_IN_QUESTION_POINTS = 10
KEYWORD_IN_ANSWER_POINTS = 5
THEME_POINTS = 12

INTERROGATIVE_BONUS = 0.10
INDEX_IMPORTANCE_SCALE = 10
POPULARITY_DIVISOR = 10

INTERROGATIVE_PATTERN = re.compile(
    r'^(what|who|where|when|why|how|क्या|कौन|कहाँ|कहां|कब|क्यों|कैसे)',
    re.IGNORECASE
)


class RelevanceScorer:
    def __init__(self):
        """Initialize the scorer with the fixed weights"""
        self.weights = dict(WEIGHTS)
        logger.debug(f"Initialized RelevanceScorer with weights: {self.weights}")

    def score(self,
              query: str,
              entry: CorpusEntry,
              expanded_keywords: Set[str],
              search_index: Mapping[str, SearchIndexEntry]) -> float:
        """Composite relevance score (>= 0) of an entry for a query"""
        return self.score_details(query, entry, expanded_keywords, search_index)['final_score']

    def score_details(self,
                      query: str,
                      entry: CorpusEntry,
                      expanded_keywords: Set[str],
                      search_index: Mapping[str, SearchIndexEntry]) -> Dict[str, float]:
        """
        Score an entry and return every component

        Returns a dict with the four sub-scores and the weighted final score
        """
        result = {
            'keyword': self.keyword_score(query, entry, expanded_keywords),
            'semantic': self.semantic_score(query, entry, expanded_keywords),
            'index_boost': self.index_boost(expanded_keywords, search_index, entry.id),
            'popularity_boost': entry.popularity / POPULARITY_DIVISOR,
        }

        result['final_score'] = sum(
            result[component] * weight for component, weight in self.weights.items()
        )

        return result

    def keyword_score(self, query: str, entry: CorpusEntry, expanded_keywords: Set[str]) -> float:
        """Lexical matches of the query and its expanded keywords against the entry"""
        score = 0.0
        query_norm = normalize(query)
        question_norm = normalize(entry.question)
        answer_norm = normalize(entry.answer)

        # Direct substring match (highest weight)
        if query_norm in question_norm:
            score += QUERY_IN_QUESTION_POINTS

        for keyword in entry.keywords:
            if normalize(keyword) in expanded_keywords:
                score += KEYWORD_TAG_POINTS

        for keyword in expanded_keywords:
            if keyword in question_norm:
                score += KEYWORD_IN_QUESTION_POINTS
            if keyword in answer_norm:
                score += KEYWORD_IN_ANSWER_POINTS

        for theme in entry.themes:
            if normalize(theme) in expanded_keywords:
                score += THEME_POINTS

        return score

    def semantic_score(self, query: str, entry: CorpusEntry, expanded_keywords: Set[str]) -> float:
        """Word-set overlap between query and question, scaled to 0-100+"""
        query_words = set(normalize(query).split(' '))
        question_words = set(normalize(entry.question).split(' '))

        # Query words count as shared when the question has them or they were expanded
        shared = [w for w in query_words if w in question_words or w in expanded_keywords]
        union = query_words | question_words

        jaccard = len(shared) / len(union) if union else 0.0
        bonus = INTERROGATIVE_BONUS if is_interrogative(query) else 0.0

        return (jaccard + bonus) * 100

    def index_boost(self,
                    expanded_keywords: Iterable[str],
                    search_index: Mapping[str, SearchIndexEntry],
                    entry_id: str) -> float:
        """Curated importance of index terms that point at this entry"""
        boost = 0.0
        for keyword in expanded_keywords:
            index_entry = search_index.get(keyword)
            if index_entry and entry_id in index_entry.question_ids:
                boost += index_entry.importance * INDEX_IMPORTANCE_SCALE
        return boost


def is_interrogative(query: str) -> bool:
    """Whether the raw query looks like a question"""
    return '?' in query or INTERROGATIVE_PATTERN.match(query) is not None
