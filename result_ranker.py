"""
Result ranking and formatting for the Bhagavatam Q&A engine
"""

import re
import math
import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Tuple

from corpus_loader import Corpus, CorpusEntry, Difficulty
from relevance_scorer import RelevanceScorer
from text_normalizer import expand_synonyms, extract_keywords

logger = logging.getLogger('BhagavatamQA-Ranker')

MAX_RESULTS = 5
NOISE_FLOOR = 1
EMPTY_QUERY_CONFIDENCE = 50
NO_MATCH_CONFIDENCE = 30

# Trailing "(SB 1.2.10)" style citation, with an optional period
CITATION_PATTERN = re.compile(r'\s*\(\s*SB\s*[\d.]+\s*\)\.?\s*$', re.IGNORECASE)


@dataclass
class SearchResult:
    """One ranked answer, built per query"""
    title: str
    reference: str
    description: str
    excerpt: str
    confidence: int
    question_id: str
    language: str = 'en'
    score: float = 0.0

    def to_dict(self) -> Dict:
        return asdict(self)


def to_confidence(score: float) -> int:
    """Round half up and clamp into [0, 100]"""
    return max(0, min(100, int(math.floor(score + 0.5))))


def strip_citation(answer: str) -> str:
    return CITATION_PATTERN.sub('', answer)


def format_search_result(entry: CorpusEntry, corpus: Corpus, score: float) -> SearchResult:
    """Build the display record for an entry"""
    verse_ref = entry.verse_refs[0] if entry.verse_refs else None
    verse = corpus.verses.get(verse_ref) if verse_ref else None

    if verse:
        excerpt = f'{entry.answer}\n\nVerse: "{verse.translation}" ({verse_ref})'
    else:
        excerpt = entry.answer

    return SearchResult(
        title=entry.question,
        reference=verse_ref or f"Srimad Bhagavatam Canto {entry.canto_id}",
        description=strip_citation(entry.answer),
        excerpt=excerpt,
        confidence=to_confidence(score),
        question_id=entry.id,
        language=corpus.language,
        score=score
    )


def popular_entries(corpus: Corpus,
                    limit: int = MAX_RESULTS,
                    difficulty: Optional[Difficulty] = None) -> List[CorpusEntry]:
    """Most popular entries, optionally restricted to one difficulty tier"""
    entries = [
        entry for entry in corpus.entries
        if difficulty is None or entry.difficulty == difficulty
    ]
    return sorted(entries, key=lambda e: e.popularity, reverse=True)[:limit]


def score_corpus(query: str,
                 corpus: Corpus,
                 scorer: RelevanceScorer,
                 limit: int = MAX_RESULTS) -> List[Tuple[CorpusEntry, float]]:
    """Score every entry, drop noise, and return the best (entry, score) pairs"""
    keywords = extract_keywords(query, corpus.language)
    expanded_keywords = expand_synonyms(keywords, corpus.synonyms)

    scored = [
        (entry, scorer.score(query, entry, expanded_keywords, corpus.search_index))
        for entry in corpus.entries
    ]

    # sorted() is stable, so equal scores keep corpus order
    relevant = [(entry, score) for entry, score in scored if score > NOISE_FLOOR]
    relevant = sorted(relevant, key=lambda pair: pair[1], reverse=True)
    return relevant[:limit]


def rank(query: str,
         corpus: Corpus,
         scorer: Optional[RelevanceScorer] = None,
         fallback_corpus: Optional[Corpus] = None,
         limit: int = MAX_RESULTS) -> List[SearchResult]:
    """
    Rank corpus entries for a query

    Never returns an empty list for a non-empty corpus: empty queries get
    popular foundational entries, and queries nothing matches get the most
    popular entries overall.
    """
    scorer = scorer or RelevanceScorer()
    query = query or ''

    keywords = extract_keywords(query, corpus.language)
    if not keywords:
        logger.info("No keywords in query, returning popular foundational questions")
        return [
            format_search_result(entry, corpus, EMPTY_QUERY_CONFIDENCE)
            for entry in popular_entries(corpus, limit, Difficulty.FOUNDATIONAL)
        ]

    top_results = score_corpus(query, corpus, scorer, limit)
    if top_results:
        logger.info(f"Best match: {top_results[0][0].id} (score: {top_results[0][1]:.3f})")
        return [format_search_result(entry, corpus, score) for entry, score in top_results]

    if fallback_corpus is not None and fallback_corpus.language != corpus.language:
        fallback_results = score_corpus(query, fallback_corpus, scorer, limit)
        if fallback_results:
            logger.info(f"Using '{fallback_corpus.language}' fallback for '{corpus.language}' query: {query}")
            return [
                format_search_result(entry, fallback_corpus, score)
                for entry, score in fallback_results
            ]

    logger.info(f"No entry scored above {NOISE_FLOOR}, returning most popular questions")
    return [
        format_search_result(entry, corpus, NO_MATCH_CONFIDENCE)
        for entry in popular_entries(corpus, limit)
    ]
