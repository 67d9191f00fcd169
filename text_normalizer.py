"""
Query normalization and synonym expansion for the Bhagavatam Q&A engine

Normalization keeps Latin word characters, hyphens and the Devanagari block
so that Hindi queries survive intact. Tokens shorter than three characters
and stop words are dropped before scoring.
"""

import re
import logging
from typing import Dict, Iterable, List, Set

logger = logging.getLogger('BhagavatamQA-Normalizer')

DEVANAGARI_RANGE = r'\u0900-\u097F'

# Everything that is not a word char, whitespace, hyphen or Devanagari
_STRIP_PATTERN = re.compile(rf'[^\w\s\-{DEVANAGARI_RANGE}]')
_WHITESPACE_PATTERN = re.compile(r'\s+')

MIN_TOKEN_LENGTH = 3

STOP_WORDS: Dict[str, Set[str]] = {
    'en': {
        'a', 'an', 'the', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
        'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'should',
        'could', 'can', 'may', 'might', 'must', 'what', 'when', 'where', 'who',
        'why', 'how', 'which', 'this', 'that', 'these', 'those', 'i', 'you',
        'he', 'she', 'it', 'we', 'they', 'me', 'him', 'her', 'us', 'them',
        'my', 'your', 'his', 'its', 'our', 'their', 'about', 'to', 'from',
        'in', 'on', 'at', 'by', 'for', 'with', 'of'
    },
    'hi': {
        'क्या', 'कौन', 'कब', 'कहाँ', 'कहां', 'क्यों', 'कैसे', 'कैसा', 'कैसी',
        'है', 'हैं', 'था', 'थे', 'थी', 'हो', 'होता', 'होती', 'होते', 'करूं',
        'करें', 'करना', 'मैं', 'मुझे', 'मेरा', 'मेरी', 'मेरे', 'आप', 'आपका',
        'हम', 'वह', 'वे', 'यह', 'ये', 'इस', 'उस', 'इसे', 'उसे', 'का', 'की',
        'के', 'को', 'से', 'में', 'पर', 'और', 'तथा', 'एक', 'लिए', 'बारे'
    }
}


def normalize(text: str) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace, trim"""
    if not text:
        return ''
    lowered = text.lower()
    stripped = _STRIP_PATTERN.sub(' ', lowered)
    return _WHITESPACE_PATTERN.sub(' ', stripped).strip()


def stop_words_for(language: str) -> Set[str]:
    """Stop words for a language; English is always included for mixed queries"""
    words = set(STOP_WORDS['en'])
    words.update(STOP_WORDS.get(language, set()))
    return words


def tokenize(text: str, language: str = 'en') -> List[str]:
    """Split normalized text and drop short tokens and stop words, keeping order"""
    stop_words = stop_words_for(language)
    normalized = normalize(text)
    if not normalized:
        return []
    return [
        word for word in normalized.split(' ')
        if len(word) >= MIN_TOKEN_LENGTH and word not in stop_words
    ]


def extract_keywords(query: str, language: str = 'en') -> List[str]:
    """Keywords used for scoring a query"""
    keywords = tokenize(query, language)
    logger.debug(f"Extracted keywords {keywords} from '{query}'")
    return keywords


def expand_synonyms(tokens: Iterable[str], synonyms: Dict[str, List[str]]) -> Set[str]:
    """
    Expand tokens with every synonym group they belong to.

    A token joins a group when it equals the group key or appears in its
    value list; the whole group (key and values) is then added. The result
    always contains the input tokens.
    """
    tokens = list(tokens)
    expanded = set(tokens)

    for token in tokens:
        for key, values in synonyms.items():
            if token == key or token in values:
                expanded.add(key)
                expanded.update(values)

    return expanded
