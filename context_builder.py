"""
Follow-up detection and contextual query rewriting

A follow-up message ("tell me more", "how can I practice this?") carries
little vocabulary of its own, so it is rewritten with the topic and
keywords of the previous answer before retrieval. Classification is an
ordered list of (predicate, intent) rules evaluated first-match.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from text_normalizer import tokenize

logger = logging.getLogger('BhagavatamQA-Context')

MAX_CONTEXT_KEYWORDS = 8
MIN_CONTEXT_KEYWORD_LENGTH = 4
MAX_REWRITE_KEYWORDS = 3


class Intent(Enum):
    TELL_MORE = 'tell_more'
    PRACTICE = 'practice'
    OBSTACLE = 'obstacle'
    EXAMPLE = 'example'
    MORE_ABOUT = 'more_about'
    ELABORATE = 'elaborate'
    HOW_TO = 'how_to'
    NONE = 'none'


class RewriteBucket(Enum):
    PRACTICE = 'practice'
    OBSTACLE = 'obstacle'
    EXAMPLE = 'example'
    MORE = 'more'
    DEFAULT = 'default'


Predicate = Callable[[str], bool]


def _matches(pattern: str) -> Predicate:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda text: compiled.search(text) is not None


FOLLOW_UP_RULES: List[Tuple[Predicate, Intent]] = [
    (_matches(r'\btell me more\b|और बताएं|और बताइए'), Intent.TELL_MORE),
    (_matches(r'\bhow (do|can) i practi[cs]e\b|अभ्यास'), Intent.PRACTICE),
    (_matches(r'\bwhat are the obstacles\b|बाधा'), Intent.OBSTACLE),
    (_matches(r'\bexplain\b.*\b(with|using) an example\b|उदाहरण'), Intent.EXAMPLE),
    (_matches(r'\bmore (about|on|regarding)\b'), Intent.MORE_ABOUT),
    (_matches(r'\belaborate\b|विस्तार'), Intent.ELABORATE),
    (_matches(r'\b(give|show) me an example\b'), Intent.EXAMPLE),
    (_matches(r'\bhow (to|can)\b'), Intent.HOW_TO),
]

REWRITE_RULES: List[Tuple[Predicate, RewriteBucket]] = [
    (_matches(r'practi[cs]e|अभ्यास'), RewriteBucket.PRACTICE),
    (_matches(r'obstacle|बाधा'), RewriteBucket.OBSTACLE),
    (_matches(r'example|उदाहरण'), RewriteBucket.EXAMPLE),
    (_matches(r'\bmore\b|और बताएं|और बताइए|अधिक'), RewriteBucket.MORE),
]

REWRITE_TEMPLATES: Dict[str, Dict[RewriteBucket, str]] = {
    'en': {
        RewriteBucket.PRACTICE: 'how to practice {topic} in daily life {query}',
        RewriteBucket.OBSTACLE: 'obstacles and challenges in {topic} {query}',
        RewriteBucket.EXAMPLE: 'example story illustrating {topic} {query}',
        RewriteBucket.MORE: 'detailed advanced explanation of {topic} {keywords}',
        RewriteBucket.DEFAULT: '{query} {keywords}',
    },
    'hi': {
        RewriteBucket.PRACTICE: 'दैनिक जीवन में {topic} का अभ्यास {query}',
        RewriteBucket.OBSTACLE: '{topic} में बाधाएं और चुनौतियां {query}',
        RewriteBucket.EXAMPLE: '{topic} का उदाहरण कथा {query}',
        RewriteBucket.MORE: '{topic} की विस्तृत गहन व्याख्या {keywords}',
        RewriteBucket.DEFAULT: '{query} {keywords}',
    },
}


@dataclass
class ConversationContext:
    """Topic state carried from one answer to the next turn"""
    last_topic: str = ''
    last_keywords: List[str] = field(default_factory=list)
    last_entry_id: Optional[str] = None
    used_ids: Set[str] = field(default_factory=set)

    @property
    def has_context(self) -> bool:
        return bool(self.last_topic or self.last_keywords)

    def record(self, result, keywords: List[str]):
        """Store the winning SearchResult as context for the next turn"""
        self.last_topic = result.title.lower()
        self.last_keywords = list(keywords)
        self.last_entry_id = result.question_id
        self.used_ids.add(result.question_id)

    def reset(self):
        # Rebind everything in one step so no partially cleared state is visible
        self.last_topic, self.last_keywords, self.last_entry_id, self.used_ids = '', [], None, set()


def classify_follow_up(text: str) -> Intent:
    """First follow-up intent whose predicate matches, or Intent.NONE"""
    for predicate, intent in FOLLOW_UP_RULES:
        if predicate(text or ''):
            return intent
    return Intent.NONE


def is_follow_up(text: str) -> bool:
    return classify_follow_up(text) is not Intent.NONE


def classify_rewrite(text: str) -> RewriteBucket:
    for predicate, bucket in REWRITE_RULES:
        if predicate(text or ''):
            return bucket
    return RewriteBucket.DEFAULT


def build_contextual_query(raw_text: str,
                           context: Optional[ConversationContext],
                           language: str = 'en') -> str:
    """
    Rewrite a follow-up message using the previous answer's topic and keywords

    Without prior context the raw text is returned unchanged.
    """
    if context is None or not context.has_context:
        return raw_text

    bucket = classify_rewrite(raw_text)
    templates = REWRITE_TEMPLATES.get(language, REWRITE_TEMPLATES['en'])
    keywords = ' '.join(context.last_keywords[:MAX_REWRITE_KEYWORDS])

    rewritten = templates[bucket].format(
        topic=context.last_topic,
        query=raw_text.strip(),
        keywords=keywords
    )
    rewritten = ' '.join(rewritten.split())

    logger.info(f"Rewrote follow-up ({bucket.value}): '{raw_text}' -> '{rewritten}'")
    return rewritten


def extract_context_keywords(answer: str, language: str = 'en') -> List[str]:
    """Stop-word filtered, de-duplicated keywords of an answer in reading order"""
    keywords = []
    seen = set()
    for token in tokenize(answer, language):
        if len(token) < MIN_CONTEXT_KEYWORD_LENGTH or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
        if len(keywords) >= MAX_CONTEXT_KEYWORDS:
            break
    return keywords
