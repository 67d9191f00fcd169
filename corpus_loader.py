"""
Corpus loading for the Bhagavatam Q&A engine

Reads a JSON knowledge base (questions, verses, synonyms, search index)
into immutable in-memory objects and caches one corpus per language.
Loading a non-default language that fails falls back, one level only,
to the default language corpus.
"""

import os
import json
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger('BhagavatamQA-Corpus')

DEFAULT_LANGUAGE = 'en'


class LoadError(Exception):
    """Raised when a corpus cannot be fetched or parsed"""

    def __init__(self, language: str, message: str):
        super().__init__(f"[{language}] {message}")
        self.language = language
        self.message = message


class Difficulty(Enum):
    FOUNDATIONAL = 'foundational'
    INTERMEDIATE = 'intermediate'
    ADVANCED = 'advanced'

    @classmethod
    def from_label(cls, label: Any) -> Optional['Difficulty']:
        """Parse an English or localized difficulty label"""
        if not isinstance(label, str):
            return None
        return DIFFICULTY_LABELS.get(label.strip().lower())


DIFFICULTY_LABELS = {
    'foundational': Difficulty.FOUNDATIONAL,
    'मूलभूत': Difficulty.FOUNDATIONAL,
    'intermediate': Difficulty.INTERMEDIATE,
    'मध्यम': Difficulty.INTERMEDIATE,
    'advanced': Difficulty.ADVANCED,
    'उन्नत': Difficulty.ADVANCED,
}


@dataclass(frozen=True)
class CorpusEntry:
    """One question/answer unit"""
    id: str
    canto_id: int
    question: str
    answer: str
    verse_refs: Tuple[str, ...] = ()
    themes: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    difficulty: Optional[Difficulty] = None
    popularity: float = 0.0


@dataclass(frozen=True)
class Verse:
    text: str
    translation: str
    themes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SearchIndexEntry:
    question_ids: Tuple[str, ...]
    frequency: int = 0
    importance: float = 0.0


@dataclass(frozen=True)
class Canto:
    id: int
    name: str
    themes: Tuple[str, ...] = ()


@dataclass
class Corpus:
    """Full knowledge base for one language"""
    language: str
    entries: Tuple[CorpusEntry, ...]
    verses: Dict[str, Verse] = field(default_factory=dict)
    synonyms: Dict[str, List[str]] = field(default_factory=dict)
    search_index: Dict[str, SearchIndexEntry] = field(default_factory=dict)
    cantos: Tuple[Canto, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self._by_id = {entry.id: entry for entry in self.entries}
        self._canto_names = {canto.id: canto.name for canto in self.cantos}

    def __len__(self) -> int:
        return len(self.entries)

    def entry_by_id(self, entry_id: str) -> Optional[CorpusEntry]:
        return self._by_id.get(entry_id)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._by_id

    def canto_name(self, canto_id: int) -> Optional[str]:
        """Name of a canto, or None when the knowledge base does not list it"""
        return self._canto_names.get(canto_id) or None


@dataclass
class LoadOutcome:
    """Explicit result of a load attempt: a corpus, or the error that prevented it"""
    requested_language: str
    corpus: Optional[Corpus] = None
    error: Optional[LoadError] = None
    fallback_used: bool = False

    @property
    def ok(self) -> bool:
        return self.corpus is not None


def _string_tuple(values: Any) -> Tuple[str, ...]:
    if not isinstance(values, list):
        return ()
    return tuple(str(v) for v in values if isinstance(v, (str, int, float)))


def _parse_entry(raw: Any, position: int) -> Optional[CorpusEntry]:
    if not isinstance(raw, dict):
        logger.warning(f"Skipping question #{position}: not an object")
        return None

    missing = [key for key in ('id', 'question', 'answer') if not raw.get(key)]
    if missing:
        logger.warning(f"Skipping question #{position}: missing {missing}")
        return None

    difficulty = Difficulty.from_label(raw.get('difficulty'))
    if difficulty is None:
        logger.debug(f"Question {raw['id']} has unknown difficulty {raw.get('difficulty')!r}")

    try:
        canto_id = int(raw.get('cantoId', 0))
    except (TypeError, ValueError):
        canto_id = 0

    try:
        popularity = float(raw.get('popularity', 0))
    except (TypeError, ValueError):
        popularity = 0.0

    return CorpusEntry(
        id=str(raw['id']),
        canto_id=canto_id,
        question=str(raw['question']),
        answer=str(raw['answer']),
        verse_refs=_string_tuple(raw.get('verseRefs')),
        themes=_string_tuple(raw.get('themes')),
        keywords=_string_tuple(raw.get('keywords')),
        difficulty=difficulty,
        popularity=popularity
    )


def _section(data: Dict[str, Any], key: str, language: str) -> Dict[str, Any]:
    section = data.get(key)
    if not isinstance(section, dict):
        logger.warning(f"Corpus '{language}' has no '{key}' map, using an empty one")
        return {}
    return section


def parse_corpus(text: str, language: str) -> Corpus:
    """Parse knowledge base JSON, raising LoadError when it is unusable"""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        tail = text[-100:] if isinstance(text, str) else ''
        logger.error(f"JSON parse failed for '{language}' corpus. Ends with: {tail!r}")
        raise LoadError(language, f"Malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise LoadError(language, "Knowledge base must be a JSON object")

    raw_questions = data.get('questions')
    if not isinstance(raw_questions, list):
        raise LoadError(language, "Knowledge base has no 'questions' array")

    entries = []
    for position, raw in enumerate(raw_questions):
        entry = _parse_entry(raw, position)
        if entry is not None:
            entries.append(entry)

    verses = {}
    for ref, raw in _section(data, 'verses', language).items():
        if isinstance(raw, dict):
            verses[ref] = Verse(
                text=str(raw.get('text', '')),
                translation=str(raw.get('translation', '')),
                themes=_string_tuple(raw.get('themes'))
            )

    synonyms = {}
    for term, values in _section(data, 'synonyms', language).items():
        if isinstance(values, list):
            synonyms[term] = [str(v) for v in values]

    search_index = {}
    for term, raw in _section(data, 'searchIndex', language).items():
        if not isinstance(raw, dict):
            continue
        try:
            frequency = int(raw.get('frequency', 0) or 0)
            importance = float(raw.get('importance', 0) or 0)
        except (TypeError, ValueError):
            logger.warning(f"Skipping search index term {term!r} in '{language}': bad frequency or importance")
            continue
        search_index[term] = SearchIndexEntry(
            question_ids=_string_tuple(raw.get('questionIds')),
            frequency=frequency,
            importance=importance
        )

    raw_cantos = data.get('cantos') or []
    if not isinstance(raw_cantos, list):
        logger.warning(f"Corpus '{language}' has a non-list 'cantos' value, ignoring it")
        raw_cantos = []

    cantos = []
    for raw in raw_cantos:
        if not isinstance(raw, dict) or 'id' not in raw:
            continue
        try:
            canto_id = int(raw['id'])
        except (TypeError, ValueError):
            logger.warning(f"Skipping canto with id {raw['id']!r} in '{language}'")
            continue
        cantos.append(Canto(id=canto_id, name=str(raw.get('name', '')),
                            themes=_string_tuple(raw.get('themes'))))

    metadata = data.get('metadata') if isinstance(data.get('metadata'), dict) else {}

    return Corpus(
        language=language,
        entries=tuple(entries),
        verses=verses,
        synonyms=synonyms,
        search_index=search_index,
        cantos=tuple(cantos),
        metadata=metadata
    )


def read_source(source: str) -> str:
    """Default fetcher: read a knowledge base file as UTF-8"""
    with open(source, 'r', encoding='utf-8') as f:
        return f.read()


class CorpusRepository:
    """Per-language corpus cache with one in-flight load per language"""

    def __init__(self,
                 sources: Dict[str, str],
                 default_language: str = DEFAULT_LANGUAGE,
                 fetcher: Optional[Callable[[str], str]] = None,
                 base_dir: Optional[str] = None):
        self.sources = dict(sources)
        self.default_language = default_language
        self.fetcher = fetcher or read_source
        self.base_dir = base_dir
        self._cache: Dict[str, Corpus] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}
        self.fetch_count = 0

    def _resolve(self, source: str) -> str:
        if self.base_dir and not os.path.isabs(source):
            return os.path.join(self.base_dir, source)
        return source

    def get(self, language: str) -> Optional[Corpus]:
        """Cached corpus for a language, or None when not loaded"""
        return self._cache.get(language)

    @property
    def loaded_languages(self) -> List[str]:
        return list(self._cache.keys())

    def invalidate(self, language: Optional[str] = None):
        """Drop one cached corpus, or all of them"""
        if language is None:
            self._cache.clear()
            logger.info("Invalidated all cached corpora")
        elif self._cache.pop(language, None) is not None:
            logger.info(f"Invalidated cached corpus '{language}'")

    async def _fetch(self, language: str) -> Corpus:
        source = self.sources.get(language)
        if not source:
            raise LoadError(language, "No knowledge base configured for this language")

        path = self._resolve(source)
        self.fetch_count += 1
        try:
            text = await asyncio.to_thread(self.fetcher, path)
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(language, f"Failed to read {path}: {e}") from e

        logger.debug(f"Fetched {path}, text length: {len(text)}")
        corpus = parse_corpus(text, language)
        logger.info(f"Loaded {len(corpus)} questions for '{language}' from {path}")
        return corpus

    async def _load_once(self, language: str) -> Corpus:
        """Fetch a language, sharing a single in-flight task between callers"""
        cached = self._cache.get(language)
        if cached is not None:
            return cached

        pending = self._in_flight.get(language)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(language))
            self._in_flight[language] = pending
            try:
                corpus = await pending
            finally:
                self._in_flight.pop(language, None)
            self._cache[language] = corpus
            return corpus

        return await pending

    async def try_load(self, language: str) -> LoadOutcome:
        """Load a corpus, falling back once to the default language"""
        try:
            corpus = await self._load_once(language)
            return LoadOutcome(requested_language=language, corpus=corpus)
        except LoadError as e:
            logger.error(f"Error loading corpus ({language}): {e.message}")
            if language == self.default_language:
                return LoadOutcome(requested_language=language, error=e)

        logger.info(f"Falling back to '{self.default_language}' corpus for '{language}'")
        try:
            corpus = await self._load_once(self.default_language)
        except LoadError as e:
            logger.error(f"Fallback to '{self.default_language}' corpus failed: {e.message}")
            return LoadOutcome(requested_language=language, error=e, fallback_used=True)
        return LoadOutcome(requested_language=language, corpus=corpus, fallback_used=True)

    async def load(self, language: str) -> Corpus:
        """Load a corpus or raise LoadError"""
        outcome = await self.try_load(language)
        if not outcome.ok:
            raise outcome.error
        return outcome.corpus

    def load_sync(self, language: str) -> Corpus:
        """Synchronous wrapper for load()"""
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(self.load(language))
        finally:
            loop.close()

    def initialize(self, languages: Optional[Iterable[str]] = None) -> Dict[str, bool]:
        """Eagerly load languages; returns which ones loaded without fallback"""
        status = {}
        loop = asyncio.new_event_loop()
        try:
            for language in (languages or self.sources.keys()):
                outcome = loop.run_until_complete(self.try_load(language))
                status[language] = outcome.ok and not outcome.fallback_used
        finally:
            loop.close()
        return status
