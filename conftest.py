import os
import sys

import pytest

ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from corpus_loader import Corpus, CorpusEntry, CorpusRepository, Difficulty, parse_corpus, read_source

DATA_DIR = os.path.join(ROOT, 'data')
SOURCES = {
    'en': os.path.join(DATA_DIR, 'srimad-bhagavatam.json'),
    'hi': os.path.join(DATA_DIR, 'srimad-bhagavatam-hi.json'),
}


@pytest.fixture(scope='session')
def en_corpus() -> Corpus:
    return parse_corpus(read_source(SOURCES['en']), 'en')


@pytest.fixture(scope='session')
def hi_corpus() -> Corpus:
    return parse_corpus(read_source(SOURCES['hi']), 'hi')


@pytest.fixture
def make_entry():
    def factory(entry_id='x001', question='What is dharma?', answer='Dharma is duty.', **overrides):
        fields = dict(
            id=entry_id,
            canto_id=1,
            question=question,
            answer=answer,
            verse_refs=(),
            themes=(),
            keywords=(),
            difficulty=Difficulty.FOUNDATIONAL,
            popularity=0.0
        )
        fields.update(overrides)
        return CorpusEntry(**fields)
    return factory


@pytest.fixture
def repository() -> CorpusRepository:
    return CorpusRepository(SOURCES)


class RecordingFetcher:
    """File fetcher that counts reads and can fail for chosen paths"""

    def __init__(self, failing=(), payloads=None):
        self.failing = set(failing)
        self.payloads = payloads or {}
        self.calls = []

    def __call__(self, path: str) -> str:
        self.calls.append(path)
        if path in self.payloads:
            return self.payloads[path]
        if path in self.failing:
            raise FileNotFoundError(path)
        return read_source(path)


@pytest.fixture
def recording_fetcher():
    return RecordingFetcher


@pytest.fixture
def sources():
    return dict(SOURCES)
