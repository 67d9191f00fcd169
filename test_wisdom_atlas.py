import pytest

from corpus_loader import Difficulty
from wisdom_atlas import DOMAINS, DOMAINS_BY_ID, build_atlas, classify_entry


@pytest.mark.parametrize("entry_id, domain_id", [
    ('q001', 'self'),
    ('q002', 'devotion'),
    ('q003', 'dharma'),
    ('q006', 'karma'),
    ('q009', 'detachment'),
    ('q011', 'karma'),
    ('q012', 'devotion'),
])
def test_classify_by_question_and_themes(en_corpus, entry_id, domain_id):
    assert classify_entry(en_corpus.entry_by_id(entry_id)).id == domain_id


def test_first_matching_domain_wins(make_entry):
    # "krishna" is a devotion keyword, "godhead" contains the divine keyword "god"
    entry = make_entry(question="Who is Krishna?", themes=("godhead",))
    assert classify_entry(entry).id == 'devotion'


def test_hindi_entries(hi_corpus):
    assert classify_entry(hi_corpus.entry_by_id('hq001')).id == 'self'
    assert classify_entry(hi_corpus.entry_by_id('hq002')).id == 'devotion'
    assert classify_entry(hi_corpus.entry_by_id('hq005')).id == 'karma'


def test_unmatched_entry_gets_a_stable_domain(make_entry):
    entry = make_entry(entry_id='q005', question="How do I find inner peace?", themes=("peace", "mind"))
    domain = classify_entry(entry)
    assert domain.id == 'divine'
    assert all(classify_entry(entry) is domain for _ in range(5))


def test_atlas_counts(en_corpus):
    atlas = build_atlas(en_corpus)

    assert list(atlas) == [domain.id for domain in DOMAINS]
    assert {domain_id: stats.total for domain_id, stats in atlas.items()} == {
        'self': 3, 'devotion': 4, 'dharma': 2, 'karma': 2,
        'detachment': 1, 'creation': 0, 'divine': 2, 'liberation': 0,
    }

    devotion = atlas['devotion']
    assert (devotion.foundational, devotion.intermediate, devotion.advanced) == (2, 1, 1)
    assert devotion.cantos == ["Creation", "The Science of God", "The Summum Bonum",
                               "The Creation of the Fourth Order"]


def test_domain_questions_foundational_first(en_corpus):
    devotion = build_atlas(en_corpus)['devotion']
    assert [entry.id for entry in devotion.questions()] == ['q002', 'q012', 'q004', 'q013']
    assert [entry.id for entry in devotion.questions({Difficulty.FOUNDATIONAL: 1})] == ['q002']


def test_to_dict_uses_localized_names(hi_corpus):
    stats = build_atlas(hi_corpus)['devotion'].to_dict('hi')
    assert stats['name'] == 'भक्ति'
    assert stats['total'] == 2
    assert stats['cantos'] == ["सृष्टि", "ईश्वर का विज्ञान"]


def test_domain_lookup():
    assert DOMAINS_BY_ID['liberation'].display_name() == 'Liberation'
    assert len(DOMAINS) == 8
