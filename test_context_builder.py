import pytest

from context_builder import (
    ConversationContext, Intent, RewriteBucket, build_contextual_query,
    classify_follow_up, classify_rewrite, extract_context_keywords, is_follow_up
)
from result_ranker import format_search_result


@pytest.fixture
def bhakti_context():
    return ConversationContext(last_topic="bhakti", last_keywords=["devotion", "service", "krishna"])


@pytest.mark.parametrize("text, intent", [
    ("Tell me more about this", Intent.TELL_MORE),
    ("How can I practice this?", Intent.PRACTICE),
    ("how do i practise it", Intent.PRACTICE),
    ("What are the obstacles?", Intent.OBSTACLE),
    ("Can you explain this with an example?", Intent.EXAMPLE),
    ("I want more about karma", Intent.MORE_ABOUT),
    ("Please elaborate", Intent.ELABORATE),
    ("Give me an example", Intent.EXAMPLE),
    ("How to meditate?", Intent.HOW_TO),
    ("और बताएं", Intent.TELL_MORE),
    ("इसका अभ्यास कैसे करें?", Intent.PRACTICE),
    ("What is maya?", Intent.NONE),
    ("", Intent.NONE),
])
def test_classify_follow_up(text, intent):
    assert classify_follow_up(text) is intent
    assert is_follow_up(text) is (intent is not Intent.NONE)


def test_first_matching_rule_wins():
    # matches both the "tell me more" and "how to" rules
    assert classify_follow_up("Tell me more, how to begin?") is Intent.TELL_MORE


def test_more_rewrite_contains_prior_keywords(bhakti_context):
    rewritten = build_contextual_query("Tell me more about this", bhakti_context)

    assert rewritten == "detailed advanced explanation of bhakti devotion service krishna"
    for keyword in ("devotion", "service", "krishna"):
        assert keyword in rewritten


@pytest.mark.parametrize("text, expected", [
    ("How can I practice this?", "how to practice bhakti in daily life How can I practice this?"),
    ("What are the obstacles?", "obstacles and challenges in bhakti What are the obstacles?"),
    ("Give me an example", "example story illustrating bhakti Give me an example"),
    ("Please elaborate", "Please elaborate devotion service krishna"),
])
def test_rewrite_templates(bhakti_context, text, expected):
    assert build_contextual_query(text, bhakti_context) == expected


def test_rewrite_bucket_order():
    assert classify_rewrite("tell me more about practice") is RewriteBucket.PRACTICE
    assert classify_rewrite("more obstacles with an example") is RewriteBucket.OBSTACLE
    assert classify_rewrite("one more example") is RewriteBucket.EXAMPLE
    assert classify_rewrite("anything else") is RewriteBucket.DEFAULT


def test_more_rewrite_uses_at_most_three_keywords():
    context = ConversationContext(last_topic="karma", last_keywords=["action", "reaction", "bondage", "birth"])
    assert build_contextual_query("more please", context) == "detailed advanced explanation of karma action reaction bondage"


def test_hindi_rewrite():
    context = ConversationContext(last_topic="भक्ति क्या है?", last_keywords=["सेवा", "प्रेम"])
    rewritten = build_contextual_query("और बताएं", context, 'hi')
    assert rewritten == "भक्ति क्या है? की विस्तृत गहन व्याख्या सेवा प्रेम"


@pytest.mark.parametrize("text, expected", [
    ("और बताइए", RewriteBucket.MORE),
    ("अधिक जानकारी दें", RewriteBucket.MORE),
    ("भक्ति और सेवा का विस्तार", RewriteBucket.DEFAULT),
])
def test_hindi_conjunction_is_not_a_more_request(text, expected):
    assert classify_rewrite(text) is expected


def test_hindi_follow_up_with_conjunction_keeps_user_text():
    context = ConversationContext(last_topic="भक्ति क्या है?", last_keywords=["सेवा", "प्रेम"])
    rewritten = build_contextual_query("भक्ति और सेवा का विस्तार", context, 'hi')
    assert rewritten == "भक्ति और सेवा का विस्तार सेवा प्रेम"


def test_no_context_returns_raw_text():
    assert build_contextual_query("Tell me more", ConversationContext()) == "Tell me more"
    assert build_contextual_query("Tell me more", None) == "Tell me more"


def test_extract_context_keywords(en_corpus):
    answer = en_corpus.entry_by_id('q002').answer
    assert extract_context_keywords(answer) == [
        "bhakti", "loving", "devotional", "service", "supreme", "lord", "performed", "without"
    ]


def test_extract_context_keywords_deduplicates():
    assert extract_context_keywords("Karma karma KARMA binds, karma frees") == ["karma", "binds", "frees"]


def test_record_and_reset(en_corpus):
    context = ConversationContext()
    result = format_search_result(en_corpus.entry_by_id('q002'), en_corpus, 80)

    context.record(result, ["bhakti", "service"])

    assert context.has_context
    assert context.last_topic == "what is bhakti?"
    assert context.last_entry_id == 'q002'
    assert context.used_ids == {'q002'}

    context.record(format_search_result(en_corpus.entry_by_id('q004'), en_corpus, 70), ["practice"])
    assert context.used_ids == {'q002', 'q004'}

    context.reset()
    assert context == ConversationContext()
    assert not context.has_context
