import json
from types import SimpleNamespace

import httpx
import openai
import pytest

import llm_service
from llm_service import AIErrorKind, LLMService, STATIC_FOLLOW_UPS, fallback_message

MODELS = ['model-a', 'model-b', 'model-c']
CONFIG = {'models': {'synthesis_models': MODELS, 'follow_up_model': 'model-a'}, 'llm': {'max_context_results': 2}}

RESULTS = [
    {'reference': 'SB 1.2.6', 'description': 'Bhakti is loving devotional service.'},
    {'reference': 'SB 7.5.23', 'description': 'Nine processes of devotional service.'},
    {'reference': 'SB 1.2.19', 'description': 'Peace arises when the heart is freed.'},
]


def _status_error(cls, status):
    request = httpx.Request('POST', 'https://api.groq.com/openai/v1/chat/completions')
    return cls('error', response=httpx.Response(status, request=request), body=None)


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeClient:
    """Stands in for OpenAI(); replies are consumed in order, exceptions are raised"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return _completion(reply)


def test_no_api_key(monkeypatch):
    monkeypatch.delenv('BHAGAVATAM_MISSING_KEY', raising=False)
    service = LLMService({'llm': {'api_key_env': 'BHAGAVATAM_MISSING_KEY'}})

    response = service.synthesize("What is bhakti?", RESULTS)

    assert not service.available
    assert response.error is AIErrorKind.NO_API_KEY
    assert response.content == fallback_message(AIErrorKind.NO_API_KEY)
    assert not response.ok


def test_synthesize_success_and_cache():
    client = FakeClient("• Bhakti is pure love.")
    service = LLMService(CONFIG, client=client)

    first = service.synthesize("What is bhakti?", RESULTS, language='en')
    second = service.synthesize("what is  BHAKTI?", RESULTS, language='en')

    assert first.ok
    assert first.content == "• Bhakti is pure love."
    assert first.model == 'model-a'
    assert first.source_verses == ['SB 1.2.6', 'SB 7.5.23', 'SB 1.2.19']
    assert second is first
    assert len(client.calls) == 1


def test_cache_expires(monkeypatch):
    client = FakeClient("first", "second")
    service = LLMService(CONFIG, client=client)
    clock = [1000.0]
    monkeypatch.setattr(llm_service.time, 'time', lambda: clock[0])

    assert service.synthesize("What is bhakti?", RESULTS).content == "first"
    clock[0] += 3601
    assert service.synthesize("What is bhakti?", RESULTS).content == "second"


def test_rate_limit_rotates_and_remembers_model():
    client = FakeClient(_status_error(openai.RateLimitError, 429), "answer one", "answer two")
    service = LLMService(CONFIG, client=client)

    response = service.synthesize("What is bhakti?", RESULTS)
    assert response.model == 'model-b'
    assert service.current_model_index == 1

    service.synthesize("What is karma?", RESULTS)
    assert client.calls[-1]['model'] == 'model-b'


def test_bad_request_tries_next_model():
    client = FakeClient(_status_error(openai.BadRequestError, 400), _status_error(openai.NotFoundError, 404), "ok")
    response = LLMService(CONFIG, client=client).synthesize("What is bhakti?", RESULTS)
    assert response.ok
    assert response.model == 'model-c'
    assert [c['model'] for c in client.calls] == MODELS


def test_all_models_rate_limited():
    client = FakeClient(*[_status_error(openai.RateLimitError, 429) for _ in MODELS])
    response = LLMService(CONFIG, client=client).synthesize("What is bhakti?", RESULTS)
    assert response.error is AIErrorKind.RATE_LIMIT
    assert response.model == 'none'
    assert response.content == fallback_message(AIErrorKind.RATE_LIMIT)


def test_empty_responses():
    client = FakeClient('', '', '')
    response = LLMService(CONFIG, client=client).synthesize("What is bhakti?", RESULTS)
    assert response.error is AIErrorKind.EMPTY_RESPONSE


def test_unexpected_errors_become_api_error():
    client = FakeClient(RuntimeError('boom'), RuntimeError('boom'), RuntimeError('boom'))
    response = LLMService(CONFIG, client=client).synthesize("What is bhakti?", RESULTS)
    assert response.error is AIErrorKind.API_ERROR


def test_user_prompt_layout():
    service = LLMService(CONFIG, client=FakeClient())
    conversation = [
        {'role': 'user', 'content': 'Who am I?'},
        {'role': 'assistant', 'content': 'You are an eternal soul. ' * 10},
        {'role': 'user', 'content': 'Tell me more'},
    ]

    prompt = service.build_user_prompt("What is bhakti?", RESULTS, conversation, 'hi')

    assert "1. [SB 1.2.6]\nBhakti is loving devotional service." in prompt
    assert "SB 1.2.19" not in prompt
    assert "Who am I?" not in prompt
    assert "Q: Tell me more..." in prompt
    assert "【 Question 】\nWhat is bhakti?" in prompt
    assert prompt.rstrip().endswith("बुलेट पॉइंट • का उपयोग करें।")


def test_language_detected_from_question():
    client = FakeClient("उत्तर")
    LLMService(CONFIG, client=client).synthesize("भक्ति क्या है?", RESULTS)
    assert client.calls[0]['messages'][0]['content'] == llm_service.SYSTEM_PROMPTS['hi']


def test_follow_up_questions():
    questions = ["What is pure devotion?", "How does chanting purify?", "Who was Prahlada?"]
    client = FakeClient(json.dumps({"questions": questions}))
    service = LLMService(CONFIG, client=client)
    history = [{'role': 'assistant', 'content': 'Bhakti is loving service.'}]

    assert service.generate_follow_up_questions(history) == questions
    assert service.generate_follow_up_questions(history) == questions
    assert len(client.calls) == 1
    assert client.calls[0]['response_format'] == {"type": "json_object"}


@pytest.mark.parametrize("reply", ["not json", json.dumps({"questions": []}), RuntimeError("down")])
def test_follow_up_questions_fall_back(reply):
    service = LLMService(CONFIG, client=FakeClient(reply))
    history = [{'role': 'assistant', 'content': 'Bhakti is loving service.'}]
    assert service.generate_follow_up_questions(history, 'hi') == STATIC_FOLLOW_UPS['hi']


def test_clear_cache():
    client = FakeClient("first", "second")
    service = LLMService(CONFIG, client=client)
    service.synthesize("What is bhakti?", RESULTS)
    service.clear_cache()
    assert service.synthesize("What is bhakti?", RESULTS).content == "second"


def test_response_cache_is_bounded():
    client = FakeClient("one", "two", "three", "one again")
    service = LLMService({**CONFIG, 'llm': {'max_cache_entries': 2}}, client=client)

    service.synthesize("What is bhakti?", RESULTS)
    service.synthesize("What is karma?", RESULTS)
    service.synthesize("What is bhakti?", RESULTS)
    service.synthesize("What is maya?", RESULTS)

    assert len(service._cache) == 2
    # karma was least recently used and got evicted
    assert service.synthesize("What is karma?", RESULTS).content == "one again"
    assert len(client.calls) == 4


def test_follow_up_cache_is_bounded():
    replies = [json.dumps({"questions": [f"Question {i}?"]}) for i in range(5)]
    service = LLMService({**CONFIG, 'llm': {'max_cache_entries': 2}}, client=FakeClient(*replies))

    for i in range(5):
        service.generate_follow_up_questions([{'role': 'assistant', 'content': f"Answer {i}"}])

    assert len(service._follow_up_cache) == 2
