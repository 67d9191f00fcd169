"""
LLM enrichment for retrieved Bhagavatam teachings

Talks to an OpenAI-compatible chat completions endpoint (Groq by default)
through the OpenAI SDK. Every failure is reported as an AIErrorKind on the
response instead of an exception, so callers can fall back to the
retrieval-only answer.
"""

import os
import re
import json
import time
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openai
from openai import OpenAI
from dotenv import load_dotenv

logger = logging.getLogger('BhagavatamQA-LLM')

# Load environment variables from .env file if present
load_dotenv(verbose=False)

DEFAULT_MODELS = [
    'llama-3.1-8b-instant',
    'openai/gpt-oss-20b',
    'llama-3.3-70b-versatile',
    'meta-llama/llama-4-scout-17b-16e-instruct',
    'qwen/qwen3-32b',
    'openai/gpt-oss-120b'
]
DEFAULT_BASE_URL = 'https://api.groq.com/openai/v1'
CONTEXT_TURNS = 2
CONTEXT_TURN_CHARS = 100
MAX_CACHE_ENTRIES = 256

DEVANAGARI_PATTERN = re.compile(r'[\u0900-\u097F]')


class AIErrorKind(Enum):
    NO_API_KEY = 'NO_API_KEY'
    RATE_LIMIT = 'RATE_LIMIT'
    EMPTY_RESPONSE = 'EMPTY_RESPONSE'
    API_ERROR = 'API_ERROR'


@dataclass
class AIResponse:
    content: str
    model: str
    source_verses: List[str] = field(default_factory=list)
    error: Optional[AIErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None


FALLBACK_MESSAGES = {
    AIErrorKind.RATE_LIMIT: "The AI is experiencing high demand. The sacred teaching above offers authentic wisdom. Please try AI synthesis again in a moment.",
    AIErrorKind.NO_API_KEY: "AI synthesis is not configured. The response above provides authentic wisdom from Srimad Bhagavatam.",
    AIErrorKind.EMPTY_RESPONSE: "I apologize for the difficulty. The scriptural teaching above offers valuable guidance for your spiritual journey.",
    AIErrorKind.API_ERROR: "I encountered a temporary challenge accessing deeper synthesis. The sacred teaching above provides authentic wisdom.",
}

STATIC_FOLLOW_UPS = {
    'en': ["Tell me more", "How to apply this daily?", "What is the deeper meaning?"],
    'hi': ["और बताएं", "दैनिक जीवन में कैसे अपनाएं?", "इसका गहरा अर्थ क्या है?"],
}

SYSTEM_PROMPTS = {
    'en': """You are a distinguished Vedantic scholar. Synthesize teachings with precision.

CRITICAL FORMATTING:
- Use bullet points (•) for ALL insights
- Max 5-7 bullets per response
- Each bullet: 1 clear thought (8-15 words)
- Cite verses in parentheses: (SB 1.2.10)
- Qualitative depth over quantity

STRUCTURE:
Opening: One profound statement (10-15 words)
Core Bullets: 3-5 essential insights
Closing: One actionable guidance

Be precise. Be profound. Be concise.""",
    'hi': """आप एक प्रतिष्ठित वैदांतिक विद्वान हैं। श्रीमद्भागवतम् से शिक्षाओं का संश्लेषण करें।

महत्वपूर्ण नियम:
- सभी प्रमुख अंतर्दृष्टि के लिए बुलेट पॉइंट (•) का उपयोग करें
- प्रति उत्तर अधिकतम 5-7 बुलेट
- प्रत्येक बुलेट: एक स्पष्ट विचार (8-15 शब्द)
- श्लोक संदर्भ कोष्ठक में: (SB 1.2.10)

संरचना:
प्रारंभ: एक गहन कथन (10-15 शब्द)
मुख्य बुलेट: 3-5 आवश्यक अंतर्दृष्टि
समापन: एक व्यावहारिक मार्गदर्शन""",
}

HINDI_ANSWER_INSTRUCTION = (
    "\n\n【अति महत्वपूर्ण】\nसंपूर्ण उत्तर हिंदी में दें। अंग्रेजी शिक्षाओं को हिंदी में अनुवाद करें। "
    "श्लोक संदर्भ (SB X.Y.Z) वैसे ही रखें। बुलेट पॉइंट • का उपयोग करें।"
)


def detect_language(text: str) -> str:
    return 'hi' if DEVANAGARI_PATTERN.search(text or '') else 'en'


def fallback_message(error: Optional[AIErrorKind]) -> str:
    """User-facing message shown in place of a failed synthesis"""
    return FALLBACK_MESSAGES.get(error, FALLBACK_MESSAGES[AIErrorKind.API_ERROR])


def _field(item: Any, name: str) -> str:
    if isinstance(item, dict):
        return str(item.get(name, ''))
    return str(getattr(item, name, ''))


class LLMService:
    """Model-rotating chat completion client with a response cache"""

    def __init__(self, config: Optional[Dict[str, Any]] = None, client: Any = None):
        config = config or {}
        llm_config = config.get('llm', {})
        model_config = config.get('models', {})

        self.models = list(model_config.get('synthesis_models') or DEFAULT_MODELS)
        self.follow_up_model = model_config.get('follow_up_model', self.models[0])
        self.max_output_tokens = llm_config.get('max_output_tokens', 600)
        self.temperature = llm_config.get('temperature', 0.7)
        self.cache_seconds = llm_config.get('cache_seconds', 3600)
        self.max_context_results = llm_config.get('max_context_results', 3)
        self.max_cache_entries = llm_config.get('max_cache_entries', MAX_CACHE_ENTRIES)

        if client is not None:
            self.client = client
        else:
            api_key = os.getenv(llm_config.get('api_key_env', 'GROQ_API_KEY'))
            if api_key:
                self.client = OpenAI(
                    api_key=api_key,
                    base_url=llm_config.get('base_url', DEFAULT_BASE_URL),
                    timeout=llm_config.get('timeout', 30)
                )
            else:
                self.client = None
                logger.warning("No LLM API key found. AI synthesis is disabled.")

        self.current_model_index = 0
        self._cache: Dict[str, Tuple[AIResponse, float]] = OrderedDict()
        self._follow_up_cache: Dict[str, List[str]] = OrderedDict()

    @property
    def available(self) -> bool:
        return self.client is not None

    def _cache_key(self, question: str, context: str, language: str) -> str:
        return ' '.join(f"{language}:{question}:{context}".lower().split())

    def _get_cached(self, key: str) -> Optional[AIResponse]:
        cached = self._cache.get(key)
        if cached is None:
            return None
        response, timestamp = cached
        if time.time() - timestamp < self.cache_seconds:
            self._cache.move_to_end(key)
            return response
        del self._cache[key]
        return None

    def _remember(self, cache: OrderedDict, key: str, value: Any):
        """Store a value, evicting the least recently used entries past the size cap"""
        cache[key] = value
        cache.move_to_end(key)
        while len(cache) > self.max_cache_entries:
            cache.popitem(last=False)

    def clear_cache(self):
        self._cache.clear()
        self._follow_up_cache.clear()
        logger.info("Cleared LLM response caches")

    def build_user_prompt(self,
                          question: str,
                          search_results: Sequence[Any] = (),
                          conversation: Sequence[Dict[str, str]] = (),
                          language: str = 'en') -> str:
        prompt = '【 Sacred Teachings 】\n\n'
        for i, result in enumerate(list(search_results)[:self.max_context_results]):
            prompt += f"{i + 1}. [{_field(result, 'reference')}]\n{_field(result, 'description')}\n\n"

        if conversation:
            prompt += '\n【 Context 】\n'
            for message in list(conversation)[-CONTEXT_TURNS:]:
                speaker = 'Q' if message.get('role') == 'user' else 'A'
                prompt += f"{speaker}: {message.get('content', '')[:CONTEXT_TURN_CHARS]}...\n"

        prompt += f"\n【 Question 】\n{question}\n\n"
        prompt += 'Synthesize into 5-7 bullets. Be profound and precise.'

        if language == 'hi':
            prompt += HINDI_ANSWER_INSTRUCTION

        return prompt

    def synthesize(self,
                   question: str,
                   search_results: Sequence[Any] = (),
                   conversation: Sequence[Dict[str, str]] = (),
                   language: Optional[str] = None) -> AIResponse:
        """
        Synthesize an answer from retrieved teachings

        Models are tried in rotation starting from the last one that
        succeeded. When every model fails the returned response carries the
        fallback message and the last error kind.
        """
        if not self.available:
            return AIResponse(content=fallback_message(AIErrorKind.NO_API_KEY), model='none',
                              error=AIErrorKind.NO_API_KEY)

        language = language or detect_language(question)
        search_results = list(search_results)
        first_description = _field(search_results[0], 'description') if search_results else ''
        cache_key = self._cache_key(question, first_description, language)

        cached = self._get_cached(cache_key)
        if cached is not None:
            logger.debug(f"LLM cache hit for: {question}")
            return cached

        messages = [
            {"role": "system", "content": SYSTEM_PROMPTS.get(language, SYSTEM_PROMPTS['en'])},
            {"role": "user", "content": self.build_user_prompt(question, search_results, conversation, language)}
        ]

        last_error = AIErrorKind.API_ERROR
        for attempt in range(len(self.models)):
            model_index = (self.current_model_index + attempt) % len(self.models)
            model = self.models[model_index]

            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=self.max_output_tokens,
                    temperature=self.temperature,
                    top_p=0.9,
                    frequency_penalty=0.3,
                    presence_penalty=0.2
                )
            except openai.RateLimitError:
                logger.warning(f"Model {model} is rate limited")
                last_error = AIErrorKind.RATE_LIMIT
                continue
            except (openai.BadRequestError, openai.NotFoundError) as e:
                logger.debug(f"Model {model} rejected the request: {e}")
                last_error = AIErrorKind.API_ERROR
                continue
            except Exception as e:
                logger.error(f"AI synthesis error with model {model}: {e}")
                last_error = AIErrorKind.API_ERROR
                continue

            content = response.choices[0].message.content if response.choices else ''
            if not content:
                logger.warning(f"Model {model} returned an empty response")
                last_error = AIErrorKind.EMPTY_RESPONSE
                continue

            result = AIResponse(
                content=content.strip(),
                model=model,
                source_verses=[_field(r, 'reference') for r in search_results]
            )
            self.current_model_index = model_index
            self._remember(self._cache, cache_key, (result, time.time()))
            logger.info(f"Synthesized answer with model {model}")
            return result

        logger.warning(f"All models failed, last error: {last_error.value}")
        return AIResponse(content=fallback_message(last_error), model='none', error=last_error)

    def generate_follow_up_questions(self,
                                     history: Sequence[Dict[str, str]],
                                     language: str = 'en') -> List[str]:
        """Three short follow-up questions for the conversation so far"""
        static = list(STATIC_FOLLOW_UPS.get(language, STATIC_FOLLOW_UPS['en']))
        if not self.available or not history:
            return static

        last_content = history[-1].get('content', '')
        cache_key = f"qs-{language}-{last_content[:50]}"
        if cache_key in self._follow_up_cache:
            self._follow_up_cache.move_to_end(cache_key)
            return self._follow_up_cache[cache_key]

        prompt = f"""Generate exactly 3 short, profound follow-up questions based on the conversation.
Domain: Srimad Bhagavatam. Language: {'Hindi' if language == 'hi' else 'English'}.

Constraints:
1. Questions must deepen the spiritual inquiry (Sadhana, Philosophy, Application).
2. Max 10-12 words per question.
3. No generic questions like "Tell me more". Be specific to the content.
4. Output JSON format: {{ "questions": ["Q1", "Q2", "Q3"] }}"""

        try:
            response = self.client.chat.completions.create(
                model=self.follow_up_model,
                messages=[
                    {"role": "system", "content": f"Context: {last_content[:200]}..."},
                    {"role": "user", "content": prompt}
                ],
                response_format={"type": "json_object"},
                temperature=0.4
            )
            parsed = json.loads(response.choices[0].message.content or '')
            questions = [str(q) for q in parsed.get('questions', []) if q][:3]
        except Exception as e:
            logger.warning(f"Follow-up generation failed, using static questions: {e}")
            return static

        if not questions:
            return static

        self._remember(self._follow_up_cache, cache_key, questions)
        return questions
